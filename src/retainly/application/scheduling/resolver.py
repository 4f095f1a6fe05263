"""
Parameter resolution: category override -> global default.

Weights and retention resolve independently, so a category may override
only its retention, only its weights, or both.
"""

import logging
from dataclasses import dataclass

from retainly.domain.scheduling.codec import decode_parameters
from retainly.domain.scheduling.models import Category, ParameterSet
from retainly.domain.scheduling.ports import CategoryStore, SettingsStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedScope:
    parameters: ParameterSet
    retention: float


def choose_parameters(category: Category | None) -> ParameterSet:
    """Return the category's override if it decodes, else the default set."""
    if category is not None and category.parameters_json is not None:
        override = decode_parameters(category.parameters_json)
        if override is not None:
            return override
        logger.warning(f"Category {category.id} has a malformed override; using defaults")
    return ParameterSet.default()


def choose_retention(category: Category | None, global_retention: float | None) -> float:
    if category is not None and category.desired_retention is not None:
        return category.desired_retention
    if global_retention is not None:
        return global_retention
    return ParameterSet.default().target_retention


class ParameterResolver:
    """
    Resolves the effective ParameterSet and target retention for a category.

    Depends on the CategoryStore and SettingsStore ports only.
    """

    def __init__(self, categories: CategoryStore, settings: SettingsStore):
        self._categories = categories
        self._settings = settings

    async def _load_category(self, category_id: int | None) -> Category | None:
        if category_id is None:
            return None
        return await self._categories.get_category(category_id)

    async def resolve_parameters(self, category_id: int | None) -> ParameterSet:
        return choose_parameters(await self._load_category(category_id))

    async def resolve_retention(self, category_id: int | None) -> float:
        category = await self._load_category(category_id)
        return choose_retention(category, await self._settings.get_global_retention())

    async def resolve(self, category_id: int | None) -> ResolvedScope:
        category = await self._load_category(category_id)
        global_retention = await self._settings.get_global_retention()
        return ResolvedScope(
            parameters=choose_parameters(category),
            retention=choose_retention(category, global_retention),
        )
