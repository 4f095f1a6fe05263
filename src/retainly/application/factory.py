"""
Store Factory
Centralizes the logic for selecting the storage adapter and wiring the review service.
"""

import logging

from retainly.application.config import AppConfig
from retainly.application.scheduling.service import ReviewService
from retainly.infrastructure.adapters.memory_store import InMemoryStore
from retainly.infrastructure.adapters.sqlite_store import SqliteStore

logger = logging.getLogger(__name__)


def get_store(config: AppConfig) -> InMemoryStore | SqliteStore:
    """
    Returns the storage adapter selected by config.
    """
    if config.backend == "memory":
        return InMemoryStore()
    return SqliteStore(config.db_path)


async def build_review_service(
    config: AppConfig, store: InMemoryStore | SqliteStore | None = None
) -> ReviewService:
    """
    Wire a ReviewService on top of a store.

    The configured desired retention seeds the settings store when it has none.
    """
    store = store or get_store(config)
    if await store.get_global_retention() is None:
        logger.debug(f"Seeding global retention with {config.desired_retention}")
        await store.set_global_retention(config.desired_retention)
    return ReviewService(items=store, reviews=store, categories=store, settings=store)
