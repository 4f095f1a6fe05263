"""
In-memory store — implements every scheduling port with plain dicts.

Used by tests and by the `memory` backend for throwaway sessions.
"""

from dataclasses import replace
from itertools import count

from retainly.domain.constants import DEFAULT_HISTORY_LIMIT
from retainly.domain.scheduling.models import (
    Category,
    CategoryDeleteStrategy,
    Item,
    ReviewOutcome,
)
from retainly.domain.scheduling.ports import (
    CategoryStore,
    ItemRepository,
    ReviewLog,
    SettingsStore,
)


class InMemoryStore(ItemRepository, ReviewLog, CategoryStore, SettingsStore):
    def __init__(self, global_retention: float | None = None):
        self.items: dict[int, Item] = {}
        self.categories: dict[int, Category] = {}
        self.reviews: list[ReviewOutcome] = []
        self.global_retention = global_retention
        self._item_ids = count(1)
        self._category_ids = count(1)
        self._review_ids = count(1)

    # Items

    async def get_item(self, item_id: int) -> Item | None:
        return self.items.get(item_id)

    async def list_active_items(self) -> list[Item]:
        return [self.items[k] for k in sorted(self.items) if not self.items[k].archived]

    async def add_item(self, item: Item) -> Item:
        stored = replace(item, id=next(self._item_ids))
        self.items[stored.id] = stored
        return stored

    async def list_archived_items(self) -> list[Item]:
        return [self.items[k] for k in sorted(self.items) if self.items[k].archived]

    def _set_archived(self, item_id: int, archived: bool) -> Item | None:
        if item_id not in self.items:
            return None
        self.items[item_id] = replace(self.items[item_id], archived=archived)
        return self.items[item_id]

    async def archive_item(self, item_id: int) -> Item | None:
        return self._set_archived(item_id, True)

    async def unarchive_item(self, item_id: int) -> Item | None:
        return self._set_archived(item_id, False)

    async def delete_item(self, item_id: int) -> bool:
        if self.items.pop(item_id, None) is None:
            return False
        self.reviews = [r for r in self.reviews if r.item_id != item_id]
        return True

    # Reviews

    async def get_latest_review(self, item_id: int) -> ReviewOutcome | None:
        history = await self.list_reviews(item_id, limit=1)
        return history[0] if history else None

    async def append_review(self, outcome: ReviewOutcome) -> ReviewOutcome:
        stored = replace(outcome, id=next(self._review_ids))
        self.reviews.append(stored)
        return stored

    async def list_reviews(
        self, item_id: int, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[ReviewOutcome]:
        matching = [r for r in self.reviews if r.item_id == item_id]
        matching.sort(key=lambda r: (r.reviewed_at, r.id), reverse=True)
        return matching[:limit]

    # Categories

    async def get_category(self, category_id: int) -> Category | None:
        return self.categories.get(category_id)

    async def list_categories(self) -> list[Category]:
        return [self.categories[k] for k in sorted(self.categories)]

    async def save_category(self, category: Category) -> Category:
        if category.id is None:
            category = replace(category, id=next(self._category_ids))
        self.categories[category.id] = category
        return category

    async def rename_category(self, category_id: int, name: str) -> Category | None:
        if category_id not in self.categories:
            return None
        self.categories[category_id] = replace(self.categories[category_id], name=name)
        return self.categories[category_id]

    async def delete_category(
        self, category_id: int, strategy: CategoryDeleteStrategy
    ) -> bool:
        if self.categories.pop(category_id, None) is None:
            return False
        members = [i for i in self.items.values() if i.category_id == category_id]
        for item in members:
            if strategy is CategoryDeleteStrategy.DELETE:
                await self.delete_item(item.id)
            else:
                self.items[item.id] = replace(
                    item,
                    category_id=None,
                    archived=item.archived or strategy is CategoryDeleteStrategy.ARCHIVE,
                )
        return True

    # Settings

    async def get_global_retention(self) -> float | None:
        return self.global_retention

    async def set_global_retention(self, value: float) -> None:
        self.global_retention = value
