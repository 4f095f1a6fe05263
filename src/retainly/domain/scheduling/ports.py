"""
Ports (interfaces) for the collaborators the scheduler reads from and writes to.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod

from retainly.domain.constants import DEFAULT_HISTORY_LIMIT

from .models import Category, CategoryDeleteStrategy, Item, ReviewOutcome


class ItemRepository(ABC):
    """
    Port for the items being learned.

    Implementations:
        - InMemoryStore: dict-backed, for tests and ephemeral sessions.
        - SqliteStore: local SQLite database.
    """

    @abstractmethod
    async def get_item(self, item_id: int) -> Item | None:
        pass

    @abstractmethod
    async def list_active_items(self) -> list[Item]:
        """Return all non-archived items, ordered by id."""
        pass

    @abstractmethod
    async def add_item(self, item: Item) -> Item:
        """Persist a new item and return it with its assigned id."""
        pass

    @abstractmethod
    async def list_archived_items(self) -> list[Item]:
        pass

    @abstractmethod
    async def archive_item(self, item_id: int) -> Item | None:
        """Hide an item from the dashboard. Returns None if it does not exist."""
        pass

    @abstractmethod
    async def unarchive_item(self, item_id: int) -> Item | None:
        pass

    @abstractmethod
    async def delete_item(self, item_id: int) -> bool:
        """Remove an item and its review history. Returns False if it did not exist."""
        pass


class ReviewLog(ABC):
    """Port for the append-only review history of each item."""

    @abstractmethod
    async def get_latest_review(self, item_id: int) -> ReviewOutcome | None:
        """
        Fetch the most recent review of an item.

        Returns:
            The latest ReviewOutcome, or None if the item was never reviewed.
        """
        pass

    @abstractmethod
    async def append_review(self, outcome: ReviewOutcome) -> ReviewOutcome:
        """Persist a review and return it with its assigned id."""
        pass

    @abstractmethod
    async def list_reviews(
        self, item_id: int, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[ReviewOutcome]:
        """Return up to `limit` reviews of an item, newest first."""
        pass


class CategoryStore(ABC):
    """Port for categories and their optional scheduling overrides."""

    @abstractmethod
    async def get_category(self, category_id: int) -> Category | None:
        pass

    @abstractmethod
    async def list_categories(self) -> list[Category]:
        pass

    @abstractmethod
    async def save_category(self, category: Category) -> Category:
        """Insert (id is None) or replace a category; return it with its id."""
        pass

    @abstractmethod
    async def rename_category(self, category_id: int, name: str) -> Category | None:
        pass

    @abstractmethod
    async def delete_category(
        self, category_id: int, strategy: CategoryDeleteStrategy
    ) -> bool:
        """
        Delete a category, first applying `strategy` to its items.

        Returns:
            False if the category did not exist.
        """
        pass


class SettingsStore(ABC):
    """Port for process-wide user preferences."""

    @abstractmethod
    async def get_global_retention(self) -> float | None:
        """Return the configured desired retention, or None if unset."""
        pass

    @abstractmethod
    async def set_global_retention(self, value: float) -> None:
        pass
