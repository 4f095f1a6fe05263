"""
Review Service — Application layer orchestrator.

Coordinates the collaborator ports with the scheduling engine: submitting
reviews, previewing outcomes, and ranking items by urgency.
"""

import asyncio
import logging
import weakref
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from retainly.domain.errors import CategoryNotFound, ItemNotFound
from retainly.domain.scheduling.models import (
    Category,
    CategoryDeleteStrategy,
    DashboardItem,
    Item,
    ParameterSet,
    Rating,
    ReviewOutcome,
    SchedulingState,
    Urgency,
    utc_now,
)
from retainly.domain.scheduling.ports import (
    CategoryStore,
    ItemRepository,
    ReviewLog,
    SettingsStore,
)

from .engine import ScheduleEngine
from .resolver import ParameterResolver, choose_parameters, choose_retention
from .urgency import UrgencyClassifier, sort_by_urgency, whole_days_between

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmittedReview:
    outcome: ReviewOutcome
    state: SchedulingState


class ReviewService:
    """
    Application service for the review workflow.

    Follows Dependency Inversion: depends on the port abstractions,
    not concrete adapter implementations.

    Submissions for the same item are serialized with a per-item lock, so
    concurrent reviews never compute from the same stale latest outcome.
    The lock is in-process only.
    """

    def __init__(
        self,
        items: ItemRepository,
        reviews: ReviewLog,
        categories: CategoryStore,
        settings: SettingsStore,
        clock: Callable[[], datetime] = utc_now,
        classifier: UrgencyClassifier | None = None,
    ):
        self._items = items
        self._reviews = reviews
        self._categories = categories
        self._settings = settings
        self._clock = clock
        self._classifier = classifier or UrgencyClassifier()
        self.resolver = ParameterResolver(categories, settings)
        # Entries vanish once no submission holds or awaits the lock
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, item_id: int) -> asyncio.Lock:
        lock = self._locks.get(item_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[item_id] = lock
        return lock

    async def _require_item(self, item_id: int) -> Item:
        item = await self._items.get_item(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        return item

    async def submit_review(
        self, item_id: int, rating: Rating, notes: str | None = None
    ) -> SubmittedReview:
        """
        Record a review and compute the item's next scheduling state.

        Raises:
            ItemNotFound: if the item does not exist.
        """
        async with self._lock_for(item_id):
            item = await self._require_item(item_id)
            scope = await self.resolver.resolve(item.category_id)
            latest = await self._reviews.get_latest_review(item_id)
            now = self._clock()

            if latest is None:
                prior, elapsed_days = None, 0
            else:
                prior = latest.as_state()
                elapsed_days = whole_days_between(latest.reviewed_at, now)

            state = ScheduleEngine(scope.parameters).review(
                prior, float(elapsed_days), rating, scope.retention
            )
            outcome = await self._reviews.append_review(
                ReviewOutcome(
                    item_id=item_id,
                    rating=rating,
                    reviewed_at=now,
                    stability=state.stability,
                    difficulty=state.difficulty,
                    notes=notes,
                )
            )

        logger.info(
            f"Reviewed item {item_id} as {rating.name}: "
            f"S={state.stability:.2f} D={state.difficulty:.2f} next in {state.interval}d"
        )
        return SubmittedReview(outcome=outcome, state=state)

    async def preview(self, item_id: int) -> dict[Rating, SchedulingState]:
        """What each rating would produce if given now. Nothing is persisted."""
        item = await self._require_item(item_id)
        scope = await self.resolver.resolve(item.category_id)
        latest = await self._reviews.get_latest_review(item_id)
        engine = ScheduleEngine(scope.parameters)

        prior = latest.as_state() if latest else None
        elapsed_days = whole_days_between(latest.reviewed_at, self._clock()) if latest else 0
        return {
            rating: engine.review(prior, float(elapsed_days), rating, scope.retention)
            for rating in Rating
        }

    async def item_urgency(self, item_id: int) -> Urgency:
        item = await self._require_item(item_id)
        scope = await self.resolver.resolve(item.category_id)
        latest = await self._reviews.get_latest_review(item_id)
        return self._classifier.classify(latest, scope.parameters, scope.retention, self._clock())

    async def dashboard(self) -> list[DashboardItem]:
        """
        All active items with their urgency, most urgent first.

        Categories and the global retention are read once for the whole batch.
        """
        items = await self._items.list_active_items()
        if not items:
            return []

        categories = {c.id: c for c in await self._categories.list_categories()}
        global_retention = await self._settings.get_global_retention()
        now = self._clock()

        entries = []
        for item in items:
            category = categories.get(item.category_id) if item.category_id is not None else None
            latest = await self._reviews.get_latest_review(item.id)
            urgency = self._classifier.classify(
                latest,
                choose_parameters(category),
                choose_retention(category, global_retention),
                now,
            )
            entries.append(
                DashboardItem(
                    item=item,
                    urgency=urgency,
                    category_name=category.name if category else None,
                )
            )

        return sort_by_urgency(entries)

    async def due_items(self) -> list[DashboardItem]:
        return [
            entry
            for entry in await self.dashboard()
            if entry.urgency in (Urgency.OVERDUE, Urgency.DUE_TODAY)
        ]

    async def history(self, item_id: int, limit: int = 10) -> list[ReviewOutcome]:
        await self._require_item(item_id)
        return await self._reviews.list_reviews(item_id, limit)

    # Lifecycle

    async def archive_item(self, item_id: int) -> Item:
        item = await self._items.archive_item(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        logger.info(f"Archived item {item_id}")
        return item

    async def unarchive_item(self, item_id: int) -> Item:
        item = await self._items.unarchive_item(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        logger.info(f"Restored item {item_id}")
        return item

    async def archived_items(self) -> list[Item]:
        return await self._items.list_archived_items()

    async def delete_item(self, item_id: int) -> None:
        async with self._lock_for(item_id):
            if not await self._items.delete_item(item_id):
                raise ItemNotFound(item_id)
        logger.info(f"Deleted item {item_id} and its review history")

    async def rename_category(self, category_id: int, name: str) -> Category:
        category = await self._categories.rename_category(category_id, name)
        if category is None:
            raise CategoryNotFound(category_id)
        return category

    async def delete_category(self, category_id: int, strategy: CategoryDeleteStrategy) -> None:
        if not await self._categories.delete_category(category_id, strategy):
            raise CategoryNotFound(category_id)
        logger.info(f"Deleted category {category_id} ({strategy.value} its items)")

    # Settings

    async def global_retention(self) -> float:
        return await self.resolver.resolve_retention(None)

    async def set_global_retention(self, retention: float) -> float:
        """
        Change the desired retention used by items without a category override.

        Raises:
            RetentionOutOfRange: if `retention` is outside [0.70, 0.97].
        """
        retention = ParameterSet.default().with_retention(retention).target_retention
        await self._settings.set_global_retention(retention)
        logger.info(f"Global desired retention set to {retention}")
        return retention
