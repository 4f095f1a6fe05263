"""
Urgency classification: is an item overdue, due today, or not yet due?

This is a pure computation module with no I/O.
"""

from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from operator import attrgetter
from typing import TypeVar

from retainly.domain.scheduling.models import ParameterSet, ReviewOutcome, Urgency

from .engine import ScheduleEngine

T = TypeVar("T")

SECONDS_PER_DAY = 86400


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def whole_days_between(start: datetime, end: datetime) -> int:
    """
    Whole days elapsed from `start` to `end`, floored.

    Naive datetimes are taken as UTC. A `start` after `end` counts as 0.
    """
    seconds = (_as_utc(end) - _as_utc(start)).total_seconds()
    return max(0, int(seconds // SECONDS_PER_DAY))


class UrgencyClassifier:
    """Stateless; one instance can be shared."""

    def classify(
        self,
        latest: ReviewOutcome | None,
        parameters: ParameterSet,
        retention: float,
        now: datetime,
    ) -> Urgency:
        # Never reviewed: always surface it
        if latest is None:
            return Urgency.OVERDUE

        interval = ScheduleEngine(parameters).next_interval(latest.stability, retention)
        days_since = whole_days_between(latest.reviewed_at, now)

        if days_since > interval:
            return Urgency.OVERDUE
        if days_since == interval:
            return Urgency.DUE_TODAY
        return Urgency.NOT_DUE


def sort_by_urgency(
    items: Iterable[T], key: Callable[[T], Urgency] = attrgetter("urgency")
) -> list[T]:
    """Stable sort, most urgent first."""
    return sorted(items, key=lambda item: int(key(item)))
