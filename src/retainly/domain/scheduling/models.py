"""
Domain models for FSRS scheduling.

These are pure data structures with no I/O or external dependencies.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum

from retainly.domain.constants import (
    DEFAULT_DESIRED_RETENTION,
    DEFAULT_WEIGHTS,
    MAX_RETENTION,
    MIN_RETENTION,
    WEIGHT_COUNT,
)
from retainly.domain.errors import InvalidWeightCount, NonFiniteWeight, RetentionOutOfRange


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Rating(IntEnum):
    """Learner's self-reported recall outcome. The value is the FSRS grade."""

    AGAIN = 1  # Recall failed (lapse)
    HARD = 2
    GOOD = 3
    EASY = 4

    @classmethod
    def from_value(cls, value: int) -> "Rating":
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Rating must be between 1 and 4, got {value}") from None

    @classmethod
    def parse(cls, text: str) -> "Rating":
        """Accept either a grade number ("3") or a name ("good", "GOOD")."""
        text = text.strip()
        if text.isdigit():
            return cls.from_value(int(text))
        try:
            return cls[text.upper()]
        except KeyError:
            names = ", ".join(r.name.lower() for r in cls)
            raise ValueError(f"Unknown rating '{text}'. Expected one of: {names}") from None


class Urgency(IntEnum):
    """
    Review urgency of an item.

    The integer value is the display sort key: most urgent first.
    """

    OVERDUE = 0
    DUE_TODAY = 1
    NOT_DUE = 2

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", "-")


@dataclass(frozen=True)
class ParameterSet:
    """
    Validated FSRS-4.5 model parameters.

    Attributes:
        weights: Exactly 17 model weights (w0..w16).
        target_retention: Recall probability the schedule aims to keep, in [0.70, 0.97].

    Instances are value objects: build them through `create()` or `default()`.
    Construction with invalid values raises, so every existing instance is valid.
    """

    weights: tuple[float, ...]
    target_retention: float = DEFAULT_DESIRED_RETENTION

    def __post_init__(self):
        weights = tuple(float(w) for w in self.weights)
        if len(weights) != WEIGHT_COUNT:
            raise InvalidWeightCount(len(weights), WEIGHT_COUNT)
        for index, w in enumerate(weights):
            if not math.isfinite(w):
                raise NonFiniteWeight(index, w)
        retention = float(self.target_retention)
        if not MIN_RETENTION <= retention <= MAX_RETENTION:
            raise RetentionOutOfRange(retention, MIN_RETENTION, MAX_RETENTION)
        object.__setattr__(self, "weights", weights)
        object.__setattr__(self, "target_retention", retention)

    @classmethod
    def create(
        cls, weights: Iterable[float], retention: float = DEFAULT_DESIRED_RETENTION
    ) -> "ParameterSet":
        return cls(weights=tuple(weights), target_retention=retention)

    @classmethod
    def default(cls) -> "ParameterSet":
        return _DEFAULT

    def with_retention(self, retention: float) -> "ParameterSet":
        return ParameterSet(weights=self.weights, target_retention=retention)

    def __getitem__(self, index: int) -> float:
        return self.weights[index]


_DEFAULT = ParameterSet(weights=DEFAULT_WEIGHTS, target_retention=DEFAULT_DESIRED_RETENTION)


@dataclass(frozen=True)
class SchedulingState:
    """
    Memory state computed by a review.

    Attributes:
        stability: Days until recall probability drops to 90%.
        difficulty: Item difficulty on the 1-10 scale.
        interval: Days until the next review (>= 1).
    """

    stability: float
    difficulty: float
    interval: int


@dataclass(frozen=True)
class ReviewOutcome:
    """
    A persisted review of an item.

    Attributes:
        item_id: The item that was reviewed.
        rating: Grade given by the learner.
        reviewed_at: When the review happened (timezone-aware, UTC).
        stability: Stability resulting from this review.
        difficulty: Difficulty resulting from this review.
        notes: Optional free-form notes.
        id: Storage id; None until persisted.
    """

    item_id: int
    rating: Rating
    reviewed_at: datetime
    stability: float
    difficulty: float
    notes: str | None = None
    id: int | None = None

    def as_state(self) -> SchedulingState:
        # interval is not an input to the next review
        return SchedulingState(stability=self.stability, difficulty=self.difficulty, interval=0)


@dataclass(frozen=True)
class Category:
    """
    A grouping of items that may carry its own scheduling configuration.

    `parameters_json` is the stored override text; it is decoded leniently
    at resolution time, so a corrupt value never blocks scheduling.
    """

    id: int | None
    name: str
    desired_retention: float | None = None
    parameters_json: str | None = None


class CategoryDeleteStrategy(str, Enum):
    """What happens to a category's items when the category is deleted."""

    UNCATEGORIZE = "uncategorize"
    ARCHIVE = "archive"
    DELETE = "delete"


@dataclass(frozen=True)
class Item:
    id: int | None
    title: str
    source: str | None = None
    category_id: int | None = None
    notes: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    archived: bool = False


@dataclass(frozen=True)
class DashboardItem:
    item: Item
    urgency: Urgency
    category_name: str | None = None
