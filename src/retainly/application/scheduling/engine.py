"""
FSRS-4.5 scheduling engine.

This is a pure computation module with no I/O: every method is a total,
deterministic function of its arguments and the engine's ParameterSet.

Reference: https://github.com/open-spaced-repetition/fsrs4anki/wiki/The-Algorithm
"""

import math

from retainly.domain.constants import (
    DECAY,
    FACTOR,
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
    MIN_INTERVAL,
    MIN_STABILITY,
)
from retainly.domain.scheduling.models import ParameterSet, Rating, SchedulingState


def clamp_difficulty(value: float) -> float:
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, value))


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class ScheduleEngine:
    """
    Memory model parameterized by a ParameterSet.

    Stateless and side-effect free; safe to share across threads and tasks.
    """

    def __init__(self, parameters: ParameterSet | None = None):
        self.parameters = parameters or ParameterSet.default()
        self._w = self.parameters.weights

    def retrievability(self, elapsed_days: float, stability: float) -> float:
        """
        Probability of recall after `elapsed_days` given `stability`.

        R(t, S) = (1 + FACTOR * t / S) ^ DECAY, so R(S, S) = 0.9.
        """
        if stability <= 0:
            return 0.0
        if elapsed_days <= 0:
            return 1.0
        return (1.0 + FACTOR * elapsed_days / stability) ** DECAY

    def next_interval(self, stability: float, retention: float | None = None) -> int:
        """
        Days until recall probability falls to `retention`.

        I(r, S) = (S / FACTOR) * (r ^ (1 / DECAY) - 1), rounded, at least 1 day.
        """
        if retention is None:
            retention = self.parameters.target_retention
        if stability <= 0:
            return MIN_INTERVAL
        interval = (stability / FACTOR) * (retention ** (1.0 / DECAY) - 1.0)
        return max(MIN_INTERVAL, round_half_up(interval))

    def initial_stability(self, rating: Rating) -> float:
        return max(MIN_STABILITY, self._w[rating - 1])

    def initial_difficulty(self, rating: Rating) -> float:
        return clamp_difficulty(self._raw_initial_difficulty(rating))

    def _raw_initial_difficulty(self, rating: Rating) -> float:
        # D0(G) = w4 - exp(w5 * (G - 1)) + 1
        w = self._w
        return w[4] - math.exp(w[5] * (rating - 1)) + 1

    def next_difficulty(self, difficulty: float, rating: Rating) -> float:
        """
        Difficulty after a subsequent review.

        1. Grade delta: dD = -w6 * (G - 3), zero for Good.
        2. Damping: D' = D + dD * (10 - D) / 9
        3. Mean reversion toward D0(Good): D'' = w7 * D0(Good) + (1 - w7) * D'
        """
        w = self._w
        delta = -w[6] * (rating - Rating.GOOD)
        damped = difficulty + delta * (MAX_DIFFICULTY - difficulty) / 9.0
        reverted = w[7] * self._raw_initial_difficulty(Rating.GOOD) + (1.0 - w[7]) * damped
        return clamp_difficulty(reverted)

    def stability_after_recall(
        self, difficulty: float, stability: float, retrievability: float, rating: Rating
    ) -> float:
        """Stability after a successful recall. Never lower than `stability`."""
        w = self._w
        hard_penalty = w[15] if rating == Rating.HARD else 1.0
        easy_bonus = w[16] if rating == Rating.EASY else 1.0

        increase = (
            math.exp(w[8])
            * (11.0 - difficulty)
            * stability ** (-w[9])
            * (math.exp(w[10] * (1.0 - retrievability)) - 1.0)
            * hard_penalty
            * easy_bonus
        )
        return max(stability, stability * (increase + 1.0))

    def stability_after_lapse(
        self, difficulty: float, stability: float, retrievability: float
    ) -> float:
        """Stability after a lapse. Never above `stability`, never below the floor."""
        w = self._w
        new_stability = (
            w[11]
            * difficulty ** (-w[12])
            * ((stability + 1.0) ** w[13] - 1.0)
            * math.exp(w[14] * (1.0 - retrievability))
        )
        return max(MIN_STABILITY, min(new_stability, stability))

    def next_stability(
        self, difficulty: float, stability: float, retrievability: float, rating: Rating
    ) -> float:
        if rating == Rating.AGAIN:
            return self.stability_after_lapse(difficulty, stability, retrievability)
        return self.stability_after_recall(difficulty, stability, retrievability, rating)

    def review(
        self,
        prior: SchedulingState | None,
        elapsed_days: float,
        rating: Rating,
        retention: float | None = None,
    ) -> SchedulingState:
        """
        Process one review and return the resulting state.

        Args:
            prior: State left by the previous review, or None for a first review.
            elapsed_days: Days since the previous review, already clamped to >= 0.
            rating: Grade given now.
            retention: Target retention; defaults to the parameter set's.
        """
        if prior is None:
            stability = self.initial_stability(rating)
            return SchedulingState(
                stability=stability,
                difficulty=self.initial_difficulty(rating),
                interval=self.next_interval(stability, retention),
            )

        r = self.retrievability(elapsed_days, prior.stability)
        difficulty = self.next_difficulty(prior.difficulty, rating)
        stability = self.next_stability(prior.difficulty, prior.stability, r, rating)
        return SchedulingState(
            stability=stability,
            difficulty=difficulty,
            interval=self.next_interval(stability, retention),
        )
