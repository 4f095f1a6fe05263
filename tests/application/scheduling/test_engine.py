"""Tests for the FSRS-4.5 scheduling engine."""

import math

import pytest

from retainly.application.scheduling.engine import ScheduleEngine, clamp_difficulty, round_half_up
from retainly.domain.constants import DEFAULT_WEIGHTS
from retainly.domain.scheduling.models import ParameterSet, Rating, SchedulingState

RECALL_RATINGS = [Rating.HARD, Rating.GOOD, Rating.EASY]


class TestRetrievability:
    @pytest.mark.parametrize("stability", [0.1, 1.0, 3.7145, 10.0, 365.0])
    def test_equals_reference_at_stability(self, engine, stability):
        assert engine.retrievability(stability, stability) == pytest.approx(0.9, abs=1e-6)

    @pytest.mark.parametrize("stability", [0.5, 10.0, 100.0])
    def test_is_one_at_zero_elapsed(self, engine, stability):
        assert engine.retrievability(0, stability) == 1.0
        assert engine.retrievability(-3, stability) == 1.0

    @pytest.mark.parametrize("elapsed", [0, 1, 5, 100])
    def test_is_zero_without_stability(self, engine, elapsed):
        assert engine.retrievability(elapsed, 0) == 0.0
        assert engine.retrievability(elapsed, -1.0) == 0.0

    def test_strictly_decays_over_time(self, engine):
        values = [engine.retrievability(t, 5.0) for t in (0.5, 1, 3, 10, 50)]
        assert all(a > b for a, b in zip(values, values[1:]))

    def test_stays_in_unit_interval(self, engine):
        for t in (0.01, 1, 1000, 1e6):
            assert 0.0 <= engine.retrievability(t, 2.0) <= 1.0


class TestNextInterval:
    def test_minimum_is_one_day(self, engine):
        assert engine.next_interval(0.01) == 1
        assert engine.next_interval(0) == 1
        assert engine.next_interval(-5) == 1

    def test_close_to_stability_at_reference_retention(self, engine):
        assert engine.next_interval(10.0, 0.9) == 10

    def test_defaults_to_parameter_set_retention(self):
        engine = ScheduleEngine(ParameterSet.default().with_retention(0.8))
        assert engine.next_interval(20.0) == engine.next_interval(20.0, 0.8)

    def test_non_decreasing_in_stability(self, engine):
        intervals = [engine.next_interval(s) for s in (0.1, 0.5, 1, 2, 5, 10, 50, 100, 1000)]
        assert intervals == sorted(intervals)
        assert engine.next_interval(1.0) < engine.next_interval(10.0) < engine.next_interval(100.0)

    def test_non_increasing_in_retention(self, engine):
        retentions = [0.70, 0.75, 0.80, 0.85, 0.90, 0.95, 0.97]
        intervals = [engine.next_interval(30.0, r) for r in retentions]
        assert intervals == sorted(intervals, reverse=True)

    def test_higher_retention_means_shorter_interval(self, engine):
        assert engine.next_interval(20.0, 0.95) < engine.next_interval(20.0, 0.80)

    def test_rounds_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(2.49) == 2


class TestInitialState:
    def test_initial_stability_matches_first_four_weights(self, engine, weights):
        for rating in Rating:
            assert engine.initial_stability(rating) == pytest.approx(weights[rating - 1])

    def test_initial_stability_increases_with_rating(self, engine):
        values = [engine.initial_stability(r) for r in Rating]
        assert values == sorted(values)
        assert len(set(values)) == 4

    def test_initial_stability_floor(self):
        weights = list(DEFAULT_WEIGHTS)
        weights[0] = -1.0
        engine = ScheduleEngine(ParameterSet.create(weights))
        assert engine.initial_stability(Rating.AGAIN) == 0.01

    def test_initial_difficulty_closed_form(self, engine, weights):
        for rating in Rating:
            expected = clamp_difficulty(weights[4] - math.exp(weights[5] * (rating - 1)) + 1)
            assert engine.initial_difficulty(rating) == pytest.approx(expected)

    def test_initial_difficulty_default_values(self, engine):
        assert engine.initial_difficulty(Rating.AGAIN) == pytest.approx(5.1618)
        assert engine.initial_difficulty(Rating.HARD) == pytest.approx(2.7412, abs=1e-3)
        # Good and Easy clamp to the floor with the default weights
        assert engine.initial_difficulty(Rating.GOOD) == 1.0
        assert engine.initial_difficulty(Rating.EASY) == 1.0

    def test_initial_difficulty_is_clamped(self, engine):
        for rating in Rating:
            assert 1.0 <= engine.initial_difficulty(rating) <= 10.0


class TestNextDifficulty:
    def test_again_increases(self, engine):
        assert engine.next_difficulty(5.0, Rating.AGAIN) > 5.0

    def test_easy_decreases(self, engine):
        assert engine.next_difficulty(5.0, Rating.EASY) < 5.0

    def test_good_only_reverts(self, engine):
        assert abs(engine.next_difficulty(5.0, Rating.GOOD) - 5.0) < 1.0

    @pytest.mark.parametrize("start", [1.0, 2.5, 5.0, 7.5, 10.0])
    @pytest.mark.parametrize("rating", list(Rating))
    def test_always_within_bounds(self, engine, start, rating):
        assert 1.0 <= engine.next_difficulty(start, rating) <= 10.0

    def test_repeated_again_converges_below_ceiling(self, engine):
        d = 5.0
        for _ in range(100):
            d = engine.next_difficulty(d, Rating.AGAIN)
        assert 7.0 < d < 10.0
        assert abs(engine.next_difficulty(d, Rating.AGAIN) - d) < 0.05


class TestStability:
    def test_recall_never_decreases(self, engine):
        for rating in RECALL_RATINGS:
            for r in (0.3, 0.9, 1.0):
                assert engine.stability_after_recall(5.0, 10.0, r, rating) >= 10.0

    def test_recall_floor_holds_for_unusual_inputs(self, engine):
        # difficulty above 11 would make the increase negative
        assert engine.stability_after_recall(12.0, 10.0, 0.5, Rating.GOOD) == 10.0

    def test_easy_beats_good_beats_hard(self, engine):
        hard, good, easy = (
            engine.stability_after_recall(5.0, 10.0, 0.9, rating) for rating in RECALL_RATINGS
        )
        assert easy > good > hard

    def test_lower_retrievability_gives_bigger_increase(self, engine):
        high_r = engine.stability_after_recall(5.0, 10.0, 0.95, Rating.GOOD)
        low_r = engine.stability_after_recall(5.0, 10.0, 0.5, Rating.GOOD)
        assert low_r > high_r

    def test_lapse_decreases(self, engine):
        assert engine.stability_after_lapse(5.0, 10.0, 0.5) < 10.0

    def test_lapse_floor(self, engine):
        assert engine.stability_after_lapse(10.0, 0.02, 0.1) >= 0.01
        assert engine.stability_after_lapse(10.0, 0.0, 1.0) == 0.01

    @pytest.mark.parametrize("stability", [0.05, 1.0, 10.0, 500.0])
    def test_lapse_is_bounded_by_prior(self, engine, stability):
        assert engine.stability_after_lapse(5.0, stability, 0.2) <= stability

    def test_higher_difficulty_gives_lower_lapse_stability(self, engine):
        assert engine.stability_after_lapse(8.0, 10.0, 0.5) < engine.stability_after_lapse(
            2.0, 10.0, 0.5
        )

    def test_next_stability_dispatches_on_rating(self, engine):
        assert engine.next_stability(5.0, 10.0, 0.5, Rating.AGAIN) == engine.stability_after_lapse(
            5.0, 10.0, 0.5
        )
        for rating in RECALL_RATINGS:
            assert engine.next_stability(5.0, 10.0, 0.5, rating) == engine.stability_after_recall(
                5.0, 10.0, 0.5, rating
            )


class TestReview:
    def test_first_review_good(self, engine, weights):
        state = engine.review(None, 0, Rating.GOOD, 0.9)
        assert state.stability == pytest.approx(weights[2])
        assert state.stability == pytest.approx(3.7145)
        assert state.difficulty == engine.initial_difficulty(Rating.GOOD)
        assert 3 <= state.interval <= 5
        assert state.interval == engine.next_interval(state.stability, 0.9)

    def test_first_review_ignores_elapsed_days(self, engine):
        assert engine.review(None, 30, Rating.EASY) == engine.review(None, 0, Rating.EASY)

    def test_two_good_reviews_grow(self, engine):
        first = engine.review(None, 0, Rating.GOOD, 0.9)
        second = engine.review(first, first.interval, Rating.GOOD, 0.9)
        assert second.stability > first.stability
        assert second.interval >= first.interval

    def test_lapse_shortens_interval(self, engine):
        first = engine.review(None, 0, Rating.GOOD, 0.9)
        lapsed = engine.review(first, first.interval, Rating.AGAIN, 0.9)
        assert lapsed.interval < first.interval
        assert lapsed.stability < first.stability

    def test_subsequent_review_uses_prior_difficulty_for_stability(self, engine):
        prior = SchedulingState(stability=10.0, difficulty=6.0, interval=10)
        state = engine.review(prior, 12, Rating.HARD)
        r = engine.retrievability(12, 10.0)
        assert state.stability == engine.stability_after_recall(6.0, 10.0, r, Rating.HARD)
        assert state.difficulty == engine.next_difficulty(6.0, Rating.HARD)

    def test_review_is_deterministic(self, engine):
        prior = SchedulingState(stability=4.2, difficulty=5.5, interval=4)
        assert engine.review(prior, 3, Rating.GOOD) == engine.review(prior, 3, Rating.GOOD)

    def test_retention_changes_interval_only(self, engine):
        low = engine.review(None, 0, Rating.GOOD, 0.80)
        high = engine.review(None, 0, Rating.GOOD, 0.95)
        assert low.stability == high.stability
        assert high.interval < low.interval

    def test_custom_weights_are_used(self):
        weights = list(DEFAULT_WEIGHTS)
        weights[2] = 10.0
        engine = ScheduleEngine(ParameterSet.create(weights))
        assert engine.review(None, 0, Rating.GOOD).stability == 10.0
