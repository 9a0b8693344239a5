"""
Unit tests for the practice scheduler.

Jitter is injected, so scores are exact except where a test deliberately
uses a real random source; those tests only assert outcomes that hold for
every jitter value in [0, 2.5].
"""

import math
import random
from datetime import timedelta

import pytest

from config import Settings
from src.tracker.clock import to_utc
from src.tracker.scheduler import PracticeScheduler, ScoringConfig
from src.tracker.state_store import StateStore


def only_available(store, *item_ids):
    for item_id, state in store.document.items.items():
        state.available = item_id in item_ids


class TestWeightMultiplier:
    @pytest.mark.parametrize(
        "weight,expected", [(0, 0.7), (5, 1.5), (2, 1.02), (12, 1.5), (-3, 0.7), ("x", 1.02), (None, 1.02)]
    )
    def test_multiplier(self, weight, expected):
        assert ScoringConfig().weight_multiplier(weight) == pytest.approx(expected)

    def test_display_rounding(self):
        assert ScoringConfig().weight_multiplier(2, rounded=True) == 1.0
        assert ScoringConfig().weight_multiplier(3, rounded=True) == 1.2

    def test_from_settings(self):
        config = ScoringConfig.from_settings(Settings(score_repeat_penalty=30, score_jitter=0))
        assert config.repeat_penalty == 30
        assert config.jitter == 0
        assert config.days_factor == 5


class TestScore:
    def test_formula(self, store, sequence_random):
        now = store.clock.now()
        state = store.document.items["violin"]
        state.last_studied_at = to_utc(now - timedelta(days=3, hours=2))
        state.minutes_month = 90
        store.document.settings.weights["violin"] = 3

        scheduler = PracticeScheduler(store, rng=sequence_random(1.25))

        expected = (3 * 5 + (240 - 90) * 0.10) * (0.7 + 3 * 0.16) + 1.25
        assert scheduler.score("violin") == pytest.approx(expected)

    def test_never_studied_uses_sentinel(self, store, sequence_random):
        store.document.settings.weights["cello"] = 0
        scheduler = PracticeScheduler(store, rng=sequence_random(0.0))
        assert scheduler.score("cello") == pytest.approx((999 * 5 + 24) * 0.7)

    def test_ineligible_items_score_negative_infinity(self, store, sequence_random):
        store.document.items["piano"].archived = True
        store.document.items["cello"].available = False
        scheduler = PracticeScheduler(store, rng=sequence_random(0.0))

        assert scheduler.score("piano") == -math.inf
        assert scheduler.score("cello") == -math.inf
        assert scheduler.score("not-in-catalog") == -math.inf

    def test_out_of_range_weight_is_clamped(self, store, sequence_random):
        scheduler = PracticeScheduler(store, rng=sequence_random(0.0))
        store.document.settings.weights["piano"] = 5
        at_max = scheduler.score("piano")
        store.document.settings.weights["piano"] = 40
        assert scheduler.score("piano") == at_max

    def test_under_practice_dominates_when_both_studied_today(self, store, sequence_random):
        """A has 300 min this month, B has 0, equal weights, both studied today."""
        now = to_utc(store.clock.now())
        for item_id, minutes in (("piano", 300), ("violin", 0)):
            state = store.document.items[item_id]
            state.last_studied_at = now
            state.minutes_month = minutes
            store.document.settings.weights[item_id] = 2

        # worst case jitter: A gets the maximum, B none
        scheduler = PracticeScheduler(store, rng=sequence_random(2.5, 0.0))
        score_a = scheduler.score("piano")
        score_b = scheduler.score("violin")

        assert score_b > score_a

    def test_repeat_penalties_stack(self, store, sequence_random):
        store.document.scheduler.last_pick_id = "piano"
        scheduler = PracticeScheduler(store, rng=sequence_random(0.0))

        store.document.settings.weights["violin"] = store.document.settings.weights["piano"]
        base = scheduler.score("violin")

        assert scheduler.score("piano") == pytest.approx(base - 18)
        assert scheduler.score("piano", avoid_last=True) == pytest.approx(base - 28)

        store.document.settings.avoid_repeat = False
        assert scheduler.score("piano") == pytest.approx(base)
        assert scheduler.score("piano", avoid_last=True) == pytest.approx(base - 10)

    def test_rank_is_sorted(self, store):
        scheduler = PracticeScheduler(store, rng=random.Random(7))
        ranked = scheduler.rank()

        assert [r.score for r in ranked] == sorted((r.score for r in ranked), reverse=True)
        assert {r.item_id for r in ranked} == set(scheduler.candidates())


class TestPick:
    def test_empty_ledger_picks_an_eligible_item(self, store):
        scheduler = PracticeScheduler(store, rng=random.Random(3))

        picked = scheduler.pick_next()

        assert picked in store.catalog.ids
        assert store.document.scheduler.last_pick_id == picked
        assert store.document.scheduler.last_picked_at == to_utc(store.clock.now())

        reloaded = StateStore(db_path=store.db_path, catalog=store.catalog, clock=store.clock)
        try:
            assert reloaded.document.scheduler.last_pick_id == picked
        finally:
            reloaded.close()

    def test_highest_score_wins(self, store, sequence_random):
        now = to_utc(store.clock.now())
        for state in store.document.items.values():
            state.last_studied_at = now
        store.document.items["bateria"].last_studied_at = now - timedelta(days=10)

        scheduler = PracticeScheduler(store, rng=sequence_random(0.0))

        assert scheduler.pick_next() == "bateria"

    def test_avoid_repeat_never_suggests_last_pick(self, store):
        only_available(store, "piano", "guitarra-elec")
        settings = store.document.settings
        settings.avoid_repeat = True
        settings.weights["piano"] = settings.weights["guitarra-elec"] = 3

        scheduler = PracticeScheduler(store, rng=random.Random(11))
        for _ in range(200):
            store.document.scheduler.last_pick_id = "piano"
            assert scheduler.pick_next() == "guitarra-elec"

    def test_avoid_repeat_worst_case_jitter(self, store, sequence_random):
        only_available(store, "piano", "guitarra-elec")
        settings = store.document.settings
        settings.weights["piano"] = settings.weights["guitarra-elec"] = 3
        store.document.scheduler.last_pick_id = "piano"

        scheduler = PracticeScheduler(store, rng=sequence_random(2.5, 0.0))
        assert scheduler.pick_next() == "guitarra-elec"

    def test_alternate_steers_away_without_setting(self, store, sequence_random):
        only_available(store, "piano", "guitarra-elec")
        settings = store.document.settings
        settings.avoid_repeat = False
        settings.weights["piano"] = settings.weights["guitarra-elec"] = 3
        store.document.scheduler.last_pick_id = "piano"

        assert PracticeScheduler(store, rng=sequence_random(2.5, 0.0)).pick_next() == "piano"
        store.document.scheduler.last_pick_id = "piano"
        assert PracticeScheduler(store, rng=sequence_random(2.5, 0.0)).pick_alternate() == "guitarra-elec"

    def test_archived_or_unavailable_never_picked(self, store):
        only_available(store, "piano", "cello")
        store.document.items["piano"].archived = True
        store.document.settings.weights["piano"] = 5
        store.document.settings.weights["cello"] = 0

        scheduler = PracticeScheduler(store, rng=random.Random(5))
        for _ in range(50):
            assert scheduler.pick_next() == "cello"

    def test_nothing_to_pick(self, store):
        only_available(store)
        store.document.scheduler.last_pick_id = "piano"

        assert PracticeScheduler(store).pick_next() is None
        assert store.document.scheduler.last_pick_id == "piano"

    def test_degenerate_scores_fall_back_to_catalog_order(self, store, sequence_random):
        only_available(store, "violin", "bajo", "canto")

        scheduler = PracticeScheduler(store, rng=sequence_random(float("nan")))

        assert scheduler.pick_next() == "bajo"
