"""
Practice Scheduler: picks what to practice next.

Score for an eligible item (available and not archived):

    days       = whole days since last studied (999 if never)
    multiplier = 0.7 + weight * 0.16            (weight clamped to 0..5)
    score      = (days * 5 + max(0, 240 - minutes_month) * 0.10) * multiplier
    score     -= 18 if avoid-repeat is on and the item was the last pick
    score     -= 10 if the caller asks to avoid the last pick
    score     += uniform(0, 2.5)                (tie-breaking jitter)

Neglect and under-practice in the trailing month raise priority; the
manual weight scales the whole score. The jitter source is injectable so
everything else is deterministic under test.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from loguru import logger

from .aggregator import recompute
from .catalog import DEFAULT_WEIGHT
from .clock import NEVER_STUDIED_DAYS, days_since, to_utc
from .normalize import clamp_weight

if TYPE_CHECKING:
    from config import Settings

    from .state_store import StateStore


class RandomSource(Protocol):
    def uniform(self, a: float, b: float) -> float: ...


# =============================================================================
# Scoring configuration
# =============================================================================


@dataclass
class ScoringConfig:
    """Tuned heuristics for the priority score."""

    days_factor: float = 5.0
    month_target_minutes: float = 240.0
    month_factor: float = 0.10
    weight_base: float = 0.7
    weight_step: float = 0.16
    repeat_penalty: float = 18.0  # avoid-repeat setting
    avoid_last_penalty: float = 10.0  # explicit request, stacks with the above
    jitter: float = 2.5
    never_studied_days: int = NEVER_STUDIED_DAYS

    @classmethod
    def from_settings(cls, settings: Settings) -> ScoringConfig:
        return cls(
            days_factor=settings.score_days_factor,
            month_target_minutes=settings.score_month_target_minutes,
            month_factor=settings.score_month_factor,
            weight_base=settings.score_weight_base,
            weight_step=settings.score_weight_step,
            repeat_penalty=settings.score_repeat_penalty,
            avoid_last_penalty=settings.score_avoid_last_penalty,
            jitter=settings.score_jitter,
            never_studied_days=settings.score_never_studied_days,
        )

    def weight_multiplier(self, weight: object, rounded: bool = False) -> float:
        """Map a 0..5 weight to ~0.7x..1.5x (one decimal when `rounded`)."""
        mult = self.weight_base + clamp_weight(weight, DEFAULT_WEIGHT) * self.weight_step
        return round(mult, 1) if rounded else mult


@dataclass
class ScoredItem:
    """Score breakdown for one candidate."""

    item_id: str
    score: float
    days: int
    minutes_month: int
    multiplier: float


# =============================================================================
# Scheduler
# =============================================================================


class PracticeScheduler:
    """
    Ranks eligible catalog items and records the chosen one.

    Scoring alone has no side effects; `pick_next` updates the scheduler
    memory and persists.
    """

    def __init__(
        self,
        store: StateStore,
        config: ScoringConfig | None = None,
        rng: RandomSource | None = None,
    ):
        """
        Initialize the scheduler.

        Args:
            store: StateStore owning the document
            config: Scoring constants (uses defaults if None)
            rng: Jitter source with a `uniform(a, b)` method
        """
        self.store = store
        self.config = config or ScoringConfig()
        self.rng = rng or random.Random()

    @property
    def catalog(self):
        return self.store.catalog

    def candidates(self) -> list[str]:
        """Schedulable item ids in catalog order."""
        items = self.store.document.items
        return [item_id for item_id in self.catalog.ids if items[item_id].schedulable]

    def _evaluate(self, item_id: str, avoid_last: bool) -> ScoredItem:
        doc = self.store.document
        state = doc.items.get(item_id)
        if state is None or not state.schedulable:
            return ScoredItem(item_id, -math.inf, 0, 0, 0.0)

        cfg = self.config
        now = self.store.clock.now()
        multiplier = cfg.weight_multiplier(doc.settings.weights.get(item_id, DEFAULT_WEIGHT))
        days = days_since(state.last_studied_at, now, cfg.never_studied_days)

        score = days * cfg.days_factor
        score += max(0.0, cfg.month_target_minutes - state.minutes_month) * cfg.month_factor
        score *= multiplier

        last_pick = doc.scheduler.last_pick_id
        if item_id == last_pick:
            if doc.settings.avoid_repeat:
                score -= cfg.repeat_penalty
            if avoid_last:
                score -= cfg.avoid_last_penalty

        score += self.rng.uniform(0, cfg.jitter)
        return ScoredItem(item_id, score, days, state.minutes_month, multiplier)

    def score(self, item_id: str, avoid_last: bool = False) -> float:
        """Priority of one item; -inf when it is not schedulable."""
        return self._evaluate(item_id, avoid_last).score

    def rank(self, avoid_last: bool = False) -> list[ScoredItem]:
        """All candidates, highest score first."""
        scored = [self._evaluate(item_id, avoid_last) for item_id in self.candidates()]
        return sorted(scored, key=lambda s: s.score, reverse=True)

    def pick_next(self, avoid_last: bool = False) -> str | None:
        """
        Choose the item to practice next and remember it.

        Args:
            avoid_last: Extra penalty for the previous pick

        Returns:
            The chosen item id, or None when nothing is schedulable
        """
        doc = self.store.document
        now = self.store.clock.now()
        recompute(doc, self.catalog, now)

        candidates = self.candidates()
        if not candidates:
            logger.info("Nothing to pick: no available items")
            self.store.persist()
            return None

        best_id: str | None = None
        best_score = -math.inf
        for item_id in candidates:
            score = self.score(item_id, avoid_last=avoid_last)
            if score > best_score:
                best_id, best_score = item_id, score

        if best_id is None:
            best_id = candidates[0]

        doc.scheduler.last_pick_id = best_id
        doc.scheduler.last_picked_at = to_utc(now)
        self.store.persist()

        logger.info(f"Picked {best_id} (score {best_score:.1f} from {len(candidates)} candidates)")
        return best_id

    def pick_alternate(self) -> str | None:
        """Same as `pick_next` with the avoid-last penalty forced on."""
        return self.pick_next(avoid_last=True)
