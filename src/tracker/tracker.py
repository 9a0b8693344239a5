"""
Tracker: the coordinating component.

Owns the StateStore and wires the ledger, aggregator and scheduler around
the single shared document. Also carries the item and settings management
operations; each one leaves the document normalized and persisted.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from . import aggregator
from .catalog import Catalog
from .clock import Clock
from .errors import ValidationError
from .ledger import SessionInput, SessionLedger
from .models import Document, ItemState, Session
from .normalize import clamp_weight
from .scheduler import PracticeScheduler, RandomSource, ScoredItem, ScoringConfig
from .state_store import DEFAULT_STORAGE_KEY, StateStore


class Tracker:
    """Facade over store, ledger and scheduler."""

    def __init__(
        self,
        store: StateStore,
        scoring: ScoringConfig | None = None,
        rng: RandomSource | None = None,
    ):
        self.store = store
        self.ledger = SessionLedger(store)
        self.scheduler = PracticeScheduler(store, config=scoring, rng=rng)

    @classmethod
    def open(
        cls,
        db_path: Path | None = None,
        catalog: Catalog | None = None,
        clock: Clock | None = None,
        scoring: ScoringConfig | None = None,
        rng: RandomSource | None = None,
        storage_key: str = DEFAULT_STORAGE_KEY,
        backup_dir: Path | None = None,
    ) -> Tracker:
        store = StateStore(
            db_path=db_path,
            catalog=catalog,
            clock=clock,
            storage_key=storage_key,
            backup_dir=backup_dir,
        )
        return cls(store, scoring=scoring, rng=rng)

    @property
    def document(self) -> Document:
        return self.store.document

    @property
    def catalog(self) -> Catalog:
        return self.store.catalog

    def recompute(self) -> None:
        """Refresh the derived cache from the ledger and persist."""
        aggregator.recompute(self.document, self.catalog, self.store.clock.now())
        self.store.persist()

    # =========================================================================
    # Ledger
    # =========================================================================

    def add_session(self, payload: SessionInput | dict) -> Session:
        return self.ledger.add_session(payload)

    def delete_session(self, session_id: str) -> bool:
        return self.ledger.delete_session(session_id)

    def clear_all(self) -> None:
        self.ledger.clear_all()

    # =========================================================================
    # Scheduling
    # =========================================================================

    def pick_next(self, avoid_last: bool = False) -> str | None:
        return self.scheduler.pick_next(avoid_last=avoid_last)

    def pick_alternate(self) -> str | None:
        return self.scheduler.pick_alternate()

    def rank(self, avoid_last: bool = False) -> list[ScoredItem]:
        self.recompute()
        return self.scheduler.rank(avoid_last=avoid_last)

    # =========================================================================
    # Reporting
    # =========================================================================

    def summary(self, days: int = aggregator.MONTH_DAYS) -> aggregator.Summary:
        self.recompute()
        return aggregator.summary(self.document, self.catalog, self.store.clock.now(), days)

    # =========================================================================
    # Item & settings management
    # =========================================================================

    def _state(self, item_id: str) -> ItemState:
        if item_id not in self.catalog:
            raise ValidationError(f"unknown item: {item_id}", field="instrument_id")
        return self.document.items[item_id]

    def set_available(self, item_id: str, available: bool) -> ItemState:
        state = self._state(item_id)
        state.available = bool(available)
        self.store.persist()
        logger.info(f"{item_id} available={state.available}")
        return state

    def toggle_available(self, item_id: str) -> ItemState:
        return self.set_available(item_id, not self._state(item_id).available)

    def set_archived(self, item_id: str, archived: bool) -> ItemState:
        """Archiving also marks the item unavailable."""
        state = self._state(item_id)
        state.archived = bool(archived)
        if state.archived:
            state.available = False
        self.store.persist()
        logger.info(f"{item_id} archived={state.archived}")
        return state

    def set_condition(self, item_id: str, condition: str) -> ItemState:
        state = self._state(item_id)
        state.condition = str(condition or "").strip()
        self.store.persist()
        return state

    def set_weight(self, item_id: str, weight: float) -> float:
        """Store a manual weight, clamped to 0..5."""
        self._state(item_id)
        settings = self.document.settings
        settings.weights[item_id] = clamp_weight(weight, settings.weights.get(item_id, 2))
        self.store.persist()
        logger.info(f"{item_id} weight={settings.weights[item_id]}")
        return settings.weights[item_id]

    def set_avoid_repeat(self, enabled: bool) -> None:
        self.document.settings.avoid_repeat = bool(enabled)
        self.store.persist()

    def set_show_confetti(self, enabled: bool) -> None:
        self.document.settings.show_confetti = bool(enabled)
        self.store.persist()

    def set_daily_nudge(self, enabled: bool) -> None:
        self.document.settings.daily_nudge = bool(enabled)
        self.store.persist()

    def set_streak_goal(self, minutes: int) -> int:
        """Daily minutes that count as reaching the goal (>= 0)."""
        if minutes < 0:
            raise ValidationError("streak goal must be >= 0", field="streak_goal_min")
        self.document.settings.streak_goal_min = int(minutes)
        self.store.persist()
        return self.document.settings.streak_goal_min

    def set_default_who(self, who: str) -> str:
        """Person used for sessions logged without one."""
        name = str(who or "").strip()
        if not name:
            raise ValidationError("default person must not be empty", field="default_who")
        self.document.settings.default_who = name
        self.store.persist()
        logger.info(f"default who={name}")
        return name

    # =========================================================================
    # Backup
    # =========================================================================

    def export_backup(self, path: Path | None = None) -> Path:
        return self.store.export_backup(path)

    def import_backup(self, path: Path) -> Document:
        self.store.import_backup(path)
        self.recompute()
        return self.document

    def close(self) -> None:
        self.store.close()
