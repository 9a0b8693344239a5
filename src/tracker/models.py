"""
Document model for the practice tracker.

The persisted document holds:
- Settings (manual weights and preferences)
- One ItemState per catalog id (availability plus a derived stats cache)
- The session ledger, newest first
- Scheduler memory (the last recommendation)

`to_dict()` produces the JSON-compatible persisted shape. Reading goes
through `normalize.normalize_document`, which accepts any older shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from .clock import format_timestamp

SCHEMA_VERSION = 2


@dataclass
class ComponentLog:
    """Minutes and notes for one part of a session (tech, theory, rep)."""

    minutes: int = 0
    notes: str = ""

    def to_dict(self) -> dict:
        return {"minutes": self.minutes, "notes": self.notes}


@dataclass
class Session:
    """A single practice session. Immutable once recorded."""

    id: str
    at: datetime
    date: date
    instrument_id: str
    minutes_total: int
    who: str = "Alek"
    mood: int = 4
    difficulty: str = "easy"
    tech: ComponentLog = field(default_factory=ComponentLog)
    theory: ComponentLog = field(default_factory=ComponentLog)
    rep: ComponentLog = field(default_factory=ComponentLog)
    tags: list[str] = field(default_factory=list)

    @property
    def components(self) -> dict[str, ComponentLog]:
        return {"tech": self.tech, "theory": self.theory, "rep": self.rep}

    @property
    def component_minutes(self) -> int:
        return self.tech.minutes + self.theory.minutes + self.rep.minutes

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "at": format_timestamp(self.at),
            "date": self.date.isoformat(),
            "who": self.who,
            "instrumentId": self.instrument_id,
            "minutesTotal": self.minutes_total,
            "mood": self.mood,
            "difficulty": self.difficulty,
            "components": {name: log.to_dict() for name, log in self.components.items()},
            "tags": list(self.tags),
        }


@dataclass
class ItemState:
    """
    Per-item state.

    `last_studied_at`, `minutes_week` and `minutes_month` are a derived
    cache owned by the aggregator; they are recomputed from the ledger on
    every mutation.
    """

    available: bool = True
    archived: bool = False
    condition: str = ""
    last_studied_at: datetime | None = None
    minutes_week: int = 0
    minutes_month: int = 0
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def schedulable(self) -> bool:
        return self.available and not self.archived

    def reset_cache(self) -> None:
        self.last_studied_at = None
        self.minutes_week = 0
        self.minutes_month = 0

    def to_dict(self) -> dict:
        return {
            **self.extra,
            "available": self.available,
            "archived": self.archived,
            "condition": self.condition,
            "lastStudiedAt": format_timestamp(self.last_studied_at),
            "minutesWeek": self.minutes_week,
            "minutesMonth": self.minutes_month,
        }


@dataclass
class TrackerSettings:
    """User preferences stored in the document."""

    weights: dict[str, float] = field(default_factory=dict)
    avoid_repeat: bool = True
    show_confetti: bool = True
    streak_goal_min: int = 20
    daily_nudge: bool = True
    default_who: str = "Alek"
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            **self.extra,
            "weights": dict(self.weights),
            "avoidRepeat": self.avoid_repeat,
            "showConfetti": self.show_confetti,
            "streakGoalMin": self.streak_goal_min,
            "dailyNudge": self.daily_nudge,
            "defaultWho": self.default_who,
        }


@dataclass
class SchedulerMemory:
    """The most recent recommendation."""

    last_pick_id: str | None = None
    last_picked_at: datetime | None = None

    def clear(self) -> None:
        self.last_pick_id = None
        self.last_picked_at = None

    def to_dict(self) -> dict:
        return {
            "lastPickId": self.last_pick_id,
            "lastPickedAt": format_timestamp(self.last_picked_at),
        }


@dataclass
class Document:
    """Root persisted document."""

    version: int = SCHEMA_VERSION
    created_at: datetime | None = None
    settings: TrackerSettings = field(default_factory=TrackerSettings)
    items: dict[str, ItemState] = field(default_factory=dict)
    sessions: list[Session] = field(default_factory=list)
    scheduler: SchedulerMemory = field(default_factory=SchedulerMemory)

    def sort_sessions(self) -> None:
        """Newest first by timestamp."""
        self.sessions.sort(key=lambda s: s.at, reverse=True)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "createdAt": format_timestamp(self.created_at),
            "settings": self.settings.to_dict(),
            "instruments": {item_id: state.to_dict() for item_id, state in self.items.items()},
            "sessions": [s.to_dict() for s in self.sessions],
            "scheduler": self.scheduler.to_dict(),
        }
