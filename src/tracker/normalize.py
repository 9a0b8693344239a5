"""
Schema normalization and migration.

`normalize_document` takes any previously persisted shape (current schema,
the unversioned v1 layout, partially corrupt data, or plain garbage) and
returns a Document that satisfies every model invariant:

- one ItemState per catalog id, unknown ItemState fields preserved
- one weight per catalog id, clamped to 0..5
- sessions with an item id and a usable timestamp or date, newest first

Every field is treated as optionally absent or malformed. The function is
pure apart from minting ids for sessions that have none, and idempotent:
normalizing a normalized document yields an equal document.
"""

from __future__ import annotations

import math
import uuid
from datetime import tzinfo
from typing import Any

from loguru import logger

from .catalog import DEFAULT_WEIGHT, DIFFICULTIES, MOOD_MAX, MOOD_MIN, Catalog
from .clock import Clock, local_date, local_noon, local_tz, parse_date, parse_timestamp, to_utc
from .models import (
    SCHEMA_VERSION,
    ComponentLog,
    Document,
    ItemState,
    SchedulerMemory,
    Session,
    TrackerSettings,
)

MAX_TAGS = 20
MIN_WEIGHT = 0
MAX_WEIGHT = 5
DEFAULT_MOOD = 4
DEFAULT_DIFFICULTY = "easy"

_ITEM_KEYS = {"available", "archived", "condition", "lastStudiedAt", "minutesWeek", "minutesMonth"}
_SETTINGS_KEYS = {"weights", "avoidRepeat", "showConfetti", "streakGoalMin", "dailyNudge", "defaultWho"}


# =============================================================================
# Coercion helpers
# =============================================================================


def new_session_id() -> str:
    return uuid.uuid4().hex


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def is_number(value: Any) -> bool:
    """True for real numbers (bools and NaN excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def safe_int(value: Any, default: int = 0) -> int:
    """Best-effort integer coercion; `default` when nothing usable."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return default
        return int(number) if math.isfinite(number) else default
    return default


def clamp_weight(value: Any, fallback: float = DEFAULT_WEIGHT) -> float:
    """Clamp a weight into 0..5; non-numeric input uses `fallback`."""
    if not is_number(value):
        value = fallback if is_number(fallback) else DEFAULT_WEIGHT
    return float(clamp(value, MIN_WEIGHT, MAX_WEIGHT))


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _flag(value: Any, default: bool) -> bool:
    """Only real booleans count; "false", 0 and friends keep the default."""
    return value if isinstance(value, bool) else default


# =============================================================================
# Sections
# =============================================================================


def normalize_settings(raw: Any, catalog: Catalog) -> TrackerSettings:
    data = _as_dict(raw)
    raw_weights = _as_dict(data.get("weights"))
    defaults = catalog.default_weights()

    weights: dict[str, float] = {}
    for item_id in catalog.ids:
        weights[item_id] = clamp_weight(raw_weights.get(item_id), defaults[item_id])
    for item_id, value in raw_weights.items():
        if item_id not in weights and is_number(value):
            weights[str(item_id)] = clamp_weight(value)

    who = data.get("defaultWho")
    return TrackerSettings(
        weights=weights,
        avoid_repeat=data.get("avoidRepeat") is not False,
        show_confetti=data.get("showConfetti") is not False,
        streak_goal_min=max(0, safe_int(data.get("streakGoalMin"), 20)),
        daily_nudge=data.get("dailyNudge") is not False,
        default_who=str(who) if isinstance(who, str) and who.strip() else "Alek",
        extra={k: v for k, v in data.items() if k not in _SETTINGS_KEYS},
    )


def normalize_item_state(raw: Any, tz: tzinfo) -> ItemState:
    """Merge defaults under whatever fields are present."""
    data = _as_dict(raw)
    condition = data.get("condition")
    return ItemState(
        available=_flag(data.get("available"), True),
        archived=_flag(data.get("archived"), False),
        condition=condition if isinstance(condition, str) else "",
        last_studied_at=parse_timestamp(data.get("lastStudiedAt"), tz),
        minutes_week=max(0, safe_int(data.get("minutesWeek"))),
        minutes_month=max(0, safe_int(data.get("minutesMonth"))),
        extra={k: v for k, v in data.items() if k not in _ITEM_KEYS},
    )


def _component(raw: dict, name: str) -> ComponentLog:
    # v2 keeps components nested, v1 stored them at the top level
    nested = _as_dict(raw.get("components"))
    block = _as_dict(nested.get(name) if name in nested else raw.get(name))
    notes = block.get("notes")
    return ComponentLog(
        minutes=max(0, safe_int(block.get("minutes"))),
        notes=notes if isinstance(notes, str) else ("" if notes is None else str(notes)),
    )


def normalize_session(raw: Any, tz: tzinfo, default_who: str = "Alek") -> Session | None:
    """
    Sanitize one ledger entry.

    Returns None when the entry has no item id, has neither a usable
    timestamp nor a calendar date, or when one cannot be derived from the
    other (instants at the edge of the representable range).
    """
    if not isinstance(raw, dict):
        return None

    instrument_id = str(raw.get("instrumentId") or "").strip()
    if not instrument_id:
        return None

    at = parse_timestamp(raw.get("at"), tz)
    day = parse_date(raw.get("date"))
    if at is None and day is None:
        return None
    try:
        if at is None:
            at = to_utc(local_noon(day, tz))
        if day is None:
            day = local_date(at, tz)
    except (OverflowError, ValueError):
        return None

    tech = _component(raw, "tech")
    theory = _component(raw, "theory")
    rep = _component(raw, "rep")

    minutes_total = max(0, safe_int(raw.get("minutesTotal")))
    if not minutes_total:
        minutes_total = tech.minutes + theory.minutes + rep.minutes

    difficulty = raw.get("difficulty")
    if difficulty not in DIFFICULTIES:
        difficulty = DEFAULT_DIFFICULTY

    tags = raw.get("tags")
    who = raw.get("who")

    return Session(
        id=str(raw.get("id") or "") or new_session_id(),
        at=at,
        date=day,
        instrument_id=instrument_id,
        minutes_total=minutes_total,
        who=str(who) if who not in (None, "") else default_who,
        mood=int(clamp(safe_int(raw.get("mood"), DEFAULT_MOOD), MOOD_MIN, MOOD_MAX)),
        difficulty=difficulty,
        tech=tech,
        theory=theory,
        rep=rep,
        tags=[str(t) for t in tags if t is not None][:MAX_TAGS] if isinstance(tags, list) else [],
    )


def normalize_scheduler(raw: Any, tz: tzinfo) -> SchedulerMemory:
    data = _as_dict(raw)
    last_pick = data.get("lastPickId")
    return SchedulerMemory(
        last_pick_id=str(last_pick) if last_pick else None,
        last_picked_at=parse_timestamp(data.get("lastPickedAt"), tz),
    )


# =============================================================================
# Document
# =============================================================================


def fresh_document(catalog: Catalog, clock: Clock) -> Document:
    """A newly initialized document: default settings, empty ledger."""
    tz = local_tz(clock.now())
    return Document(
        version=SCHEMA_VERSION,
        created_at=to_utc(clock.now()),
        settings=normalize_settings({}, catalog),
        items={item_id: normalize_item_state({}, tz) for item_id in catalog.ids},
        sessions=[],
        scheduler=SchedulerMemory(),
    )


def normalize_document(raw: Any, catalog: Catalog, clock: Clock) -> Document:
    """
    Return an invariant-satisfying Document for any input shape.

    Args:
        raw: Decoded JSON (dict), an existing Document, or anything else
        catalog: Current catalog; every id gets an ItemState and a weight
        clock: Source of the local zone and of `createdAt` when missing
    """
    if isinstance(raw, Document):
        raw = raw.to_dict()
    data = _as_dict(raw)
    tz = local_tz(clock.now())

    version = safe_int(data.get("version"), 1)
    if version < SCHEMA_VERSION:
        logger.info(f"Migrating tracker document from schema v{version} to v{SCHEMA_VERSION}")

    settings = normalize_settings(data.get("settings"), catalog)

    raw_items = _as_dict(data.get("instruments"))
    items = {item_id: normalize_item_state(raw_items.get(item_id), tz) for item_id in catalog.ids}
    for item_id, state in raw_items.items():
        if item_id not in items and isinstance(state, dict):
            items[str(item_id)] = normalize_item_state(state, tz)

    raw_sessions = data.get("sessions")
    raw_sessions = raw_sessions if isinstance(raw_sessions, list) else []
    sessions = [
        s for s in (normalize_session(r, tz, settings.default_who) for r in raw_sessions) if s is not None
    ]
    dropped = len(raw_sessions) - len(sessions)
    if dropped:
        logger.warning(f"Dropped {dropped} malformed sessions during normalization")

    scheduler_raw = data.get("scheduler") if "scheduler" in data else data.get("ui")

    doc = Document(
        version=SCHEMA_VERSION,
        created_at=parse_timestamp(data.get("createdAt"), tz) or to_utc(clock.now()),
        settings=settings,
        items=items,
        sessions=sessions,
        scheduler=normalize_scheduler(scheduler_raw, tz),
    )
    doc.sort_sessions()
    return doc
