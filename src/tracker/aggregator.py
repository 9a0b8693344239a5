"""
Rolling-window statistics over the session ledger.

`recompute` is the only code path that writes the derived cache fields of
an ItemState (`minutes_week`, `minutes_month`, `last_studied_at`). It runs
after every ledger mutation and before every scoring decision.

The remaining functions are pure read helpers used for reporting.
All windows are anchored to local calendar days, not UTC.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from loguru import logger

from .catalog import COMPONENTS, Catalog
from .clock import local_date, local_tz, window_start
from .models import Document, Session

WEEK_DAYS = 7
MONTH_DAYS = 30


@dataclass
class ItemAggregate:
    minutes_week: int = 0
    minutes_month: int = 0
    last_studied_at: datetime | None = None


@dataclass
class Summary:
    """Dashboard figures for a trailing window."""

    days: int
    total_minutes: int
    total_sessions: int
    component_minutes: dict[str, int] = field(default_factory=dict)
    streak_days: int = 0
    minutes_today: int = 0
    streak_goal_min: int = 0
    active_items: int = 0
    available_items: int = 0

    @property
    def goal_reached(self) -> bool:
        return self.minutes_today >= self.streak_goal_min


def compute_aggregates(sessions: list[Session], catalog: Catalog, now: datetime) -> dict[str, ItemAggregate]:
    """Single pass over the ledger, per catalog item."""
    week_from = window_start(now, WEEK_DAYS)
    month_from = window_start(now, MONTH_DAYS)

    per = {item_id: ItemAggregate() for item_id in catalog.ids}
    for s in sessions:
        agg = per.get(s.instrument_id)
        if agg is None:
            continue
        if s.at >= week_from:
            agg.minutes_week += s.minutes_total
        if s.at >= month_from:
            agg.minutes_month += s.minutes_total
        if agg.last_studied_at is None or agg.last_studied_at < s.at:
            agg.last_studied_at = s.at
    return per


def recompute(doc: Document, catalog: Catalog, now: datetime) -> None:
    """
    Rewrite the derived cache of every catalog item from the ledger.

    An item with no sessions keeps its previous `last_studied_at`.
    The caller persists the document afterwards.
    """
    per = compute_aggregates(doc.sessions, catalog, now)
    for item_id, agg in per.items():
        state = doc.items[item_id]
        state.minutes_week = agg.minutes_week
        state.minutes_month = agg.minutes_month
        state.last_studied_at = agg.last_studied_at or state.last_studied_at

    logger.debug(f"Recomputed aggregates for {len(per)} items over {len(doc.sessions)} sessions")


# =============================================================================
# Read helpers
# =============================================================================


def _in_window(sessions: list[Session], now: datetime, days: int) -> list[Session]:
    start = window_start(now, days)
    return [s for s in sessions if s.at >= start]


def total_minutes(doc: Document, now: datetime, days: int = MONTH_DAYS) -> int:
    return sum(s.minutes_total for s in _in_window(doc.sessions, now, days))


def total_sessions(doc: Document, now: datetime, days: int = MONTH_DAYS) -> int:
    return len(_in_window(doc.sessions, now, days))


def component_totals(doc: Document, now: datetime, days: int = MONTH_DAYS) -> dict[str, int]:
    """Minutes per component (tech, theory, rep) within the window."""
    out = dict.fromkeys(COMPONENTS, 0)
    for s in _in_window(doc.sessions, now, days):
        for name, log in s.components.items():
            out[name] += log.minutes
    return out


def minutes_today(doc: Document, now: datetime) -> int:
    return total_minutes(doc, now, days=1)


def streak_days(doc: Document, now: datetime) -> int:
    """
    Consecutive days with at least one session, counting back from today.

    Uses each session's stored calendar date; stops at the first gap.
    """
    dates = {s.date for s in doc.sessions}
    day = local_date(now, local_tz(now))
    streak = 0
    while day in dates:
        streak += 1
        day -= timedelta(days=1)
    return streak


def summary(doc: Document, catalog: Catalog, now: datetime, days: int = MONTH_DAYS) -> Summary:
    states = [doc.items[item_id] for item_id in catalog.ids]
    return Summary(
        days=days,
        total_minutes=total_minutes(doc, now, days),
        total_sessions=total_sessions(doc, now, days),
        component_minutes=component_totals(doc, now, days),
        streak_days=streak_days(doc, now),
        minutes_today=minutes_today(doc, now),
        streak_goal_min=doc.settings.streak_goal_min,
        active_items=sum(1 for st in states if not st.archived),
        available_items=sum(1 for st in states if st.schedulable),
    )
