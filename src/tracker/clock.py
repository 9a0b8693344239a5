"""
Time source for the tracker.

All rolling windows (7-day, 30-day, streak) are anchored to local calendar
days. The clock is injected everywhere so tests can freeze "now".

Clocks carry a real time zone (IANA via zoneinfo) rather than today's UTC
offset, so every instant and every calendar day resolves its own offset
across daylight-saving changes.
"""

from __future__ import annotations

import math
import os
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger

NEVER_STUDIED_DAYS = 999
LOCALTIME_FILE = "/etc/localtime"


class Clock(Protocol):
    """Anything that can tell the current local time."""

    def now(self) -> datetime: ...


def system_zone() -> tzinfo:
    """
    The machine's local zone with its full offset history.

    Tries the TZ environment variable, then /etc/localtime. Falls back to
    the current fixed offset (with a warning) when neither is usable.
    """
    name = os.environ.get("TZ", "").lstrip(":").strip()
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.debug(f"TZ={name!r} is not an IANA zone, trying {LOCALTIME_FILE}")
    try:
        with open(LOCALTIME_FILE, "rb") as f:
            return ZoneInfo.from_file(f, key="localtime")
    except (OSError, ValueError):
        pass
    fixed = datetime.now().astimezone().tzinfo
    logger.warning(f"No local zone database found, using fixed offset {fixed}")
    return fixed or timezone.utc


def resolve_zone(name: str | None) -> tzinfo:
    """An IANA zone by name, or the system zone when `name` is empty."""
    if name and name.strip():
        return ZoneInfo(name.strip())
    return system_zone()


class SystemClock:
    """Wall clock in a real local zone (system zone by default)."""

    def __init__(self, tz: tzinfo | None = None):
        self.tz = tz or system_zone()

    def now(self) -> datetime:
        return datetime.now(self.tz)


class FixedClock:
    """A clock frozen at a given moment (tests, replays)."""

    def __init__(self, moment: datetime):
        self._moment = self._aware(moment)

    @staticmethod
    def _aware(moment: datetime) -> datetime:
        return moment if moment.tzinfo else moment.replace(tzinfo=system_zone())

    def now(self) -> datetime:
        return self._moment

    def set(self, moment: datetime) -> None:
        self._moment = self._aware(moment)

    def advance(self, **delta: float) -> datetime:
        self._moment = self._moment + timedelta(**delta)
        return self._moment


# =============================================================================
# Helpers
# =============================================================================


def local_tz(now: datetime) -> tzinfo:
    return now.tzinfo or timezone.utc


def local_date(at: datetime, tz: tzinfo) -> date:
    """Calendar date of `at` as seen in the local zone."""
    return at.astimezone(tz).date()


def local_midnight(day: date, tz: tzinfo) -> datetime:
    """Start of `day` in `tz`, with the offset in force on that day."""
    return datetime.combine(day, time.min, tzinfo=tz)


def window_start(now: datetime, days: int) -> datetime:
    """
    Start of a trailing N-day window.

    Local midnight of the day `days - 1` before today, so a 7-day window
    covers today plus the six previous calendar days.
    """
    tz = local_tz(now)
    first_day = local_date(now, tz) - timedelta(days=max(1, days) - 1)
    return local_midnight(first_day, tz)


def local_noon(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time(12, 0), tzinfo=tz)


def on_local_day(day: date, now: datetime) -> datetime:
    """`day` at the current local wall time (used for backdated entries)."""
    tz = local_tz(now)
    wall = now.astimezone(tz).time().replace(tzinfo=None)
    return datetime.combine(day, wall, tzinfo=tz)


def days_since(at: datetime | None, now: datetime, sentinel: int = NEVER_STUDIED_DAYS) -> int:
    """Whole days elapsed since `at` (floor); `sentinel` when never."""
    if at is None:
        return sentinel
    return math.floor((now - at).total_seconds() / 86400)


def to_utc(at: datetime) -> datetime:
    """UTC instant truncated to milliseconds (the persisted precision)."""
    at = at.astimezone(timezone.utc)
    return at.replace(microsecond=(at.microsecond // 1000) * 1000)


def format_timestamp(at: datetime | None) -> str | None:
    if at is None:
        return None
    return to_utc(at).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: object, tz: tzinfo) -> datetime | None:
    """
    Parse an ISO-8601 timestamp.

    Returns None for anything unparsable, including instants that fall
    outside the representable range once converted to UTC. Naive values are
    read as local time in `tz`; the result is always a UTC instant at ms
    precision.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    try:
        return to_utc(parsed)
    except (OverflowError, ValueError):
        return None


def parse_date(value: object) -> date | None:
    """Parse a YYYY-MM-DD calendar date (longer ISO strings are cut to the date)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or len(value.strip()) < 10:
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None
