"""
Session Ledger: create, delete and query practice sessions.

Every mutation recomputes the derived aggregates and persists the document
before returning, so the cache never drifts from the ledger.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from loguru import logger

from .aggregator import MONTH_DAYS, recompute
from .catalog import DIFFICULTIES, MOOD_MAX, MOOD_MIN
from .clock import local_date, local_tz, on_local_day, parse_date, parse_timestamp, to_utc, window_start
from .errors import ValidationError
from .models import ComponentLog, Session
from .normalize import DEFAULT_MOOD, MAX_TAGS, clamp, new_session_id, safe_int

if TYPE_CHECKING:
    from .state_store import StateStore

HISTORY_LIMIT = 200


@dataclass
class SessionInput:
    """Caller payload for a new session."""

    instrument_id: str
    minutes_total: int = 0
    at: datetime | str | None = None
    date: str | None = None
    who: str | None = None
    mood: int = DEFAULT_MOOD
    difficulty: str = "easy"
    tech_minutes: int = 0
    tech_notes: str = ""
    theory_minutes: int = 0
    theory_notes: str = ""
    rep_minutes: int = 0
    rep_notes: str = ""
    tags: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> SessionInput:
        """Build from form-style keys (`instrumentId`, `techMinutes`, ...)."""

        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if data.get(key) is not None:
                    return data[key]
            return default

        tags = pick("tags", default=[])
        return cls(
            instrument_id=str(pick("instrumentId", "instrument_id", default="")),
            minutes_total=safe_int(pick("minutesTotal", "minutes_total", default=0)),
            at=pick("at"),
            date=pick("date"),
            who=pick("who"),
            mood=safe_int(pick("mood", default=DEFAULT_MOOD), DEFAULT_MOOD),
            difficulty=str(pick("difficulty", default="easy")),
            tech_minutes=safe_int(pick("techMinutes", "tech_minutes", default=0)),
            tech_notes=str(pick("techNotes", "tech_notes", default="")),
            theory_minutes=safe_int(pick("theoryMinutes", "theory_minutes", default=0)),
            theory_notes=str(pick("theoryNotes", "theory_notes", default="")),
            rep_minutes=safe_int(pick("repMinutes", "rep_minutes", default=0)),
            rep_notes=str(pick("repNotes", "rep_notes", default="")),
            tags=list(tags) if isinstance(tags, (list, tuple)) else [],
        )


class SessionLedger:
    """CRUD over the session ledger held by a StateStore."""

    def __init__(self, store: StateStore):
        self.store = store

    @property
    def sessions(self) -> list[Session]:
        return self.store.document.sessions

    def _refresh(self) -> None:
        doc = self.store.document
        recompute(doc, self.store.catalog, self.store.clock.now())
        doc.sort_sessions()
        self.store.persist()

    # =========================================================================
    # Mutations
    # =========================================================================

    def build_session(self, payload: SessionInput | dict) -> Session:
        """
        Construct a validated Session without recording it.

        Raises:
            ValidationError: missing item id, unusable `at` or `date`, or
                non-positive total minutes
        """
        if isinstance(payload, dict):
            payload = SessionInput.from_dict(payload)

        now = self.store.clock.now()
        tz = local_tz(now)
        doc = self.store.document

        instrument_id = str(payload.instrument_id or "").strip()
        if not instrument_id:
            raise ValidationError("instrumentId missing", field="instrument_id")

        at = parse_timestamp(payload.at, tz) if payload.at is not None else None
        if payload.at is not None and at is None:
            raise ValidationError(f"invalid timestamp: {payload.at!r}", field="at")
        day = parse_date(payload.date) if payload.date is not None else None
        if payload.date is not None and day is None:
            raise ValidationError(f"invalid date: {payload.date!r}", field="date")
        try:
            # a bare date is backdated to that day at the current wall time
            if at is None:
                at = to_utc(on_local_day(day, now)) if day else to_utc(now)
            if day is None:
                day = local_date(at, tz)
        except (OverflowError, ValueError) as e:
            raise ValidationError(f"timestamp out of range: {e}", field="at") from e

        tech = ComponentLog(max(0, payload.tech_minutes), payload.tech_notes.strip())
        theory = ComponentLog(max(0, payload.theory_minutes), payload.theory_notes.strip())
        rep = ComponentLog(max(0, payload.rep_minutes), payload.rep_notes.strip())

        minutes_total = payload.minutes_total or (tech.minutes + theory.minutes + rep.minutes)
        if minutes_total <= 0:
            raise ValidationError("minutes must be > 0", field="minutes_total")

        difficulty = payload.difficulty if payload.difficulty in DIFFICULTIES else "easy"
        tags = [str(t).strip() for t in payload.tags if str(t).strip()][:MAX_TAGS]

        return Session(
            id=new_session_id(),
            at=at,
            date=day,
            instrument_id=instrument_id,
            minutes_total=minutes_total,
            who=str(payload.who or doc.settings.default_who),
            mood=int(clamp(payload.mood, MOOD_MIN, MOOD_MAX)),
            difficulty=difficulty,
            tech=tech,
            theory=theory,
            rep=rep,
            tags=tags,
        )

    def add_session(self, payload: SessionInput | dict) -> Session:
        """
        Record a new session.

        Args:
            payload: SessionInput or a form-style dict

        Returns:
            The created Session

        Raises:
            ValidationError: nothing is written when validation fails
        """
        session = self.build_session(payload)
        doc = self.store.document

        doc.sessions.insert(0, session)
        state = doc.items.get(session.instrument_id)
        if state is not None:
            state.last_studied_at = session.at

        self._refresh()
        logger.info(
            f"Logged {session.minutes_total} min of {session.instrument_id} for {session.who} ({session.id})"
        )
        return session

    def delete_session(self, session_id: str) -> bool:
        """
        Remove a session by id.

        Returns:
            True if a session was removed; False (and no write) otherwise
        """
        doc = self.store.document
        for index, session in enumerate(doc.sessions):
            if session.id == session_id:
                del doc.sessions[index]
                self._refresh()
                logger.info(f"Deleted session {session_id}")
                return True
        logger.debug(f"Delete ignored, no session {session_id}")
        return False

    def clear_all(self) -> None:
        """Empty the ledger, reset every derived cache and the scheduler memory."""
        doc = self.store.document
        count = len(doc.sessions)
        doc.sessions.clear()
        for state in doc.items.values():
            state.reset_cache()
        doc.scheduler.clear()
        self._refresh()
        logger.info(f"Cleared {count} sessions")

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, session_id: str) -> Session | None:
        return next((s for s in self.sessions if s.id == session_id), None)

    def list_sessions(self) -> list[Session]:
        """All sessions, newest first."""
        return list(self.sessions)

    def filter_sessions(
        self,
        days: int = MONTH_DAYS,
        instrument_id: str | None = None,
        who: str | None = None,
        query: str = "",
        limit: int = HISTORY_LIMIT,
    ) -> list[Session]:
        """
        History query.

        Args:
            days: Trailing window in local calendar days
            instrument_id: Only this item (None for all)
            who: Only this person (None for all)
            query: Case-insensitive text matched against item name/id, person,
                difficulty, tags and component notes
            limit: Maximum sessions returned

        Returns:
            Matching sessions, newest first
        """
        start = window_start(self.store.clock.now(), days)
        needle = query.strip().lower()
        catalog = self.store.catalog

        out: list[Session] = []
        for s in self.sessions:
            if s.at < start:
                continue
            if instrument_id and s.instrument_id != instrument_id:
                continue
            if who and s.who != who:
                continue
            if needle:
                haystack = " ".join(
                    [
                        catalog.name_of(s.instrument_id),
                        s.instrument_id,
                        s.who,
                        s.difficulty,
                        ",".join(s.tags),
                        s.tech.notes,
                        s.theory.notes,
                        s.rep.notes,
                    ]
                ).lower()
                if needle not in haystack:
                    continue
            out.append(s)
            if len(out) >= limit:
                break
        return out
