"""
Unit tests for the session ledger.
"""

from datetime import date, datetime, timezone

import pytest

from src.tracker.clock import to_utc
from src.tracker.errors import ValidationError
from src.tracker.ledger import SessionInput


def log(tracker, item_id, minutes, at, **extra):
    return tracker.add_session({"instrumentId": item_id, "minutesTotal": minutes, "at": at, **extra})


class TestSessionInput:
    def test_from_form_keys(self, sample_session):
        payload = SessionInput.from_dict(sample_session)

        assert payload.instrument_id == "piano"
        assert payload.tech_minutes == 10
        assert payload.rep_notes == "Gymnopédie"
        assert payload.difficulty == "hard"

    def test_from_snake_case_keys(self):
        payload = SessionInput.from_dict({"instrument_id": "bajo", "minutes_total": "25", "rep_minutes": 5})

        assert payload.instrument_id == "bajo"
        assert payload.minutes_total == 25
        assert payload.rep_minutes == 5


class TestAddSession:
    def test_total_falls_back_to_components(self, tracker, sample_session, clock):
        session = tracker.add_session(sample_session)

        assert session.minutes_total == 30
        assert session.tech.notes == "Hanon 1-5"
        assert session.who == "Cata"
        assert session.mood == 5
        assert session.difficulty == "hard"
        assert session.tags == ["scales", "jazz"]
        assert session.at == to_utc(clock.now())
        assert session.date == date(2026, 3, 15)

    def test_declared_total_wins_over_components(self, tracker, sample_session):
        sample_session["minutesTotal"] = 45
        assert tracker.add_session(sample_session).minutes_total == 45

    def test_session_is_persisted_and_cache_updated(self, tracker, store):
        session = log(tracker, "violin", 25, None)

        assert tracker.document.sessions[0] == session
        assert tracker.document.items["violin"].last_studied_at == session.at
        assert tracker.document.items["violin"].minutes_week == 25

        store.load()
        assert store.document.sessions[0].id == session.id

    def test_newest_first_regardless_of_insert_order(self, tracker):
        old = log(tracker, "piano", 10, "2026-03-01T10:00:00Z")
        new = log(tracker, "piano", 10, "2026-03-12T10:00:00Z")
        older = log(tracker, "piano", 10, "2026-02-20T10:00:00Z")

        assert [s.id for s in tracker.document.sessions] == [new.id, old.id, older.id]

    def test_explicit_timestamp_sets_local_date(self, tracker):
        session = log(tracker, "cello", 20, "2026-03-14T23:30:00-05:00")

        assert session.at == datetime(2026, 3, 15, 4, 30, tzinfo=timezone.utc)
        assert session.date == date(2026, 3, 14)

    def test_backdated_session_keeps_current_wall_time(self, tracker):
        session = tracker.add_session({"instrumentId": "cello", "minutesTotal": 30, "date": "2026-03-01"})

        assert session.date == date(2026, 3, 1)
        assert session.at == datetime(2026, 3, 1, 23, 30, tzinfo=timezone.utc)  # 18:30 at UTC-5

    def test_backdated_session_falls_outside_recent_windows(self, tracker):
        tracker.add_session({"instrumentId": "cello", "minutesTotal": 30, "date": "2026-03-01"})

        cello = tracker.document.items["cello"]
        assert cello.minutes_week == 0
        assert cello.minutes_month == 30
        assert cello.last_studied_at == datetime(2026, 3, 1, 23, 30, tzinfo=timezone.utc)
        assert tracker.ledger.filter_sessions(days=7) == []
        assert tracker.summary(days=7).streak_days == 0

    def test_default_who_from_settings(self, tracker):
        tracker.document.settings.default_who = "Duo"
        assert log(tracker, "canto", 15, None).who == "Duo"

    @pytest.mark.parametrize("mood,expected", [(11, 5), (0, 1), ("abc", 4), (3, 3)])
    def test_mood_is_clamped(self, tracker, mood, expected):
        assert log(tracker, "canto", 15, None, mood=mood).mood == expected

    def test_unknown_difficulty_becomes_easy(self, tracker):
        assert log(tracker, "canto", 15, None, difficulty="brutal").difficulty == "easy"

    def test_negative_component_minutes_floor_at_zero(self, tracker):
        session = log(tracker, "piano", 0, None, techMinutes=-5, repMinutes=12)

        assert session.tech.minutes == 0
        assert session.minutes_total == 12

    def test_tags_are_capped(self, tracker):
        session = log(tracker, "piano", 10, None, tags=[f"t{i}" for i in range(30)])
        assert len(session.tags) == 20


class TestValidation:
    @pytest.mark.parametrize(
        "payload,field",
        [
            ({"instrumentId": "", "minutesTotal": 20}, "instrument_id"),
            ({"instrumentId": "   ", "minutesTotal": 20}, "instrument_id"),
            ({"instrumentId": "piano", "minutesTotal": 0}, "minutes_total"),
            ({"instrumentId": "piano", "minutesTotal": -10}, "minutes_total"),
            ({"instrumentId": "piano", "minutesTotal": 20, "at": "yesterday"}, "at"),
            ({"instrumentId": "piano", "minutesTotal": 20, "date": "03/01/2026"}, "date"),
            ({"instrumentId": "piano", "minutesTotal": 20, "at": "0001-01-01T00:00:00+05:00"}, "at"),
            ({"instrumentId": "piano", "minutesTotal": 20, "at": "0001-01-01T01:00:00Z"}, "at"),
        ],
    )
    def test_rejected_without_write(self, tracker, store, payload, field):
        store.persist()
        before = store.read_raw()

        with pytest.raises(ValidationError) as exc_info:
            tracker.add_session(payload)

        assert exc_info.value.field == field
        assert store.read_raw() == before
        assert tracker.document.sessions == []


class TestDeleteAndClear:
    def test_delete_existing(self, tracker):
        keep = log(tracker, "piano", 30, "2026-03-15T10:00:00-05:00")
        drop = log(tracker, "piano", 20, "2026-03-14T10:00:00-05:00")

        assert tracker.delete_session(drop.id) is True

        assert [s.id for s in tracker.document.sessions] == [keep.id]
        assert tracker.document.items["piano"].minutes_week == 30

    def test_delete_missing_is_a_no_op(self, tracker, store):
        log(tracker, "piano", 30, None)
        before_doc = tracker.document.to_dict()
        before_raw = store.read_raw()

        assert tracker.delete_session("does-not-exist") is False

        assert tracker.document.to_dict() == before_doc
        assert store.read_raw() == before_raw

    def test_clear_all(self, tracker):
        log(tracker, "piano", 30, None)
        log(tracker, "cello", 30, None)
        tracker.pick_next()

        tracker.clear_all()

        doc = tracker.document
        assert doc.sessions == []
        assert doc.scheduler.last_pick_id is None
        for state in doc.items.values():
            assert state.last_studied_at is None
            assert state.minutes_week == 0 and state.minutes_month == 0


class TestFilter:
    @pytest.fixture
    def history(self, tracker):
        log(tracker, "piano", 30, "2026-03-15T10:00:00-05:00", who="Cata", techNotes="Hanon", tags=["scales"])
        log(tracker, "cello", 20, "2026-03-10T10:00:00-05:00", who="Alek")
        log(tracker, "violin", 40, "2026-02-01T10:00:00-05:00", who="Duo")
        return tracker.ledger

    def test_window(self, history):
        assert [s.instrument_id for s in history.filter_sessions(days=7)] == ["piano", "cello"]
        assert [s.instrument_id for s in history.filter_sessions(days=90)] == ["piano", "cello", "violin"]
        assert [s.instrument_id for s in history.filter_sessions(days=1)] == ["piano"]

    def test_by_item_and_person(self, history):
        assert [s.instrument_id for s in history.filter_sessions(instrument_id="cello")] == ["cello"]
        assert [s.who for s in history.filter_sessions(who="Cata")] == ["Cata"]

    @pytest.mark.parametrize("query", ["hanon", "SCALES", "Piano", "cata"])
    def test_text_query(self, history, query):
        assert [s.instrument_id for s in history.filter_sessions(query=query)] == ["piano"]

    def test_limit(self, history):
        assert len(history.filter_sessions(days=90, limit=2)) == 2

    def test_get(self, history):
        first = history.list_sessions()[0]
        assert history.get(first.id) is first
        assert history.get("nope") is None
