"""
Unit tests for the SQLite state store.

Each test gets its own database under tmp_path.
"""

import json

import pytest

from src.tracker.errors import BackupError
from src.tracker.state_store import StateStore


def reopen(store: StateStore) -> StateStore:
    return StateStore(db_path=store.db_path, catalog=store.catalog, clock=store.clock)


class TestLoad:
    def test_absent_document_initializes_and_persists(self, store):
        doc = store.load()

        assert doc.sessions == []
        assert list(doc.items)[: len(store.catalog)] == store.catalog.ids
        assert json.loads(store.read_raw())["version"] == 2

    @pytest.mark.parametrize("raw", ["{not json", "[1, 2, 3]", '"text"', "null", ""])
    def test_corrupt_document_recovers_silently(self, store, raw):
        store.write_raw(raw)

        doc = store.load()

        assert doc.sessions == []
        assert set(store.catalog.ids) <= set(doc.items)

    def test_malformed_parts_degrade_individually(self, store):
        store.write_raw(
            json.dumps(
                {
                    "settings": {"weights": "broken", "avoidRepeat": False},
                    "sessions": [
                        {"id": "ok", "instrumentId": "cello", "at": "2026-03-14T15:00:00Z", "minutesTotal": 25},
                        {"id": "bad"},
                    ],
                }
            )
        )

        doc = store.load()

        assert doc.settings.avoid_repeat is False
        assert doc.settings.weights["cello"] == 2
        assert [s.id for s in doc.sessions] == ["ok"]

    def test_out_of_range_timestamp_does_not_break_load(self, store):
        store.write_raw(
            json.dumps(
                {
                    "sessions": [
                        {"id": "edge", "instrumentId": "piano", "at": "0001-01-01T00:00:00+05:00", "minutesTotal": 5},
                        {"id": "ok", "instrumentId": "piano", "at": "2026-03-14T15:00:00Z", "minutesTotal": 5},
                    ],
                    "settings": {"avoidRepeat": False},
                }
            )
        )

        doc = store.load()

        assert [s.id for s in doc.sessions] == ["ok"]
        assert doc.settings.avoid_repeat is False

    def test_persisted_document_round_trips(self, store):
        doc = store.document
        doc.settings.weights["piano"] = 1.0
        doc.items["violin"].condition = "only mornings"
        store.persist()

        other = reopen(store)
        try:
            assert other.document == doc
        finally:
            other.close()

    def test_persist_replaces_previous_value(self, store):
        store.document.settings.show_confetti = False
        store.persist()
        store.document.settings.show_confetti = True
        store.persist()

        cursor = store.conn.execute("SELECT COUNT(*) AS cnt FROM documents")
        assert cursor.fetchone()["cnt"] == 1
        assert json.loads(store.read_raw())["settings"]["showConfetti"] is True

    def test_storage_key_isolates_documents(self, tmp_path, catalog, clock):
        a = StateStore(db_path=tmp_path / "db.sqlite", catalog=catalog, clock=clock, storage_key="a")
        b = StateStore(db_path=tmp_path / "db.sqlite", catalog=catalog, clock=clock, storage_key="b")
        try:
            a.document.items["piano"].condition = "a"
            a.persist()
            assert b.document.items["piano"].condition == ""
        finally:
            a.close()
            b.close()


class TestBackups:
    def test_export_to_default_location(self, store):
        path = store.export_backup()

        assert path.name == "instrument-tracker-backup-2026-03-15.json"
        assert path.parent == store.backup_dir
        assert store.list_backups() == [path]
        assert json.loads(path.read_text(encoding="utf-8"))["version"] == 2

    def test_import_replaces_document(self, store, tmp_path):
        backup = tmp_path / "old.json"
        backup.write_text(
            json.dumps(
                {
                    "sessions": [{"instrumentId": "canto", "date": "2026-03-01", "minutesTotal": 30}],
                    "ui": {"lastPickId": "canto"},
                }
            ),
            encoding="utf-8",
        )

        doc = store.import_backup(backup)

        assert len(doc.sessions) == 1
        assert doc.scheduler.last_pick_id == "canto"
        assert reopen(store).document == doc

    def test_import_missing_file_raises(self, store, tmp_path):
        before = store.document.to_dict()
        with pytest.raises(BackupError):
            store.import_backup(tmp_path / "missing.json")
        assert store.document.to_dict() == before

    @pytest.mark.parametrize("content", ["{oops", "[]"])
    def test_import_invalid_content_raises(self, store, tmp_path, content):
        backup = tmp_path / "bad.json"
        backup.write_text(content, encoding="utf-8")
        store.persist()
        before = store.read_raw()

        with pytest.raises(BackupError):
            store.import_backup(backup)
        assert store.read_raw() == before

    def test_reset(self, store):
        store.document.items["piano"].archived = True
        store.persist()

        doc = store.reset()

        assert doc.items["piano"].archived is False
        assert reopen(store).document.items["piano"].archived is False
