"""
SQLite State Store for the practice tracker.

Persists the whole tracker document as a single JSON value under a fixed
key. The store exclusively owns the in-memory Document; every other
component reads and mutates it through `store.document` and asks the store
to persist.

Database location: ~/.instrument-tracker/state.db
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path

from loguru import logger

from .catalog import Catalog
from .clock import Clock, SystemClock
from .errors import BackupError, CorruptStateError
from .models import Document
from .normalize import fresh_document, normalize_document

DEFAULT_STORAGE_KEY = "instrument-tracker:v2"


class StateStore:
    """
    SQLite-backed persistence for the tracker document.

    Handles:
    - Loading with schema migration (corrupt data degrades to defaults)
    - Atomic writes of the full document
    - JSON backup export and import
    """

    DEFAULT_DB_PATH = Path.home() / ".instrument-tracker" / "state.db"

    def __init__(
        self,
        db_path: Path | None = None,
        catalog: Catalog | None = None,
        clock: Clock | None = None,
        storage_key: str = DEFAULT_STORAGE_KEY,
        backup_dir: Path | None = None,
    ):
        """
        Initialize the state store.

        Args:
            db_path: Custom database path (defaults to ~/.instrument-tracker/state.db)
            catalog: Catalog of trackable items (defaults to the built-in one)
            clock: Time source (defaults to the system clock)
            storage_key: Key the document is stored under
            backup_dir: Where exports go (defaults to <db dir>/backups)
        """
        self.db_path = Path(db_path or self.DEFAULT_DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.catalog = catalog or Catalog.default()
        self.clock = clock or SystemClock()
        self.storage_key = storage_key
        self.backup_dir = Path(backup_dir) if backup_dir else self.db_path.parent / "backups"

        self._conn: sqlite3.Connection | None = None
        self._document: Document | None = None
        self._init_schema()

        logger.info(f"StateStore initialized at {self.db_path}")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_schema(self) -> None:
        """Initialize database schema."""
        cursor = self.conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS documents (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP
            )
        """)
        self.conn.commit()

    # =========================================================================
    # Raw key/value access
    # =========================================================================

    def read_raw(self) -> str | None:
        """The stored serialized document, or None when absent."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT value FROM documents WHERE key = ?", (self.storage_key,))
        row = cursor.fetchone()
        return row["value"] if row else None

    def write_raw(self, value: str) -> None:
        """Replace the stored value in a single transaction."""
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO documents (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
            """,
                (self.storage_key, value, datetime.now().isoformat()),
            )

    def _decode(self, raw: str | None) -> dict:
        if not raw:
            raise CorruptStateError("no stored document")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptStateError(f"stored document is not JSON: {e}") from e
        if not isinstance(data, dict):
            raise CorruptStateError("stored document is not an object")
        return data

    # =========================================================================
    # Document lifecycle
    # =========================================================================

    @property
    def document(self) -> Document:
        """The in-memory document, loaded on first access."""
        if self._document is None:
            self._document = self.load()
        return self._document

    def load(self) -> Document:
        """
        Read and normalize the persisted document.

        Never raises for bad data: an absent or unreadable value yields a
        freshly initialized document, which is persisted immediately.
        """
        try:
            raw = self.read_raw()
            if raw is None:
                logger.info("No stored tracker document, initializing defaults")
                return self._initialize()
            data = self._decode(raw)
        except (CorruptStateError, sqlite3.DatabaseError) as e:
            logger.warning(f"Starting from a fresh tracker document: {e}")
            return self._initialize()

        self._document = self.normalize(data)
        logger.debug(f"Loaded document with {len(self._document.sessions)} sessions")
        return self._document

    def _initialize(self) -> Document:
        self._document = fresh_document(self.catalog, self.clock)
        self.persist()
        return self._document

    def normalize(self, raw: object) -> Document:
        return normalize_document(raw, self.catalog, self.clock)

    def persist(self, doc: Document | None = None) -> None:
        """Write the full document. Passing a document makes it the current one."""
        if doc is not None:
            self._document = doc
        self.write_raw(json.dumps(self.document.to_dict(), ensure_ascii=False))

    def replace(self, raw: object) -> Document:
        """Normalize `raw`, make it the current document and persist it."""
        self._document = self.normalize(raw)
        self.persist()
        return self._document

    def reset(self) -> Document:
        """Discard everything and start from defaults."""
        self._initialize()
        logger.info("Tracker document reset to defaults")
        return self._document

    # =========================================================================
    # Backup / Restore
    # =========================================================================

    def export_backup(self, path: Path | None = None) -> Path:
        """
        Write the full document as pretty-printed JSON.

        Args:
            path: Target file. Defaults to a dated file in the backup dir.

        Returns:
            Path of the written file
        """
        if path is None:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            today = self.clock.now().date().isoformat()
            path = self.backup_dir / f"instrument-tracker-backup-{today}.json"

        path = Path(path)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.document.to_dict(), f, indent=2, ensure_ascii=False)

        logger.info(f"Backup written to {path}")
        return path

    def import_backup(self, path: Path) -> Document:
        """
        Replace the current document with a previously exported one.

        Older schema versions are migrated. The current document is left
        untouched when the file cannot be read.

        Raises:
            BackupError: if the file is missing or not a JSON object
        """
        path = Path(path)
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise BackupError(f"Cannot read backup {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise BackupError(f"Backup {path.name} is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise BackupError(f"Backup {path.name} does not contain a tracker document")

        doc = self.replace(data)
        logger.info(f"Restored {len(doc.sessions)} sessions from {path.name}")
        return doc

    def list_backups(self) -> list[Path]:
        """List available backup files, newest first."""
        if not self.backup_dir.exists():
            return []
        return sorted(self.backup_dir.glob("instrument-tracker-backup-*.json"), reverse=True)

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
