"""
Instrument Tracker: practice log and "what next?" recommender.

Components:
- Catalog: the fixed list of instruments and practice areas
- StateStore: SQLite persistence of the tracker document, with migration
- aggregator: rolling-window statistics (derived cache + reporting helpers)
- PracticeScheduler: priority scoring and next-item picking
- SessionLedger: session CRUD and history queries
- Tracker: coordinating facade used by the CLI
"""

from .catalog import Catalog, CatalogItem
from .clock import FixedClock, SystemClock
from .errors import BackupError, CorruptStateError, TrackerError, ValidationError
from .ledger import SessionInput, SessionLedger
from .models import Document, ItemState, SchedulerMemory, Session, TrackerSettings
from .normalize import normalize_document
from .scheduler import PracticeScheduler, ScoredItem, ScoringConfig
from .state_store import StateStore
from .tracker import Tracker

__all__ = [
    # Catalog
    "Catalog",
    "CatalogItem",
    # Time
    "FixedClock",
    "SystemClock",
    # Errors
    "TrackerError",
    "ValidationError",
    "CorruptStateError",
    "BackupError",
    # Document
    "Document",
    "ItemState",
    "SchedulerMemory",
    "Session",
    "TrackerSettings",
    "normalize_document",
    # Persistence
    "StateStore",
    # Ledger
    "SessionInput",
    "SessionLedger",
    # Scheduling
    "PracticeScheduler",
    "ScoredItem",
    "ScoringConfig",
    # Coordination
    "Tracker",
]
