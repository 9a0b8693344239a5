"""
Exception hierarchy for the practice tracker.

- ValidationError: caller-supplied data was rejected (surfaced)
- CorruptStateError: persisted document could not be decoded (recovered by the store)
- BackupError: a backup file could not be imported (surfaced)

Nothing to pick is not an error: the scheduler returns None.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for tracker errors."""

    pass


class ValidationError(TrackerError):
    """Raised when caller input fails a required-field or range check."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class CorruptStateError(TrackerError):
    """Raised by the store decoder when the persisted document is unreadable."""

    pass


class BackupError(TrackerError):
    """Raised when a backup file is missing or is not a JSON document."""

    pass
