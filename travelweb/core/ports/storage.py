"""
Day-partitioned segment storage interface.

Each (segment name, UTC day) pair is a logical append-only segment.
Implementations: JSON-lines files, SQLite table, in-memory (tests).

Invariants:
- Records are appended, never rewritten or deleted
- Appends to the same segment are serialised by the implementation
- Reading a segment that was never written raises MissingSegmentError
"""

from __future__ import annotations

from datetime import date
from typing import Any, Protocol


class SegmentStorePort(Protocol):
    """
    Append/read primitives over day partitions.

    Records are plain JSON-compatible dicts; typing happens at the
    ingestion boundary, not in storage.
    """

    def append(self, segment: str, day: date, record: dict[str, Any]) -> None:
        """
        Append one record, creating the segment lazily on first write.

        Raises:
            StorageError: If the record could not be persisted
        """
        ...

    def exists(self, segment: str, day: date) -> bool:
        """Check whether a segment has been created."""
        ...

    def read(self, segment: str, day: date) -> list[dict[str, Any]]:
        """
        Read every record in a segment, in append order.

        Individually corrupt records are skipped by the implementation.

        Raises:
            MissingSegmentError: If the segment does not exist
            SegmentReadError: If the segment exists but cannot be read
        """
        ...


class StorageError(Exception):
    """Base class for storage errors."""


class MissingSegmentError(StorageError):
    """Raised when a requested day segment does not exist."""

    def __init__(self, segment: str, day: date) -> None:
        self.segment = segment
        self.day = day
        super().__init__(f"Segment not found: {segment}/{day.isoformat()}")


class SegmentReadError(StorageError):
    """Raised when an existing segment cannot be read."""

    def __init__(self, segment: str, day: date, reason: str) -> None:
        self.segment = segment
        self.day = day
        super().__init__(f"Segment unreadable: {segment}/{day.isoformat()}: {reason}")
