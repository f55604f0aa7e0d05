"""
Ingestion component input/output models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Literal

from travelweb.domain.events import EventType

TimeRange = Literal["7d", "30d", "90d"]


# --- Validation Error ---


@dataclass(frozen=True)
class IngestionError:
    """A single validation failure on an incoming record."""

    code: str
    message: str
    field_name: str | None = None


class MalformedRecordError(ValueError):
    """Raised when an incoming record fails validation."""

    def __init__(self, errors: list[IngestionError]) -> None:
        self.errors = errors
        super().__init__("; ".join(e.message for e in errors) or "Malformed record")


# --- Segments ---


@dataclass(frozen=True)
class SegmentRef:
    """One (event type, UTC day) partition."""

    event_type: EventType
    day: date


# --- Input Models ---


@dataclass(frozen=True)
class BatchEventInput:
    """One entry of an ingestion batch: {type, data}."""

    type: str
    data: dict[str, Any]


@dataclass(frozen=True)
class RecordBatchInput:
    """Input for ingesting a batch of tracking events."""

    events: tuple[BatchEventInput, ...]


# --- Output Models ---


@dataclass(frozen=True)
class BatchItemResult:
    """Per-event outcome inside a batch."""

    success: bool
    type: str
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success, "type": self.type}
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass(frozen=True)
class RecordBatchOutput:
    """Output for a batch ingestion; success is True even with per-event failures."""

    results: tuple[BatchItemResult, ...]
    accepted: int
    rejected: int
    errors: list[IngestionError] = field(default_factory=list)
    success: bool = True
