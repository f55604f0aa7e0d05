"""
EventIngestionService - Validated append into day-partitioned segments.

Click and return events are written to separate segments, one per UTC day of
ingestion. Reads over a time range resolve to the set of day segments that
actually exist.

Key behaviors:
- Segments are created lazily by the first append for that (type, day)
- A batch is processed event by event; one failure never aborts the rest
- No deduplication: a replayed event is appended again
- Missing segments read as empty; unreadable segments are skipped with a warning
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from typing import Any

from travelweb.core.ports.storage import MissingSegmentError, StorageError
from travelweb.domain.events import ClickEvent, EventType, ReturnEvent

from ._validate import parse_event, validate_event_type
from .models import BatchEventInput, BatchItemResult, MalformedRecordError, SegmentRef
from .ports import SegmentStorePort, TimePort

logger = logging.getLogger(__name__)

# --- Configuration ---

SEGMENT_NAMES: dict[EventType, str] = {
    EventType.CLICK: "external-video-clicks",
    EventType.RETURN: "external-video-returns",
}

RANGE_DAYS: dict[str, int] = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
}


@dataclass(frozen=True)
class IngestionConfig:
    """Event ingestion configuration."""

    segment_names: Mapping[EventType, str] = field(
        default_factory=lambda: dict(SEGMENT_NAMES),
    )
    range_days: Mapping[str, int] = field(default_factory=lambda: dict(RANGE_DAYS))
    default_range: str = "7d"
    max_range_days: int = 90


DEFAULT_CONFIG = IngestionConfig()


def resolve_time_range(time_range: str | None, config: IngestionConfig = DEFAULT_CONFIG) -> str:
    """The range token a query runs over; missing or unknown tokens use the default."""
    if time_range in config.range_days:
        return time_range
    if time_range:
        logger.warning("Unknown time range %r, falling back to %s", time_range, config.default_range)
    return config.default_range


def parse_time_range(time_range: str | None, config: IngestionConfig = DEFAULT_CONFIG) -> int:
    """Resolve a range token ("7d", "30d", "90d") to a day count."""
    days = config.range_days.get(resolve_time_range(time_range, config), RANGE_DAYS["7d"])
    return min(days, config.max_range_days)


# --- Default Implementations ---


class InMemorySegmentStore:
    """In-memory segment store for testing/dev."""

    def __init__(self) -> None:
        self._segments: dict[tuple[str, date], list[dict[str, Any]]] = {}

    def append(self, segment: str, day: date, record: dict[str, Any]) -> None:
        self._segments.setdefault((segment, day), []).append(dict(record))

    def exists(self, segment: str, day: date) -> bool:
        return (segment, day) in self._segments

    def read(self, segment: str, day: date) -> list[dict[str, Any]]:
        records = self._segments.get((segment, day))
        if records is None:
            raise MissingSegmentError(segment, day)
        return [dict(r) for r in records]

    def count(self, segment: str) -> int:
        """Count records across every day of a segment (for testing)."""
        return sum(len(v) for (name, _), v in self._segments.items() if name == segment)


class DefaultTimePort:
    """Default time provider."""

    def now_utc(self) -> datetime:
        return datetime.now(UTC)


# --- Event Ingestion Service ---


class EventIngestionService:
    """
    Tracking event ingestion service.

    Validates incoming payloads into typed events and appends them to the
    segment for their type and ingestion day.
    """

    def __init__(
        self,
        store: SegmentStorePort,
        time_port: TimePort | None = None,
        config: IngestionConfig | None = None,
    ) -> None:
        self._store = store
        self._time = time_port or DefaultTimePort()
        self._config = config or DEFAULT_CONFIG

    @property
    def config(self) -> IngestionConfig:
        return self._config

    def segment_name(self, event_type: EventType) -> str:
        return self._config.segment_names[event_type]

    def record_event(self, event_type: str | EventType, data: dict[str, Any]) -> ClickEvent | ReturnEvent:
        """
        Validate and append one event.

        Returns:
            The typed event as stored

        Raises:
            MalformedRecordError: If the type or payload is invalid
            StorageError: If the store rejects the append
        """
        resolved, errors = validate_event_type(
            event_type.value if isinstance(event_type, EventType) else event_type
        )
        if resolved is None:
            raise MalformedRecordError(errors)

        now = self._time.now_utc()
        event = parse_event(resolved, data, now)
        day = now.astimezone(UTC).date()

        self._store.append(self.segment_name(resolved), day, event.to_record())
        logger.debug("Recorded %s event %s into %s", resolved.value, event.id, day)
        return event

    def record_batch(self, events: Iterable[BatchEventInput]) -> list[BatchItemResult]:
        """
        Record each event independently.

        Returns one result per input, in input order.
        """
        results: list[BatchItemResult] = []
        for item in events:
            type_label = item.type if isinstance(item.type, str) else str(item.type)
            try:
                self.record_event(item.type, item.data)
            except MalformedRecordError as e:
                logger.debug("Rejected %s event: %s", type_label, e)
                results.append(BatchItemResult(success=False, type=type_label, error=str(e)))
            except StorageError as e:
                logger.warning("Failed to store %s event: %s", type_label, e)
                results.append(BatchItemResult(success=False, type=type_label, error=str(e)))
            else:
                results.append(BatchItemResult(success=True, type=type_label))
        return results

    def get_segments_in_range(
        self,
        time_range: str | None,
        event_type: EventType,
    ) -> list[SegmentRef]:
        """
        List existing day segments for the most recent N days, oldest first.

        Today (UTC) is included; days with no segment are skipped.
        """
        days = parse_time_range(time_range, self._config)
        today = self._time.now_utc().astimezone(UTC).date()
        segment = self.segment_name(event_type)

        refs: list[SegmentRef] = []
        for offset in range(days - 1, -1, -1):
            day = today - timedelta(days=offset)
            if self._store.exists(segment, day):
                refs.append(SegmentRef(event_type=event_type, day=day))
        return refs

    def load_records(self, segments: Iterable[SegmentRef]) -> list[dict[str, Any]]:
        """Read and merge the records of several segments."""
        records: list[dict[str, Any]] = []
        for ref in segments:
            segment = self.segment_name(ref.event_type)
            try:
                records.extend(self._store.read(segment, ref.day))
            except MissingSegmentError:
                logger.debug("Segment %s/%s vanished before read", segment, ref.day)
            except StorageError as e:
                logger.warning("Skipping unreadable segment %s/%s: %s", segment, ref.day, e)
        return records

    def load_range(self, time_range: str | None, event_type: EventType) -> list[dict[str, Any]]:
        return self.load_records(self.get_segments_in_range(time_range, event_type))


# --- Factory ---


def create_ingestion_service(
    store: SegmentStorePort | None = None,
    time_port: TimePort | None = None,
    config: IngestionConfig | None = None,
) -> EventIngestionService:
    """Create an EventIngestionService."""
    return EventIngestionService(
        store=store or InMemorySegmentStore(),
        time_port=time_port,
        config=config,
    )
