"""
Ingestion component - Validated append into the partitioned log store.

Invariants:
- Events are appended once and never mutated or deleted
- Segment key is (event type, UTC day of ingestion)
- Watch percentages above 1 are rejected, never rescaled
- Replayed events are stored again (no deduplication)
"""

from ._impl import (
    RANGE_DAYS,
    SEGMENT_NAMES,
    DefaultTimePort,
    EventIngestionService,
    IngestionConfig,
    InMemorySegmentStore,
    create_ingestion_service,
    parse_time_range,
    resolve_time_range,
)
from ._validate import (
    normalize_keys,
    parse_click,
    parse_event,
    parse_return,
    parse_timestamp,
    validate_event_type,
)
from .component import build_ingestion_config, run, run_record_batch, run_record_event
from .models import (
    BatchEventInput,
    BatchItemResult,
    IngestionError,
    MalformedRecordError,
    RecordBatchInput,
    RecordBatchOutput,
    SegmentRef,
    TimeRange,
)
from .ports import SegmentStorePort, TimePort

__all__ = [
    # Entry points
    "run",
    "run_record_batch",
    "run_record_event",
    "build_ingestion_config",
    # Service
    "EventIngestionService",
    "IngestionConfig",
    "InMemorySegmentStore",
    "DefaultTimePort",
    "create_ingestion_service",
    "parse_time_range",
    "resolve_time_range",
    "RANGE_DAYS",
    "SEGMENT_NAMES",
    # Validation
    "normalize_keys",
    "parse_click",
    "parse_event",
    "parse_return",
    "parse_timestamp",
    "validate_event_type",
    # Models
    "BatchEventInput",
    "BatchItemResult",
    "IngestionError",
    "MalformedRecordError",
    "RecordBatchInput",
    "RecordBatchOutput",
    "SegmentRef",
    "TimeRange",
    # Ports
    "SegmentStorePort",
    "TimePort",
]
