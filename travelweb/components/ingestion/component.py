"""
Ingestion component - Entry points for recording tracking events.
"""

from __future__ import annotations

import logging
from typing import Any

from travelweb.core.ports.storage import StorageError
from travelweb.domain.events import ClickEvent, ReturnEvent
from travelweb.rules.models import AggregationRules

from ._impl import DEFAULT_CONFIG, EventIngestionService, IngestionConfig
from .models import (
    IngestionError,
    MalformedRecordError,
    RecordBatchInput,
    RecordBatchOutput,
)
from .ports import SegmentStorePort, TimePort

logger = logging.getLogger(__name__)


def build_ingestion_config(rules: AggregationRules | None) -> IngestionConfig:
    """Build ingestion config from the aggregation rules section."""
    if rules is None:
        return DEFAULT_CONFIG
    return IngestionConfig(
        default_range=rules.default_range,
        max_range_days=rules.max_range_days,
    )


def _service(
    store: SegmentStorePort,
    time_port: TimePort | None,
    config: IngestionConfig | None,
) -> EventIngestionService:
    return EventIngestionService(store=store, time_port=time_port, config=config)


# --- Component Entry Points ---


def run_record_event(
    event_type: str,
    data: dict[str, Any],
    *,
    store: SegmentStorePort,
    time_port: TimePort | None = None,
    config: IngestionConfig | None = None,
) -> tuple[ClickEvent | ReturnEvent | None, list[IngestionError]]:
    """
    Record a single event.

    Returns:
        Tuple of (event, errors). Event is None if the record was rejected.
    """
    service = _service(store, time_port, config)
    try:
        return service.record_event(event_type, data), []
    except MalformedRecordError as e:
        return None, list(e.errors)
    except StorageError as e:
        logger.warning("Failed to store %s event: %s", event_type, e)
        return None, [IngestionError(code="storage_error", message=str(e))]


def run_record_batch(
    inp: RecordBatchInput,
    *,
    store: SegmentStorePort,
    time_port: TimePort | None = None,
    config: IngestionConfig | None = None,
) -> RecordBatchOutput:
    """
    Record a batch of events.

    Per-event failures are reported in results; the batch itself succeeds.
    """
    service = _service(store, time_port, config)
    results = tuple(service.record_batch(inp.events))
    accepted = sum(1 for r in results if r.success)
    return RecordBatchOutput(
        results=results,
        accepted=accepted,
        rejected=len(results) - accepted,
    )


def run(
    inp: RecordBatchInput,
    *,
    store: SegmentStorePort,
    time_port: TimePort | None = None,
    config: IngestionConfig | None = None,
) -> RecordBatchOutput:
    """Main entry point for the ingestion component."""
    return run_record_batch(inp, store=store, time_port=time_port, config=config)
