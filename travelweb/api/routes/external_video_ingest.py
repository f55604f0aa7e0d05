"""
External Video Ingestion API Routes.

Public endpoints the tracker (or a browser client) posts events to.

Key behaviors:
- Batch endpoint never fails as a whole; each event gets its own result
- Single-event endpoints answer 400 with error detail for malformed input
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel

from travelweb.api.deps import get_ingestion_service
from travelweb.components.ingestion import (
    BatchEventInput,
    EventIngestionService,
    MalformedRecordError,
)
from travelweb.core.ports.storage import StorageError

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Request/Response Models ---


class BatchResultResponse(BaseModel):
    """Per-event batch result."""

    success: bool
    type: str
    error: str | None = None


class RecordedResponse(BaseModel):
    """Single-event success response."""

    success: bool = True
    id: str
    timestamp: str


# --- Helpers ---


def _to_batch_input(item: Any) -> BatchEventInput:
    if not isinstance(item, dict):
        return BatchEventInput(type="", data={})
    event_type = item.get("type")
    return BatchEventInput(
        type=event_type if isinstance(event_type, str) else "",
        data=item.get("data"),  # type: ignore[arg-type]
    )


def _record_single(
    service: EventIngestionService,
    event_type: str,
    data: dict[str, Any],
) -> RecordedResponse:
    try:
        event = service.record_event(event_type, data)
    except MalformedRecordError as e:
        raise HTTPException(
            status_code=400,
            detail={
                "success": False,
                "errors": [
                    {
                        "code": err.code,
                        "message": err.message,
                        "field": err.field_name,
                    }
                    for err in e.errors
                ],
            },
        ) from e
    except StorageError as e:
        logger.warning("Failed to store %s event: %s", event_type, e)
        raise HTTPException(status_code=503, detail="Event storage unavailable") from e

    return RecordedResponse(id=event.id, timestamp=datetime.now(UTC).isoformat())


# --- Routes ---


@router.post(
    "/external-videos/events",
    response_model=list[BatchResultResponse],
    response_model_exclude_none=True,
)
def ingest_batch(
    events: list[Any] = Body(...),
    service: EventIngestionService = Depends(get_ingestion_service),
) -> list[BatchResultResponse]:
    """
    Ingest a batch of click/return events.

    Body: [{"type": "click" | "return", "data": {...}}, ...]
    Returns one result per event, in order.
    """
    results = service.record_batch([_to_batch_input(item) for item in events])
    accepted = sum(1 for r in results if r.success)
    logger.info("Batch ingested: %d accepted, %d rejected", accepted, len(results) - accepted)
    return [BatchResultResponse(**r.to_dict()) for r in results]


@router.post(
    "/external-video-click",
    response_model=RecordedResponse,
    responses={400: {"description": "Malformed click"}},
)
def record_click(
    body: dict[str, Any] = Body(...),
    service: EventIngestionService = Depends(get_ingestion_service),
) -> RecordedResponse:
    """Record one outbound click."""
    return _record_single(service, "click", body)


@router.post(
    "/external-video-return",
    response_model=RecordedResponse,
    responses={400: {"description": "Malformed return"}},
)
def record_return(
    body: dict[str, Any] = Body(...),
    service: EventIngestionService = Depends(get_ingestion_service),
) -> RecordedResponse:
    """Record one visitor return."""
    return _record_single(service, "return", body)
