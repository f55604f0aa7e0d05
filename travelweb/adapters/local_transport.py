"""
In-process Transport Adapter.

Delivers tracker events straight to an EventIngestionService in the same
process. Appends run in a worker thread so store I/O never blocks the loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from travelweb.components.ingestion import BatchEventInput, EventIngestionService
from travelweb.domain.events import TrackingEvent

logger = logging.getLogger(__name__)


class LocalIngestionTransport:
    """TransportPort backed by a local ingestion service."""

    def __init__(self, service: EventIngestionService) -> None:
        self._service = service

    async def send(self, events: Sequence[TrackingEvent]) -> None:
        batch = [BatchEventInput(type=e.event_type.value, data=e.to_record()) for e in events]
        results = await asyncio.to_thread(self._service.record_batch, batch)
        for event, result in zip(events, results):
            if not result.success:
                logger.warning(
                    "Ingestion rejected %s event %s: %s", result.type, event.id, result.error
                )
