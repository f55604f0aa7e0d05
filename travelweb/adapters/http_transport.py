"""
HTTP Transport Adapter.

Implements the tracker's TransportPort by posting event batches to the
ingestion endpoint.

Key behaviors:
- One POST per batch, body [{type, data}, ...]
- Network errors and non-2xx responses raise TransportError
- Per-event rejections inside a 2xx response are logged, not retried
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from travelweb.components.tracker.ports import TransportError
from travelweb.domain.events import TrackingEvent

logger = logging.getLogger(__name__)

EVENTS_PATH = "/api/analytics/external-videos/events"


def to_wire(events: Sequence[TrackingEvent]) -> list[dict[str, Any]]:
    return [{"type": e.event_type.value, "data": e.to_record()} for e in events]


class HttpTransport:
    """httpx implementation of TransportPort."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = base_url.rstrip("/") + EVENTS_PATH
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def timeout(self) -> httpx.Timeout:
        return self._client.timeout

    async def send(self, events: Sequence[TrackingEvent]) -> None:
        try:
            resp = await self._client.post(self._url, json=to_wire(events))
        except httpx.HTTPError as e:
            raise TransportError(f"POST {self._url} failed: {e}") from e

        if not resp.is_success:
            raise TransportError(f"POST {self._url} returned {resp.status_code}")

        try:
            results = resp.json()
        except ValueError:
            logger.warning("Ingestion returned a non-JSON body for %d event(s)", len(events))
            return

        if isinstance(results, list):
            for event, result in zip(events, results):
                if isinstance(result, dict) and not result.get("success", False):
                    logger.warning(
                        "Ingestion rejected %s event %s: %s",
                        event.event_type.value,
                        event.id,
                        result.get("error"),
                    )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
