"""
Tracker component port definitions.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol

from travelweb.core.ports.time import TimePort
from travelweb.domain.events import TrackingEvent

__all__ = [
    "CatalogPort",
    "TimePort",
    "TransportError",
    "TransportPort",
    "VisibilityListener",
    "VisibilityPort",
    "WatchHistoryPort",
]

VisibilityListener = Callable[[str], None]


class TransportError(Exception):
    """Raised when events could not be delivered to ingestion."""


class TransportPort(Protocol):
    """Delivers tracking events to the ingestion service."""

    async def send(self, events: Sequence[TrackingEvent]) -> None:
        """
        Deliver a batch of events.

        Raises:
            TransportError: If the batch was not accepted
        """
        ...


class VisibilityPort(Protocol):
    """Page visibility signal ("visible" / "hidden")."""

    def add_listener(self, listener: VisibilityListener) -> None:
        """Register a callback invoked with the new visibility state."""
        ...

    def remove_listener(self, listener: VisibilityListener) -> None:
        """Unregister a previously added callback."""
        ...


class WatchHistoryPort(Protocol):
    """Prior completion rates per visitor."""

    def get_completion_rates(self, visitor_key: str) -> list[float]:
        """Return prior watch percentages (0-1) for a visitor."""
        ...

    def record(self, visitor_key: str, watch_percentage: float) -> None:
        """Remember a newly estimated watch percentage."""
        ...


class CatalogPort(Protocol):
    """Video catalog lookup."""

    def get_duration_seconds(self, video_id: str) -> float | None:
        """Return the known video duration, or None."""
        ...
