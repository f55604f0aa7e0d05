"""
Estimator component port definitions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from travelweb.domain.events import EventType


class RecordSourcePort(Protocol):
    """Read access to stored tracking records over a time range."""

    def load_range(self, time_range: str | None, event_type: EventType) -> list[dict[str, Any]]:
        """
        Load raw records of one event type for a range token.

        Missing days contribute nothing; this never raises for absent data.
        """
        ...


class TimePort(Protocol):
    """Time provider interface."""

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...
