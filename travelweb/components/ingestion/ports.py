"""
Ingestion component port definitions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from travelweb.core.ports.storage import SegmentStorePort

__all__ = ["SegmentStorePort", "TimePort"]


class TimePort(Protocol):
    """Time provider interface."""

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...
