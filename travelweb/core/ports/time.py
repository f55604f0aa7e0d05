"""
Time provider interface.

All stored timestamps are UTC. Dwell measurement uses a monotonic clock so
wall-clock adjustments never produce negative durations.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class TimePort(Protocol):
    """Time provider interface."""

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...

    def monotonic(self) -> float:
        """Get a monotonic reading in seconds."""
        ...
