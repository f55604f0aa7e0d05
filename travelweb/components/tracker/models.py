"""
Tracker component configuration and state models.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from travelweb.domain.events import Platform, VideoRef

DurationBucket = Literal["short", "medium", "long"]
VisibilityState = Literal["visible", "hidden"]


def _default_durations() -> dict[Platform, float]:
    return {
        Platform.SHORT_FORM: 60.0,
        Platform.LONG_FORM: 300.0,
        Platform.OTHER: 180.0,
    }


def _default_factors() -> dict[Platform, dict[str, float]]:
    return {
        Platform.LONG_FORM: {"short": 0.75, "medium": 0.45, "long": 0.25},
        Platform.SHORT_FORM: {"short": 0.85, "medium": 0.60, "long": 0.35},
        Platform.OTHER: {"short": 0.65, "medium": 0.35, "long": 0.20},
    }


@dataclass(frozen=True)
class TrackerConfig:
    """Interaction tracker configuration."""

    enabled: bool = True

    # Dwell window
    min_dwell_ms: int = 5000
    max_dwell_ms: int = 30 * 60 * 1000

    # Nominal durations and correction table
    default_durations_seconds: Mapping[Platform, float] = field(
        default_factory=_default_durations,
    )
    short_bucket_max_seconds: float = 60.0
    medium_bucket_max_seconds: float = 600.0
    platform_factors: Mapping[Platform, Mapping[str, float]] = field(
        default_factory=_default_factors,
    )

    # Per-visitor correction
    user_factor_min: float = 0.5
    user_factor_max: float = 1.5

    # Local fallback
    fallback_queue_size: int = 100


DEFAULT_CONFIG = TrackerConfig()


@dataclass
class PendingTracker:
    """An outbound click awaiting the visitor's return."""

    click_id: str
    video: VideoRef
    platform: Platform
    click_time: datetime
    started_at: float
    expiry: asyncio.TimerHandle | None = None
