"""
Tracker component - Outbound video clicks and inferred watch time.

Invariants:
- A return event always references a click emitted earlier by the same tracker
- Estimated watch percentage is within [0, 1]
- No return event for dwell below the minimum or past expiry
- The visibility listener is installed iff at least one tracker is pending
"""

from ._estimate import (
    duration_bucket,
    estimate_watch_percentage,
    nominal_duration_seconds,
    platform_factor,
    user_factor,
)
from ._impl import (
    DefaultTimePort,
    EventDispatcher,
    ExternalVideoTracker,
    FallbackQueue,
    InMemoryWatchHistory,
)
from .component import (
    build_tracker_config,
    create_http_tracker,
    create_local_tracker,
    create_tracker,
)
from .models import DurationBucket, PendingTracker, TrackerConfig, VisibilityState
from .ports import (
    CatalogPort,
    TimePort,
    TransportError,
    TransportPort,
    VisibilityListener,
    VisibilityPort,
    WatchHistoryPort,
)

__all__ = [
    # Entry points
    "create_tracker",
    "create_http_tracker",
    "create_local_tracker",
    "build_tracker_config",
    # Tracker
    "ExternalVideoTracker",
    "EventDispatcher",
    "FallbackQueue",
    "InMemoryWatchHistory",
    "DefaultTimePort",
    # Estimation
    "duration_bucket",
    "estimate_watch_percentage",
    "nominal_duration_seconds",
    "platform_factor",
    "user_factor",
    # Models
    "DurationBucket",
    "PendingTracker",
    "TrackerConfig",
    "VisibilityState",
    # Ports
    "CatalogPort",
    "TimePort",
    "TransportError",
    "TransportPort",
    "VisibilityListener",
    "VisibilityPort",
    "WatchHistoryPort",
]
