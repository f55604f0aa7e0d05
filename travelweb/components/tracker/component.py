"""
Tracker component - Construction from rules.
"""

from __future__ import annotations

from travelweb.domain.events import Platform, resolve_platform
from travelweb.rules.models import TrackingRules

from ._impl import ExternalVideoTracker
from .models import DEFAULT_CONFIG, TrackerConfig
from .ports import (
    CatalogPort,
    TimePort,
    TransportPort,
    VisibilityPort,
    WatchHistoryPort,
)


def build_tracker_config(rules: TrackingRules | None) -> TrackerConfig:
    """Build tracker config from the tracking rules section."""
    if rules is None:
        return DEFAULT_CONFIG

    durations: dict[Platform, float] = dict(DEFAULT_CONFIG.default_durations_seconds)
    for name, seconds in rules.default_durations_seconds.items():
        durations[resolve_platform(name)] = seconds

    factors: dict[Platform, dict[str, float]] = {
        p: dict(f) for p, f in DEFAULT_CONFIG.platform_factors.items()
    }
    for name, f in rules.platform_factors.items():
        factors[resolve_platform(name)] = {"short": f.short, "medium": f.medium, "long": f.long}

    return TrackerConfig(
        enabled=rules.enabled,
        min_dwell_ms=rules.min_dwell_ms,
        max_dwell_ms=rules.max_dwell_ms,
        default_durations_seconds=durations,
        short_bucket_max_seconds=rules.duration_buckets.short_max_seconds,
        medium_bucket_max_seconds=rules.duration_buckets.medium_max_seconds,
        platform_factors=factors,
        user_factor_min=rules.user_factor.min,
        user_factor_max=rules.user_factor.max,
        fallback_queue_size=rules.fallback_queue_size,
    )


def create_tracker(
    transport: TransportPort,
    visibility: VisibilityPort,
    *,
    rules: TrackingRules | None = None,
    time_port: TimePort | None = None,
    history: WatchHistoryPort | None = None,
    catalog: CatalogPort | None = None,
    session_id: str | None = None,
    user_id: str | None = None,
) -> ExternalVideoTracker:
    """Create an ExternalVideoTracker."""
    return ExternalVideoTracker(
        transport,
        visibility,
        config=build_tracker_config(rules),
        time_port=time_port,
        history=history,
        catalog=catalog,
        session_id=session_id,
        user_id=user_id,
    )


def create_http_tracker(
    base_url: str,
    visibility: VisibilityPort | None = None,
    *,
    rules: TrackingRules | None = None,
    **kwargs,
) -> ExternalVideoTracker:
    """
    Create a tracker that posts events to a remote ingestion endpoint.

    The request timeout comes from rules.transport_timeout_seconds. Without a
    visibility port an in-process VisibilitySignal is used; the host drives it.
    """
    from travelweb.adapters.http_transport import HttpTransport
    from travelweb.adapters.visibility import VisibilitySignal

    timeout = (rules or TrackingRules()).transport_timeout_seconds
    return create_tracker(
        HttpTransport(base_url, timeout=timeout),
        visibility if visibility is not None else VisibilitySignal(),
        rules=rules,
        **kwargs,
    )


def create_local_tracker(
    service,
    visibility: VisibilityPort | None = None,
    *,
    rules: TrackingRules | None = None,
    **kwargs,
) -> ExternalVideoTracker:
    """Create a tracker that hands events to an in-process EventIngestionService."""
    from travelweb.adapters.local_transport import LocalIngestionTransport
    from travelweb.adapters.visibility import VisibilitySignal

    return create_tracker(
        LocalIngestionTransport(service),
        visibility if visibility is not None else VisibilitySignal(),
        rules=rules,
        **kwargs,
    )
