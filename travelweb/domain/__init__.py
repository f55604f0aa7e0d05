from travelweb.domain.events import (
    EVENT_TYPE_ALIASES,
    PLATFORM_ALIASES,
    ClickEvent,
    EventType,
    Platform,
    ReturnEvent,
    TrackingEvent,
    VideoRef,
    resolve_event_type,
    resolve_platform,
)

__all__ = [
    "EVENT_TYPE_ALIASES",
    "PLATFORM_ALIASES",
    "ClickEvent",
    "EventType",
    "Platform",
    "ReturnEvent",
    "TrackingEvent",
    "VideoRef",
    "resolve_event_type",
    "resolve_platform",
]
