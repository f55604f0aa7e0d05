"""
Tracking domain events for external video engagement.

Click and return events are immutable once recorded. Watch percentages live on
a 0-1 scale; aggregate rates (computed elsewhere) live on a 0-100 scale.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

# --- Enums ---


class EventType(str, Enum):
    """Tracking event types."""

    CLICK = "click"
    RETURN = "return"


# Wire names, including those sent by older clients
EVENT_TYPE_ALIASES: dict[str, EventType] = {
    "click": EventType.CLICK,
    "external-video-click": EventType.CLICK,
    "external_click": EventType.CLICK,
    "return": EventType.RETURN,
    "external-video-return": EventType.RETURN,
    "external_return": EventType.RETURN,
    "user_return": EventType.RETURN,
}


def resolve_event_type(value: str | EventType | None) -> EventType | None:
    """Map an event type name or legacy alias to an EventType; None if unknown."""
    if isinstance(value, EventType):
        return value
    if not isinstance(value, str):
        return None
    return EVENT_TYPE_ALIASES.get(value.strip().lower())


class Platform(str, Enum):
    """External hosting platform families."""

    SHORT_FORM = "short_form"
    LONG_FORM = "long_form"
    OTHER = "other"


PLATFORM_ALIASES: dict[str, Platform] = {
    "short_form": Platform.SHORT_FORM,
    "short-form": Platform.SHORT_FORM,
    "tiktok": Platform.SHORT_FORM,
    "long_form": Platform.LONG_FORM,
    "long-form": Platform.LONG_FORM,
    "youtube": Platform.LONG_FORM,
    "other": Platform.OTHER,
}


def resolve_platform(value: str | Platform | None) -> Platform:
    """Map a platform name or alias to a Platform; unknown names map to OTHER."""
    if isinstance(value, Platform):
        return value
    if not value:
        return Platform.OTHER
    return PLATFORM_ALIASES.get(value.strip().lower(), Platform.OTHER)


# --- Catalog Reference ---


@dataclass(frozen=True)
class VideoRef:
    """A catalog video as seen by the tracker."""

    video_id: str
    title: str = ""
    platform: Platform = Platform.OTHER
    duration_seconds: float | None = None


# --- Events ---


@dataclass(frozen=True)
class ClickEvent:
    """Outbound click on an externally hosted video."""

    id: str
    video_id: str
    platform: Platform
    click_time: datetime
    session_id: str
    video_title: str = ""
    user_id: str | None = None
    referrer: str | None = None
    user_agent: str | None = None

    event_type: ClassVar[EventType] = EventType.CLICK

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "video_id": self.video_id,
            "video_title": self.video_title,
            "platform": self.platform.value,
            "click_time": self.click_time.isoformat(),
            "session_id": self.session_id,
            "user_id": self.user_id,
            "referrer": self.referrer,
            "user_agent": self.user_agent,
        }


@dataclass(frozen=True)
class ReturnEvent:
    """
    Visitor return after an outbound click.

    video_id and platform are denormalised from the click so a return can be
    attributed even when its click falls outside an aggregation window.
    """

    id: str
    click_id: str
    return_time: datetime
    time_spent_ms: int
    estimated_watch_percentage: float
    session_id: str
    user_id: str | None = None
    video_id: str | None = None
    platform: Platform | None = None

    event_type: ClassVar[EventType] = EventType.RETURN

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "click_id": self.click_id,
            "return_time": self.return_time.isoformat(),
            "time_spent_ms": self.time_spent_ms,
            "estimated_watch_percentage": self.estimated_watch_percentage,
            "session_id": self.session_id,
            "user_id": self.user_id,
            "video_id": self.video_id,
            "platform": self.platform.value if self.platform else None,
        }


TrackingEvent = ClickEvent | ReturnEvent
