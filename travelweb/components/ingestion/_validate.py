"""
Validation of incoming tracking records.

Payloads arrive from several call sites with loosely shaped keys (camelCase
from browsers, snake_case from the Python tracker, legacy names from older
clients). They are normalised once here and turned into typed events; nothing
past this module sees a raw payload.

Key behaviors:
- camelCase keys are converted to snake_case; unknown keys are dropped
- Missing ids are generated; missing timestamps default to ingestion time
- Watch percentage must already be on the 0-1 scale; 0-100 values are rejected
"""

from __future__ import annotations

import math
import re
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from travelweb.domain.events import (
    ClickEvent,
    EventType,
    ReturnEvent,
    resolve_event_type,
    resolve_platform,
)

from .models import IngestionError, MalformedRecordError

# --- Key normalisation ---

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")

KEY_ALIASES: dict[str, str] = {
    "time_spent": "time_spent_ms",
    "time_spent_external": "time_spent_ms",
    "user_session": "session_id",
    "title": "video_title",
}

CLICK_FIELDS = frozenset(
    {
        "id",
        "video_id",
        "video_title",
        "platform",
        "click_time",
        "session_id",
        "user_id",
        "referrer",
        "user_agent",
    }
)

RETURN_FIELDS = frozenset(
    {
        "id",
        "click_id",
        "return_time",
        "time_spent_ms",
        "estimated_watch_percentage",
        "session_id",
        "user_id",
        "video_id",
        "platform",
    }
)

def to_snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"_\1", key).lower()


def normalize_keys(data: dict[str, Any], allowed: frozenset[str]) -> dict[str, Any]:
    """Convert keys to snake_case, apply aliases and drop unknown fields."""
    normalized: dict[str, Any] = {}
    for key, value in data.items():
        if not isinstance(key, str):
            continue
        snake = to_snake_case(key)
        snake = KEY_ALIASES.get(snake, snake)
        if snake in allowed and snake not in normalized:
            normalized[snake] = value
    return normalized


# --- Field validators ---


def validate_event_type(event_type: Any) -> tuple[EventType | None, list[IngestionError]]:
    """Resolve a wire event type (or legacy alias) to an EventType."""
    if not event_type or not isinstance(event_type, str):
        return None, [
            IngestionError(
                code="event_type_required",
                message="Event type is required",
                field_name="type",
            )
        ]

    resolved = resolve_event_type(event_type)
    if resolved is None:
        return None, [
            IngestionError(
                code="invalid_event_type",
                message=f"Event type '{event_type}' is not allowed",
                field_name="type",
            )
        ]
    return resolved, []


def parse_timestamp(
    value: Any,
    field_name: str,
    now: datetime,
) -> tuple[datetime | None, list[IngestionError]]:
    """Parse an ISO 8601 string or Unix timestamp; None means now."""
    if value is None:
        return now, []

    parsed: datetime | None = None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None, [
                IngestionError(
                    code="invalid_timestamp",
                    message=f"Field '{field_name}' must be ISO 8601 format",
                    field_name=field_name,
                )
            ]
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            # Unix timestamp (seconds or milliseconds)
            if value > 1e12:
                parsed = datetime.fromtimestamp(value / 1000, tz=UTC)
            else:
                parsed = datetime.fromtimestamp(value, tz=UTC)
        except (ValueError, OSError, OverflowError):
            return None, [
                IngestionError(
                    code="invalid_timestamp",
                    message=f"Field '{field_name}' is not a valid Unix timestamp",
                    field_name=field_name,
                )
            ]
    else:
        return None, [
            IngestionError(
                code="invalid_timestamp",
                message=f"Field '{field_name}' must be ISO string or Unix timestamp",
                field_name=field_name,
            )
        ]

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC), []


def _required_str(data: dict[str, Any], field_name: str) -> tuple[str | None, list[IngestionError]]:
    value = data.get(field_name)
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str) or not value.strip():
        return None, [
            IngestionError(
                code="field_required",
                message=f"Field '{field_name}' is required",
                field_name=field_name,
            )
        ]
    return value, []


def _optional_str(data: dict[str, Any], field_name: str) -> tuple[str | None, list[IngestionError]]:
    value = data.get(field_name)
    if value is None:
        return None, []
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value), []
    if not isinstance(value, str):
        return None, [
            IngestionError(
                code="invalid_type",
                message=f"Field '{field_name}' must be a string",
                field_name=field_name,
            )
        ]
    return value, []


def _number(data: dict[str, Any], field_name: str) -> tuple[float | None, list[IngestionError]]:
    value = data.get(field_name)
    if value is None:
        return None, [
            IngestionError(
                code="field_required",
                message=f"Field '{field_name}' is required",
                field_name=field_name,
            )
        ]
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return None, [
            IngestionError(
                code="invalid_number",
                message=f"Field '{field_name}' must be a finite number",
                field_name=field_name,
            )
        ]
    return float(value), []


# --- Event parsers ---


def parse_click(data: dict[str, Any], now: datetime) -> ClickEvent:
    """
    Validate a click payload and build a ClickEvent.

    Raises:
        MalformedRecordError: If any field is invalid
    """
    if not isinstance(data, dict):
        raise MalformedRecordError(
            [IngestionError(code="invalid_payload", message="Event data must be an object")]
        )

    fields = normalize_keys(data, CLICK_FIELDS)
    errors: list[IngestionError] = []

    video_id, errs = _required_str(fields, "video_id")
    errors.extend(errs)
    session_id, errs = _required_str(fields, "session_id")
    errors.extend(errs)
    click_time, errs = parse_timestamp(fields.get("click_time"), "click_time", now)
    errors.extend(errs)

    optional: dict[str, str | None] = {}
    for name in ("id", "video_title", "user_id", "referrer", "user_agent"):
        optional[name], errs = _optional_str(fields, name)
        errors.extend(errs)

    platform = fields.get("platform")
    if platform is not None and not isinstance(platform, str):
        errors.append(
            IngestionError(
                code="invalid_platform",
                message="Field 'platform' must be a string",
                field_name="platform",
            )
        )

    if errors:
        raise MalformedRecordError(errors)

    assert video_id is not None and session_id is not None and click_time is not None
    return ClickEvent(
        id=optional["id"] or uuid4().hex,
        video_id=video_id,
        platform=resolve_platform(platform),
        click_time=click_time,
        session_id=session_id,
        video_title=optional["video_title"] or "",
        user_id=optional["user_id"],
        referrer=optional["referrer"],
        user_agent=optional["user_agent"],
    )


def parse_return(data: dict[str, Any], now: datetime) -> ReturnEvent:
    """
    Validate a return payload and build a ReturnEvent.

    Raises:
        MalformedRecordError: If any field is invalid
    """
    if not isinstance(data, dict):
        raise MalformedRecordError(
            [IngestionError(code="invalid_payload", message="Event data must be an object")]
        )

    fields = normalize_keys(data, RETURN_FIELDS)
    errors: list[IngestionError] = []

    click_id, errs = _required_str(fields, "click_id")
    errors.extend(errs)
    session_id, errs = _required_str(fields, "session_id")
    errors.extend(errs)
    return_time, errs = parse_timestamp(fields.get("return_time"), "return_time", now)
    errors.extend(errs)

    time_spent, errs = _number(fields, "time_spent_ms")
    errors.extend(errs)
    if time_spent is not None and time_spent < 0:
        errors.append(
            IngestionError(
                code="negative_time_spent",
                message="Field 'time_spent_ms' cannot be negative",
                field_name="time_spent_ms",
            )
        )

    percentage, errs = _number(fields, "estimated_watch_percentage")
    errors.extend(errs)
    if percentage is not None and not 0.0 <= percentage <= 1.0:
        errors.append(
            IngestionError(
                code="percentage_out_of_range",
                message="Field 'estimated_watch_percentage' must be within [0, 1]",
                field_name="estimated_watch_percentage",
            )
        )

    optional: dict[str, str | None] = {}
    for name in ("id", "user_id", "video_id", "platform"):
        optional[name], errs = _optional_str(fields, name)
        errors.extend(errs)

    if errors:
        raise MalformedRecordError(errors)

    assert click_id is not None and session_id is not None and return_time is not None
    assert time_spent is not None and percentage is not None
    return ReturnEvent(
        id=optional["id"] or uuid4().hex,
        click_id=click_id,
        return_time=return_time,
        time_spent_ms=int(round(time_spent)),
        estimated_watch_percentage=percentage,
        session_id=session_id,
        user_id=optional["user_id"],
        video_id=optional["video_id"],
        platform=resolve_platform(optional["platform"]) if optional["platform"] else None,
    )


def parse_event(
    event_type: EventType,
    data: dict[str, Any],
    now: datetime,
) -> ClickEvent | ReturnEvent:
    if event_type == EventType.CLICK:
        return parse_click(data, now)
    return parse_return(data, now)
