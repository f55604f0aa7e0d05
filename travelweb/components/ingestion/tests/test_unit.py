"""
Unit tests for the Ingestion component.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from typing import Any

import pytest

from travelweb.core.ports.storage import MissingSegmentError, SegmentReadError, StorageError
from travelweb.domain.events import ClickEvent, EventType, Platform, ReturnEvent
from travelweb.rules.models import AggregationRules

from .._impl import (
    EventIngestionService,
    IngestionConfig,
    InMemorySegmentStore,
    parse_time_range,
    resolve_time_range,
)
from .._validate import RETURN_FIELDS, normalize_keys, parse_timestamp, validate_event_type
from ..component import build_ingestion_config, run_record_batch, run_record_event
from ..models import BatchEventInput, MalformedRecordError, RecordBatchInput, SegmentRef

# --- Test Fixtures ---

NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=UTC)


class FakeTimePort:
    """Fake time port for testing."""

    def __init__(self, fixed_time: datetime | None = None):
        self._now = fixed_time or NOW

    def now_utc(self) -> datetime:
        return self._now

    def advance(self, **kwargs: Any) -> None:
        self._now = self._now + timedelta(**kwargs)


class FailingStore(InMemorySegmentStore):
    """Store whose appends always fail."""

    def append(self, segment: str, day: date, record: dict[str, Any]) -> None:
        raise StorageError("disk full")


class UnreadableStore(InMemorySegmentStore):
    """Store where one day cannot be read."""

    def __init__(self, bad_day: date):
        super().__init__()
        self._bad_day = bad_day

    def read(self, segment: str, day: date) -> list[dict[str, Any]]:
        if day == self._bad_day:
            raise SegmentReadError(segment, day, "permission denied")
        return super().read(segment, day)


def click_data(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "videoId": "v1",
        "videoTitle": "Lisbon in 60 seconds",
        "platform": "tiktok",
        "sessionId": "s1",
    }
    data.update(overrides)
    return data


def return_data(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "clickId": "c1",
        "timeSpent": 45000,
        "estimatedWatchPercentage": 0.765,
        "sessionId": "s1",
    }
    data.update(overrides)
    return data


@pytest.fixture
def time_port() -> FakeTimePort:
    return FakeTimePort()


@pytest.fixture
def store() -> InMemorySegmentStore:
    return InMemorySegmentStore()


@pytest.fixture
def service(store: InMemorySegmentStore, time_port: FakeTimePort) -> EventIngestionService:
    return EventIngestionService(store=store, time_port=time_port)


# --- Key Normalisation ---


class TestNormalizeKeys:
    """Tests for payload key normalisation."""

    def test_camel_case_converted(self):
        result = normalize_keys({"clickId": "c1", "sessionId": "s1"}, RETURN_FIELDS)
        assert result == {"click_id": "c1", "session_id": "s1"}

    def test_time_spent_aliases(self):
        assert normalize_keys({"timeSpent": 5}, RETURN_FIELDS) == {"time_spent_ms": 5}
        assert normalize_keys({"timeSpentExternal": 7}, RETURN_FIELDS) == {"time_spent_ms": 7}

    def test_unknown_keys_dropped(self):
        result = normalize_keys({"clickId": "c1", "ipAddress": "1.2.3.4"}, RETURN_FIELDS)
        assert "ip_address" not in result


class TestEventTypeValidation:
    """Tests for wire event type resolution."""

    @pytest.mark.parametrize(
        "wire,expected",
        [
            ("click", EventType.CLICK),
            ("external-video-click", EventType.CLICK),
            ("external_click", EventType.CLICK),
            ("return", EventType.RETURN),
            ("external-video-return", EventType.RETURN),
            ("user_return", EventType.RETURN),
        ],
    )
    def test_aliases_resolved(self, wire: str, expected: EventType):
        resolved, errors = validate_event_type(wire)
        assert errors == []
        assert resolved == expected

    def test_unknown_type_rejected(self):
        resolved, errors = validate_event_type("page_view")
        assert resolved is None
        assert errors[0].code == "invalid_event_type"

    def test_missing_type_rejected(self):
        resolved, errors = validate_event_type(None)
        assert resolved is None
        assert errors[0].code == "event_type_required"


class TestTimestampParsing:
    """Tests for timestamp parsing."""

    def test_missing_defaults_to_now(self):
        ts, errors = parse_timestamp(None, "click_time", NOW)
        assert ts == NOW
        assert errors == []

    def test_iso_with_z_suffix(self):
        ts, errors = parse_timestamp("2026-10-18T10:00:00Z", "click_time", NOW)
        assert ts == datetime(2026, 10, 18, 10, 0, 0, tzinfo=UTC)
        assert errors == []

    def test_epoch_milliseconds(self):
        ms = int(NOW.timestamp() * 1000)
        ts, errors = parse_timestamp(ms, "click_time", NOW)
        assert ts == NOW
        assert errors == []

    def test_garbage_rejected(self):
        ts, errors = parse_timestamp("yesterday", "click_time", NOW)
        assert ts is None
        assert errors[0].code == "invalid_timestamp"


# --- record_event ---


class TestRecordEvent:
    """Tests for single-event recording."""

    def test_click_appended_to_today_segment(self, service, store):
        event = service.record_event("click", click_data())

        assert isinstance(event, ClickEvent)
        assert event.platform == Platform.SHORT_FORM
        assert event.video_id == "v1"
        assert event.click_time == NOW
        records = store.read("external-video-clicks", NOW.date())
        assert len(records) == 1
        assert records[0]["platform"] == "short_form"

    def test_generated_id_when_missing(self, service):
        event = service.record_event("click", click_data())
        assert event.id

    def test_numeric_video_id_accepted(self, service):
        event = service.record_event("click", click_data(videoId=42))
        assert event.video_id == "42"

    def test_return_appended_to_return_segment(self, service, store):
        event = service.record_event("return", return_data())

        assert isinstance(event, ReturnEvent)
        assert event.time_spent_ms == 45000
        assert event.estimated_watch_percentage == pytest.approx(0.765)
        assert store.exists("external-video-returns", NOW.date())
        assert not store.exists("external-video-clicks", NOW.date())

    def test_percentage_above_one_rejected(self, service, store):
        with pytest.raises(MalformedRecordError) as exc_info:
            service.record_event("return", return_data(estimatedWatchPercentage=76.5))

        assert exc_info.value.errors[0].code == "percentage_out_of_range"
        assert not store.exists("external-video-returns", NOW.date())

    def test_negative_time_spent_rejected(self, service):
        with pytest.raises(MalformedRecordError):
            service.record_event("return", return_data(timeSpent=-1))

    def test_nan_percentage_rejected(self, service):
        with pytest.raises(MalformedRecordError):
            service.record_event("return", return_data(estimatedWatchPercentage=float("nan")))

    def test_boolean_time_spent_rejected(self, service):
        with pytest.raises(MalformedRecordError):
            service.record_event("return", return_data(timeSpent=True))

    def test_click_without_video_id_rejected(self, service):
        data = click_data()
        del data["videoId"]
        with pytest.raises(MalformedRecordError) as exc_info:
            service.record_event("click", data)
        assert exc_info.value.errors[0].field_name == "video_id"

    def test_unknown_type_rejected(self, service):
        with pytest.raises(MalformedRecordError):
            service.record_event("page_view", click_data())

    def test_day_partition_follows_ingestion_clock(self, service, store, time_port):
        service.record_event("click", click_data())
        time_port.advance(days=1)
        service.record_event("click", click_data())

        assert len(store.read("external-video-clicks", NOW.date())) == 1
        assert len(store.read("external-video-clicks", NOW.date() + timedelta(days=1))) == 1

    def test_replay_is_not_deduplicated(self, service, store):
        data = click_data(id="c1")
        service.record_event("click", data)
        service.record_event("click", data)

        assert store.count("external-video-clicks") == 2


# --- record_batch ---


class TestRecordBatch:
    """Tests for batch recording."""

    def test_results_match_input_length_and_order(self, service):
        results = service.record_batch(
            [
                BatchEventInput(type="click", data=click_data()),
                BatchEventInput(type="return", data=return_data(estimatedWatchPercentage=2)),
                BatchEventInput(type="bogus", data={}),
                BatchEventInput(type="external-video-return", data=return_data()),
            ]
        )

        assert [r.success for r in results] == [True, False, False, True]
        assert [r.type for r in results] == [
            "click",
            "return",
            "bogus",
            "external-video-return",
        ]
        assert results[1].error
        assert "error" not in results[0].to_dict()

    def test_empty_batch(self, service):
        assert service.record_batch([]) == []

    def test_storage_failure_is_per_event(self, time_port):
        service = EventIngestionService(store=FailingStore(), time_port=time_port)
        results = service.record_batch([BatchEventInput(type="click", data=click_data())])

        assert results[0].success is False
        assert "disk full" in (results[0].error or "")

    def test_run_record_batch_counts(self, store, time_port):
        output = run_record_batch(
            RecordBatchInput(
                events=(
                    BatchEventInput(type="click", data=click_data()),
                    BatchEventInput(type="click", data={}),
                )
            ),
            store=store,
            time_port=time_port,
        )

        assert output.success is True
        assert output.accepted == 1
        assert output.rejected == 1
        assert len(output.results) == 2

    def test_run_record_event_returns_errors(self, store, time_port):
        event, errors = run_record_event("return", {}, store=store, time_port=time_port)

        assert event is None
        assert {e.field_name for e in errors} >= {"click_id", "session_id"}


# --- Segment ranges ---


class TestSegmentsInRange:
    """Tests for range-to-segment resolution."""

    def test_unknown_range_falls_back_to_seven_days(self):
        assert parse_time_range("1y") == 7
        assert parse_time_range(None) == 7

    def test_known_ranges(self):
        assert parse_time_range("7d") == 7
        assert parse_time_range("30d") == 30
        assert parse_time_range("90d") == 90

    def test_max_range_caps_days(self):
        assert parse_time_range("90d", IngestionConfig(max_range_days=30)) == 30

    def test_configured_default_range(self):
        config = IngestionConfig(default_range="30d")

        assert resolve_time_range(None, config) == "30d"
        assert resolve_time_range("1y", config) == "30d"
        assert resolve_time_range("90d", config) == "90d"
        assert parse_time_range(None, config) == 30

    def test_config_from_aggregation_rules(self):
        config = build_ingestion_config(AggregationRules(default_range="90d", max_range_days=60))

        assert config.default_range == "90d"
        assert config.max_range_days == 60
        assert parse_time_range(None, config) == 60
        assert build_ingestion_config(None) == IngestionConfig()

    def test_only_existing_days_returned(self, service, time_port):
        # Segments today, 3 days ago and 10 days ago
        for days_ago in (10, 3, 0):
            time_port._now = NOW - timedelta(days=days_ago)
            service.record_event("click", click_data())
        time_port._now = NOW

        segments = service.get_segments_in_range("7d", EventType.CLICK)

        assert segments == [
            SegmentRef(event_type=EventType.CLICK, day=(NOW - timedelta(days=3)).date()),
            SegmentRef(event_type=EventType.CLICK, day=NOW.date()),
        ]
        assert len(service.get_segments_in_range("30d", EventType.CLICK)) == 3

    def test_boundary_day_included(self, service, time_port):
        time_port._now = NOW - timedelta(days=6)
        service.record_event("click", click_data())
        time_port._now = NOW - timedelta(days=7)
        service.record_event("click", click_data())
        time_port._now = NOW

        days = [s.day for s in service.get_segments_in_range("7d", EventType.CLICK)]

        assert days == [(NOW - timedelta(days=6)).date()]

    def test_empty_store_yields_no_segments(self, service):
        assert service.get_segments_in_range("90d", EventType.RETURN) == []


class TestLoadRecords:
    """Tests for merging segment records."""

    def test_merges_segments(self, service, time_port):
        service.record_event("click", click_data(videoId="a"))
        time_port.advance(days=1)
        service.record_event("click", click_data(videoId="b"))

        records = service.load_range("7d", EventType.CLICK)

        assert [r["video_id"] for r in records] == ["a", "b"]

    def test_missing_segment_contributes_nothing(self, service):
        ref = SegmentRef(event_type=EventType.CLICK, day=date(2020, 1, 1))
        assert service.load_records([ref]) == []

    def test_unreadable_segment_skipped(self, time_port):
        bad_day = NOW.date() - timedelta(days=1)
        store = UnreadableStore(bad_day)
        store.append("external-video-clicks", bad_day, {"video_id": "x"})
        store.append("external-video-clicks", NOW.date(), {"video_id": "y"})
        service = EventIngestionService(store=store, time_port=time_port)

        records = service.load_range("7d", EventType.CLICK)

        assert records == [{"video_id": "y"}]


class TestInMemorySegmentStore:
    """Tests for the in-memory store."""

    def test_read_missing_raises(self, store):
        with pytest.raises(MissingSegmentError):
            store.read("external-video-clicks", NOW.date())

    def test_read_returns_copies(self, store):
        store.append("s", NOW.date(), {"a": 1})
        store.read("s", NOW.date())[0]["a"] = 2
        assert store.read("s", NOW.date()) == [{"a": 1}]
