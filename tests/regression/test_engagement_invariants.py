"""
Regression tests for engagement invariants.

These pin behaviour that downstream dashboards depend on: bounded
percentages and rates, no NaN in any output, and stable label thresholds.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

import pytest

from travelweb.adapters.visibility import VisibilitySignal
from travelweb.components.estimator import (
    CompletionEstimator,
    confidence_for,
    data_quality_for,
    safe_average,
    safe_rate,
)
from travelweb.components.ingestion import EventIngestionService, InMemorySegmentStore
from travelweb.components.tracker import create_tracker, estimate_watch_percentage
from travelweb.domain.events import Platform, TrackingEvent, VideoRef

NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=UTC)


class SteppedClock:
    def __init__(self) -> None:
        self.elapsed = 0.0

    def now_utc(self) -> datetime:
        return NOW + timedelta(seconds=self.elapsed)

    def monotonic(self) -> float:
        return self.elapsed


class CollectingTransport:
    def __init__(self) -> None:
        self.sent: list[TrackingEvent] = []

    async def send(self, events: Sequence[TrackingEvent]) -> None:
        self.sent.extend(events)


def run_dwell(seconds: float) -> list[TrackingEvent]:
    clock = SteppedClock()
    transport = CollectingTransport()
    visibility = VisibilitySignal()

    async def scenario() -> None:
        tracker = create_tracker(transport, visibility, time_port=clock)
        tracker.track_click(VideoRef(video_id="v1", platform=Platform.LONG_FORM))
        visibility.set_state("hidden")
        clock.elapsed += seconds
        visibility.set_state("visible")
        await tracker.close()

    asyncio.run(scenario())
    return transport.sent


class TestDwellBoundaries:
    """Minimum dwell is inclusive at 5000 ms."""

    def test_below_minimum_emits_click_only(self) -> None:
        sent = run_dwell(4.999)
        assert [e.event_type.value for e in sent] == ["click"]

    def test_exactly_minimum_emits_return(self) -> None:
        sent = run_dwell(5.0)
        assert [e.event_type.value for e in sent] == ["click", "return"]

    def test_return_references_its_click(self) -> None:
        click, ret = run_dwell(120)
        assert ret.click_id == click.id
        assert ret.time_spent_ms == 120000


class TestBoundedValues:
    @pytest.mark.parametrize("dwell_ms", [0, 1, 5000, 54000, 10**6, 10**9])
    @pytest.mark.parametrize("platform", list(Platform))
    def test_watch_percentage_within_unit_interval(self, dwell_ms: int, platform: Platform) -> None:
        for duration in (0, 15, 60, 300, 3600):
            pct = estimate_watch_percentage(dwell_ms, platform, duration)
            assert 0.0 <= pct <= 1.0

    @pytest.mark.parametrize(
        "num,den,expected",
        [(0, 0, 0.0), (5, 0, 0.0), (3, 4, 75.0), (9, 4, 100.0), (-1, 4, 0.0)],
    )
    def test_rates_within_percent_scale(self, num: float, den: float, expected: float) -> None:
        assert safe_rate(num, den) == expected

    def test_no_nan_from_guards(self) -> None:
        assert safe_rate(float("nan"), 1) == 0.0
        assert safe_average(0, 0) == 0.0


class TestLabelThresholds:
    @pytest.mark.parametrize(
        "samples,label", [(0, "low"), (19, "low"), (20, "medium"), (49, "medium"), (50, "high")]
    )
    def test_confidence(self, samples: int, label: str) -> None:
        assert confidence_for(samples) == label

    @pytest.mark.parametrize(
        "ratio,label",
        [(None, "no-data"), (0.0, "low"), (0.49, "low"), (0.5, "medium"), (0.8, "high"), (1.0, "high")],
    )
    def test_data_quality(self, ratio: float | None, label: str) -> None:
        assert data_quality_for(ratio) == label


class TestEmptyWindow:
    def test_every_number_is_finite(self) -> None:
        service = EventIngestionService(store=InMemorySegmentStore(), time_port=SteppedClock())
        estimator = CompletionEstimator(source=service, time_port=SteppedClock())

        stats = estimator.get_external_video_stats("90d").to_dict()
        estimates = estimator.get_completion_estimates("90d").to_dict()

        for value in (
            stats["return_rate"],
            stats["average_time_spent"],
            stats["estimated_completion_rate"],
            estimates["summary"]["average_completion_rate"],
        ):
            assert math.isfinite(value)
            assert value == 0.0
