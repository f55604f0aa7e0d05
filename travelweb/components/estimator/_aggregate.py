"""
CompletionEstimator - Window aggregation and completion-rate estimation.

Reads click and return records for a window, attributes each return to a
video, and derives rates plus confidence and data-quality labels.

Key behaviors:
- Records are parsed leniently; invalid ones are skipped with a warning
- A return is attributed through its click_id, falling back to its own video_id
- Returns not strictly after their click are skipped
- Returns for videos with no click in the window are not counted
- Zero denominators yield 0; rates are clamped to [0, 100]
- Never raises on missing or partial data
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from travelweb.components.ingestion import MalformedRecordError, parse_click, parse_return
from travelweb.domain.events import ClickEvent, EventType, Platform, ReturnEvent, resolve_platform

from .models import (
    CompletionEstimate,
    CompletionEstimates,
    Confidence,
    DataQuality,
    EstimatesSummary,
    ExternalVideoStats,
    PlatformStats,
    VideoStats,
)
from .ports import RecordSourcePort, TimePort

logger = logging.getLogger(__name__)


# --- Configuration ---


@dataclass(frozen=True)
class EstimatorConfig:
    """Aggregation configuration."""

    completion_threshold: float = 0.90
    top_videos_limit: int = 10

    # Confidence on sample size (returns)
    high_confidence_min_samples: int = 50
    medium_confidence_min_samples: int = 20

    # Data quality on completeness ratio
    high_quality_min_ratio: float = 0.8
    medium_quality_min_ratio: float = 0.5


DEFAULT_CONFIG = EstimatorConfig()


# --- Division guard ---


class DivisionGuardError(ArithmeticError):
    """Raised internally for a zero or non-finite denominator."""


def _guarded_divide(numerator: float, denominator: float) -> float:
    if denominator == 0 or not math.isfinite(denominator):
        raise DivisionGuardError(f"cannot divide {numerator} by {denominator}")
    result = numerator / denominator
    if not math.isfinite(result):
        raise DivisionGuardError(f"non-finite result for {numerator}/{denominator}")
    return result


def safe_rate(numerator: float, denominator: float) -> float:
    """numerator / denominator x 100, clamped to [0, 100]; 0 when undefined."""
    try:
        rate = _guarded_divide(numerator * 100, denominator)
    except DivisionGuardError:
        return 0.0
    return max(0.0, min(100.0, rate))


def safe_average(total: float, count: int) -> float:
    """Mean of count values summing to total; 0 when count is 0."""
    try:
        return _guarded_divide(total, count)
    except DivisionGuardError:
        return 0.0


# --- Labels ---


def confidence_for(sample_size: int, config: EstimatorConfig = DEFAULT_CONFIG) -> Confidence:
    """Confidence label from the number of returns."""
    if sample_size >= config.high_confidence_min_samples:
        return "high"
    if sample_size >= config.medium_confidence_min_samples:
        return "medium"
    return "low"


def completeness_ratio(returns: Iterable[ReturnEvent]) -> float | None:
    """Fraction of returns with both time spent and watch percentage; None if empty."""
    items = list(returns)
    if not items:
        return None
    complete = sum(
        1 for r in items if r.time_spent_ms > 0 and r.estimated_watch_percentage > 0
    )
    return complete / len(items)


def data_quality_for(ratio: float | None, config: EstimatorConfig = DEFAULT_CONFIG) -> DataQuality:
    """Data-quality label from the completeness ratio."""
    if ratio is None:
        return "no-data"
    if ratio >= config.high_quality_min_ratio:
        return "high"
    if ratio >= config.medium_quality_min_ratio:
        return "medium"
    return "low"


def assess_data_quality(
    returns: Iterable[ReturnEvent],
    config: EstimatorConfig = DEFAULT_CONFIG,
) -> DataQuality:
    return data_quality_for(completeness_ratio(returns), config)


# --- Record parsing ---


def parse_clicks(records: Iterable[dict[str, Any]], now: datetime) -> list[ClickEvent]:
    clicks: list[ClickEvent] = []
    for record in records:
        try:
            clicks.append(parse_click(record, now))
        except MalformedRecordError as e:
            logger.warning("Skipping invalid click record %s: %s", record.get("id"), e)
    return clicks


def parse_returns(records: Iterable[dict[str, Any]], now: datetime) -> list[ReturnEvent]:
    returns: list[ReturnEvent] = []
    for record in records:
        try:
            returns.append(parse_return(record, now))
        except MalformedRecordError as e:
            logger.warning("Skipping invalid return record %s: %s", record.get("id"), e)
    return returns


# --- Grouping ---


@dataclass
class _Group:
    """Mutable accumulator for one video or platform."""

    key: str
    title: str = ""
    platform: str = Platform.OTHER.value
    clicks: int = 0
    returns: list[ReturnEvent] = field(default_factory=list)

    @property
    def total_time_spent(self) -> int:
        return sum(r.time_spent_ms for r in self.returns)

    def completions(self, threshold: float) -> int:
        return sum(1 for r in self.returns if r.estimated_watch_percentage >= threshold)


@dataclass
class _Window:
    """Clicks and attributed returns for one window."""

    videos: dict[str, _Group]
    platforms: dict[str, _Group]
    returns: list[ReturnEvent]
    total_clicks: int


def attribute(clicks: list[ClickEvent], returns: list[ReturnEvent]) -> _Window:
    """Group clicks by video and platform and attach each return to its video."""
    videos: dict[str, _Group] = {}
    platforms: dict[str, _Group] = {}
    clicks_by_id: dict[str, ClickEvent] = {}

    for click in clicks:
        clicks_by_id[click.id] = click
        video = videos.get(click.video_id)
        if video is None:
            video = _Group(key=click.video_id, title=click.video_title, platform=click.platform.value)
            videos[click.video_id] = video
        video.clicks += 1

        platform = platforms.setdefault(click.platform.value, _Group(key=click.platform.value))
        platform.clicks += 1

    attributed: list[ReturnEvent] = []
    for ret in returns:
        click = clicks_by_id.get(ret.click_id)
        if click is not None:
            if click.click_time >= ret.return_time:
                logger.warning(
                    "Skipping return %s: not after its click %s", ret.id, ret.click_id
                )
                continue
            video_id = click.video_id
            platform_key = click.platform.value
        else:
            video_id = ret.video_id or ""
            if video_id not in videos:
                logger.debug("Return %s has no click in window", ret.id)
                continue
            platform_key = videos[video_id].platform

        videos[video_id].returns.append(ret)
        platforms.setdefault(platform_key, _Group(key=platform_key)).returns.append(ret)
        attributed.append(ret)

    return _Window(
        videos=videos,
        platforms=platforms,
        returns=attributed,
        total_clicks=len(clicks),
    )


# --- Completion Estimator ---


class CompletionEstimator:
    """
    Read-only projection over stored tracking records.

    No coordination with ingestion: a record appended mid-query may or may
    not be included.
    """

    def __init__(
        self,
        source: RecordSourcePort,
        time_port: TimePort | None = None,
        config: EstimatorConfig | None = None,
    ) -> None:
        self._source = source
        self._time = time_port
        self._config = config or DEFAULT_CONFIG

    def _now(self) -> datetime:
        if self._time is not None:
            return self._time.now_utc()
        return datetime.now(UTC)

    def _load_window(self, time_range: str) -> _Window:
        now = self._now()
        clicks = parse_clicks(self._source.load_range(time_range, EventType.CLICK), now)
        returns = parse_returns(self._source.load_range(time_range, EventType.RETURN), now)
        logger.debug(
            "Loaded %d click(s) and %d return(s) for %s", len(clicks), len(returns), time_range
        )
        return attribute(clicks, returns)

    def _video_stats(self, group: _Group) -> VideoStats:
        threshold = self._config.completion_threshold
        total_returns = len(group.returns)
        completions = group.completions(threshold)
        return VideoStats(
            video_id=group.key,
            video_title=group.title,
            platform=group.platform,
            total_clicks=group.clicks,
            total_returns=total_returns,
            return_rate=safe_rate(total_returns, group.clicks),
            total_time_spent=group.total_time_spent,
            average_time_spent=safe_average(group.total_time_spent, total_returns),
            estimated_completions=completions,
            estimated_completion_rate=safe_rate(completions, total_returns),
        )

    def _platform_stats(self, group: _Group) -> PlatformStats:
        threshold = self._config.completion_threshold
        total_returns = len(group.returns)
        completions = group.completions(threshold)
        return PlatformStats(
            platform=group.key,
            total_clicks=group.clicks,
            total_returns=total_returns,
            return_rate=safe_rate(total_returns, group.clicks),
            total_time_spent=group.total_time_spent,
            average_time_spent=safe_average(group.total_time_spent, total_returns),
            estimated_completions=completions,
            estimated_completion_rate=safe_rate(completions, total_returns),
        )

    def get_external_video_stats(self, time_range: str = "7d") -> ExternalVideoStats:
        """
        Totals, per-video and per-platform statistics for a window.

        total_returns counts only attributable returns: the click is in the
        window, or the return carries a video_id clicked in the window. A
        return with neither is left out of every total.
        """
        window = self._load_window(time_range)
        threshold = self._config.completion_threshold

        videos = [self._video_stats(g) for g in window.videos.values()]
        platforms = [self._platform_stats(g) for g in window.platforms.values()]
        top = sorted(videos, key=lambda v: v.total_clicks, reverse=True)

        total_returns = len(window.returns)
        completions = sum(
            1 for r in window.returns if r.estimated_watch_percentage >= threshold
        )
        return ExternalVideoStats(
            time_range=time_range,
            total_clicks=window.total_clicks,
            total_returns=total_returns,
            return_rate=safe_rate(total_returns, window.total_clicks),
            average_time_spent=safe_average(
                sum(r.time_spent_ms for r in window.returns), total_returns
            ),
            estimated_completion_rate=safe_rate(completions, total_returns),
            top_videos=tuple(top[: self._config.top_videos_limit]),
            platforms=tuple(platforms),
            videos=tuple(videos),
            generated_at=self._now(),
        )

    def _estimate(self, group: _Group) -> CompletionEstimate:
        total_returns = len(group.returns)
        completions = group.completions(self._config.completion_threshold)
        return CompletionEstimate(
            video_id=group.key,
            video_title=group.title,
            platform=group.platform,
            total_clicks=group.clicks,
            total_returns=total_returns,
            return_rate=safe_rate(total_returns, group.clicks),
            estimated_completion_rate=safe_rate(completions, total_returns),
            average_time_spent=safe_average(group.total_time_spent, total_returns),
            average_watch_percentage=safe_average(
                sum(r.estimated_watch_percentage for r in group.returns), total_returns
            ),
            confidence=confidence_for(total_returns, self._config),
            sample_size=total_returns,
            data_quality=assess_data_quality(group.returns, self._config),
        )

    def get_completion_estimates(
        self,
        time_range: str = "7d",
        video_id: str | None = None,
        platform: str | None = None,
    ) -> CompletionEstimates:
        """Per-video completion estimates, optionally filtered, most clicked first."""
        window = self._load_window(time_range)

        groups = list(window.videos.values())
        if video_id:
            groups = [g for g in groups if g.key == video_id]
        if platform:
            wanted = resolve_platform(platform).value
            groups = [g for g in groups if g.platform == wanted]

        estimates = sorted(
            (self._estimate(g) for g in groups),
            key=lambda e: e.total_clicks,
            reverse=True,
        )
        return CompletionEstimates(
            time_range=time_range,
            estimates=tuple(estimates),
            summary=summarize(estimates),
            generated_at=self._now(),
        )


def summarize(estimates: list[CompletionEstimate]) -> EstimatesSummary:
    """Roll up estimates; the average covers only videos with returns."""
    with_returns = [e for e in estimates if e.total_returns > 0]
    return EstimatesSummary(
        total_videos_tracked=len(estimates),
        average_completion_rate=safe_average(
            sum(e.estimated_completion_rate for e in with_returns), len(with_returns)
        ),
        high_confidence_estimates=sum(1 for e in estimates if e.confidence == "high"),
        medium_confidence_estimates=sum(1 for e in estimates if e.confidence == "medium"),
        low_confidence_estimates=sum(1 for e in estimates if e.confidence == "low"),
    )


# --- Factory ---


def create_completion_estimator(
    source: RecordSourcePort,
    time_port: TimePort | None = None,
    config: EstimatorConfig | None = None,
) -> CompletionEstimator:
    """Create a CompletionEstimator."""
    return CompletionEstimator(source=source, time_port=time_port, config=config)
