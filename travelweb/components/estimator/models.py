"""
Estimator component input/output models.

Rates (return rate, completion rate) are on a 0-100 scale. Watch percentages
are on a 0-1 scale.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Literal

Confidence = Literal["high", "medium", "low"]
DataQuality = Literal["high", "medium", "low", "no-data"]


# --- Validation Error ---


@dataclass(frozen=True)
class EstimatorValidationError:
    """Estimator query validation error."""

    code: str
    message: str
    field_name: str | None = None


# --- Input Models ---


@dataclass(frozen=True)
class QueryStatsInput:
    """Input for external video statistics."""

    time_range: str = "7d"


@dataclass(frozen=True)
class QueryEstimatesInput:
    """Input for completion-rate estimates, optionally filtered."""

    time_range: str = "7d"
    video_id: str | None = None
    platform: str | None = None


# --- Output Models ---


@dataclass(frozen=True)
class VideoStats:
    """Aggregated engagement for one video."""

    video_id: str
    video_title: str
    platform: str
    total_clicks: int
    total_returns: int
    return_rate: float
    total_time_spent: int
    average_time_spent: float
    estimated_completions: int
    estimated_completion_rate: float


@dataclass(frozen=True)
class PlatformStats:
    """Aggregated engagement for one platform."""

    platform: str
    total_clicks: int
    total_returns: int
    return_rate: float
    total_time_spent: int
    average_time_spent: float
    estimated_completions: int
    estimated_completion_rate: float


@dataclass(frozen=True)
class ExternalVideoStats:
    """Window-level statistics across all videos."""

    time_range: str
    total_clicks: int
    total_returns: int
    return_rate: float
    average_time_spent: float
    estimated_completion_rate: float
    top_videos: tuple[VideoStats, ...]
    platforms: tuple[PlatformStats, ...]
    videos: tuple[VideoStats, ...]
    generated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        result["generated_at"] = self.generated_at.isoformat()
        return result


@dataclass(frozen=True)
class CompletionEstimate:
    """Derived completion estimate for one video; labels are never stored."""

    video_id: str
    video_title: str
    platform: str
    total_clicks: int
    total_returns: int
    return_rate: float
    estimated_completion_rate: float
    average_time_spent: float
    average_watch_percentage: float
    confidence: Confidence
    sample_size: int
    data_quality: DataQuality


@dataclass(frozen=True)
class EstimatesSummary:
    """Roll-up over a set of completion estimates."""

    total_videos_tracked: int
    average_completion_rate: float
    high_confidence_estimates: int
    medium_confidence_estimates: int
    low_confidence_estimates: int


@dataclass(frozen=True)
class CompletionEstimates:
    """Completion estimates for a window."""

    time_range: str
    estimates: tuple[CompletionEstimate, ...]
    summary: EstimatesSummary
    generated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        result["generated_at"] = self.generated_at.isoformat()
        return result


@dataclass(frozen=True)
class StatsOutput:
    """Output for a statistics query."""

    stats: ExternalVideoStats | None
    errors: list[EstimatorValidationError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class EstimatesOutput:
    """Output for a completion-estimates query."""

    estimates: CompletionEstimates | None
    errors: list[EstimatorValidationError] = field(default_factory=list)
    success: bool = True
