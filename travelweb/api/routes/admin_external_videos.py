"""
External Video Analytics API.

Read-only endpoints over the click/return log: window statistics and
per-video completion-rate estimates.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from travelweb.api.deps import get_estimator, get_ingestion_service
from travelweb.components.estimator import CompletionEstimator
from travelweb.components.ingestion import EventIngestionService, resolve_time_range
from travelweb.core.ports.storage import StorageError

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Response Models ---


class VideoStatsResponse(BaseModel):
    """Per-video statistics."""

    video_id: str
    video_title: str
    platform: str
    total_clicks: int
    total_returns: int
    return_rate: float  # 0 to 100
    total_time_spent: int
    average_time_spent: float
    estimated_completions: int
    estimated_completion_rate: float  # 0 to 100


class PlatformStatsResponse(BaseModel):
    """Per-platform statistics."""

    platform: str
    total_clicks: int
    total_returns: int
    return_rate: float
    total_time_spent: int
    average_time_spent: float
    estimated_completions: int
    estimated_completion_rate: float


class ExternalVideoStatsResponse(BaseModel):
    """Window statistics."""

    time_range: str
    total_clicks: int
    total_returns: int
    return_rate: float
    average_time_spent: float
    estimated_completion_rate: float
    top_videos: list[VideoStatsResponse]
    platforms: list[PlatformStatsResponse]
    videos: list[VideoStatsResponse]
    generated_at: str


class CompletionEstimateResponse(BaseModel):
    """Per-video completion estimate."""

    video_id: str
    video_title: str
    platform: str
    total_clicks: int
    total_returns: int
    return_rate: float
    estimated_completion_rate: float
    average_time_spent: float
    average_watch_percentage: float  # 0.0 to 1.0
    confidence: str
    sample_size: int
    data_quality: str


class EstimatesSummaryResponse(BaseModel):
    """Roll-up of completion estimates."""

    total_videos_tracked: int
    average_completion_rate: float
    high_confidence_estimates: int
    medium_confidence_estimates: int
    low_confidence_estimates: int


class CompletionEstimatesResponse(BaseModel):
    """Completion estimates for a window."""

    time_range: str
    estimates: list[CompletionEstimateResponse]
    summary: EstimatesSummaryResponse
    generated_at: str


# --- Routes ---


@router.get("/external-videos", response_model=ExternalVideoStatsResponse)
def get_external_video_stats(
    time_range: str | None = Query(None, alias="range", description="7d, 30d or 90d"),
    legacy_range: str | None = Query(None, alias="timeRange", include_in_schema=False),
    ingestion: EventIngestionService = Depends(get_ingestion_service),
    estimator: CompletionEstimator = Depends(get_estimator),
) -> ExternalVideoStatsResponse:
    """Click, return and completion statistics for a window."""
    window = resolve_time_range(legacy_range or time_range, ingestion.config)
    try:
        stats = estimator.get_external_video_stats(window)
    except StorageError as e:
        logger.warning("Statistics query failed: %s", e)
        raise HTTPException(status_code=503, detail="Analytics storage unavailable") from e
    return ExternalVideoStatsResponse.model_validate(stats.to_dict())


@router.get(
    "/external-videos/completion-estimates",
    response_model=CompletionEstimatesResponse,
)
def get_completion_estimates(
    time_range: str | None = Query(None, alias="range", description="7d, 30d or 90d"),
    legacy_range: str | None = Query(None, alias="timeRange", include_in_schema=False),
    video_id: str | None = Query(None, alias="videoId"),
    platform: str | None = Query(None),
    ingestion: EventIngestionService = Depends(get_ingestion_service),
    estimator: CompletionEstimator = Depends(get_estimator),
) -> CompletionEstimatesResponse:
    """Per-video completion-rate estimates with confidence and data-quality labels."""
    window = resolve_time_range(legacy_range or time_range, ingestion.config)
    try:
        estimates = estimator.get_completion_estimates(
            window,
            video_id=video_id,
            platform=platform,
        )
    except StorageError as e:
        logger.warning("Estimates query failed: %s", e)
        raise HTTPException(status_code=503, detail="Analytics storage unavailable") from e
    return CompletionEstimatesResponse.model_validate(estimates.to_dict())
