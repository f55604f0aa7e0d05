"""
Estimator component - Entry points for statistics and completion estimates.
"""

from __future__ import annotations

import logging

from travelweb.core.ports.storage import StorageError
from travelweb.rules.models import AggregationRules

from ._aggregate import DEFAULT_CONFIG, CompletionEstimator, EstimatorConfig
from .models import (
    EstimatesOutput,
    EstimatorValidationError,
    QueryEstimatesInput,
    QueryStatsInput,
    StatsOutput,
)
from .ports import RecordSourcePort, TimePort

logger = logging.getLogger(__name__)


def build_estimator_config(rules: AggregationRules | None) -> EstimatorConfig:
    """Build estimator config from the aggregation rules section."""
    if rules is None:
        return DEFAULT_CONFIG

    return EstimatorConfig(
        completion_threshold=rules.completion_threshold,
        top_videos_limit=rules.top_videos_limit,
        high_confidence_min_samples=rules.confidence.high_min_samples,
        medium_confidence_min_samples=rules.confidence.medium_min_samples,
        high_quality_min_ratio=rules.data_quality.high_min_ratio,
        medium_quality_min_ratio=rules.data_quality.medium_min_ratio,
    )


# --- Component Entry Points ---


def run_query_stats(
    inp: QueryStatsInput,
    *,
    source: RecordSourcePort,
    time_port: TimePort | None = None,
    config: EstimatorConfig | None = None,
) -> StatsOutput:
    """Aggregate click/return statistics for a window."""
    estimator = CompletionEstimator(source=source, time_port=time_port, config=config)
    try:
        stats = estimator.get_external_video_stats(inp.time_range)
    except StorageError as e:
        logger.warning("Statistics query failed for %s: %s", inp.time_range, e)
        return StatsOutput(
            stats=None,
            errors=[EstimatorValidationError(code="storage_error", message=str(e))],
            success=False,
        )
    return StatsOutput(stats=stats)


def run_query_estimates(
    inp: QueryEstimatesInput,
    *,
    source: RecordSourcePort,
    time_port: TimePort | None = None,
    config: EstimatorConfig | None = None,
) -> EstimatesOutput:
    """Per-video completion estimates for a window."""
    estimator = CompletionEstimator(source=source, time_port=time_port, config=config)
    try:
        estimates = estimator.get_completion_estimates(
            inp.time_range,
            video_id=inp.video_id,
            platform=inp.platform,
        )
    except StorageError as e:
        logger.warning("Estimates query failed for %s: %s", inp.time_range, e)
        return EstimatesOutput(
            estimates=None,
            errors=[EstimatorValidationError(code="storage_error", message=str(e))],
            success=False,
        )
    return EstimatesOutput(estimates=estimates)
