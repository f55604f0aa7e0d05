"""
Estimator component - Completion-rate estimation over a window of segments.

Invariants:
- Rates are within [0, 100] and exactly 0 for a zero denominator
- Confidence and data-quality labels are recomputed on every query
- Aggregation is read-only and never raises on missing data
"""

from ._aggregate import (
    DEFAULT_CONFIG,
    CompletionEstimator,
    DivisionGuardError,
    EstimatorConfig,
    assess_data_quality,
    attribute,
    completeness_ratio,
    confidence_for,
    create_completion_estimator,
    data_quality_for,
    safe_average,
    safe_rate,
    summarize,
)
from .component import build_estimator_config, run_query_estimates, run_query_stats
from .models import (
    CompletionEstimate,
    CompletionEstimates,
    Confidence,
    DataQuality,
    EstimatesOutput,
    EstimatesSummary,
    EstimatorValidationError,
    ExternalVideoStats,
    PlatformStats,
    QueryEstimatesInput,
    QueryStatsInput,
    StatsOutput,
    VideoStats,
)
from .ports import RecordSourcePort, TimePort

__all__ = [
    # Entry points
    "run_query_stats",
    "run_query_estimates",
    "build_estimator_config",
    # Service
    "CompletionEstimator",
    "EstimatorConfig",
    "DEFAULT_CONFIG",
    "DivisionGuardError",
    "create_completion_estimator",
    # Pure functions
    "assess_data_quality",
    "attribute",
    "completeness_ratio",
    "confidence_for",
    "data_quality_for",
    "safe_average",
    "safe_rate",
    "summarize",
    # Models
    "CompletionEstimate",
    "CompletionEstimates",
    "Confidence",
    "DataQuality",
    "EstimatesOutput",
    "EstimatesSummary",
    "EstimatorValidationError",
    "ExternalVideoStats",
    "PlatformStats",
    "QueryEstimatesInput",
    "QueryStatsInput",
    "StatsOutput",
    "VideoStats",
    # Ports
    "RecordSourcePort",
    "TimePort",
]
