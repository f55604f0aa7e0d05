"""
Watch-percentage estimation from dwell time.

Pure functions. The estimate is dwell / nominal duration, scaled by a
platform correction for the video's duration bucket and by a per-visitor
factor, capped at 1.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from travelweb.domain.events import Platform

from .models import DEFAULT_CONFIG, DurationBucket, TrackerConfig


def duration_bucket(duration_seconds: float, config: TrackerConfig = DEFAULT_CONFIG) -> DurationBucket:
    """Classify a nominal duration into short / medium / long."""
    if duration_seconds <= config.short_bucket_max_seconds:
        return "short"
    if duration_seconds <= config.medium_bucket_max_seconds:
        return "medium"
    return "long"


def nominal_duration_seconds(
    platform: Platform,
    known_duration: float | None = None,
    config: TrackerConfig = DEFAULT_CONFIG,
) -> float:
    """Known duration if positive, else the platform default."""
    if known_duration is not None and known_duration > 0 and math.isfinite(known_duration):
        return float(known_duration)
    return float(config.default_durations_seconds.get(platform, config.default_durations_seconds[Platform.OTHER]))


def platform_factor(
    platform: Platform,
    duration_seconds: float,
    config: TrackerConfig = DEFAULT_CONFIG,
) -> float:
    factors = config.platform_factors.get(platform) or config.platform_factors[Platform.OTHER]
    return factors[duration_bucket(duration_seconds, config)]


def user_factor(prior_rates: Sequence[float], config: TrackerConfig = DEFAULT_CONFIG) -> float:
    """
    Mean of a visitor's prior watch percentages, clamped.

    Returns 1.0 when there is no usable history.
    """
    usable = [r for r in prior_rates if isinstance(r, (int, float)) and math.isfinite(r)]
    if not usable:
        return 1.0
    mean = sum(usable) / len(usable)
    return max(config.user_factor_min, min(config.user_factor_max, mean))


def estimate_watch_percentage(
    dwell_ms: float,
    platform: Platform,
    duration_seconds: float,
    visitor_factor: float = 1.0,
    config: TrackerConfig = DEFAULT_CONFIG,
) -> float:
    """
    Estimate the fraction of the video watched.

    Example: short-form, 60s nominal, 54000ms dwell, no history ->
    min(1, 54000 / 60000 * 0.85 * 1) = 0.765
    """
    nominal_ms = duration_seconds * 1000
    if nominal_ms <= 0 or dwell_ms <= 0:
        return 0.0
    raw = dwell_ms / nominal_ms * platform_factor(platform, duration_seconds, config) * visitor_factor
    if not math.isfinite(raw):
        return 0.0
    return max(0.0, min(1.0, raw))
