from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class DurationBucketRules(BaseModel):
    short_max_seconds: float = 60.0
    medium_max_seconds: float = 600.0

    @model_validator(mode="after")
    def _ordered(self) -> "DurationBucketRules":
        if self.short_max_seconds >= self.medium_max_seconds:
            raise ValueError("short_max_seconds must be below medium_max_seconds")
        return self

class PlatformFactorRules(BaseModel):
    short: float = Field(gt=0)
    medium: float = Field(gt=0)
    long: float = Field(gt=0)

class UserFactorRules(BaseModel):
    min: float = 0.5
    max: float = 1.5

    @model_validator(mode="after")
    def _ordered(self) -> "UserFactorRules":
        if self.min > self.max:
            raise ValueError("user_factor min must not exceed max")
        return self

def _default_platform_factors() -> dict[str, PlatformFactorRules]:
    return {
        "long_form": PlatformFactorRules(short=0.75, medium=0.45, long=0.25),
        "short_form": PlatformFactorRules(short=0.85, medium=0.60, long=0.35),
        "other": PlatformFactorRules(short=0.65, medium=0.35, long=0.20),
    }

class TrackingRules(BaseModel):
    enabled: bool = True
    min_dwell_ms: int = Field(default=5000, ge=0)
    max_dwell_ms: int = Field(default=1_800_000, gt=0)
    default_durations_seconds: dict[str, float] = Field(
        default_factory=lambda: {"short_form": 60.0, "long_form": 300.0, "other": 180.0}
    )
    duration_buckets: DurationBucketRules = Field(default_factory=DurationBucketRules)
    platform_factors: dict[str, PlatformFactorRules] = Field(
        default_factory=_default_platform_factors
    )
    user_factor: UserFactorRules = Field(default_factory=UserFactorRules)
    fallback_queue_size: int = Field(default=100, gt=0)
    transport_timeout_seconds: float = Field(default=5.0, gt=0)

    @field_validator("platform_factors")
    @classmethod
    def _require_other(cls, v: dict[str, PlatformFactorRules]) -> dict[str, PlatformFactorRules]:
        if "other" not in v:
            raise ValueError("platform_factors must define 'other'")
        return v

    @model_validator(mode="after")
    def _dwell_window(self) -> "TrackingRules":
        if self.min_dwell_ms >= self.max_dwell_ms:
            raise ValueError("min_dwell_ms must be below max_dwell_ms")
        return self

class StorageRules(BaseModel):
    backend: Literal["jsonl", "sqlite"] = "jsonl"
    segments_dir: str = "segments"
    sqlite_filename: str = "engagement.db"

class ConfidenceRules(BaseModel):
    high_min_samples: int = 50
    medium_min_samples: int = 20

    @model_validator(mode="after")
    def _ordered(self) -> "ConfidenceRules":
        if self.medium_min_samples > self.high_min_samples:
            raise ValueError("medium_min_samples must not exceed high_min_samples")
        return self

class DataQualityRules(BaseModel):
    high_min_ratio: float = 0.8
    medium_min_ratio: float = 0.5

    @model_validator(mode="after")
    def _ordered(self) -> "DataQualityRules":
        if self.medium_min_ratio > self.high_min_ratio:
            raise ValueError("medium_min_ratio must not exceed high_min_ratio")
        return self

class AggregationRules(BaseModel):
    completion_threshold: float = Field(default=0.90, gt=0, le=1)
    top_videos_limit: int = Field(default=10, gt=0)
    max_range_days: int = Field(default=90, gt=0)
    default_range: Literal["7d", "30d", "90d"] = "7d"
    confidence: ConfidenceRules = Field(default_factory=ConfidenceRules)
    data_quality: DataQualityRules = Field(default_factory=DataQualityRules)

class Rules(BaseModel):
    tracking: TrackingRules = Field(default_factory=TrackingRules)
    storage: StorageRules = Field(default_factory=StorageRules)
    aggregation: AggregationRules = Field(default_factory=AggregationRules)
