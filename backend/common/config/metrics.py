"""Host resource sampling and aggregation configuration."""
from __future__ import annotations

from pydantic import BaseModel, Field

from .env import env_bool, env_float

__all__ = ["MetricsConfig", "metrics_config"]


class MetricsConfig(BaseModel):
    enabled: bool = Field(default_factory=lambda: env_bool("METRICS_ENABLED", True))
    snapshot_interval_sec: float = Field(
        default_factory=lambda: env_float("METRICS_SNAPSHOT_INTERVAL_SEC", 5.0), gt=0
    )
    aggregation_interval_sec: float = Field(
        default_factory=lambda: env_float("METRICS_AGGREGATION_INTERVAL_SEC", 60.0), gt=0
    )
    display_retention_sec: float = Field(
        default_factory=lambda: env_float("METRICS_DISPLAY_RETENTION_SEC", 7200.0), gt=0
    )
    max_age_days: float = Field(default_factory=lambda: env_float("METRICS_MAX_AGE_DAYS", 7.0), gt=0)


metrics_config = MetricsConfig()
