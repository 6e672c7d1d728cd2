"""Gecko classifier configuration."""
from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from .env import env_bool, env_float, env_int, env_str
from .paths import DEFAULT_DETECTOR_MODEL_PATH

__all__ = ["DetectorConfig", "detector_config"]


class DetectorConfig(BaseModel):
    enabled: bool = Field(default_factory=lambda: env_bool("DETECTOR_ENABLED", True))
    use_simulator: bool = Field(default_factory=lambda: env_bool("DETECTOR_USE_SIMULATOR", True))
    model_path: Path = Field(
        default_factory=lambda: Path(env_str("DETECTOR_MODEL_PATH", str(DEFAULT_DETECTOR_MODEL_PATH)))
    )
    polling_interval_sec: float = Field(
        default_factory=lambda: env_float("DETECTOR_POLLING_INTERVAL_SEC", 10.0), gt=0
    )
    initial_delay_sec: float = Field(
        default_factory=lambda: env_float("DETECTOR_INITIAL_DELAY_SEC", 15.0), ge=0
    )
    confidence_threshold: float = Field(
        default_factory=lambda: env_float("DETECTOR_CONFIDENCE_THRESHOLD", 0.5), ge=0, le=1
    )
    input_size: int = Field(default_factory=lambda: env_int("DETECTOR_INPUT_SIZE", 224), gt=0)
    processed_high_water: int = 1000
    processed_low_water: int = 500


detector_config = DetectorConfig()
