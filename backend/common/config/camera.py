"""Camera, motion detection and capture retention configuration."""
from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from .env import env_bool, env_float, env_int, env_str
from .paths import DEFAULT_CAPTURE_DIR

__all__ = ["CameraConfig", "MotionConfig", "camera_config", "motion_config"]


class CameraConfig(BaseModel):
    use_simulator: bool = Field(default_factory=lambda: env_bool("CAMERA_USE_SIMULATOR", False))
    width: int = Field(default_factory=lambda: env_int("CAMERA_WIDTH", 1280), gt=0)
    height: int = Field(default_factory=lambda: env_int("CAMERA_HEIGHT", 720), gt=0)
    quality: int = Field(default_factory=lambda: env_int("CAMERA_QUALITY", 85), ge=1, le=100)
    capture_timeout_sec: float = 10.0


class MotionConfig(BaseModel):
    enabled: bool = Field(default_factory=lambda: env_bool("MOTION_ENABLED", True))
    polling_interval_sec: float = Field(
        default_factory=lambda: env_float("MOTION_POLLING_INTERVAL_SEC", 1.0), gt=0
    )
    min_capture_interval_sec: float = Field(
        default_factory=lambda: env_float("MOTION_MIN_CAPTURE_INTERVAL_SEC", 5.0), ge=0
    )
    sensitivity: float = Field(
        default_factory=lambda: env_float("MOTION_SENSITIVITY", 0.05), ge=0, le=1
    )
    capture_dir: Path = Field(
        default_factory=lambda: Path(env_str("CAPTURE_DIR", str(DEFAULT_CAPTURE_DIR)))
    )
    max_age_days: float = Field(default_factory=lambda: env_float("CAPTURE_MAX_AGE_DAYS", 7.0), gt=0)
    max_files: int = Field(default_factory=lambda: env_int("CAPTURE_MAX_FILES", 1000), gt=0)


camera_config = CameraConfig()
motion_config = MotionConfig()
