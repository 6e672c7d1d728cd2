"""
Samples produced by the source adapters and the classifier.

All samples are immutable once created; each carries the UTC time it
was taken.
"""
from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SensorSample(BaseModel):
    """One BME280 reading."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=utcnow)
    temperature: float  # degrees Celsius
    humidity: float     # relative humidity, percent
    pressure: float     # mmHg
    reader_type: str = "bme280"


class WeatherSample(BaseModel):
    """Current outdoor conditions for the configured location."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=utcnow)
    temperature: float = 0.0
    humidity: float = 0.0
    latitude: float = 0.0
    longitude: float = 0.0
    location: str = ""
    source: str = "Open-Meteo"
    valid: bool = False
    error: str | None = None


class MetricsSnapshot(BaseModel):
    """Point-in-time host resource usage."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=utcnow)
    cpu_percent: float
    memory_percent: float
    memory_used_bytes: int
    memory_total_bytes: int
    disk_percent: float
    disk_used_bytes: int
    disk_total_bytes: int


class BoundingBox(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    width: float
    height: float


class DetectionResult(BaseModel):
    """Classifier output for one image."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=utcnow)
    image_path: str
    detected: bool
    confidence: float = Field(ge=0.0, le=1.0)
    label: str
    bounding_box: BoundingBox | None = None
    image_width: int | None = None
    image_height: int | None = None
