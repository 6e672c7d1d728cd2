"""
Pydantic models for API responses.
"""
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class SensorReadingOut(ORMModel):
    id: int
    timestamp: datetime
    temperature: float  # Celsius
    humidity: float     # percent
    pressure: float     # mmHg
    reader_type: str


class DailyAverage(BaseModel):
    date: date
    value: float


class DailyAveragesOut(BaseModel):
    metric: str
    averages: list[DailyAverage]


class WeatherReadingOut(ORMModel):
    id: int
    timestamp: datetime
    temperature: float
    humidity: float
    latitude: float
    longitude: float
    location: str
    source: str


class MetricsSnapshotOut(ORMModel):
    """Live sample from the in-memory store."""
    timestamp: datetime
    cpu_percent: float
    memory_percent: float
    memory_used_bytes: int
    memory_total_bytes: int
    disk_percent: float
    disk_used_bytes: int
    disk_total_bytes: int


class SystemMetricsOut(ORMModel):
    """Aggregated row from storage."""
    id: int
    timestamp: datetime
    cpu_usage_percent: float
    memory_usage_percent: float
    memory_used_bytes: int
    memory_total_bytes: int
    disk_usage_percent: float
    disk_used_bytes: int
    disk_total_bytes: int
    sample_count: int


class GeckoDetectionOut(ORMModel):
    id: int
    timestamp: datetime
    image_path: str
    gecko_detected: bool
    confidence: float
    label: str | None = None
    bbox_x: float | None = None
    bbox_y: float | None = None
    bbox_width: float | None = None
    bbox_height: float | None = None


class DetectionStatisticsOut(ORMModel):
    total_detections: int
    gecko_detections: int
    detection_rate: float  # percent of classified captures with a gecko
    average_confidence: float
    last_gecko_detected: datetime | None = None


class GeckoSightingOut(ORMModel):
    id: int
    timestamp: datetime
    image_path: str
    confidence: float
    position_x: float | None = None
    position_y: float | None = None
    width: float | None = None
    height: float | None = None
    image_width: int | None = None
    image_height: int | None = None
    label: str | None = None
    notes: str | None = None


class SightingStatisticsOut(ORMModel):
    total_sightings: int
    sightings_last_24_hours: int
    sightings_last_hour: int
    average_confidence: float
    max_confidence: float
    first_sighting: datetime | None = None
    last_sighting: datetime | None = None


class CaptureInfo(BaseModel):
    filename: str
    size_bytes: int
    timestamp: datetime


class CaptureStatisticsOut(ORMModel):
    total_files: int
    total_size_bytes: int
    oldest: datetime | None = None
    newest: datetime | None = None
    last_24_hours: int
    last_hour: int


class CameraStatus(BaseModel):
    available: bool
    camera_type: str
    capture_dir: str
    motion_enabled: bool
    captures_since_start: int = 0


class WorkerInfo(BaseModel):
    name: str
    status: str
    started_at_monotonic: float
    restart_count: int
    backoff_seconds: float
    next_restart_at_monotonic: float
    last_error: str | None = None
