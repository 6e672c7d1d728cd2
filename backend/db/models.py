from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, DateTime, Float, Index, Integer, String, TypeDecorator
from sqlalchemy.orm import Mapped, mapped_column

from common.types import DetectionResult, MetricsSnapshot, SensorSample, WeatherSample
from db.database import Base


class UTCDateTime(TypeDecorator):
    """Stores naive UTC, returns timezone-aware UTC.

    SQLite drops tzinfo, so values are normalised on the way in and
    re-tagged on the way out.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class SensorReading(Base):
    __tablename__ = "sensor_readings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    temperature: Mapped[float] = mapped_column(Float, nullable=False)
    humidity: Mapped[float] = mapped_column(Float, nullable=False)
    pressure: Mapped[float] = mapped_column(Float, nullable=False)
    reader_type: Mapped[str] = mapped_column(String(32), nullable=False, default="bme280")

    @classmethod
    def from_sample(cls, sample: SensorSample) -> "SensorReading":
        return cls(
            timestamp=sample.timestamp,
            temperature=sample.temperature,
            humidity=sample.humidity,
            pressure=sample.pressure,
            reader_type=sample.reader_type,
        )


class WeatherReading(Base):
    __tablename__ = "weather_readings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    temperature: Mapped[float] = mapped_column(Float, nullable=False)
    humidity: Mapped[float] = mapped_column(Float, nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    location: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    source: Mapped[str] = mapped_column(String(50), nullable=False, default="Open-Meteo")

    @classmethod
    def from_sample(cls, sample: WeatherSample) -> "WeatherReading":
        return cls(
            timestamp=sample.timestamp,
            temperature=sample.temperature,
            humidity=sample.humidity,
            latitude=sample.latitude,
            longitude=sample.longitude,
            location=sample.location,
            source=sample.source,
        )


class SystemMetrics(Base):
    """One aggregated row per aggregation interval."""

    __tablename__ = "system_metrics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    cpu_usage_percent: Mapped[float] = mapped_column(Float, nullable=False)
    memory_usage_percent: Mapped[float] = mapped_column(Float, nullable=False)
    memory_used_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    memory_total_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    disk_usage_percent: Mapped[float] = mapped_column(Float, nullable=False)
    disk_used_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    disk_total_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    sample_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    @classmethod
    def from_snapshot(cls, snapshot: MetricsSnapshot) -> "SystemMetrics":
        return cls(
            timestamp=snapshot.timestamp,
            cpu_usage_percent=snapshot.cpu_percent,
            memory_usage_percent=snapshot.memory_percent,
            memory_used_bytes=snapshot.memory_used_bytes,
            memory_total_bytes=snapshot.memory_total_bytes,
            disk_usage_percent=snapshot.disk_percent,
            disk_used_bytes=snapshot.disk_used_bytes,
            disk_total_bytes=snapshot.disk_total_bytes,
            sample_count=1,
        )


class GeckoDetection(Base):
    """Classifier verdict for one motion capture."""

    __tablename__ = "gecko_detections"
    __table_args__ = (Index("ix_gecko_detections_detected_timestamp", "gecko_detected", "timestamp"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    image_path: Mapped[str] = mapped_column(String(500), nullable=False)
    gecko_detected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    label: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bbox_x: Mapped[float | None] = mapped_column(Float, nullable=True)
    bbox_y: Mapped[float | None] = mapped_column(Float, nullable=True)
    bbox_width: Mapped[float | None] = mapped_column(Float, nullable=True)
    bbox_height: Mapped[float | None] = mapped_column(Float, nullable=True)

    @classmethod
    def from_result(cls, result: DetectionResult) -> "GeckoDetection":
        box = result.bounding_box
        return cls(
            timestamp=result.timestamp,
            image_path=result.image_path,
            gecko_detected=result.detected,
            confidence=result.confidence,
            label=result.label,
            bbox_x=box.x if box else None,
            bbox_y=box.y if box else None,
            bbox_width=box.width if box else None,
            bbox_height=box.height if box else None,
        )


class GeckoSighting(Base):
    """A confirmed gecko observation."""

    __tablename__ = "gecko_sightings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    image_path: Mapped[str] = mapped_column(String(500), nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    position_x: Mapped[float | None] = mapped_column(Float, nullable=True)
    position_y: Mapped[float | None] = mapped_column(Float, nullable=True)
    width: Mapped[float | None] = mapped_column(Float, nullable=True)
    height: Mapped[float | None] = mapped_column(Float, nullable=True)
    image_width: Mapped[int | None] = mapped_column(Integer, nullable=True)
    image_height: Mapped[int | None] = mapped_column(Integer, nullable=True)
    label: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    @classmethod
    def from_result(cls, result: DetectionResult) -> "GeckoSighting":
        box = result.bounding_box
        return cls(
            timestamp=result.timestamp,
            image_path=result.image_path,
            confidence=result.confidence,
            position_x=box.x if box else None,
            position_y=box.y if box else None,
            width=box.width if box else None,
            height=box.height if box else None,
            image_width=result.image_width,
            image_height=result.image_height,
            label=result.label,
        )
