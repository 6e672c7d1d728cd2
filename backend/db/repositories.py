"""
Repositories: the narrow storage contract used by pollers and the API.

Each call opens and closes its own session, so repositories are safe to
share between the event loop, worker threads and request handlers.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Generic, TypeVar

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, sessionmaker

from db.models import GeckoDetection, GeckoSighting, SensorReading, SystemMetrics, WeatherReading

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")

SENSOR_METRICS = ("temperature", "humidity", "pressure")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Repository(Generic[ModelT]):
    model: type

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _session(self) -> Session:
        return self._session_factory()

    def save(self, record: ModelT) -> ModelT:
        with self._session() as session:
            session.add(record)
            session.commit()
            session.refresh(record)
        return record

    def latest(self) -> ModelT | None:
        with self._session() as session:
            stmt = select(self.model).order_by(self.model.timestamp.desc(), self.model.id.desc()).limit(1)
            return session.scalars(stmt).first()

    def range(self, start: datetime, end: datetime) -> list[ModelT]:
        """Records with ``start <= timestamp <= end``, oldest first."""
        with self._session() as session:
            stmt = (
                select(self.model)
                .where(self.model.timestamp >= start, self.model.timestamp <= end)
                .order_by(self.model.timestamp, self.model.id)
            )
            return list(session.scalars(stmt))

    def count(self, start: datetime | None = None, end: datetime | None = None) -> int:
        with self._session() as session:
            stmt = select(func.count()).select_from(self.model)
            if start is not None:
                stmt = stmt.where(self.model.timestamp >= start)
            if end is not None:
                stmt = stmt.where(self.model.timestamp <= end)
            return session.scalar(stmt) or 0

    def cleanup_older_than(self, max_age_days: float, now: datetime | None = None) -> int:
        cutoff = (now or _utcnow()) - timedelta(days=max_age_days)
        with self._session() as session:
            result = session.execute(delete(self.model).where(self.model.timestamp < cutoff))
            session.commit()
            deleted = result.rowcount or 0
        if deleted:
            logger.info("Deleted %d %s row(s) older than %s", deleted, self.model.__tablename__, cutoff)
        return deleted


class SensorReadingRepository(Repository[SensorReading]):
    model = SensorReading

    def daily_averages(self, metric: str, start: datetime, end: datetime) -> dict[date, float]:
        if metric not in SENSOR_METRICS:
            raise ValueError(f"Unknown metric '{metric}', expected one of {', '.join(SENSOR_METRICS)}")
        column = getattr(SensorReading, metric)
        day = func.date(SensorReading.timestamp)
        with self._session() as session:
            stmt = (
                select(day, func.avg(column))
                .where(SensorReading.timestamp >= start, SensorReading.timestamp <= end)
                .group_by(day)
                .order_by(day)
            )
            rows = session.execute(stmt).all()
        return {
            (d if isinstance(d, date) else date.fromisoformat(str(d))): float(avg)
            for d, avg in rows
        }


class WeatherReadingRepository(Repository[WeatherReading]):
    model = WeatherReading


class SystemMetricsRepository(Repository[SystemMetrics]):
    model = SystemMetrics


@dataclass(frozen=True)
class DetectionStatistics:
    total_detections: int
    gecko_detections: int
    detection_rate: float
    average_confidence: float
    last_gecko_detected: datetime | None


class GeckoDetectionRepository(Repository[GeckoDetection]):
    model = GeckoDetection

    def latest_detected(self) -> GeckoDetection | None:
        with self._session() as session:
            stmt = (
                select(GeckoDetection)
                .where(GeckoDetection.gecko_detected.is_(True))
                .order_by(GeckoDetection.timestamp.desc(), GeckoDetection.id.desc())
                .limit(1)
            )
            return session.scalars(stmt).first()

    def detected_in_range(self, start: datetime, end: datetime) -> list[GeckoDetection]:
        return [d for d in self.range(start, end) if d.gecko_detected]

    def statistics(self, start: datetime, end: datetime) -> DetectionStatistics:
        detections = self.range(start, end)
        positives = [d for d in detections if d.gecko_detected]
        total = len(detections)
        return DetectionStatistics(
            total_detections=total,
            gecko_detections=len(positives),
            detection_rate=len(positives) / total * 100.0 if total else 0.0,
            average_confidence=sum(d.confidence for d in detections) / total if total else 0.0,
            last_gecko_detected=positives[-1].timestamp if positives else None,
        )


@dataclass(frozen=True)
class SightingStatistics:
    total_sightings: int = 0
    sightings_last_24_hours: int = 0
    sightings_last_hour: int = 0
    average_confidence: float = 0.0
    max_confidence: float = 0.0
    first_sighting: datetime | None = None
    last_sighting: datetime | None = None


class GeckoSightingRepository(Repository[GeckoSighting]):
    model = GeckoSighting

    def save(self, record: GeckoSighting) -> GeckoSighting:
        saved = super().save(record)
        logger.info(
            "Gecko sighting saved: confidence=%.2f image=%s", saved.confidence, saved.image_path
        )
        return saved

    def statistics(self, start: datetime, end: datetime, now: datetime | None = None) -> SightingStatistics:
        sightings = self.range(start, end)
        if not sightings:
            return SightingStatistics()
        now = now or _utcnow()
        confidences = [s.confidence for s in sightings]
        return SightingStatistics(
            total_sightings=len(sightings),
            sightings_last_24_hours=sum(1 for s in sightings if s.timestamp >= now - timedelta(hours=24)),
            sightings_last_hour=sum(1 for s in sightings if s.timestamp >= now - timedelta(hours=1)),
            average_confidence=sum(confidences) / len(confidences),
            max_confidence=max(confidences),
            first_sighting=sightings[0].timestamp,
            last_sighting=sightings[-1].timestamp,
        )


@dataclass
class Repositories:
    """All repositories bound to one session factory."""

    sensor: SensorReadingRepository
    weather: WeatherReadingRepository
    metrics: SystemMetricsRepository
    detections: GeckoDetectionRepository
    sightings: GeckoSightingRepository

    @classmethod
    def create(cls, session_factory: sessionmaker) -> "Repositories":
        return cls(
            sensor=SensorReadingRepository(session_factory),
            weather=WeatherReadingRepository(session_factory),
            metrics=SystemMetricsRepository(session_factory),
            detections=GeckoDetectionRepository(session_factory),
            sightings=GeckoSightingRepository(session_factory),
        )
