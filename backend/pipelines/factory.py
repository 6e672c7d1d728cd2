"""
Wiring of sources, stores and repositories into background workers.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import Any

from sqlalchemy.orm import sessionmaker

from common.config import (
    detector_config,
    metrics_config,
    motion_config,
    sensor_config,
    weather_config,
)
from cv.detectors import get_detector
from cv.motion import ChangeDetector
from db.models import GeckoDetection, GeckoSighting, SensorReading, WeatherReading
from db.repositories import Repositories
from orchestrator import WorkerConfig, WorkerRunner
from pipelines.aggregator import Aggregator
from pipelines.classification import ClassificationPipeline, ProcessedFileSet
from pipelines.metrics_store import MetricsRingStore
from pipelines.motion import MotionPipeline
from pipelines.poller import Poller
from sources.providers import get_camera, get_metrics_collector, get_sensor_reader, get_weather_reader
from storage.captures import CaptureStore


@dataclass
class Runtime:
    """Long-lived objects shared by the workers and the API."""

    repositories: Repositories
    metrics_store: MetricsRingStore
    capture_store: CaptureStore
    camera: Any
    sensor: Any
    weather: Any
    metrics_collector: Any
    motion: MotionPipeline | None = None
    classification: ClassificationPipeline | None = None

    def close(self) -> None:
        for source in (self.camera, self.sensor):
            close = getattr(source, "close", None)
            if close:
                close()


def create_runtime(session_factory: sessionmaker) -> Runtime:
    return Runtime(
        repositories=Repositories.create(session_factory),
        metrics_store=MetricsRingStore(display_retention_seconds=metrics_config.display_retention_sec),
        capture_store=CaptureStore(
            motion_config.capture_dir,
            max_age_days=motion_config.max_age_days,
            max_files=motion_config.max_files,
        ),
        camera=get_camera(),
        sensor=get_sensor_reader(),
        weather=get_weather_reader(),
        metrics_collector=get_metrics_collector(),
    )


async def _valid_weather(runtime: Runtime):
    # The reader has already logged why the sample is invalid.
    sample = await runtime.weather.get_current()
    return sample if sample.valid else None


def build_workers(runtime: Runtime) -> list[tuple[WorkerConfig, WorkerRunner]]:
    """Every enabled poller and pipeline as (config, runner) pairs."""
    repos = runtime.repositories
    workers: list[tuple[WorkerConfig, WorkerRunner]] = []

    sensor_poller = Poller(
        name="sensor",
        acquire=runtime.sensor.read,
        transform=SensorReading.from_sample,
        persist=repos.sensor.save,
        interval_seconds=sensor_config.polling_interval_sec,
    )
    workers.append((WorkerConfig(name="sensor"), sensor_poller.run))

    if weather_config.enabled:
        weather_poller = Poller(
            name="weather",
            acquire=partial(_valid_weather, runtime),
            transform=WeatherReading.from_sample,
            persist=repos.weather.save,
            interval_seconds=weather_config.polling_interval_sec,
            initial_delay_seconds=weather_config.initial_delay_sec,
        )
        workers.append((WorkerConfig(name="weather"), weather_poller.run))

    if metrics_config.enabled:
        sampler = Poller(
            name="resource-sampler",
            acquire=runtime.metrics_collector.collect,
            persist=runtime.metrics_store.add,
            interval_seconds=metrics_config.snapshot_interval_sec,
        )
        aggregator = Aggregator(
            store=runtime.metrics_store,
            persist=repos.metrics.save,
            cleanup=repos.metrics.cleanup_older_than,
            interval_seconds=metrics_config.aggregation_interval_sec,
            max_age_days=metrics_config.max_age_days,
        )
        workers.append((WorkerConfig(name="resource-sampler"), sampler.run))
        workers.append((WorkerConfig(name="metrics-aggregator"), aggregator.run))

    if motion_config.enabled:
        motion = MotionPipeline(
            camera=runtime.camera,
            detector=ChangeDetector(sensitivity=motion_config.sensitivity),
            store=runtime.capture_store,
            polling_interval_seconds=motion_config.polling_interval_sec,
            min_capture_interval_seconds=motion_config.min_capture_interval_sec,
        )
        runtime.motion = motion
        workers.append((WorkerConfig(name="motion"), motion.run))

    if detector_config.enabled:
        classification = ClassificationPipeline(
            store=runtime.capture_store,
            detector=get_detector(),
            persist_detection=lambda result: repos.detections.save(GeckoDetection.from_result(result)),
            persist_sighting=lambda result: repos.sightings.save(GeckoSighting.from_result(result)),
            polling_interval_seconds=detector_config.polling_interval_sec,
            initial_delay_seconds=detector_config.initial_delay_sec,
            processed=ProcessedFileSet(
                high_water=detector_config.processed_high_water,
                low_water=detector_config.processed_low_water,
            ),
        )
        runtime.classification = classification
        workers.append((WorkerConfig(name="classification"), classification.run))

    return workers
