"""FastAPI backend for the gecko terrarium monitor."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from common.config import CORS_ORIGINS, LOG_LEVEL, camera_config, motion_config
from common.logging_setup import setup_logging
from db.database import get_session_factory
from db.init_db import init_db
from db.repositories import SENSOR_METRICS, Repositories
from orchestrator import WorkerOrchestrator
from pipelines.factory import Runtime, build_workers, create_runtime
from schemas import (
    CameraStatus,
    CaptureInfo,
    CaptureStatisticsOut,
    DailyAverage,
    DailyAveragesOut,
    DetectionStatisticsOut,
    GeckoDetectionOut,
    GeckoSightingOut,
    MetricsSnapshotOut,
    SensorReadingOut,
    SightingStatisticsOut,
    SystemMetricsOut,
    WeatherReadingOut,
    WorkerInfo,
)
from storage.captures import MOTION, SNAPSHOT

logger = logging.getLogger(__name__)

app = FastAPI(
    title="GekkoLab Backend API",
    description="Terrarium telemetry, motion captures and gecko detections",
    version="0.3.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(CORS_ORIGINS),
    allow_origin_regex=r"^https?://(10\.\d+\.\d+\.\d+|192\.168\.\d+\.\d+|172\.(1[6-9]|2\d|3[0-1])\.\d+\.\d+)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging(LOG_LEVEL)
    # Schema failures must abort startup.
    init_db()

    runtime = create_runtime(get_session_factory())
    orchestrator = WorkerOrchestrator()
    for config, runner in build_workers(runtime):
        orchestrator.start_worker(config, runner)
    orchestrator.start_monitoring()
    app.state.runtime = runtime
    app.state.orchestrator = orchestrator

    yield

    await orchestrator.shutdown()
    runtime.close()
    app.state.runtime = None
    app.state.orchestrator = None


app.router.lifespan_context = lifespan


# ---------- Dependencies ----------

def get_repositories(session_factory: sessionmaker = Depends(get_session_factory)) -> Repositories:
    return Repositories.create(session_factory)


def get_runtime(request: Request) -> Runtime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Background services not initialized")
    return runtime


def get_orchestrator(request: Request) -> WorkerOrchestrator | None:
    return getattr(request.app.state, "orchestrator", None)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _time_range(
    start: datetime | None,
    end: datetime | None,
    default_span: timedelta = timedelta(hours=24),
) -> tuple[datetime, datetime]:
    end = _as_utc(end) if end else datetime.now(timezone.utc)
    start = _as_utc(start) if start else end - default_span
    if start > end:
        raise HTTPException(status_code=400, detail="'from' must not be after 'to'")
    return start, end


# ---------- Service ----------

@app.get("/")
def read_root():
    return {
        "status": "ok",
        "message": "GekkoLab Backend API is running",
        "endpoints": {
            "sensor": "/api/sensor/latest",
            "weather": "/api/weather/latest",
            "metrics": "/api/metrics/current",
            "detections": "/api/detections/latest",
            "sightings": "/api/sightings/latest",
            "motion": "/api/motion/latest/info",
            "camera": "/api/camera/status",
            "workers": "/api/workers",
            "health": "/health",
        },
    }


@app.get("/health")
def health_check(orchestrator: WorkerOrchestrator | None = Depends(get_orchestrator)):
    workers = orchestrator.list_workers() if orchestrator else []
    return {
        "status": "healthy",
        "workers": {w["name"]: w["status"] for w in workers},
    }


@app.get("/api/workers", response_model=List[WorkerInfo])
def list_workers(orchestrator: WorkerOrchestrator | None = Depends(get_orchestrator)):
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Orchestrator not initialized")
    return orchestrator.list_workers()


# ---------- Sensor ----------

@app.get("/api/sensor/latest", response_model=SensorReadingOut)
def get_latest_sensor_reading(repos: Repositories = Depends(get_repositories)):
    try:
        reading = repos.sensor.latest()
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail=f"Error fetching sensor reading: {exc}")
    if reading is None:
        raise HTTPException(status_code=404, detail="No sensor readings recorded yet")
    return reading


@app.get("/api/sensor/history", response_model=List[SensorReadingOut])
def get_sensor_history(
    start: datetime | None = Query(None, alias="from"),
    end: datetime | None = Query(None, alias="to"),
    repos: Repositories = Depends(get_repositories),
):
    start, end = _time_range(start, end)
    return repos.sensor.range(start, end)


@app.get("/api/sensor/daily-averages", response_model=DailyAveragesOut)
def get_sensor_daily_averages(
    metric: str = "temperature",
    start: datetime | None = Query(None, alias="from"),
    end: datetime | None = Query(None, alias="to"),
    repos: Repositories = Depends(get_repositories),
):
    if metric not in SENSOR_METRICS:
        raise HTTPException(status_code=400, detail=f"metric must be one of {', '.join(SENSOR_METRICS)}")
    start, end = _time_range(start, end, default_span=timedelta(days=30))
    averages = repos.sensor.daily_averages(metric, start, end)
    return DailyAveragesOut(
        metric=metric,
        averages=[DailyAverage(date=d, value=v) for d, v in averages.items()],
    )


# ---------- Weather ----------

@app.get("/api/weather/latest", response_model=WeatherReadingOut)
def get_latest_weather(repos: Repositories = Depends(get_repositories)):
    reading = repos.weather.latest()
    if reading is None:
        raise HTTPException(status_code=404, detail="No weather readings recorded yet")
    return reading


@app.get("/api/weather/history", response_model=List[WeatherReadingOut])
def get_weather_history(
    start: datetime | None = Query(None, alias="from"),
    end: datetime | None = Query(None, alias="to"),
    repos: Repositories = Depends(get_repositories),
):
    start, end = _time_range(start, end, default_span=timedelta(days=7))
    return repos.weather.range(start, end)


# ---------- Host metrics ----------

@app.get("/api/metrics/current", response_model=MetricsSnapshotOut)
def get_current_metrics(runtime: Runtime = Depends(get_runtime)):
    snapshot = runtime.metrics_store.latest()
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No metrics collected yet")
    return snapshot


@app.get("/api/metrics/realtime", response_model=List[MetricsSnapshotOut])
def get_realtime_metrics(
    minutes: int = Query(60, ge=1, le=120),
    runtime: Runtime = Depends(get_runtime),
):
    return runtime.metrics_store.window(timedelta(minutes=minutes))


@app.get("/api/metrics/history", response_model=List[SystemMetricsOut])
def get_metrics_history(
    start: datetime | None = Query(None, alias="from"),
    end: datetime | None = Query(None, alias="to"),
    repos: Repositories = Depends(get_repositories),
):
    start, end = _time_range(start, end)
    return repos.metrics.range(start, end)


# ---------- Gecko detections and sightings ----------

@app.get("/api/detections/latest", response_model=GeckoDetectionOut)
def get_latest_detection(
    detected_only: bool = False,
    repos: Repositories = Depends(get_repositories),
):
    detection = repos.detections.latest_detected() if detected_only else repos.detections.latest()
    if detection is None:
        raise HTTPException(status_code=404, detail="No detections recorded yet")
    return detection


@app.get("/api/detections/history", response_model=List[GeckoDetectionOut])
def get_detection_history(
    start: datetime | None = Query(None, alias="from"),
    end: datetime | None = Query(None, alias="to"),
    detected_only: bool = False,
    repos: Repositories = Depends(get_repositories),
):
    start, end = _time_range(start, end)
    if detected_only:
        return repos.detections.detected_in_range(start, end)
    return repos.detections.range(start, end)


@app.get("/api/detections/statistics", response_model=DetectionStatisticsOut)
def get_detection_statistics(
    start: datetime | None = Query(None, alias="from"),
    end: datetime | None = Query(None, alias="to"),
    repos: Repositories = Depends(get_repositories),
):
    start, end = _time_range(start, end, default_span=timedelta(days=7))
    return repos.detections.statistics(start, end)


@app.get("/api/sightings/latest", response_model=GeckoSightingOut)
def get_latest_sighting(repos: Repositories = Depends(get_repositories)):
    sighting = repos.sightings.latest()
    if sighting is None:
        raise HTTPException(status_code=404, detail="No gecko sightings recorded yet")
    return sighting


@app.get("/api/sightings/history", response_model=List[GeckoSightingOut])
def get_sighting_history(
    start: datetime | None = Query(None, alias="from"),
    end: datetime | None = Query(None, alias="to"),
    repos: Repositories = Depends(get_repositories),
):
    start, end = _time_range(start, end, default_span=timedelta(days=7))
    return list(reversed(repos.sightings.range(start, end)))


@app.get("/api/sightings/statistics", response_model=SightingStatisticsOut)
def get_sighting_statistics(
    start: datetime | None = Query(None, alias="from"),
    end: datetime | None = Query(None, alias="to"),
    repos: Repositories = Depends(get_repositories),
):
    start, end = _time_range(start, end, default_span=timedelta(days=30))
    return repos.sightings.statistics(start, end)


# ---------- Motion captures ----------

@app.get("/api/motion/latest")
def get_latest_motion_capture(runtime: Runtime = Depends(get_runtime)):
    capture = runtime.capture_store.latest(MOTION)
    if capture is None:
        raise HTTPException(status_code=404, detail="No motion captures available")
    return FileResponse(capture.path, media_type="image/jpeg", filename=capture.filename)


@app.get("/api/motion/latest/info", response_model=CaptureInfo)
def get_latest_motion_capture_info(runtime: Runtime = Depends(get_runtime)):
    capture = runtime.capture_store.latest(MOTION)
    if capture is None:
        raise HTTPException(status_code=404, detail="No motion captures available")
    return capture.to_dict()


@app.get("/api/motion/recent", response_model=List[CaptureInfo])
def get_recent_motion_captures(
    count: int = Query(10, ge=1, le=100),
    runtime: Runtime = Depends(get_runtime),
):
    return [c.to_dict() for c in runtime.capture_store.recent(count, MOTION)]


@app.get("/api/motion/statistics", response_model=CaptureStatisticsOut)
def get_motion_statistics(runtime: Runtime = Depends(get_runtime)):
    return runtime.capture_store.statistics(MOTION)


@app.get("/api/motion/capture/{filename}")
def get_motion_capture(filename: str, runtime: Runtime = Depends(get_runtime)):
    path = runtime.capture_store.resolve(filename)
    if path is None:
        raise HTTPException(status_code=404, detail=f"Capture not found: {filename}")
    return FileResponse(path, media_type="image/jpeg", filename=path.name)


# ---------- Camera ----------

@app.get("/api/camera/status", response_model=CameraStatus)
async def get_camera_status(runtime: Runtime = Depends(get_runtime)):
    available = await asyncio.to_thread(runtime.camera.is_available)
    return CameraStatus(
        available=available,
        camera_type="simulator" if camera_config.use_simulator else "rpicam",
        capture_dir=str(runtime.capture_store.directory),
        motion_enabled=motion_config.enabled,
        captures_since_start=runtime.motion.captures if runtime.motion else 0,
    )


@app.post("/api/camera/snapshot", response_model=CaptureInfo, status_code=201)
async def take_snapshot(runtime: Runtime = Depends(get_runtime)):
    if not await asyncio.to_thread(runtime.camera.is_available):
        raise HTTPException(status_code=503, detail="Camera not available")
    frame = await runtime.camera.capture()
    if frame is None:
        raise HTTPException(status_code=502, detail="Camera returned no image")
    try:
        path = await asyncio.to_thread(runtime.capture_store.save, frame, SNAPSHOT)
    except OSError as exc:
        raise HTTPException(status_code=500, detail=f"Failed to save snapshot: {exc}")
    await asyncio.to_thread(runtime.capture_store.sweep, SNAPSHOT)
    logger.info("Snapshot saved to %s", path.name)
    capture = next((c for c in runtime.capture_store.captures(SNAPSHOT) if c.path == path), None)
    if capture is None:
        raise HTTPException(status_code=500, detail="Snapshot was removed by retention")
    return capture.to_dict()


@app.get("/api/camera/snapshot/latest")
def get_latest_snapshot(runtime: Runtime = Depends(get_runtime)):
    capture = runtime.capture_store.latest(SNAPSHOT)
    if capture is None:
        raise HTTPException(status_code=404, detail="No snapshots available")
    return FileResponse(capture.path, media_type="image/jpeg", filename=capture.filename)
