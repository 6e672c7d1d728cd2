"""Shared test fixtures for backend tests.

Uses an in-memory SQLite database and fake cameras, classifiers and
clocks so tests run without a Raspberry Pi, camera, or ONNX model.
"""
from __future__ import annotations

import os

# Must be set before db.database creates the module-level engine.
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from db.database import Base, get_session_factory
from db.repositories import Repositories
from pipelines.metrics_store import MetricsRingStore
from storage.captures import CaptureStore


# ---------- Database fixtures ----------

@pytest.fixture()
def db_engine():
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False, class_=Session)


@pytest.fixture()
def repositories(session_factory) -> Repositories:
    return Repositories.create(session_factory)


# ---------- Capture fixtures ----------

@pytest.fixture()
def capture_store(tmp_path) -> CaptureStore:
    return CaptureStore(tmp_path / "captures", max_age_days=7, max_files=1000)


# ---------- FastAPI test client ----------

@pytest.fixture()
def runtime(repositories, capture_store):
    from pipelines.factory import Runtime
    from tests.fakes import FakeCamera, make_jpeg

    return Runtime(
        repositories=repositories,
        metrics_store=MetricsRingStore(),
        capture_store=capture_store,
        camera=FakeCamera([make_jpeg((10, 20, 30))] * 5),
        sensor=None,
        weather=None,
        metrics_collector=None,
    )


@pytest.fixture()
def client(session_factory, runtime):
    """TestClient with storage and runtime overridden; background workers are not started."""
    # Import here to avoid pulling in the full app module graph at collection time.
    import api

    api.app.dependency_overrides[get_session_factory] = lambda: session_factory
    api.app.dependency_overrides[api.get_runtime] = lambda: runtime

    # Not used as a context manager, so the lifespan (and its workers) never runs.
    c = TestClient(api.app)
    try:
        yield c
    finally:
        api.app.dependency_overrides.clear()


# ---------- Orchestrator fixtures ----------

@pytest_asyncio.fixture()
async def orchestrator_factory():
    """Create WorkerOrchestrators with fast timings; shut them all down on teardown."""
    from orchestrator import WorkerOrchestrator

    created: list[WorkerOrchestrator] = []

    def _factory(**kwargs) -> WorkerOrchestrator:
        defaults = dict(
            monitor_interval_seconds=0.02,
            initial_backoff_seconds=0.01,
            max_backoff_seconds=0.05,
            shutdown_timeout_seconds=0.5,
        )
        defaults.update(kwargs)
        orch = WorkerOrchestrator(**defaults)
        created.append(orch)
        return orch

    yield _factory

    for orch in created:
        await orch.shutdown()
