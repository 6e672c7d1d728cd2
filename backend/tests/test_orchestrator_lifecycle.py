"""Tests for WorkerOrchestrator lifecycle: start, stop, listing, restart and shutdown."""
from __future__ import annotations

import asyncio

import pytest

from orchestrator import WorkerConfig
from orchestrator.exceptions import WorkerAlreadyRunningError, WorkerNotFoundError


def _cfg(name: str = "test", restart: bool = True) -> WorkerConfig:
    return WorkerConfig(name=name, restart_on_failure=restart)


async def _wait_forever(stop: asyncio.Event):
    await stop.wait()


async def _ignores_stop(stop: asyncio.Event):
    while True:
        await asyncio.sleep(3600)


async def _until(predicate, timeout: float = 1.0):
    for _ in range(int(timeout / 0.01)):
        if predicate():
            return
        await asyncio.sleep(0.01)
    raise AssertionError("condition not reached")


# ---------- Start / Stop ----------

class TestStartStop:
    @pytest.mark.asyncio
    async def test_start_creates_running_handle(self, orchestrator_factory):
        orch = orchestrator_factory()
        handle = orch.start_worker(_cfg("w1"), _wait_forever)
        assert handle.name == "w1"
        assert handle.is_alive
        assert handle.status == "running"

    @pytest.mark.asyncio
    async def test_stop_sets_event_and_finishes(self, orchestrator_factory):
        orch = orchestrator_factory()
        handle = orch.start_worker(_cfg("w1"), _wait_forever)
        await orch.stop_worker("w1")
        assert handle.stop_event.is_set()
        assert handle.task.done()
        assert not handle.task.cancelled()

    @pytest.mark.asyncio
    async def test_stop_cancels_uncooperative_worker(self, orchestrator_factory):
        orch = orchestrator_factory(shutdown_timeout_seconds=0.05)
        handle = orch.start_worker(_cfg("stubborn"), _ignores_stop)
        await orch.stop_worker("stubborn")
        assert handle.task.cancelled()

    @pytest.mark.asyncio
    async def test_stop_nonexistent_raises(self, orchestrator_factory):
        orch = orchestrator_factory()
        with pytest.raises(WorkerNotFoundError):
            await orch.stop_worker("unknown")

    @pytest.mark.asyncio
    async def test_duplicate_start_raises(self, orchestrator_factory):
        orch = orchestrator_factory()
        orch.start_worker(_cfg("w1"), _wait_forever)
        with pytest.raises(WorkerAlreadyRunningError):
            orch.start_worker(_cfg("w1"), _wait_forever)

    def test_invalid_worker_name_rejected(self):
        with pytest.raises(ValueError):
            WorkerConfig(name="bad name!")


# ---------- Listing ----------

class TestListWorkers:
    @pytest.mark.asyncio
    async def test_empty(self, orchestrator_factory):
        assert orchestrator_factory().list_workers() == []

    @pytest.mark.asyncio
    async def test_includes_all(self, orchestrator_factory):
        orch = orchestrator_factory()
        orch.start_worker(_cfg("a"), _wait_forever)
        orch.start_worker(_cfg("b"), _wait_forever)
        names = {w["name"] for w in orch.list_workers()}
        assert names == {"a", "b"}

    @pytest.mark.asyncio
    async def test_get_unknown_raises(self, orchestrator_factory):
        with pytest.raises(WorkerNotFoundError):
            orchestrator_factory().get_worker("nope")


# ---------- Crash recovery ----------

class TestRestart:
    @pytest.mark.asyncio
    async def test_crashed_worker_is_restarted(self, orchestrator_factory):
        runs = {"n": 0}

        async def flaky(stop: asyncio.Event):
            runs["n"] += 1
            if runs["n"] == 1:
                raise RuntimeError("boom")
            await stop.wait()

        orch = orchestrator_factory()
        orch.start_worker(_cfg("flaky"), flaky)
        orch.start_monitoring()
        handle = orch.get_worker("flaky")
        await _until(lambda: handle.restart_count == 1 and handle.is_alive)
        assert "boom" in handle.last_error

    @pytest.mark.asyncio
    async def test_normal_return_is_not_restarted(self, orchestrator_factory):
        async def quits(stop: asyncio.Event):
            return None

        orch = orchestrator_factory()
        handle = orch.start_worker(_cfg("quits"), quits)
        orch.start_monitoring()
        await asyncio.sleep(0.1)
        assert handle.restart_count == 0
        assert handle.status == "stopped"

    @pytest.mark.asyncio
    async def test_restart_disabled(self, orchestrator_factory):
        async def crashes(stop: asyncio.Event):
            raise RuntimeError("boom")

        orch = orchestrator_factory()
        handle = orch.start_worker(_cfg("once", restart=False), crashes)
        orch.start_monitoring()
        await asyncio.sleep(0.1)
        assert handle.restart_count == 0
        assert handle.status == "failed"

    @pytest.mark.asyncio
    async def test_backoff_grows_and_caps(self, orchestrator_factory):
        async def always_crashes(stop: asyncio.Event):
            raise RuntimeError("boom")

        orch = orchestrator_factory(initial_backoff_seconds=0.01, max_backoff_seconds=0.04)
        handle = orch.start_worker(_cfg("crashy"), always_crashes)
        orch.start_monitoring()
        await _until(lambda: handle.restart_count >= 3, timeout=3)
        assert handle.backoff_seconds == pytest.approx(0.04)


# ---------- Shutdown ----------

class TestShutdown:
    @pytest.mark.asyncio
    async def test_shutdown_stops_everything(self, orchestrator_factory):
        orch = orchestrator_factory()
        handles = [orch.start_worker(_cfg(f"w{i}"), _wait_forever) for i in range(3)]
        orch.start_monitoring()
        await orch.shutdown()
        assert all(h.task.done() for h in handles)
        assert orch.list_workers() == []

    @pytest.mark.asyncio
    async def test_shutdown_idempotent(self, orchestrator_factory):
        orch = orchestrator_factory()
        orch.start_worker(_cfg("w"), _wait_forever)
        await orch.shutdown()
        await orch.shutdown()
