"""Worker orchestrator for background poller and pipeline lifecycle management."""
from __future__ import annotations

import asyncio
import logging
import time

from orchestrator.exceptions import WorkerAlreadyRunningError, WorkerNotFoundError
from orchestrator.types import WorkerConfig, WorkerHandle, WorkerRunner

logger = logging.getLogger(__name__)


class WorkerOrchestrator:
    """Owns one asyncio task per background worker.

    Workers receive a stop event and are expected to exit promptly once it
    is set. A worker that dies with an exception is restarted with
    exponential backoff; a worker that returns normally stays stopped.
    """

    def __init__(
        self,
        monitor_interval_seconds: float = 2.0,
        initial_backoff_seconds: float = 1.0,
        max_backoff_seconds: float = 60.0,
        shutdown_timeout_seconds: float = 5.0,
    ):
        self._workers: dict[str, WorkerHandle] = {}
        self._monitor_interval_seconds = monitor_interval_seconds
        self._initial_backoff_seconds = initial_backoff_seconds
        self._max_backoff_seconds = max_backoff_seconds
        self._shutdown_timeout_seconds = shutdown_timeout_seconds
        self._monitor_task: asyncio.Task | None = None
        self._monitor_stop = asyncio.Event()

    def _spawn_task(self, config: WorkerConfig, runner: WorkerRunner, stop_event: asyncio.Event) -> asyncio.Task:
        return asyncio.create_task(runner(stop_event), name=f"worker:{config.name}")

    def start_worker(self, config: WorkerConfig, runner: WorkerRunner) -> WorkerHandle:
        if config.name in self._workers:
            raise WorkerAlreadyRunningError(f"Worker '{config.name}' is already running")
        stop_event = asyncio.Event()
        handle = WorkerHandle(
            config=config,
            runner=runner,
            task=self._spawn_task(config, runner, stop_event),
            stop_event=stop_event,
            backoff_seconds=self._initial_backoff_seconds,
        )
        self._workers[config.name] = handle
        logger.info("Started worker '%s'", config.name)
        return handle

    async def stop_worker(self, name: str) -> None:
        handle = self._workers.pop(name, None)
        if not handle:
            raise WorkerNotFoundError(f"Worker '{name}' not found")
        await handle.stop(timeout=self._shutdown_timeout_seconds)
        logger.info("Stopped worker '%s'", name)

    def get_worker(self, name: str) -> WorkerHandle:
        handle = self._workers.get(name)
        if not handle:
            raise WorkerNotFoundError(f"Worker '{name}' not found")
        return handle

    def list_workers(self) -> list[dict]:
        return [h.to_dict() for h in self._workers.values()]

    def start_monitoring(self):
        if self._monitor_task and not self._monitor_task.done():
            return
        self._monitor_stop.clear()
        self._monitor_task = asyncio.create_task(self._monitor_loop(), name="worker-monitor")
        logger.info("Worker monitor started")

    async def stop_monitoring(self):
        self._monitor_stop.set()
        if self._monitor_task:
            await asyncio.wait({self._monitor_task}, timeout=self._shutdown_timeout_seconds)
            if not self._monitor_task.done():
                self._monitor_task.cancel()
                await asyncio.wait({self._monitor_task})
            self._monitor_task = None
        logger.info("Worker monitor stopped")

    async def shutdown(self):
        await self.stop_monitoring()
        handles = list(self._workers.values())
        self._workers.clear()
        for handle in handles:
            handle.stop_event.set()
        # Stop concurrently so one slow worker does not delay the others' grace period.
        await asyncio.gather(*(h.stop(timeout=self._shutdown_timeout_seconds) for h in handles))
        logger.info("Worker orchestrator shutdown complete")

    def check_workers(self, now: float | None = None) -> None:
        """Schedule or perform restarts for workers that died with an exception."""
        now = time.monotonic() if now is None else now
        for name, handle in list(self._workers.items()):
            if handle.is_alive:
                handle.next_restart_at = 0.0
                if now - handle.started_at > self._max_backoff_seconds:
                    handle.backoff_seconds = self._initial_backoff_seconds
                continue
            if not handle.config.restart_on_failure or not handle.failed:
                # Returned normally, e.g. its source was unavailable at startup.
                continue

            if handle.next_restart_at == 0.0:
                handle.last_error = repr(handle.task.exception())
                handle.next_restart_at = now + handle.backoff_seconds
                logger.warning(
                    "Worker '%s' died (%s). Scheduling restart in %.1fs",
                    name,
                    handle.last_error,
                    handle.backoff_seconds,
                )
                continue

            if now < handle.next_restart_at:
                continue

            logger.warning("Restarting worker '%s' now", name)
            handle.stop_event = asyncio.Event()
            handle.task = self._spawn_task(handle.config, handle.runner, handle.stop_event)
            handle.restart_count += 1
            handle.started_at = time.monotonic()
            handle.backoff_seconds = min(handle.backoff_seconds * 2, self._max_backoff_seconds)
            handle.next_restart_at = 0.0
            logger.info("Restarted worker '%s' (restart #%d)", name, handle.restart_count)

    async def _monitor_loop(self):
        while not self._monitor_stop.is_set():
            try:
                await asyncio.wait_for(self._monitor_stop.wait(), timeout=self._monitor_interval_seconds)
                break
            except asyncio.TimeoutError:
                pass
            try:
                self.check_workers()
            except Exception:
                logger.exception("Worker monitor check failed")
