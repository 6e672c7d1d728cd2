"""Types for background worker orchestration."""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from pydantic import BaseModel, Field

WorkerRunner = Callable[[asyncio.Event], Awaitable[None]]


class WorkerConfig(BaseModel):
    """Registration data for one background worker."""

    name: str = Field(..., min_length=1, pattern=r"^[a-zA-Z0-9_-]+$")
    restart_on_failure: bool = True


@dataclass
class WorkerHandle:
    """Handle for a managed asyncio worker task."""

    config: WorkerConfig
    runner: WorkerRunner
    task: asyncio.Task
    stop_event: asyncio.Event
    started_at: float = field(default_factory=time.monotonic)
    restart_count: int = 0
    backoff_seconds: float = 1.0
    next_restart_at: float = 0.0
    last_error: str | None = None

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def is_alive(self) -> bool:
        return not self.task.done()

    @property
    def failed(self) -> bool:
        return self.task.done() and not self.task.cancelled() and self.task.exception() is not None

    @property
    def status(self) -> str:
        if self.is_alive:
            return "running"
        if self.failed:
            return "failed"
        return "stopped"

    async def stop(self, timeout: float = 5.0) -> None:
        """Signal the worker to stop; cancel it if it does not finish in time."""
        self.stop_event.set()
        if self.task.done():
            return
        done, _ = await asyncio.wait({self.task}, timeout=timeout)
        if not done:
            self.task.cancel()
            await asyncio.wait({self.task})

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "status": self.status,
            "started_at_monotonic": self.started_at,
            "restart_count": self.restart_count,
            "backoff_seconds": self.backoff_seconds,
            "next_restart_at_monotonic": self.next_restart_at,
            "last_error": self.last_error,
        }
