"""
Generic scheduled poller.

A poller repeatedly acquires a sample from a source, optionally maps it to
a storage record, and hands it to a persist callable. Each step may be a
plain function or a coroutine function; plain functions run in a worker
thread so blocking I/O never stalls the event loop.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


async def call_maybe_async(func: Callable[..., Any], *args: Any) -> Any:
    if inspect.iscoroutinefunction(func):
        return await func(*args)
    result = await asyncio.to_thread(func, *args)
    if inspect.isawaitable(result):
        return await result
    return result


async def sleep_or_stop(stop_event: asyncio.Event, seconds: float) -> bool:
    """Sleep up to ``seconds``; return True if ``stop_event`` fired first."""
    if stop_event.is_set():
        return True
    if seconds <= 0:
        return False
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=seconds)
        return True
    except asyncio.TimeoutError:
        return False


class Poller:
    """Runs acquire -> transform -> persist on a fixed interval.

    ``acquire`` returning None means the source had no data this cycle.
    Exceptions from any step are logged and the loop continues. The
    interval is the pause after each iteration, not a fixed-rate period.
    """

    def __init__(
        self,
        name: str,
        acquire: Callable[[], Any],
        persist: Callable[[Any], Any],
        interval_seconds: float,
        transform: Callable[[Any], Any] | None = None,
        initial_delay_seconds: float = 0.0,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self._acquire = acquire
        self._persist = persist
        self._transform = transform
        self.interval_seconds = interval_seconds
        self.initial_delay_seconds = initial_delay_seconds
        self.iterations = 0
        self.persisted = 0
        self.failures = 0

    async def run_once(self) -> bool:
        """One acquire/transform/persist cycle. Returns True if something was persisted."""
        self.iterations += 1
        try:
            sample = await call_maybe_async(self._acquire)
            if sample is None:
                logger.warning("[%s] No data available, skipping this cycle", self.name)
                return False
            record = self._transform(sample) if self._transform else sample
            await call_maybe_async(self._persist, record)
        except Exception:
            self.failures += 1
            logger.exception("[%s] Polling cycle failed", self.name)
            return False
        self.persisted += 1
        logger.debug("[%s] Persisted sample", self.name)
        return True

    async def run(self, stop_event: asyncio.Event) -> None:
        logger.info(
            "[%s] Poller started (interval=%.1fs, initial delay=%.1fs)",
            self.name,
            self.interval_seconds,
            self.initial_delay_seconds,
        )
        if await sleep_or_stop(stop_event, self.initial_delay_seconds):
            logger.info("[%s] Poller stopped before first poll", self.name)
            return

        while not stop_event.is_set():
            await self.run_once()
            if await sleep_or_stop(stop_event, self.interval_seconds):
                break
        logger.info("[%s] Poller stopped", self.name)
