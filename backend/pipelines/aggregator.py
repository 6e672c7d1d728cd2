"""
Periodic aggregation of host resource snapshots into durable rows.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

from common.types import MetricsSnapshot
from db.models import SystemMetrics
from pipelines.metrics_store import MetricsRingStore
from pipelines.poller import call_maybe_async, sleep_or_stop

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def aggregate(snapshots: Sequence[MetricsSnapshot], timestamp: datetime) -> SystemMetrics:
    """Mean of percentages and used bytes; totals come from the newest snapshot."""
    if not snapshots:
        raise ValueError("Cannot aggregate an empty batch")
    n = len(snapshots)
    last = max(snapshots, key=lambda s: s.timestamp)
    return SystemMetrics(
        timestamp=timestamp,
        cpu_usage_percent=sum(s.cpu_percent for s in snapshots) / n,
        memory_usage_percent=sum(s.memory_percent for s in snapshots) / n,
        memory_used_bytes=round(sum(s.memory_used_bytes for s in snapshots) / n),
        memory_total_bytes=last.memory_total_bytes,
        disk_usage_percent=sum(s.disk_percent for s in snapshots) / n,
        disk_used_bytes=round(sum(s.disk_used_bytes for s in snapshots) / n),
        disk_total_bytes=last.disk_total_bytes,
        sample_count=n,
    )


class Aggregator:
    """Drains the ring store on a timer and persists one averaged row per tick.

    At the top of each clock hour it also asks storage to delete rows older
    than ``max_age_days``.
    """

    def __init__(
        self,
        store: MetricsRingStore,
        persist: Callable[[SystemMetrics], Any],
        cleanup: Callable[[float], Any] | None = None,
        interval_seconds: float = 60.0,
        max_age_days: float = 7.0,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self._persist = persist
        self._cleanup = cleanup
        self.interval_seconds = interval_seconds
        self.max_age_days = max_age_days
        self._clock = clock
        self._last_cleanup_hour: datetime | None = None

    async def aggregate_once(self) -> SystemMetrics | None:
        batch = self.store.drain_for_aggregation()
        if not batch:
            logger.debug("No metrics snapshots to aggregate")
            return None
        record = aggregate(batch, self._clock())
        await call_maybe_async(self._persist, record)
        logger.info(
            "Aggregated %d snapshot(s): cpu=%.1f%% mem=%.1f%% disk=%.1f%%",
            len(batch),
            record.cpu_usage_percent,
            record.memory_usage_percent,
            record.disk_usage_percent,
        )
        return record

    async def maybe_cleanup(self) -> bool:
        if self._cleanup is None:
            return False
        now = self._clock()
        hour = now.replace(minute=0, second=0, microsecond=0)
        if now.minute != 0 or self._last_cleanup_hour == hour:
            return False
        self._last_cleanup_hour = hour
        await call_maybe_async(self._cleanup, self.max_age_days)
        return True

    async def tick(self) -> None:
        try:
            await self.aggregate_once()
        except Exception:
            logger.exception("Metrics aggregation failed")
        try:
            await self.maybe_cleanup()
        except Exception:
            logger.exception("Metrics retention cleanup failed")

    async def run(self, stop_event: asyncio.Event) -> None:
        logger.info("Metrics aggregator started (interval=%.0fs)", self.interval_seconds)
        while not await sleep_or_stop(stop_event, self.interval_seconds):
            await self.tick()
        logger.info("Metrics aggregator stopped")
