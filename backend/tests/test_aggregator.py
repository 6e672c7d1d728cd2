"""Tests for metrics aggregation and hourly retention cleanup."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from common.types import MetricsSnapshot
from pipelines.aggregator import Aggregator, aggregate
from pipelines.metrics_store import MetricsRingStore

T0 = datetime(2026, 5, 1, 12, 30, tzinfo=timezone.utc)


def _snap(seconds: int, cpu: float, mem_used: int, mem_total: int) -> MetricsSnapshot:
    return MetricsSnapshot(
        timestamp=T0 + timedelta(seconds=seconds),
        cpu_percent=cpu,
        memory_percent=mem_used / mem_total * 100,
        memory_used_bytes=mem_used,
        memory_total_bytes=mem_total,
        disk_percent=40.0,
        disk_used_bytes=400,
        disk_total_bytes=1000 + seconds,
    )


class TestAggregate:
    def test_means_and_last_totals(self):
        """cpu 10/20/30 averages to 20; totals come from the last snapshot."""
        batch = [
            _snap(0, 10, 100, 1000),
            _snap(5, 20, 200, 1000),
            _snap(10, 30, 300, 2000),
        ]
        record = aggregate(batch, T0)
        assert record.cpu_usage_percent == pytest.approx(20.0)
        assert record.memory_used_bytes == 200
        assert record.memory_total_bytes == 2000
        assert record.disk_total_bytes == 1010
        assert record.sample_count == 3
        assert record.timestamp == T0

    def test_totals_use_newest_even_if_unordered(self):
        batch = [_snap(10, 30, 300, 2000), _snap(0, 10, 100, 1000)]
        assert aggregate(batch, T0).memory_total_bytes == 2000

    def test_empty_batch_rejected(self):
        with pytest.raises(ValueError):
            aggregate([], T0)


class TestAggregator:
    @pytest.mark.asyncio
    async def test_persists_one_row_per_tick(self):
        store = MetricsRingStore()
        for i, cpu in enumerate((10, 20, 30)):
            store.add(_snap(i * 5, cpu, 100, 1000))
        persisted = []
        aggregator = Aggregator(store=store, persist=persisted.append, clock=lambda: T0)

        record = await aggregator.aggregate_once()
        assert persisted == [record]
        assert record.cpu_usage_percent == pytest.approx(20.0)
        assert store.pending_count() == 0

    @pytest.mark.asyncio
    async def test_empty_interval_persists_nothing(self):
        persisted = []
        aggregator = Aggregator(store=MetricsRingStore(), persist=persisted.append, clock=lambda: T0)
        assert await aggregator.aggregate_once() is None
        assert persisted == []

    @pytest.mark.asyncio
    async def test_persist_failure_is_logged(self, caplog):
        store = MetricsRingStore()
        store.add(_snap(0, 10, 100, 1000))

        def persist(_):
            raise RuntimeError("db locked")

        aggregator = Aggregator(store=store, persist=persist, clock=lambda: T0)
        with caplog.at_level("ERROR"):
            await aggregator.tick()
        assert "Metrics aggregation failed" in caplog.text


class TestCleanup:
    @pytest.mark.asyncio
    async def test_cleanup_only_at_top_of_hour_once(self):
        now = {"value": datetime(2026, 5, 1, 12, 59, tzinfo=timezone.utc)}
        calls = []
        aggregator = Aggregator(
            store=MetricsRingStore(),
            persist=lambda _: None,
            cleanup=calls.append,
            max_age_days=7,
            clock=lambda: now["value"],
        )
        assert await aggregator.maybe_cleanup() is False

        now["value"] = datetime(2026, 5, 1, 13, 0, 10, tzinfo=timezone.utc)
        assert await aggregator.maybe_cleanup() is True
        now["value"] = datetime(2026, 5, 1, 13, 0, 50, tzinfo=timezone.utc)
        assert await aggregator.maybe_cleanup() is False

        now["value"] = datetime(2026, 5, 1, 14, 0, 5, tzinfo=timezone.utc)
        assert await aggregator.maybe_cleanup() is True
        assert calls == [7, 7]

    @pytest.mark.asyncio
    async def test_no_cleanup_callable(self):
        aggregator = Aggregator(store=MetricsRingStore(), persist=lambda _: None)
        assert await aggregator.maybe_cleanup() is False
