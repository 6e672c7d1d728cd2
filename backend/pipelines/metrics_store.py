"""
In-memory store for host resource snapshots.

Two views share each snapshot:

* the accumulation buffer, drained by the aggregator once per interval;
* the display view, a retention-bounded window read by the API.

Draining never touches the display view.
"""
from __future__ import annotations

import threading
import time
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Callable

from common.types import MetricsSnapshot

DEFAULT_DISPLAY_RETENTION_SECONDS = 2 * 60 * 60


class MetricsRingStore:
    def __init__(
        self,
        display_retention_seconds: float = DEFAULT_DISPLAY_RETENTION_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._display_retention_seconds = display_retention_seconds
        self._clock = clock
        # deque.append / popleft are atomic, so the sampler can keep adding
        # while the aggregator drains.
        self._pending: deque[MetricsSnapshot] = deque()
        self._display: deque[tuple[float, MetricsSnapshot]] = deque()
        self._display_lock = threading.Lock()

    def add(self, snapshot: MetricsSnapshot) -> None:
        self._pending.append(snapshot)
        now = self._clock()
        with self._display_lock:
            self._display.append((now, snapshot))
            self._evict_expired(now)

    def latest(self) -> MetricsSnapshot | None:
        with self._display_lock:
            self._evict_expired(self._clock())
            if not self._display:
                return None
            return max((s for _, s in self._display), key=lambda s: s.timestamp)

    def window(self, duration: timedelta, now: datetime | None = None) -> list[MetricsSnapshot]:
        """Snapshots taken within ``duration`` of ``now``, oldest first."""
        cutoff = (now or datetime.now(timezone.utc)) - duration
        with self._display_lock:
            self._evict_expired(self._clock())
            selected = [s for _, s in self._display if s.timestamp >= cutoff]
        return sorted(selected, key=lambda s: s.timestamp)

    def drain_for_aggregation(self) -> list[MetricsSnapshot]:
        """Remove and return every snapshot added since the previous drain."""
        # Bound the loop to what was present on entry; later appends wait
        # for the next drain.
        count = len(self._pending)
        drained = [self._pending.popleft() for _ in range(count)]
        drained.sort(key=lambda s: s.timestamp)
        return drained

    def pending_count(self) -> int:
        return len(self._pending)

    def _evict_expired(self, now: float) -> None:
        cutoff = now - self._display_retention_seconds
        while self._display and self._display[0][0] < cutoff:
            self._display.popleft()
