"""
Host resource sampling from /proc and the root filesystem.
"""
from __future__ import annotations

import logging
import random
import shutil
from pathlib import Path

from common.types import MetricsSnapshot
from sources.exceptions import AcquisitionError

logger = logging.getLogger(__name__)


def _percent(used: float, total: float) -> float:
    return used / total * 100.0 if total > 0 else 0.0


class LinuxMetricsCollector:
    """CPU, memory and disk usage for a Linux host.

    CPU usage is the busy share of jiffies since the previous call, so the
    first sample reports 0.
    """

    def __init__(self, proc_root: str | Path = "/proc", disk_path: str | Path = "/"):
        self.proc_root = Path(proc_root)
        self.disk_path = str(disk_path)
        self._previous_cpu: tuple[float, float] | None = None

    @property
    def is_available(self) -> bool:
        return (self.proc_root / "stat").exists() and (self.proc_root / "meminfo").exists()

    def read_cpu_times(self) -> tuple[float, float]:
        """Return (idle, total) jiffies from the aggregate cpu line."""
        with open(self.proc_root / "stat") as f:
            for line in f:
                if line.startswith("cpu "):
                    fields = [float(v) for v in line.split()[1:9]]
                    break
            else:
                raise AcquisitionError("No aggregate cpu line in /proc/stat")
        if len(fields) < 4:
            raise AcquisitionError("Truncated cpu line in /proc/stat")
        # user nice system idle iowait irq softirq steal
        idle = fields[3] + (fields[4] if len(fields) > 4 else 0.0)
        return idle, sum(fields)

    def cpu_percent(self) -> float:
        idle, total = self.read_cpu_times()
        previous = self._previous_cpu
        self._previous_cpu = (idle, total)
        if previous is None:
            return 0.0
        idle_delta = idle - previous[0]
        total_delta = total - previous[1]
        if total_delta <= 0:
            return 0.0
        return max(0.0, min(100.0, (1.0 - idle_delta / total_delta) * 100.0))

    def memory_usage(self) -> tuple[int, int]:
        """Return (used, total) bytes."""
        values: dict[str, int] = {}
        with open(self.proc_root / "meminfo") as f:
            for line in f:
                key, _, rest = line.partition(":")
                if key in ("MemTotal", "MemAvailable"):
                    values[key] = int(rest.split()[0]) * 1024
        total = values.get("MemTotal", 0)
        available = values.get("MemAvailable", 0)
        return max(0, total - available), total

    def disk_usage(self) -> tuple[int, int]:
        usage = shutil.disk_usage(self.disk_path)
        return usage.used, usage.total

    def collect(self) -> MetricsSnapshot:
        try:
            cpu = self.cpu_percent()
            mem_used, mem_total = self.memory_usage()
            disk_used, disk_total = self.disk_usage()
        except (OSError, ValueError, IndexError) as exc:
            raise AcquisitionError(f"Could not read host metrics: {exc}") from exc
        return MetricsSnapshot(
            cpu_percent=cpu,
            memory_percent=_percent(mem_used, mem_total),
            memory_used_bytes=mem_used,
            memory_total_bytes=mem_total,
            disk_percent=_percent(disk_used, disk_total),
            disk_used_bytes=disk_used,
            disk_total_bytes=disk_total,
        )


class SimulatedMetricsCollector:
    """Random-walk metrics for hosts without /proc."""

    MEMORY_TOTAL = 4 * 1024**3
    DISK_TOTAL = 64 * 1024**3

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.Random()
        self._cpu = 15.0

    @property
    def is_available(self) -> bool:
        return True

    def collect(self) -> MetricsSnapshot:
        self._cpu = max(0.0, min(100.0, self._cpu + self._rng.uniform(-5, 5)))
        mem_used = int(self.MEMORY_TOTAL * self._rng.uniform(0.3, 0.5))
        disk_used = int(self.DISK_TOTAL * 0.4)
        return MetricsSnapshot(
            cpu_percent=self._cpu,
            memory_percent=_percent(mem_used, self.MEMORY_TOTAL),
            memory_used_bytes=mem_used,
            memory_total_bytes=self.MEMORY_TOTAL,
            disk_percent=_percent(disk_used, self.DISK_TOTAL),
            disk_used_bytes=disk_used,
            disk_total_bytes=self.DISK_TOTAL,
        )
