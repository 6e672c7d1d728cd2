"""
Motion-triggered capture.

Each cycle grabs a frame, compares it with the previous one and, when the
change exceeds the detector's sensitivity, writes the frame to the capture
directory. Captures are rate limited and followed by a retention sweep.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import time
from pathlib import Path
from typing import Awaitable, Callable, Protocol

from cv.motion import ChangeDetector
from pipelines.poller import call_maybe_async, sleep_or_stop
from storage.captures import MOTION, CaptureStore

logger = logging.getLogger(__name__)


class Camera(Protocol):
    def is_available(self) -> bool: ...

    def capture(self) -> Awaitable[bytes | None]: ...


class MotionState(str, enum.Enum):
    NO_BASELINE = "no_baseline"
    ARMED = "armed"


class CycleOutcome(str, enum.Enum):
    NO_FRAME = "no_frame"
    BASELINE = "baseline"
    NO_MOTION = "no_motion"
    CAPTURED = "captured"
    RATE_LIMITED = "rate_limited"


class MotionPipeline:
    def __init__(
        self,
        camera: Camera,
        detector: ChangeDetector,
        store: CaptureStore,
        polling_interval_seconds: float = 1.0,
        min_capture_interval_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.camera = camera
        self.detector = detector
        self.store = store
        self.polling_interval_seconds = polling_interval_seconds
        self.min_capture_interval_seconds = min_capture_interval_seconds
        self._clock = clock
        self._previous_frame: bytes | None = None
        self._last_capture_at: float | None = None
        self.last_capture_path: Path | None = None
        self.captures = 0

    @property
    def state(self) -> MotionState:
        return MotionState.NO_BASELINE if self._previous_frame is None else MotionState.ARMED

    def _rate_limited(self, now: float) -> bool:
        if self._last_capture_at is None:
            return False
        return now - self._last_capture_at < self.min_capture_interval_seconds

    async def process_frame(self) -> CycleOutcome:
        frame = await self.camera.capture()
        if frame is None:
            logger.warning("Camera returned no frame")
            return CycleOutcome.NO_FRAME

        previous = self._previous_frame
        # The newest frame is always the next baseline, whatever happens below.
        self._previous_frame = frame
        if previous is None:
            logger.debug("Stored baseline frame")
            return CycleOutcome.BASELINE

        moved = await asyncio.to_thread(self.detector.detect, previous, frame)
        if not moved:
            return CycleOutcome.NO_MOTION

        now = self._clock()
        if self._rate_limited(now):
            logger.debug("Motion detected but capture suppressed (rate limited)")
            return CycleOutcome.RATE_LIMITED

        path = await asyncio.to_thread(self.store.save, frame, MOTION)
        self._last_capture_at = now
        self.last_capture_path = path
        self.captures += 1
        logger.info("Motion detected, saved capture %s", path.name)
        await asyncio.to_thread(self.store.sweep, MOTION)
        return CycleOutcome.CAPTURED

    async def run(self, stop_event: asyncio.Event) -> None:
        if not await call_maybe_async(self.camera.is_available):
            logger.warning("Camera not available, motion detection disabled")
            return

        await asyncio.to_thread(self.store.ensure_directory)
        logger.info(
            "Motion detection started (interval=%.1fs, min capture interval=%.1fs, sensitivity=%.3f, dir=%s)",
            self.polling_interval_seconds,
            self.min_capture_interval_seconds,
            self.detector.sensitivity,
            self.store.directory,
        )
        while not stop_event.is_set():
            try:
                await self.process_frame()
            except Exception:
                logger.exception("Motion detection cycle failed")
            if await sleep_or_stop(stop_event, self.polling_interval_seconds):
                break
        logger.info("Motion detection stopped")
