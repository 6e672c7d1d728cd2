"""
Classification of motion captures.

The capture directory is the queue: each cycle picks up motion captures
newer than the watermark, classifies them and persists one detection per
file. A capped, insertion-ordered set of processed paths and the mtime
watermark together keep any file from being classified twice.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from common.types import DetectionResult
from cv.detectors import GeckoDetector
from pipelines.poller import call_maybe_async, sleep_or_stop
from storage.captures import MOTION, CaptureFile, CaptureStore

logger = logging.getLogger(__name__)

DEFAULT_HIGH_WATER = 1000
DEFAULT_LOW_WATER = 500


class ProcessedFileSet:
    """Set of processed paths that forgets its oldest entries past a high-water mark."""

    def __init__(self, high_water: int = DEFAULT_HIGH_WATER, low_water: int = DEFAULT_LOW_WATER):
        if not 0 <= low_water < high_water:
            raise ValueError("low_water must be non-negative and below high_water")
        self.high_water = high_water
        self.low_water = low_water
        # dicts keep insertion order; values are unused
        self._paths: dict[str, None] = {}

    def __contains__(self, path: object) -> bool:
        return str(path) in self._paths

    def __len__(self) -> int:
        return len(self._paths)

    def add(self, path: str) -> None:
        self._paths[str(path)] = None

    def trim(self) -> int:
        """Evict oldest entries down to the low-water mark once above the high-water mark."""
        if len(self._paths) <= self.high_water:
            return 0
        evict = len(self._paths) - self.low_water
        for path in list(self._paths)[:evict]:
            del self._paths[path]
        return evict


class ClassificationPipeline:
    def __init__(
        self,
        store: CaptureStore,
        detector: GeckoDetector,
        persist_detection: Callable[[DetectionResult], Any],
        persist_sighting: Callable[[DetectionResult], Any] | None = None,
        polling_interval_seconds: float = 10.0,
        initial_delay_seconds: float = 15.0,
        processed: ProcessedFileSet | None = None,
    ):
        self.store = store
        self.detector = detector
        self._persist_detection = persist_detection
        self._persist_sighting = persist_sighting
        self.polling_interval_seconds = polling_interval_seconds
        self.initial_delay_seconds = initial_delay_seconds
        self.processed = processed if processed is not None else ProcessedFileSet()
        self.watermark = 0.0
        self.classified = 0
        self.failures = 0

    async def _classify(self, capture: CaptureFile) -> DetectionResult:
        image = await asyncio.to_thread(capture.path.read_bytes)
        result = await asyncio.to_thread(self.detector.detect, image, str(capture.path))
        await call_maybe_async(self._persist_detection, result)
        if result.detected and self._persist_sighting is not None:
            # The detection is stored, so the file counts as classified either way.
            try:
                await call_maybe_async(self._persist_sighting, result)
            except Exception:
                logger.exception("Failed to save gecko sighting for %s", capture.filename)
        return result

    async def process_batch(self) -> int:
        """Classify every new capture once. Returns the number classified."""
        if not self.store.directory.is_dir():
            logger.debug("Capture directory %s does not exist yet", self.store.directory)
            return 0

        captures = await asyncio.to_thread(self.store.list_newer_than, self.watermark, MOTION)
        classified = 0
        for capture in captures:
            key = str(capture.path)
            if key in self.processed:
                continue
            try:
                result = await self._classify(capture)
            except Exception:
                self.failures += 1
                logger.exception("Classification failed for %s", capture.filename)
                continue

            self.processed.add(key)
            self.watermark = max(self.watermark, capture.mtime)
            classified += 1
            if result.detected:
                logger.info("Gecko detected in %s (confidence %.2f)", capture.filename, result.confidence)
            else:
                logger.debug("No gecko in %s (%s %.2f)", capture.filename, result.label, result.confidence)

        evicted = self.processed.trim()
        if evicted:
            logger.debug("Evicted %d entries from processed file set", evicted)
        self.classified += classified
        return classified

    async def run(self, stop_event: asyncio.Event) -> None:
        logger.info(
            "Gecko classification started (interval=%.1fs, initial delay=%.1fs)",
            self.polling_interval_seconds,
            self.initial_delay_seconds,
        )
        if await sleep_or_stop(stop_event, self.initial_delay_seconds):
            return

        while not stop_event.is_set():
            try:
                await self.process_batch()
            except Exception:
                logger.exception("Classification cycle failed")
            if await sleep_or_stop(stop_event, self.polling_interval_seconds):
                break
        logger.info("Gecko classification stopped")
