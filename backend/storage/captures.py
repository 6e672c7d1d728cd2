"""
Capture directory management.

Captures are JPEG files named ``<kind>_YYYYMMDD_HHMMSS_fff.jpg`` (UTC) in a
single flat directory. The directory doubles as the hand-off queue between
the motion pipeline and the classification pipeline, so files are written
under a temporary name and renamed into place once complete.
"""
from __future__ import annotations

import logging
import os
import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)

MOTION = "motion"
SNAPSHOT = "snapshot"
CAPTURE_KINDS = (MOTION, SNAPSHOT)
CAPTURE_FILENAME_PATTERN = re.compile(r"^(motion|snapshot)_\d{8}_\d{6}_\d{3}(_\d+)?\.jpg$")


@dataclass(frozen=True)
class CaptureFile:
    path: Path
    size_bytes: int
    modified: datetime

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def mtime(self) -> float:
        return self.modified.timestamp()

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "size_bytes": self.size_bytes,
            "timestamp": self.modified.isoformat(),
        }


@dataclass(frozen=True)
class CaptureStatistics:
    total_files: int
    total_size_bytes: int
    oldest: datetime | None
    newest: datetime | None
    last_24_hours: int
    last_hour: int


def capture_filename(kind: str, when: datetime) -> str:
    when = when.astimezone(timezone.utc)
    return f"{kind}_{when:%Y%m%d_%H%M%S}_{when.microsecond // 1000:03d}.jpg"


class CaptureStore:
    def __init__(
        self,
        directory: str | Path,
        max_age_days: float = 7.0,
        max_files: int = 1000,
        clock: Callable[[], float] = time.time,
    ):
        if max_files <= 0:
            raise ValueError("max_files must be positive")
        self.directory = Path(directory)
        self.max_age_days = max_age_days
        self.max_files = max_files
        self._clock = clock

    def ensure_directory(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def save(self, data: bytes, kind: str = MOTION, when: datetime | None = None) -> Path:
        """Write a capture and return its final path."""
        if kind not in CAPTURE_KINDS:
            raise ValueError(f"Unknown capture kind '{kind}'")
        self.ensure_directory()
        when = when or datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        name = capture_filename(kind, when)
        path = self.directory / name
        suffix = 1
        while path.exists():
            path = self.directory / f"{name[:-4]}_{suffix}.jpg"
            suffix += 1

        tmp_path = self.directory / f".{path.name}.tmp"
        tmp_path.write_bytes(data)
        os.replace(tmp_path, path)
        logger.debug("Saved %s capture %s (%d bytes)", kind, path.name, len(data))
        return path

    def captures(self, kind: str = MOTION) -> list[CaptureFile]:
        """Captures of ``kind``, oldest first by modification time."""
        if not self.directory.is_dir():
            return []
        files: list[CaptureFile] = []
        for path in self.directory.glob(f"{kind}_*.jpg"):
            try:
                stat = path.stat()
            except FileNotFoundError:
                # Removed between glob and stat.
                continue
            files.append(
                CaptureFile(
                    path=path,
                    size_bytes=stat.st_size,
                    modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                )
            )
        files.sort(key=lambda f: (f.mtime, f.filename))
        return files

    def list_newer_than(self, watermark: float, kind: str = MOTION) -> list[CaptureFile]:
        return [f for f in self.captures(kind) if f.mtime > watermark]

    def latest(self, kind: str = MOTION) -> CaptureFile | None:
        files = self.captures(kind)
        return files[-1] if files else None

    def recent(self, count: int = 10, kind: str = MOTION) -> list[CaptureFile]:
        """The newest ``count`` captures, newest first."""
        if count <= 0:
            return []
        return list(reversed(self.captures(kind)[-count:]))

    def sweep(self, kind: str = MOTION) -> int:
        """Apply retention: drop expired captures, then the oldest beyond ``max_files``.

        Returns the number of files deleted.
        """
        files = self.captures(kind)
        cutoff = self._clock() - timedelta(days=self.max_age_days).total_seconds()
        expired = [f for f in files if f.mtime < cutoff]
        survivors = [f for f in files if f.mtime >= cutoff]
        excess = survivors[: max(0, len(survivors) - self.max_files)]

        deleted = 0
        for capture in expired + excess:
            try:
                capture.path.unlink()
                deleted += 1
            except FileNotFoundError:
                continue
            except OSError:
                logger.warning("Could not delete capture %s", capture.filename, exc_info=True)
        if deleted:
            logger.info(
                "Retention removed %d %s capture(s) (%d expired, %d over limit)",
                deleted,
                kind,
                len(expired),
                len(excess),
            )
        return deleted

    def statistics(self, kind: str = MOTION) -> CaptureStatistics:
        files = self.captures(kind)
        now = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        return CaptureStatistics(
            total_files=len(files),
            total_size_bytes=sum(f.size_bytes for f in files),
            oldest=files[0].modified if files else None,
            newest=files[-1].modified if files else None,
            last_24_hours=sum(1 for f in files if f.modified >= now - timedelta(hours=24)),
            last_hour=sum(1 for f in files if f.modified >= now - timedelta(hours=1)),
        )

    def resolve(self, filename: str) -> Path | None:
        """Map a client-supplied filename to a capture path, or None.

        Only bare capture filenames inside the capture directory resolve.
        """
        name = Path(filename).name
        if name != filename or not CAPTURE_FILENAME_PATTERN.match(name):
            return None
        path = self.directory / name
        return path if path.is_file() else None
