"""
Still-image cameras.

``RaspberryPiCamera`` shells out to ``rpicam-still``; ``SimulatedCamera``
renders synthetic JPEG frames with periodic motion so the whole motion
pipeline can run on a development host.
"""
from __future__ import annotations

import asyncio
import logging
import random
import shutil
import tempfile
from pathlib import Path

import cv2
import numpy as np

logger = logging.getLogger(__name__)

RPICAM_BINARY = "rpicam-still"


class RaspberryPiCamera:
    def __init__(
        self,
        width: int = 1280,
        height: int = 720,
        quality: int = 85,
        timeout_seconds: float = 10.0,
        binary: str = RPICAM_BINARY,
    ):
        self.width = width
        self.height = height
        self.quality = quality
        self.timeout_seconds = timeout_seconds
        self.binary = binary
        self._lock = asyncio.Lock()
        self._closed = False

    def is_available(self) -> bool:
        return not self._closed and shutil.which(self.binary) is not None

    def _command(self, output: Path) -> list[str]:
        return [
            self.binary,
            "-o", str(output),
            "--width", str(self.width),
            "--height", str(self.height),
            "--quality", str(self.quality),
            "--nopreview",
            "--immediate",
            "-t", "1",
        ]

    async def capture(self) -> bytes | None:
        if self._closed:
            return None
        # One still at a time; rpicam-still cannot share the sensor.
        async with self._lock:
            with tempfile.TemporaryDirectory(prefix="gekkolab-cam-") as tmp:
                output = Path(tmp) / "frame.jpg"
                try:
                    process = await asyncio.create_subprocess_exec(
                        *self._command(output),
                        stdout=asyncio.subprocess.DEVNULL,
                        stderr=asyncio.subprocess.PIPE,
                    )
                except OSError:
                    logger.exception("Could not start %s", self.binary)
                    return None

                try:
                    _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout_seconds)
                except asyncio.TimeoutError:
                    process.kill()
                    await process.wait()
                    logger.warning("%s timed out after %.0fs", self.binary, self.timeout_seconds)
                    return None

                if process.returncode != 0:
                    logger.warning(
                        "%s exited with %s: %s",
                        self.binary,
                        process.returncode,
                        stderr.decode(errors="replace").strip()[:500],
                    )
                    return None
                if not output.exists():
                    logger.warning("%s produced no image", self.binary)
                    return None
                return output.read_bytes()

    def close(self) -> None:
        self._closed = True


class SimulatedCamera:
    """Synthetic terrarium scene; a bright blob appears on a shifting subset of frames."""

    def __init__(
        self,
        width: int = 640,
        height: int = 360,
        rng: random.Random | None = None,
    ):
        self.width = width
        self.height = height
        self._rng = rng or random.Random()
        self._frame_counter = 0
        self._closed = False
        self._background = self._render_background()

    def _render_background(self) -> np.ndarray:
        gradient = np.linspace(40, 110, self.width, dtype=np.float32)
        frame = np.tile(gradient, (self.height, 1))
        image = np.stack([frame * 0.6, frame, frame * 0.5], axis=-1).astype(np.uint8)
        cv2.rectangle(image, (40, self.height - 90), (self.width - 40, self.height - 40), (30, 70, 90), -1)
        return image

    def is_available(self) -> bool:
        return not self._closed

    def next_frame(self) -> tuple[np.ndarray, bool]:
        self._frame_counter += 1
        image = self._background.copy()
        noise = self._rng.randint(0, 3)
        if noise:
            image = cv2.add(image, np.full_like(image, noise))

        motion_interval = 3 + (self._frame_counter % 5)
        has_motion = self._frame_counter % motion_interval == 0
        if has_motion:
            radius = min(self.width, self.height) // 3
            cx = self._rng.randint(radius, self.width - radius)
            cy = self._rng.randint(radius, self.height - radius)
            cv2.circle(image, (cx, cy), radius, (230, 240, 200), -1)
        return image, has_motion

    async def capture(self) -> bytes | None:
        if self._closed:
            return None
        image, has_motion = self.next_frame()
        ok, encoded = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, 85])
        if not ok:
            return None
        logger.debug(
            "Simulated frame %d (%s)", self._frame_counter, "motion" if has_motion else "static"
        )
        return encoded.tobytes()

    def close(self) -> None:
        self._closed = True
