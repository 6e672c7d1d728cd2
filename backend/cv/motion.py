"""
Frame-difference change detector.
"""
from __future__ import annotations

import logging

import cv2
import numpy as np

from cv.config import WORKING_WIDTH

logger = logging.getLogger(__name__)

DEFAULT_SENSITIVITY = 0.05
DEFAULT_WORKING_WIDTH = WORKING_WIDTH


def decode_frame(data: bytes | None, working_width: int = DEFAULT_WORKING_WIDTH) -> np.ndarray | None:
    """Decode an encoded image and down-sample it to ``working_width`` pixels wide.

    Returns None for empty or undecodable input.
    """
    if not data:
        return None
    try:
        buf = np.frombuffer(data, dtype=np.uint8)
        image = cv2.imdecode(buf, cv2.IMREAD_COLOR)
    except cv2.error:
        return None
    if image is None or image.size == 0:
        return None

    height, width = image.shape[:2]
    if working_width > 0 and width > working_width:
        scaled_height = max(1, round(height * working_width / width))
        image = cv2.resize(image, (working_width, scaled_height), interpolation=cv2.INTER_AREA)
    return image


class ChangeDetector:
    """Decides whether two consecutive frames differ by more than ``sensitivity``.

    The change score is the mean absolute per-channel difference of the
    down-sampled frames, normalised to [0, 1].
    """

    def __init__(
        self,
        sensitivity: float = DEFAULT_SENSITIVITY,
        working_width: int = DEFAULT_WORKING_WIDTH,
    ):
        if not 0.0 <= sensitivity <= 1.0:
            raise ValueError("sensitivity must be within [0, 1]")
        self.sensitivity = sensitivity
        self.working_width = working_width

    def change_fraction(self, previous: bytes | None, current: bytes | None) -> float | None:
        a = decode_frame(previous, self.working_width)
        b = decode_frame(current, self.working_width)
        if a is None or b is None:
            return None
        if a.shape != b.shape:
            b = cv2.resize(b, (a.shape[1], a.shape[0]), interpolation=cv2.INTER_AREA)
        diff = cv2.absdiff(a, b)
        return float(np.mean(diff)) / 255.0

    def detect(self, previous: bytes | None, current: bytes | None) -> bool:
        try:
            fraction = self.change_fraction(previous, current)
        except cv2.error:
            logger.debug("Frame comparison failed", exc_info=True)
            return False
        if fraction is None:
            return False
        logger.debug("Frame change fraction %.4f (threshold %.4f)", fraction, self.sensitivity)
        return fraction > self.sensitivity
