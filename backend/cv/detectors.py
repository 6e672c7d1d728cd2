"""
Gecko classifiers.

Both classifiers share the ``detect(image, image_path) -> DetectionResult``
contract. ``get_detector`` picks one based on configuration.
"""
from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import Protocol, Sequence

import cv2
import numpy as np

from common.config import detector_config
from common.types import DetectionResult
from cv.config import GECKO_LABEL, IMAGENET_MEAN, IMAGENET_STD, LABELS, SIMULATOR_POSITIVE_CUTOFF

logger = logging.getLogger(__name__)


class GeckoDetector(Protocol):
    @property
    def is_model_loaded(self) -> bool: ...

    def detect(self, image: bytes, image_path: str) -> DetectionResult: ...


def softmax(values: np.ndarray) -> np.ndarray:
    shifted = np.exp(values - np.max(values))
    return shifted / shifted.sum()


def _image_size(image: bytes) -> tuple[int | None, int | None]:
    decoded = cv2.imdecode(np.frombuffer(image, dtype=np.uint8), cv2.IMREAD_COLOR) if image else None
    if decoded is None:
        return None, None
    height, width = decoded.shape[:2]
    return width, height


class OnnxGeckoDetector:
    """Image classifier backed by an ONNX model.

    Expects a single NCHW float input and a single logits output, one
    logit per entry in ``labels``.
    """

    def __init__(
        self,
        model_path: str | Path,
        input_size: int = 224,
        confidence_threshold: float = 0.5,
        labels: Sequence[str] = LABELS,
    ):
        self.model_path = Path(model_path)
        self.input_size = input_size
        self.confidence_threshold = confidence_threshold
        self.labels = list(labels)
        self.session = None
        self.input_name: str | None = None
        self._load_model()

    @property
    def is_model_loaded(self) -> bool:
        return self.session is not None

    def _load_model(self) -> None:
        if not self.model_path.exists():
            logger.warning("ONNX model not found at %s, gecko detection disabled", self.model_path)
            return
        try:
            import onnxruntime as ort

            sess_options = ort.SessionOptions()
            sess_options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
            self.session = ort.InferenceSession(
                str(self.model_path),
                sess_options=sess_options,
                providers=["CPUExecutionProvider"],
            )
            self.input_name = self.session.get_inputs()[0].name
            logger.info("Loaded ONNX model from %s (input=%s)", self.model_path, self.input_name)
        except Exception:
            logger.exception("Failed to load ONNX model from %s", self.model_path)
            self.session = None

    def preprocess(self, image: bytes) -> np.ndarray:
        decoded = cv2.imdecode(np.frombuffer(image, dtype=np.uint8), cv2.IMREAD_COLOR)
        if decoded is None:
            raise ValueError("Could not decode image")
        rgb = cv2.cvtColor(decoded, cv2.COLOR_BGR2RGB)
        resized = cv2.resize(rgb, (self.input_size, self.input_size), interpolation=cv2.INTER_LINEAR)
        normalized = (resized.astype(np.float32) / 255.0 - IMAGENET_MEAN) / IMAGENET_STD
        # HWC -> NCHW
        return np.transpose(normalized, (2, 0, 1))[np.newaxis, ...].astype(np.float32)

    def detect(self, image: bytes, image_path: str) -> DetectionResult:
        width, height = _image_size(image)
        if self.session is None:
            logger.warning("ONNX model not loaded, skipping detection for %s", image_path)
            return DetectionResult(
                image_path=image_path,
                detected=False,
                confidence=0.0,
                label=self.labels[0],
                image_width=width,
                image_height=height,
            )

        tensor = self.preprocess(image)
        outputs = self.session.run(None, {self.input_name: tensor})
        probabilities = softmax(np.asarray(outputs[0], dtype=np.float64).reshape(-1))
        index = int(np.argmax(probabilities))
        confidence = float(probabilities[index])
        label = self.labels[index] if index < len(self.labels) else f"class_{index}"
        detected = label == GECKO_LABEL and confidence >= self.confidence_threshold

        logger.debug("Detection for %s: %s (%.2f), detected=%s", image_path, label, confidence, detected)
        return DetectionResult(
            image_path=image_path,
            detected=detected,
            confidence=min(max(confidence, 0.0), 1.0),
            label=label,
            image_width=width,
            image_height=height,
        )


class SimulatorGeckoDetector:
    """Random classifier for development hosts without a trained model."""

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.Random()
        logger.info("Using simulator gecko detector")

    @property
    def is_model_loaded(self) -> bool:
        return True

    def detect(self, image: bytes, image_path: str) -> DetectionResult:
        draw = self._rng.random()
        detected = draw > SIMULATOR_POSITIVE_CUTOFF
        width, height = _image_size(image)
        return DetectionResult(
            image_path=image_path,
            detected=detected,
            confidence=draw if detected else 1.0 - draw,
            label=GECKO_LABEL if detected else LABELS[0],
            image_width=width,
            image_height=height,
        )


def get_detector(
    use_simulator: bool | None = None,
    model_path: str | Path | None = None,
) -> GeckoDetector:
    use_simulator = detector_config.use_simulator if use_simulator is None else use_simulator
    model_path = Path(model_path or detector_config.model_path)

    if use_simulator:
        return SimulatorGeckoDetector()
    if not model_path.exists():
        logger.warning("ONNX model not found at %s, falling back to simulator", model_path)
        return SimulatorGeckoDetector()

    logger.info("Using ONNX gecko detector with model %s", model_path)
    return OnnxGeckoDetector(
        model_path=model_path,
        input_size=detector_config.input_size,
        confidence_threshold=detector_config.confidence_threshold,
    )
