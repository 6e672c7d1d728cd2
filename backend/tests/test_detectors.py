"""Tests for the gecko classifiers."""
import random

import numpy as np
import pytest

from cv.detectors import (
    OnnxGeckoDetector,
    SimulatorGeckoDetector,
    get_detector,
    softmax,
)
from tests.fakes import make_jpeg


class _FakeSession:
    """Stands in for an onnxruntime InferenceSession."""

    def __init__(self, logits):
        self.logits = np.asarray([logits], dtype=np.float32)
        self.feeds = []

    def run(self, output_names, feeds):
        self.feeds.append(feeds)
        return [self.logits]


def _onnx_detector(tmp_path, logits, threshold=0.5) -> tuple[OnnxGeckoDetector, _FakeSession]:
    detector = OnnxGeckoDetector(model_path=tmp_path / "missing.onnx", confidence_threshold=threshold)
    session = _FakeSession(logits)
    detector.session = session
    detector.input_name = "input"
    return detector, session


def test_softmax_sums_to_one():
    probabilities = softmax(np.array([1.0, 2.0, 3.0]))
    assert probabilities.sum() == pytest.approx(1.0)
    assert np.argmax(probabilities) == 2


def test_softmax_is_stable_for_large_logits():
    probabilities = softmax(np.array([1000.0, 1000.0]))
    assert probabilities == pytest.approx([0.5, 0.5])


class TestOnnxGeckoDetector:
    def test_missing_model_reports_negative(self, tmp_path):
        detector = OnnxGeckoDetector(model_path=tmp_path / "missing.onnx")
        assert not detector.is_model_loaded
        result = detector.detect(make_jpeg((40, 120, 60)), "motion_20260101_120000_000.jpg")
        assert result.detected is False
        assert result.confidence == 0.0
        assert result.image_width == 64

    def test_gecko_above_threshold(self, tmp_path):
        detector, session = _onnx_detector(tmp_path, [0.0, 3.0])
        result = detector.detect(make_jpeg((40, 120, 60)), "a.jpg")
        assert result.detected is True
        assert result.label == "gecko"
        assert result.confidence > 0.9
        tensor = session.feeds[0]["input"]
        assert tensor.shape == (1, 3, 224, 224)
        assert tensor.dtype == np.float32

    def test_no_gecko_label_is_not_a_detection(self, tmp_path):
        detector, _ = _onnx_detector(tmp_path, [4.0, 0.0])
        result = detector.detect(make_jpeg((40, 120, 60)), "a.jpg")
        assert result.label == "no_gecko"
        assert result.detected is False
        assert result.confidence > 0.9

    def test_gecko_below_threshold(self, tmp_path):
        detector, _ = _onnx_detector(tmp_path, [0.0, 0.2], threshold=0.9)
        result = detector.detect(make_jpeg((40, 120, 60)), "a.jpg")
        assert result.label == "gecko"
        assert result.detected is False

    def test_undecodable_image_raises(self, tmp_path):
        detector, _ = _onnx_detector(tmp_path, [0.0, 1.0])
        with pytest.raises(ValueError):
            detector.detect(b"not an image", "broken.jpg")


class TestSimulatorGeckoDetector:
    def test_roughly_thirty_percent_positive(self):
        detector = SimulatorGeckoDetector(rng=random.Random(42))
        results = [detector.detect(make_jpeg((40, 120, 60)), f"{i}.jpg") for i in range(1000)]
        positives = [r for r in results if r.detected]
        assert 0.2 < len(positives) / len(results) < 0.4
        assert all(r.label == "gecko" and r.confidence > 0.7 for r in positives)
        assert all(0.0 <= r.confidence <= 1.0 for r in results)


class TestGetDetector:
    def test_simulator_requested(self, tmp_path):
        assert isinstance(get_detector(use_simulator=True), SimulatorGeckoDetector)

    def test_missing_model_falls_back_to_simulator(self, tmp_path):
        detector = get_detector(use_simulator=False, model_path=tmp_path / "missing.onnx")
        assert isinstance(detector, SimulatorGeckoDetector)
