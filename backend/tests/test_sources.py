"""Tests for the source adapters: sensor, camera, weather and host metrics."""
from __future__ import annotations

import random
import stat
from unittest.mock import patch

import aiohttp
import pytest

from cv.motion import ChangeDetector
from sources.camera import RaspberryPiCamera, SimulatedCamera
from sources.exceptions import AcquisitionError
from sources.sensor import Bme280Reader, SimulatedSensorReader
from sources.system import LinuxMetricsCollector
from sources.weather import OpenMeteoWeatherReader


# ---------- Sensor ----------

class TestSimulatedSensor:
    def test_readings_in_plausible_ranges(self):
        reader = SimulatedSensorReader(rng=random.Random(1))
        for _ in range(50):
            sample = reader.read()
            assert 20 <= sample.temperature <= 30
            assert 40 <= sample.humidity <= 70
            assert 740 <= sample.pressure <= 780
            assert sample.reader_type == "simulator"

    def test_always_available(self):
        assert SimulatedSensorReader().is_available


class TestBme280Reader:
    def test_unavailable_bus_yields_no_data(self):
        # No I2C bus 99 on a test host, or the driver extra is absent.
        reader = Bme280Reader(bus_id=99)
        assert not reader.is_available
        assert reader.read() is None


# ---------- Camera ----------

def _script(tmp_path, body: str) -> str:
    path = tmp_path / "fake-rpicam"
    path.write_text("#!/bin/sh\n" + body + "\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


class TestRaspberryPiCamera:
    def test_missing_binary_is_unavailable(self):
        assert RaspberryPiCamera(binary="definitely-not-rpicam-still").is_available() is False

    def test_command_line(self, tmp_path):
        camera = RaspberryPiCamera(width=640, height=480, quality=70)
        command = camera._command(tmp_path / "out.jpg")
        assert command[:3] == ["rpicam-still", "-o", str(tmp_path / "out.jpg")]
        assert "--nopreview" in command and "--immediate" in command
        assert command[command.index("--width") + 1] == "640"
        assert command[command.index("--quality") + 1] == "70"

    @pytest.mark.asyncio
    async def test_capture_reads_output_file(self, tmp_path):
        binary = _script(tmp_path, 'printf "jpegbytes" > "$2"')
        camera = RaspberryPiCamera(binary=binary)
        assert camera.is_available()
        assert await camera.capture() == b"jpegbytes"

    @pytest.mark.asyncio
    async def test_failed_capture_returns_none(self, tmp_path):
        camera = RaspberryPiCamera(binary=_script(tmp_path, 'echo "no camera" >&2; exit 1'))
        assert await camera.capture() is None

    @pytest.mark.asyncio
    async def test_timeout_returns_none(self, tmp_path):
        camera = RaspberryPiCamera(binary=_script(tmp_path, "exec sleep 5"), timeout_seconds=0.1)
        assert await camera.capture() is None

    @pytest.mark.asyncio
    async def test_closed_camera(self, tmp_path):
        camera = RaspberryPiCamera(binary=_script(tmp_path, 'printf "x" > "$2"'))
        camera.close()
        assert camera.is_available() is False
        assert await camera.capture() is None


class TestSimulatedCamera:
    @pytest.mark.asyncio
    async def test_frames_are_decodable_jpegs(self):
        frame = await SimulatedCamera(rng=random.Random(3)).capture()
        assert frame[:2] == b"\xff\xd8"

    @pytest.mark.asyncio
    async def test_motion_frames_trigger_detector(self):
        camera = SimulatedCamera(rng=random.Random(7))
        detector = ChangeDetector(sensitivity=0.05)
        previous = await camera.capture()
        motion_cycles = 0
        for _ in range(20):
            current = await camera.capture()
            if detector.detect(previous, current):
                motion_cycles += 1
            previous = current
        # Some but not all cycles see motion.
        assert 0 < motion_cycles < 20

    @pytest.mark.asyncio
    async def test_closed(self):
        camera = SimulatedCamera()
        camera.close()
        assert camera.is_available() is False
        assert await camera.capture() is None


# ---------- Weather ----------

class _FakeResponse:
    def __init__(self, status: int, payload: dict | None = None, text: str = ""):
        self.status = status
        self._payload = payload
        self._text = text

    async def json(self):
        return self._payload

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class _FakeSession:
    def __init__(self, response: _FakeResponse | None = None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.requests: list[tuple[str, dict]] = []

    def __call__(self, *args, **kwargs):
        return self

    def get(self, url, params=None):
        self.requests.append((url, params))
        if self.error:
            raise self.error
        return self.response

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def _reader() -> OpenMeteoWeatherReader:
    return OpenMeteoWeatherReader(latitude=47.67, longitude=-122.12, location="Redmond")


class TestOpenMeteoWeatherReader:
    @pytest.mark.asyncio
    async def test_valid_response(self):
        session = _FakeSession(
            _FakeResponse(200, {"current": {"temperature_2m": 11.2, "relative_humidity_2m": 83}})
        )
        with patch("sources.weather.aiohttp.ClientSession", session):
            sample = await _reader().get_current()
        assert sample.valid
        assert sample.temperature == 11.2
        assert sample.humidity == 83
        assert sample.location == "Redmond"
        url, params = session.requests[0]
        assert url == "https://api.open-meteo.com/v1/forecast"
        assert params["current"] == "temperature_2m,relative_humidity_2m"

    @pytest.mark.asyncio
    async def test_http_error_is_invalid(self):
        session = _FakeSession(_FakeResponse(503, text="down"))
        with patch("sources.weather.aiohttp.ClientSession", session):
            sample = await _reader().get_current()
        assert not sample.valid
        assert "503" in sample.error

    @pytest.mark.asyncio
    async def test_network_error_is_invalid(self):
        session = _FakeSession(error=aiohttp.ClientConnectionError("unreachable"))
        with patch("sources.weather.aiohttp.ClientSession", session):
            sample = await _reader().get_current()
        assert not sample.valid
        assert "unreachable" in sample.error

    def test_missing_fields_are_invalid(self):
        sample = _reader().parse({"current": {"temperature_2m": 10}})
        assert not sample.valid

    @pytest.mark.asyncio
    async def test_unusable_response_is_logged(self, caplog):
        session = _FakeSession(_FakeResponse(200, {"current": {}}))
        with patch("sources.weather.aiohttp.ClientSession", session), caplog.at_level("WARNING"):
            sample = await _reader().get_current()
        assert not sample.valid
        assert "Open-Meteo response unusable" in caplog.text


# ---------- Host metrics ----------

def _fake_proc(tmp_path, cpu_line: str, mem_total_kb: int = 1000, mem_available_kb: int = 250):
    proc = tmp_path / "proc"
    proc.mkdir(exist_ok=True)
    (proc / "stat").write_text(cpu_line + "\ncpu0 1 2 3 4\n")
    (proc / "meminfo").write_text(
        f"MemTotal:       {mem_total_kb} kB\nMemFree:        10 kB\nMemAvailable:   {mem_available_kb} kB\n"
    )
    return proc


class TestLinuxMetricsCollector:
    def test_first_cpu_reading_is_zero_then_delta(self, tmp_path):
        proc = _fake_proc(tmp_path, "cpu  100 0 100 800 0 0 0 0")
        collector = LinuxMetricsCollector(proc_root=proc, disk_path=tmp_path)
        assert collector.collect().cpu_percent == 0.0

        # +100 busy, +100 idle
        _fake_proc(tmp_path, "cpu  150 0 150 900 0 0 0 0")
        assert collector.collect().cpu_percent == pytest.approx(50.0)

    def test_memory_from_meminfo(self, tmp_path):
        proc = _fake_proc(tmp_path, "cpu  1 0 1 1", mem_total_kb=1000, mem_available_kb=250)
        snapshot = LinuxMetricsCollector(proc_root=proc, disk_path=tmp_path).collect()
        assert snapshot.memory_total_bytes == 1000 * 1024
        assert snapshot.memory_used_bytes == 750 * 1024
        assert snapshot.memory_percent == pytest.approx(75.0)
        assert snapshot.disk_total_bytes > 0

    def test_missing_proc_raises_acquisition_error(self, tmp_path):
        collector = LinuxMetricsCollector(proc_root=tmp_path / "nope", disk_path=tmp_path)
        assert not collector.is_available
        with pytest.raises(AcquisitionError):
            collector.collect()
