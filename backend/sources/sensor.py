"""
BME280 environmental sensor readers.
"""
from __future__ import annotations

import logging
import random
import threading

from common.types import SensorSample
from sources.exceptions import AcquisitionError

logger = logging.getLogger(__name__)

HPA_TO_MMHG = 0.750061683


class Bme280Reader:
    """Reads a BME280 over I2C using the RPi.bme280 driver."""

    reader_type = "bme280"

    def __init__(self, bus_id: int = 1, address: int = 0x76):
        self.bus_id = bus_id
        self.address = address
        self._bus = None
        self._driver = None
        self._calibration = None
        self._lock = threading.Lock()
        self._open()

    def _open(self) -> None:
        try:
            import bme280
            import smbus2

            bus = smbus2.SMBus(self.bus_id)
            self._calibration = bme280.load_calibration_params(bus, self.address)
            self._bus = bus
            self._driver = bme280
            logger.info("BME280 ready on bus %d at 0x%02x", self.bus_id, self.address)
        except Exception:
            logger.warning(
                "BME280 not available on bus %d at 0x%02x", self.bus_id, self.address, exc_info=True
            )
            self._bus = None

    @property
    def is_available(self) -> bool:
        return self._bus is not None

    def read(self) -> SensorSample | None:
        if self._bus is None:
            return None
        with self._lock:
            try:
                data = self._driver.sample(self._bus, self.address, self._calibration)
            except OSError as exc:
                raise AcquisitionError(f"BME280 read failed: {exc}") from exc
        if data.temperature is None or data.humidity is None or data.pressure is None:
            return None
        return SensorSample(
            temperature=float(data.temperature),
            humidity=float(data.humidity),
            pressure=float(data.pressure) * HPA_TO_MMHG,
            reader_type=self.reader_type,
        )

    def close(self) -> None:
        if self._bus is not None:
            self._bus.close()
            self._bus = None


class SimulatedSensorReader:
    """Plausible terrarium readings for hosts without the sensor."""

    reader_type = "simulator"

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.Random()

    @property
    def is_available(self) -> bool:
        return True

    def read(self) -> SensorSample:
        sample = SensorSample(
            temperature=20 + self._rng.random() * 10,
            humidity=40 + self._rng.random() * 30,
            pressure=740 + self._rng.random() * 40,
            reader_type=self.reader_type,
        )
        logger.debug(
            "Simulated sensor data: T=%.1fC H=%.1f%% P=%.1fmm",
            sample.temperature,
            sample.humidity,
            sample.pressure,
        )
        return sample

    def close(self) -> None:
        pass
