"""
Factories that pick a real or simulated adapter from configuration.
"""
from __future__ import annotations

import logging

from common.config import (
    CameraConfig,
    SensorConfig,
    WeatherConfig,
    camera_config,
    sensor_config,
    weather_config,
)
from sources.camera import RaspberryPiCamera, SimulatedCamera
from sources.sensor import Bme280Reader, SimulatedSensorReader
from sources.system import LinuxMetricsCollector, SimulatedMetricsCollector
from sources.weather import OpenMeteoWeatherReader

logger = logging.getLogger(__name__)


def get_sensor_reader(config: SensorConfig = sensor_config):
    if config.use_simulator:
        logger.info("Using simulated BME280 sensor")
        return SimulatedSensorReader()
    reader = Bme280Reader(bus_id=config.i2c_bus, address=config.i2c_address)
    if not reader.is_available:
        logger.warning("BME280 sensor unavailable, sensor poller will report no data")
    return reader


def get_camera(config: CameraConfig = camera_config):
    if config.use_simulator:
        logger.info("Using simulated camera")
        return SimulatedCamera()
    logger.info("Using rpicam-still camera (%dx%d)", config.width, config.height)
    return RaspberryPiCamera(
        width=config.width,
        height=config.height,
        quality=config.quality,
        timeout_seconds=config.capture_timeout_sec,
    )


def get_weather_reader(config: WeatherConfig = weather_config) -> OpenMeteoWeatherReader:
    return OpenMeteoWeatherReader(
        latitude=config.latitude,
        longitude=config.longitude,
        location=config.location,
        timeout_seconds=config.timeout_sec,
    )


def get_metrics_collector():
    collector = LinuxMetricsCollector()
    if collector.is_available:
        return collector
    logger.info("/proc not available, using simulated host metrics")
    return SimulatedMetricsCollector()
