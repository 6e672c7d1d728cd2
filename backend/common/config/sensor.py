"""Environmental sensor (BME280) configuration."""
from __future__ import annotations

from pydantic import BaseModel, Field

from .env import env_bool, env_float, env_int

__all__ = ["SensorConfig", "sensor_config"]


class SensorConfig(BaseModel):
    use_simulator: bool = Field(default_factory=lambda: env_bool("SENSOR_USE_SIMULATOR", False))
    polling_interval_sec: float = Field(
        default_factory=lambda: env_float("SENSOR_POLLING_INTERVAL_SEC", 60.0), gt=0
    )
    i2c_bus: int = Field(default_factory=lambda: env_int("SENSOR_I2C_BUS", 1))
    i2c_address: int = Field(default_factory=lambda: env_int("SENSOR_I2C_ADDRESS", 0x76))


sensor_config = SensorConfig()
