"""Open-Meteo weather configuration."""
from __future__ import annotations

from pydantic import BaseModel, Field

from .env import env_bool, env_float, env_str

__all__ = ["WeatherConfig", "weather_config", "OPEN_METEO_URL"]

OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"


class WeatherConfig(BaseModel):
    enabled: bool = Field(default_factory=lambda: env_bool("WEATHER_ENABLED", True))
    polling_interval_sec: float = Field(
        default_factory=lambda: env_float("WEATHER_POLLING_INTERVAL_SEC", 3600.0), gt=0
    )
    initial_delay_sec: float = Field(
        default_factory=lambda: env_float("WEATHER_INITIAL_DELAY_SEC", 5.0), ge=0
    )
    latitude: float = Field(default_factory=lambda: env_float("WEATHER_LATITUDE", 47.67), ge=-90, le=90)
    longitude: float = Field(
        default_factory=lambda: env_float("WEATHER_LONGITUDE", -122.12), ge=-180, le=180
    )
    location: str = Field(default_factory=lambda: env_str("WEATHER_LOCATION", "Redmond"))
    timeout_sec: float = Field(default_factory=lambda: env_float("WEATHER_TIMEOUT_SEC", 30.0), gt=0)


weather_config = WeatherConfig()
