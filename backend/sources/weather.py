"""
Open-Meteo current-conditions client.
"""
from __future__ import annotations

import asyncio
import logging

import aiohttp

from common.config import OPEN_METEO_URL
from common.types import WeatherSample

logger = logging.getLogger(__name__)


class OpenMeteoWeatherReader:
    """Fetches current temperature and humidity for a fixed location.

    Failures never raise; they produce a sample with ``valid=False`` and
    the error text.
    """

    def __init__(
        self,
        latitude: float,
        longitude: float,
        location: str = "",
        timeout_seconds: float = 30.0,
        base_url: str = OPEN_METEO_URL,
    ):
        self.latitude = latitude
        self.longitude = longitude
        self.location = location
        self.timeout_seconds = timeout_seconds
        self.base_url = base_url

    def _params(self) -> dict[str, str]:
        return {
            "latitude": f"{self.latitude}",
            "longitude": f"{self.longitude}",
            "current": "temperature_2m,relative_humidity_2m",
        }

    def _invalid(self, error: str) -> WeatherSample:
        return WeatherSample(
            latitude=self.latitude,
            longitude=self.longitude,
            location=self.location,
            valid=False,
            error=error,
        )

    def parse(self, payload: dict) -> WeatherSample:
        current = payload.get("current") or {}
        temperature = current.get("temperature_2m")
        humidity = current.get("relative_humidity_2m")
        if temperature is None or humidity is None:
            return self._invalid("Response missing current temperature or humidity")
        return WeatherSample(
            temperature=float(temperature),
            humidity=float(humidity),
            latitude=self.latitude,
            longitude=self.longitude,
            location=self.location,
            valid=True,
        )

    async def get_current(self) -> WeatherSample:
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(self.base_url, params=self._params()) as response:
                    if response.status != 200:
                        detail = await response.text()
                        logger.warning("Open-Meteo returned HTTP %s", response.status)
                        return self._invalid(f"HTTP error {response.status}: {detail[:200]}")
                    payload = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning("Open-Meteo request failed: %s", exc)
            return self._invalid(str(exc) or type(exc).__name__)

        sample = self.parse(payload)
        if sample.valid:
            logger.debug(
                "Weather for %s: %.1fC %.0f%%", self.location, sample.temperature, sample.humidity
            )
        else:
            logger.warning("Open-Meteo response unusable: %s", sample.error)
        return sample
