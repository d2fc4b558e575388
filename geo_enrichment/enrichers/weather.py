"""Current weather from the Open-Meteo forecast API.

Reference:
    https://open-meteo.com/en/docs (``current_weather=true``)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from geo_enrichment.enrichers.base import Enricher

if TYPE_CHECKING:
    from geo_enrichment.models.geometry import Coordinate

logger = logging.getLogger(__name__)

OPEN_METEO_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

MPH_PER_KMH = 0.621371

#: WMO weather interpretation codes.
WEATHER_CODES: dict[int, str] = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Foggy",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    56: "Light freezing drizzle",
    57: "Dense freezing drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    66: "Light freezing rain",
    67: "Heavy freezing rain",
    71: "Slight snow fall",
    73: "Moderate snow fall",
    75: "Heavy snow fall",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}


def describe_weather_code(code: int | None) -> str:
    return WEATHER_CODES.get(code, "Unknown weather condition") if code is not None else "Unknown weather condition"


def celsius_to_fahrenheit(celsius: float) -> float:
    return celsius * 9 / 5 + 32


class WeatherEnricher(Enricher):
    """Open-Meteo current conditions."""

    name = "weather"

    def enrich(self, origin: Coordinate) -> dict[str, Any]:
        body = self._get(
            OPEN_METEO_FORECAST_URL,
            {
                "latitude": origin.lat,
                "longitude": origin.lon,
                "current_weather": "true",
                "timezone": "auto",
            },
        )
        current = body.get("current_weather") if isinstance(body, dict) else None
        if not isinstance(current, dict):
            raise self._fail("No current weather data available")

        try:
            temperature_c = float(current["temperature"])
            windspeed_kmh = float(current["windspeed"])
        except (KeyError, TypeError, ValueError) as exc:
            msg = f"Malformed current_weather payload: {exc}"
            raise self._fail(msg) from exc

        code = current.get("weathercode")
        description = describe_weather_code(code)
        temperature_f = celsius_to_fahrenheit(temperature_c)
        windspeed_mph = windspeed_kmh * MPH_PER_KMH

        logger.debug(
            "Weather fetched | lat=%.5f | lon=%.5f | code=%s | temp_c=%.1f",
            origin.lat,
            origin.lon,
            code,
            temperature_c,
        )
        return {
            "weather_temperature_c": temperature_c,
            "weather_temperature_f": temperature_f,
            "weather_windspeed_kmh": windspeed_kmh,
            "weather_windspeed_mph": windspeed_mph,
            "weather_winddirection": current.get("winddirection"),
            "weather_code": code,
            "weather_description": description,
            "weather_time": current.get("time"),
            "weather_timezone": body.get("timezone") or "Unknown",
            "weather_summary": (
                f"Current weather: {description}, {temperature_f:.1f}°F, {windspeed_mph:.1f} mph wind"
            ),
        }
