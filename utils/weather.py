"""
OpenWeatherMap current-weather client used by the rain-check sweeper.
"""
import logging
from dataclasses import dataclass, field

import httpx
from flask import current_app

logger = logging.getLogger(__name__)

OPENWEATHERMAP_URL = "https://api.openweathermap.org/data/2.5/weather"
RAINY_CONDITIONS = {"rain", "drizzle", "thunderstorm"}


class WeatherServiceError(Exception):
    pass


@dataclass
class Forecast:
    is_raining: bool
    details: dict = field(default_factory=dict)


def parse_forecast(data: dict) -> Forecast:
    try:
        weather = data["weather"][0]
        main = data.get("main") or {}
        wind = data.get("wind") or {}
        condition = str(weather["main"])
    except (KeyError, IndexError, TypeError) as exc:
        raise WeatherServiceError(f"Malformed weather payload: {exc}")

    return Forecast(
        is_raining=condition.lower() in RAINY_CONDITIONS,
        details={
            "main": condition,
            "description": weather.get("description"),
            "temperature": main.get("temp"),
            "feels_like": main.get("feels_like"),
            "humidity": main.get("humidity"),
            "wind_speed": wind.get("speed"),
        },
    )


def get_forecast(city: str, client: httpx.Client = None) -> Forecast:
    api_key = current_app.config.get("OPENWEATHERMAP_API_KEY")
    if not api_key:
        raise WeatherServiceError("OPENWEATHERMAP_API_KEY not set")
    if not city:
        raise WeatherServiceError("No city to look up")

    timeout = current_app.config.get("WEATHER_TIMEOUT_SECONDS", 10.0)
    params = {"q": city, "appid": api_key, "units": "metric"}

    try:
        if client is not None:
            resp = client.get(OPENWEATHERMAP_URL, params=params, timeout=timeout)
        else:
            with httpx.Client(timeout=timeout) as own_client:
                resp = own_client.get(OPENWEATHERMAP_URL, params=params)
        resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Weather lookup failed for %s: %s", city, exc)
        raise WeatherServiceError(str(exc))

    return parse_forecast(data)
