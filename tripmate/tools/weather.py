"""
OpenWeather Weather Tool

Current conditions plus a short daily forecast for a city, in metric units.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
from pydantic import BaseModel, Field

from ..models import WeatherConfig

logger = logging.getLogger(__name__)

TOOL_NAME = "weather"

MISSING_KEY_ERROR = "API configuration error. Please contact support."
NETWORK_ERROR = "Network error or API unavailable. Please try again later."


class WeatherInput(BaseModel):
    location: str = Field(min_length=1, description='City name, e.g., "Lagos"')


class ForecastDay(BaseModel):
    date: str
    temp: int
    condition: str


class WeatherReport(BaseModel):
    city: str
    temp: int
    condition: str
    alert: str = "No alerts available"
    timezone: int = 0
    forecast: list[ForecastDay] = Field(default_factory=list)


def _condition(entry: dict) -> str:
    weather = entry.get("weather") or []
    return (weather[0].get("main") if weather else None) or "Unknown"


def _api_error(response: httpx.Response, fallback: str) -> dict:
    try:
        message = response.json().get("message")
    except ValueError:
        message = None
    return {"error": message or fallback}


def summarize_forecast(forecast_data: dict, max_days: int = 7) -> list[dict]:
    """
    Reduce 3-hourly forecast entries to one entry per weekday.

    The first entry seen for each weekday wins. Weekdays are computed in the
    city's local time when the payload carries its UTC offset.
    """
    offset = timedelta(seconds=(forecast_data.get("city") or {}).get("timezone", 0))
    days: list[dict] = []
    seen: set[str] = set()

    for item in forecast_data.get("list", []):
        if len(days) >= max_days:
            break
        day = (datetime.fromtimestamp(item["dt"], tz=timezone.utc) + offset).strftime("%a")
        if day in seen:
            continue
        seen.add(day)
        days.append(
            {
                "date": day,
                "temp": round(item["main"]["temp"]),
                "condition": _condition(item),
            }
        )
    return days


class WeatherService:
    """Async client for the OpenWeather current and forecast endpoints."""

    def __init__(
        self,
        settings: WeatherConfig,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings
        self._client = client or httpx.AsyncClient(
            base_url=settings.base_url, timeout=settings.timeout
        )

    async def fetch(self, city: str) -> dict:
        """
        Fetch weather for a city.

        Returns:
            WeatherReport-shaped dict, or ``{"error": ...}`` on failure
        """
        if not self.settings.api_key:
            logger.warning("OPENWEATHER_API_KEY not configured")
            return {"error": MISSING_KEY_ERROR}

        params = {"q": city, "units": "metric", "appid": self.settings.api_key}
        try:
            current = await self._client.get("/weather", params=params)
            if current.is_error:
                return _api_error(
                    current, "Weather API failed. Check city name or API key."
                )

            forecast = await self._client.get("/forecast", params=params)
            if forecast.is_error:
                return _api_error(
                    forecast, "Forecast API failed. Check city name or API key."
                )

            weather_data = current.json()
            forecast_data = forecast.json()
        except httpx.HTTPError as e:
            logger.error("Weather request for %r failed: %s", city, e)
            return {"error": NETWORK_ERROR}

        alerts = weather_data.get("alerts") or []
        return {
            "city": weather_data.get("name") or city,
            "temp": round(weather_data["main"]["temp"]),
            "condition": _condition(weather_data),
            "alert": (alerts[0].get("description") if alerts else None)
            or "No alerts available",
            "timezone": weather_data.get("timezone", 0),
            "forecast": summarize_forecast(
                forecast_data, self.settings.max_forecast_days
            ),
        }

    async def aclose(self) -> None:
        await self._client.aclose()


def register(registry, service: WeatherService) -> None:
    """Register the weather tool backed by ``service``."""

    async def _handle_weather(params: WeatherInput) -> dict:
        logger.info("Fetching weather for: %s", params.location)
        return await service.fetch(params.location)

    registry.register(
        name=TOOL_NAME,
        description="Get weather for a city (°C) with short forecast",
        input_model=WeatherInput,
        handler=_handle_weather,
        output_model=WeatherReport,
        timeout=service.settings.timeout,
    )
