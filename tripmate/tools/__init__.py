"""
TripMate Tools Package

Available tools:
- weather: Current conditions and short forecast via OpenWeather
- create_trip_card: Structured destination summary
- create_packing_list: Packing checklist with reasons
"""

from typing import Optional

from ..models import WeatherConfig
from . import trip_planning, weather
from .registry import ToolDefinition, ToolRegistry
from .weather import WeatherService


def build_default_registry(
    weather_config: Optional[WeatherConfig] = None,
    weather_service: Optional[WeatherService] = None,
) -> ToolRegistry:
    """Build a registry holding every TripMate tool."""
    registry = ToolRegistry()
    weather.register(
        registry, weather_service or WeatherService(weather_config or WeatherConfig())
    )
    trip_planning.register(registry)
    return registry


__all__ = [
    "ToolDefinition",
    "ToolRegistry",
    "WeatherService",
    "build_default_registry",
]
