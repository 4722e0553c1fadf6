"""
Tests for TripMate tools.

The weather tool runs against httpx.MockTransport; no network access.
"""

import httpx
import pytest

from tripmate.models import WeatherConfig
from tripmate.tools import ToolRegistry, trip_planning
from tripmate.tools import weather
from tripmate.tools.weather import (
    MISSING_KEY_ERROR,
    NETWORK_ERROR,
    WeatherService,
    summarize_forecast,
)

# 2024-01-01 00:00 UTC, a Monday
MONDAY = 1704067200
HOUR = 3600

CURRENT = {
    "name": "Nairobi",
    "main": {"temp": 23.7},
    "weather": [{"main": "Clear"}],
    "timezone": 10800,
}


def _forecast(days: int = 8, timezone: int = 0) -> dict:
    return {
        "city": {"timezone": timezone},
        "list": [
            {
                "dt": MONDAY + i * 3 * HOUR,
                "main": {"temp": 20.6 + (i // 8)},
                "weather": [{"main": "Clouds"}],
            }
            for i in range(days * 8)
        ],
    }


def _service(handler, api_key: str = "test-key") -> WeatherService:
    settings = WeatherConfig(api_key=api_key, base_url="https://weather.test/data/2.5")
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url=settings.base_url
    )
    return WeatherService(settings, client=client)


def _ok_handler(requests: list):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path.endswith("/weather"):
            return httpx.Response(200, json=CURRENT)
        return httpx.Response(200, json=_forecast())

    return handler


class TestWeatherService:
    """Tests for the OpenWeather client."""

    @pytest.mark.asyncio
    async def test_fetch_builds_report(self):
        requests: list[httpx.Request] = []
        service = _service(_ok_handler(requests))

        report = await service.fetch("Nairobi")

        assert report["city"] == "Nairobi"
        assert report["temp"] == 24
        assert report["condition"] == "Clear"
        assert report["alert"] == "No alerts available"
        assert report["timezone"] == 10800
        assert [d["date"] for d in report["forecast"]] == [
            "Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun",
        ]
        assert report["forecast"][0] == {"date": "Mon", "temp": 21, "condition": "Clouds"}

        assert [r.url.path for r in requests] == ["/data/2.5/weather", "/data/2.5/forecast"]
        assert requests[0].url.params["q"] == "Nairobi"
        assert requests[0].url.params["units"] == "metric"
        assert requests[0].url.params["appid"] == "test-key"
        await service.aclose()

    @pytest.mark.asyncio
    async def test_missing_key_skips_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        service = _service(handler, api_key="")
        assert await service.fetch("Nairobi") == {"error": MISSING_KEY_ERROR}

    @pytest.mark.asyncio
    async def test_api_error_message_surfaces(self):
        def handler(request):
            return httpx.Response(404, json={"cod": "404", "message": "city not found"})

        service = _service(handler)
        assert await service.fetch("Atlantis") == {"error": "city not found"}

    @pytest.mark.asyncio
    async def test_forecast_failure_without_body(self):
        def handler(request):
            if request.url.path.endswith("/weather"):
                return httpx.Response(200, json=CURRENT)
            return httpx.Response(502, text="bad gateway")

        result = await _service(handler).fetch("Nairobi")
        assert result == {"error": "Forecast API failed. Check city name or API key."}

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        assert await _service(handler).fetch("Nairobi") == {"error": NETWORK_ERROR}

    @pytest.mark.asyncio
    async def test_alert_description_used(self):
        def handler(request):
            if request.url.path.endswith("/weather"):
                return httpx.Response(
                    200, json={**CURRENT, "alerts": [{"description": "Heavy rain"}]}
                )
            return httpx.Response(200, json=_forecast(days=1))

        report = await _service(handler).fetch("Nairobi")
        assert report["alert"] == "Heavy rain"
        assert len(report["forecast"]) == 1

    @pytest.mark.asyncio
    async def test_registered_tool_validates_input(self):
        registry = ToolRegistry()
        weather.register(registry, _service(_ok_handler([])))

        assert "error" in await registry.execute("weather", {"location": ""})
        result = await registry.execute("weather", {"location": "Nairobi"})
        assert result["city"] == "Nairobi"


class TestSummarizeForecast:
    """Tests for forecast reduction."""

    def test_first_entry_per_day_wins(self):
        days = summarize_forecast(_forecast(days=2))
        assert days == [
            {"date": "Mon", "temp": 21, "condition": "Clouds"},
            {"date": "Tue", "temp": 22, "condition": "Clouds"},
        ]

    def test_respects_max_days(self):
        assert len(summarize_forecast(_forecast(days=8), max_days=3)) == 3

    def test_uses_city_local_time(self):
        # Sunday 23:00 UTC is already Monday at UTC+1
        data = {
            "city": {"timezone": HOUR},
            "list": [{"dt": MONDAY - HOUR, "main": {"temp": 10}, "weather": []}],
        }
        assert summarize_forecast(data) == [{"date": "Mon", "temp": 10, "condition": "Unknown"}]


class TestTripPlanningTools:
    """Tests for create_trip_card and create_packing_list."""

    @pytest.fixture
    def trip_registry(self):
        registry = ToolRegistry()
        trip_planning.register(registry)
        return registry

    @pytest.mark.asyncio
    async def test_trip_card(self, trip_registry):
        result = await trip_registry.execute(
            "create_trip_card",
            {
                "city": "Lisbon",
                "summary": "Sunny hills and seafood.",
                "packingAdvice": ["Comfortable shoes", "Sunscreen"],
            },
        )
        assert result["city"] == "Lisbon"
        assert result["packingAdvice"] == ["Comfortable shoes", "Sunscreen"]
        assert result["cautions"] == []
        assert result["createdAt"]

    @pytest.mark.asyncio
    async def test_trip_card_requires_city(self, trip_registry):
        result = await trip_registry.execute(
            "create_trip_card", {"summary": "x", "packingAdvice": []}
        )
        assert "error" in result

    @pytest.mark.asyncio
    async def test_packing_list(self, trip_registry):
        result = await trip_registry.execute(
            "create_packing_list",
            {"items": [{"item": "Umbrella", "reason": "Rainy season"}]},
        )
        assert result["items"] == [{"item": "Umbrella", "reason": "Rainy season"}]
        assert result["totalItems"] == 1
        assert result["createdAt"]

    @pytest.mark.asyncio
    async def test_empty_packing_list_rejected(self, trip_registry):
        result = await trip_registry.execute("create_packing_list", {"items": []})
        assert "error" in result

    def test_schema_uses_camel_case(self, trip_registry):
        schema = trip_registry.get("create_trip_card").input_schema
        assert "packingAdvice" in schema["properties"]
