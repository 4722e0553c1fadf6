"""
Pytest configuration and fixtures for TripMate tests.
"""

import asyncio
from typing import Sequence

import pytest

from tripmate.guardrail import TopicGuardrail, first_redirect
from tripmate.history import InMemoryHistoryStore
from tripmate.models import AppConfig, Message
from tripmate.orchestration import (
    StepCompletion,
    TextChunk,
    ToolCallRequest,
    ToolChoice,
    Usage,
)
from tripmate.tools import ToolRegistry, trip_planning
from tripmate.tools.weather import WeatherInput, WeatherReport


NAIROBI_WEATHER = {
    "city": "Nairobi",
    "temp": 24,
    "condition": "Clear",
    "alert": "No alerts available",
    "timezone": 10800,
    "forecast": [],
}


def text_step(text: str, tokens: int = 10) -> list:
    """A model step that only answers with text."""
    return [
        TextChunk(text=text),
        StepCompletion(
            finish_reason="stop",
            usage=Usage(prompt_tokens=tokens, completion_tokens=tokens, total_tokens=2 * tokens),
        ),
    ]


def tool_step(*calls: tuple[str, str, dict], tokens: int = 10) -> list:
    """A model step that requests one or more tool calls."""
    return [
        *(ToolCallRequest(tool_call_id=cid, tool_name=name, input=args) for cid, name, args in calls),
        StepCompletion(
            finish_reason="tool_calls",
            usage=Usage(prompt_tokens=tokens, completion_tokens=tokens, total_tokens=2 * tokens),
        ),
    ]


class ScriptedModelClient:
    """
    Model client that replays scripted steps.

    Each entry of ``steps`` is the list of deltas for one call. An exception
    instance in a step is raised when reached. Calls past the script answer
    with a plain text step.
    """

    model_name = "scripted-model"

    def __init__(self, steps: Sequence[list] = ()):
        self.steps = list(steps)
        self.calls: list[dict] = []
        self.closed_streams = 0

    async def stream_step(self, *, system_prompt, messages, tools, tool_choice: ToolChoice):
        index = len(self.calls)
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "messages": list(messages),
                "tools": [t["function"]["name"] for t in tools],
                "tool_choice": tool_choice,
            }
        )
        deltas = self.steps[index] if index < len(self.steps) else text_step("Done.")
        try:
            for delta in deltas:
                if isinstance(delta, BaseException):
                    raise delta
                await asyncio.sleep(0)
                yield delta
        finally:
            self.closed_streams += 1


async def collect(agen) -> list:
    """Drain an async iterator into a list."""
    return [item async for item in agen]


@pytest.fixture
def nairobi_weather():
    return dict(NAIROBI_WEATHER)


@pytest.fixture
def registry(nairobi_weather):
    """Registry with a canned weather tool and the real trip tools."""
    reg = ToolRegistry()

    async def fake_weather(params: WeatherInput) -> dict:
        return {**nairobi_weather, "city": params.location}

    reg.register(
        name="weather",
        description="Get weather for a city (°C) with short forecast",
        input_model=WeatherInput,
        handler=fake_weather,
        output_model=WeatherReport,
    )
    trip_planning.register(reg)
    return reg


@pytest.fixture
def history_store():
    return InMemoryHistoryStore(capacity=50, compact_threshold=100)


@pytest.fixture
def guardrail():
    return TopicGuardrail(redirect_policy=first_redirect)


@pytest.fixture
def app_config():
    return AppConfig()


@pytest.fixture
def nairobi_model():
    """Model that forces weather at step 0, then answers."""
    return ScriptedModelClient(
        [
            tool_step(("call_1", "weather", {"location": "Nairobi"})),
            text_step("It's 24°C and clear in Nairobi right now."),
        ]
    )


@pytest.fixture
def user_message():
    return Message.user("weather in Nairobi")
