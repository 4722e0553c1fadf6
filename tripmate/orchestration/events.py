"""
Events emitted by the step orchestrator, in emission order per step:
``StepStarted``, deltas and tool calls, tool results, ``StepFinished``.
``ExchangeFinished`` closes the exchange.
"""

from dataclasses import dataclass
from typing import Any, Union

from ..models import Message
from .model_client import Usage


@dataclass(frozen=True)
class StepStarted:
    step: int
    tool_choice: str
    active_tools: tuple[str, ...]


@dataclass(frozen=True)
class TextDelta:
    step: int
    text: str


@dataclass(frozen=True)
class ReasoningDelta:
    step: int
    text: str


@dataclass(frozen=True)
class ToolCallEvent:
    step: int
    tool_call_id: str
    tool_name: str
    input: dict


@dataclass(frozen=True)
class ToolResultEvent:
    step: int
    tool_call_id: str
    tool_name: str
    output: Any


@dataclass(frozen=True)
class StepFinished:
    step: int
    finish_reason: str
    usage: Usage


@dataclass(frozen=True)
class ExchangeFinished:
    """Generated messages for the exchange (the user message excluded)."""

    messages: tuple[Message, ...]
    usage: Usage
    steps: int


OrchestratorEvent = Union[
    StepStarted,
    TextDelta,
    ReasoningDelta,
    ToolCallEvent,
    ToolResultEvent,
    StepFinished,
    ExchangeFinished,
]
