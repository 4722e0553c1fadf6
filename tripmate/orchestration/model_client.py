"""
Model invocation capability.

``ModelClient`` is what the orchestrator depends on: one call per step that
streams typed deltas. ``OpenAIModelClient`` implements it against any
OpenAI-compatible chat-completions endpoint (the AI gateway by default).
"""

import json
import logging
import uuid
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Protocol, Sequence, Union

import openai
from openai import AsyncOpenAI

from ..errors import ConfigurationError, ModelInvocationError
from ..models import Message, ModelConfig, to_chat_messages
from .policy import ToolChoice

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Usage:
    """Token usage, summed across steps with ``+``."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    def to_wire(self) -> dict:
        return {
            "promptTokens": self.prompt_tokens,
            "completionTokens": self.completion_tokens,
            "totalTokens": self.total_tokens,
        }


@dataclass(frozen=True)
class TextChunk:
    text: str


@dataclass(frozen=True)
class ReasoningChunk:
    text: str


@dataclass(frozen=True)
class ToolCallRequest:
    tool_call_id: str
    tool_name: str
    input: dict


@dataclass(frozen=True)
class StepCompletion:
    finish_reason: str = "stop"
    usage: Usage = Usage()


ModelDelta = Union[TextChunk, ReasoningChunk, ToolCallRequest, StepCompletion]


class ModelClient(Protocol):
    """Streams one model step. Must end with exactly one ``StepCompletion``."""

    model_name: str

    def stream_step(
        self,
        *,
        system_prompt: str,
        messages: Sequence[Message],
        tools: list[dict],
        tool_choice: ToolChoice,
    ) -> AsyncIterator[ModelDelta]:
        ...


def _parse_arguments(raw: str) -> dict:
    """Parse streamed tool-call arguments; unparseable input is kept raw."""
    if not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Tool call arguments are not valid JSON: %r", raw[:200])
        return {"raw": raw}
    return parsed if isinstance(parsed, dict) else {"value": parsed}


class OpenAIModelClient:
    """
    Streaming chat-completions client.

    Text and reasoning deltas are yielded as they arrive. Tool-call deltas
    are accumulated by index and yielded once the stream ends, followed by
    a ``StepCompletion`` carrying the finish reason and usage.
    """

    def __init__(self, settings: ModelConfig, client: Optional[AsyncOpenAI] = None):
        if client is None and not settings.is_configured:
            raise ConfigurationError("AI_GATEWAY_API_KEY is not configured")
        self.settings = settings
        self.model_name = settings.name
        self._client = client or AsyncOpenAI(
            base_url=settings.base_url,
            api_key=settings.api_key,
            timeout=settings.timeout,
        )

    async def stream_step(
        self,
        *,
        system_prompt: str,
        messages: Sequence[Message],
        tools: list[dict],
        tool_choice: ToolChoice,
    ) -> AsyncIterator[ModelDelta]:
        request: dict = {
            "model": self.settings.name,
            "messages": [
                {"role": "system", "content": system_prompt},
                *to_chat_messages(messages),
            ],
            "temperature": self.settings.temperature,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if tools:
            request["tools"] = tools
            request["tool_choice"] = tool_choice.to_openai()

        pending: dict[int, dict] = {}
        finish_reason = "stop"
        usage = Usage()

        try:
            stream = await self._client.chat.completions.create(**request)
            async for chunk in stream:
                if chunk.usage:
                    usage = Usage(
                        prompt_tokens=chunk.usage.prompt_tokens or 0,
                        completion_tokens=chunk.usage.completion_tokens or 0,
                        total_tokens=chunk.usage.total_tokens or 0,
                    )
                for choice in chunk.choices:
                    delta = choice.delta
                    # Gateways disagree on the reasoning field name
                    reasoning = getattr(delta, "reasoning", None) or getattr(
                        delta, "reasoning_content", None
                    )
                    if reasoning:
                        yield ReasoningChunk(text=reasoning)
                    if delta.content:
                        yield TextChunk(text=delta.content)
                    for call in delta.tool_calls or []:
                        entry = pending.setdefault(
                            call.index, {"id": None, "name": "", "arguments": ""}
                        )
                        if call.id:
                            entry["id"] = call.id
                        if call.function:
                            if call.function.name:
                                entry["name"] = call.function.name
                            if call.function.arguments:
                                entry["arguments"] += call.function.arguments
                    if choice.finish_reason:
                        finish_reason = choice.finish_reason
        except openai.OpenAIError as e:
            logger.error("Model call to %s failed: %s", self.settings.name, e)
            raise ModelInvocationError(f"Model call failed: {e}") from e

        for index in sorted(pending):
            entry = pending[index]
            yield ToolCallRequest(
                tool_call_id=entry["id"] or f"call_{uuid.uuid4().hex[:24]}",
                tool_name=entry["name"],
                input=_parse_arguments(entry["arguments"]),
            )
        yield StepCompletion(finish_reason=finish_reason, usage=usage)

    async def aclose(self) -> None:
        await self._client.close()
