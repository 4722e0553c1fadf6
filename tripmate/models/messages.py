"""
Conversation message model.

A ``Message`` is an immutable, role-tagged sequence of ``Part`` values.
``Part`` is a closed union discriminated by its ``type`` field; the wire
format uses camelCase keys (``mediaType``, ``toolCallId``, ...) to match
what the chat client sends and renders.
"""

import json
from typing import Annotated, Any, Literal, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Role = Literal["user", "assistant", "tool"]


class _FrozenModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class TextPart(_FrozenModel):
    """Plain text authored by the user or the assistant."""

    type: Literal["text"] = "text"
    text: str


class FilePart(_FrozenModel):
    """An attachment referenced by URL (usually a data URL)."""

    type: Literal["file"] = "file"
    media_type: str
    url: str
    name: Optional[str] = None


class ReasoningPart(_FrozenModel):
    """Model reasoning shown to the client but not part of the answer."""

    type: Literal["reasoning"] = "reasoning"
    text: str


class ToolCallPart(_FrozenModel):
    """A request from the model to run a tool."""

    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str
    tool_name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ToolResultPart(_FrozenModel):
    """The output of a tool call; ``{"error": ...}`` on failure."""

    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str
    tool_name: str
    output: Any = None

    @property
    def is_error(self) -> bool:
        return isinstance(self.output, dict) and "error" in self.output


Part = Annotated[
    Union[TextPart, FilePart, ReasoningPart, ToolCallPart, ToolResultPart],
    Field(discriminator="type"),
]


class Message(_FrozenModel):
    """One entry of a conversation history."""

    role: Role
    parts: tuple[Part, ...] = ()

    @property
    def text(self) -> str:
        """All text parts joined by a single space."""
        return " ".join(p.text for p in self.parts if isinstance(p, TextPart))

    @classmethod
    def user(cls, text: str, *files: FilePart) -> "Message":
        return cls(role="user", parts=(TextPart(text=text), *files))

    def to_wire(self) -> dict:
        """Serialize with camelCase keys for clients."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def latest_user_text(messages: Sequence[Message]) -> str:
    """Return the text of the most recent user message, or ``""``."""
    for message in reversed(messages):
        if message.role == "user":
            return message.text
    return ""


# =============================================================================
# Chat-completions wire format
# =============================================================================


def _user_content(parts: Sequence[Part]) -> Union[str, list[dict]]:
    """Build user message content; a lone text part becomes a plain string."""
    if len(parts) == 1 and isinstance(parts[0], TextPart):
        return parts[0].text

    content: list[dict] = []
    for part in parts:
        if isinstance(part, TextPart):
            content.append({"type": "text", "text": part.text})
        elif isinstance(part, FilePart):
            if part.media_type.startswith("image/"):
                content.append({"type": "image_url", "image_url": {"url": part.url}})
            else:
                content.append(
                    {
                        "type": "file",
                        "file": {
                            "filename": part.name or "attachment",
                            "file_data": part.url,
                        },
                    }
                )
    return content


def _tool_message(part: ToolResultPart) -> dict:
    return {
        "role": "tool",
        "tool_call_id": part.tool_call_id,
        "content": json.dumps(part.output, default=str),
    }


def _assistant_messages(parts: Sequence[Part]) -> list[dict]:
    """
    Split an assistant message into chat-completions messages.

    A committed assistant message interleaves text, tool calls and tool
    results across steps. Every run of text + tool calls becomes one
    ``assistant`` message, each tool result becomes a ``tool`` message.
    Reasoning parts are dropped.
    """
    result: list[dict] = []
    text: list[str] = []
    calls: list[dict] = []

    def flush() -> None:
        if not text and not calls:
            return
        message: dict[str, Any] = {
            "role": "assistant",
            "content": "".join(text) if text else None,
        }
        if calls:
            message["tool_calls"] = list(calls)
        result.append(message)
        text.clear()
        calls.clear()

    for part in parts:
        if isinstance(part, TextPart):
            if calls:
                flush()
            text.append(part.text)
        elif isinstance(part, ToolCallPart):
            calls.append(
                {
                    "id": part.tool_call_id,
                    "type": "function",
                    "function": {
                        "name": part.tool_name,
                        "arguments": json.dumps(part.input),
                    },
                }
            )
        elif isinstance(part, ToolResultPart):
            flush()
            result.append(_tool_message(part))
    flush()
    return result


def to_chat_messages(messages: Sequence[Message]) -> list[dict]:
    """
    Convert conversation messages into chat-completions request messages.

    Args:
        messages: Ordered conversation messages.

    Returns:
        List of ``{"role": ..., ...}`` dicts without a system message.
    """
    chat: list[dict] = []
    for message in messages:
        if message.role == "user":
            parts = [p for p in message.parts if isinstance(p, (TextPart, FilePart))]
            if parts:
                chat.append({"role": "user", "content": _user_content(parts)})
        elif message.role == "assistant":
            chat.extend(_assistant_messages(message.parts))
        else:
            chat.extend(
                _tool_message(p) for p in message.parts if isinstance(p, ToolResultPart)
            )
    return chat
