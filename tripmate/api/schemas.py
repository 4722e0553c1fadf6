"""
Pydantic schemas for the TripMate HTTP API.

Request messages follow the chat client's UI message shape: an optional id,
a role and a list of typed parts. Only the newest user message is turned
into a ``Message``; earlier turns come from the history store.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatRequestMessage(_CamelModel):
    """A message as sent by the chat client."""

    id: Optional[str] = Field(default=None, description="Client-side message id")
    role: Literal["system", "user", "assistant", "tool"] = Field(
        ..., description="The role of the message author"
    )
    parts: list[dict[str, Any]] = Field(
        default_factory=list, description="Typed message parts"
    )


class ChatRequest(_CamelModel):
    """Request body for POST /api/chat."""

    messages: list[ChatRequestMessage] = Field(
        ..., description="Messages shown in the client; the newest user message is the new turn",
        min_length=1,
    )
    conversation_id: Optional[str] = Field(
        default=None,
        description="Existing conversation id; a new one is generated when omitted",
    )


class ConversationResponse(_CamelModel):
    """Stored history for a conversation."""

    conversation_id: str
    messages: list[dict[str, Any]] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    status: Literal["healthy", "degraded"] = Field(..., description="Health status")
    version: str = Field(..., description="API version")
    model: str = Field(..., description="Configured chat model")
    model_configured: bool = Field(..., description="Whether gateway credentials are set")


class ErrorResponse(BaseModel):
    """Error body for configuration failures."""

    error: str = Field(..., description="Error message")
