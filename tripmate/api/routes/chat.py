"""
Chat endpoints.

POST /api/chat streams one exchange as Server-Sent Events.
GET /api/conversations/{conversation_id} returns the stored history.
"""

import logging
from contextlib import aclosing
from typing import AsyncIterator

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from ...models import Message
from ...service import ChatService, new_conversation_id, new_execution_id
from ...streaming import DONE, encode_sse
from ..schemas import ChatRequest, ConversationResponse, ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter()

CONVERSATION_HEADER = "x-conversation-id"


def _latest_user_message(body: ChatRequest) -> Message:
    """Build the new turn from the newest user message, or raise 400."""
    user_messages = [msg for msg in body.messages if msg.role == "user"]
    if not user_messages:
        logger.warning("No user message found in request")
        raise HTTPException(
            status_code=400,
            detail="No user message found in the request.",
        )

    latest = user_messages[-1]
    try:
        message = Message.model_validate({"role": "user", "parts": latest.parts})
    except ValidationError as e:
        logger.warning(f"Invalid user message parts: {e.errors()}")
        raise HTTPException(
            status_code=400,
            detail=e.errors(include_url=False, include_context=False),
        )

    if not message.parts:
        raise HTTPException(status_code=400, detail="The user message has no parts.")
    return message


async def _sse_stream(
    service: ChatService,
    conversation_id: str,
    user_message: Message,
    execution_id: str,
) -> AsyncIterator[str]:
    parts = service.exchange(conversation_id, user_message, execution_id)
    async with aclosing(parts):
        async for part in parts:
            yield encode_sse(part)
    yield DONE


@router.post(
    "/api/chat",
    responses={
        400: {"description": "Malformed body or no user message"},
        503: {"model": ErrorResponse, "description": "Model credentials not configured"},
    },
    summary="Chat with TripMate",
    description=(
        "Run one exchange for the newest user message and stream the response "
        "as Server-Sent Events. The conversation id is returned in the "
        "x-conversation-id header and in the start and finish parts."
    ),
)
async def chat(body: ChatRequest, request: Request):
    service: ChatService | None = request.app.state.chat_service
    if service is None:
        logger.error("Chat request rejected: AI_GATEWAY_API_KEY is not configured")
        return JSONResponse(status_code=503, content={"error": "API configuration error"})

    user_message = _latest_user_message(body)
    conversation_id = body.conversation_id or new_conversation_id()
    execution_id = new_execution_id()
    logger.info(
        f"[{execution_id}] Chat request for conversation {conversation_id}: "
        f"{user_message.text[:100]}"
    )

    return StreamingResponse(
        _sse_stream(service, conversation_id, user_message, execution_id),
        media_type="text/event-stream",
        headers={
            CONVERSATION_HEADER: conversation_id,
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


@router.get(
    "/api/conversations/{conversation_id}",
    response_model=ConversationResponse,
    response_model_by_alias=True,
    summary="Get conversation history",
    description="Return the stored messages of a conversation (empty if unknown).",
)
async def get_conversation(conversation_id: str, request: Request) -> ConversationResponse:
    messages = await request.app.state.history_store.get(conversation_id)
    return ConversationResponse(
        conversation_id=conversation_id,
        messages=[m.to_wire() for m in messages],
    )
