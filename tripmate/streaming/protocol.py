"""
Client stream protocol.

Every part is a JSON object with a ``type`` field, framed as one
Server-Sent Event (``data: <json>\\n\\n``). The stream ends with
``data: [DONE]``.
"""

import json
from typing import Any, Optional

DONE = "data: [DONE]\n\n"

GENERIC_MODEL_ERROR = "The assistant is temporarily unavailable. Please try again."
GENERIC_ERROR = "An unexpected error occurred."


def encode_sse(part: dict) -> str:
    """Frame one part as a Server-Sent Event."""
    return f"data: {json.dumps(part, default=str)}\n\n"


def start_part(conversation_id: str) -> dict:
    return {"type": "start", "conversationId": conversation_id}


def start_step_part(step: int) -> dict:
    return {"type": "start-step", "step": step}


def text_part(step: int, text: str) -> dict:
    return {"type": "text", "step": step, "text": text}


def reasoning_part(step: int, text: str) -> dict:
    return {"type": "reasoning", "step": step, "text": text}


def tool_call_part(step: int, tool_call_id: str, tool_name: str, input: dict) -> dict:
    return {
        "type": "tool-call",
        "step": step,
        "toolCallId": tool_call_id,
        "toolName": tool_name,
        "input": input,
    }


def tool_result_part(step: int, tool_call_id: str, tool_name: str, output: Any) -> dict:
    return {
        "type": "tool-result",
        "step": step,
        "toolCallId": tool_call_id,
        "toolName": tool_name,
        "output": output,
    }


def finish_step_part(step: int, finish_reason: str) -> dict:
    return {"type": "finish-step", "step": step, "finishReason": finish_reason}


def finish_part(conversation_id: str, usage: Optional[dict] = None) -> dict:
    part: dict = {"type": "finish", "conversationId": conversation_id}
    if usage is not None:
        part["usage"] = usage
    return part


def error_part(error_text: str) -> dict:
    return {"type": "error", "errorText": error_text}
