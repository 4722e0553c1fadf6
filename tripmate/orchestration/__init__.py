"""
Step orchestration: tool policy, model client and the step loop.
"""

from .events import (
    ExchangeFinished,
    OrchestratorEvent,
    ReasoningDelta,
    StepFinished,
    StepStarted,
    TextDelta,
    ToolCallEvent,
    ToolResultEvent,
)
from .loop import StepOrchestrator
from .model_client import (
    ModelClient,
    ModelDelta,
    OpenAIModelClient,
    ReasoningChunk,
    StepCompletion,
    TextChunk,
    ToolCallRequest,
    Usage,
)
from .policy import StepConfig, StepPolicy, ToolChoice

__all__ = [
    "ExchangeFinished",
    "OrchestratorEvent",
    "ReasoningDelta",
    "StepFinished",
    "StepStarted",
    "TextDelta",
    "ToolCallEvent",
    "ToolResultEvent",
    "StepOrchestrator",
    "ModelClient",
    "ModelDelta",
    "OpenAIModelClient",
    "ReasoningChunk",
    "StepCompletion",
    "TextChunk",
    "ToolCallRequest",
    "Usage",
    "StepConfig",
    "StepPolicy",
    "ToolChoice",
]
