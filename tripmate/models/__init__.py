"""
Data models for TripMate.
"""

from .config import (
    ModelConfig,
    OrchestratorConfig,
    HistoryConfig,
    GuardrailConfig,
    WeatherConfig,
    ToolsConfig,
    ServerConfig,
    LoggingConfig,
    LangfuseConfig,
    AppConfig,
)
from .messages import (
    Role,
    Part,
    TextPart,
    FilePart,
    ReasoningPart,
    ToolCallPart,
    ToolResultPart,
    Message,
    latest_user_text,
    to_chat_messages,
)

__all__ = [
    # Config models
    "ModelConfig",
    "OrchestratorConfig",
    "HistoryConfig",
    "GuardrailConfig",
    "WeatherConfig",
    "ToolsConfig",
    "ServerConfig",
    "LoggingConfig",
    "LangfuseConfig",
    "AppConfig",
    # Message models
    "Role",
    "Part",
    "TextPart",
    "FilePart",
    "ReasoningPart",
    "ToolCallPart",
    "ToolResultPart",
    "Message",
    "latest_user_text",
    "to_chat_messages",
]
