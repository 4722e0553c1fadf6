"""
TripMate - travel assistant chat core

This package provides:
- Bounded per-conversation history store
- Topic guardrail for travel conversations
- Step-wise tool orchestration over a streaming model client
- Streaming response assembly with atomic history commits
- HTTP API and interactive CLI
"""

__version__ = "0.1.0"

from .service import ChatService
from .models import Message

__all__ = [
    "ChatService",
    "Message",
    "__version__",
]
