"""
Conversation history package.
"""

from .store import (
    HistoryStore,
    InMemoryHistoryStore,
    DEFAULT_CAPACITY,
    DEFAULT_COMPACT_THRESHOLD,
)

__all__ = [
    "HistoryStore",
    "InMemoryHistoryStore",
    "DEFAULT_CAPACITY",
    "DEFAULT_COMPACT_THRESHOLD",
]
