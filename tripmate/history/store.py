"""
Conversation history storage.

``HistoryStore`` is the narrow keyed contract the rest of the system depends
on. ``InMemoryHistoryStore`` is the volatile implementation used by the API
and CLI; a durable backend only needs the same three coroutines.
"""

import logging
from typing import Protocol, Sequence, runtime_checkable

from ..models import Message

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 50
DEFAULT_COMPACT_THRESHOLD = 100


@runtime_checkable
class HistoryStore(Protocol):
    """Keyed store of per-conversation message sequences."""

    async def get(self, conversation_id: str) -> tuple[Message, ...]:
        """Return the stored messages, or an empty tuple if unknown."""
        ...

    async def set(self, conversation_id: str, messages: Sequence[Message]) -> None:
        """Replace the stored messages for a conversation."""
        ...

    async def compact(self) -> int:
        """Run retention maintenance, returning the number of evicted conversations."""
        ...


class InMemoryHistoryStore:
    """
    Process-local history store with bounded retention.

    Each conversation keeps at most ``capacity`` messages; older messages
    are dropped from the front. ``compact()`` evicts the oldest half of the
    conversations once more than ``compact_threshold`` are tracked.

    Eviction follows insertion order, not last access: a conversation that
    is still active but was created early can be evicted before an
    abandoned newer one.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        compact_threshold: int = DEFAULT_COMPACT_THRESHOLD,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        if compact_threshold < 1:
            raise ValueError(
                f"compact_threshold must be at least 1, got {compact_threshold}"
            )
        self.capacity = capacity
        self.compact_threshold = compact_threshold
        self._conversations: dict[str, tuple[Message, ...]] = {}

    async def get(self, conversation_id: str) -> tuple[Message, ...]:
        return self._conversations.get(conversation_id, ())

    async def set(self, conversation_id: str, messages: Sequence[Message]) -> None:
        retained = tuple(messages)[-self.capacity :]
        dropped = len(messages) - len(retained)
        if dropped:
            logger.debug(
                "Conversation %s over capacity, dropped %d oldest message(s)",
                conversation_id,
                dropped,
            )
        # Re-assigning an existing key keeps its original insertion position.
        self._conversations[conversation_id] = retained

    async def compact(self) -> int:
        if len(self._conversations) <= self.compact_threshold:
            return 0

        evict = list(self._conversations)[: len(self._conversations) // 2]
        for conversation_id in evict:
            del self._conversations[conversation_id]

        logger.info(
            "Compacted history store: evicted %d conversation(s), %d remain",
            len(evict),
            len(self._conversations),
        )
        return len(evict)

    def __len__(self) -> int:
        return len(self._conversations)

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._conversations
