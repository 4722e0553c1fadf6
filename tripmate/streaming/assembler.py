"""
Response assembler.

Turns orchestrator events into client parts and commits the finished
exchange to the history store. A commit happens at most once per exchange,
only after ``ExchangeFinished``; failures and cancellation leave the stored
history untouched.
"""

import logging
from contextlib import aclosing
from typing import AsyncIterator, Optional, Sequence

from ..errors import ModelInvocationError, StreamOrderError
from ..history import HistoryStore
from ..models import Message
from ..orchestration.events import (
    ExchangeFinished,
    OrchestratorEvent,
    ReasoningDelta,
    StepFinished,
    StepStarted,
    TextDelta,
    ToolCallEvent,
    ToolResultEvent,
)
from ..tracing import TracingContext
from . import protocol

logger = logging.getLogger(__name__)


class _OrderGuard:
    """Rejects event sequences that would produce a malformed stream."""

    def __init__(self) -> None:
        self.current_step: Optional[int] = None
        self.last_step = -1
        self.pending_calls: set[str] = set()
        self.finished = False

    def check(self, event: OrchestratorEvent) -> None:
        if self.finished:
            raise StreamOrderError(f"{type(event).__name__} after ExchangeFinished")

        if isinstance(event, StepStarted):
            if self.current_step is not None:
                raise StreamOrderError(
                    f"Step {event.step} started before step {self.current_step} finished"
                )
            if event.step != self.last_step + 1:
                raise StreamOrderError(
                    f"Step {event.step} started after step {self.last_step}"
                )
            self.current_step = event.step
            return

        if isinstance(event, ExchangeFinished):
            if self.current_step is not None:
                raise StreamOrderError(
                    f"Exchange finished inside step {self.current_step}"
                )
            self.finished = True
            return

        if self.current_step is None or event.step != self.current_step:
            raise StreamOrderError(
                f"{type(event).__name__} for step {event.step} outside that step"
            )

        if isinstance(event, ToolCallEvent):
            if event.tool_call_id in self.pending_calls:
                raise StreamOrderError(f"Duplicate tool call id {event.tool_call_id}")
            self.pending_calls.add(event.tool_call_id)
        elif isinstance(event, ToolResultEvent):
            if event.tool_call_id not in self.pending_calls:
                raise StreamOrderError(
                    f"Tool result {event.tool_call_id} without a preceding call"
                )
            self.pending_calls.discard(event.tool_call_id)
        elif isinstance(event, StepFinished):
            if self.pending_calls:
                raise StreamOrderError(
                    f"Step {event.step} finished with unanswered tool calls"
                )
            self.last_step = event.step
            self.current_step = None


def _to_part(event: OrchestratorEvent) -> dict:
    if isinstance(event, StepStarted):
        return protocol.start_step_part(event.step)
    if isinstance(event, TextDelta):
        return protocol.text_part(event.step, event.text)
    if isinstance(event, ReasoningDelta):
        return protocol.reasoning_part(event.step, event.text)
    if isinstance(event, ToolCallEvent):
        return protocol.tool_call_part(
            event.step, event.tool_call_id, event.tool_name, event.input
        )
    if isinstance(event, ToolResultEvent):
        return protocol.tool_result_part(
            event.step, event.tool_call_id, event.tool_name, event.output
        )
    if isinstance(event, StepFinished):
        return protocol.finish_step_part(event.step, event.finish_reason)
    raise StreamOrderError(f"Unexpected event {type(event).__name__}")


class ResponseAssembler:
    """Streams one exchange to the client and commits it on success."""

    def __init__(
        self,
        history: HistoryStore,
        conversation_id: str,
        execution_id: Optional[str] = None,
        tracing_context: Optional[TracingContext] = None,
    ):
        self.history = history
        self.conversation_id = conversation_id
        self.execution_id = execution_id or "exec-local"
        self.tracing_context = tracing_context
        self.committed = False

    async def stream(
        self,
        prior: Sequence[Message],
        user_message: Message,
        events: AsyncIterator[OrchestratorEvent],
    ) -> AsyncIterator[dict]:
        """
        Yield client parts for the exchange.

        Args:
            prior: History read before the exchange started.
            user_message: The new user turn.
            events: Orchestrator event stream; closed when this generator ends.
        """
        yield protocol.start_part(self.conversation_id)

        guard = _OrderGuard()
        finished: Optional[ExchangeFinished] = None
        status = "cancelled"

        try:
            async with aclosing(events):
                async for event in events:
                    guard.check(event)
                    if isinstance(event, ExchangeFinished):
                        finished = event
                        break
                    yield _to_part(event)

            if finished is None:
                raise StreamOrderError("Orchestrator ended without ExchangeFinished")

            await self.history.set(
                self.conversation_id, [*prior, user_message, *finished.messages]
            )
            self.committed = True
            await self.history.compact()
            status = "success"
            logger.info(
                "[%s] Committed exchange to conversation %s (%d new message(s))",
                self.execution_id,
                self.conversation_id,
                1 + len(finished.messages),
            )
            yield protocol.finish_part(self.conversation_id, finished.usage.to_wire())
        except ModelInvocationError as e:
            status = "error"
            logger.error(
                "[%s] Model failure at step %s, nothing committed: %s",
                self.execution_id,
                e.step_number,
                e,
            )
            yield protocol.error_part(protocol.GENERIC_MODEL_ERROR)
        except Exception:
            status = "error"
            logger.exception(
                "[%s] Exchange failed, nothing committed", self.execution_id
            )
            yield protocol.error_part(protocol.GENERIC_ERROR)
        finally:
            if status == "cancelled":
                logger.info(
                    "[%s] Exchange cancelled, nothing committed", self.execution_id
                )
            if self.tracing_context:
                self.tracing_context.end_trace(
                    output={"committed": self.committed}, status=status
                )
