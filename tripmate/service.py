"""
TripMate chat service.

Wires the guardrail, step orchestrator and response assembler into one
exchange pipeline shared by the HTTP API and the interactive CLI.
"""

import logging
import uuid
from contextlib import aclosing
from typing import AsyncIterator, Optional

from .guardrail import TopicGuardrail
from .history import HistoryStore
from .models import AppConfig, Message
from .orchestration import ModelClient, StepOrchestrator, StepPolicy
from .streaming import ResponseAssembler
from .streaming import protocol
from .tools import ToolRegistry
from .tracing import TracingContext

logger = logging.getLogger(__name__)


def new_execution_id() -> str:
    return f"exec-{uuid.uuid4().hex[:8]}"


def new_conversation_id() -> str:
    return str(uuid.uuid4())


class ChatService:
    """
    Runs chat exchanges against a history store.

    One instance is shared by every request; all per-exchange state lives
    in the orchestrator and assembler built by ``exchange()``.
    """

    def __init__(
        self,
        app_config: AppConfig,
        model_client: ModelClient,
        history: HistoryStore,
        registry: ToolRegistry,
        guardrail: Optional[TopicGuardrail] = None,
    ):
        self.app_config = app_config
        self.model_client = model_client
        self.history = history
        self.registry = registry
        self.guardrail = guardrail

        orchestrator_config = app_config.orchestrator
        self.policy = StepPolicy(
            available_tools=registry.names(),
            forced_tool=orchestrator_config.forced_tool,
            trigger_keywords=orchestrator_config.trigger_keywords,
            after_first_step=orchestrator_config.tool_choice_after_first_step,
        )

    async def exchange(
        self,
        conversation_id: str,
        user_message: Message,
        execution_id: Optional[str] = None,
    ) -> AsyncIterator[dict]:
        """
        Run one exchange and yield client parts.

        Out-of-scope turns get a short redirect stream and are not committed.
        """
        execution_id = execution_id or new_execution_id()

        if self.guardrail is not None:
            decision = self.guardrail.classify(user_message.text)
            if not decision.in_scope:
                logger.info(
                    f"[{execution_id}] Turn out of scope for conversation {conversation_id}"
                )
                for part in self._redirect_parts(conversation_id, decision.redirect_text):
                    yield part
                return
            logger.debug(f"[{execution_id}] Guardrail matched '{decision.matched_keyword}'")

        prior = await self.history.get(conversation_id)
        logger.info(
            f"[{execution_id}] Exchange for conversation {conversation_id} "
            f"({len(prior)} prior message(s))"
        )

        tracing_context = TracingContext(
            execution_id=execution_id, session_id=conversation_id
        )
        tracing_context.start_trace(
            name="chat_exchange",
            input={"text": user_message.text},
            metadata={"model": self.model_client.model_name},
        )

        orchestrator = StepOrchestrator(
            model_client=self.model_client,
            registry=self.registry,
            policy=self.policy,
            system_prompt=self.app_config.orchestrator.system_prompt,
            max_steps=self.app_config.orchestrator.max_steps,
            execution_id=execution_id,
            tracing_context=tracing_context,
        )
        assembler = ResponseAssembler(
            history=self.history,
            conversation_id=conversation_id,
            execution_id=execution_id,
            tracing_context=tracing_context,
        )
        parts = assembler.stream(prior, user_message, orchestrator.run(prior, user_message))
        async with aclosing(parts):
            async for part in parts:
                yield part

    @staticmethod
    def _redirect_parts(conversation_id: str, redirect_text: Optional[str]) -> list[dict]:
        return [
            protocol.start_part(conversation_id),
            protocol.start_step_part(0),
            protocol.text_part(0, redirect_text or ""),
            protocol.finish_step_part(0, "stop"),
            protocol.finish_part(conversation_id),
        ]
