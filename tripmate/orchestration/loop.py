"""
Bounded multi-step model/tool loop.

Each exchange runs steps ``0 .. max_steps - 1``. Before a step the policy
picks the tool choice and active tools; the model then streams text,
reasoning and tool calls; the calls run concurrently against the registry
and their results feed the next step. The loop ends when a step makes no
tool calls or the step budget is spent.

The orchestrator is an async generator of events. Closing it (for example
when the client disconnects) cancels in-flight model and tool work.
"""

import asyncio
import logging
from contextlib import aclosing
from typing import AsyncIterator, Optional, Sequence

from ..errors import ModelInvocationError
from ..models import Message, Part, TextPart, ToolCallPart, ToolResultPart
from ..tools.registry import ToolRegistry
from ..tracing import TracingContext
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
from .model_client import (
    ModelClient,
    ReasoningChunk,
    StepCompletion,
    TextChunk,
    ToolCallRequest,
    Usage,
)
from .policy import StepConfig, StepPolicy

logger = logging.getLogger(__name__)


class StepOrchestrator:
    """
    Runs one exchange as a sequence of model steps.

    Tool failures never abort the exchange; they come back from the registry
    as ``{"error": ...}`` results. Model failures raise
    ``ModelInvocationError`` tagged with the failing step.
    """

    def __init__(
        self,
        model_client: ModelClient,
        registry: ToolRegistry,
        policy: StepPolicy,
        system_prompt: str,
        max_steps: int = 5,
        execution_id: Optional[str] = None,
        tracing_context: Optional[TracingContext] = None,
    ):
        if max_steps < 1:
            raise ValueError(f"max_steps must be at least 1, got {max_steps}")
        self.model_client = model_client
        self.registry = registry
        self.policy = policy
        self.system_prompt = system_prompt
        self.max_steps = max_steps
        self.execution_id = execution_id or "exec-local"
        self.tracing_context = tracing_context

    async def run(
        self, prior: Sequence[Message], user_message: Message
    ) -> AsyncIterator[OrchestratorEvent]:
        """
        Run the exchange, yielding events in order.

        Args:
            prior: Stored history for the conversation.
            user_message: The new user turn.
        """
        conversation = [*prior, user_message]
        generated: list[Part] = []
        usage = Usage()
        steps_taken = 0

        for step_number in range(self.max_steps):
            working = conversation + self._assistant_message(generated)
            step = self.policy.prepare_step(step_number, working)
            steps_taken += 1
            logger.info(
                "[%s] Step %d: tool_choice=%s active_tools=%s",
                self.execution_id,
                step_number,
                step.tool_choice,
                list(step.active_tools),
            )
            yield StepStarted(
                step=step_number,
                tool_choice=str(step.tool_choice),
                active_tools=step.active_tools,
            )

            text: list[str] = []
            calls: list[ToolCallRequest] = []
            completion: Optional[StepCompletion] = None

            with self._span(f"step_{step_number}", step) as step_span:
                with step_span.generation(
                    name="model_call",
                    model=self.model_client.model_name,
                    metadata={"step": step_number, "tool_choice": str(step.tool_choice)},
                ) as generation:
                    stream = self.model_client.stream_step(
                        system_prompt=self.system_prompt,
                        messages=working,
                        tools=self.registry.to_openai_tools(step.active_tools),
                        tool_choice=step.tool_choice,
                    )
                    try:
                        async with aclosing(stream):
                            async for delta in stream:
                                if isinstance(delta, TextChunk):
                                    text.append(delta.text)
                                    yield TextDelta(step=step_number, text=delta.text)
                                elif isinstance(delta, ReasoningChunk):
                                    yield ReasoningDelta(step=step_number, text=delta.text)
                                elif isinstance(delta, ToolCallRequest):
                                    calls.append(delta)
                                    yield ToolCallEvent(
                                        step=step_number,
                                        tool_call_id=delta.tool_call_id,
                                        tool_name=delta.tool_name,
                                        input=delta.input,
                                    )
                                elif isinstance(delta, StepCompletion):
                                    completion = delta
                    except ModelInvocationError as e:
                        if e.step_number is None:
                            e.step_number = step_number
                        raise

                    if completion is None:
                        raise ModelInvocationError(
                            "Model stream ended without a completion", step_number
                        )
                    generation.set_output("".join(text) or None)
                    generation.set_usage(
                        prompt_tokens=completion.usage.prompt_tokens,
                        completion_tokens=completion.usage.completion_tokens,
                        total_tokens=completion.usage.total_tokens,
                    )

                if text:
                    generated.append(TextPart(text="".join(text)))
                generated.extend(
                    ToolCallPart(
                        tool_call_id=call.tool_call_id,
                        tool_name=call.tool_name,
                        input=call.input,
                    )
                    for call in calls
                )

                outputs = await asyncio.gather(
                    *(self._execute(call, step_span) for call in calls)
                )
                for call, output in zip(calls, outputs):
                    generated.append(
                        ToolResultPart(
                            tool_call_id=call.tool_call_id,
                            tool_name=call.tool_name,
                            output=output,
                        )
                    )
                    yield ToolResultEvent(
                        step=step_number,
                        tool_call_id=call.tool_call_id,
                        tool_name=call.tool_name,
                        output=output,
                    )

                step_span.set_output(
                    {"finish_reason": completion.finish_reason, "tool_calls": len(calls)}
                )

            usage = usage + completion.usage
            yield StepFinished(
                step=step_number,
                finish_reason=completion.finish_reason,
                usage=completion.usage,
            )

            if not calls:
                break
        else:
            logger.warning(
                "[%s] Max steps (%d) reached with tool calls pending a response",
                self.execution_id,
                self.max_steps,
            )

        logger.info(
            "[%s] Exchange finished after %d step(s), %d total tokens",
            self.execution_id,
            steps_taken,
            usage.total_tokens,
        )
        yield ExchangeFinished(
            messages=tuple(self._assistant_message(generated)),
            usage=usage,
            steps=steps_taken,
        )

    @staticmethod
    def _assistant_message(parts: list[Part]) -> list[Message]:
        if not parts:
            return []
        return [Message(role="assistant", parts=tuple(parts))]

    def _span(self, name: str, step: StepConfig):
        if self.tracing_context is None:
            # Disabled context: spans and generations are no-ops
            return TracingContext(execution_id=self.execution_id).span(name)
        return self.tracing_context.span(
            name=name,
            metadata={
                "tool_choice": str(step.tool_choice),
                "active_tools": list(step.active_tools),
            },
        )

    async def _execute(self, call: ToolCallRequest, step_span) -> object:
        with step_span.span(name=f"tool:{call.tool_name}", input=call.input) as tool_span:
            output = await self.registry.execute(call.tool_name, call.input)
            if isinstance(output, dict) and "error" in output:
                tool_span.set_status("error")
                logger.warning(
                    "[%s] Tool %s returned error: %s",
                    self.execution_id,
                    call.tool_name,
                    output["error"],
                )
            else:
                logger.info("[%s] Tool %s succeeded", self.execution_id, call.tool_name)
            tool_span.set_output({"output": output})
            return output
