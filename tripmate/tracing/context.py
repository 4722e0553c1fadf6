"""
Exchange-scoped tracing context using Langfuse SDK v3.

Every observation is created from its parent object (``start_span`` /
``start_generation``) rather than from the ambient OpenTelemetry context.
Exchanges are async generators that suspend between a span's start and end,
so the ambient context cannot be relied on for nesting.

All context managers degrade to no-ops when tracing is disabled.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Generator, Optional

from .client import get_tracing_client

logger = logging.getLogger(__name__)


def _finish(observation: Any, name: str, start_time: float, status: str, **update: Any) -> None:
    try:
        metadata = {
            "status": status,
            "duration_ms": round((time.time() - start_time) * 1000, 2),
        }
        if status != "success":
            update["level"] = "ERROR"
        observation.update(metadata=metadata, **update)
        observation.end()
    except Exception as e:
        logger.warning(f"Failed to end observation '{name}': {e}")


class _ObservationParent:
    """Shared factory for child spans and generations."""

    enabled: bool

    def _observation(self) -> Any:
        raise NotImplementedError

    @contextmanager
    def span(
        self,
        name: str,
        metadata: Optional[dict] = None,
        input: Optional[Any] = None,
    ) -> Generator["SpanContext", None, None]:
        """Create a child span."""
        child = SpanContext(
            name=name,
            enabled=self.enabled,
            metadata=metadata,
            input=input,
            _parent=self._observation(),
        )
        child.start()
        try:
            yield child
        except BaseException:
            child.set_status("error")
            raise
        finally:
            child.end()

    @contextmanager
    def generation(
        self,
        name: str,
        model: str,
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
        model_parameters: Optional[dict] = None,
    ) -> Generator["GenerationContext", None, None]:
        """Create a child generation for a model call."""
        gen_ctx = GenerationContext(
            name=name,
            model=model,
            enabled=self.enabled,
            input=input,
            metadata=metadata,
            model_parameters=model_parameters,
            _parent=self._observation(),
        )
        gen_ctx.start()
        try:
            yield gen_ctx
        except BaseException:
            gen_ctx.set_status("error")
            raise
        finally:
            gen_ctx.end()


@dataclass
class TracingContext(_ObservationParent):
    """
    Tracing context for one chat exchange.

    The root span doubles as the trace; its session id is the conversation
    id so every exchange of a conversation groups together in Langfuse.
    """

    execution_id: str
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    enabled: bool = field(default=False, repr=False)
    _root_span: Any = field(default=None, repr=False)
    _start_time: float = field(default_factory=time.time, repr=False)

    def __post_init__(self):
        client = get_tracing_client()
        self.enabled = client is not None and client.enabled

    def _observation(self) -> Any:
        return self._root_span

    def start_trace(
        self,
        name: str = "chat_exchange",
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
    ) -> None:
        """Start the root span for this exchange."""
        if not self.enabled:
            return

        client = get_tracing_client()
        if not client or not client.client:
            return

        try:
            trace_metadata = {"execution_id": self.execution_id, **(metadata or {})}
            self._root_span = client.client.start_span(
                name=name,
                input=input,
                metadata=trace_metadata,
            )
            self._root_span.update_trace(
                name=name,
                user_id=self.user_id,
                session_id=self.session_id,
            )
            self._start_time = time.time()
            logger.debug(f"[{self.execution_id}] Trace started")
        except Exception as e:
            logger.warning(f"[{self.execution_id}] Failed to start trace: {e}")
            self._root_span = None

    def end_trace(
        self,
        output: Optional[Any] = None,
        status: str = "success",
        metadata: Optional[dict] = None,
    ) -> None:
        """End the root span and flush."""
        if not self.enabled or not self._root_span:
            return

        root, self._root_span = self._root_span, None
        _finish(root, "trace", self._start_time, status, output=output)
        if metadata:
            try:
                root.update_trace(metadata=metadata)
            except Exception as e:
                logger.warning(f"[{self.execution_id}] Failed to update trace: {e}")

        client = get_tracing_client()
        if client:
            client.flush()


@dataclass
class SpanContext(_ObservationParent):
    """A span nested under a trace or another span."""

    name: str
    enabled: bool = False
    metadata: Optional[dict] = None
    input: Optional[Any] = None
    _parent: Any = field(default=None, repr=False)
    _span: Any = field(default=None, repr=False)
    _start_time: float = field(default=0.0, repr=False)
    _output: Optional[Any] = field(default=None, repr=False)
    _status: str = field(default="success", repr=False)

    def __post_init__(self):
        self.enabled = self.enabled and self._parent is not None

    def _observation(self) -> Any:
        return self._span

    def start(self) -> None:
        if not self.enabled:
            return
        try:
            self._start_time = time.time()
            self._span = self._parent.start_span(
                name=self.name,
                input=self.input,
                metadata=self.metadata,
            )
        except Exception as e:
            logger.warning(f"Failed to start span '{self.name}': {e}")
            self._span = None

    def end(self) -> None:
        if not self._span:
            return
        span, self._span = self._span, None
        update = {"output": self._output} if self._output is not None else {}
        _finish(span, self.name, self._start_time, self._status, **update)

    def set_output(self, output: Any) -> None:
        self._output = output

    def set_status(self, status: str) -> None:
        self._status = status


@dataclass
class GenerationContext:
    """Model call tracking with token usage."""

    name: str
    model: str
    enabled: bool = False
    input: Optional[Any] = None
    metadata: Optional[dict] = None
    model_parameters: Optional[dict] = None
    _parent: Any = field(default=None, repr=False)
    _generation: Any = field(default=None, repr=False)
    _start_time: float = field(default=0.0, repr=False)
    _output: Optional[Any] = field(default=None, repr=False)
    _usage: Optional[dict] = field(default=None, repr=False)
    _status: str = field(default="success", repr=False)

    def start(self) -> None:
        if not self.enabled or self._parent is None:
            return
        try:
            self._start_time = time.time()
            self._generation = self._parent.start_generation(
                name=self.name,
                model=self.model,
                input=self.input,
                metadata=self.metadata,
                model_parameters=self.model_parameters,
            )
        except Exception as e:
            logger.warning(f"Failed to start generation '{self.name}': {e}")
            self._generation = None

    def end(self) -> None:
        if not self._generation:
            return
        generation, self._generation = self._generation, None
        update: dict[str, Any] = {}
        if self._output is not None:
            update["output"] = self._output
        if self._usage:
            update["usage_details"] = self._usage
        _finish(generation, self.name, self._start_time, self._status, **update)

    def set_output(self, output: Any) -> None:
        self._output = output

    def set_usage(
        self,
        prompt_tokens: Optional[int] = None,
        completion_tokens: Optional[int] = None,
        total_tokens: Optional[int] = None,
    ) -> None:
        """Set token usage for the generation."""
        self._usage = {}
        if prompt_tokens is not None:
            self._usage["input"] = prompt_tokens
        if completion_tokens is not None:
            self._usage["output"] = completion_tokens
        if total_tokens is not None:
            self._usage["total"] = total_tokens

    def set_status(self, status: str) -> None:
        self._status = status
