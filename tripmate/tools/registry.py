"""
Tool Registry - Single source of truth for tool definitions.

Each tool is defined once with a pydantic input schema, an async handler
and an optional output schema. The registry validates at its boundary and
never lets a tool failure escape: errors come back as ``{"error": ...}``.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional, Type

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Any], Awaitable[Any]]


def _validation_summary(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
        for err in error.errors()
    )


@dataclass(frozen=True)
class ToolDefinition:
    """Metadata for a tool - defined once, used everywhere."""

    name: str
    description: str
    input_model: Type[BaseModel]
    handler: ToolHandler
    output_model: Optional[Type[BaseModel]] = None
    timeout: Optional[float] = None

    @property
    def input_schema(self) -> dict:
        """JSON schema of the tool input."""
        return self.input_model.model_json_schema()

    def to_openai_tool(self) -> dict:
        """Function-tool definition for chat-completions requests."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }

    async def execute(self, raw_input: Any) -> Any:
        """
        Validate input, run the handler and validate its output.

        Returns the tool output, or ``{"error": reason}`` on any failure.
        Cancellation is propagated.
        """
        try:
            params = self.input_model.model_validate(raw_input or {})
        except ValidationError as e:
            logger.warning("Invalid input for tool '%s': %s", self.name, e)
            return {"error": f"Invalid input for {self.name}: {_validation_summary(e)}"}

        try:
            if self.timeout:
                result = await asyncio.wait_for(self.handler(params), self.timeout)
            else:
                result = await self.handler(params)
        except asyncio.TimeoutError:
            logger.warning("Tool '%s' timed out after %.1fs", self.name, self.timeout)
            return {"error": f"{self.name} timed out after {self.timeout:g} seconds"}
        except Exception as e:
            logger.exception("Tool '%s' failed", self.name)
            return {"error": f"{self.name} failed: {e}"}

        if isinstance(result, dict) and "error" in result:
            return result
        if self.output_model is None:
            return result

        try:
            return self.output_model.model_validate(result).model_dump(
                mode="json", by_alias=True
            )
        except ValidationError as e:
            logger.warning("Tool '%s' returned invalid output: %s", self.name, e)
            return {"error": f"{self.name} returned invalid output: {_validation_summary(e)}"}


class ToolRegistry:
    """Registry of the tools available to the orchestrator."""

    def __init__(self, tools: Iterable[ToolDefinition] = ()):
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools:
            self.add(tool)

    def add(self, tool: ToolDefinition) -> None:
        """Add a prebuilt tool definition. Names are unique."""
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool
        logger.debug("Registered tool '%s'", tool.name)

    def register(
        self,
        name: str,
        description: str,
        input_model: Type[BaseModel],
        handler: ToolHandler,
        output_model: Optional[Type[BaseModel]] = None,
        timeout: Optional[float] = None,
    ) -> ToolDefinition:
        """Register a tool with its metadata."""
        tool = ToolDefinition(
            name=name,
            description=description,
            input_model=input_model,
            handler=handler,
            output_model=output_model,
            timeout=timeout,
        )
        self.add(tool)
        return tool

    def get(self, name: str) -> Optional[ToolDefinition]:
        """Get a tool by name."""
        return self._tools.get(name)

    def all_tools(self) -> dict[str, ToolDefinition]:
        """Get a copy of all registered tools."""
        return self._tools.copy()

    def names(self) -> list[str]:
        return list(self._tools)

    def get_tools_summary(self) -> str:
        """Get formatted summary of all tools."""
        lines = []
        for name, tool in self._tools.items():
            lines.append(f"- {name}: {tool.description}")
        return "\n".join(lines)

    def to_openai_tools(self, names: Optional[Iterable[str]] = None) -> list[dict]:
        """Function-tool definitions for the given names (all if None)."""
        selected = self._tools if names is None else names
        return [self._tools[n].to_openai_tool() for n in selected if n in self._tools]

    async def execute(self, name: str, raw_input: Any) -> Any:
        """Execute a tool by name. Unknown names yield an error result."""
        tool = self._tools.get(name)
        if tool is None:
            logger.warning("Model requested unknown tool '%s'", name)
            return {"error": f"Unknown tool: {name}"}
        return await tool.execute(raw_input)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
