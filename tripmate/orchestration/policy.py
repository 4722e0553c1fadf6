"""
Per-step tool activation policy.

Before every step the orchestrator asks the policy which tools the model may
see and whether one of them is forced. The decision is recomputed from the
current accumulated message list, never carried over between steps.
"""

import logging
from dataclasses import dataclass
from typing import Literal, Optional, Sequence, Union

from ..models import Message, latest_user_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolChoice:
    """Resolved tool choice: ``auto``, ``none`` or a forced tool name."""

    mode: Literal["auto", "none", "tool"]
    tool_name: Optional[str] = None

    @classmethod
    def auto(cls) -> "ToolChoice":
        return cls("auto")

    @classmethod
    def none(cls) -> "ToolChoice":
        return cls("none")

    @classmethod
    def forced(cls, tool_name: str) -> "ToolChoice":
        return cls("tool", tool_name)

    def to_openai(self) -> Union[str, dict]:
        """Value for the chat-completions ``tool_choice`` parameter."""
        if self.mode == "tool":
            return {"type": "function", "function": {"name": self.tool_name}}
        return self.mode

    def __str__(self) -> str:
        return self.tool_name if self.mode == "tool" else self.mode


@dataclass(frozen=True)
class StepConfig:
    step_number: int
    tool_choice: ToolChoice
    active_tools: tuple[str, ...]


class StepPolicy:
    """
    Decides tool availability per step.

    Step 0 forces ``forced_tool`` when the newest user text mentions one of
    ``trigger_keywords``. Every other step uses ``after_first_step`` with the
    full tool set active.
    """

    def __init__(
        self,
        available_tools: Sequence[str],
        forced_tool: str = "weather",
        trigger_keywords: Sequence[str] = ("weather", "temperature"),
        after_first_step: Literal["auto", "none"] = "auto",
    ):
        self.available_tools = tuple(available_tools)
        self.forced_tool = forced_tool
        self.trigger_keywords = tuple(k.lower() for k in trigger_keywords)
        self.after_first_step = after_first_step

        if after_first_step == "none":
            logger.warning(
                "tool_choice_after_first_step is 'none': the model will not be "
                "able to call tools after step 0"
            )
        if forced_tool not in self.available_tools:
            logger.warning(
                "Forced tool '%s' is not registered; step 0 will not force it",
                forced_tool,
            )

    def prepare_step(self, step_number: int, messages: Sequence[Message]) -> StepConfig:
        """Compute tool choice and active tools for a step."""
        if step_number == 0 and self.forced_tool in self.available_tools:
            text = latest_user_text(messages).lower()
            if any(keyword in text for keyword in self.trigger_keywords):
                return StepConfig(
                    step_number=step_number,
                    tool_choice=ToolChoice.forced(self.forced_tool),
                    active_tools=(self.forced_tool,),
                )

        if step_number > 0 and self.after_first_step == "none":
            choice = ToolChoice.none()
        else:
            choice = ToolChoice.auto()
        return StepConfig(
            step_number=step_number,
            tool_choice=choice,
            active_tools=self.available_tools,
        )
