"""Type definitions for the agent and its loop.

These are plain dataclasses and aliases shared by
:mod:`toolloop.agent` and :mod:`toolloop.agent_loop`.  Message and
tool types live in :mod:`toolloop.message` and :mod:`toolloop.tool`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from .message import Message, ToolCall, ToolResult


class AgentStatus(str, Enum):
    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"


# Agent state used internally by the Agent class
@dataclass
class AgentState:
    name: str
    system_prompt: Optional[str] = None
    status: AgentStatus = AgentStatus.IDLE
    pending_tool_calls: set[str] = field(default_factory=set)
    turns: int = 0
    error: Optional[str] = None


# Agent events are simple dictionaries with a ``type`` field and
# additional attributes depending on the event; see :mod:`agent_loop`
# for the events that are emitted.
AgentEvent = Dict[str, Any]

ResponseCallback = Callable[[Message], Union[None, Awaitable[None]]]


@dataclass
class ToolOutcome:
    """Result of executing one tool call.

    Exactly one of ``value`` and ``error`` is meaningful: a failed
    execution (including an unknown tool name) sets ``error`` and
    leaves ``value`` as ``None``.  The outcome is turned into a
    :class:`ToolResult` only when it is appended to the conversation.
    """

    tool_call: ToolCall
    value: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_tool_result(self) -> ToolResult:
        if self.error is None:
            return ToolResult.of(self.tool_call, self.value)
        payload = {"error": type(self.error).__name__, "message": str(self.error)}
        return ToolResult.of(self.tool_call, payload, is_error=True)
