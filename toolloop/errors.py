"""Exception hierarchy for toolloop.

All toolloop specific exceptions inherit from :class:`ToolLoopError`.
Errors signalling that a contract method was not overridden also
inherit from :class:`NotImplementedError` so that generic handlers
keep working.
"""

from __future__ import annotations

from typing import Optional


class ToolLoopError(Exception):
    """Base exception for all toolloop errors."""


class MessageComponentTypeNotDefinedError(ToolLoopError, TypeError):
    """Raised when a message component class does not declare its kind."""


class ToolNotDefinedError(ToolLoopError, NotImplementedError):
    """Raised when a tool does not define its name, description or schema."""


class ModelNotImplementedError(ToolLoopError, NotImplementedError):
    """Raised when a model adapter does not implement the model contract."""


class CompactionStrategyNotImplementedError(ToolLoopError, NotImplementedError):
    """Raised when a compaction strategy does not implement its contract."""


class RateLimiterNotDefinedError(ToolLoopError, NotImplementedError):
    """Raised when a rate limiter does not implement ``attempt_grant``."""


class ToolNotFoundError(ToolLoopError):
    """A tool call named a tool that is not registered on the agent.

    The agent loop never raises this error.  It is carried inside the
    tool outcome and serialised into the tool result so that the model
    can react to it on its next turn.
    """

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Tool not found: {tool_name}")


class DuplicateToolError(ToolLoopError, ValueError):
    """Raised when two tools registered on one agent share a name."""

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Duplicate tool name: {tool_name}")


class ModelInvocationError(ToolLoopError):
    """Raised when a model adapter call fails.

    ``status_code`` holds the transport status when the failure came
    from a non-success HTTP response.
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class RateLimitExceededError(ToolLoopError):
    """Raised by the proxy when the rate limiter refuses a request."""


class AgentBusyError(ToolLoopError, RuntimeError):
    """Raised when ``invoke`` is called while another call is in flight."""
