"""toolloop Python package.

This package implements a small agent loop for Large Language Models:
an :class:`~toolloop.agent.Agent` asks a model for the next message,
runs the tools the model requests, appends the results to the
conversation and repeats until the model answers without requesting
any tools.

The primary entry points are:

* :class:`toolloop.agent.Agent` – high level API for managing a
  conversation, its tools and its model.
* :func:`toolloop.agent_loop.run_agent_loop` – drives the loop over an
  existing conversation.
* :class:`toolloop.message.Message` – ordered, typed message content.
* :class:`toolloop.tool.Tool` and the decorators in
  :mod:`toolloop.tool_decorators` – declaring tools.
* :class:`toolloop.ollama_model.OllamaModel` – model adapter for Ollama.
* :mod:`toolloop.proxy` – rate limited proxy server and client model.

"""

from .agent import Agent, AgentBuilder
from .agent_loop import AgentLoopConfig, run_agent_loop
from .agent_types import AgentEvent, AgentState, AgentStatus, ToolOutcome
from .conversation import CompactionStrategy, Conversation, IdentityCompactionStrategy
from .errors import (
    AgentBusyError,
    CompactionStrategyNotImplementedError,
    DuplicateToolError,
    MessageComponentTypeNotDefinedError,
    ModelInvocationError,
    ModelNotImplementedError,
    RateLimiterNotDefinedError,
    RateLimitExceededError,
    ToolLoopError,
    ToolNotDefinedError,
    ToolNotFoundError,
)
from .event_logger import default_response_callback, make_event_logger
from .message import (
    Content,
    Message,
    MessageBuilder,
    MessageComponent,
    MessageComponentType,
    Thinking,
    ToolCall,
    ToolResult,
)
from .model import Model, ModelRequest
from .ollama_model import OllamaModel
from .proxy import (
    ConnectionGranularity,
    ConnectionInformation,
    ProcessLocalRateLimiter,
    ProxyModel,
    ProxyServer,
    RateLimiter,
)
from .tool import Parameter, Tool, ToolSchema, ToolSpec
from .tool_decorators import (
    FunctionTool,
    define_tool,
    tool_description,
    tool_name,
    tool_output,
    tool_parameter,
)

__all__ = [
    "Agent",
    "AgentBuilder",
    "AgentLoopConfig",
    "run_agent_loop",
    "AgentEvent",
    "AgentState",
    "AgentStatus",
    "ToolOutcome",
    "CompactionStrategy",
    "Conversation",
    "IdentityCompactionStrategy",
    "AgentBusyError",
    "CompactionStrategyNotImplementedError",
    "DuplicateToolError",
    "MessageComponentTypeNotDefinedError",
    "ModelInvocationError",
    "ModelNotImplementedError",
    "RateLimiterNotDefinedError",
    "RateLimitExceededError",
    "ToolLoopError",
    "ToolNotDefinedError",
    "ToolNotFoundError",
    "default_response_callback",
    "make_event_logger",
    "Content",
    "Message",
    "MessageBuilder",
    "MessageComponent",
    "MessageComponentType",
    "Thinking",
    "ToolCall",
    "ToolResult",
    "Model",
    "ModelRequest",
    "OllamaModel",
    "ConnectionGranularity",
    "ConnectionInformation",
    "ProcessLocalRateLimiter",
    "ProxyModel",
    "ProxyServer",
    "RateLimiter",
    "Parameter",
    "Tool",
    "ToolSchema",
    "ToolSpec",
    "FunctionTool",
    "define_tool",
    "tool_description",
    "tool_name",
    "tool_output",
    "tool_parameter",
]
