"""High level Agent class.

This module exposes the :class:`Agent` class which ties together a
model adapter, a fixed set of tools and a conversation, and
:class:`AgentBuilder` for assembling one fluently::

    agent = (
        Agent.builder()
        .name("calculatorAgent")
        .system_prompt("You are an agent that runs math operations.")
        .tools([AdditionTool(), MultiplicationTool()])
        .model(OllamaModel(model="gpt-oss:20b"))
        .build()
    )
    answer = await agent.invoke("What is 9 + 10 times 11?")

Each :meth:`Agent.invoke` call appends the query to the agent's
conversation and delegates to :func:`toolloop.agent_loop.run_agent_loop`
until the model stops requesting tools.  Calling ``invoke`` again
continues the same conversation.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .agent_loop import AgentLoopConfig, run_agent_loop
from .agent_types import AgentEvent, AgentState, AgentStatus, ResponseCallback
from .conversation import CompactionStrategy, Conversation, IdentityCompactionStrategy
from .env_utils import LOG_LEVEL_ENV, get_env_str
from .errors import AgentBusyError, DuplicateToolError
from .event_logger import default_response_callback, make_event_logger, resolve_log_level
from .message import Message
from .model import Model
from .tool import Tool


class Agent:
    """Stateful conversation manager.

    Parameters
    ----------
    opts : dict
        Configuration dictionary.  Recognised keys:

        ``model`` : Model
            Required.  The model adapter asked for every turn.
        ``name`` : str
            Name of the agent.  Defaults to ``"agent"``.
        ``system_prompt`` : str
            Prepended as a system message when the conversation is
            created.
        ``tools`` : sequence of Tool
            Tools the model may call.  The list is frozen at
            construction; names must be non-empty and unique.
        ``compaction_strategy`` : CompactionStrategy
            Applied to the conversation after every append.  Defaults
            to :class:`IdentityCompactionStrategy`.
        ``response_callback`` : callable
            Called with every model reply.  Defaults to
            :func:`toolloop.event_logger.default_response_callback`;
            pass ``None`` explicitly to disable.
        ``conversation`` : Conversation
            Existing conversation to continue, e.g. one restored with
            :meth:`Conversation.from_dicts`.  Used as is, except that a
            ``compaction_strategy`` given alongside it replaces the
            conversation's own strategy.
        ``log_level`` : str
            Level of the console event logger.  Falls back to the
            ``TOOLLOOP_LOG_LEVEL`` environment variable.
        ``parallel_tool_calls`` : bool
            Run the tool calls of one turn concurrently.
    """

    def __init__(self, opts: Optional[Dict[str, Any]] = None) -> None:
        opts = opts or {}
        model = opts.get("model")
        if model is None:
            raise ValueError("Agent requires a model")
        self._model: Model = model

        self._tools: Tuple[Tool, ...] = tuple(opts.get("tools") or ())
        self._validate_tools()
        self._tool_index: Optional[Dict[str, int]] = None

        self._conversation: Optional[Conversation] = opts.get("conversation")
        strategy = opts.get("compaction_strategy")
        if strategy is None:
            # An injected conversation keeps its own strategy unless one is given.
            strategy = self._conversation.strategy if self._conversation is not None else IdentityCompactionStrategy()
        elif self._conversation is not None:
            self._conversation.strategy = strategy
        self._compaction_strategy: CompactionStrategy = strategy
        self._compaction_strategy.configure(self._model)

        self._response_callback: Optional[ResponseCallback] = opts.get(
            "response_callback", default_response_callback
        )
        self._parallel_tool_calls = bool(opts.get("parallel_tool_calls", False))

        self._state = AgentState(
            name=opts.get("name") or "agent",
            system_prompt=opts.get("system_prompt"),
        )
        # Event listeners
        self._listeners: List[Callable[[AgentEvent], None]] = []
        log_level = opts.get("log_level") or get_env_str(LOG_LEVEL_ENV, "quiet")
        if resolve_log_level(log_level) > 0:
            self.subscribe(make_event_logger(log_level))

    @staticmethod
    def builder() -> "AgentBuilder":
        return AgentBuilder()

    # ---------------------------------------------------------------------
    # Properties and accessors

    @property
    def name(self) -> str:
        return self._state.name

    @property
    def system_prompt(self) -> Optional[str]:
        return self._state.system_prompt

    @property
    def state(self) -> AgentState:
        """Return the current agent state.

        The returned object should be considered read only.
        """
        return self._state

    @property
    def model(self) -> Model:
        return self._model

    @property
    def tools(self) -> Tuple[Tool, ...]:
        return self._tools

    @property
    def conversation(self) -> Optional[Conversation]:
        """The conversation, or ``None`` before the first ``invoke``."""
        return self._conversation

    @property
    def compaction_strategy(self) -> CompactionStrategy:
        return self._compaction_strategy

    def find_tool(self, name: str) -> Optional[Tool]:
        """Return the registered tool called ``name``, if any."""
        if self._tool_index is None:
            self._tool_index = {tool.get_name(): i for i, tool in enumerate(self._tools)}
        index = self._tool_index.get(name)
        return None if index is None else self._tools[index]

    # ---------------------------------------------------------------------
    # Event subscription

    def subscribe(self, fn: Callable[[AgentEvent], None]) -> Callable[[], None]:
        """Register a listener callback for agent events.

        The return value is a function that, when called, removes the
        listener.
        """
        self._listeners.append(fn)

        def _unsubscribe() -> None:
            if fn in self._listeners:
                self._listeners.remove(fn)

        return _unsubscribe

    # ---------------------------------------------------------------------
    # High level API

    async def invoke(self, query: str) -> Message:
        """Send ``query`` to the agent and run until the model is done.

        Returns the terminal model message.  Tool failures are reported
        to the model and never raised here; model adapter failures are
        raised, and whatever was appended before the failure stays in
        the conversation.
        """
        if self._state.status is not AgentStatus.IDLE:
            raise AgentBusyError(
                f"Agent {self.name} is already processing a query. Wait for it to finish."
            )
        self._state.status = AgentStatus.AWAITING_MODEL
        self._state.error = None
        try:
            conversation = self._ensure_conversation()
            self._emit({"type": "agent_start", "query": query})
            user_message = Message.builder().role("user").content(query).build()
            conversation.append(user_message)
            self._emit({"type": "message_end", "message": user_message})

            final = await run_agent_loop(conversation, self._loop_config())
        except Exception as exc:
            self._state.error = str(exc)
            self._emit({"type": "agent_end", "error": str(exc)})
            raise
        else:
            self._emit({"type": "agent_end", "message": final})
            return final
        finally:
            self._state.status = AgentStatus.IDLE
            self._state.pending_tool_calls = set()

    def reset(self) -> None:
        """Drop the conversation; the next ``invoke`` starts a new one."""
        if self._state.status is not AgentStatus.IDLE:
            raise AgentBusyError(f"Agent {self.name} cannot be reset while processing a query.")
        self._conversation = None
        self._state.turns = 0
        self._state.error = None

    # ---------------------------------------------------------------------
    # Internal helper methods

    def _validate_tools(self) -> None:
        seen = set()
        for tool in self._tools:
            # Fails fast with ToolNotDefinedError for incomplete tools.
            name = tool.get_name()
            tool.get_description()
            tool.get_tool_schema()
            if not name:
                raise ValueError(f"Tool {type(tool).__name__} has an empty name")
            if name in seen:
                raise DuplicateToolError(name)
            seen.add(name)

    def _ensure_conversation(self) -> Conversation:
        if self._conversation is None:
            conversation = Conversation(strategy=self._compaction_strategy)
            if self._state.system_prompt:
                system_message = Message.builder().role("system").content(self._state.system_prompt).build()
                conversation.append(system_message)
            self._conversation = conversation
        return self._conversation

    def _loop_config(self) -> AgentLoopConfig:
        return AgentLoopConfig(
            model=self._model,
            tools=self._tools,
            resolve_tool=self.find_tool,
            response_callback=self._response_callback,
            emit=self._emit,
            parallel_tool_calls=self._parallel_tool_calls,
        )

    def _emit(self, event: AgentEvent) -> None:
        """Update the agent state from ``event`` and dispatch it to listeners."""
        etype = event.get("type")
        if etype == "turn_start":
            self._state.status = AgentStatus.AWAITING_MODEL
            self._state.turns += 1
        elif etype == "tool_execution_start":
            self._state.status = AgentStatus.EXECUTING_TOOLS
            self._state.pending_tool_calls.add(str(event.get("toolCallId")))
        elif etype == "tool_execution_end":
            self._state.pending_tool_calls.discard(str(event.get("toolCallId")))
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # Listeners must not break the agent
                pass


class AgentBuilder:
    """Fluent constructor for :class:`Agent`.

    Each setter records one option; :meth:`build` passes them to
    :class:`Agent`.
    """

    def __init__(self) -> None:
        self._opts: Dict[str, Any] = {}
        self._tools: List[Tool] = []

    def name(self, name: str) -> "AgentBuilder":
        self._opts["name"] = name
        return self

    def system_prompt(self, system_prompt: Optional[str]) -> "AgentBuilder":
        self._opts["system_prompt"] = system_prompt
        return self

    def tools(self, tools: Sequence[Tool]) -> "AgentBuilder":
        self._tools = list(tools)
        return self

    def add_tool(self, tool: Tool) -> "AgentBuilder":
        self._tools.append(tool)
        return self

    def model(self, model: Model) -> "AgentBuilder":
        self._opts["model"] = model
        return self

    def compaction_strategy(self, strategy: CompactionStrategy) -> "AgentBuilder":
        self._opts["compaction_strategy"] = strategy
        return self

    def response_callback(self, callback: Optional[ResponseCallback]) -> "AgentBuilder":
        self._opts["response_callback"] = callback
        return self

    def conversation(self, conversation: Conversation) -> "AgentBuilder":
        self._opts["conversation"] = conversation
        return self

    def log_level(self, level: str) -> "AgentBuilder":
        self._opts["log_level"] = level
        return self

    def parallel_tool_calls(self, enabled: bool = True) -> "AgentBuilder":
        self._opts["parallel_tool_calls"] = enabled
        return self

    def build(self) -> Agent:
        return Agent({**self._opts, "tools": list(self._tools)})


__all__ = ["Agent", "AgentBuilder"]
