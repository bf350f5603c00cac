"""Core agent loop.

This module contains the function that drives one agent run: ask the
model for the next message, execute the tool calls it requests,
append the results and repeat until the model answers without
requesting any tools.  Termination is entirely model driven; there
is no turn limit.

The loop operates on a :class:`~toolloop.conversation.Conversation`
owned by the caller and commits every step to it before starting the
next one: a model reply is appended before its tool calls run, and
each tool result is appended as soon as it is available.  Tool
failures never escape the loop.  An unknown tool name or an
exception raised by a tool becomes a tool result marked as an error,
which the model reads on its next turn.  Model failures, on the other
hand, propagate to the caller unchanged.

Lifecycle events are reported through the optional ``emit`` callback
of :class:`AgentLoopConfig` as dictionaries with a ``type`` key:

* ``turn_start`` / ``turn_end`` – around each model call and the tool
  calls it requested.
* ``message_end`` – a message was appended to the conversation.
* ``tool_execution_start`` / ``tool_execution_end`` – around each tool
  call.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence

from .agent_types import AgentEvent, ResponseCallback, ToolOutcome
from .conversation import Conversation
from .errors import ModelInvocationError, ToolNotFoundError
from .message import Message, ToolCall
from .model import Model, ModelRequest
from .tool import Tool


###############################################################################
# Configuration objects
###############################################################################

@dataclass
class AgentLoopConfig:
    """Configuration for the agent loop.

    Parameters
    ----------
    model : Model
        Adapter asked for every assistant message.
    tools : sequence of Tool
        Tools advertised to the model on every request.
    resolve_tool : callable
        Maps a tool name to the registered :class:`Tool` or ``None``.
    response_callback : callable, optional
        Called with every message returned by the model before it is
        appended to the conversation.  May be a coroutine function.
    emit : callable, optional
        Receives lifecycle events.
    parallel_tool_calls : bool
        Execute the tool calls of one model turn concurrently.  The
        result messages are still appended in sequence order.
    """

    model: Model
    tools: Sequence[Tool]
    resolve_tool: Callable[[str], Optional[Tool]]
    response_callback: Optional[ResponseCallback] = None
    emit: Optional[Callable[[AgentEvent], None]] = None
    parallel_tool_calls: bool = False


###############################################################################
# Helper functions
###############################################################################

async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _emit(config: AgentLoopConfig, event: AgentEvent) -> None:
    if config.emit is not None:
        config.emit(event)


def _ordered_tool_calls(message: Message) -> List[ToolCall]:
    """Tool calls of ``message`` sorted by sequence number.

    ``sorted`` is stable, so calls sharing a sequence number keep the
    order in which the model emitted them.
    """
    return sorted(message.tool_calls, key=lambda call: call.sequence or 0)


def _append(conversation: Conversation, message: Message, config: AgentLoopConfig) -> None:
    conversation.append(message)
    _emit(config, {"type": "message_end", "message": message})


###############################################################################
# Main loop
###############################################################################

async def run_agent_loop(conversation: Conversation, config: AgentLoopConfig) -> Message:
    """Run the loop until the model produces a terminal message.

    The conversation must already contain the prompt.  Returns the
    terminal assistant message, which has also been appended.
    """
    while True:
        _emit(config, {"type": "turn_start"})
        message = await _request_assistant_message(conversation, config)

        tool_calls = _ordered_tool_calls(message)
        if not tool_calls:
            _emit(config, {"type": "turn_end", "message": message, "toolResults": []})
            return message

        tool_results = await _execute_tool_calls(conversation, tool_calls, config)
        _emit(config, {"type": "turn_end", "message": message, "toolResults": tool_results})


async def _request_assistant_message(conversation: Conversation, config: AgentLoopConfig) -> Message:
    """Ask the model for the next message and append it."""
    request = ModelRequest(messages=conversation.messages, tools=list(config.tools))
    message = await config.model.invoke(request)
    if not isinstance(message, Message):
        raise ModelInvocationError(
            f"{type(config.model).__name__}.invoke() returned {type(message).__name__}, expected Message"
        )
    if config.response_callback is not None:
        await _maybe_await(config.response_callback(message))
    _append(conversation, message, config)
    return message


async def _execute_tool_calls(
    conversation: Conversation,
    tool_calls: List[ToolCall],
    config: AgentLoopConfig,
) -> List[Message]:
    """Execute ``tool_calls`` in order and append one tool message per call.

    Returns the appended tool messages.
    """
    results: List[Message] = []

    if config.parallel_tool_calls:
        outcomes = await asyncio.gather(*(_execute_tool_call(call, config) for call in tool_calls))
        for outcome in outcomes:
            results.append(_commit_outcome(conversation, outcome, config))
        return results

    for tool_call in tool_calls:
        outcome = await _execute_tool_call(tool_call, config)
        results.append(_commit_outcome(conversation, outcome, config))
    return results


async def _execute_tool_call(tool_call: ToolCall, config: AgentLoopConfig) -> ToolOutcome:
    """Run one tool call and capture its value or failure."""
    _emit(config, {
        "type": "tool_execution_start",
        "toolCallId": tool_call.id,
        "toolName": tool_call.name,
        "args": tool_call.arguments,
    })
    tool = config.resolve_tool(tool_call.name)
    if tool is None:
        return ToolOutcome(tool_call=tool_call, error=ToolNotFoundError(tool_call.name))
    try:
        value = await _maybe_await(tool.execute(dict(tool_call.arguments or {})))
    except Exception as exc:
        return ToolOutcome(tool_call=tool_call, error=exc)
    return ToolOutcome(tool_call=tool_call, value=value)


def _commit_outcome(conversation: Conversation, outcome: ToolOutcome, config: AgentLoopConfig) -> Message:
    tool_result = outcome.to_tool_result()
    _emit(config, {
        "type": "tool_execution_end",
        "toolCallId": outcome.tool_call.id,
        "toolName": outcome.tool_call.name,
        "result": tool_result.result,
        "isError": not outcome.ok,
    })
    message = Message.builder().role("tool").tool_result(tool_result).build()
    _append(conversation, message, config)
    return message


__all__ = ["AgentLoopConfig", "run_agent_loop"]
