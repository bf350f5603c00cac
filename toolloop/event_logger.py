"""User visible logging for agent runs.

:func:`make_event_logger` builds a subscriber for
:meth:`toolloop.agent.Agent.subscribe` that renders lifecycle events
as short console lines.  :func:`default_response_callback` is the
response callback an agent uses when none is configured.
"""

from typing import Any, Callable, Dict, Union

from .message import Message

LOG_LEVELS = {
    "quiet": 0,
    "simple": 1,
    "full": 2,
    "debug": 3,
}

_LEVEL_ALIASES = {
    "messages": "simple",
    "stream": "full",
}


def resolve_log_level(value: Union[str, int, None]) -> int:
    if value is None or value == "":
        return LOG_LEVELS["quiet"]
    if isinstance(value, int):
        return value
    key = str(value).strip().lower()
    if key.isdigit():
        return int(key)
    key = _LEVEL_ALIASES.get(key, key)
    return LOG_LEVELS.get(key, LOG_LEVELS["quiet"])


def format_message_line(message: Any) -> str:
    role = getattr(message, "role", "unknown")
    text = getattr(message, "text", "")
    if not text and isinstance(message, Message):
        results = message.tool_results
        if results:
            text = " ".join(f"{r.tool_name}={r.result!r}" for r in results)
    return f"[event] {role}: {str(text).strip()}"


def default_response_callback(message: Message, sink: Callable[[str], None] = print) -> None:
    """Print the thinking, content and tool calls of a model reply."""
    thinking = message.thinking_text.strip()
    if thinking:
        sink(f"[thinking] {thinking}")
    text = message.text.strip()
    if text:
        sink(f"[content] {text}")
    for call in message.tool_calls:
        sink(f"[tool:call] {call.name}")


def make_event_logger(level: Union[str, int] = "quiet", sink: Callable[[str], None] = print):
    """Create a user-visible event logger function for agent events.
    Levels:
    - quiet: no user-visible logging
    - simple: log tool executions
    - full: log simple output plus every finished message
    - debug: log all events
    """
    level_value = resolve_log_level(level)

    def _emit(text: str) -> None:
        try:
            sink(text)
        except Exception:
            pass

    def log(event: Dict[str, Any]) -> None:
        etype = event.get("type")
        if level_value <= LOG_LEVELS["quiet"]:
            return

        if level_value >= LOG_LEVELS["debug"]:
            _emit(f"[debug] {event}")
            return
        if etype == "tool_execution_start":
            tool_name = str(event.get("toolName", "")).strip() or "unknown"
            _emit(f"[tool:start] {tool_name} id={event.get('toolCallId')}")
            return
        if etype == "tool_execution_end":
            tool_name = str(event.get("toolName", "")).strip() or "unknown"
            is_error = bool(event.get("isError"))
            _emit(f"[tool:end] {tool_name} error={is_error}")
            return
        if etype == "message_end" and level_value >= LOG_LEVELS["full"]:
            message = event.get("message")
            if message is not None:
                _emit(format_message_line(message))
            return
        if etype == "agent_end" and event.get("error") and level_value >= LOG_LEVELS["full"]:
            _emit(f"[error] {event.get('error')}")

    return log


__all__ = [
    "LOG_LEVELS",
    "resolve_log_level",
    "format_message_line",
    "default_response_callback",
    "make_event_logger",
]
