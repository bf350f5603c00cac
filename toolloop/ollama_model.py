"""Model adapter for a local or remote Ollama server.

:class:`OllamaModel` implements :class:`toolloop.model.Model` on top
of Ollama's non-streaming ``/api/chat`` endpoint.  Messages and tool
schemas are converted to Ollama's JSON shape on the way out and the
reply is parsed back into a single :class:`~toolloop.message.Message`.

Example usage::

    from toolloop.ollama_model import OllamaModel

    model = OllamaModel(model="gpt-oss:20b", options={"options": {"temperature": 0.2}})
    reply = await model.invoke(ModelRequest(messages=[...], tools=[...]))

Settings left as ``None`` fall back to the environment (see
:mod:`toolloop.env_utils`).
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx

from .env_utils import (
    DEFAULT_OLLAMA_ENDPOINT,
    DEFAULT_REQUEST_TIMEOUT_S,
    DEFAULT_TOKEN_LIMIT,
    OLLAMA_HOST_ENV,
    OLLAMA_MODEL_ENV,
    REQUEST_TIMEOUT_ENV,
    TOKEN_LIMIT_ENV,
    coerce_timeout,
    get_env_str,
    parse_float_env,
    parse_int_env,
)
from .errors import ModelInvocationError
from .message import Message, MessageComponentType, ToolCall
from .model import Model, ModelRequest
from .tool import Tool


def _json_dumps(value: Any) -> str:
    return json.dumps(value, default=str)


class OllamaModel(Model):
    """Chat with a model served by Ollama.

    Parameters
    ----------
    endpoint : str, optional
        Base URL of the server.  Defaults to ``OLLAMA_HOST`` or
        ``http://localhost:11434``.
    model : str, optional
        Name of the model to run.  Defaults to
        ``TOOLLOOP_OLLAMA_MODEL``; one of the two is required.
    options : dict, optional
        Extra top level fields merged into every request body, e.g.
        ``{"options": {"temperature": 0.2}, "think": True}``.
    token_limit : int, optional
        Context size reported to compaction strategies.
    timeout_s : float, optional
        HTTP timeout in seconds.  Zero or a negative value disables it.
    transport : httpx.AsyncBaseTransport, optional
        Custom transport, mainly for tests.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        model: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None,
        token_limit: Optional[int] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.endpoint = (endpoint or get_env_str(OLLAMA_HOST_ENV, DEFAULT_OLLAMA_ENDPOINT)).rstrip("/")
        self.model = model or get_env_str(OLLAMA_MODEL_ENV)
        if not self.model:
            raise ValueError(f"OllamaModel requires a model name (argument or {OLLAMA_MODEL_ENV})")
        self.options = dict(options or {})
        self._token_limit = token_limit if token_limit is not None else parse_int_env(TOKEN_LIMIT_ENV, DEFAULT_TOKEN_LIMIT)
        if timeout_s is None:
            timeout_s = parse_float_env(REQUEST_TIMEOUT_ENV, DEFAULT_REQUEST_TIMEOUT_S)
        self.timeout_s = coerce_timeout(timeout_s)
        self._transport = transport

    def token_limit(self) -> int:
        return self._token_limit

    async def invoke(self, request: ModelRequest) -> Message:
        body = {
            "model": self.model,
            "messages": self._format_messages(request),
            "tools": self._format_tools(request),
            "stream": False,
            **self.options,
        }
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            resp = await client.post(f"{self.endpoint}/api/chat", json=body)
        if resp.status_code < 200 or resp.status_code >= 300:
            raise ModelInvocationError(
                f"Ollama error: {resp.status_code} {resp.reason_phrase}",
                status_code=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise ModelInvocationError(
                f"Ollama returned a non JSON body: {exc}", status_code=resp.status_code
            ) from exc
        return self._parse_response(data, status_code=resp.status_code)

    ###########################################################################
    # Request formatting
    ###########################################################################

    def _format_messages(self, request: ModelRequest) -> List[Dict[str, Any]]:
        formatted: List[Dict[str, Any]] = []
        for message in request.messages:
            if message.role == "tool":
                # One Ollama message per tool result; other components are dropped.
                for result in message.tool_results:
                    formatted.append({
                        "role": "tool",
                        "name": result.tool_name,
                        "content": _json_dumps(result.result),
                    })
            else:
                formatted.append(self._format_single_message(message))
        return formatted

    def _format_single_message(self, message: Message) -> Dict[str, Any]:
        out: Dict[str, Any] = {"role": message.role}
        if message.filter(MessageComponentType.CONTENT):
            out["content"] = message.text
        tool_calls = message.tool_calls
        if tool_calls:
            out["tool_calls"] = [self._format_tool_call(call) for call in tool_calls]
        if message.filter(MessageComponentType.THINKING):
            out["thinking"] = message.thinking_text
        return out

    def _format_tool_call(self, tool_call: ToolCall) -> Dict[str, Any]:
        return {tool_call.type: {"name": tool_call.name, "arguments": tool_call.arguments}}

    def _format_tools(self, request: ModelRequest) -> List[Dict[str, Any]]:
        return [self._format_tool(tool) for tool in request.tools]

    def _format_tool(self, tool: Tool) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": tool.get_name(),
                "description": tool.get_description(),
                "parameters": tool.get_tool_schema().to_json_schema(),
            },
        }

    ###########################################################################
    # Response parsing
    ###########################################################################

    def _parse_response(self, data: Any, status_code: Optional[int] = None) -> Message:
        message = data.get("message") if isinstance(data, dict) else None
        if not isinstance(message, dict):
            raise ModelInvocationError("Ollama response has no message object", status_code=status_code)

        builder = Message.builder().role(message.get("role") or "assistant")
        # Empty strings are how Ollama reports "no thinking" / "no text".
        builder.thinking(message.get("thinking") or None)
        builder.content(message.get("content") or None)
        tool_calls = message.get("tool_calls") or []
        if not isinstance(tool_calls, list):
            raise ModelInvocationError("Ollama tool_calls is not a list", status_code=status_code)
        for raw in tool_calls:
            builder.tool_call(self._parse_tool_call(raw, status_code=status_code))
        return builder.build()

    def _parse_tool_call(self, raw: Any, status_code: Optional[int] = None) -> ToolCall:
        if not isinstance(raw, dict):
            raise ModelInvocationError(f"Malformed Ollama tool call: {raw!r}", status_code=status_code)
        call_type = "function" if "function" in raw else next(
            (key for key in raw if key != "id"), "function"
        )
        body = raw.get(call_type) or {}
        if not isinstance(body, dict):
            raise ModelInvocationError(f"Malformed Ollama tool call: {raw!r}", status_code=status_code)
        arguments = body.get("arguments")
        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments) if arguments.strip() else {}
            except json.JSONDecodeError as exc:
                raise ModelInvocationError(
                    f"Tool call {body.get('name')!r} has malformed arguments: {exc}",
                    status_code=status_code,
                ) from exc
        if not isinstance(arguments, dict):
            arguments = {}
        sequence = body.get("index")
        return ToolCall(
            name=body.get("name", ""),
            arguments=arguments,
            type=call_type,
            id=raw.get("id") or body.get("id"),
            sequence=sequence if isinstance(sequence, int) else None,
        )


__all__ = ["OllamaModel"]
