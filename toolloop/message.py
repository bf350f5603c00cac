"""Message model for toolloop.

A :class:`Message` is one conversational turn: a role tag plus an
ordered tuple of message components.  Four component kinds exist:

* :class:`Content` – prose written by the user or the model.
* :class:`Thinking` – a reasoning trace returned by the model.
* :class:`ToolCall` – a request from the model to invoke a tool.
* :class:`ToolResult` – the outcome of executing a tool call.

Every component carries a ``kind`` discriminator fixed by its class,
so filtering a message is a simple comparison rather than a chain of
``isinstance`` checks.  Messages are frozen once built; use
:meth:`Message.builder` to assemble one incrementally.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Tuple, Union

from .errors import MessageComponentTypeNotDefinedError


class MessageComponentType(str, Enum):
    """Kinds of message components understood by every model adapter."""

    CONTENT = "content"
    THINKING = "thinking"
    TOOL_CALL = "toolcall"
    TOOL_RESULT = "toolresult"


###############################################################################
# Message components
###############################################################################


@dataclass(frozen=True)
class MessageComponent:
    """Base class of all message components.

    Concrete components must set the ``kind`` class attribute.  A
    component class that forgets to do so cannot be instantiated.
    """

    kind: ClassVar[Optional[MessageComponentType]] = None

    def __post_init__(self) -> None:
        if self.kind is None:
            raise MessageComponentTypeNotDefinedError(
                f"{type(self).__name__} does not define a message component kind."
            )

    def to_dict(self) -> Dict[str, Any]:
        raise MessageComponentTypeNotDefinedError(
            f"{type(self).__name__} does not define how it is serialised."
        )


@dataclass(frozen=True)
class Content(MessageComponent):
    """Plain text written by the user or returned by the model."""

    kind: ClassVar[MessageComponentType] = MessageComponentType.CONTENT

    text: str = ""

    @classmethod
    def of(cls, text: str) -> "Content":
        return cls(text=text)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "text": self.text}


@dataclass(frozen=True)
class Thinking(MessageComponent):
    """Reasoning returned by the model.

    Thinking is advisory: adapters may forward it back to providers
    that accept it, but it is never treated as an instruction.
    """

    kind: ClassVar[MessageComponentType] = MessageComponentType.THINKING

    thinking: str = ""

    @classmethod
    def of(cls, thinking: str) -> "Thinking":
        return cls(thinking=thinking)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "thinking": self.thinking}


def _generate_call_id() -> str:
    # Short and unique within a conversation; not meant to be secret.
    return uuid.uuid4().hex[:8]


@dataclass(frozen=True)
class ToolCall(MessageComponent):
    """A tool invocation requested by the model.

    ``sequence`` orders calls emitted in a single model turn and
    defaults to ``0``.  ``id`` correlates the call with its result; it
    is taken from the provider when available and generated locally
    otherwise.  Both are filled in during construction so a built
    call never carries ``None`` for either.
    """

    kind: ClassVar[MessageComponentType] = MessageComponentType.TOOL_CALL

    name: str = ""
    arguments: Dict[str, Any] = field(default_factory=dict)
    type: str = "function"
    id: Optional[str] = None
    sequence: Optional[int] = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.id is None:
            object.__setattr__(self, "id", _generate_call_id())
        if self.sequence is None:
            object.__setattr__(self, "sequence", 0)
        if self.arguments is None:
            object.__setattr__(self, "arguments", {})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "id": self.id,
            "name": self.name,
            "arguments": self.arguments,
            "type": self.type,
            "sequence": self.sequence,
        }


@dataclass(frozen=True)
class ToolResult(MessageComponent):
    """The outcome of a tool call, correlated to it by ``id``.

    ``tool_name`` is copied from the originating call.  When the tool
    failed ``is_error`` is set and ``result`` holds a serialised
    description of the failure.
    """

    kind: ClassVar[MessageComponentType] = MessageComponentType.TOOL_RESULT

    id: str = ""
    tool_name: str = ""
    result: Any = None
    is_error: bool = False

    @classmethod
    def of(cls, tool_call: ToolCall, result: Any, is_error: bool = False) -> "ToolResult":
        return cls(id=tool_call.id or "", tool_name=tool_call.name, result=result, is_error=is_error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "id": self.id,
            "toolName": self.tool_name,
            "result": self.result,
            "isError": self.is_error,
        }


def component_from_dict(data: Dict[str, Any]) -> MessageComponent:
    """Rebuild a message component from the output of ``to_dict``."""
    kind = MessageComponentType(data.get("kind"))
    if kind is MessageComponentType.CONTENT:
        return Content(text=data.get("text", ""))
    if kind is MessageComponentType.THINKING:
        return Thinking(thinking=data.get("thinking", ""))
    if kind is MessageComponentType.TOOL_CALL:
        return ToolCall(
            name=data.get("name", ""),
            arguments=data.get("arguments") or {},
            type=data.get("type") or "function",
            id=data.get("id"),
            sequence=data.get("sequence"),
        )
    return ToolResult(
        id=data.get("id", ""),
        tool_name=data.get("toolName", ""),
        result=data.get("result"),
        is_error=bool(data.get("isError", False)),
    )


###############################################################################
# Messages
###############################################################################


@dataclass(frozen=True)
class Message:
    """One turn of a conversation.

    ``role`` is conventionally ``system``, ``user``, ``assistant`` or
    ``tool`` but it is opaque to the agent loop; only model adapters
    interpret it.  The order of ``content`` is significant and is
    preserved by every operation.
    """

    role: str
    content: Tuple[MessageComponent, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "content", tuple(self.content))

    @staticmethod
    def builder() -> "MessageBuilder":
        return MessageBuilder()

    def filter(self, kind: Union[MessageComponentType, str]) -> List[MessageComponent]:
        """Return the components of ``kind`` in their original order."""
        wanted = MessageComponentType(kind)
        return [component for component in self.content if component.kind is wanted]

    @property
    def tool_calls(self) -> List[ToolCall]:
        return self.filter(MessageComponentType.TOOL_CALL)  # type: ignore[return-value]

    @property
    def tool_results(self) -> List[ToolResult]:
        return self.filter(MessageComponentType.TOOL_RESULT)  # type: ignore[return-value]

    @property
    def is_terminal(self) -> bool:
        """True when the message requests no tool calls."""
        return not self.tool_calls

    @property
    def text(self) -> str:
        return "".join(c.text for c in self.filter(MessageComponentType.CONTENT))  # type: ignore[attr-defined]

    @property
    def thinking_text(self) -> str:
        return "".join(c.thinking for c in self.filter(MessageComponentType.THINKING))  # type: ignore[attr-defined]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role,
            "content": [component.to_dict() for component in self.content],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(
            role=data["role"],
            content=tuple(component_from_dict(item) for item in data.get("content", [])),
        )


class MessageBuilder:
    """Incremental constructor for :class:`Message`.

    Every append style method ignores ``None`` so call sites can wire
    optional values straight through without branching::

        Message.builder().role("assistant").thinking(maybe_thought).content(text).build()
    """

    def __init__(self) -> None:
        self._role: Optional[str] = None
        self._content: List[MessageComponent] = []

    def role(self, role: str) -> "MessageBuilder":
        self._role = role
        return self

    def content(self, text: Optional[str]) -> "MessageBuilder":
        if text is not None:
            self._content.append(Content.of(text))
        return self

    def thinking(self, thinking: Optional[str]) -> "MessageBuilder":
        if thinking is not None:
            self._content.append(Thinking.of(thinking))
        return self

    def tool_call(self, tool_call: Optional[ToolCall]) -> "MessageBuilder":
        if tool_call is not None:
            self._content.append(tool_call)
        return self

    def tool_calls(self, tool_calls: Optional[Iterable[ToolCall]]) -> "MessageBuilder":
        if tool_calls is not None:
            for tool_call in tool_calls:
                self.tool_call(tool_call)
        return self

    def tool_result(self, tool_result: Optional[ToolResult]) -> "MessageBuilder":
        if tool_result is not None:
            self._content.append(tool_result)
        return self

    def build(self) -> Message:
        if self._role is None:
            raise ValueError("Message role is required")
        return Message(role=self._role, content=tuple(self._content))


__all__ = [
    "MessageComponentType",
    "MessageComponent",
    "Content",
    "Thinking",
    "ToolCall",
    "ToolResult",
    "Message",
    "MessageBuilder",
    "component_from_dict",
]
