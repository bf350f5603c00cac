"""Tool contract.

Tools are capabilities the model may invoke through the agent loop.
A tool subclasses :class:`Tool` and overrides the three describing
accessors plus :meth:`Tool.execute`::

    class EchoTool(Tool):
        def get_name(self):
            return "echo"

        def get_description(self):
            return "Echo the provided value back."

        def get_tool_schema(self):
            return ToolSchema(
                parameters=[Parameter("value", "Value to echo", "string", required=True)],
                output="The value that was provided",
            )

        async def execute(self, arguments):
            return {"received": arguments.get("value")}

``execute`` may be a plain method or a coroutine.  Raising from it
is the way to report a failure; the agent loop converts the
exception into a tool result for the model to read.  For metadata
without the accessor boilerplate see :mod:`toolloop.tool_decorators`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import ToolNotDefinedError


@dataclass
class Parameter:
    """A named input of a tool.

    ``type`` is a free form JSON Schema type tag such as ``"string"``
    or ``"number"``; it is not checked against a closed set.
    """

    name: str
    description: str = ""
    type: str = "string"
    required: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "required": self.required,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Parameter":
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            type=data.get("type", "string"),
            required=bool(data.get("required", False)),
        )


@dataclass
class ToolSchema:
    """Ordered input parameters plus a description of the output."""

    parameters: List[Parameter] = field(default_factory=list)
    output: str = ""

    def to_json_schema(self) -> Dict[str, Any]:
        """Return the parameters as a JSON Schema object description."""
        return {
            "type": "object",
            "properties": {
                p.name: {"type": p.type, "description": p.description}
                for p in self.parameters
            },
            "required": [p.name for p in self.parameters if p.required],
        }


class Tool:
    """Base class for tools registered on an agent."""

    def get_name(self) -> str:
        raise ToolNotDefinedError("Tool name not defined.")

    def get_description(self) -> str:
        raise ToolNotDefinedError("Tool description not defined.")

    def get_tool_schema(self) -> ToolSchema:
        raise ToolNotDefinedError("Tool parameter schema not defined.")

    def execute(self, arguments: Dict[str, Any]) -> Any:
        """Run the tool with the arguments supplied by the model.

        The default implementation does nothing and returns ``None``.
        """
        return None

    def __repr__(self) -> str:
        try:
            name = self.get_name()
        except ToolNotDefinedError:
            name = "<undefined>"
        return f"{type(self).__name__}(name={name!r})"


class ToolSpec(Tool):
    """A schema only tool built from plain values.

    Used where the description of a tool travels without its
    implementation, e.g. across the proxy wire.  A ``ToolSpec`` is
    enough for a model to plan a call but cannot execute one.
    """

    def __init__(self, name: str, description: str = "", schema: Optional[ToolSchema] = None) -> None:
        self.name = name
        self.description = description
        self.schema = schema or ToolSchema()

    @classmethod
    def from_tool(cls, tool: Tool) -> "ToolSpec":
        return cls(tool.get_name(), tool.get_description(), tool.get_tool_schema())

    def get_name(self) -> str:
        return self.name

    def get_description(self) -> str:
        return self.description

    def get_tool_schema(self) -> ToolSchema:
        return self.schema

    def execute(self, arguments: Dict[str, Any]) -> Any:
        raise ToolNotDefinedError(f"Tool {self.name} has no implementation in this process.")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": [p.to_dict() for p in self.schema.parameters],
            "output": self.schema.output,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolSpec":
        schema = ToolSchema(
            parameters=[Parameter.from_dict(p) for p in data.get("parameters", [])],
            output=data.get("output", ""),
        )
        return cls(data["name"], data.get("description", ""), schema)


__all__ = ["Parameter", "ToolSchema", "Tool", "ToolSpec"]
