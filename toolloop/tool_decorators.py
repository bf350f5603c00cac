"""Decorators that declare tool metadata.

Two styles are supported.  Class decorators install the describing
accessors on a :class:`~toolloop.tool.Tool` subclass so only
``execute`` has to be written by hand::

    @tool_name("AdditionTool")
    @tool_description("Adds two numbers together.")
    @tool_parameter("a", "The first number to add", "number", required=True)
    @tool_parameter("b", "The second number to add", "number", required=True)
    @tool_output("The sum of a and b")
    class AdditionTool(Tool):
        def execute(self, arguments):
            return float(arguments["a"]) + float(arguments["b"])

Stacked ``tool_parameter`` decorators keep the order they are written
in.  For plain functions use :func:`define_tool`, which returns a
:class:`FunctionTool`::

    @define_tool(description="Multiply two numbers.", parameters=[
        Parameter("a", "First factor", "number", required=True),
        Parameter("b", "Second factor", "number", required=True),
    ])
    async def multiply(a, b):
        return a * b
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Dict, List, Optional, Sequence, Type, TypeVar

from .tool import Parameter, Tool, ToolSchema

ToolClass = TypeVar("ToolClass", bound=Type[Tool])

_PARAMETERS_ATTR = "_toolloop_parameters"
_OUTPUT_ATTR = "_toolloop_output"


def _install_schema(cls: Type[Tool]) -> None:
    def get_tool_schema(self: Tool) -> ToolSchema:
        return ToolSchema(
            parameters=list(getattr(type(self), _PARAMETERS_ATTR, [])),
            output=getattr(type(self), _OUTPUT_ATTR, ""),
        )

    cls.get_tool_schema = get_tool_schema  # type: ignore[assignment]


def tool_name(name: str) -> Callable[[ToolClass], ToolClass]:
    """Set the name a tool class reports to the model."""

    def decorator(cls: ToolClass) -> ToolClass:
        cls.get_name = lambda self: name  # type: ignore[assignment]
        return cls

    return decorator


def tool_description(description: str) -> Callable[[ToolClass], ToolClass]:
    """Set the description a tool class reports to the model."""

    def decorator(cls: ToolClass) -> ToolClass:
        cls.get_description = lambda self: description  # type: ignore[assignment]
        return cls

    return decorator


def tool_parameter(
    name: str,
    description: str = "",
    type: str = "string",
    required: bool = False,
) -> Callable[[ToolClass], ToolClass]:
    """Add an input parameter to the schema of a tool class."""

    def decorator(cls: ToolClass) -> ToolClass:
        # Decorators apply bottom-up; prepend to keep source order.
        # Only the class's own list is read so subclasses never share it.
        own = list(cls.__dict__.get(_PARAMETERS_ATTR, []))
        setattr(cls, _PARAMETERS_ATTR, [Parameter(name, description, type, required)] + own)
        _install_schema(cls)
        return cls

    return decorator


def tool_output(output: str) -> Callable[[ToolClass], ToolClass]:
    """Describe what a tool class returns."""

    def decorator(cls: ToolClass) -> ToolClass:
        setattr(cls, _OUTPUT_ATTR, output)
        if _PARAMETERS_ATTR not in cls.__dict__:
            setattr(cls, _PARAMETERS_ATTR, [])
        _install_schema(cls)
        return cls

    return decorator


class FunctionTool(Tool):
    """A tool backed by a plain (sync or async) function.

    The model's arguments are passed to the function as keyword
    arguments.
    """

    def __init__(
        self,
        handler: Callable[..., Any],
        name: str,
        description: str = "",
        parameters: Optional[Sequence[Parameter]] = None,
        output: str = "",
    ) -> None:
        self.handler = handler
        self.name = name
        self.description = description
        self.schema = ToolSchema(parameters=list(parameters or []), output=output)

    def get_name(self) -> str:
        return self.name

    def get_description(self) -> str:
        return self.description

    def get_tool_schema(self) -> ToolSchema:
        return self.schema

    def execute(self, arguments: Dict[str, Any]) -> Any:
        return self.handler(**(arguments or {}))

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self.handler(*args, **kwargs)


def define_tool(
    name: Optional[str] = None,
    description: str = "",
    parameters: Optional[List[Parameter]] = None,
    output: str = "",
) -> Callable[[Callable[..., Any]], FunctionTool]:
    """Decorator that turns a function into a :class:`FunctionTool`.

    The function name is used as the tool name unless *name* is given,
    and its docstring as the description unless *description* is.
    """

    def decorator(func: Callable[..., Any]) -> FunctionTool:
        return FunctionTool(
            handler=func,
            name=name or func.__name__,
            description=description or inspect.getdoc(func) or f"Tool: {name or func.__name__}",
            parameters=parameters,
            output=output,
        )

    return decorator


__all__ = [
    "tool_name",
    "tool_description",
    "tool_parameter",
    "tool_output",
    "FunctionTool",
    "define_tool",
]
