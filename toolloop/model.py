"""Model adapter contract.

A :class:`Model` is the seam between the agent loop and a concrete
language model backend.  The loop hands it a :class:`ModelRequest`
holding the full history and tool list, and expects exactly one
:class:`~toolloop.message.Message` back.  Adapters own everything
provider specific: serialising messages and tool schemas into the
provider's wire shape, the network call, and parsing the reply,
including generating correlation ids for tool calls that arrive
without one.

Failures (transport errors, non-success statuses, malformed replies)
are raised from :meth:`Model.invoke`; the agent loop does not retry.
See :class:`toolloop.ollama_model.OllamaModel` for an example.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from .errors import ModelNotImplementedError
from .message import Message
from .tool import Tool


@dataclass
class ModelRequest:
    """Everything a model needs for one turn."""

    messages: List[Message]
    tools: List[Tool] = field(default_factory=list)


class Model:
    """Base class for model adapters."""

    async def invoke(self, request: ModelRequest) -> Message:
        raise ModelNotImplementedError(
            "The invoke function for this model was not correctly implemented."
        )

    def token_limit(self) -> int:
        raise ModelNotImplementedError(
            "The token_limit function for this model was not correctly implemented."
        )


__all__ = ["Model", "ModelRequest"]
