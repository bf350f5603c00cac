"""Conversation history and compaction strategies.

A :class:`Conversation` is the ordered message log of one agent
session.  Every append is followed immediately by a call into the
conversation's :class:`CompactionStrategy`, which receives the full
history and returns the history to keep.  The shipped
:class:`IdentityCompactionStrategy` keeps everything.

Strategies that prune history (for instance to respect a model's
token budget) subclass :class:`CompactionStrategy` and override both
:meth:`~CompactionStrategy.compact` and
:meth:`~CompactionStrategy.configure`::

    class KeepLast(CompactionStrategy):
        def __init__(self, n):
            self.n = n

        def configure(self, model):
            pass

        def compact(self, messages):
            return messages[-self.n:]
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, List, Optional, Sequence

from .errors import CompactionStrategyNotImplementedError
from .message import Message

if TYPE_CHECKING:  # pragma: no cover
    from .model import Model


class CompactionStrategy:
    """Policy applied to the history after every append.

    ``compact`` must not mutate its input; it returns the list of
    messages to retain, keeping the relative order of survivors.
    ``configure`` is called once when the strategy is attached to an
    agent so it can read the model's token limit before the first
    compaction decision.
    """

    def compact(self, messages: List[Message]) -> List[Message]:
        raise CompactionStrategyNotImplementedError(
            f"{type(self).__name__} does not implement compact()."
        )

    def configure(self, model: "Model") -> None:
        raise CompactionStrategyNotImplementedError(
            f"{type(self).__name__} does not implement configure()."
        )


class IdentityCompactionStrategy(CompactionStrategy):
    """Default strategy: keep the whole history."""

    def compact(self, messages: List[Message]) -> List[Message]:
        return list(messages)

    def configure(self, model: "Model") -> None:
        return None


class Conversation:
    """Append only, compaction subject message log."""

    def __init__(
        self,
        strategy: Optional[CompactionStrategy] = None,
        messages: Optional[Iterable[Message]] = None,
    ) -> None:
        self._strategy: CompactionStrategy = strategy or IdentityCompactionStrategy()
        self._messages: List[Message] = list(messages or [])

    @property
    def strategy(self) -> CompactionStrategy:
        return self._strategy

    @strategy.setter
    def strategy(self, strategy: CompactionStrategy) -> None:
        self._strategy = strategy

    @property
    def messages(self) -> List[Message]:
        """A copy of the current history."""
        return list(self._messages)

    def append(self, message: Message) -> None:
        """Append ``message`` and apply the compaction strategy."""
        self._messages.append(message)
        compacted = self._strategy.compact(list(self._messages))
        if not isinstance(compacted, (list, tuple)):
            raise TypeError(
                f"{type(self._strategy).__name__}.compact() must return a list of messages, "
                f"got {type(compacted).__name__}"
            )
        self._messages = list(compacted)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [message.to_dict() for message in self._messages]

    @classmethod
    def from_dicts(
        cls,
        data: Sequence[Dict[str, Any]],
        strategy: Optional[CompactionStrategy] = None,
    ) -> "Conversation":
        """Restore a saved conversation.  Compaction is not re-run."""
        return cls(strategy=strategy, messages=[Message.from_dict(item) for item in data])


__all__ = ["CompactionStrategy", "IdentityCompactionStrategy", "Conversation"]
