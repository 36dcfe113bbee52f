"""In-memory, append-only message log for one conversation."""

from __future__ import annotations

from typing import Iterable, Iterator

from agentturn.core.types import HistoryStats, Message, Role

# Rough estimate: 1 token per 4 chars, plus per-message metadata overhead.
_CHARS_PER_TOKEN = 4
_MESSAGE_OVERHEAD_CHARS = 50


class MessageStore:
    """Ordered conversation log.

    Messages are only ever appended. The single removal path is
    ``truncate_before``, used by checkpointing; it advances ``offset`` so
    absolute message indexes stay stable across truncations.
    """

    def __init__(self, messages: Iterable[Message] | None = None, *, offset: int = 0):
        if offset < 0:
            raise ValueError("offset must be >= 0")
        self._messages: list[Message] = list(messages or [])
        self._offset = offset
        self._truncated = 0

    @classmethod
    def load(cls, messages: Iterable[Message], offset: int = 0) -> MessageStore:
        """Build a store resumed from persisted messages starting at ``offset``."""
        return cls(messages, offset=offset)

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def extend(self, messages: Iterable[Message]) -> None:
        self._messages.extend(messages)

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def last(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    @property
    def offset(self) -> int:
        """Absolute index of the first in-memory message."""
        return self._offset

    @property
    def absolute_count(self) -> int:
        return self._offset + len(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def slice(self, start: int, stop: int) -> list[Message]:
        """Messages with absolute index in ``[start, stop)``."""
        lo = max(0, start - self._offset)
        hi = max(0, stop - self._offset)
        return self._messages[lo:hi]

    def truncate_before(self, absolute_index: int) -> int:
        """Drop every in-memory message below ``absolute_index``; return how many."""
        if absolute_index < self._offset or absolute_index > self.absolute_count:
            raise ValueError(
                f"truncation index {absolute_index} outside "
                f"[{self._offset}, {self.absolute_count}]"
            )
        dropped = absolute_index - self._offset
        del self._messages[:dropped]
        self._offset = absolute_index
        self._truncated += dropped
        return dropped

    def replace(self, messages: Iterable[Message]) -> None:
        """Swap the in-memory log, keeping the current offset."""
        self._messages = list(messages)

    def stats(self) -> HistoryStats:
        counts = {role: 0 for role in Role}
        chars = 0
        for msg in self._messages:
            counts[msg.role] += 1
            chars += len(msg.text or "") + _MESSAGE_OVERHEAD_CHARS
        return HistoryStats(
            total_messages=len(self._messages),
            user_messages=counts[Role.USER],
            assistant_messages=counts[Role.ASSISTANT],
            tool_messages=counts[Role.TOOL],
            estimated_tokens=chars // _CHARS_PER_TOKEN,
            truncated_messages=self._truncated,
        )
