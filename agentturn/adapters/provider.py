"""Completion adapter that drains a streaming backend into one assistant reply."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Protocol, runtime_checkable

from agentturn.core.types import (
    CompletionFragment,
    Message,
    Role,
    TextDelta,
    ToolCall,
    ToolCallDelta,
)
from agentturn.errors import CompletionError


@runtime_checkable
class CompletionCapability(Protocol):
    """Language-model backend as seen by the engine.

    ``stream`` yields text deltas and tool-call descriptors in order and
    ends when the assistant's turn of speech ends.
    """

    def stream(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]],
    ) -> AsyncIterator[CompletionFragment]: ...


@dataclass(slots=True)
class Completion:
    """One logical assistant reply built from a drained stream."""

    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


class CompletionAdapter:
    """Thin adapter that turns a fragment stream into a ``Completion``."""

    def __init__(self, backend: CompletionCapability):
        self.backend = backend

    async def complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
    ) -> Completion:
        # Nothing is published until the stream is fully drained; a cancelled
        # drain drops the partial reply.
        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        async for fragment in self.backend.stream(messages, tools or []):
            if isinstance(fragment, TextDelta):
                text_parts.append(fragment.text)
            elif isinstance(fragment, ToolCallDelta):
                tool_calls.append(
                    ToolCall(id=fragment.id, name=fragment.name, arguments=fragment.arguments)
                )
            else:
                raise CompletionError(f"Unexpected completion fragment: {fragment!r}")
        return Completion(text="".join(text_parts), tool_calls=tool_calls)


def to_wire_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """Render messages as OpenAI-style chat dicts for dict-based backends."""
    out: list[dict[str, Any]] = []
    for msg in messages:
        entry: dict[str, Any] = {"role": msg.role.value}
        if msg.contents:
            parts: list[dict[str, Any]] = []
            for item in msg.contents:
                if item.is_image:
                    url = f"data:{item.media_type};base64,{item.to_base64()}"
                    parts.append({"type": "image_url", "image_url": {"url": url}})
                elif item.text is not None:
                    parts.append({"type": "text", "text": item.text})
            entry["content"] = parts
        else:
            entry["content"] = msg.text
        if msg.tool_calls:
            entry["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": tc.arguments},
                }
                for tc in msg.tool_calls
            ]
        if msg.role is Role.TOOL:
            entry["tool_call_id"] = msg.tool_call_id
        out.append(entry)
    return out
