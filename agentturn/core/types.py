"""Shared core DTOs used across the engine, selector, validator and stores."""

from __future__ import annotations

import base64
import mimetypes
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """Conversation roles."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


_MEDIA_TYPES: dict[str, str] = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
    ".svg": "image/svg+xml",
    ".pdf": "application/pdf",
    ".txt": "text/plain",
    ".json": "application/json",
    ".xml": "application/xml",
    ".csv": "text/csv",
}


@dataclass(frozen=True, slots=True)
class ContentItem:
    """One rich-content item attached to a message (text or binary attachment)."""

    type: str
    text: str | None = None
    data: bytes | None = None
    media_type: str | None = None

    @classmethod
    def of_text(cls, text: str) -> ContentItem:
        return cls(type="text", text=text)

    @classmethod
    def of_bytes(cls, data: bytes, media_type: str) -> ContentItem:
        kind = "image" if media_type.lower().startswith("image/") else "file"
        return cls(type=kind, data=data, media_type=media_type)

    @classmethod
    def from_file(cls, path: str | Path) -> ContentItem:
        """Load an attachment from disk, guessing the media type from the extension."""
        p = Path(path)
        media_type = _MEDIA_TYPES.get(p.suffix.lower())
        if media_type is None:
            media_type = mimetypes.guess_type(p.name)[0] or "application/octet-stream"
        return cls.of_bytes(p.read_bytes(), media_type)

    @property
    def is_image(self) -> bool:
        return self.type == "image"

    def to_base64(self) -> str:
        return base64.b64encode(self.data or b"").decode("ascii")

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type}
        if self.text is not None:
            out["text"] = self.text
        if self.data is not None:
            out["data"] = self.to_base64()
        if self.media_type is not None:
            out["media_type"] = self.media_type
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContentItem:
        raw = data.get("data")
        return cls(
            type=data.get("type", "text"),
            text=data.get("text"),
            data=base64.b64decode(raw) if isinstance(raw, str) else None,
            media_type=data.get("media_type"),
        )


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A tool invocation requested by the assistant. Arguments stay opaque JSON."""

    id: str
    name: str
    arguments: str = "{}"

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments": self.arguments}


@dataclass(frozen=True, slots=True)
class Message:
    """One immutable entry of the conversation log."""

    role: Role
    text: str = ""
    contents: tuple[ContentItem, ...] = ()
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None
    timestamp: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if self.tool_calls and self.role is not Role.ASSISTANT:
            raise ValueError("only assistant messages may carry tool calls")
        if self.tool_call_id is not None and self.role is not Role.TOOL:
            raise ValueError("only tool messages may carry a tool_call_id")

    @classmethod
    def system(cls, text: str) -> Message:
        return cls(role=Role.SYSTEM, text=text)

    @classmethod
    def user(cls, text: str, attachments: list[ContentItem] | None = None) -> Message:
        contents: tuple[ContentItem, ...] = ()
        if attachments:
            contents = (ContentItem.of_text(text), *attachments)
        return cls(role=Role.USER, text=text, contents=contents)

    @classmethod
    def assistant(cls, text: str, tool_calls: list[ToolCall] | None = None) -> Message:
        return cls(role=Role.ASSISTANT, text=text, tool_calls=tuple(tool_calls or ()))

    @classmethod
    def tool(
        cls, text: str, tool_call_id: str, contents: list[ContentItem] | None = None
    ) -> Message:
        return cls(
            role=Role.TOOL, text=text, tool_call_id=tool_call_id, contents=tuple(contents or ())
        )

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    @property
    def has_images(self) -> bool:
        return any(item.is_image for item in self.contents)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable payload."""
        out: dict[str, Any] = {
            "role": self.role.value,
            "text": self.text,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.contents:
            out["contents"] = [item.to_dict() for item in self.contents]
        if self.tool_calls:
            out["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            out["tool_call_id"] = self.tool_call_id
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        ts = data.get("timestamp")
        return cls(
            role=Role(data["role"]),
            text=data.get("text") or "",
            contents=tuple(ContentItem.from_dict(c) for c in data.get("contents", [])),
            tool_calls=tuple(
                ToolCall(id=tc["id"], name=tc["name"], arguments=tc.get("arguments", "{}"))
                for tc in data.get("tool_calls", [])
            ),
            tool_call_id=data.get("tool_call_id"),
            timestamp=datetime.fromisoformat(ts) if ts else _utcnow(),
        )


@dataclass(frozen=True, slots=True)
class Checkpoint:
    """Summarized stand-in for the first ``up_to_index`` messages of a conversation."""

    up_to_index: int
    summary: str
    created_at: datetime = field(default_factory=_utcnow)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "up_to_index": self.up_to_index,
            "summary": self.summary,
            "created_at": self.created_at.isoformat(),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Checkpoint:
        created = data.get("created_at")
        return cls(
            up_to_index=int(data["up_to_index"]),
            summary=data.get("summary", ""),
            created_at=datetime.fromisoformat(created) if created else _utcnow(),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(slots=True)
class TurnResult:
    """Final result emitted by TurnEngine.execute_turn."""

    response: str = ""
    tool_rounds_executed: int = 0
    completion_signal: str | None = None
    success: bool = True
    error: str | None = None
    paused_on_tool: str | None = None

    @property
    def paused(self) -> bool:
        return self.paused_on_tool is not None


@dataclass(slots=True)
class HistoryStats:
    """Aggregate counters over the in-memory message log."""

    total_messages: int = 0
    user_messages: int = 0
    assistant_messages: int = 0
    tool_messages: int = 0
    estimated_tokens: int = 0
    truncated_messages: int = 0


@dataclass(slots=True)
class ValidationResult:
    """Outcome of a structural check over a message sequence."""

    is_valid: bool = True
    violations: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class TextDelta:
    """Streamed text fragment from the completion capability."""

    text: str


@dataclass(frozen=True, slots=True)
class ToolCallDelta:
    """Streamed, fully-formed tool-call descriptor from the completion capability."""

    id: str
    name: str
    arguments: str = "{}"


CompletionFragment = TextDelta | ToolCallDelta
