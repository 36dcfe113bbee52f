"""Durable history stores keyed by conversation id."""

from __future__ import annotations

import asyncio
import hashlib
import json
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from agentturn.core.types import Checkpoint, Message


@runtime_checkable
class HistoryStore(Protocol):
    """Durable store capability consumed around each turn."""

    async def append_message(self, conversation_id: str, message: Message) -> None: ...

    async def append_messages(self, conversation_id: str, messages: list[Message]) -> None: ...

    async def load_messages(self, conversation_id: str) -> list[Message]: ...

    async def message_count(self, conversation_id: str) -> int: ...

    async def create_checkpoint(self, conversation_id: str, checkpoint: Checkpoint) -> None: ...

    async def latest_checkpoint(self, conversation_id: str) -> Checkpoint | None: ...

    async def load_from_checkpoint(
        self, conversation_id: str
    ) -> tuple[Checkpoint | None, list[Message]]: ...


def _check_monotonic(latest: Checkpoint | None, checkpoint: Checkpoint) -> None:
    if latest is not None and checkpoint.up_to_index <= latest.up_to_index:
        raise ValueError(
            f"checkpoint up_to_index {checkpoint.up_to_index} must exceed "
            f"the latest checkpoint ({latest.up_to_index})"
        )


class InMemoryHistoryStore:
    """Process-local store, mainly for tests and ephemeral sessions."""

    def __init__(self) -> None:
        self._messages: dict[str, list[Message]] = {}
        self._checkpoints: dict[str, list[Checkpoint]] = {}

    async def append_message(self, conversation_id: str, message: Message) -> None:
        self._messages.setdefault(conversation_id, []).append(message)

    async def append_messages(self, conversation_id: str, messages: list[Message]) -> None:
        self._messages.setdefault(conversation_id, []).extend(messages)

    async def load_messages(self, conversation_id: str) -> list[Message]:
        return list(self._messages.get(conversation_id, []))

    async def message_count(self, conversation_id: str) -> int:
        return len(self._messages.get(conversation_id, []))

    async def create_checkpoint(self, conversation_id: str, checkpoint: Checkpoint) -> None:
        _check_monotonic(await self.latest_checkpoint(conversation_id), checkpoint)
        self._checkpoints.setdefault(conversation_id, []).append(checkpoint)

    async def latest_checkpoint(self, conversation_id: str) -> Checkpoint | None:
        checkpoints = self._checkpoints.get(conversation_id)
        return checkpoints[-1] if checkpoints else None

    async def load_from_checkpoint(
        self, conversation_id: str
    ) -> tuple[Checkpoint | None, list[Message]]:
        checkpoint = await self.latest_checkpoint(conversation_id)
        messages = await self.load_messages(conversation_id)
        start = checkpoint.up_to_index if checkpoint else 0
        return checkpoint, messages[start:]


class JsonlHistoryStore:
    """Append-only JSONL files: ``<id>.jsonl`` for messages, ``<id>.checkpoints.jsonl``."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self._lock = asyncio.Lock()

    def _messages_path(self, conversation_id: str) -> Path:
        return self.root / f"{_safe_name(conversation_id)}.jsonl"

    def _checkpoints_path(self, conversation_id: str) -> Path:
        return self.root / f"{_safe_name(conversation_id)}.checkpoints.jsonl"

    async def append_message(self, conversation_id: str, message: Message) -> None:
        await self.append_messages(conversation_id, [message])

    async def append_messages(self, conversation_id: str, messages: list[Message]) -> None:
        if not messages:
            return
        lines = [json.dumps(m.to_dict(), ensure_ascii=False) for m in messages]
        async with self._lock:
            await asyncio.to_thread(self._append_lines_sync, self._messages_path(conversation_id), lines)

    async def load_messages(self, conversation_id: str) -> list[Message]:
        rows = await asyncio.to_thread(self._read_rows_sync, self._messages_path(conversation_id))
        return [Message.from_dict(row) for row in rows]

    async def message_count(self, conversation_id: str) -> int:
        return len(await self.load_messages(conversation_id))

    async def create_checkpoint(self, conversation_id: str, checkpoint: Checkpoint) -> None:
        line = json.dumps(checkpoint.to_dict(), ensure_ascii=False, default=str)
        async with self._lock:
            _check_monotonic(await self.latest_checkpoint(conversation_id), checkpoint)
            await asyncio.to_thread(
                self._append_lines_sync, self._checkpoints_path(conversation_id), [line]
            )

    async def latest_checkpoint(self, conversation_id: str) -> Checkpoint | None:
        rows = await asyncio.to_thread(self._read_rows_sync, self._checkpoints_path(conversation_id))
        return Checkpoint.from_dict(rows[-1]) if rows else None

    async def load_from_checkpoint(
        self, conversation_id: str
    ) -> tuple[Checkpoint | None, list[Message]]:
        checkpoint = await self.latest_checkpoint(conversation_id)
        messages = await self.load_messages(conversation_id)
        start = checkpoint.up_to_index if checkpoint else 0
        return checkpoint, messages[start:]

    @staticmethod
    def _append_lines_sync(path: Path, lines: list[str]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            for line in lines:
                handle.write(line + "\n")

    @staticmethod
    def _read_rows_sync(path: Path) -> list[dict[str, Any]]:
        if not path.exists():
            return []
        rows: list[dict[str, Any]] = []
        with path.open(encoding="utf-8") as handle:
            for lineno, raw in enumerate(handle, 1):
                line = raw.strip()
                if not line:
                    continue
                try:
                    payload = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("Skipping undecodable line {} in {}", lineno, path)
                    continue
                if isinstance(payload, dict):
                    rows.append(payload)
        return rows


def _safe_name(conversation_id: str) -> str:
    safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in conversation_id)
    if safe == conversation_id:
        return safe
    # Distinct ids must not collapse onto the same file.
    digest = hashlib.sha256(conversation_id.encode("utf-8")).hexdigest()[:8]
    return f"{safe}-{digest}"
