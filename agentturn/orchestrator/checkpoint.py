"""Formula-driven checkpoint summarization of the in-memory history."""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import json_repair
from loguru import logger

from agentturn.adapters.storage import HistoryStore
from agentturn.config.schema import SummarizationConfig
from agentturn.core.history import filter_tool_results
from agentturn.core.store import MessageStore
from agentturn.core.types import Checkpoint, Message, Role

Summarizer = Callable[[str], Awaitable[str]]

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)```")


def parse_summary(raw: str) -> str:
    """Accept ``{"summary": "..."}`` (possibly fenced or slightly malformed) or plain text."""
    text = raw.strip()
    fence = _FENCE_RE.search(text)
    if fence:
        text = fence.group(1).strip()
    if not text.startswith("{"):
        return raw

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        try:
            data = json_repair.loads(text)
        except Exception:
            return raw

    if isinstance(data, dict) and isinstance(data.get("summary"), str):
        return data["summary"]
    return raw


def serialize_slice(
    messages: list[Message],
    *,
    conversation_id: str,
    from_index: int,
    to_index: int,
    original_count: int,
) -> str:
    """JSON description of a history slice handed to the summarizer."""
    payload: dict[str, Any] = {
        "conversation_id": conversation_id,
        "from_index": from_index,
        "to_index": to_index,
        "original_message_count": original_count,
        "filtered_message_count": len(messages),
        "messages": [
            {
                "role": m.role.value,
                "text": m.text,
                "has_tool_calls": m.has_tool_calls,
                "is_tool_result": m.role is Role.TOOL,
            }
            for m in messages
        ],
    }
    return json.dumps(payload, ensure_ascii=False)


class CheckpointScheduler:
    """Decides when to fold a history prefix into a summarized checkpoint.

    After each successful turn, once the in-memory store holds ``trigger_at``
    messages, everything but the last ``keep_recent`` messages that is not
    already covered by a checkpoint is summarized; the in-memory store is
    then truncated. Indexes are absolute (stable across truncations), so
    successive checkpoints have strictly increasing ``up_to_index``.

    Checkpointing is best-effort: failures are logged and swallowed.
    """

    def __init__(
        self,
        config: SummarizationConfig,
        summarizer: Summarizer | None,
        *,
        conversation_id: str,
        last_checkpoint: Checkpoint | None = None,
    ):
        self.config = config
        self.summarizer = summarizer
        self.conversation_id = conversation_id
        self.latest = last_checkpoint

    @property
    def last_checkpoint_index(self) -> int:
        return self.latest.up_to_index if self.latest else 0

    @property
    def active(self) -> bool:
        return self.config.enabled and self.summarizer is not None

    def next_checkpoint_index(self, store: MessageStore) -> int | None:
        """Absolute index the next checkpoint would cover up to, or None if not due."""
        if not self.active or len(store) < self.config.trigger_at:
            return None
        checkpoint_index = store.absolute_count - self.config.keep_recent
        if checkpoint_index <= self.last_checkpoint_index:
            return None
        return checkpoint_index

    async def maybe_checkpoint(
        self,
        store: MessageStore,
        *,
        durable: HistoryStore | None = None,
    ) -> Checkpoint | None:
        checkpoint_index = self.next_checkpoint_index(store)
        if checkpoint_index is None:
            return None

        try:
            checkpoint = await self._summarize(store, checkpoint_index)
            if checkpoint is None:
                return None
            if durable is not None:
                await durable.create_checkpoint(self.conversation_id, checkpoint)
        except Exception:
            logger.exception(
                "Checkpoint creation failed for {} (up to {})",
                self.conversation_id,
                checkpoint_index,
            )
            return None

        self.latest = checkpoint
        dropped = store.truncate_before(checkpoint_index)
        logger.info(
            "Checkpoint for {} up to message {}: {} messages summarized, {} kept in memory",
            self.conversation_id,
            checkpoint_index,
            dropped,
            len(store),
        )
        return checkpoint

    async def _summarize(self, store: MessageStore, checkpoint_index: int) -> Checkpoint | None:
        from_index = max(self.last_checkpoint_index, store.offset)
        raw = store.slice(from_index, checkpoint_index)
        if not raw:
            return None

        filtered = filter_tool_results(raw, self.config.tool_results.keep_recent)
        payload = serialize_slice(
            filtered,
            conversation_id=self.conversation_id,
            from_index=from_index,
            to_index=checkpoint_index,
            original_count=len(raw),
        )
        summary = parse_summary(await self.summarizer(payload))

        return Checkpoint(
            up_to_index=checkpoint_index,
            summary=summary,
            created_at=datetime.now(timezone.utc),
            metadata={
                "auto_created": True,
                "original_message_count": len(raw),
                "filtered_message_count": len(filtered),
                "keep_recent": self.config.keep_recent,
            },
        )
