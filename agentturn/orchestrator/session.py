"""Chat-style session driver: persistence and checkpointing around each turn."""

from __future__ import annotations

from loguru import logger

from agentturn.adapters.storage import HistoryStore
from agentturn.core.store import MessageStore
from agentturn.core.types import Checkpoint, ContentItem, HistoryStats, Message, TurnResult
from agentturn.errors import ConfigurationError
from agentturn.orchestrator.checkpoint import CheckpointScheduler, Summarizer
from agentturn.orchestrator.engine import TurnEngine


class ChatSession:
    """Drive a TurnEngine for one conversation.

    Each incoming message is persisted before the turn runs; everything the
    turn appends is persisted afterwards. When summarization is enabled and a
    durable store is present, the checkpoint scheduler runs after every
    successful turn that did not pause on a UI tool.
    """

    def __init__(
        self,
        engine: TurnEngine,
        *,
        conversation_id: str,
        store: HistoryStore | None = None,
        summarizer: Summarizer | None = None,
    ):
        summarization = engine.config.summarization
        if summarization.enabled and summarizer is None:
            raise ConfigurationError(
                "Summarization is enabled but no summarizer was provided; "
                "provide one or disable summarization"
            )
        self.engine = engine
        self.conversation_id = conversation_id
        self.store = store
        self.scheduler = CheckpointScheduler(
            summarization,
            summarizer,
            conversation_id=conversation_id,
            last_checkpoint=engine.checkpoint,
        )
        self._persisted = engine.store.absolute_count

    @classmethod
    async def open(
        cls,
        engine: TurnEngine,
        *,
        conversation_id: str,
        store: HistoryStore | None = None,
        summarizer: Summarizer | None = None,
    ) -> ChatSession:
        """Create a session, resuming from the latest checkpoint when a store is given."""
        if store is not None:
            checkpoint, messages = await store.load_from_checkpoint(conversation_id)
            offset = checkpoint.up_to_index if checkpoint else 0
            if messages or checkpoint:
                engine.store = MessageStore.load(messages, offset=offset)
                engine.checkpoint = checkpoint
                logger.info(
                    "Resumed conversation {}: {} messages after checkpoint {}",
                    conversation_id,
                    len(messages),
                    offset,
                )
        return cls(engine, conversation_id=conversation_id, store=store, summarizer=summarizer)

    @property
    def latest_checkpoint(self) -> Checkpoint | None:
        return self.scheduler.latest

    def stats(self) -> HistoryStats:
        return self.engine.store.stats()

    async def send(
        self, text: str, attachments: list[ContentItem] | None = None
    ) -> TurnResult:
        """Send a user message and run one turn."""
        return await self._run(Message.user(text, attachments))

    async def submit_tool_result(self, tool_call_id: str, result: str) -> TurnResult:
        """Resume a turn paused on a UI tool with that tool's result."""
        return await self._run(Message.tool(result, tool_call_id))

    async def _run(self, message: Message) -> TurnResult:
        self.engine.store.append(message)
        if self.engine.config.enable_turn_validation:
            self._repair_before_persist()
        await self._persist_new()

        result = await self.engine.execute_turn(message.text)
        await self._persist_new()

        # A paused turn keeps its open call in memory so the submitted result
        # still pairs with it.
        if result.success and not result.paused and self.store is not None:
            checkpoint = await self.scheduler.maybe_checkpoint(
                self.engine.store, durable=self.store
            )
            if checkpoint is not None:
                self.engine.checkpoint = checkpoint
        return result

    def _repair_before_persist(self) -> None:
        # Repairs land after the persisted cursor (e.g. a placeholder reply to
        # the user message a failed turn left unanswered), so they are written
        # out with the new message and the durable log mirrors memory.
        mem = self.engine.store
        persisted = mem.slice(mem.offset, self._persisted)
        if self.engine.repair_history() and mem.slice(mem.offset, self._persisted) != persisted:
            logger.warning(
                "Repair of conversation {} rewrote already persisted messages; "
                "durable history no longer mirrors memory",
                self.conversation_id,
            )

    async def _persist_new(self) -> None:
        mem = self.engine.store
        if self.store is None:
            self._persisted = mem.absolute_count
            return
        pending = mem.slice(self._persisted, mem.absolute_count)
        if pending:
            await self.store.append_messages(self.conversation_id, pending)
        self._persisted = mem.absolute_count
