"""Tests for ChatSession: persistence, checkpointing and resume."""

from __future__ import annotations

import pytest

from agentturn.adapters.storage import InMemoryHistoryStore
from agentturn.adapters.tools import Tool
from agentturn.config.schema import AgentConfig, SummarizationConfig
from agentturn.core.types import Role, TextDelta, ToolCallDelta
from agentturn.core.validation import ASSISTANT_PLACEHOLDER
from agentturn.errors import ConfigurationError
from agentturn.orchestrator.engine import TurnEngine
from agentturn.orchestrator.session import ChatSession


class _ReplyBackend:
    """Answers every call with the next scripted fragment list, then repeats the last."""

    def __init__(self, *scripts):
        self._scripts = list(scripts) or [[TextDelta("ok")]]
        self.calls = 0
        self.contexts = []

    async def stream(self, messages, tools):
        self.contexts.append(list(messages))
        script = self._scripts[min(self.calls, len(self._scripts) - 1)]
        self.calls += 1
        for fragment in script:
            yield fragment


class _BrokenBackend:
    async def stream(self, messages, tools):
        raise RuntimeError("model down")
        yield  # pragma: no cover


async def _summarize(payload: str) -> str:
    return '{"summary": "earlier chat"}'


def _summarizing_config() -> AgentConfig:
    return AgentConfig(summarization=SummarizationConfig(enabled=True, trigger_at=4, keep_recent=1))


@pytest.mark.asyncio
async def test_messages_persisted_in_order():
    durable = InMemoryHistoryStore()
    session = ChatSession(TurnEngine(_ReplyBackend()), conversation_id="c1", store=durable)

    await session.send("hi")
    await session.send("again")

    stored = await durable.load_messages("c1")
    assert [(m.role, m.text) for m in stored] == [
        (Role.USER, "hi"),
        (Role.ASSISTANT, "ok"),
        (Role.USER, "again"),
        (Role.ASSISTANT, "ok"),
    ]


@pytest.mark.asyncio
async def test_checkpoint_truncates_memory_but_not_durable_store():
    durable = InMemoryHistoryStore()
    engine = TurnEngine(_ReplyBackend(), config=_summarizing_config())
    session = ChatSession(engine, conversation_id="c1", store=durable, summarizer=_summarize)

    await session.send("m1")
    assert session.latest_checkpoint is None
    await session.send("m2")

    checkpoint = session.latest_checkpoint
    assert checkpoint.up_to_index == 3
    assert engine.checkpoint is checkpoint
    assert len(engine.store) == 1
    assert session.stats().truncated_messages == 3

    result = await session.send("m3")

    assert result.success
    assert await durable.message_count("c1") == 6
    assert engine.store.absolute_count == 6
    context = engine.completion.backend.contexts[-1]
    assert any("earlier chat" in m.text for m in context if m.role is Role.SYSTEM)


@pytest.mark.asyncio
async def test_resume_from_durable_store():
    durable = InMemoryHistoryStore()
    first = ChatSession(
        TurnEngine(_ReplyBackend(), config=_summarizing_config()),
        conversation_id="c1",
        store=durable,
        summarizer=_summarize,
    )
    await first.send("m1")
    await first.send("m2")
    await first.send("m3")

    engine = TurnEngine(_ReplyBackend([TextDelta("welcome back")]), config=_summarizing_config())
    resumed = await ChatSession.open(
        engine, conversation_id="c1", store=durable, summarizer=_summarize
    )

    assert engine.checkpoint.up_to_index == 3
    assert engine.store.offset == 3
    assert [m.text for m in engine.store] == ["ok", "m3", "ok"]
    assert resumed.latest_checkpoint.up_to_index == 3

    result = await resumed.send("m4")

    assert result.response == "welcome back"
    # Nothing already persisted is written twice.
    assert await durable.message_count("c1") == 8


@pytest.mark.asyncio
async def test_ui_pause_then_submit_result():
    durable = InMemoryHistoryStore()
    backend = _ReplyBackend(
        [TextDelta("need approval"), ToolCallDelta(id="u1", name="approve", arguments="{}")],
        [TextDelta("paid")],
    )
    engine = TurnEngine(backend, [Tool.ui("approve", "ask the user to approve")])
    session = ChatSession(engine, conversation_id="c1", store=durable)

    paused = await session.send("buy")
    assert paused.paused
    assert paused.paused_on_tool == "approve"

    resumed = await session.submit_tool_result("u1", "approved")

    assert resumed.response == "paid"
    stored = await durable.load_messages("c1")
    assert [m.role for m in stored] == [Role.USER, Role.ASSISTANT, Role.TOOL, Role.ASSISTANT]
    assert stored[2].tool_call_id == "u1"


@pytest.mark.asyncio
async def test_failed_turn_persists_input_and_skips_checkpoint():
    durable = InMemoryHistoryStore()
    config = AgentConfig(summarization=SummarizationConfig(enabled=True, trigger_at=1, keep_recent=0))
    session = ChatSession(
        TurnEngine(_BrokenBackend(), config=config),
        conversation_id="c1",
        store=durable,
        summarizer=_summarize,
    )

    result = await session.send("hello?")

    assert not result.success
    assert "model down" in result.error
    assert [m.text for m in await durable.load_messages("c1")] == ["hello?"]
    assert await durable.latest_checkpoint("c1") is None


@pytest.mark.asyncio
async def test_session_without_store_keeps_memory_only():
    engine = TurnEngine(_ReplyBackend())
    session = ChatSession(engine, conversation_id="c1")

    await session.send("hi")

    assert session.stats().total_messages == 2


def test_summarization_requires_summarizer():
    engine = TurnEngine(_ReplyBackend(), config=_summarizing_config())
    with pytest.raises(ConfigurationError):
        ChatSession(engine, conversation_id="c1")


class _FlakyBackend(_ReplyBackend):
    """Fails on the first call, then answers normally."""

    async def stream(self, messages, tools):
        if self.calls == 0:
            self.calls += 1
            raise ConnectionError("stream reset")
        async for fragment in super().stream(messages, tools):
            yield fragment


@pytest.mark.asyncio
async def test_failed_turn_then_send_keeps_durable_log_aligned():
    durable = InMemoryHistoryStore()
    engine = TurnEngine(_FlakyBackend([TextDelta("ok")]))
    session = ChatSession(engine, conversation_id="c1", store=durable)

    failed = await session.send("first")
    assert not failed.success

    result = await session.send("second")

    assert result.success
    memory = [(m.role, m.text) for m in engine.store]
    stored = [(m.role, m.text) for m in await durable.load_messages("c1")]
    assert stored == memory
    assert memory == [
        (Role.USER, "first"),
        (Role.ASSISTANT, ASSISTANT_PLACEHOLDER),
        (Role.USER, "second"),
        (Role.ASSISTANT, "ok"),
    ]


@pytest.mark.asyncio
async def test_checkpoint_after_failed_turn_points_at_same_durable_messages():
    durable = InMemoryHistoryStore()
    engine = TurnEngine(_FlakyBackend([TextDelta("ok")]), config=_summarizing_config())
    session = ChatSession(engine, conversation_id="c1", store=durable, summarizer=_summarize)

    await session.send("first")
    await session.send("second")

    checkpoint = session.latest_checkpoint
    assert checkpoint.up_to_index == 3
    _, tail = await durable.load_from_checkpoint("c1")
    assert tail == engine.store.messages


@pytest.mark.asyncio
async def test_ui_pause_defers_checkpoint_until_result_is_paired():
    durable = InMemoryHistoryStore()
    backend = _ReplyBackend(
        [TextDelta("hello")],
        [TextDelta("confirm?"), ToolCallDelta(id="u1", name="approve", arguments="{}")],
        [TextDelta("paid")],
    )
    engine = TurnEngine(
        backend, [Tool.ui("approve", "ask the user")], config=_summarizing_config()
    )
    session = ChatSession(engine, conversation_id="c1", store=durable, summarizer=_summarize)

    await session.send("hi")
    paused = await session.send("buy")

    # Four messages reach the trigger, but the open call stays in memory.
    assert paused.paused
    assert session.latest_checkpoint is None
    assert len(engine.store) == 4

    await session.submit_tool_result("u1", "approved")

    seen = backend.contexts[-1]
    assert [(m.role, m.text) for m in seen[-2:]] == [
        (Role.ASSISTANT, "confirm?"),
        (Role.TOOL, "approved"),
    ]
    assert seen[-1].tool_call_id == "u1"
    assert session.latest_checkpoint.up_to_index == 5
    assert [m.text for m in engine.store] == ["paid"]


@pytest.mark.asyncio
async def test_cut_inside_tool_round_drops_orphaned_result_from_context():
    async def lookup() -> str:
        return "raw lookup body"

    durable = InMemoryHistoryStore()
    backend = _ReplyBackend(
        [ToolCallDelta(id="c1", name="lookup", arguments="{}")],
        [TextDelta("found it")],
        [TextDelta("anything else?")],
    )
    config = AgentConfig(
        summarization=SummarizationConfig(enabled=True, trigger_at=4, keep_recent=2)
    )
    engine = TurnEngine(backend, [Tool.from_function(lookup)], config=config)
    session = ChatSession(engine, conversation_id="c1", store=durable, summarizer=_summarize)

    await session.send("look it up")

    # The cut at 2 separates the call (summarized) from its result (kept).
    assert session.latest_checkpoint.up_to_index == 2
    assert engine.store.messages[0].role is Role.TOOL

    await session.send("thanks")

    seen = backend.contexts[-1]
    assert all(m.role is not Role.TOOL for m in seen)
    assert any("earlier chat" in m.text for m in seen if m.role is Role.SYSTEM)
    assert [m.text for m in seen if m.role is Role.ASSISTANT] == ["found it"]
    # The durable log still holds the full result.
    stored = await durable.load_messages("c1")
    assert [m.text for m in stored if m.role is Role.TOOL] == ["raw lookup body"]
