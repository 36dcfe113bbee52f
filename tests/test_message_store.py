"""Tests for messages and the in-memory message store."""

from pathlib import Path

import pytest

from agentturn.core.store import MessageStore
from agentturn.core.types import ContentItem, Message, Role, ToolCall


class TestMessage:
    def test_only_assistant_carries_tool_calls(self):
        with pytest.raises(ValueError):
            Message(role=Role.USER, text="x", tool_calls=(ToolCall(id="1", name="t"),))

    def test_only_tool_carries_call_id(self):
        with pytest.raises(ValueError):
            Message(role=Role.ASSISTANT, text="x", tool_call_id="1")

    def test_user_attachments_keep_text_first(self):
        img = ContentItem.of_bytes(b"img", "image/jpeg")
        msg = Message.user("caption", [img])
        assert msg.contents[0].text == "caption"
        assert msg.contents[1] is img
        assert msg.has_images

    def test_round_trip_dict(self):
        msg = Message.assistant("hi", [ToolCall(id="1", name="t", arguments='{"a": 1}')])
        assert Message.from_dict(msg.to_dict()) == msg

    def test_content_from_file(self, tmp_path: Path):
        path = tmp_path / "doc.pdf"
        path.write_bytes(b"%PDF")
        item = ContentItem.from_file(path)
        assert item.media_type == "application/pdf"
        assert not item.is_image


class TestMessageStore:
    def test_append_only_growth(self):
        store = MessageStore()
        store.append(Message.user("a"))
        store.extend([Message.assistant("b"), Message.user("c")])
        assert [m.text for m in store] == ["a", "b", "c"]
        assert store.last.text == "c"

    def test_messages_returns_copy(self):
        store = MessageStore([Message.user("a")])
        store.messages.append(Message.user("b"))
        assert len(store) == 1

    def test_truncate_advances_offset(self):
        store = MessageStore([Message.user(str(i)) for i in range(5)])

        assert store.truncate_before(3) == 3

        assert store.offset == 3
        assert store.absolute_count == 5
        assert [m.text for m in store] == ["3", "4"]
        assert [m.text for m in store.slice(2, 4)] == ["3"]

    def test_truncate_out_of_range(self):
        store = MessageStore([Message.user("a")], offset=2)
        with pytest.raises(ValueError):
            store.truncate_before(1)
        with pytest.raises(ValueError):
            store.truncate_before(4)

    def test_load_with_offset(self):
        store = MessageStore.load([Message.user("x")], offset=7)
        assert store.absolute_count == 8
        assert store.slice(7, 8)[0].text == "x"

    def test_stats(self):
        store = MessageStore(
            [
                Message.user("abcd"),
                Message.assistant("", [ToolCall(id="1", name="t")]),
                Message.tool("r", "1"),
            ]
        )
        store.truncate_before(1)
        stats = store.stats()
        assert stats.total_messages == 2
        assert stats.tool_messages == 1
        assert stats.user_messages == 0
        assert stats.truncated_messages == 1
        assert stats.estimated_tokens == (0 + 50 + 1 + 50) // 4
