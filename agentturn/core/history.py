"""Context shaping: checkpoint substitution and placeholder-based tool-result filtering.

Every function here is pure. Inputs are never mutated and nothing raises for
well-typed input; the output is what gets sent to the completion backend.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable

from agentturn.config.schema import ToolResultFilterConfig
from agentturn.core.types import Checkpoint, Message, Role

OMITTED_TOOL_RESULT = "[Omitted]"
OMITTED_IMAGE = "[Image omitted]"
CONTEXT_SUMMARIZED_PLACEHOLDER = "[Previous context summarized]"


def checkpoint_message(checkpoint: Checkpoint) -> Message:
    """Synthetic system message carrying a checkpoint summary."""
    return Message.system(
        f"[Conversation summary up to message {checkpoint.up_to_index}]: {checkpoint.summary}"
    )


def filter_tool_results(messages: Iterable[Message], keep_recent: int) -> list[Message]:
    """Replace the body of all but the ``keep_recent`` latest tool results.

    Role and tool_call_id are preserved so call/result pairing stays intact.
    Non-tool messages pass through untouched. Idempotent.
    """
    messages = list(messages)
    if keep_recent <= 0:
        return messages

    tool_positions = [i for i, m in enumerate(messages) if m.role is Role.TOOL]
    if len(tool_positions) <= keep_recent:
        return messages

    omit = set(tool_positions[:-keep_recent])
    return [
        replace(m, text=OMITTED_TOOL_RESULT, contents=()) if i in omit else m
        for i, m in enumerate(messages)
    ]


def _strip_images(message: Message) -> Message:
    kept = tuple(item for item in message.contents if not item.is_image)
    if len(kept) == len(message.contents):
        return message
    if not kept and not message.text:
        return replace(message, text=OMITTED_IMAGE, contents=())
    return replace(message, contents=kept)


def filter_multimodal(messages: Iterable[Message], keep_recent: int) -> list[Message]:
    """Strip image content from all but the ``keep_recent`` latest image-bearing messages."""
    messages = list(messages)
    image_positions = [i for i, m in enumerate(messages) if m.has_images]
    if len(image_positions) <= keep_recent:
        return messages

    strip = set(image_positions[: len(image_positions) - keep_recent])
    return [_strip_images(m) if i in strip else m for i, m in enumerate(messages)]


def ensure_valid_start(messages: list[Message]) -> list[Message]:
    """Insert a user placeholder when the conversation does not open with a user message."""
    split = 0
    while split < len(messages) and messages[split].role is Role.SYSTEM:
        split += 1
    if split == len(messages) or messages[split].role is Role.USER:
        return messages
    return [
        *messages[:split],
        Message.user(CONTEXT_SUMMARIZED_PLACEHOLDER),
        *messages[split:],
    ]


def select_history(
    full_history: Iterable[Message],
    checkpoint: Checkpoint | None = None,
    tool_results: ToolResultFilterConfig | None = None,
    *,
    offset: int = 0,
    max_multimodal_messages: int | None = None,
) -> list[Message]:
    """Shape a history into model context.

    ``offset`` is the absolute index of the first element of ``full_history``;
    non-system messages below ``checkpoint.up_to_index`` are replaced by one
    summary system message.
    """
    history = list(full_history)
    if not history:
        return []

    system: list[Message] = []
    conversation: list[Message] = []
    for index, msg in enumerate(history, start=offset):
        if msg.role is Role.SYSTEM:
            system.append(msg)
        elif checkpoint is None or index >= checkpoint.up_to_index:
            conversation.append(msg)

    if checkpoint is not None:
        system.append(checkpoint_message(checkpoint))

    keep_recent = tool_results.keep_recent if tool_results else 0
    conversation = filter_tool_results(conversation, keep_recent)
    if max_multimodal_messages is not None:
        conversation = filter_multimodal(conversation, max_multimodal_messages)

    return ensure_valid_start(system + conversation)


class HistorySelector:
    """Object form of ``select_history`` bound to one filter configuration."""

    def __init__(
        self,
        tool_results: ToolResultFilterConfig | None = None,
        *,
        max_multimodal_messages: int | None = None,
    ):
        self.tool_results = tool_results or ToolResultFilterConfig()
        self.max_multimodal_messages = max_multimodal_messages

    def select(
        self,
        full_history: Iterable[Message],
        checkpoint: Checkpoint | None = None,
        *,
        offset: int = 0,
    ) -> list[Message]:
        return select_history(
            full_history,
            checkpoint,
            self.tool_results,
            offset=offset,
            max_multimodal_messages=self.max_multimodal_messages,
        )
