"""Structural checks and conservative repair for conversation turn sequences."""

from __future__ import annotations

from typing import Iterable

from agentturn.core.types import Message, Role, ValidationResult

ASSISTANT_PLACEHOLDER = "I understand."


class TurnValidator:
    """Checks role alternation and tool-call/tool-result pairing.

    Alternation ignores system and tool messages. An assistant message may
    follow another assistant message only when the earlier one requested tools
    and at least one tool result sits between them (a tool-call round).
    A tool result must answer a call of the nearest preceding assistant.

    ``partial=True`` checks a history whose prefix was truncated by a
    checkpoint: it may open with any role, and tool results ahead of the
    first assistant message answer calls that were truncated away.
    """

    def validate(self, messages: Iterable[Message], *, partial: bool = False) -> ValidationResult:
        violations: list[str] = []
        last_role: Role | None = None
        open_calls: set[str] = set()
        saw_tool_result = False

        for position, msg in enumerate(messages):
            if msg.role is Role.SYSTEM:
                continue

            if msg.role is Role.TOOL:
                if msg.tool_call_id in open_calls:
                    saw_tool_result = True
                elif not (partial and last_role is None):
                    violations.append(
                        f"message {position}: tool result {msg.tool_call_id!r} "
                        "does not answer a call of the preceding assistant message"
                    )
                continue

            if last_role is None:
                if msg.role is not Role.USER and not partial:
                    violations.append(
                        f"message {position}: conversation must start with a user message"
                    )
            elif last_role is Role.USER and msg.role is Role.USER:
                violations.append(f"message {position}: two consecutive user messages")
            elif last_role is Role.ASSISTANT and msg.role is Role.ASSISTANT:
                if not (open_calls and saw_tool_result):
                    violations.append(
                        f"message {position}: two consecutive assistant messages "
                        "without a tool-call round between them"
                    )

            if msg.role is Role.ASSISTANT:
                open_calls = {tc.id for tc in msg.tool_calls}
                saw_tool_result = False
            last_role = msg.role

        return ValidationResult(is_valid=not violations, violations=violations)

    def fix(self, messages: Iterable[Message], *, partial: bool = False) -> list[Message]:
        """Repair a sequence in one forward pass.

        Inserts an assistant placeholder between two user messages, drops an
        assistant message that would double up without a tool round, and
        drops tool results whose call id is not open. Valid input comes back
        unchanged.
        """
        fixed: list[Message] = []
        last_role: Role | None = None
        open_calls: set[str] = set()
        saw_tool_result = False

        for msg in messages:
            if msg.role is Role.SYSTEM:
                fixed.append(msg)
                continue

            if msg.role is Role.TOOL:
                if msg.tool_call_id in open_calls:
                    saw_tool_result = True
                    fixed.append(msg)
                elif partial and last_role is None:
                    fixed.append(msg)
                continue

            if msg.role is Role.USER and last_role is Role.USER:
                fixed.append(Message.assistant(ASSISTANT_PLACEHOLDER))
            elif msg.role is Role.ASSISTANT and last_role is Role.ASSISTANT:
                if not (open_calls and saw_tool_result):
                    continue

            if msg.role is Role.ASSISTANT:
                open_calls = {tc.id for tc in msg.tool_calls}
                saw_tool_result = False
            fixed.append(msg)
            last_role = msg.role

        return fixed
