"""Turn execution: the model/tool loop over one conversation's message store."""

from __future__ import annotations

from typing import Callable

from loguru import logger

from agentturn.adapters.provider import Completion, CompletionAdapter, CompletionCapability
from agentturn.adapters.tools import COMPLETE_TASK_TOOL, Tool, ToolGateway, ToolRegistry
from agentturn.config.schema import AgentConfig
from agentturn.core.history import select_history
from agentturn.core.store import MessageStore
from agentturn.core.types import Checkpoint, ContentItem, Message, Role, TurnResult
from agentturn.core.validation import TurnValidator
from agentturn.errors import flatten_error
from agentturn.observability.turn_log import apply_verbosity, log_turn

ONE_TOOL_AT_A_TIME = (
    "\n\nIMPORTANT: When using tools, make ONE tool call at a time. "
    "Wait for the tool result before making additional tool calls. "
    "This ensures proper execution and better results."
)

Sanitizer = Callable[[str], str]


class TurnEngine:
    """Run model/tool rounds for one conversation and return a TurnResult.

    The engine owns the in-memory MessageStore and must be driven one turn
    at a time. It never writes to durable storage; callers persist new
    entries from ``store`` after each turn.
    """

    def __init__(
        self,
        completion: CompletionCapability | CompletionAdapter,
        tools: ToolGateway | ToolRegistry | list[Tool] | None = None,
        *,
        config: AgentConfig | None = None,
        store: MessageStore | None = None,
        sanitizer: Sanitizer | None = None,
        validator: TurnValidator | None = None,
    ):
        self.config = config or AgentConfig()
        self.completion = (
            completion if isinstance(completion, CompletionAdapter) else CompletionAdapter(completion)
        )
        self.tools = self._as_gateway(tools)
        self.store = store if store is not None else MessageStore()
        self.sanitizer = sanitizer
        self.validator = validator or TurnValidator()
        self.checkpoint: Checkpoint | None = None

    def _as_gateway(self, tools: ToolGateway | ToolRegistry | list[Tool] | None) -> ToolGateway:
        if isinstance(tools, ToolGateway):
            return tools
        registry = tools if isinstance(tools, ToolRegistry) else ToolRegistry(tools or [])
        return ToolGateway(registry, logging_config=self.config.logging)

    def tool_schemas(self) -> list[dict]:
        return self.tools.definitions()

    def system_prompt(self) -> str | None:
        prompt = self.config.system_prompt
        if not prompt:
            return None
        if self.tools.has_tools:
            prompt += ONE_TOOL_AT_A_TIME
        return prompt

    def build_context(self) -> list[Message]:
        """Model input for the next completion call."""
        context = select_history(
            self.store.messages,
            self.checkpoint,
            self.config.tool_results,
            offset=self.store.offset,
            max_multimodal_messages=self.config.max_multimodal_messages,
        )
        if self.config.enable_turn_validation:
            # Truncation can leave results whose calls were summarized away.
            context = self.validator.fix(context)
        prompt = self.system_prompt()
        if prompt:
            context.insert(0, Message.system(prompt))
        return context

    async def execute_turn(
        self,
        user_text: str,
        attachments: list[ContentItem] | None = None,
    ) -> TurnResult:
        rounds = 0
        try:
            self._log_user_input(user_text, attachments)
            self._append_user_message(user_text, attachments)
            if self.config.enable_turn_validation:
                self.repair_history()

            completion_signal: str | None = None
            last_response: Message | None = None

            while True:
                reply = await self.completion.complete(self.build_context(), self.tool_schemas())
                last_response = self._append_assistant(reply)

                if not last_response.has_tool_calls:
                    break

                rounds += 1
                for tool_call in last_response.tool_calls:
                    if self.tools.is_ui_tool(tool_call.name):
                        logger.debug("UI tool '{}' requested, pausing turn", tool_call.name)
                        return TurnResult(
                            response=last_response.text,
                            tool_rounds_executed=rounds,
                            completion_signal=completion_signal,
                            success=True,
                            paused_on_tool=tool_call.name,
                        )

                    output = await self.tools.invoke(tool_call.name, tool_call.arguments)
                    if tool_call.name == COMPLETE_TASK_TOOL:
                        completion_signal = output.text
                    self.store.append(Message.tool(output.text, tool_call.id, output.contents))

                if rounds >= self.config.max_tool_rounds_per_turn:
                    logger.warning(
                        "Max tool rounds ({}) reached in single turn",
                        self.config.max_tool_rounds_per_turn,
                    )
                    break

            return TurnResult(
                response=last_response.text if last_response else "",
                tool_rounds_executed=rounds,
                completion_signal=completion_signal,
                success=True,
            )
        except Exception as e:
            logger.exception("Error executing agent turn")
            return TurnResult(
                response="",
                tool_rounds_executed=rounds,
                success=False,
                error=flatten_error(e),
            )

    def _append_user_message(self, text: str, attachments: list[ContentItem] | None) -> None:
        # Callers that persist eagerly may have appended the input already,
        # either as a user message or as a tool result resuming a UI pause.
        last = self.store.last
        if last is not None and last.role in (Role.USER, Role.TOOL) and last.text == text:
            return
        self.store.append(Message.user(text, attachments))

    def repair_history(self) -> bool:
        """Validate the in-memory log and repair it in place; return True if it changed."""
        partial = self.store.offset > 0
        result = self.validator.validate(self.store.messages, partial=partial)
        if result.is_valid:
            return False
        logger.warning("Invalid conversation turns: {}", ", ".join(result.violations))
        self.store.replace(self.validator.fix(self.store.messages, partial=partial))
        return True

    def _append_assistant(self, reply: Completion) -> Message:
        text = reply.text
        if self.sanitizer and text:
            text = self.sanitizer(text)
        message = Message.assistant(text, reply.tool_calls)
        self.store.append(message)

        cfg = self.config.logging
        logged = apply_verbosity(text, cfg.log_agent_output, cfg.truncation_length)
        if logged is not None:
            log_turn("Agent Output", cfg, content=logged, hasToolCalls=message.has_tool_calls)
        return message

    def _log_user_input(self, text: str, attachments: list[ContentItem] | None) -> None:
        cfg = self.config.logging
        logged = apply_verbosity(text, cfg.log_user_input, cfg.truncation_length)
        if logged is not None:
            log_turn("User Input", cfg, content=logged, hasFiles=bool(attachments))
