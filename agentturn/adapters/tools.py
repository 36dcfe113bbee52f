"""Tool records, registry and the gateway used by the turn engine."""

from __future__ import annotations

import inspect
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from loguru import logger

from agentturn.config.schema import AgentLoggingConfig, LogVerbosity
from agentturn.core.types import ContentItem
from agentturn.errors import ToolExecutionError, ToolNotFoundError
from agentturn.observability.redaction import redact_arguments, redact_text
from agentturn.observability.turn_log import apply_verbosity, log_turn

COMPLETE_TASK_TOOL = "complete_task"


@dataclass(slots=True)
class ToolOutput:
    """Tool result text plus optional extra content (e.g. screenshots)."""

    text: str
    contents: list[ContentItem] = field(default_factory=list)


ToolInvoke = Callable[[str], Awaitable[str | ToolOutput]]


@dataclass(slots=True)
class Tool:
    """A callable capability exposed to the model.

    ``is_ui`` marks tools whose execution is deferred to an outside actor:
    the engine pauses instead of invoking them. ``returns_additional_content``
    marks tools whose ``invoke`` may return a ``ToolOutput`` with content
    items that are attached to the tool-result message.
    """

    name: str
    description: str
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    invoke: ToolInvoke | None = None
    is_ui: bool = False
    returns_additional_content: bool = False

    @classmethod
    def from_function(
        cls,
        fn: Callable[..., Awaitable[Any]],
        *,
        name: str | None = None,
        description: str | None = None,
        parameters: dict[str, Any] | None = None,
        returns_additional_content: bool = False,
    ) -> Tool:
        """Wrap an async function taking keyword arguments."""

        async def _invoke(arguments: str) -> str | ToolOutput:
            params = _parse_arguments(arguments)
            if params is None:
                return "Error: tool arguments must be a JSON object"
            result = await fn(**params)
            if isinstance(result, ToolOutput):
                return result
            return result if isinstance(result, str) else json.dumps(result, ensure_ascii=False)

        return cls(
            name=name or fn.__name__,
            description=description or inspect.getdoc(fn) or f"Execute {fn.__name__} tool",
            parameters=parameters or {"type": "object", "properties": {}},
            invoke=_invoke,
            returns_additional_content=returns_additional_content,
        )

    @classmethod
    def ui(cls, name: str, description: str, parameters: dict[str, Any] | None = None) -> Tool:
        """Declare a human-in-the-loop tool; it is never invoked by the engine."""
        return cls(
            name=name,
            description=description,
            parameters=parameters or {"type": "object", "properties": {}},
            is_ui=True,
        )

    def to_schema(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


def _parse_arguments(arguments: str) -> dict[str, Any] | None:
    if not arguments or not arguments.strip():
        return {}
    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


class ToolRegistry:
    """Name-keyed set of tools, regular and UI."""

    def __init__(self, tools: list[Tool] | None = None):
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if not tool.is_ui and tool.invoke is None:
            raise ValueError(f"Tool '{tool.name}' needs an invoke callable")
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    @property
    def ui_tool_names(self) -> set[str]:
        return {name for name, tool in self._tools.items() if tool.is_ui}

    def definitions(self) -> list[dict[str, Any]]:
        return [tool.to_schema() for tool in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)


class ToolGateway:
    """Unified entrypoint for tool metadata and execution.

    ``invoke`` never raises for tool faults: a missing tool or a raising tool
    degrades to an error string the model sees as the tool result.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        logging_config: AgentLoggingConfig | None = None,
    ):
        self.registry = registry
        self.logging_config = logging_config or AgentLoggingConfig()

    def definitions(self) -> list[dict[str, Any]]:
        return self.registry.definitions()

    def is_ui_tool(self, name: str) -> bool:
        tool = self.registry.get(name)
        return tool is not None and tool.is_ui

    @property
    def has_tools(self) -> bool:
        return len(self.registry) > 0

    async def invoke(self, name: str, arguments: str) -> ToolOutput:
        try:
            output = await self._run(name, arguments)
        except ToolNotFoundError as e:
            logger.warning("Model requested unknown tool {}", name)
            return ToolOutput(text=f"Error: {e}")
        except ToolExecutionError as e:
            logger.opt(exception=e.__cause__).error("Error executing tool {}", name)
            return ToolOutput(text=f"Error executing tool: {e}")
        self._log_response(name, output.text)
        return output

    async def _run(self, name: str, arguments: str) -> ToolOutput:
        tool = self.registry.get(name)
        if tool is None or tool.invoke is None:
            raise ToolNotFoundError(name)

        self._log_request(name, arguments)
        logger.debug("Executing tool: {}", name)
        try:
            result = await tool.invoke(arguments)
        except Exception as e:
            raise ToolExecutionError(name, e) from e

        if isinstance(result, ToolOutput):
            if not tool.returns_additional_content:
                return ToolOutput(text=result.text)
            return result
        return ToolOutput(text=str(result))

    def _log_request(self, name: str, arguments: str) -> None:
        cfg = self.logging_config
        if cfg.log_tool_call_requests is LogVerbosity.NONE:
            return
        logged = apply_verbosity(
            redact_arguments(arguments), cfg.log_tool_call_requests, cfg.truncation_length
        )
        if logged is not None:
            log_turn("Tool Call Request", cfg, toolName=name, arguments=logged)

    def _log_response(self, name: str, result: str) -> None:
        cfg = self.logging_config
        if cfg.log_tool_call_responses is LogVerbosity.NONE:
            return
        logged = apply_verbosity(
            redact_text(result), cfg.log_tool_call_responses, cfg.truncation_length
        )
        if logged is not None:
            log_turn("Tool Call Response", cfg, toolName=name, result=logged)
