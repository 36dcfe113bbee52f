"""Exception taxonomy for turn execution."""

from __future__ import annotations


class AgentTurnError(Exception):
    """Base class for agentturn errors."""


class ToolNotFoundError(AgentTurnError):
    """The model asked for a tool that is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Tool '{name}' not found")
        self.name = name


class ToolExecutionError(AgentTurnError):
    """A registered tool raised while running."""

    def __init__(self, name: str, cause: BaseException):
        super().__init__(str(cause))
        self.name = name


class CompletionError(AgentTurnError):
    """The completion backend failed or produced an unusable response."""


class ConfigurationError(AgentTurnError):
    """The agent was wired with an unusable combination of settings."""


def flatten_error(exc: BaseException) -> str:
    """Render an exception and its causes as one line: ``outer | Inner: inner``."""
    parts = [str(exc) or type(exc).__name__]
    seen = {id(exc)}
    inner = exc.__cause__ or exc.__context__
    while inner is not None and id(inner) not in seen:
        seen.add(id(inner))
        parts.append(f"Inner: {str(inner) or type(inner).__name__}")
        inner = inner.__cause__ or inner.__context__
    return " | ".join(parts)
