"""Per-turn log lines with configurable verbosity."""

from __future__ import annotations

from typing import Any

from loguru import logger

from agentturn.config.schema import AgentLoggingConfig, LogVerbosity


def apply_verbosity(text: str | None, verbosity: LogVerbosity, limit: int) -> str | None:
    """Return what should be logged for ``text``; ``None`` means log nothing."""
    if text is None or verbosity is LogVerbosity.NONE:
        return None
    if verbosity is LogVerbosity.FULL or len(text) <= limit:
        return text
    return text[:limit] + "..."


def log_turn(title: str, config: AgentLoggingConfig, **fields: Any) -> None:
    """Emit one ``[Turn]`` line, structured (bound extras) or flat text."""
    if config.structured:
        logger.bind(turn=fields).info("[Turn] {} {}", title, fields)
    else:
        flat = ", ".join(f"{k}={v}" for k, v in fields.items())
        logger.info("[Turn] {} | {}", title, flat)
