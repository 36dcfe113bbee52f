"""Configuration module for agentturn."""

from agentturn.config.schema import (
    AgentConfig,
    AgentLoggingConfig,
    LogVerbosity,
    SummarizationConfig,
    ToolResultFilterConfig,
)

__all__ = [
    "AgentConfig",
    "AgentLoggingConfig",
    "LogVerbosity",
    "SummarizationConfig",
    "ToolResultFilterConfig",
]
