"""Configuration schema using Pydantic."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class Base(BaseModel):
    """Base model that accepts both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ToolResultFilterConfig(Base):
    """Placeholder filtering of verbose tool results.

    The most recent ``keep_recent`` tool results keep their full text; older
    ones are replaced by a fixed marker. Assistant messages and tool-call ids
    are never touched. ``0`` disables filtering.
    """

    keep_recent: int = Field(default=0, ge=0)

    def summary(self) -> str:
        if self.keep_recent == 0:
            return "unlimited (no filtering)"
        return f"keep {self.keep_recent} recent, replace others with placeholders"


class SummarizationConfig(Base):
    """Automatic checkpoint summarization.

    When the in-memory history reaches ``trigger_at`` messages, everything but
    the last ``keep_recent`` messages is summarized into a checkpoint and
    dropped from memory. The durable store keeps all messages.
    """

    enabled: bool = False
    trigger_at: int = Field(default=100, ge=1)
    keep_recent: int = Field(default=10, ge=0)
    tool_results: ToolResultFilterConfig = Field(default_factory=ToolResultFilterConfig)

    @model_validator(mode="after")
    def keep_recent_below_trigger(self) -> SummarizationConfig:
        if self.keep_recent >= self.trigger_at:
            raise ValueError(
                f"keep_recent ({self.keep_recent}) must be less than trigger_at "
                f"({self.trigger_at}); at least one message must be summarized"
            )
        return self

    @property
    def messages_to_summarize(self) -> int:
        return self.trigger_at - self.keep_recent

    def summary(self) -> str:
        if not self.enabled:
            return "disabled"
        return (
            f"trigger at {self.trigger_at} msgs "
            f"(summarize first {self.messages_to_summarize}, keep {self.keep_recent})"
        )


class LogVerbosity(str, Enum):
    NONE = "none"
    TRUNCATED = "truncated"
    FULL = "full"


class AgentLoggingConfig(Base):
    """What the engine writes to the log for each turn."""

    log_user_input: LogVerbosity = LogVerbosity.NONE
    log_agent_output: LogVerbosity = LogVerbosity.NONE
    log_tool_call_requests: LogVerbosity = LogVerbosity.NONE
    log_tool_call_responses: LogVerbosity = LogVerbosity.NONE
    truncation_length: int = Field(default=200, ge=1)
    structured: bool = True


class AgentConfig(Base):
    """Top-level agent configuration."""

    max_tool_rounds_per_turn: int = Field(default=10, ge=1)
    system_prompt: str | None = None
    enable_turn_validation: bool = True
    max_multimodal_messages: int | None = Field(default=None, ge=0)
    tool_results: ToolResultFilterConfig = Field(default_factory=ToolResultFilterConfig)
    summarization: SummarizationConfig = Field(default_factory=SummarizationConfig)
    logging: AgentLoggingConfig = Field(default_factory=AgentLoggingConfig)
