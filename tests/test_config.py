"""Tests for the configuration schema."""

import pytest
from pydantic import ValidationError

from agentturn.config.schema import AgentConfig, LogVerbosity, SummarizationConfig


def test_defaults() -> None:
    config = AgentConfig()
    assert config.max_tool_rounds_per_turn == 10
    assert config.enable_turn_validation is True
    assert config.tool_results.keep_recent == 0
    assert config.summarization.enabled is False
    assert config.logging.log_user_input is LogVerbosity.NONE


def test_accepts_camel_case_keys() -> None:
    config = AgentConfig.model_validate(
        {
            "maxToolRoundsPerTurn": 3,
            "toolResults": {"keepRecent": 2},
            "summarization": {"enabled": True, "triggerAt": 20, "keepRecent": 5},
            "logging": {"logAgentOutput": "truncated", "truncationLength": 50},
        }
    )
    assert config.max_tool_rounds_per_turn == 3
    assert config.tool_results.keep_recent == 2
    assert config.summarization.trigger_at == 20
    assert config.logging.log_agent_output is LogVerbosity.TRUNCATED


def test_accepts_snake_case_keys() -> None:
    config = AgentConfig.model_validate({"max_tool_rounds_per_turn": 4})
    assert config.max_tool_rounds_per_turn == 4


@pytest.mark.parametrize("rounds", [0, -1])
def test_rejects_non_positive_rounds(rounds: int) -> None:
    with pytest.raises(ValidationError):
        AgentConfig(max_tool_rounds_per_turn=rounds)


def test_keep_recent_must_be_below_trigger() -> None:
    with pytest.raises(ValidationError, match="keep_recent"):
        SummarizationConfig(enabled=True, trigger_at=10, keep_recent=10)


def test_summary_strings() -> None:
    cfg = SummarizationConfig(enabled=True, trigger_at=10, keep_recent=3)
    assert cfg.messages_to_summarize == 7
    assert "trigger at 10" in cfg.summary()
    assert SummarizationConfig().summary() == "disabled"
    assert "unlimited" in AgentConfig().tool_results.summary()
