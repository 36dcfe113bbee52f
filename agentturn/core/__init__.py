"""Core domain models and algorithms for agentturn."""

from agentturn.core.history import HistorySelector, filter_tool_results, select_history
from agentturn.core.store import MessageStore
from agentturn.core.types import (
    Checkpoint,
    ContentItem,
    HistoryStats,
    Message,
    Role,
    TextDelta,
    ToolCall,
    ToolCallDelta,
    TurnResult,
    ValidationResult,
)
from agentturn.core.validation import TurnValidator

__all__ = [
    "Checkpoint",
    "ContentItem",
    "HistorySelector",
    "HistoryStats",
    "Message",
    "MessageStore",
    "Role",
    "TextDelta",
    "ToolCall",
    "ToolCallDelta",
    "TurnResult",
    "TurnValidator",
    "ValidationResult",
    "filter_tool_results",
    "select_history",
]
