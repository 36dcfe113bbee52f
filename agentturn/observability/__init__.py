"""Observability helpers for turn logging and redaction."""

from agentturn.observability.redaction import (
    REDACTED,
    redact_arguments,
    redact_payload,
    redact_text,
)
from agentturn.observability.turn_log import apply_verbosity, log_turn

__all__ = [
    "REDACTED",
    "apply_verbosity",
    "log_turn",
    "redact_arguments",
    "redact_payload",
    "redact_text",
]
