"""Masking of secret-looking values before tool payloads reach the log."""

from __future__ import annotations

import json
import re
from typing import Any

import json_repair

REDACTED = "***REDACTED***"

_SENSITIVE_KEYWORDS = (
    "token",
    "secret",
    "password",
    "api_key",
    "apikey",
    "authorization",
    "cookie",
    "private_key",
)

_BEARER_RE = re.compile(r"(?i)\bBearer\s+[A-Za-z0-9._\-]+\b")
_SECRET_VALUE_PATTERNS = (
    re.compile(r"\bsk-[A-Za-z0-9]{8,}\b"),
    re.compile(r"\bxox[baprs]-[A-Za-z0-9-]{10,}\b"),
    re.compile(r"\bgh[pousr]_[A-Za-z0-9]{20,}\b"),
)


def _is_sensitive_key(key: str | None) -> bool:
    if not key:
        return False
    normalized = key.lower().replace("-", "_")
    return any(token in normalized for token in _SENSITIVE_KEYWORDS)


def redact_text(text: str) -> str:
    """Mask bearer tokens and well-known API key shapes inside free text."""
    redacted = _BEARER_RE.sub(f"Bearer {REDACTED}", text)
    for pattern in _SECRET_VALUE_PATTERNS:
        redacted = pattern.sub(REDACTED, redacted)
    return redacted


def redact_payload(value: Any, key: str | None = None) -> Any:
    """Return a copy of a JSON-like value with sensitive keys and values masked."""
    if _is_sensitive_key(key):
        return REDACTED
    if isinstance(value, dict):
        return {k: redact_payload(v, str(k)) for k, v in value.items()}
    if isinstance(value, list):
        return [redact_payload(item, key) for item in value]
    if isinstance(value, str):
        return redact_text(value)
    return value


def redact_arguments(arguments: str) -> str:
    """Redact a tool-call argument payload, keeping it readable JSON when possible."""
    stripped = arguments.strip()
    if not stripped.startswith(("{", "[")):
        return redact_text(arguments)
    try:
        parsed = json.loads(stripped)
    except json.JSONDecodeError:
        try:
            parsed = json_repair.loads(stripped)
        except Exception:
            return redact_text(arguments)
    if not isinstance(parsed, (dict, list)):
        return redact_text(arguments)
    return json.dumps(redact_payload(parsed), ensure_ascii=False)
