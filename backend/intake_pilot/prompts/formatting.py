"""Shared helpers for rendering records into prompts."""

import json
from typing import Any

from intake_pilot.core.llm_sanitization import sanitize_llm_input

_INTERNAL_KEYS = frozenset({"id", "created_at", "updated_at", "ai_run_id", "intake_id"})


def strip_internal(record: dict[str, Any] | None) -> dict[str, Any]:
    """Drop bookkeeping columns the model has no use for."""
    if not record:
        return {}
    return {k: v for k, v in record.items() if k not in _INTERNAL_KEYS}


def to_prompt_json(value: Any) -> str:
    """Serialize a record for embedding in a prompt (sanitized)."""
    return sanitize_llm_input(json.dumps(value, indent=2, default=str))


def text_or(value: Any, fallback: str) -> str:
    """Sanitized string form of ``value``, or ``fallback`` when empty."""
    if value is None or value == "" or value == []:
        return fallback
    if isinstance(value, list | dict):
        return to_prompt_json(value)
    return sanitize_llm_input(str(value))
