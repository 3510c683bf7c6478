"""Interview session state - pure transition functions.

Per (intake_id, session_id):

    absent --start_session + apply_turn--> active --apply_turn--> active

No I/O here; the Interview stage loads the stored session, calls
``apply_turn`` and writes the result back.

Monotonicity rules:
- ``messages`` only grows, by exactly two entries per turn (user, assistant).
- ``updated_fields`` merges each turn's patch; later turns overwrite a key,
  nothing removes one.
- ``missing_fields_after`` is replaced by the turn's ``new_missing_fields``
  when the turn reports a list, and kept when it reports nothing. Keys the
  turn patched leave the set either way. A field already resolved in the
  session is not re-added unless the turn lists it in ``reopened_fields``.
- ``resolved_fields`` collects fields that left the unresolved set and keys
  patched in a turn; only an explicit reopen takes a field back out.
- ``validated_assumptions`` only grows, without duplicates.
"""

from collections.abc import Iterable, Sequence
from typing import Any

SESSION_ACTIVE = "active"


def _ordered_unique(values: Iterable[Any]) -> list[Any]:
    seen: list[Any] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def _string_list(value: Any) -> list[str] | None:
    """List of non-empty strings, or None when the turn reported nothing."""
    if not isinstance(value, list):
        return None
    return [str(item) for item in value if item not in (None, "")]


def start_session(
    *,
    intake_id: str,
    session_id: str,
    missing_fields: Sequence[str],
    seed_history: Sequence[dict[str, Any]] = (),
) -> dict[str, Any]:
    """Initial state of a new session, before its first turn is applied.

    Args:
        intake_id: Intake case id.
        session_id: Client-chosen session key.
        missing_fields: Gap list from the latest analysis.
        seed_history: Caller-supplied prior transcript.
    """
    missing = _ordered_unique(str(f) for f in missing_fields)
    return {
        "intake_id": intake_id,
        "session_id": session_id,
        "messages": [dict(entry) for entry in seed_history],
        "updated_fields": {},
        "missing_fields_before": missing,
        "missing_fields_after": list(missing),
        "resolved_fields": [],
        "validated_assumptions": [],
        "status": SESSION_ACTIVE,
    }


def apply_turn(
    session: dict[str, Any],
    *,
    user_message: str,
    turn: dict[str, Any],
    timestamp: str,
) -> dict[str, Any]:
    """Compute the session state after one interview turn.

    Args:
        session: Current session state (not modified).
        user_message: The user's utterance.
        turn: Post-processed model output; reads ``assistant_question``,
            ``updated_fields``, ``new_missing_fields``, ``reopened_fields``
            and ``validated_assumptions``.
        timestamp: ISO timestamp for both transcript entries.

    Returns:
        The new session state.
    """
    messages = [
        *session.get("messages", []),
        {"role": "user", "content": user_message, "timestamp": timestamp},
        {"role": "assistant", "content": turn["assistant_question"], "timestamp": timestamp},
    ]

    patch = turn.get("updated_fields") or {}
    updated_fields = {**session.get("updated_fields", {}), **patch}

    reopened = set(_string_list(turn.get("reopened_fields")) or [])
    previously_resolved = [
        f for f in session.get("resolved_fields", []) if f not in reopened
    ]
    settled = set(previously_resolved) | (set(patch) - reopened)

    before = list(session.get("missing_fields_after", []))
    reported = _string_list(turn.get("new_missing_fields"))
    candidates = before if reported is None else reported
    after = _ordered_unique(f for f in candidates if f not in settled)
    after.extend(f for f in sorted(reopened) if f not in after)

    left_unresolved = [f for f in before if f not in after]
    resolved_fields = _ordered_unique(
        [*previously_resolved, *left_unresolved, *(k for k in patch if k not in reopened)]
    )

    validated = _ordered_unique(
        [
            *session.get("validated_assumptions", []),
            *(turn.get("validated_assumptions") or []),
        ]
    )

    return {
        **session,
        "messages": messages,
        "updated_fields": updated_fields,
        "missing_fields_after": after,
        "resolved_fields": resolved_fields,
        "validated_assumptions": validated,
        "status": SESSION_ACTIVE,
    }


def summarize_session(session: dict[str, Any] | None) -> str | None:
    """Plain-text summary of a session for downstream prompts.

    Returns:
        The summary, or None when there is no session or it has no turns.
    """
    if not session or not session.get("messages"):
        return None

    lines = [f"Interview session with {len(session['messages']) // 2} exchange(s)."]
    updated = session.get("updated_fields") or {}
    if updated:
        lines.append(
            "Confirmed fields: "
            + "; ".join(f"{key} = {value}" for key, value in updated.items())
        )
    assumptions = session.get("validated_assumptions") or []
    if assumptions:
        lines.append("Validated assumptions: " + "; ".join(map(str, assumptions)))
    remaining = session.get("missing_fields_after") or []
    if remaining:
        lines.append("Still unresolved: " + ", ".join(remaining))
    return "\n".join(lines)
