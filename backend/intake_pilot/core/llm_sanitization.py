"""LLM input sanitization for prompt injection prevention.

Security: Neutralizes suspicious patterns in customer-supplied text (uploaded
documents, attachments, interview answers) before it is embedded in a stage
prompt. Accented characters are preserved because company and contact names
regularly carry them.
"""

import re
import unicodedata

# Zero-width and BiDi control characters that are invisible when rendered but
# break pattern matching if left in place.
_ZERO_WIDTH_PATTERN = re.compile(
    "["
    "\u00ad"  # Soft hyphen
    "\u200b-\u200f"  # Zero-width space/non-joiner/joiner, LRM, RLM
    "\u202a-\u202e"  # BiDi embedding controls
    "\u2060-\u2064"  # Word joiner, invisible operators
    "\u2066-\u2069"  # BiDi isolate controls
    "\ufeff"  # BOM / zero-width no-break space
    "]"
)

# Control characters to remove (except \t, \n, \r)
_CONTROL_CHAR_PATTERN = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

_REPLACEMENT_TAG = "[TAG]"
_REPLACEMENT_FILTERED = "[FILTERED]"
_REPLACEMENT_FILTERED_COLON = "[FILTERED]:"

# Each tuple: (pattern, replacement, flags)
_INJECTION_PATTERNS: list[tuple[str, str, int]] = [
    # Role prefixes at line start
    (r"^\s*SYSTEM\s*:", _REPLACEMENT_FILTERED_COLON, re.IGNORECASE | re.MULTILINE),
    (r"^\s*Human\s*:", _REPLACEMENT_FILTERED_COLON, re.IGNORECASE | re.MULTILINE),
    (r"^\s*Assistant\s*:", _REPLACEMENT_FILTERED_COLON, re.IGNORECASE | re.MULTILINE),
    # Role tags (XML and ChatML style)
    (r"<\s*/?\s*(?:system|user|assistant)\s*>", _REPLACEMENT_TAG, re.IGNORECASE),
    (r"<\|(?:system|user|assistant|im_start|im_end)\|>", _REPLACEMENT_TAG, re.IGNORECASE),
    # Prompt section delimiters use underscored tags (<intake_document>, ...)
    (r"<\s*/?\s*[a-z]+(?:_[a-z]+)+(?:\s[^>]*)?\s*>", _REPLACEMENT_TAG, re.IGNORECASE),
    # Instruction override attempts
    (
        r"ignore\s+(all\s+)?previous\s+instructions?",
        _REPLACEMENT_FILTERED,
        re.IGNORECASE,
    ),
    (r"disregard\s+(all\s+)?(prior|previous)", _REPLACEMENT_FILTERED, re.IGNORECASE),
    (r"new\s+instructions?\s*:", _REPLACEMENT_FILTERED_COLON, re.IGNORECASE),
    (r"\[/?INST\]", _REPLACEMENT_FILTERED, re.IGNORECASE),
]

_COMPILED_PATTERNS = [
    (re.compile(pattern, flags), replacement)
    for pattern, replacement, flags in _INJECTION_PATTERNS
]


def sanitize_llm_input(text: str) -> str:
    """Sanitize user-provided text before embedding in LLM prompts.

    Security: This is defense-in-depth, not a guarantee against all injection.
    Replacement tokens keep the sanitization visible when debugging prompts.

    Args:
        text: Raw user-provided text.

    Returns:
        Sanitized text with injection patterns neutralized.
    """
    if not text:
        return text

    # NFKC converts fullwidth/styled variants (e.g., Ａ -> A)
    result = unicodedata.normalize("NFKC", text)
    result = _ZERO_WIDTH_PATTERN.sub("", result)
    result = _CONTROL_CHAR_PATTERN.sub("", result)

    for pattern, replacement in _COMPILED_PATTERNS:
        result = pattern.sub(replacement, result)

    return result


def truncate_text(text: str | None, limit: int) -> str:
    """Cut ``text`` to at most ``limit`` characters (None becomes "")."""
    if not text:
        return ""
    return text[:limit]
