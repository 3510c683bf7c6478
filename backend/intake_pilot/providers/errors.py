"""Provider error taxonomy.

Error classes for the LLM provider layer. Adapters translate SDK exceptions
into these so the guarded caller can report transport failures without
knowing which vendor produced them.

WHY SEPARATE ERROR CLASSES:
- Callers can tell "model unreachable" apart from "model misconfigured"
- Provider-agnostic error handling (adapters map to these)
"""


__all__ = [
    "ConfigurationError",
    "ProviderError",
    "RateLimitError",
    "AuthenticationError",
    "ModelNotFoundError",
    "ContentFilterError",
    "ContextLengthError",
    "TransientError",
]


class ConfigurationError(Exception):
    """Required credential or endpoint is missing or invalid.

    Raised at construction time (config validation, caller setup), never
    from inside a model call. Deliberately NOT a ProviderError: it is fatal
    for the process, not a per-request transport failure.
    """

    pass


class ProviderError(Exception):
    """Base class for all provider (transport) errors.

    All provider-specific exceptions inherit from this class, allowing
    callers to catch every backend failure with a single handler.
    """

    pass


class RateLimitError(ProviderError):
    """Rate limit or quota exceeded."""

    def __init__(self, message: str, retry_after_seconds: float | None = None):
        """Initialize RateLimitError.

        Args:
            message: Error description from the provider.
            retry_after_seconds: Optional hint from provider on when to retry.
        """
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class AuthenticationError(ProviderError):
    """Invalid or expired API key."""

    pass


class ModelNotFoundError(ProviderError):
    """Requested model doesn't exist or isn't accessible."""

    pass


class ContentFilterError(ProviderError):
    """Content blocked by the provider's safety filter."""

    pass


class ContextLengthError(ProviderError):
    """Input exceeded the model's context window.

    Common with long intake documents plus several attachments.
    """

    pass


class TransientError(ProviderError):
    """Temporary failure (network, timeout, server overload)."""

    pass
