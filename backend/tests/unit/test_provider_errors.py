"""Tests for the provider error taxonomy.

Adapters raise these; the guarded caller catches ProviderError and records a
transport failure. ConfigurationError stays outside that hierarchy.
"""

import pytest

from intake_pilot.providers.errors import (
    AuthenticationError,
    ConfigurationError,
    ContentFilterError,
    ContextLengthError,
    ModelNotFoundError,
    ProviderError,
    RateLimitError,
    TransientError,
)

_TRANSPORT_ERRORS = [
    RateLimitError,
    AuthenticationError,
    ModelNotFoundError,
    ContentFilterError,
    ContextLengthError,
    TransientError,
]


class TestProviderErrorHierarchy:
    """Test error inheritance structure."""

    @pytest.mark.parametrize("error_class", _TRANSPORT_ERRORS)
    def test_all_errors_inherit_from_provider_error(self, error_class):
        assert isinstance(error_class("test message"), ProviderError)

    @pytest.mark.parametrize("error_class", _TRANSPORT_ERRORS)
    def test_errors_preserve_message(self, error_class):
        assert str(error_class("specific error message")) == "specific error message"

    def test_configuration_error_is_not_a_provider_error(self):
        """Missing credentials must not be swallowed as a per-call failure."""
        assert not isinstance(ConfigurationError("no key"), ProviderError)


class TestRateLimitError:
    def test_retry_after_defaults_to_none(self):
        assert RateLimitError("slow down").retry_after_seconds is None

    def test_retry_after_is_kept(self):
        error = RateLimitError("slow down", retry_after_seconds=12.5)
        assert error.retry_after_seconds == 12.5
