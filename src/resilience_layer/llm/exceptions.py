"""
Custom exceptions for the LLM provider layer.

Messages of HTTP-shaped failures always carry ``HTTP <code>`` so the retry
executor's status-code classification applies without provider-specific
knowledge.
"""

from resilience_layer.exceptions import ResilienceError


class LLMClientError(ResilienceError):
    """
    Base exception for all LLM client errors.

    All LLM-specific exceptions inherit from this to allow catching
    any provider-related error with a single except clause.
    """


class LLMConnectionError(LLMClientError):
    """
    Raised when unable to reach the provider.

    Includes network errors, timeouts, DNS failures, etc.
    The retry executor always treats this type as a network error.
    """


class LLMGenerationError(LLMClientError):
    """
    Raised when the provider returns an error during generation.

    Examples:
    - HTTP 5xx from the provider
    - Empty candidate list
    - Invalid JSON envelope
    """


class LLMRateLimitError(LLMClientError):
    """Raised on HTTP 429 from the provider."""


class LLMTimeoutError(LLMConnectionError):
    """
    Raised when generation exceeds the client timeout.

    Separate from generic connection errors to allow specific handling
    at the API boundary (504 instead of 502).
    """


class LLMModelNotAvailableError(LLMGenerationError):
    """
    Raised when the requested model does not exist on the provider.

    Not retryable: the message carries HTTP 404.
    """
