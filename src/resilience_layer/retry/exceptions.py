"""
Retry layer exceptions.

The retry executor itself rethrows the operation's original error once its
policy is exhausted; the only error it manufactures is the one raised by the
HTTP variant when a response carries a retryable status code.
"""

from resilience_layer.exceptions import ResilienceError


class RetryableHTTPStatusError(ResilienceError):
    """
    Raised inside an HTTP attempt whose response status is configured as retryable.

    The message has the form ``HTTP <code>: <reason>`` so that status-code
    classification matches it like any other HTTP-shaped error.

    Attributes:
        status_code: Response status code
        reason: Response reason phrase
        url: Requested URL
    """

    def __init__(self, status_code: int, reason: str, url: str) -> None:
        self.status_code = status_code
        self.reason = reason
        self.url = url
        super().__init__(
            f"HTTP {status_code}: {reason}",
            details={"status_code": status_code, "url": url},
        )
