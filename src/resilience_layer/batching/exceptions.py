"""
Batching exceptions.
"""

from resilience_layer.exceptions import ResilienceError


class JSONParseError(ResilienceError):
    """
    Provider response could not be parsed as JSON.

    Raised when both the strict and the repair stage fail; the batch
    aggregator then falls back to heuristic per-item results.
    """

    def __init__(self, message: str, raw_content: str | None = None, parse_error: str | None = None):
        """
        Args:
            message: Error description
            raw_content: First 500 chars of the content (for debugging)
            parse_error: Underlying json.JSONDecodeError message
        """
        details = {}
        if raw_content:
            details["content_snippet"] = raw_content[:500]
        if parse_error:
            details["parse_error"] = parse_error

        super().__init__(message, details)
