"""
User-facing error messages.
"""

from resilience_layer.errors.user_messages import (
    ErrorContext,
    UserFriendlyMessage,
    get_user_friendly_message,
)

__all__ = ["ErrorContext", "UserFriendlyMessage", "get_user_friendly_message"]
