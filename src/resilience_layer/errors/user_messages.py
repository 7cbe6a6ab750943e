"""
Maps technical errors to user-facing messages.

The first matching pattern (case-insensitive, against the error message)
wins. The raw error text is never part of the returned message.
"""

import re
from typing import Optional

from pydantic import BaseModel


class ErrorContext(BaseModel):
    action: Optional[str] = None  # What the user was trying to do
    resource: Optional[str] = None  # What resource was involved


class UserFriendlyMessage(BaseModel):
    message: str
    action: str


GENERIC_MESSAGE = "Something went wrong. Please try again, or contact support if the problem continues."

_PATTERNS: list[tuple[re.Pattern[str], str, str]] = [
    (
        re.compile(r"authentication|unauthorized|login|session"),
        "Please log in to continue. Your session may have expired.",
        "Log in",
    ),
    (
        re.compile(r"permission|forbidden|access denied"),
        "You don't have permission to perform this action.",
        "Contact your administrator",
    ),
    (
        re.compile(r"rate limit|too many requests|429"),
        "Too many requests. Please wait a moment and try again.",
        "Wait and retry",
    ),
    (
        re.compile(r"circuit open|circuit breaker|service unavailable|503|maintenance"),
        "The service is temporarily unavailable. Please try again soon.",
        "Check back later",
    ),
    (
        re.compile(r"network|connection|timeout|timed out|fetch failed"),
        "Connection problem. Please check your internet connection and try again.",
        "Retry",
    ),
    (
        re.compile(r"event not found"),
        "We couldn't find that event. Try adding it to your board first, or search for it again.",
        "Search again",
    ),
    (
        re.compile(r"not found|does not exist|404"),
        "We couldn't find what you're looking for. It may have been removed or the link is incorrect.",
        "Go back or search again",
    ),
    (
        re.compile(r"invalid|validation|required|missing field"),
        "Some information is missing or incorrect. Please check your input and try again.",
        "Check your input",
    ),
    (
        re.compile(r"date range|start date|end date"),
        "The date range is invalid. Please make sure the start date is before the end date.",
        "Adjust dates",
    ),
    (
        re.compile(r"save failed|could not save|failed to save"),
        "Couldn't save your changes. Please try again, or contact support if the problem persists.",
        "Try again",
    ),
    (
        re.compile(r"update failed|could not update"),
        "Couldn't update this item. Please try again.",
        "Retry",
    ),
    (
        re.compile(r"delete failed|could not delete"),
        "Couldn't delete this item. Please try again.",
        "Retry",
    ),
    (
        re.compile(r"search failed|no results|no events found"),
        "No events found matching your criteria. Try adjusting your search filters or keywords.",
        "Modify search",
    ),
    (
        re.compile(r"search.*error|query.*failed"),
        "Search encountered an error. Please try again with different keywords or filters.",
        "Try different search",
    ),
    (
        re.compile(r"server error|internal error|\b50[02]\b"),
        "Something went wrong on our end. Please try again in a moment.",
        "Try again later",
    ),
    (
        re.compile(r"failed|error occurred"),
        GENERIC_MESSAGE,
        "Try again",
    ),
]

_ACTION_PLACEHOLDER = re.compile(r"this action|this item|your changes", re.IGNORECASE)
_RESOURCE_PLACEHOLDER = re.compile(r"this item|what you're looking for", re.IGNORECASE)
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z])(?=[A-Z])")


def _error_text(error: BaseException | str) -> str:
    if isinstance(error, str):
        return error
    message = getattr(error, "message", None)
    text = message if isinstance(message, str) else str(error)
    return f"{type(error).__name__} {text}"


def get_user_friendly_message(
    error: BaseException | str,
    context: Optional[ErrorContext] = None,
) -> UserFriendlyMessage:
    """
    Translate ``error`` into a message a user can act on.

    Args:
        error: Exception or raw error text
        context: What the user was doing, used to personalize the message

    Returns:
        UserFriendlyMessage; unmatched errors get the generic message
    """
    # Exception class names are CamelCase; split them so patterns see words
    text = _CAMEL_BOUNDARY.sub(" ", _error_text(error)).lower().strip()

    for pattern, message, action in _PATTERNS:
        if not pattern.search(text):
            continue
        if context and context.action:
            message = _ACTION_PLACEHOLDER.sub(context.action, message, count=1)
        if context and context.resource:
            message = _RESOURCE_PLACEHOLDER.sub(context.resource, message, count=1)
        return UserFriendlyMessage(message=message, action=action)

    if context and context.action:
        return UserFriendlyMessage(
            message=f"Couldn't {context.action}. Please try again, or contact support if the problem persists.",
            action="Try again",
        )
    return UserFriendlyMessage(message=GENERIC_MESSAGE, action="Try again")
