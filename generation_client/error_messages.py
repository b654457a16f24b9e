import re
from typing import Optional, Union

from generation_client.models import ErrorKind, FriendlyError

DEFAULT_MESSAGE = "An unexpected error occurred. Please check the console for details."
MAX_RAW_MESSAGE_LENGTH = 150

_STATUS_429 = re.compile(r"\b429\b")

# Checked in order, first match wins
_RULES = (
    (
        ErrorKind.configuration_error,
        ("api key", "api_key", "credential"),
        "There's an issue with the server's API Key configuration. "
        "Please contact the site administrator.",
    ),
    (
        ErrorKind.content_policy_blocked,
        ("blocked", "safety", "rejected", "violates"),
        "Your request was blocked for safety reasons. "
        "Please adjust your prompt or image and try again.",
    ),
    (
        ErrorKind.model_no_output,
        (
            "did not generate a response",
            "did not include an image",
            "no response",
            "no video uri",
            "no output",
        ),
        "The AI model couldn't process this request. It might be too complex "
        "or unusual. Please try a different prompt.",
    ),
    (
        ErrorKind.timeout,
        ("timed out", "timeout", "network error"),
        "The request timed out. This could be a network issue or the server "
        "is busy. Please try again in a moment.",
    ),
    (
        ErrorKind.server_error,
        ("status 500", "server error"),
        "A server error occurred. Please try again later.",
    ),
)

RATE_LIMITED_MESSAGE = (
    "Too many requests right now. The service quota has been reached, "
    "please wait a moment and try again."
)
_VALIDATION_MARKERS = ("is required", "are required", "cannot be empty")


def _message_of(error: Union[BaseException, str, None]) -> str:
    if error is None:
        return ""
    if isinstance(error, str):
        return error
    return str(error) or type(error).__name__


def _is_rate_limited(status: Optional[int], lowered: str) -> bool:
    if status == 429:
        return True
    return bool(_STATUS_429.search(lowered)) or "quota" in lowered or "rate limit" in lowered


def classify_error(
    error: Union[BaseException, str, None], status: Optional[int] = None
) -> FriendlyError:
    """Map a raw failure to a category and a short sentence a user can act on.

    ``status`` defaults to the ``status`` attribute of the error, if any.
    """
    if status is None:
        status = getattr(error, "status", None)
    message = _message_of(error)
    lowered = message.lower()

    if _is_rate_limited(status, lowered):
        return FriendlyError(kind=ErrorKind.rate_limited, message=RATE_LIMITED_MESSAGE)

    for kind, markers, friendly in _RULES:
        if any(marker in lowered for marker in markers):
            return FriendlyError(kind=kind, message=friendly)

    if any(marker in lowered for marker in _VALIDATION_MARKERS):
        return FriendlyError(kind=ErrorKind.validation_error, message=message)

    if message and len(message) < MAX_RAW_MESSAGE_LENGTH:
        return FriendlyError(kind=ErrorKind.unknown, message=message)
    return FriendlyError(kind=ErrorKind.unknown, message=DEFAULT_MESSAGE)


def get_friendly_error_message(error: Union[BaseException, str, None]) -> str:
    return classify_error(error).message
