import asyncio

import pytest
from generation_client.error_messages import (
    DEFAULT_MESSAGE,
    classify_error,
    get_friendly_error_message,
)
from generation_client.errors import (
    ApiError,
    IncompleteResultError,
    PollingTimeoutError,
    RemoteOperationError,
)
from generation_client.models import ErrorKind, PollState


@pytest.mark.parametrize(
    "message, kind",
    [
        ("Request failed with status 429", ErrorKind.rate_limited),
        ("Resource has been exhausted (e.g. check quota).", ErrorKind.rate_limited),
        ("API_KEY environment variable is not set.", ErrorKind.configuration_error),
        ("API key not valid. Please pass a valid API key.", ErrorKind.configuration_error),
        ("blocked: SAFETY", ErrorKind.content_policy_blocked),
        ("Request blocked: OTHER. Please adjust your prompt.", ErrorKind.content_policy_blocked),
        (
            "Your prompt contains inappropriate language and was rejected.",
            ErrorKind.content_policy_blocked,
        ),
        ("The model did not generate a response.", ErrorKind.model_no_output),
        ("The model's response did not include an image.", ErrorKind.model_no_output),
        ("Request timed out", ErrorKind.timeout),
        ("Server error: 502. Response: Bad Gateway", ErrorKind.server_error),
        ("prompt is required", ErrorKind.validation_error),
        ("Something odd", ErrorKind.unknown),
    ],
)
def test_message_categories(message, kind):
    """Test raw messages map to their categories."""
    assert classify_error(message).kind == kind


def test_rate_limit_detected_from_status():
    """Test an HTTP 429 status alone marks a rate limit."""
    error = ApiError("Too many requests", status=429)

    assert classify_error(error).kind == ErrorKind.rate_limited


def test_validation_message_is_shown_verbatim():
    """Test validation messages pass through unchanged."""
    friendly = classify_error(ApiError("imageData and prompt are required", status=400))

    assert friendly.kind == ErrorKind.validation_error
    assert friendly.message == "imageData and prompt are required"


def test_short_unknown_message_is_shown_verbatim():
    """Test short unrecognised messages pass through unchanged."""
    assert get_friendly_error_message(RuntimeError("Printer on fire")) == "Printer on fire"


def test_long_unknown_message_uses_fallback():
    """Test long unrecognised messages are replaced by the fallback."""
    message = "z" * 200

    friendly = classify_error(RuntimeError(message))

    assert friendly.kind == ErrorKind.unknown
    assert friendly.message == DEFAULT_MESSAGE


def test_poller_errors_map_to_categories():
    """Test poller failures map to user-facing categories."""
    timed_out = PollingTimeoutError(PollState(handle="operations/1", max_attempts=30, attempts=30))

    assert classify_error(timed_out).kind == ErrorKind.timeout
    assert classify_error(IncompleteResultError()).kind == ErrorKind.model_no_output
    assert (
        classify_error(RemoteOperationError("Generation stopped for safety reasons")).kind
        == ErrorKind.content_policy_blocked
    )


def test_bare_asyncio_timeout_is_a_timeout():
    """Test a message-less asyncio timeout is still a timeout."""
    assert classify_error(asyncio.TimeoutError()).kind == ErrorKind.timeout


def test_missing_error_uses_fallback():
    """Test a missing error falls back to the generic message."""
    assert get_friendly_error_message(None) == DEFAULT_MESSAGE


def test_classification_is_stable():
    """Test classification does not depend on call order."""
    errors = ["blocked: SAFETY", "Request failed with status 429", "x" * 300, "prompt is required"]

    first = [classify_error(e) for e in errors]
    second = [classify_error(e) for e in reversed(errors)][::-1]

    assert first == second
