"""
Tests for provider failure classification.
"""

import pytest

from personalization_service.errors import (
    FailureKind,
    ProviderError,
    UpstreamFatal,
    UpstreamRetryable,
    classify_failure,
    to_provider_error,
)


class StatusError(Exception):
    def __init__(self, status_code, message="upstream said no"):
        super().__init__(message)
        self.status_code = status_code


class _Response:
    def __init__(self, status_code):
        self.status_code = status_code


class ResponseError(Exception):
    def __init__(self, status_code):
        super().__init__("http error")
        self.response = _Response(status_code)


class ReadTimeoutError(Exception):
    pass


@pytest.mark.parametrize("code, kind", [
    (429, FailureKind.RATE_LIMIT),
    (408, FailureKind.TIMEOUT),
    (504, FailureKind.TIMEOUT),
    (503, FailureKind.SERVICE_UNAVAILABLE),
    (500, FailureKind.SERVER_ERROR),
    (502, FailureKind.SERVER_ERROR),
    (400, FailureKind.INVALID_REQUEST),
    (401, FailureKind.INVALID_REQUEST),
])
def test_status_codes(code, kind):
    assert classify_failure(StatusError(code)) == kind


def test_status_code_from_response_attribute():
    assert classify_failure(ResponseError(429)) == FailureKind.RATE_LIMIT


def test_status_code_wins_over_message():
    assert classify_failure(StatusError(400, "request timed out")) == FailureKind.INVALID_REQUEST


def test_timeout_types():
    assert classify_failure(TimeoutError()) == FailureKind.TIMEOUT
    assert classify_failure(ReadTimeoutError()) == FailureKind.TIMEOUT


@pytest.mark.parametrize("message, kind", [
    ("Rate limit reached for requests", FailureKind.RATE_LIMIT),
    ("The server is overloaded", FailureKind.SERVICE_UNAVAILABLE),
    ("502 Bad Gateway", FailureKind.SERVER_ERROR),
])
def test_message_markers(message, kind):
    assert classify_failure(RuntimeError(message)) == kind


def test_unknown_errors_stay_retryable():
    assert classify_failure(RuntimeError("something odd")) == FailureKind.SERVER_ERROR
    assert classify_failure(ValueError("bad prompt")) == FailureKind.INVALID_REQUEST


def test_provider_errors_keep_their_kind():
    error = UpstreamFatal(FailureKind.MALFORMED_RESPONSE, "openai")
    assert classify_failure(error) == FailureKind.MALFORMED_RESPONSE
    assert to_provider_error(error) is error


def test_to_provider_error_picks_subclass():
    retryable = to_provider_error(StatusError(503), "deepseek")
    assert isinstance(retryable, UpstreamRetryable)
    assert retryable.retryable
    assert retryable.provider == "deepseek"

    rejected = to_provider_error(StatusError(400), "deepseek")
    assert type(rejected) is ProviderError
    assert not rejected.retryable
