"""
Error types for the personalization service.

Provider failures are classified into a small set of kinds so the generation
pipeline can decide between falling back to another provider, degrading to
extractive text, or rejecting the request outright.
"""

from enum import Enum
from typing import Optional


class FailureKind(Enum):
    """Typed failure signals reported by text-generation providers."""

    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    SERVER_ERROR = "server_error"
    SERVICE_UNAVAILABLE = "service_unavailable"
    INVALID_REQUEST = "invalid_request"
    MALFORMED_RESPONSE = "malformed_response"


RETRYABLE_KINDS = frozenset(
    {
        FailureKind.RATE_LIMIT,
        FailureKind.TIMEOUT,
        FailureKind.SERVER_ERROR,
        FailureKind.SERVICE_UNAVAILABLE,
    }
)


class PersonalizationError(Exception):
    """Base class for all service errors."""


class InvalidRequest(PersonalizationError):
    """Missing or malformed request fields. Never retried."""


class NotFound(PersonalizationError):
    """A referenced article or user does not exist."""


class CacheUnavailable(PersonalizationError):
    """The cache store could not be reached."""


class ProviderError(PersonalizationError):
    """A text-generation provider call failed."""

    def __init__(self, kind: FailureKind, provider: str = "", message: str = ""):
        self.kind = kind
        self.provider = provider
        super().__init__(message or kind.value)

    @property
    def retryable(self) -> bool:
        return is_retryable(self.kind)


class UpstreamRetryable(ProviderError):
    """5xx, timeout, rate-limit or service-unavailable from a provider."""


class UpstreamFatal(ProviderError):
    """Provider answered, but the answer failed structural validation."""


def is_retryable(kind: FailureKind) -> bool:
    return kind in RETRYABLE_KINDS


_MESSAGE_MARKERS = (
    ("rate limit", FailureKind.RATE_LIMIT),
    ("rate_limit", FailureKind.RATE_LIMIT),
    ("too many requests", FailureKind.RATE_LIMIT),
    ("timed out", FailureKind.TIMEOUT),
    ("timeout", FailureKind.TIMEOUT),
    ("service unavailable", FailureKind.SERVICE_UNAVAILABLE),
    ("overloaded", FailureKind.SERVICE_UNAVAILABLE),
    ("internal server error", FailureKind.SERVER_ERROR),
    ("bad gateway", FailureKind.SERVER_ERROR),
)


def _status_code(exc: BaseException) -> Optional[int]:
    code = getattr(exc, "status_code", None)
    if code is None:
        response = getattr(exc, "response", None)
        code = getattr(response, "status_code", None)
    try:
        return int(code) if code is not None else None
    except (TypeError, ValueError):
        return None


def classify_failure(exc: BaseException) -> FailureKind:
    """Map an arbitrary provider exception to a FailureKind.

    Status codes win over exception types, which win over message markers.
    Anything unrecognised is treated as a server error so it stays retryable.
    """
    if isinstance(exc, ProviderError):
        return exc.kind

    code = _status_code(exc)
    if code is not None:
        if code == 429:
            return FailureKind.RATE_LIMIT
        if code in (408, 504):
            return FailureKind.TIMEOUT
        if code == 503:
            return FailureKind.SERVICE_UNAVAILABLE
        if code >= 500:
            return FailureKind.SERVER_ERROR
        if 400 <= code < 500:
            return FailureKind.INVALID_REQUEST

    if isinstance(exc, TimeoutError) or "timeout" in type(exc).__name__.lower():
        return FailureKind.TIMEOUT
    if "ratelimit" in type(exc).__name__.lower():
        return FailureKind.RATE_LIMIT

    message = str(exc).lower()
    for marker, kind in _MESSAGE_MARKERS:
        if marker in message:
            return kind

    if isinstance(exc, (ValueError, TypeError)):
        return FailureKind.INVALID_REQUEST
    return FailureKind.SERVER_ERROR


def to_provider_error(exc: BaseException, provider: str = "") -> ProviderError:
    """Wrap an exception in the matching ProviderError subclass."""
    if isinstance(exc, ProviderError):
        return exc
    kind = classify_failure(exc)
    if kind == FailureKind.MALFORMED_RESPONSE:
        return UpstreamFatal(kind, provider, str(exc))
    if is_retryable(kind):
        return UpstreamRetryable(kind, provider, str(exc))
    return ProviderError(kind, provider, str(exc))
