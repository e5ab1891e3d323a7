"""Map any provider-call failure onto quota / transient / fatal."""

import asyncio
from enum import Enum

import httpx

from infinet_ai.errors import ConfigurationError, MediaError, ProviderError


class ErrorClass(str, Enum):
    QUOTA_EXHAUSTED = "quota_exhausted"
    TRANSIENT = "transient"
    FATAL = "fatal"


QUOTA_VOCABULARY = (
    "quota",
    "rate limit",
    "rate_limit",
    "ratelimit",
    "token limit",
    "resource exhausted",
    "resource_exhausted",
    "too many requests",
    "billing",
    "insufficient_quota",
    "permission denied",
    "permission_denied",
    "api key not valid",
    "invalid api key",
    "invalid_api_key",
)

# 401/403 mean the credential is unusable; treated like exhaustion so the walk moves on.
QUOTA_STATUSES = {401, 402, 403, 429}
TRANSIENT_STATUSES = {408, 409, 425}
FATAL_STATUSES = {400, 404, 422}


def _error_text(error: BaseException) -> str:
    parts = [str(error)]
    body = getattr(error, "body", None)
    if body:
        parts.append(str(body))
    return " ".join(parts).lower()


def _status_of(error: BaseException) -> int | None:
    if isinstance(error, ProviderError):
        return error.status_code
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    return None


def classify(error: BaseException) -> ErrorClass:
    """Classify a failure. Pure; safe to call anywhere."""
    if isinstance(error, ConfigurationError):
        return ErrorClass.FATAL

    status = _status_of(error)
    text = _error_text(error)

    if status in QUOTA_STATUSES or "429" in text or any(word in text for word in QUOTA_VOCABULARY):
        return ErrorClass.QUOTA_EXHAUSTED

    if isinstance(error, (asyncio.TimeoutError, TimeoutError, httpx.TransportError, MediaError)):
        return ErrorClass.TRANSIENT
    if status is not None and (status in TRANSIENT_STATUSES or status >= 500):
        return ErrorClass.TRANSIENT

    if status in FATAL_STATUSES:
        return ErrorClass.FATAL

    return ErrorClass.TRANSIENT
