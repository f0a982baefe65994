"""Retry policy with exponential backoff for model-service calls."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# openai exception class names, matched by name so the SDK stays a lazy import.
_FAIL_FAST_NAMES = {
    "AuthenticationError",
    "PermissionDeniedError",
    "BadRequestError",
    "NotFoundError",
    "UnprocessableEntityError",
}

_RETRYABLE_NAMES = {
    "RateLimitError",
    "APITimeoutError",
    "APIConnectionError",
    "InternalServerError",
    "ServiceUnavailableError",
}


def _coerce_status_code(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return None
    return None


def status_code_of(exc: BaseException) -> int | None:
    status_code = _coerce_status_code(getattr(exc, "status_code", None))
    if status_code is None:
        response = getattr(exc, "response", None)
        status_code = _coerce_status_code(getattr(response, "status_code", None))
    return status_code


class RetryPolicy:
    """Exponential backoff for transient failures; everything else is re-raised at once."""

    max_retries: int
    max_backoff_seconds: int
    sleep_fn: Callable[[float], None]

    def __init__(
        self,
        max_retries: int = 2,
        max_backoff_seconds: int = 8,
        sleep_fn: Callable[[float], None] | None = None,
    ) -> None:
        self.max_retries = max_retries
        self.max_backoff_seconds = max_backoff_seconds
        self.sleep_fn = sleep_fn or time.sleep

    def backoff_seconds(self, attempt_index: int) -> int:
        return min(1 << attempt_index, self.max_backoff_seconds)

    def execute(self, operation: Callable[[], T]) -> T:
        retries = 0
        while True:
            try:
                return operation()
            except Exception as exc:
                if not self.is_retryable(exc) or retries >= self.max_retries:
                    raise
                delay = self.backoff_seconds(retries)
                retries += 1
                logger.warning(
                    f"Model call failed with {exc.__class__.__name__}; "
                    f"retry {retries}/{self.max_retries} in {delay}s"
                )
                self.sleep_fn(delay)

    def is_retryable(self, exc: Exception) -> bool:
        if isinstance(exc, ValueError):
            return False
        name = exc.__class__.__name__
        if name in _FAIL_FAST_NAMES:
            return False
        if isinstance(exc, (TimeoutError, ConnectionError)) or name in _RETRYABLE_NAMES:
            return True
        if name == "APIStatusError":
            status_code = status_code_of(exc)
            return status_code is not None and (status_code >= 500 or status_code == 429)
        return False
