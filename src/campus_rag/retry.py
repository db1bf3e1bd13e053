from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging
from random import random
from time import sleep as _sleep
from typing import TypeVar

import httpx

from campus_rag.errors import ConfigurationError, ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retryable_http_error(exc: httpx.HTTPError) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
        return status_code == 429 or status_code >= 500
    return isinstance(exc, (httpx.TimeoutException, httpx.TransportError))


def is_retryable_error(exc: BaseException) -> bool:
    if isinstance(exc, ProviderError):
        return exc.retryable
    if isinstance(exc, httpx.HTTPError):
        return is_retryable_http_error(exc)
    return False


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 8.0
    jitter_ratio: float = 0.2
    is_retryable: Callable[[BaseException], bool] = is_retryable_error
    sleep: Callable[[float], None] = _sleep

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be >= 1")
        if self.base_delay_seconds < 0 or self.max_delay_seconds < 0:
            raise ConfigurationError("retry delays must be >= 0")
        if self.jitter_ratio < 0:
            raise ConfigurationError("jitter_ratio must be >= 0")

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay_seconds * (2 ** (attempt - 1)), self.max_delay_seconds)

    def call(self, fn: Callable[[], T]) -> T:
        attempt = 1
        while True:
            try:
                return fn()
            except Exception as exc:
                if attempt >= self.max_attempts or not self.is_retryable(exc):
                    raise
                delay = self.delay_for(attempt)
                delay += random() * self.jitter_ratio * delay
                logger.warning(
                    "[retry] attempt=%d/%d failed error=%r; retrying in %.2fs",
                    attempt,
                    self.max_attempts,
                    exc,
                    delay,
                )
                self.sleep(delay)
                attempt += 1
