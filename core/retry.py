"""Bounded retry with a pause between attempts."""

from __future__ import annotations

import time
from typing import Callable, TypeVar

T = TypeVar("T")


class RetriesExhaustedError(Exception):
    """Raised when every allowed attempt of an operation failed."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"retries exhausted after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def fixed_delay(delay: float) -> Callable[[int], float]:
    """Backoff that waits the same number of seconds before every retry."""
    if delay < 0:
        raise ValueError("delay must be >= 0")

    def _backoff(attempt: int) -> float:
        _ = attempt
        return delay

    return _backoff


def with_retry(
    operation: Callable[[], T],
    *,
    max_retries: int,
    delay: float = 0.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    backoff: Callable[[int], float] | None = None,
    sleep_fn: Callable[[float], None] | None = None,
    on_retry: Callable[[int, int, BaseException], None] | None = None,
) -> T:
    """
    Call operation until it succeeds, at most max_retries + 1 times.

    Args:
        operation: Zero-argument callable to run.
        max_retries: Additional attempts allowed after the first failure.
        delay: Seconds to wait between attempts (ignored when backoff is set).
        retry_on: Exception types that trigger another attempt. Anything else
            propagates immediately.
        backoff: Maps the retry number (1-based) to seconds to wait.
        sleep_fn: Sleep implementation (tests pass a recorder).
        on_retry: Called as on_retry(retry_number, max_retries, error) before
            each pause.

    Returns:
        The result of the first successful call.

    Raises:
        RetriesExhaustedError: Every attempt raised one of retry_on. Chained
            from the last error.
    """
    if max_retries < 0:
        raise ValueError("max_retries must be >= 0")

    pause = backoff or fixed_delay(delay)
    sleep = sleep_fn or time.sleep

    attempt = 0
    while True:
        attempt += 1
        try:
            return operation()
        except retry_on as exc:
            if attempt > max_retries:
                raise RetriesExhaustedError(attempt, exc) from exc
            if on_retry:
                on_retry(attempt, max_retries, exc)
            sleep(pause(attempt))
