"""Tests for the bounded save retry policy."""

from __future__ import annotations

import pytest

from core.pipeline import RecordExistsError, StoreWriteError
from core.retry import RetriesExhaustedError, fixed_delay, with_retry


class FlakyOperation:
    """Fail a fixed number of times, then return a value."""

    def __init__(self, failures: int, error_factory=lambda n: StoreWriteError(f"locked #{n}")) -> None:
        self.failures = failures
        self.error_factory = error_factory
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error_factory(self.calls)
        return "ok"


class SleepRecorder:
    """Record requested sleeps instead of sleeping."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def test_first_success_does_not_sleep():
    """A successful first attempt returns immediately."""
    operation = FlakyOperation(failures=0)
    sleeper = SleepRecorder()

    result = with_retry(operation, max_retries=3, delay=0.5, sleep_fn=sleeper)

    assert result == "ok"
    assert operation.calls == 1
    assert sleeper.calls == []


@pytest.mark.parametrize("failures", [1, 2, 3])
def test_recovers_within_retry_budget(failures: int):
    """k <= max_retries failures followed by success yields the result after k+1 calls."""
    operation = FlakyOperation(failures=failures)
    sleeper = SleepRecorder()

    result = with_retry(
        operation,
        max_retries=3,
        delay=0.1,
        retry_on=(StoreWriteError,),
        sleep_fn=sleeper,
    )

    assert result == "ok"
    assert operation.calls == failures + 1
    assert sleeper.calls == [0.1] * failures


def test_exhaustion_raises_with_last_error():
    """max_retries + 1 consecutive failures stop without a further attempt."""
    operation = FlakyOperation(failures=100)
    sleeper = SleepRecorder()

    with pytest.raises(RetriesExhaustedError) as exc_info:
        with_retry(
            operation,
            max_retries=2,
            delay=0.1,
            retry_on=(StoreWriteError,),
            sleep_fn=sleeper,
        )

    assert operation.calls == 3
    assert exc_info.value.attempts == 3
    assert isinstance(exc_info.value.last_error, StoreWriteError)
    assert str(exc_info.value.last_error) == "locked #3"
    assert exc_info.value.__cause__ is exc_info.value.last_error
    # No pause after the final attempt
    assert sleeper.calls == [0.1, 0.1]


def test_zero_retries_means_single_attempt():
    """max_retries=0 allows exactly one call."""
    operation = FlakyOperation(failures=1)

    with pytest.raises(RetriesExhaustedError) as exc_info:
        with_retry(operation, max_retries=0, sleep_fn=SleepRecorder())

    assert operation.calls == 1
    assert exc_info.value.attempts == 1


def test_non_retryable_error_propagates_immediately():
    """Errors outside retry_on are not retried and keep their type."""
    operation = FlakyOperation(failures=5, error_factory=lambda n: RecordExistsError("dup"))
    sleeper = SleepRecorder()

    with pytest.raises(RecordExistsError):
        with_retry(
            operation,
            max_retries=5,
            retry_on=(StoreWriteError,),
            sleep_fn=sleeper,
        )

    assert operation.calls == 1
    assert sleeper.calls == []


def test_custom_backoff_and_retry_hook():
    """backoff controls pauses; on_retry sees each retry number and error."""
    operation = FlakyOperation(failures=2)
    sleeper = SleepRecorder()
    notices: list[tuple[int, int, str]] = []

    result = with_retry(
        operation,
        max_retries=4,
        backoff=lambda attempt: 0.05 * (2 ** attempt),
        sleep_fn=sleeper,
        on_retry=lambda attempt, limit, exc: notices.append((attempt, limit, str(exc))),
    )

    assert result == "ok"
    assert sleeper.calls == [0.1, 0.2]
    assert notices == [(1, 4, "locked #1"), (2, 4, "locked #2")]


def test_invalid_arguments_rejected():
    """Negative retry counts and delays are programming errors."""
    with pytest.raises(ValueError):
        with_retry(lambda: None, max_retries=-1)
    with pytest.raises(ValueError):
        fixed_delay(-0.1)
