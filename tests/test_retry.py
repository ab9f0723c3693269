"""Retry policy and backoff behaviour."""

from __future__ import annotations

import asyncio

import pytest

from app.services.retry import RetryPolicy, retry_async
from conftest import RecordingSleep


class Flaky:
    def __init__(self, failures: int, exc_type: type[Exception] = ConnectionError) -> None:
        self.failures = failures
        self.exc_type = exc_type
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc_type(f"failure {self.calls}")
        return "ok"


def test_policy_delays_grow_exponentially():
    policy = RetryPolicy(max_attempts=3, initial_delay=1.0, backoff_multiplier=2.0)

    assert [policy.delay(attempt) for attempt in range(3)] == [1.0, 2.0, 4.0]


def test_policy_rejects_zero_attempts():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)


def test_retry_returns_once_operation_succeeds():
    operation = Flaky(failures=2)
    sleep = RecordingSleep()

    result = asyncio.run(retry_async(operation, RetryPolicy(), sleep=sleep))

    assert result == "ok"
    assert operation.calls == 3
    assert sleep.delays == [1.0, 2.0]


def test_retry_gives_up_after_max_attempts_and_reraises_last_error():
    operation = Flaky(failures=10)
    sleep = RecordingSleep()
    retried: list[int] = []

    with pytest.raises(ConnectionError, match="failure 3"):
        asyncio.run(
            retry_async(
                operation,
                RetryPolicy(max_attempts=3),
                sleep=sleep,
                on_retry=lambda attempt, exc, delay: retried.append(attempt),
            )
        )

    assert operation.calls == 3
    assert sleep.delays == [1.0, 2.0, 4.0]
    assert retried == [1, 2]


def test_retry_does_not_retry_unlisted_errors():
    operation = Flaky(failures=1, exc_type=KeyError)
    sleep = RecordingSleep()

    with pytest.raises(KeyError):
        asyncio.run(
            retry_async(operation, RetryPolicy(), retry_on=(ConnectionError,), sleep=sleep)
        )

    assert operation.calls == 1
    assert sleep.delays == []


def test_retry_uses_real_sleep_for_short_delays():
    operation = Flaky(failures=1)

    result = asyncio.run(
        retry_async(operation, RetryPolicy(max_attempts=2, initial_delay=0.01))
    )

    assert result == "ok"
    assert operation.calls == 2


def test_retry_waits_after_every_failed_attempt():
    operation = Flaky(failures=10)
    sleep = RecordingSleep()

    with pytest.raises(ConnectionError):
        asyncio.run(retry_async(operation, RetryPolicy(), sleep=sleep))

    assert operation.calls == 3
    assert sleep.delays == [1.0, 2.0, 4.0]


def test_single_attempt_policy_still_backs_off_once():
    operation = Flaky(failures=1)
    sleep = RecordingSleep()

    with pytest.raises(ConnectionError, match="failure 1"):
        asyncio.run(retry_async(operation, RetryPolicy(max_attempts=1, initial_delay=0.5), sleep=sleep))

    assert sleep.delays == [0.5]
