"""Circuit breaker and retry decorator."""

from __future__ import annotations

import pytest

from kwotd.utils.resilience import (
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
    backoff_delays,
    retry_async,
)


async def _fail() -> None:
    raise ConnectionError("down")


async def _ok() -> str:
    return "ok"


async def test_circuit_opens_after_threshold() -> None:
    cb = CircuitBreaker("svc", failure_threshold=2, cooldown_seconds=60)

    for _ in range(2):
        with pytest.raises(ConnectionError):
            await cb.call(_fail)

    assert cb.state == CircuitState.OPEN
    with pytest.raises(CircuitOpenError):
        await cb.call(_ok)
    assert cb.total_trips == 1


async def test_half_open_success_closes_circuit() -> None:
    cb = CircuitBreaker("svc", failure_threshold=1, cooldown_seconds=0)
    with pytest.raises(ConnectionError):
        await cb.call(_fail)

    assert cb.state == CircuitState.HALF_OPEN
    assert await cb.call(_ok) == "ok"
    assert cb.state == CircuitState.CLOSED


async def test_success_resets_failure_count() -> None:
    cb = CircuitBreaker("svc", failure_threshold=2)
    with pytest.raises(ConnectionError):
        await cb.call(_fail)
    await cb.call(_ok)
    with pytest.raises(ConnectionError):
        await cb.call(_fail)

    assert cb.state == CircuitState.CLOSED
    assert cb.to_dict()["failure_count"] == 1


async def test_excluded_errors_do_not_count() -> None:
    async def rejected() -> None:
        raise ValueError("bad input")

    cb = CircuitBreaker("svc", failure_threshold=1, excluded=(ValueError,))
    for _ in range(3):
        with pytest.raises(ValueError):
            await cb.call(rejected)

    assert cb.state == CircuitState.CLOSED
    assert cb.to_dict()["failure_count"] == 0


async def test_retry_until_success() -> None:
    attempts = []

    @retry_async(max_attempts=3, base_delay=0, exceptions=(ConnectionError,))
    async def flaky() -> str:
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("again")
        return "done"

    assert await flaky() == "done"
    assert len(attempts) == 3


async def test_retry_gives_up() -> None:
    attempts = []

    @retry_async(max_attempts=2, base_delay=0, exceptions=(ConnectionError,))
    async def broken() -> None:
        attempts.append(1)
        raise ConnectionError("never")

    with pytest.raises(ConnectionError):
        await broken()
    assert len(attempts) == 2


async def test_no_retry_exceptions_raise_immediately() -> None:
    attempts = []

    @retry_async(
        max_attempts=3, base_delay=0,
        exceptions=(OSError,), no_retry=(FileNotFoundError,),
    )
    async def missing() -> None:
        attempts.append(1)
        raise FileNotFoundError("gone")

    with pytest.raises(FileNotFoundError):
        await missing()
    assert len(attempts) == 1


async def test_failed_trial_call_reopens_with_longer_cooldown() -> None:
    cb = CircuitBreaker("svc", failure_threshold=1, cooldown_seconds=0, trial_cooldown_seconds=60)
    with pytest.raises(ConnectionError):
        await cb.call(_fail)
    with pytest.raises(ConnectionError):
        await cb.call(_fail)

    assert cb.state == CircuitState.OPEN
    assert cb.to_dict()["state"] == "OPEN"
    assert 0 < cb.remaining_cooldown <= 60


def test_backoff_delays_are_capped() -> None:
    assert backoff_delays(5, 2.0, 10.0) == [2.0, 4.0, 8.0, 10.0]
    assert backoff_delays(1, 2.0, 10.0) == []
