"""KWOTD Notifier — Resilience Utilities.

Protects the Telegram API calls made while posting a notification.

The feed read is never retried here: a failed run is rescheduled as a
whole by the host scheduler. Only the posting step, which may hit a
flaky network after the run has already consumed the new word, gets
in-process retries and a circuit breaker.

Circuit states:
  CLOSED    → posts go through
  OPEN      → Telegram keeps failing; posts fail fast until the cooldown ends
  HALF_OPEN → cooldown over; the next post decides CLOSED or OPEN again
"""

from __future__ import annotations

import asyncio
import functools
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence, Type

from kwotd.utils.logger import get_logger

logger = get_logger(__name__)


class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitOpenError(Exception):
    """A call was refused because the circuit is open."""

    def __init__(self, name: str, remaining_seconds: float) -> None:
        self.name = name
        self.remaining_seconds = remaining_seconds
        super().__init__(
            f"Circuit '{name}' is OPEN, retry in {remaining_seconds:.0f}s"
        )


class CircuitBreaker:
    """Fail fast after repeated failures of one external service.

    `failure_threshold` consecutive failures open the circuit for
    `cooldown_seconds`. The first call after the cooldown is a trial call:
    success closes the circuit, failure reopens it for
    `trial_cooldown_seconds`. Exceptions listed in `excluded` propagate
    without counting either way.

    Attributes:
        name: Service name used in logs and /status.
        failure_threshold: Consecutive failures that open the circuit.
        cooldown_seconds: How long a freshly opened circuit stays open.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        cooldown_seconds: float = 300.0,
        trial_cooldown_seconds: Optional[float] = None,
        excluded: Sequence[Type[BaseException]] = (),
    ) -> None:
        self.name = name
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self.trial_cooldown_seconds = (
            trial_cooldown_seconds if trial_cooldown_seconds is not None
            else cooldown_seconds * 2
        )
        self.excluded = tuple(excluded)

        self._open = False
        self._open_for = 0.0
        self._opened_at = 0.0
        self._failures = 0
        self._trips = 0

    @property
    def state(self) -> CircuitState:
        if not self._open:
            return CircuitState.CLOSED
        if time.monotonic() - self._opened_at >= self._open_for:
            return CircuitState.HALF_OPEN
        return CircuitState.OPEN

    @property
    def remaining_cooldown(self) -> float:
        if not self._open:
            return 0.0
        return max(0.0, self._open_for - (time.monotonic() - self._opened_at))

    @property
    def total_trips(self) -> int:
        return self._trips

    async def call(
        self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any,
    ) -> Any:
        """Await `func(*args, **kwargs)` unless the circuit is open.

        Raises:
            CircuitOpenError: If the circuit is OPEN.
            Exception: Whatever `func` raised, after it is counted.
        """
        state = self.state
        if state == CircuitState.OPEN:
            raise CircuitOpenError(self.name, self.remaining_cooldown)

        try:
            result = await func(*args, **kwargs)
        except self.excluded:
            raise
        except Exception as e:
            self._record_failure(state, e)
            raise

        if state == CircuitState.HALF_OPEN:
            logger.info("Circuit '%s': trial call succeeded, closing", self.name)
        self._open = False
        self._failures = 0
        return result

    def _record_failure(self, state: CircuitState, error: Exception) -> None:
        self._failures += 1
        if state == CircuitState.HALF_OPEN:
            self._trip(self.trial_cooldown_seconds)
            logger.warning(
                "Circuit '%s': trial call failed (%s), open for %.0fs",
                self.name, type(error).__name__, self._open_for,
            )
        elif self._failures >= self.failure_threshold:
            self._trip(self.cooldown_seconds)
            self._trips += 1
            logger.warning(
                "Circuit '%s': opened after %d failures (trip #%d), open for %.0fs: %s",
                self.name, self._failures, self._trips, self._open_for,
                str(error)[:200],
            )
        else:
            logger.debug(
                "Circuit '%s': failure %d/%d (%s)",
                self.name, self._failures, self.failure_threshold,
                type(error).__name__,
            )

    def _trip(self, seconds: float) -> None:
        self._open = True
        self._open_for = seconds
        self._opened_at = time.monotonic()

    def to_dict(self) -> dict[str, Any]:
        """State snapshot for /status."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failures,
            "total_trips": self._trips,
            "remaining_cooldown": round(self.remaining_cooldown, 1),
        }


def backoff_delays(max_attempts: int, base_delay: float, max_delay: float) -> list[float]:
    """Sleep before each retry: base, 2×base, 4×base… capped at max_delay."""
    return [min(base_delay * 2 ** i, max_delay) for i in range(max_attempts - 1)]


def retry_async(
    max_attempts: int = 3,
    base_delay: float = 2.0,
    max_delay: float = 60.0,
    exceptions: Sequence[Type[BaseException]] = (Exception,),
    no_retry: Sequence[Type[BaseException]] = (),
) -> Callable:
    """Retry an async function on transient errors with exponential backoff.

    Args:
        max_attempts: Attempts in total, the first one included.
        base_delay: Seconds before the first retry; doubled each time.
        max_delay: Upper bound on a single delay.
        exceptions: Errors worth another attempt.
        no_retry: Subclasses of `exceptions` that are raised immediately,
            e.g. a rejected request that would fail the same way again.
    """
    retry_on = tuple(exceptions)
    give_up_on = tuple(no_retry)
    delays = backoff_delays(max_attempts, base_delay, max_delay)

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt, delay in enumerate(delays, start=1):
                try:
                    return await func(*args, **kwargs)
                except give_up_on:
                    raise
                except retry_on as e:
                    logger.debug(
                        "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                        func.__name__, attempt, max_attempts, delay, e,
                    )
                    await asyncio.sleep(delay)
            try:
                return await func(*args, **kwargs)
            except retry_on as e:
                if not isinstance(e, give_up_on):
                    logger.warning(
                        "%s failed after %d attempts: %s",
                        func.__name__, max_attempts, e,
                    )
                raise
        return wrapper
    return decorator
