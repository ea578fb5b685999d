"""
Retry-until-consistent - absorbs read-replica propagation lag.

Re-runs an assertion until it stops raising or the attempt budget runs out:

    Pending --(returns)--------------------> Satisfied
    Pending --(raises, attempts left)------> wait interval, Pending
    Pending --(raises, budget exhausted)---> Failed, last error re-raised as-is

Any ``Exception`` counts as "not consistent yet". A replica that is still
catching up and an assertion that is simply wrong look the same until the
budget is spent; the final failure is always the assertion's own error, never
a synthetic timeout.

This is the only place in the harness that sleeps.

Usage:
    def replica_reports_zero_balance():
        assert mirror.query(EntityRef.account(account_id)).balance == 0

    retry_until_consistent(replica_reports_zero_balance)

    @eventually(RetryPolicy(attempts=20, interval_ms=500))
    def replica_sees_account():
        assert mirror.query(EntityRef.account(account_id)).account_id == account_id

    replica_sees_account()
"""

from __future__ import annotations

import functools
import time
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from tck.core.config import Settings, get_settings
from tck.core.logging import get_logger

logger = get_logger("resilience")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget for one retry-until-consistent call.

    The default (100 attempts, 200 ms apart) bounds a wrong assertion at
    roughly 20 seconds while covering typical mirror node lag.
    """

    attempts: int = 100
    interval_ms: int = 200

    def __post_init__(self):
        if self.attempts < 1:
            raise ValueError("attempts must be at least 1")
        if self.interval_ms < 0:
            raise ValueError("interval_ms must not be negative")

    @property
    def interval(self) -> float:
        """Interval in seconds."""
        return self.interval_ms / 1000

    @property
    def budget(self) -> float:
        """Upper bound on time spent sleeping, in seconds."""
        return self.interval * (self.attempts - 1)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "RetryPolicy":
        settings = settings or get_settings()
        return cls(attempts=settings.retry_attempts, interval_ms=settings.retry_interval_ms)


DEFAULT_POLICY = RetryPolicy()


@dataclass(frozen=True)
class AttemptRecord:
    """One failed attempt, as seen by ``on_attempt`` callbacks."""

    attempt_number: int
    last_error: BaseException | None


def _log_attempt(name: str, attempts: int, on_attempt: Callable[[AttemptRecord], None] | None):
    def before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        record = AttemptRecord(retry_state.attempt_number, error)
        logger.debug(
            f"{name} not consistent yet "
            f"({record.attempt_number}/{attempts}): {record.last_error!r}"
        )
        if on_attempt:
            on_attempt(record)

    return before_sleep


def retry_until_consistent(
    assertion: Callable[[], T],
    policy: RetryPolicy | None = None,
    on_attempt: Callable[[AttemptRecord], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``assertion`` until it returns, re-raising its last error on exhaustion.

    Only ``Exception`` subclasses are retried. ``pytest.fail()`` raises a
    ``BaseException`` and ends the loop on the first attempt, so signal a
    disagreement with ``assert`` or an ordinary exception.

    Args:
        assertion: Callable that raises while the replica disagrees
        policy: Attempt budget (default: 100 attempts, 200 ms apart)
        on_attempt: Callback(AttemptRecord) after each failed, non-final attempt
        sleep: Sleep function, replaceable in tests

    Returns:
        Whatever the assertion returned on its successful attempt
    """
    policy = policy or DEFAULT_POLICY
    name = getattr(assertion, "__name__", "assertion")

    retrying = Retrying(
        stop=stop_after_attempt(policy.attempts),
        wait=wait_fixed(policy.interval),
        retry=retry_if_exception_type(Exception),
        before_sleep=_log_attempt(name, policy.attempts, on_attempt),
        sleep=sleep,
        reraise=True,
    )
    try:
        return retrying(assertion)
    except Exception as e:
        logger.info(f"{name} still failing after {policy.attempts} attempts: {e!r}")
        raise


def eventually(
    policy: RetryPolicy | None = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator form of ``retry_until_consistent``."""

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            def attempt() -> T:
                return func(*args, **kwargs)

            attempt.__name__ = func.__name__
            return retry_until_consistent(attempt, policy)

        return wrapper

    return decorator
