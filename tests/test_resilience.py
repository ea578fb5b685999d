"""
Tests for retry-until-consistent.
"""

import pytest

from tck.core.config import Settings
from tck.core.exceptions import EntityNotFound
from tck.schemas.entities import EntityRef
from tck.services.resilience import (
    DEFAULT_POLICY,
    RetryPolicy,
    eventually,
    retry_until_consistent,
)


class FlakyAssertion:
    """Fails ``failures`` times, then returns ``value``."""

    def __init__(self, failures: int, value=None, error_factory=None):
        self.failures = failures
        self.value = value
        self.calls = 0
        self.error_factory = error_factory or (
            lambda n: AssertionError(f"not yet ({n})")
        )
        self.__name__ = "flaky"

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error_factory(self.calls)
        return self.value


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# =============================================================================
# Retry Policy Tests
# =============================================================================


class TestRetryPolicy:
    def test_defaults(self):
        """Default budget is 100 attempts, 200 ms apart."""
        assert DEFAULT_POLICY.attempts == 100
        assert DEFAULT_POLICY.interval_ms == 200
        assert DEFAULT_POLICY.interval == 0.2

    def test_budget_counts_sleeps_between_attempts(self):
        assert RetryPolicy(attempts=5, interval_ms=100).budget == pytest.approx(0.4)

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(attempts=0)

    def test_rejects_negative_interval(self):
        with pytest.raises(ValueError):
            RetryPolicy(interval_ms=-1)

    def test_from_settings(self):
        settings = Settings(_env_file=None, retry_attempts=7, retry_interval_ms=50)

        policy = RetryPolicy.from_settings(settings)

        assert policy == RetryPolicy(attempts=7, interval_ms=50)


# =============================================================================
# Combinator Tests
# =============================================================================


class TestRetryUntilConsistent:
    def test_first_success_does_not_sleep(self):
        sleep = RecordingSleep()
        assertion = FlakyAssertion(failures=0, value="ok")

        result = retry_until_consistent(assertion, sleep=sleep)

        assert result == "ok"
        assert assertion.calls == 1
        assert sleep.delays == []

    def test_succeeds_after_lag(self):
        """Replica catches up on the fourth attempt."""
        sleep = RecordingSleep()
        assertion = FlakyAssertion(failures=3, value=42)

        result = retry_until_consistent(
            assertion, RetryPolicy(attempts=10, interval_ms=200), sleep=sleep
        )

        assert result == 42
        assert assertion.calls == 4
        assert sleep.delays == [0.2, 0.2, 0.2]

    def test_runs_exactly_attempts_times(self):
        sleep = RecordingSleep()
        assertion = FlakyAssertion(failures=100)

        with pytest.raises(AssertionError):
            retry_until_consistent(
                assertion, RetryPolicy(attempts=5, interval_ms=10), sleep=sleep
            )

        assert assertion.calls == 5
        assert len(sleep.delays) == 4

    def test_reraises_last_error_unchanged(self):
        """The final failure is the assertion's own error, not a wrapper."""
        errors = []

        def factory(n):
            errors.append(AssertionError(f"attempt {n}"))
            return errors[-1]

        assertion = FlakyAssertion(failures=100, error_factory=factory)

        with pytest.raises(AssertionError) as exc_info:
            retry_until_consistent(
                assertion, RetryPolicy(attempts=3, interval_ms=0), sleep=RecordingSleep()
            )

        assert exc_info.value is errors[-1]
        assert str(exc_info.value) == "attempt 3"

    def test_any_exception_counts_as_not_yet(self):
        ref = EntityRef.account("0.0.1001")
        assertion = FlakyAssertion(
            failures=2,
            value="found",
            error_factory=lambda n: EntityNotFound(ref, "mirror_node"),
        )

        result = retry_until_consistent(
            assertion, RetryPolicy(attempts=3, interval_ms=0), sleep=RecordingSleep()
        )

        assert result == "found"

    def test_non_assertion_error_is_reraised_on_exhaustion(self):
        ref = EntityRef.account("0.0.1001")
        assertion = FlakyAssertion(
            failures=10, error_factory=lambda n: EntityNotFound(ref, "mirror_node")
        )

        with pytest.raises(EntityNotFound):
            retry_until_consistent(
                assertion, RetryPolicy(attempts=2, interval_ms=0), sleep=RecordingSleep()
            )

    def test_pytest_fail_is_not_retried(self):
        """``pytest.fail`` raises a BaseException, which ends the loop at once."""
        calls = []

        def assertion():
            calls.append(1)
            pytest.fail("replica disagrees")

        with pytest.raises(pytest.fail.Exception):
            retry_until_consistent(
                assertion, RetryPolicy(attempts=5, interval_ms=0), sleep=RecordingSleep()
            )

        assert len(calls) == 1

    def test_on_attempt_sees_every_non_final_failure(self):
        records = []
        assertion = FlakyAssertion(failures=100)

        with pytest.raises(AssertionError):
            retry_until_consistent(
                assertion,
                RetryPolicy(attempts=4, interval_ms=0),
                on_attempt=records.append,
                sleep=RecordingSleep(),
            )

        assert [r.attempt_number for r in records] == [1, 2, 3]
        assert str(records[0].last_error) == "not yet (1)"

    def test_single_attempt_never_sleeps(self):
        sleep = RecordingSleep()

        with pytest.raises(AssertionError):
            retry_until_consistent(
                FlakyAssertion(failures=1), RetryPolicy(attempts=1), sleep=sleep
            )

        assert sleep.delays == []


class TestEventually:
    def test_decorated_function_is_retried(self):
        calls = []

        @eventually(RetryPolicy(attempts=5, interval_ms=0))
        def replica_agrees(expected):
            calls.append(expected)
            assert len(calls) >= 3
            return expected

        assert replica_agrees("x") == "x"
        assert calls == ["x", "x", "x"]

    def test_preserves_name(self):
        @eventually()
        def replica_sees_account():
            return None

        assert replica_sees_account.__name__ == "replica_sees_account"

    def test_exhaustion_reraises(self):
        @eventually(RetryPolicy(attempts=2, interval_ms=0))
        def never():
            raise AssertionError("still wrong")

        with pytest.raises(AssertionError, match="still wrong"):
            never()
