"""Tests de retry con backoff exponencial."""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from bridge_api.ingest import RetryConfig, RetryExecutor


def _operational():
    return OperationalError("SELECT 1", {}, Exception("server has gone away"))


class TestRetryConfig:

    def test_exponential_delays_without_jitter(self):
        config = RetryConfig(base_delay=0.5, max_delay=10.0, jitter=False)

        assert [config.calculate_delay(a) for a in (1, 2, 3)] == [0.5, 1.0, 2.0]

    def test_delay_capped(self):
        config = RetryConfig(base_delay=4.0, max_delay=5.0, jitter=False)

        assert config.calculate_delay(3) == 5.0

    def test_jitter_stays_within_25_percent(self):
        config = RetryConfig(base_delay=1.0, jitter=True)

        for _ in range(50):
            assert 0.75 <= config.calculate_delay(1) <= 1.25


class TestRetryExecutor:

    def test_retries_transient_errors_until_success(self, retry, sleeps):
        outcomes = [_operational(), _operational(), "ok"]

        def op():
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        assert retry.execute(op) == "ok"
        assert sleeps == [0.01, 0.02]
        assert retry.stats == {"total_attempts": 3, "total_retries": 2, "total_failures": 0}

    def test_exhausted_raises_last_error(self, retry, sleeps):
        def op():
            raise _operational()

        with pytest.raises(OperationalError):
            retry.execute(op)
        assert len(sleeps) == 2
        assert retry.stats["total_failures"] == 1

    def test_non_transient_error_not_retried(self, retry, sleeps):
        calls = []

        def op():
            calls.append(1)
            raise IntegrityError("INSERT", {}, Exception("duplicate"))

        with pytest.raises(IntegrityError):
            retry.execute(op)
        assert len(calls) == 1
        assert sleeps == []

    def test_passes_arguments(self):
        executor = RetryExecutor(RetryConfig(max_attempts=1))

        assert executor.execute(lambda a, b=0: a + b, 2, b=3) == 5
