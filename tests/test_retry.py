"""Tests for RetryPolicy and dead-letter classification."""

from __future__ import annotations

from datetime import timedelta

import pytest
from support import T0

from cqrs_ddd_reliability.retry import RetryPolicy, is_dead_lettered


class TestRetryPolicy:
    def test_backoff_doubles_per_attempt(self) -> None:
        policy = RetryPolicy(max_retries=5, base_delay=timedelta(seconds=5))

        assert policy.next_retry_at(1, T0) - T0 == timedelta(seconds=5)
        assert policy.next_retry_at(2, T0) - T0 == timedelta(seconds=10)
        assert policy.next_retry_at(3, T0) - T0 == timedelta(seconds=20)

    def test_delay_for_non_positive_attempt_is_zero(self) -> None:
        policy = RetryPolicy()
        assert policy.delay_for_attempt(0) == timedelta(0)
        assert policy.delay_for_attempt(-1) == timedelta(0)

    def test_should_retry_until_budget_is_spent(self) -> None:
        policy = RetryPolicy(max_retries=3)
        assert policy.should_retry(1)
        assert policy.should_retry(2)
        assert not policy.should_retry(3)

    def test_failure_outcome_schedules_then_dead_letters(self) -> None:
        policy = RetryPolicy(max_retries=3, base_delay=timedelta(seconds=5))

        assert policy.failure_outcome(0, T0) == (1, T0 + timedelta(seconds=5))
        assert policy.failure_outcome(1, T0) == (2, T0 + timedelta(seconds=10))
        assert policy.failure_outcome(2, T0) == (3, None)

    def test_zero_retries_dead_letters_on_first_failure(self) -> None:
        policy = RetryPolicy(max_retries=0)
        assert policy.failure_outcome(0, T0) == (1, None)

    def test_rejects_invalid_configuration(self) -> None:
        with pytest.raises(ValueError, match="max_retries"):
            RetryPolicy(max_retries=-1)
        with pytest.raises(ValueError, match="base_delay"):
            RetryPolicy(base_delay=timedelta(seconds=-1))


class TestIsDeadLettered:
    def test_exhausted_and_unsettled(self) -> None:
        assert is_dead_lettered(3, 3)
        assert is_dead_lettered(4, 3)

    def test_under_budget(self) -> None:
        assert not is_dead_lettered(2, 3)

    def test_settled_records_are_never_dead_letters(self) -> None:
        assert not is_dead_lettered(3, 3, settled=True)

    def test_policy_method_uses_its_budget(self) -> None:
        policy = RetryPolicy(max_retries=2)
        assert policy.is_dead_lettered(2)
        assert not policy.is_dead_lettered(1)
