"""
Unit tests for the retry and backoff policy.
"""

from datetime import datetime, timedelta

import pytest

from queuectl.constants import RetryOutcome
from queuectl.retry import backoff_delay, decide_failure, utcnow

NOW = datetime(2025, 1, 1, 12, 0, 0)


class TestBackoffDelay:
    """Tests for backoff_delay."""

    @pytest.mark.parametrize(
        ("attempts", "seconds"),
        [(1, 2), (2, 4), (3, 8), (6, 64)],
    )
    def test_exponential_whole_seconds(self, attempts: int, seconds: int):
        assert backoff_delay(attempts) == timedelta(seconds=seconds)


class TestDecideFailure:
    """Tests for decide_failure."""

    def test_first_failure_retries_after_two_seconds(self):
        decision = decide_failure(attempts=0, max_retries=3, now=NOW)

        assert decision.outcome == RetryOutcome.RETRY
        assert decision.attempts == 1
        assert decision.next_run_at == NOW + timedelta(seconds=2)
        assert not decision.is_dead

    def test_second_failure_retries_after_four_seconds(self):
        decision = decide_failure(attempts=1, max_retries=3, now=NOW)

        assert decision.outcome == RetryOutcome.RETRY
        assert decision.attempts == 2
        assert decision.next_run_at == NOW + timedelta(seconds=4)

    def test_budget_exhausted_goes_dead(self):
        decision = decide_failure(attempts=2, max_retries=3, now=NOW)

        assert decision.outcome == RetryOutcome.DEAD
        assert decision.attempts == 3
        assert decision.next_run_at is None
        assert decision.is_dead

    @pytest.mark.parametrize("max_retries", [0, 1])
    def test_tiny_budget_dies_on_first_failure(self, max_retries: int):
        decision = decide_failure(attempts=0, max_retries=max_retries, now=NOW)

        assert decision.outcome == RetryOutcome.DEAD
        assert decision.attempts == 1

    def test_defaults_to_current_time(self):
        before = utcnow()
        decision = decide_failure(attempts=0, max_retries=5)

        assert decision.next_run_at >= before + timedelta(seconds=2)
