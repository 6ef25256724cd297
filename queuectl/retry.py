"""
Retry and backoff policy.

Pure decision logic: given the attempt count observed on a claimed job and its
retry budget, decide whether the job goes back to the queue or to the dead
letter queue, and when it becomes eligible again.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from queuectl.constants import BACKOFF_BASE_SECONDS, RetryOutcome


def utcnow() -> datetime:
    """Current time as naive UTC, the format stored in the jobs table."""
    return datetime.now(UTC).replace(tzinfo=None)


@dataclass(frozen=True)
class RetryDecision:
    """Outcome of one failed execution."""

    outcome: RetryOutcome
    attempts: int
    next_run_at: datetime | None = None

    @property
    def is_dead(self) -> bool:
        return self.outcome is RetryOutcome.DEAD


def backoff_delay(attempts: int) -> timedelta:
    """
    Delay before a failed job becomes eligible again.

    Whole seconds, base 2, exponent = the new attempt count:
    the first retry waits 2s, the second 4s, the third 8s.
    """
    return timedelta(seconds=BACKOFF_BASE_SECONDS ** attempts)


def decide_failure(
    attempts: int,
    max_retries: int,
    now: datetime | None = None,
) -> RetryDecision:
    """
    Decide what happens to a job after a failed execution.

    Args:
        attempts: Failures recorded so far, as observed on the claimed job.
        max_retries: The job's retry budget, as observed on the claimed job.
        now: Reference time for the backoff. Defaults to now.

    Returns:
        RetryDecision: ``dead`` once the new attempt count reaches
        ``max_retries``, otherwise ``retry`` with the next eligible time.
    """
    next_attempts = attempts + 1

    if next_attempts >= max_retries:
        return RetryDecision(outcome=RetryOutcome.DEAD, attempts=next_attempts)

    now = now or utcnow()
    return RetryDecision(
        outcome=RetryOutcome.RETRY,
        attempts=next_attempts,
        next_run_at=now + backoff_delay(next_attempts),
    )
