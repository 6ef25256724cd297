"""
Job-related type definitions for internal use.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class JobResult(BaseModel):
    """
    Result of running a job's command.
    Returned by command executors after processing.
    """

    success: bool
    output: str | None = None
    error: str | None = None
    exit_code: int | None = None
    duration_ms: float | None = None


@dataclass
class JobContext:
    """
    Snapshot of a claimed job, as observed by the worker at claim time.

    ``attempts`` and ``max_retries`` are the values handed to the retry
    policy; they are never re-read from the store during execution.
    """

    job_id: UUID
    command: str
    attempts: int
    max_retries: int
    worker_id: str
    claimed_at: datetime

    @property
    def is_last_attempt(self) -> bool:
        """Check if a failure now would dead-letter the job."""
        return self.attempts + 1 >= self.max_retries
