"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class JobState(StrEnum):
    """
    Job lifecycle states.

    State transitions:
    - PENDING -> PROCESSING (claimed by a worker)
    - PROCESSING -> COMPLETED (command succeeded)
    - PROCESSING -> PENDING (command failed, retry scheduled)
    - PROCESSING -> DEAD (retry budget exhausted)
    - DEAD -> PENDING (revived from the dead letter queue)
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    DEAD = "dead"


class RetryOutcome(StrEnum):
    """Result of recording a failed execution."""

    RETRY = "retry"
    DEAD = "dead"


# Durable config keys
CONFIG_MAX_RETRIES = "max_retries"

# Default values
DEFAULT_MAX_RETRIES = 3
BACKOFF_BASE_SECONDS = 2
MAX_ERROR_LENGTH = 4000

# Metrics names
METRIC_QUEUE_DEPTH = "queuectl_queue_depth"
METRIC_JOBS_ENQUEUED = "queuectl_jobs_enqueued_total"
METRIC_JOBS_CLAIMED = "queuectl_jobs_claimed_total"
METRIC_JOBS_FINISHED = "queuectl_jobs_finished_total"
METRIC_JOBS_REVIVED = "queuectl_jobs_revived_total"
METRIC_JOB_DURATION = "queuectl_job_duration_seconds"

# Trace span names
SPAN_CLAIM_JOB = "claim_job"
SPAN_EXECUTE_JOB = "execute_job"
