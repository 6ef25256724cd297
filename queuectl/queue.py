"""
Queue service: the in-process API used by workers and the command line.

Each operation runs in its own transaction against an explicitly injected
``Database`` handle, so a ``JobQueue`` can be shared freely by the tasks of
one process and any number of processes can point at the same store.
"""

import logging
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from uuid import UUID

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from queuectl.config import Settings, get_settings
from queuectl.constants import CONFIG_MAX_RETRIES, JobState, RetryOutcome
from queuectl.db import ConfigRepository, Database, Job, JobRepository
from queuectl.errors import (
    ConfigReadError,
    StoreUnavailableError,
    ValidationError,
)
from queuectl.observability.metrics import MetricsCollector, get_metrics
from queuectl.retry import decide_failure

logger = logging.getLogger(__name__)

JobId = UUID | str


def parse_job_id(job_id: JobId) -> UUID | None:
    """Coerce a job id to a UUID; malformed ids cannot match any job."""
    if isinstance(job_id, UUID):
        return job_id
    try:
        return UUID(str(job_id).strip())
    except ValueError:
        return None


def parse_max_retries(value: str) -> int:
    """
    Parse a ``max_retries`` config value.

    Raises:
        ValueError: If the value is not a non-negative integer.
    """
    max_retries = int(value)
    if max_retries < 0:
        raise ValueError(f"max_retries must be >= 0, got {max_retries}")
    return max_retries


class JobQueue:
    """
    Persistent multi-consumer job queue.

    Args:
        database: Store handle shared by all operations.
        settings: Process settings; supplies ``default_max_retries``.
        metrics: Metrics collector. Defaults to the process-wide collector.
    """

    def __init__(
        self,
        database: Database,
        settings: Settings | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self._db = database
        self._settings = settings or get_settings()
        self._metrics = metrics or get_metrics()

    @asynccontextmanager
    async def _transaction(
        self,
        error_class: type[StoreUnavailableError] = StoreUnavailableError,
    ) -> AsyncGenerator[AsyncSession]:
        """Run one transaction, surfacing connectivity failures as queue errors."""
        try:
            async with self._db.session() as session:
                yield session
        except (OperationalError, InterfaceError) as e:
            logger.error("Store unavailable", extra={"error": str(e)})
            raise error_class(str(e)) from e

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------

    async def get_config(self, key: str) -> str | None:
        """Get a config value, or None if the key was never set."""
        async with self._transaction(ConfigReadError) as session:
            return await ConfigRepository(session).get(key)

    async def list_config(self) -> dict[str, str]:
        async with self._transaction(ConfigReadError) as session:
            return await ConfigRepository(session).all()

    async def set_config(self, key: str, value: str) -> None:
        """
        Set a config value. Takes effect for jobs enqueued afterwards.

        Raises:
            ValidationError: If the key is empty or ``max_retries`` is not
                a non-negative integer.
        """
        key = key.strip()
        if not key:
            raise ValidationError("Config key cannot be empty.")
        if key == CONFIG_MAX_RETRIES:
            try:
                parse_max_retries(value)
            except ValueError:
                raise ValidationError(
                    f"{CONFIG_MAX_RETRIES} must be a non-negative integer, got {value!r}"
                ) from None

        async with self._transaction() as session:
            await ConfigRepository(session).set(key, str(value))

    async def _current_max_retries(self) -> int:
        value = await self.get_config(CONFIG_MAX_RETRIES)
        if value is None:
            return self._settings.default_max_retries
        try:
            return parse_max_retries(value)
        except ValueError as e:
            raise ConfigReadError(f"Invalid {CONFIG_MAX_RETRIES} config value {value!r}") from e

    # ------------------------------------------------------------------
    # Job lifecycle
    # ------------------------------------------------------------------

    async def enqueue(self, command: str) -> Job:
        """
        Add a command to the queue.

        The job snapshots the current ``max_retries`` config; later config
        changes do not affect it.

        Raises:
            ValidationError: If the command is not a non-empty string.
            ConfigReadError: If the config lookup fails.
        """
        if not isinstance(command, str) or not command.strip():
            raise ValidationError("Command must be a non-empty string.")

        max_retries = await self._current_max_retries()

        async with self._transaction() as session:
            job = await JobRepository(session).create_job(command, max_retries)

        self._metrics.record_job_enqueued()
        return job

    async def claim_next(self, worker_id: str | None = None) -> Job | None:
        """Claim the oldest eligible job, or return None if there is none."""
        async with self._transaction() as session:
            job = await JobRepository(session).claim_next(worker_id)

        if job is not None:
            self._metrics.record_job_claimed(worker_id or "anonymous")
        return job

    async def complete(self, job_id: JobId) -> bool:
        """
        Mark a claimed job as completed.

        Returns:
            False (and changes nothing) for unknown or non-processing jobs.
        """
        job_uuid = parse_job_id(job_id)
        if job_uuid is None:
            return False

        async with self._transaction() as session:
            completed = await JobRepository(session).complete_job(job_uuid)

        if completed:
            self._metrics.record_job_finished("completed")
        return completed

    async def record_failure(
        self,
        job_id: JobId,
        error: str,
        attempts: int,
        max_retries: int,
    ) -> RetryOutcome | None:
        """
        Record a failed execution and schedule a retry or dead-letter the job.

        Args:
            job_id: The failed job.
            error: Failure detail, stored as ``last_error``.
            attempts: ``attempts`` as observed on the claimed job.
            max_retries: ``max_retries`` as observed on the claimed job.

        Returns:
            The outcome, or None if the job is no longer processing (a stale
            caller); nothing is written in that case.
        """
        job_uuid = parse_job_id(job_id)
        if job_uuid is None:
            return None

        decision = decide_failure(attempts, max_retries)

        async with self._transaction() as session:
            applied = await JobRepository(session).apply_failure(job_uuid, decision, error)

        if not applied:
            return None

        self._metrics.record_job_finished(decision.outcome.value)
        return decision.outcome

    # ------------------------------------------------------------------
    # Dead letter queue
    # ------------------------------------------------------------------

    async def list_dead(self) -> Sequence[Job]:
        async with self._transaction() as session:
            return await JobRepository(session).list_dead()

    async def revive_from_dead(self, job_id: JobId) -> Job | None:
        """
        Move a dead job back to pending with ``attempts`` reset to 0.

        Returns:
            The revived job, or None if the job is unknown or not dead.
        """
        job_uuid = parse_job_id(job_id)
        if job_uuid is None:
            return None

        async with self._transaction() as session:
            job = await JobRepository(session).revive_dead(job_uuid)

        if job is not None:
            self._metrics.record_job_revived()
        return job

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_job(self, job_id: JobId) -> Job | None:
        job_uuid = parse_job_id(job_id)
        if job_uuid is None:
            return None

        async with self._transaction() as session:
            return await JobRepository(session).get_job(job_uuid)

    async def list_jobs(self, state: JobState | None = None) -> Sequence[Job]:
        async with self._transaction() as session:
            return await JobRepository(session).list_jobs(state=state)

    async def status_counts(self) -> dict[JobState, int]:
        """Count jobs per state and publish the counts as queue depth."""
        async with self._transaction() as session:
            counts = await JobRepository(session).count_by_state()

        self._metrics.update_queue_depth(counts)
        return counts
