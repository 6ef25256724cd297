"""
Job and config repositories for database operations.
Implements the core data access patterns for the queue.

Every method issues a single statement against the session it was given; the
caller owns the transaction boundary.
"""

import logging
from collections.abc import Sequence
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import func, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from queuectl.constants import MAX_ERROR_LENGTH, JobState
from queuectl.db.models import ConfigEntry, Job
from queuectl.retry import RetryDecision, utcnow

logger = logging.getLogger(__name__)


class JobRepository:
    """
    Repository for job database operations.

    Implements atomic operations for:
    - Job creation
    - Claiming with a single conditional UPDATE ... RETURNING
    - Status transitions guarded by the current state
    - Dead letter queue listing and revival
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            session: The async database session.
        """
        self._session = session

    async def create_job(self, command: str, max_retries: int) -> Job:
        """
        Insert a new pending job, eligible immediately.

        Args:
            command: The command string to execute.
            max_retries: Retry budget snapshot for this job.

        Returns:
            The created Job.
        """
        now = utcnow()
        stmt = (
            insert(Job)
            .values(
                id=uuid4(),
                command=command,
                state=JobState.PENDING,
                attempts=0,
                max_retries=max_retries,
                next_run_at=now,
                created_at=now,
                updated_at=now,
            )
            .returning(Job)
        )

        result = await self._session.execute(stmt)
        job = result.scalar_one()

        logger.info(
            "Created new job",
            extra={"job_id": str(job.id), "max_retries": max_retries},
        )
        return job

    async def get_job(self, job_id: UUID) -> Job | None:
        """
        Get a job by ID.

        Args:
            job_id: The job UUID.

        Returns:
            The Job or None if not found.
        """
        stmt = select(Job).where(Job.id == job_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_jobs(
        self,
        state: JobState | None = None,
        limit: int | None = None,
    ) -> Sequence[Job]:
        """
        List jobs oldest first, optionally filtered by state.

        Args:
            state: Optional state filter.
            limit: Maximum number of jobs to return.

        Returns:
            The matching jobs.
        """
        stmt = select(Job).order_by(Job.created_at.asc())
        if state is not None:
            stmt = stmt.where(Job.state == state)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def count_by_state(self) -> dict[JobState, int]:
        """Count jobs per state; states with no jobs report 0."""
        stmt = select(Job.state, func.count()).group_by(Job.state)
        result = await self._session.execute(stmt)

        counts = {state: 0 for state in JobState}
        for state, count in result.all():
            counts[JobState(state)] = count
        return counts

    async def claim_next(
        self,
        worker_id: str | None = None,
        now: datetime | None = None,
    ) -> Job | None:
        """
        Atomically claim the oldest eligible pending job.

        This is the critical path for job distribution. The target row is
        chosen by a sub-select inside the UPDATE itself, so selecting and
        transitioning happen in one statement and two claimers can never
        receive the same job. On PostgreSQL the sub-select also takes
        FOR UPDATE SKIP LOCKED so concurrent claimers move on to the next
        row instead of queueing behind each other; on SQLite the whole
        transaction holds the write lock (see ``Database``).

        Args:
            worker_id: Identifier recorded in ``claimed_by``.
            now: Reference time for eligibility. Defaults to now.

        Returns:
            The claimed Job in state PROCESSING, or None if nothing is eligible.
        """
        now = now or utcnow()
        candidate = aliased(Job)

        next_eligible = (
            select(candidate.id)
            .where(
                candidate.state == JobState.PENDING,
                candidate.next_run_at <= now,
            )
            .order_by(candidate.created_at.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )

        stmt = (
            update(Job)
            .where(Job.id == next_eligible)
            .values(
                state=JobState.PROCESSING,
                claimed_by=worker_id,
                updated_at=now,
            )
            .returning(Job)
            .execution_options(synchronize_session=False)
        )

        result = await self._session.execute(stmt)
        job = result.scalar_one_or_none()

        if job is not None:
            logger.info(
                "Claimed job",
                extra={
                    "job_id": str(job.id),
                    "worker_id": worker_id,
                    "attempts": job.attempts,
                },
            )

        return job

    async def complete_job(self, job_id: UUID) -> bool:
        """
        Mark a processing job as completed.

        Unknown ids and jobs in any other state are left untouched.

        Args:
            job_id: The job UUID.

        Returns:
            True if the job transitioned, False if this was a no-op.
        """
        stmt = (
            update(Job)
            .where(
                Job.id == job_id,
                Job.state == JobState.PROCESSING,
            )
            .values(
                state=JobState.COMPLETED,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )

        result = await self._session.execute(stmt)
        completed = result.rowcount > 0

        if completed:
            logger.info("Job completed", extra={"job_id": str(job_id)})
        else:
            logger.debug(
                "Complete ignored, job not processing",
                extra={"job_id": str(job_id)},
            )

        return completed

    async def apply_failure(
        self,
        job_id: UUID,
        decision: RetryDecision,
        error: str,
    ) -> bool:
        """
        Write a retry decision for a processing job in one UPDATE.

        Args:
            job_id: The job UUID.
            decision: The decision produced by ``decide_failure``.
            error: Failure detail, stored as ``last_error``.

        Returns:
            True if the job transitioned, False if it was not processing.
        """
        values = {
            "state": JobState.DEAD if decision.is_dead else JobState.PENDING,
            "attempts": decision.attempts,
            "last_error": error[:MAX_ERROR_LENGTH],
            "updated_at": utcnow(),
        }
        if decision.next_run_at is not None:
            values["next_run_at"] = decision.next_run_at

        stmt = (
            update(Job)
            .where(
                Job.id == job_id,
                Job.state == JobState.PROCESSING,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        result = await self._session.execute(stmt)
        applied = result.rowcount > 0

        if not applied:
            logger.warning(
                "Failure not recorded, job not processing",
                extra={"job_id": str(job_id)},
            )
        elif decision.is_dead:
            logger.warning(
                f"Job moved to DLQ after {decision.attempts} attempts",
                extra={"job_id": str(job_id), "error": error},
            )
        else:
            logger.info(
                "Job queued for retry",
                extra={
                    "job_id": str(job_id),
                    "attempts": decision.attempts,
                    "next_run_at": decision.next_run_at.isoformat(),
                },
            )

        return applied

    async def list_dead(self) -> Sequence[Job]:
        """List all jobs in the dead letter queue, oldest first."""
        return await self.list_jobs(state=JobState.DEAD)

    async def revive_dead(self, job_id: UUID) -> Job | None:
        """
        Move a dead job back to the queue with a fresh retry budget.

        Args:
            job_id: The job UUID.

        Returns:
            Updated Job or None if not found or not dead.
        """
        now = utcnow()
        stmt = (
            update(Job)
            .where(
                Job.id == job_id,
                Job.state == JobState.DEAD,
            )
            .values(
                state=JobState.PENDING,
                attempts=0,
                next_run_at=now,
                updated_at=now,
            )
            .returning(Job)
            .execution_options(synchronize_session=False)
        )

        result = await self._session.execute(stmt)
        job = result.scalar_one_or_none()

        if job:
            logger.info("Job retried from DLQ", extra={"job_id": str(job_id)})

        return job


class ConfigRepository:
    """Repository for the durable key/value config table."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, key: str) -> str | None:
        stmt = select(ConfigEntry.value).where(ConfigEntry.key == key)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def all(self) -> dict[str, str]:
        stmt = select(ConfigEntry).order_by(ConfigEntry.key)
        result = await self._session.execute(stmt)
        return {entry.key: entry.value for entry in result.scalars()}

    async def set(self, key: str, value: str) -> None:
        """Insert or overwrite a config value (last write wins)."""
        dialect = self._session.get_bind().dialect.name
        insert_ = postgresql.insert if dialect == "postgresql" else sqlite.insert

        stmt = insert_(ConfigEntry).values(key=key, value=value)
        stmt = stmt.on_conflict_do_update(
            index_elements=[ConfigEntry.key],
            set_={"value": stmt.excluded.value},
        )
        await self._session.execute(stmt)

        logger.info("Config updated", extra={"key": key, "value": value})
