"""
Unit tests for the job and config repositories.
"""

from datetime import timedelta
from uuid import uuid4

from queuectl.constants import JobState, RetryOutcome
from queuectl.db import ConfigRepository, Database, JobRepository
from queuectl.retry import RetryDecision, decide_failure, utcnow


class TestJobRepository:
    """Tests for JobRepository."""

    async def _create(self, database: Database, command: str = "echo hi", max_retries: int = 3):
        async with database.session() as session:
            return await JobRepository(session).create_job(command, max_retries)

    async def _claim(self, database: Database, worker_id: str = "test-worker", now=None):
        async with database.session() as session:
            return await JobRepository(session).claim_next(worker_id, now=now)

    async def _get(self, database: Database, job_id):
        async with database.session() as session:
            return await JobRepository(session).get_job(job_id)

    async def test_create_job_success(self, database: Database):
        """Test successful job creation."""
        job = await self._create(database, "echo hello", max_retries=5)

        assert job.id is not None
        assert job.command == "echo hello"
        assert job.state == JobState.PENDING
        assert job.attempts == 0
        assert job.max_retries == 5
        assert job.last_error is None
        assert job.next_run_at == job.created_at == job.updated_at

    async def test_create_job_unique_ids(self, database: Database):
        """Test that every job gets its own id."""
        jobs = [await self._create(database) for _ in range(5)]

        assert len({job.id for job in jobs}) == 5

    async def test_get_job_not_found(self, database: Database):
        """Test getting a non-existent job."""
        assert await self._get(database, uuid4()) is None

    async def test_claim_next_success(self, database: Database):
        """Test claiming a pending job."""
        job = await self._create(database)

        claimed = await self._claim(database, "worker-1")

        assert claimed is not None
        assert claimed.id == job.id
        assert claimed.state == JobState.PROCESSING
        assert claimed.claimed_by == "worker-1"
        assert claimed.updated_at >= job.updated_at

    async def test_claim_next_empty_queue(self, database: Database):
        """Test that claiming from an empty queue returns None."""
        assert await self._claim(database) is None

    async def test_claim_next_never_returns_same_job_twice(self, database: Database):
        """Test that a claimed job is not handed out again."""
        await self._create(database)

        first = await self._claim(database, "worker-1")
        second = await self._claim(database, "worker-2")

        assert first is not None
        assert second is None

    async def test_claim_next_fifo(self, database: Database):
        """Test that the oldest eligible job is claimed first."""
        older = await self._create(database, "echo first")
        newer = await self._create(database, "echo second")

        first = await self._claim(database)
        second = await self._claim(database)

        assert first.id == older.id
        assert second.id == newer.id

    async def test_claim_next_skips_future_jobs(self, database: Database):
        """Test that jobs waiting out their backoff are not eligible."""
        job = await self._create(database)

        assert await self._claim(database, now=job.next_run_at - timedelta(seconds=1)) is None
        claimed = await self._claim(database, now=job.next_run_at)

        assert claimed is not None
        assert claimed.id == job.id

    async def test_complete_job_success(self, database: Database):
        """Test successful job completion."""
        job = await self._create(database)
        await self._claim(database)

        async with database.session() as session:
            completed = await JobRepository(session).complete_job(job.id)

        assert completed is True
        stored = await self._get(database, job.id)
        assert stored.state == JobState.COMPLETED
        assert stored.attempts == 0

    async def test_complete_job_is_noop_when_not_processing(self, database: Database):
        """Test that completing a pending or unknown job changes nothing."""
        job = await self._create(database)

        async with database.session() as session:
            repo = JobRepository(session)
            assert await repo.complete_job(job.id) is False
            assert await repo.complete_job(uuid4()) is False

        assert (await self._get(database, job.id)).state == JobState.PENDING

    async def test_apply_failure_with_retry(self, database: Database):
        """Test job failure with retry available."""
        job = await self._create(database, max_retries=3)
        await self._claim(database)
        decision = decide_failure(attempts=0, max_retries=3)

        async with database.session() as session:
            applied = await JobRepository(session).apply_failure(job.id, decision, "Test error")

        assert applied is True
        failed = await self._get(database, job.id)
        assert failed.state == JobState.PENDING
        assert failed.attempts == 1
        assert failed.last_error == "Test error"
        assert failed.next_run_at == decision.next_run_at

    async def test_apply_failure_to_dlq(self, database: Database):
        """Test job failure moves to DLQ when the budget is exhausted."""
        job = await self._create(database, max_retries=1)
        await self._claim(database)
        decision = decide_failure(attempts=0, max_retries=1)

        async with database.session() as session:
            await JobRepository(session).apply_failure(job.id, decision, "Final error")

        failed = await self._get(database, job.id)
        assert failed.state == JobState.DEAD
        assert failed.attempts == 1
        assert failed.last_error == "Final error"
        assert failed.next_run_at == job.next_run_at

    async def test_apply_failure_ignored_when_not_processing(self, database: Database):
        """Test that a failure is not recorded against a completed job."""
        job = await self._create(database)
        await self._claim(database)
        async with database.session() as session:
            await JobRepository(session).complete_job(job.id)

        decision = RetryDecision(outcome=RetryOutcome.DEAD, attempts=1)
        async with database.session() as session:
            applied = await JobRepository(session).apply_failure(job.id, decision, "late")

        assert applied is False
        stored = await self._get(database, job.id)
        assert stored.state == JobState.COMPLETED
        assert stored.attempts == 0

    async def test_apply_failure_truncates_long_errors(self, database: Database):
        """Test that huge error output is capped."""
        job = await self._create(database)
        await self._claim(database)

        async with database.session() as session:
            await JobRepository(session).apply_failure(
                job.id, decide_failure(0, 3), "x" * 10_000
            )

        assert len((await self._get(database, job.id)).last_error) == 4000

    async def test_revive_dead(self, database: Database):
        """Test retrying a job from DLQ."""
        job = await self._create(database, max_retries=1)
        await self._claim(database)
        async with database.session() as session:
            await JobRepository(session).apply_failure(job.id, decide_failure(0, 1), "Error")

        before = utcnow()
        async with database.session() as session:
            revived = await JobRepository(session).revive_dead(job.id)

        assert revived is not None
        assert revived.state == JobState.PENDING
        assert revived.attempts == 0
        assert revived.next_run_at >= before
        assert revived.last_error == "Error"

    async def test_revive_dead_ignores_other_states(self, database: Database):
        """Test that only dead jobs can be revived."""
        job = await self._create(database)

        async with database.session() as session:
            repo = JobRepository(session)
            assert await repo.revive_dead(job.id) is None
            assert await repo.revive_dead(uuid4()) is None

    async def test_list_dead_and_counts(self, database: Database):
        """Test DLQ listing and per-state counts."""
        dead = await self._create(database, max_retries=1)
        await self._create(database)
        await self._claim(database)
        async with database.session() as session:
            await JobRepository(session).apply_failure(dead.id, decide_failure(0, 1), "boom")

        async with database.session() as session:
            repo = JobRepository(session)
            dead_jobs = await repo.list_dead()
            counts = await repo.count_by_state()

        assert [j.id for j in dead_jobs] == [dead.id]
        assert counts == {
            JobState.PENDING: 1,
            JobState.PROCESSING: 0,
            JobState.COMPLETED: 0,
            JobState.DEAD: 1,
        }


class TestConfigRepository:
    """Tests for ConfigRepository."""

    async def test_get_missing_key(self, database: Database):
        async with database.session() as session:
            assert await ConfigRepository(session).get("max_retries") is None

    async def test_set_and_overwrite(self, database: Database):
        """Test that the last write wins."""
        async with database.session() as session:
            await ConfigRepository(session).set("max_retries", "3")
        async with database.session() as session:
            await ConfigRepository(session).set("max_retries", "5")

        async with database.session() as session:
            repo = ConfigRepository(session)
            assert await repo.get("max_retries") == "5"
            assert await repo.all() == {"max_retries": "5"}
