"""
Integration tests for concurrent claiming.

Each claimer uses its own JobQueue and database handle, standing in for a
separate worker process.
"""

import asyncio

from queuectl.constants import JobState
from queuectl.config import Settings
from queuectl.db import Database
from queuectl.queue import JobQueue


async def _claim_all(queue: JobQueue, worker_id: str) -> list:
    claimed = []
    while (job := await queue.claim_next(worker_id)) is not None:
        claimed.append(job.id)
        await asyncio.sleep(0)
    return claimed


class TestConcurrentClaims:
    """Tests for exclusive claiming under concurrency."""

    async def test_each_job_claimed_exactly_once(
        self,
        queue: JobQueue,
        test_settings: Settings,
        metrics,
    ):
        job_ids = {(await queue.enqueue(f"echo {i}")).id for i in range(40)}

        handles = [Database.from_settings(test_settings) for _ in range(6)]
        try:
            queues = [JobQueue(db, test_settings, metrics) for db in handles]
            results = await asyncio.gather(
                *(_claim_all(q, f"worker-{i}") for i, q in enumerate(queues))
            )
        finally:
            for db in handles:
                await db.close()

        claimed = [job_id for result in results for job_id in result]

        assert len(claimed) == len(set(claimed))
        assert set(claimed) == job_ids

        counts = await queue.status_counts()
        assert counts[JobState.PROCESSING] == 40
        assert counts[JobState.PENDING] == 0

    async def test_single_job_single_winner(
        self,
        queue: JobQueue,
        test_settings: Settings,
        metrics,
    ):
        job = await queue.enqueue("echo only")

        handles = [Database.from_settings(test_settings) for _ in range(8)]
        try:
            results = await asyncio.gather(
                *(JobQueue(db, test_settings, metrics).claim_next(f"w{i}") for i, db in enumerate(handles))
            )
        finally:
            for db in handles:
                await db.close()

        winners = [r for r in results if r is not None]
        assert len(winners) == 1
        assert winners[0].id == job.id
