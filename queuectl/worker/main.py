"""
Worker process for executing jobs.

The worker pulls jobs from the queue one at a time, executes them, and records
the outcome, which drives retries and dead-lettering.
"""

import asyncio
import logging
import os
import signal
import time

from queuectl.config import Settings, get_settings
from queuectl.constants import SPAN_CLAIM_JOB, SPAN_EXECUTE_JOB
from queuectl.db import Database, Job
from queuectl.observability.logging import bind_context, setup_logging
from queuectl.observability.metrics import MetricsCollector, get_metrics
from queuectl.observability.tracing import get_tracer, setup_tracing
from queuectl.queue import JobQueue
from queuectl.retry import utcnow
from queuectl.types.job import JobContext
from queuectl.worker.executors import CommandExecutor, ShellExecutor

logger = logging.getLogger(__name__)


class Worker:
    """
    Job worker that polls for and executes jobs.

    Features:
    - Atomic claiming through the queue; no in-process locks
    - Strictly sequential: claim, execute, record, repeat
    - Cooperative shutdown checked between iterations only, so a running
      command is always allowed to finish
    """

    def __init__(
        self,
        queue: JobQueue,
        executor: CommandExecutor,
        worker_id: str | None = None,
        poll_interval: float | None = None,
        stop_event: asyncio.Event | None = None,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the worker.

        Args:
            queue: The queue to pull jobs from.
            executor: Runs each claimed job's command.
            worker_id: Unique worker identifier. Defaults to hostname + PID.
            poll_interval: Seconds to wait when no job is eligible.
            stop_event: Cancellation token; set it to stop the loop.
            metrics: Metrics collector.
        """
        settings = get_settings()

        self.queue = queue
        self.executor = executor
        self.worker_id = worker_id or f"{os.uname().nodename}-{os.getpid()}"
        self.poll_interval = (
            poll_interval
            if poll_interval is not None
            else settings.worker_poll_interval_seconds
        )
        self._stop_event = stop_event or asyncio.Event()
        self._metrics = metrics or get_metrics()

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    async def start(self) -> None:
        """Run the polling loop until stop is requested."""
        logger.info("Worker starting", extra={"worker_id": self.worker_id})

        while not self._stop_event.is_set():
            try:
                processed = await self.run_once()

                # If no job was processed, wait before polling again
                if not processed:
                    await self._idle()

            except Exception as e:
                logger.exception(
                    f"Error in worker loop: {e}",
                    extra={"worker_id": self.worker_id},
                )
                await self._idle()

        logger.info("Worker stopped", extra={"worker_id": self.worker_id})

    async def stop(self) -> None:
        """Request a graceful stop after the current job, if any."""
        logger.info("Worker stopping", extra={"worker_id": self.worker_id})
        self._stop_event.set()

    async def _idle(self) -> None:
        """Sleep for the poll interval, waking early if stop is requested."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
        except TimeoutError:
            pass

    async def run_once(self) -> bool:
        """
        Claim and process at most one job.

        Returns:
            True if a job was claimed and processed, False if none was eligible.
        """
        with get_tracer().start_as_current_span(SPAN_CLAIM_JOB):
            job = await self.queue.claim_next(self.worker_id)

        if job is None:
            return False

        await self._execute_job(job)
        return True

    async def _execute_job(self, job: Job) -> None:
        """
        Execute a single claimed job and record its outcome.

        Args:
            job: The job, as returned by the claim.
        """
        context = JobContext(
            job_id=job.id,
            command=job.command,
            attempts=job.attempts,
            max_retries=job.max_retries,
            worker_id=self.worker_id,
            claimed_at=utcnow(),
        )

        logger.info(
            "Executing job",
            extra={
                "job_id": str(context.job_id),
                "command": context.command,
                "attempts": context.attempts,
                "last_attempt": context.is_last_attempt,
            },
        )

        start_time = time.monotonic()
        with get_tracer().start_as_current_span(SPAN_EXECUTE_JOB) as span:
            span.set_attribute("job_id", str(context.job_id))
            span.set_attribute("attempts", context.attempts)

            result = await self.executor.run(context.command)
            span.set_attribute("success", result.success)

        duration = time.monotonic() - start_time

        if result.success:
            await self.queue.complete(context.job_id)
            outcome = "completed"

            logger.info(
                "Job completed successfully",
                extra={
                    "job_id": str(context.job_id),
                    "duration": f"{duration:.2f}s",
                    "output": result.output,
                },
            )
        else:
            retry_outcome = await self.queue.record_failure(
                context.job_id,
                result.error or "Unknown error",
                context.attempts,
                context.max_retries,
            )
            outcome = retry_outcome.value if retry_outcome else "failed"

            logger.warning(
                f"Job failed, action: {outcome}",
                extra={
                    "job_id": str(context.job_id),
                    "error": result.error,
                    "attempts": context.attempts + 1,
                },
            )

        self._metrics.record_job_duration(outcome, duration)


async def run_async(settings: Settings | None = None, worker_index: int = 0) -> None:
    """Run one worker until SIGTERM or SIGINT."""
    settings = settings or get_settings()

    setup_logging(settings)
    setup_tracing(settings)

    database = Database.from_settings(settings)
    await database.create_schema()

    metrics = get_metrics()
    if settings.metrics_port is not None:
        metrics.serve(settings.metrics_port + worker_index)

    worker_id = settings.worker_id
    if worker_id is not None:
        worker_id = f"{worker_id}-{worker_index}"

    worker = Worker(
        queue=JobQueue(database, settings, metrics),
        executor=ShellExecutor(timeout=settings.job_timeout_seconds),
        worker_id=worker_id,
        poll_interval=settings.worker_poll_interval_seconds,
        metrics=metrics,
    )
    bind_context(worker_id=worker.worker_id)

    # Handle shutdown signals
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(worker.stop()),
        )

    try:
        await worker.start()
    finally:
        await database.close()


def run(settings: Settings | None = None, worker_index: int = 0) -> None:
    """Run the worker."""
    asyncio.run(run_async(settings, worker_index))


if __name__ == "__main__":
    run()
