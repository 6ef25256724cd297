"""
Worker supervisor.

Starts N independent worker processes against the same store and relays
shutdown to them. Workers share nothing but the database.
"""

import logging
import multiprocessing

from queuectl.config import Settings, get_settings
from queuectl.worker.main import run

logger = logging.getLogger(__name__)


def run_workers(count: int, settings: Settings | None = None) -> None:
    """
    Run ``count`` worker processes until they exit or the supervisor is
    interrupted.

    On Ctrl+C every worker receives SIGTERM, finishes the job it is running,
    and exits; the supervisor waits for all of them.

    Args:
        count: Number of worker processes.
        settings: Settings passed to every worker.
    """
    if count < 1:
        raise ValueError("count must be at least 1")

    settings = settings or get_settings()

    processes = [
        multiprocessing.Process(
            target=run,
            args=(settings, index),
            name=f"queuectl-worker-{index}",
        )
        for index in range(count)
    ]

    for process in processes:
        process.start()
        logger.info(
            "Started worker process",
            extra={"process_name": process.name, "pid": process.pid},
        )

    try:
        for process in processes:
            process.join()
    except KeyboardInterrupt:
        logger.info("Stopping workers", extra={"count": len(processes)})
        for process in processes:
            if process.is_alive():
                process.terminate()
        for process in processes:
            process.join()

    logger.info("All workers stopped")
