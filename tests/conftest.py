"""
Pytest configuration and shared fixtures.
"""

from collections.abc import AsyncGenerator
from datetime import timedelta
from pathlib import Path
from uuid import UUID

import pytest
import pytest_asyncio
from prometheus_client import CollectorRegistry
from sqlalchemy import update

from queuectl.config import Settings
from queuectl.db import Database, Job
from queuectl.observability.metrics import MetricsCollector
from queuectl.queue import JobQueue
from queuectl.retry import utcnow


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """A fresh SQLite file per test, so separate connections share it."""
    return f"sqlite+aiosqlite:///{tmp_path / 'queue.db'}"


@pytest.fixture
def test_settings(database_url: str) -> Settings:
    """Create test settings."""
    return Settings(
        database_url=database_url,
        database_busy_timeout_seconds=30.0,
        worker_poll_interval_seconds=0.05,
        default_max_retries=3,
        log_level="DEBUG",
        log_format="console",
    )


@pytest_asyncio.fixture
async def database(test_settings: Settings) -> AsyncGenerator[Database]:
    """Create the schema in a temporary database."""
    db = Database.from_settings(test_settings)
    await db.create_schema()

    yield db

    await db.close()


@pytest.fixture
def metrics() -> MetricsCollector:
    """Metrics bound to a private registry."""
    return MetricsCollector(registry=CollectorRegistry())


@pytest.fixture
def queue(
    database: Database,
    test_settings: Settings,
    metrics: MetricsCollector,
) -> JobQueue:
    """Create a queue backed by the test database."""
    return JobQueue(database, test_settings, metrics)


@pytest.fixture
def make_eligible(database: Database):
    """Move a job's next_run_at into the past, skipping its backoff delay."""

    async def _make_eligible(job_id: UUID) -> None:
        async with database.session() as session:
            await session.execute(
                update(Job)
                .where(Job.id == job_id)
                .values(next_run_at=utcnow() - timedelta(seconds=1))
            )

    return _make_eligible
