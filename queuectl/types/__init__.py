"""
Type definitions shared between the queue engine and its workers.
"""

from queuectl.types.job import (
    JobContext,
    JobResult,
)

__all__ = [
    "JobResult",
    "JobContext",
]
