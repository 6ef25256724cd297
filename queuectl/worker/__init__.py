"""
Worker package.
Contains the polling worker, command executors, and the process supervisor.
"""

from queuectl.worker.executors import CommandExecutor, ShellExecutor
from queuectl.worker.main import Worker

__all__ = [
    "Worker",
    "CommandExecutor",
    "ShellExecutor",
]
