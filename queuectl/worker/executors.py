"""
Command executors.

An executor turns a job's command string into a ``JobResult``. Executors must
tolerate running the same command more than once: delivery is at-least-once.

``ShellExecutor`` hands the string to the system shell as-is and trusts it
completely. Deployments that accept commands from untrusted clients should
inject an executor that runs them inside a sandbox instead.
"""

import asyncio
import logging
import time
from typing import Protocol

from queuectl.types.job import JobResult

logger = logging.getLogger(__name__)

MAX_OUTPUT_LENGTH = 4000


class CommandExecutor(Protocol):
    """Capability to run one command string to completion."""

    async def run(self, command: str) -> JobResult: ...


def _decode(data: bytes | None) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace").strip()[:MAX_OUTPUT_LENGTH]


class ShellExecutor:
    """
    Run commands through the system shell.

    Success means exit status 0. On failure the error detail is the command's
    stderr, or a generic message naming the exit status when stderr is empty.

    Args:
        timeout: Seconds after which the command is killed and reported as
            failed. None waits indefinitely.
    """

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout

    async def run(self, command: str) -> JobResult:
        start_time = time.monotonic()

        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.exception("Could not start command", extra={"command": command})
            return JobResult(
                success=False,
                error=f"Could not start command: {e}",
                duration_ms=(time.monotonic() - start_time) * 1000,
            )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.timeout,
            )
        except TimeoutError:
            process.kill()
            await process.wait()
            logger.warning(
                "Command timed out",
                extra={"command": command, "timeout": self.timeout},
            )
            return JobResult(
                success=False,
                error=f"Command timed out after {self.timeout}s",
                exit_code=process.returncode,
                duration_ms=(time.monotonic() - start_time) * 1000,
            )

        duration_ms = (time.monotonic() - start_time) * 1000
        output = _decode(stdout)

        if process.returncode == 0:
            return JobResult(
                success=True,
                output=output,
                exit_code=0,
                duration_ms=duration_ms,
            )

        return JobResult(
            success=False,
            output=output,
            error=_decode(stderr) or f"Command exited with status {process.returncode}",
            exit_code=process.returncode,
            duration_ms=duration_ms,
        )
