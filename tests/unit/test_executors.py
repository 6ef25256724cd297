"""
Unit tests for command executors.
"""

import pytest

from queuectl.worker.executors import ShellExecutor


class TestShellExecutor:
    """Tests for ShellExecutor."""

    @pytest.fixture
    def executor(self) -> ShellExecutor:
        return ShellExecutor()

    async def test_success_captures_output(self, executor: ShellExecutor):
        result = await executor.run("echo hello")

        assert result.success is True
        assert result.output == "hello"
        assert result.exit_code == 0
        assert result.error is None
        assert result.duration_ms is not None

    async def test_failure_reports_stderr(self, executor: ShellExecutor):
        result = await executor.run("echo broken >&2; exit 3")

        assert result.success is False
        assert result.exit_code == 3
        assert result.error == "broken"

    async def test_failure_without_stderr(self, executor: ShellExecutor):
        result = await executor.run("false")

        assert result.success is False
        assert result.error == "Command exited with status 1"

    async def test_unknown_command_fails(self, executor: ShellExecutor):
        result = await executor.run("definitely-not-a-real-command-xyz")

        assert result.success is False
        assert result.exit_code == 127

    async def test_timeout_kills_command(self):
        executor = ShellExecutor(timeout=0.2)

        result = await executor.run("sleep 5")

        assert result.success is False
        assert "timed out" in result.error
