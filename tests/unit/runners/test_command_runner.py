"""Tests for CommandRunner."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from shepherd.runners import CommandResult, CommandRunner


@pytest.fixture
def mock_process() -> MagicMock:
    """Create a mock subprocess."""
    process = MagicMock()
    process.returncode = 0
    process.pid = 12345
    process.communicate = AsyncMock(return_value=(b"stdout output", b""))
    process.wait = AsyncMock()
    process.terminate = MagicMock()
    process.kill = MagicMock()
    return process


class TestCommandRunner:
    """Tests for CommandRunner.run."""

    @pytest.mark.asyncio
    async def test_run_simple_command(self, mock_process: MagicMock) -> None:
        with patch(
            "asyncio.create_subprocess_exec", AsyncMock(return_value=mock_process)
        ):
            result = await CommandRunner().run(["tmux", "list-sessions"])

        assert isinstance(result, CommandResult)
        assert result.returncode == 0
        assert result.stdout == "stdout output"
        assert result.stderr == ""
        assert result.success is True
        assert result.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_not_success(self, mock_process: MagicMock) -> None:
        mock_process.returncode = 1
        mock_process.communicate = AsyncMock(return_value=(b"", b"can't find pane"))

        with patch(
            "asyncio.create_subprocess_exec", AsyncMock(return_value=mock_process)
        ):
            result = await CommandRunner().run(["tmux", "capture-pane"])

        assert result.returncode == 1
        assert result.stderr == "can't find pane"
        assert result.success is False

    @pytest.mark.asyncio
    async def test_missing_executable_reports_127(self) -> None:
        with patch(
            "asyncio.create_subprocess_exec",
            AsyncMock(side_effect=FileNotFoundError()),
        ):
            result = await CommandRunner().run(["tmux", "list-sessions"])

        assert result.returncode == 127
        assert "tmux" in result.stderr
        assert result.timed_out is False

    @pytest.mark.asyncio
    async def test_timeout_terminates_process(self, mock_process: MagicMock) -> None:
        mock_process.communicate = AsyncMock(side_effect=TimeoutError())

        with patch(
            "asyncio.create_subprocess_exec", AsyncMock(return_value=mock_process)
        ):
            result = await CommandRunner(timeout=0.1).run(["sleep", "10"])

        assert result.timed_out is True
        assert result.returncode == -1
        assert result.success is False
        mock_process.terminate.assert_called_once()

    @pytest.mark.asyncio
    async def test_input_text_written_to_stdin(self, mock_process: MagicMock) -> None:
        with patch(
            "asyncio.create_subprocess_exec", AsyncMock(return_value=mock_process)
        ):
            await CommandRunner().run(["cat"], input_text="hello")

        mock_process.communicate.assert_awaited_once_with(b"hello")

    @pytest.mark.asyncio
    async def test_environment_merge(self, mock_process: MagicMock) -> None:
        captured_env: dict[str, str] | None = None

        async def capture_env(*args: object, **kwargs: object) -> MagicMock:
            nonlocal captured_env
            captured_env = kwargs.get("env")  # type: ignore[assignment]
            return mock_process

        with patch(
            "asyncio.create_subprocess_exec", AsyncMock(side_effect=capture_env)
        ):
            await CommandRunner(env={"TMUX_TMPDIR": "/tmp/tmux"}).run(["tmux"])

        assert captured_env is not None
        assert captured_env["TMUX_TMPDIR"] == "/tmp/tmux"
        assert "PATH" in captured_env
