"""Tests for SubprocessLauncher against real child processes."""

import shlex
import sys

import pytest

from lila.core.errors import LaunchError
from lila.core.process import LaunchConfig, ProcessHandle, SubprocessLauncher


def python_command(code: str) -> str:
    return shlex.join([sys.executable, "-c", code])


class TestSubprocessLauncher:
    """Tests for launching and stopping backends."""

    @pytest.mark.asyncio
    async def test_output_forwarded(self, eventually):
        """Each output line reaches the callback without its newline."""
        lines = []
        launcher = SubprocessLauncher()

        handle = await launcher.start(
            python_command("print('ready'); print('port 9090')"), lines.append
        )
        code = await handle.wait()

        await eventually(lambda: len(lines) == 2)
        assert code == 0
        assert lines == ["ready", "port 9090"]
        await handle.stop()

    @pytest.mark.asyncio
    async def test_stderr_merged(self, eventually):
        """stderr is forwarded along with stdout."""
        lines = []
        handle = await SubprocessLauncher().start(
            python_command("import sys; sys.stderr.write('oops\\n')"), lines.append
        )
        await handle.wait()

        await eventually(lambda: lines == ["oops"])
        await handle.stop()

    @pytest.mark.asyncio
    async def test_handle_protocol(self):
        """Handles satisfy ProcessHandle."""
        handle = await SubprocessLauncher().start(python_command("pass"))
        assert isinstance(handle, ProcessHandle)
        await handle.wait()
        assert not handle.is_alive
        assert handle.returncode == 0
        await handle.stop()

    @pytest.mark.asyncio
    async def test_exit_code(self):
        """wait() returns the exit code."""
        handle = await SubprocessLauncher().start(python_command("raise SystemExit(4)"))
        assert await handle.wait() == 4
        await handle.stop()

    @pytest.mark.asyncio
    async def test_stop_terminates(self):
        """stop() ends a long-running backend."""
        handle = await SubprocessLauncher().start(python_command("import time; time.sleep(30)"))
        assert handle.is_alive

        await handle.stop()

        assert not handle.is_alive
        await handle.stop()

    @pytest.mark.asyncio
    async def test_stop_kills_after_timeout(self, eventually):
        """A backend ignoring SIGTERM is killed."""
        code = (
            "import signal, sys, time\n"
            "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
            "print('armed', flush=True)\n"
            "time.sleep(30)\n"
        )
        lines = []
        launcher = SubprocessLauncher(LaunchConfig(stop_timeout=0.2))
        handle = await launcher.start(python_command(code), lines.append)
        await eventually(lambda: lines == ["armed"])

        await handle.stop()

        assert not handle.is_alive
        assert handle.returncode != 0

    @pytest.mark.asyncio
    async def test_env_and_cwd(self, tmp_path, eventually):
        """Extra environment and working directory are applied."""
        lines = []
        config = LaunchConfig(cwd=str(tmp_path), env={"LILA_TEST_VALUE": "42"})
        launcher = SubprocessLauncher(config)
        handle = await launcher.start(
            python_command("import os; print(os.environ['LILA_TEST_VALUE']); print(os.getcwd())"),
            lines.append,
        )
        await handle.wait()

        await eventually(lambda: len(lines) == 2)
        assert lines[0] == "42"
        assert lines[1] == str(tmp_path.resolve())
        await handle.stop()

    @pytest.mark.asyncio
    async def test_missing_executable(self):
        """An unknown program raises LaunchError."""
        with pytest.raises(LaunchError, match="lila-does-not-exist"):
            await SubprocessLauncher().start("lila-does-not-exist --port 1")

    @pytest.mark.asyncio
    async def test_empty_command(self):
        """An empty command raises LaunchError."""
        with pytest.raises(LaunchError, match="empty"):
            await SubprocessLauncher().start("   ")

    @pytest.mark.asyncio
    async def test_unbalanced_quotes(self):
        """Unparseable command lines raise LaunchError."""
        with pytest.raises(LaunchError, match="Cannot parse"):
            await SubprocessLauncher().start("lila_server 'unterminated")
