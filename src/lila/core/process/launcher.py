"""Backend process launching.

A ProcessLauncher turns the configured server command into a running
process and hands back a ProcessHandle. The lifecycle layer only ever
talks to these two protocols, so an editor host can plug in its own
terminal integration while scripts and the CLI use SubprocessLauncher.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from lila.core.errors import LaunchError

logger = logging.getLogger(__name__)

OutputCallback = Callable[[str], None]

# Grace period between SIGTERM and SIGKILL
STOP_TIMEOUT_S = 5.0


@runtime_checkable
class ProcessHandle(Protocol):
    """A launched backend."""

    @property
    def is_alive(self) -> bool:
        """Whether the backend is still running."""
        ...

    async def wait(self) -> int:
        """Wait for the backend to exit and return its exit code."""
        ...

    async def stop(self) -> None:
        """Terminate the backend. Safe to call more than once."""
        ...


@runtime_checkable
class ProcessLauncher(Protocol):
    """Starts backends."""

    async def start(self, command: str, on_output: OutputCallback | None = None) -> ProcessHandle:
        """Launch ``command``.

        Args:
            command: Command line for the backend.
            on_output: Called with each line the backend prints.

        Raises:
            LaunchError: If the backend could not be started.
        """
        ...


@dataclass
class LaunchConfig:
    """Options for SubprocessLauncher.

    Attributes:
        cwd: Working directory for the backend.
        env: Extra environment variables.
        stop_timeout: Seconds to wait after SIGTERM before SIGKILL.
    """

    cwd: str | None = None
    env: dict[str, str] = field(default_factory=dict)
    stop_timeout: float = STOP_TIMEOUT_S


class SubprocessHandle:
    """ProcessHandle for an ``asyncio`` subprocess.

    Output lines are pumped to the callback from a background task for as
    long as the process keeps its stdout open.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        on_output: OutputCallback | None = None,
        stop_timeout: float = STOP_TIMEOUT_S,
    ) -> None:
        self._process = process
        self._on_output = on_output
        self._stop_timeout = stop_timeout
        self._pump_task: asyncio.Task[None] | None = None
        if process.stdout is not None:
            self._pump_task = asyncio.create_task(self._pump(process.stdout))

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    @property
    def is_alive(self) -> bool:
        return self._process.returncode is None

    async def wait(self) -> int:
        return await self._process.wait()

    async def stop(self) -> None:
        if self.is_alive:
            try:
                self._process.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(self._process.wait(), timeout=self._stop_timeout)
            except TimeoutError:
                logger.warning(
                    "Backend pid %s ignored SIGTERM for %.1fs, killing",
                    self.pid,
                    self._stop_timeout,
                )
                try:
                    self._process.kill()
                except ProcessLookupError:
                    pass
                await self._process.wait()

        if self._pump_task and not self._pump_task.done():
            self._pump_task.cancel()
            try:
                await self._pump_task
            except asyncio.CancelledError:
                pass

    async def _pump(self, stream: asyncio.StreamReader) -> None:
        """Forward backend output line by line."""
        try:
            while True:
                line = await stream.readline()
                if not line:
                    break
                if self._on_output is None:
                    continue
                text = line.decode("utf-8", errors="replace").rstrip("\r\n")
                try:
                    self._on_output(text)
                except Exception:
                    logger.exception("Output callback failed")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Stopped reading backend output: %s", e)


class SubprocessLauncher:
    """Launch backends as child processes.

    Example:
        >>> launcher = SubprocessLauncher(LaunchConfig(cwd="/project"))
        >>> handle = await launcher.start("lila_server --port 9090", print)
        >>> await handle.stop()
    """

    def __init__(self, config: LaunchConfig | None = None) -> None:
        self._config = config or LaunchConfig()

    async def start(
        self, command: str, on_output: OutputCallback | None = None
    ) -> SubprocessHandle:
        try:
            argv = shlex.split(command)
        except ValueError as e:
            raise LaunchError(f"Cannot parse server command {command!r}: {e}") from e
        if not argv:
            raise LaunchError("Server command is empty")

        env = None
        if self._config.env:
            env = os.environ.copy()
            env.update(self._config.env)

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=self._config.cwd,
                env=env,
            )
        except OSError as e:
            raise LaunchError(f"Failed to launch {argv[0]!r}: {e}") from e

        logger.info("Launched backend %r (pid %s)", argv[0], process.pid)
        return SubprocessHandle(process, on_output, stop_timeout=self._config.stop_timeout)
