"""Backend server lifecycle.

ServerLifecycle owns at most one ProcessHandle and a ServerState:

    stopped --start()--> starting --> running
                                  \\-> error      (launch failed)
    running --backend exits--> stopped | error  (exit code 0 | non-zero)
    any     --stop()--> stopped

Failures never propagate to the caller: start() reports them through the
state and its boolean result.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from lila.core.process.launcher import (
    OutputCallback,
    ProcessHandle,
    ProcessLauncher,
    SubprocessLauncher,
)
from lila.core.types import ServerState

logger = logging.getLogger(__name__)

ServerStateListener = Callable[[ServerState], None]


class ServerLifecycle:
    """Start and stop the evaluation server the client talks to.

    Example:
        >>> server = ServerLifecycle("lila_server", on_output=print)
        >>> if await server.start():
        ...     print(server.state)
        ServerState.RUNNING
        >>> await server.stop()
    """

    def __init__(
        self,
        server_path: str,
        launcher: ProcessLauncher | None = None,
        on_output: OutputCallback | None = None,
        on_state_change: ServerStateListener | None = None,
    ) -> None:
        """Initialize the lifecycle.

        Args:
            server_path: Command used to launch the backend.
            launcher: How to launch it. Defaults to SubprocessLauncher.
            on_output: Receives each line of backend output.
            on_state_change: Called after every state transition.
        """
        self.server_path = server_path
        self._launcher = launcher or SubprocessLauncher()
        self._on_output = on_output
        self._listeners: list[ServerStateListener] = []
        if on_state_change:
            self._listeners.append(on_state_change)
        self._handle: ProcessHandle | None = None
        self._state = ServerState.STOPPED
        self._watch_task: asyncio.Task[None] | None = None
        self._start_task: asyncio.Task[bool] | None = None

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def handle(self) -> ProcessHandle | None:
        return self._handle

    def get_state(self) -> ServerState:
        return self._state

    def is_running(self) -> bool:
        return self._state is ServerState.RUNNING

    def add_state_listener(self, listener: ServerStateListener) -> Callable[[], None]:
        """Register a state listener.

        Returns:
            A callable that unregisters the listener.
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def start(self) -> bool:
        """Launch the backend unless a live one is already held.

        Concurrent calls share one launch.

        Returns:
            True if the backend is running, False if the launch failed.
        """
        if self._start_task is not None and not self._start_task.done():
            return await asyncio.shield(self._start_task)

        if self._handle is not None:
            if self._handle.is_alive:
                return True
            # Dead handle left behind by an exit we have not processed yet
            self._release_handle()

        self._set_state(ServerState.STARTING)
        task = asyncio.create_task(self._launch())
        self._start_task = task
        return await asyncio.shield(task)

    async def _launch(self) -> bool:
        this_task = asyncio.current_task()
        try:
            handle = await self._launcher.start(self.server_path, self._on_output)
        except OSError as e:
            logger.error("Failed to start Lila server %r: %s", self.server_path, e)
            self._fail_launch(this_task)
            return False
        except Exception as e:
            logger.error("Failed to start Lila server %r: %s", self.server_path, e, exc_info=True)
            self._fail_launch(this_task)
            return False

        if self._start_task is not this_task:
            # stop() ran while the launcher was busy
            try:
                await handle.stop()
            except OSError as e:
                logger.warning("Error stopping Lila server: %s", e)
            return False

        self._start_task = None
        self._handle = handle
        self._set_state(ServerState.RUNNING)
        self._watch_task = asyncio.create_task(self._watch(handle))
        return True

    def _fail_launch(self, task: asyncio.Task | None) -> None:
        if self._start_task is task:
            self._start_task = None
            self._set_state(ServerState.ERROR)

    async def stop(self) -> None:
        """Stop the backend. Safe to call when nothing is running."""
        # A launch still in flight cleans up after itself
        self._start_task = None
        handle = self._release_handle()
        if handle is not None:
            try:
                await handle.stop()
            except OSError as e:
                logger.warning("Error stopping Lila server: %s", e)
        self._set_state(ServerState.STOPPED)

    def _release_handle(self) -> ProcessHandle | None:
        handle, self._handle = self._handle, None
        if self._watch_task and not self._watch_task.done():
            self._watch_task.cancel()
        self._watch_task = None
        return handle

    async def _watch(self, handle: ProcessHandle) -> None:
        """Follow a backend that exits without being asked to."""
        code = await handle.wait()
        if handle is not self._handle:
            return
        self._handle = None
        self._watch_task = None
        if code == 0:
            logger.info("Lila server exited")
            self._set_state(ServerState.STOPPED)
        else:
            logger.warning("Lila server exited with code %s", code)
            self._set_state(ServerState.ERROR)

    def _set_state(self, state: ServerState) -> None:
        self._state = state
        logger.debug("Server state: %s", state.value)
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Server state listener failed")
