"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import os
import socket
from collections.abc import Awaitable, Callable
from unittest.mock import patch

import pytest

from lila.core.errors import LaunchError
from lila.core.sinks import StatusIndicator, StatusLevel


class FakeLilaServer:
    """In-process TCP server standing in for a Lila backend.

    Records every byte received and lets the test write back to the most
    recent client.

    Example:
        >>> async with FakeLilaServer() as server:
        ...     conn = SessionConnection("127.0.0.1", server.port)
        ...     await conn.connect()
        ...     await server.wait_for_lines(1)
        ...     await server.reply('{"status": "success"}')
    """

    def __init__(self) -> None:
        self.received = bytearray()
        self.connections = 0
        self.port = 0
        self._writers: list[asyncio.StreamWriter] = []
        self._server: asyncio.Server | None = None
        self._changed = asyncio.Event()

    async def __aenter__(self) -> FakeLilaServer:
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    @property
    def text(self) -> str:
        return self.received.decode()

    @property
    def lines(self) -> list[str]:
        """Complete lines received so far."""
        return self.text.split("\n")[:-1]

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connections += 1
        self._writers.append(writer)
        self._changed.set()
        try:
            while data := await reader.read(4096):
                self.received.extend(data)
                self._changed.set()
        except ConnectionError:
            pass
        finally:
            writer.close()

    async def _wait(self, predicate: Callable[[], bool], timeout: float) -> None:
        async def wait() -> None:
            while not predicate():
                self._changed.clear()
                await self._changed.wait()

        await asyncio.wait_for(wait(), timeout=timeout)

    async def wait_for_lines(self, count: int, timeout: float = 2.0) -> list[str]:
        await self._wait(lambda: len(self.lines) >= count, timeout)
        return self.lines

    async def wait_for_connections(self, count: int, timeout: float = 2.0) -> None:
        await self._wait(lambda: self.connections >= count, timeout)

    async def reply(self, text: str) -> None:
        """Write raw text to the most recent client."""
        writer = self._writers[-1]
        writer.write(text.encode())
        await writer.drain()

    async def drop_clients(self) -> None:
        """Close every client connection from the server side."""
        for writer in self._writers:
            writer.close()
        self._writers.clear()

    async def close(self) -> None:
        await self.drop_clients()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()


async def _eventually(
    predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.01
) -> None:
    """Poll until predicate() is true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("condition not met within timeout")
        await asyncio.sleep(interval)


@pytest.fixture
def fake_server() -> type[FakeLilaServer]:
    """The FakeLilaServer class, used as ``async with fake_server() as server``."""
    return FakeLilaServer


@pytest.fixture
def eventually() -> Callable[..., Awaitable[None]]:
    """Poll a condition from async tests."""
    return _eventually


@pytest.fixture
def unused_port() -> int:
    """A local TCP port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def clean_env():
    """Run with no LILA_* variables, restoring the environment afterwards."""
    with patch.dict(os.environ):
        for key in [k for k in os.environ if k.startswith("LILA_")]:
            del os.environ[key]
        yield


class FakeHandle:
    """ProcessHandle whose exit is driven by the test."""

    def __init__(self) -> None:
        self.stopped = False
        self._exit: asyncio.Future[int] = asyncio.get_running_loop().create_future()

    @property
    def is_alive(self) -> bool:
        return not self._exit.done()

    def exit(self, code: int) -> None:
        if not self._exit.done():
            self._exit.set_result(code)

    async def wait(self) -> int:
        return await self._exit

    async def stop(self) -> None:
        self.stopped = True
        self.exit(-15)


class FakeLauncher:
    """ProcessLauncher that records commands and hands out FakeHandles."""

    def __init__(
        self, fail: bool = False, delay: float = 0.0, error: Exception | None = None
    ) -> None:
        self.fail = fail
        self.delay = delay
        self.error = error
        self.commands: list[str] = []
        self.handles: list[FakeHandle] = []

    async def start(self, command, on_output=None) -> FakeHandle:
        self.commands.append(command)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.fail:
            raise LaunchError(f"No such file: {command}")
        handle = FakeHandle()
        self.handles.append(handle)
        if on_output:
            on_output("listening")
        return handle


class RecordingStatus:
    """StatusSink that keeps everything it is given."""

    def __init__(self) -> None:
        self.updates: list[StatusIndicator] = []
        self.infos: list[str] = []
        self.warnings: list[str] = []
        self.errors: list[str] = []

    @property
    def levels(self) -> list[StatusLevel]:
        return [u.level for u in self.updates]

    def update(self, status: StatusIndicator) -> None:
        self.updates.append(status)

    def show_info(self, message: str) -> None:
        self.infos.append(message)

    def show_warning(self, message: str) -> None:
        self.warnings.append(message)

    def show_error(self, message: str) -> None:
        self.errors.append(message)


class RecordingOutput:
    """OutputSink that keeps the transcript as a list."""

    def __init__(self) -> None:
        self.lines: list[str] = []
        self.cleared = 0
        self.shown = 0

    def append(self, text: str) -> None:
        self.lines.append(text)

    def append_line(self, text: str) -> None:
        self.lines.append(text + "\n")

    def clear(self) -> None:
        self.cleared += 1

    def show(self) -> None:
        self.shown += 1


@pytest.fixture
def fake_launcher() -> type[FakeLauncher]:
    """The FakeLauncher class; instantiate inside the running loop."""
    return FakeLauncher


@pytest.fixture
def status_sink() -> RecordingStatus:
    return RecordingStatus()


@pytest.fixture
def output_sink() -> RecordingOutput:
    return RecordingOutput()
