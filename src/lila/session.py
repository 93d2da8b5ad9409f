"""LilaSession - wires the server lifecycle and the client together.

The session is what an editor integration (or the bundled CLI) talks to.
It owns no protocol state of its own: it forwards text to the
SessionConnection, renders responses into an OutputSink and keeps a
StatusSink up to date.

Example:
    >>> session = LilaSession(load_config(), status=ConsoleStatus(), output=ConsoleOutput())
    >>> session.activate()                 # starts the server, then connects
    >>> await session.eval_buffer(source)
    >>> await session.dispose()
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from lila.core.config import LilaConfig
from lila.core.process import ProcessLauncher, ServerLifecycle
from lila.core.sinks import (
    NullOutputSink,
    NullStatusSink,
    OutputSink,
    StatusIndicator,
    StatusLevel,
    StatusSink,
)
from lila.core.types import (
    ConnectionState,
    ErrorResult,
    Raw,
    Response,
    Success,
    Unclassified,
    ValueResult,
)
from lila.transport import SessionConnection

logger = logging.getLogger(__name__)

# Delay between activate() and the automatic server start
AUTO_START_DELAY_S = 1.0
# Delay between a successful server start and the automatic connect
AUTO_CONNECT_DELAY_S = 0.5

STATUS_LABEL = "Lila"
CONNECT_PROMPT = "Not connected to Lila server. Connect now?"

ConfirmCallback = Callable[[str], Awaitable[bool]]


async def _always_connect(prompt: str) -> bool:
    return True


def render_response(response: Response) -> str:
    """Format a response for the output transcript."""
    if isinstance(response, Success):
        return f"✓ {response.message or 'Success'}"
    if isinstance(response, ErrorResult):
        return f"✗ ERROR: {response.message or 'Unknown error'}"
    if isinstance(response, ValueResult):
        return f"Result: {_to_json(response.result)}"
    if isinstance(response, Raw):
        return response.text
    return f"Response: {_to_json(response.payload)}"


def _to_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def find_block(buffer: str, line: int) -> str:
    """Return the blank-line-delimited block of text around ``line``.

    Args:
        buffer: Full source text.
        line: Zero-based line index.

    Returns:
        The block, or an empty string when ``line`` is blank or out of range.
    """
    lines = buffer.splitlines()
    if not 0 <= line < len(lines) or not lines[line].strip():
        return ""

    start = line
    while start > 0 and lines[start - 1].strip():
        start -= 1
    end = line
    while end + 1 < len(lines) and lines[end + 1].strip():
        end += 1
    return "\n".join(lines[start : end + 1])


class LilaSession:
    """Orchestrates one Lila server and one client connection.

    Args:
        config: Connection and launch settings.
        status: Where status changes and notices go.
        output: Where inputs, responses and server output go.
        launcher: How to launch the backend (default: subprocess).
        confirm: Asked before connecting on demand; defaults to yes.
    """

    def __init__(
        self,
        config: LilaConfig | None = None,
        *,
        status: StatusSink | None = None,
        output: OutputSink | None = None,
        launcher: ProcessLauncher | None = None,
        confirm: ConfirmCallback | None = None,
    ) -> None:
        self.config = config or LilaConfig()
        self.status = status or NullStatusSink()
        self.output = output or NullOutputSink()
        self._confirm = confirm or _always_connect
        self._timers: set[asyncio.Task[Any]] = set()

        self.server = ServerLifecycle(
            self.config.server_path,
            launcher=launcher,
            on_output=self._on_server_output,
            on_state_change=lambda _state: self.update_status(),
        )
        self.client = SessionConnection(
            self.config.host,
            self.config.port,
            connect_timeout=self.config.connect_timeout,
            framing=self.config.framing,
            on_response=self.handle_response,
            on_state_change=lambda _state: self.update_status(),
        )

        self.update_status()

    # =========================================================================
    # Status and output
    # =========================================================================

    def status_indicator(self) -> StatusIndicator:
        if self.client.state is ConnectionState.CONNECTED:
            return StatusIndicator(StatusLevel.CONNECTED, STATUS_LABEL, "Lila: Connected")
        if self.server.is_running():
            return StatusIndicator(
                StatusLevel.SERVER_RUNNING, STATUS_LABEL, "Lila: Server Running"
            )
        return StatusIndicator(StatusLevel.DISCONNECTED, STATUS_LABEL, "Lila: Disconnected")

    def update_status(self) -> None:
        self.status.update(self.status_indicator())

    def handle_response(self, response: Response) -> None:
        """Render a decoded response; errors are also raised as notices."""
        self.output.append_line(render_response(response))
        if isinstance(response, ErrorResult):
            self.status.show_error(f"Lila: {response.message}")

    def _on_server_output(self, text: str) -> None:
        self.output.append(f"[Server] {text}\n")

    def status_report(self) -> str:
        return (
            "Lila Status:\n"
            f"Server: {self.server.state.value}\n"
            f"Client: {self.client.state.value}\n"
            f"Connected: {str(self.client.is_connected()).lower()}"
        )

    def show_status(self) -> None:
        self.status.show_info(self.status_report())

    def show_output(self) -> None:
        self.output.show()

    def clear_output(self) -> None:
        self.output.clear()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def activate(self) -> asyncio.Task[Any] | None:
        """Schedule the automatic server start, if configured.

        Must be called from a running event loop.
        """
        if not self.config.auto_start_server:
            return None
        return self._schedule(AUTO_START_DELAY_S, self.start_server)

    async def start_server(self) -> bool:
        success = await self.server.start()
        if success and self.config.auto_connect:
            self._schedule(AUTO_CONNECT_DELAY_S, self.connect_client)
        if not success:
            self.status.show_error("Failed to start Lila server")
        self.update_status()
        return success

    async def stop_server(self) -> None:
        self.client.disconnect()
        await self.server.stop()
        self.update_status()

    async def restart_server(self) -> bool:
        self.client.disconnect()
        await self.server.stop()
        return await self.start_server()

    async def connect_client(self) -> bool:
        success = await self.client.connect()
        self.update_status()
        return success

    def disconnect_client(self) -> None:
        self.client.disconnect()
        self.update_status()

    async def dispose(self) -> None:
        """Cancel pending timers, disconnect and stop the server."""
        for task in list(self._timers):
            task.cancel()
        self._timers.clear()
        self.client.disconnect()
        await self.server.stop()

    def _schedule(
        self, delay: float, action: Callable[[], Awaitable[Any]]
    ) -> asyncio.Task[Any]:
        async def run() -> None:
            await asyncio.sleep(delay)
            await action()

        task = asyncio.create_task(run())
        self._timers.add(task)
        task.add_done_callback(self._timers.discard)
        return task

    # =========================================================================
    # Evaluation
    # =========================================================================

    async def send_code(self, code: str, log_input: bool = True) -> bool:
        """Send code to the server, offering to connect first if needed.

        Returns:
            True if the code was handed to the connection.
        """
        if not self.client.is_connected():
            if not await self._confirm(CONNECT_PROMPT):
                return False
            if not await self.connect_client():
                self.status.show_error("Failed to connect to Lila server")
                return False

        if log_input:
            self.output.append_line(f">>> {code}")

        self.client.send(code)
        return True

    async def eval_line(self, buffer: str, line: int) -> bool:
        """Evaluate one line (zero-based) of ``buffer``."""
        lines = buffer.splitlines()
        if not 0 <= line < len(lines):
            self.status.show_warning(f"Line {line + 1} is out of range")
            return False
        return await self.send_code(lines[line])

    async def eval_selection(self, text: str) -> bool:
        if not text:
            self.status.show_warning("No text selected")
            return False
        return await self.send_code(text)

    async def eval_buffer(self, buffer: str) -> bool:
        return await self.send_code(buffer)

    async def eval_block(self, buffer: str, line: int) -> bool:
        """Evaluate the paragraph-style block containing ``line``."""
        block = find_block(buffer, line)
        if not block.strip():
            self.status.show_warning("No code block found")
            return False
        return await self.send_code(block)
