"""TCP session transport for a Lila evaluation server.

SessionConnection keeps one persistent TCP stream to the server and owns
the client side of the protocol:

    disconnected --connect()--> connecting --ok--> connected
                                     \\--refused/timeout--> error
    connected --EOF / disconnect()--> disconnected
    connected --I/O error--> error --> disconnected
    error --connect()--> disconnected --> connecting

On every entry into ``connected`` the session handshake is written first,
then anything that was sent while offline, in order.

Nothing here raises across the public API. Failures surface through the
state listeners and connect()'s boolean result, and are logged.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import uuid
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field

from lila.core.protocol import (
    CONNECT_TIMEOUT_S,
    ENCODING,
    READ_CHUNK_SIZE,
    Framer,
    FramingMode,
    create_framer,
    decode_unit,
    encode_line,
    session_line,
)
from lila.core.types import ConnectionState, Response

logger = logging.getLogger(__name__)

ResponseHandler = Callable[[Response], None]
StateListener = Callable[[ConnectionState], None]


def _new_session_id() -> str:
    return uuid.uuid4().hex


@dataclass
class SessionConnection:
    """Client connection to a Lila server.

    Example:
        >>> conn = SessionConnection("127.0.0.1", 9090, on_response=print)
        >>> conn.send("(+ 1 2)")          # queued while offline
        >>> await conn.connect()          # handshake, then the queued line
        True
        >>> conn.send("(* 2 3)")          # written immediately
        >>> conn.disconnect()
    """

    host: str
    port: int
    connect_timeout: float = CONNECT_TIMEOUT_S
    framing: FramingMode | str = FramingMode.CHUNK
    session_id: str = field(default_factory=_new_session_id)
    on_response: ResponseHandler | None = field(default=None, repr=False)
    on_state_change: StateListener | None = field(default=None, repr=False)

    _state: ConnectionState = field(default=ConnectionState.DISCONNECTED, init=False)
    _reader: asyncio.StreamReader | None = field(default=None, init=False, repr=False)
    _writer: asyncio.StreamWriter | None = field(default=None, init=False, repr=False)
    _pending: deque[str] = field(default_factory=deque, init=False, repr=False)
    _connect_task: asyncio.Task[bool] | None = field(default=None, init=False, repr=False)
    _reader_task: asyncio.Task[None] | None = field(default=None, init=False, repr=False)
    _response_handlers: list[ResponseHandler] = field(default_factory=list, init=False, repr=False)
    _state_listeners: list[StateListener] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        self.framing = FramingMode(self.framing)
        if self.on_response:
            self._response_handlers.append(self.on_response)
        if self.on_state_change:
            self._state_listeners.append(self.on_state_change)

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def state(self) -> ConnectionState:
        return self._state

    def get_state(self) -> ConnectionState:
        return self._state

    @property
    def pending(self) -> list[str]:
        """Payloads waiting for the next successful connect."""
        return list(self._pending)

    def is_connected(self) -> bool:
        """Whether a send right now would reach the server.

        Checked against the live transport on every call, so a stream the
        peer has already torn down reads as disconnected even before the
        read loop has noticed.
        """
        return (
            self._state is ConnectionState.CONNECTED
            and self._writer is not None
            and not self._writer.is_closing()
        )

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def add_response_handler(self, handler: ResponseHandler) -> Callable[[], None]:
        """Register a handler for decoded responses.

        Handlers run in registration order on the event loop.

        Returns:
            A callable that unregisters the handler.
        """
        self._response_handlers.append(handler)
        return lambda: self._discard(self._response_handlers, handler)

    def add_state_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener for state transitions.

        Returns:
            A callable that unregisters the listener.
        """
        self._state_listeners.append(listener)
        return lambda: self._discard(self._state_listeners, listener)

    @staticmethod
    def _discard(items: list, item: object) -> None:
        if item in items:
            items.remove(item)

    # =========================================================================
    # Connection management
    # =========================================================================

    async def connect(self) -> bool:
        """Connect to the server.

        Concurrent calls share one attempt. A call while already connected
        returns immediately without a new handshake.

        Returns:
            True once connected, False if the attempt failed, timed out
            or was abandoned by disconnect().
        """
        if self.is_connected():
            return True

        if self._connect_task is not None and not self._connect_task.done():
            return await self._await_attempt(self._connect_task)

        if self._state is not ConnectionState.DISCONNECTED:
            # Leftovers from a failed attempt or a dead stream
            self._close_stream()
            self._set_state(ConnectionState.DISCONNECTED)

        self._set_state(ConnectionState.CONNECTING)
        if self._state is not ConnectionState.CONNECTING:
            # A listener called disconnect()
            return False

        task = asyncio.create_task(self._establish())
        self._connect_task = task
        return await self._await_attempt(task)

    def disconnect(self) -> None:
        """Drop the connection and any attempt in flight.

        Safe to call in any state. Queued payloads are kept for the next
        connect.
        """
        task, self._connect_task = self._connect_task, None
        if task is not None and not task.done():
            task.cancel()

        self._close_stream()
        if self._state is not ConnectionState.DISCONNECTED:
            logger.debug("Disconnected from %s:%s", self.host, self.port)
            self._set_state(ConnectionState.DISCONNECTED)

    def send(self, text: str) -> None:
        """Send one unit of text, or queue it until the next connect.

        Never blocks and never raises. Delivery is not acknowledged.
        """
        if self._state is ConnectionState.CONNECTED and not self.is_connected():
            # Peer went away and the read loop has not caught up yet
            self._on_stream_lost()

        if not self.is_connected():
            self._pending.append(text)
            logger.debug("Queued payload (%d pending)", len(self._pending))
            return

        self._write(encode_line(text))

    # =========================================================================
    # Internals
    # =========================================================================

    async def _await_attempt(self, task: asyncio.Task[bool]) -> bool:
        """Wait for a connect attempt without letting callers cancel it."""
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled() and self._connect_task is not task:
                # Cancelled by disconnect() before it got going
                return False
            raise

    async def _establish(self) -> bool:
        """Open the stream, then perform the connected-entry side effects."""
        this_task = asyncio.current_task()
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.connect_timeout,
            )
        except asyncio.CancelledError:
            if self._connect_task is not this_task:
                logger.debug("Connect to %s:%s abandoned", self.host, self.port)
                return False
            raise
        except TimeoutError:
            logger.warning(
                "Connection to %s:%s timed out after %.1fs",
                self.host,
                self.port,
                self.connect_timeout,
            )
            self._fail_attempt(this_task)
            return False
        except OSError as e:
            logger.warning("Lila connection error: %s", e)
            self._fail_attempt(this_task)
            return False

        if self._connect_task is not this_task:
            # disconnect() raced the final step of the open
            writer.close()
            return False

        self._reader, self._writer = reader, writer
        logger.info("Connected to %s:%s (session %s)", self.host, self.port, self.session_id)

        self._write(session_line(self.session_id))
        self._drain_pending()

        self._reader_task = asyncio.create_task(
            self._read_loop(reader, writer, create_framer(self.framing))
        )
        self._set_state(ConnectionState.CONNECTED)
        return True

    def _fail_attempt(self, task: asyncio.Task | None) -> None:
        if self._connect_task is task:
            self._set_state(ConnectionState.ERROR)

    def _drain_pending(self) -> None:
        if self._pending:
            logger.debug("Flushing %d queued payload(s)", len(self._pending))
        while self._pending:
            self._write(encode_line(self._pending.popleft()))

    def _write(self, data: bytes) -> None:
        if self._writer is None:
            return
        try:
            self._writer.write(data)
        except (OSError, RuntimeError) as e:
            logger.warning("Write to Lila server failed: %s", e)

    async def _read_loop(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        framer: Framer,
    ) -> None:
        """Decode inbound data until the stream ends."""
        decoder = codecs.getincrementaldecoder(ENCODING)(errors="replace")
        failed = False
        try:
            while True:
                data = await reader.read(READ_CHUNK_SIZE)
                if not data:
                    logger.debug("Socket closed by server (empty read)")
                    break
                self._dispatch(framer.feed(decoder.decode(data)))
            self._dispatch(framer.feed(decoder.decode(b"", final=True)) + framer.flush())
        except asyncio.CancelledError:
            logger.debug("Read loop cancelled")
            raise
        except OSError as e:
            logger.warning("Lila connection error: %s", e)
            failed = True
        except Exception as e:
            logger.error("Unexpected error in read loop: %s", e, exc_info=True)
            failed = True

        if writer is not self._writer:
            return
        if failed:
            self._set_state(ConnectionState.ERROR)
        self._on_stream_lost()

    def _dispatch(self, units: list[str]) -> None:
        for unit in units:
            response = decode_unit(unit)
            if response is None:
                continue
            for handler in list(self._response_handlers):
                try:
                    handler(response)
                except Exception:
                    logger.exception("Response handler failed")

    def _on_stream_lost(self) -> None:
        self._close_stream()
        if self._state is not ConnectionState.DISCONNECTED:
            self._set_state(ConnectionState.DISCONNECTED)

    def _close_stream(self) -> None:
        reader_task, self._reader_task = self._reader_task, None
        if (
            reader_task is not None
            and not reader_task.done()
            and reader_task is not asyncio.current_task()
        ):
            reader_task.cancel()

        writer, self._writer = self._writer, None
        self._reader = None
        if writer is not None:
            writer.close()

    def _set_state(self, state: ConnectionState) -> None:
        self._state = state
        logger.debug("Connection state: %s", state.value)
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("State listener failed")
