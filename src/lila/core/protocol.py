"""Wire protocol for talking to a Lila evaluation server.

Outbound, every unit is the caller's text followed by a single newline.
The text is not escaped, so embedded newlines travel as-is and only the
appended one is structural. The first unit on every new connection is the
session handshake::

    @session <session_id>\\n

Inbound, the server writes arbitrary byte chunks. Each framed unit is
tried as JSON and classified into a Response variant; anything that does
not parse is passed through as Raw text.

Framing:
    chunk   One read chunk is one unit (default, what existing servers expect).
            A JSON document split across two reads arrives as two Raw units.
    line    Units are split on newlines; a partial trailing line is held
            until it is completed or the stream ends.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Protocol

from lila.core.types import (
    ErrorResult,
    Raw,
    Response,
    Success,
    Unclassified,
    ValueResult,
)

logger = logging.getLogger(__name__)

SESSION_PREFIX = "@session"
LINE_TERMINATOR = "\n"
ENCODING = "utf-8"

# Default read size for the inbound stream
READ_CHUNK_SIZE = 64 * 1024

# Bound on how long connect() may wait before giving up
CONNECT_TIMEOUT_S = 5.0


class FramingMode(Enum):
    """How inbound bytes are cut into protocol units."""

    CHUNK = "chunk"
    LINE = "line"


def encode_line(text: str) -> bytes:
    """Encode one outbound unit."""
    return (text + LINE_TERMINATOR).encode(ENCODING)


def session_line(session_id: str) -> bytes:
    """Encode the session handshake unit."""
    return encode_line(f"{SESSION_PREFIX} {session_id}")


def classify(payload: Any) -> Response:
    """Classify a parsed JSON payload.

    Discriminators are checked in order: ``status == "success"``,
    ``status == "error"``, presence of a ``result`` key. Anything else,
    including non-object JSON values, is Unclassified.

    Args:
        payload: Value produced by ``json.loads``.

    Returns:
        The matching Response variant.
    """
    if isinstance(payload, dict):
        status = payload.get("status")
        if status == "success":
            return Success(message=payload.get("message"))
        if status == "error":
            return ErrorResult(message=payload.get("message"))
        if "result" in payload:
            return ValueResult(result=payload["result"])
    return Unclassified(payload=payload)


def decode_unit(text: str) -> Response | None:
    """Decode one inbound unit.

    Args:
        text: The unit as received.

    Returns:
        The classified response, or None for blank input.
    """
    if not text or not text.strip():
        return None

    try:
        payload = json.loads(text)
    except (ValueError, RecursionError):
        logger.debug("Unit is not JSON, passing through as raw (%d chars)", len(text))
        return Raw(text=text)

    return classify(payload)


class Framer(Protocol):
    """Cuts decoded inbound text into protocol units."""

    def feed(self, text: str) -> list[str]:
        """Accept newly received text and return the complete units."""
        ...

    def flush(self) -> list[str]:
        """Return whatever is still buffered when the stream ends."""
        ...


class ChunkFramer:
    """Treats every received chunk as one unit."""

    def feed(self, text: str) -> list[str]:
        return [text]

    def flush(self) -> list[str]:
        return []


class LineFramer:
    """Splits received text on newlines, buffering partial lines."""

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Text received since the last newline."""
        return self._buffer

    def feed(self, text: str) -> list[str]:
        self._buffer += text
        if LINE_TERMINATOR not in self._buffer:
            return []
        *lines, self._buffer = self._buffer.split(LINE_TERMINATOR)
        return lines

    def flush(self) -> list[str]:
        rest, self._buffer = self._buffer, ""
        return [rest] if rest else []


def create_framer(mode: FramingMode | str) -> Framer:
    """Build a framer for the given mode.

    Raises:
        ValueError: If the mode name is unknown.
    """
    mode = FramingMode(mode)
    if mode is FramingMode.LINE:
        return LineFramer()
    return ChunkFramer()
