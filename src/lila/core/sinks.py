"""Capability interfaces injected into lila by its host.

The core never reaches into a global UI. Whatever embeds it (an editor
plugin, the bundled terminal frontend, a test) passes in objects that
satisfy these protocols:

    StatusSink   Compact status indicator plus info/warning/error notices
    OutputSink   Append-only transcript of inputs, responses and server output

Null implementations are provided for headless use.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable


class StatusLevel(Enum):
    """Coarse status shown in the indicator."""

    DISCONNECTED = "disconnected"
    SERVER_RUNNING = "server_running"
    CONNECTED = "connected"


@dataclass(frozen=True)
class StatusIndicator:
    """What a status widget should display.

    Attributes:
        level: Coarse status.
        text: Short label, e.g. "Lila".
        tooltip: Longer description, e.g. "Lila: Connected".
    """

    level: StatusLevel
    text: str
    tooltip: str


@runtime_checkable
class StatusSink(Protocol):
    """Receives status indicator updates and user notices."""

    def update(self, status: StatusIndicator) -> None: ...

    def show_info(self, message: str) -> None: ...

    def show_warning(self, message: str) -> None: ...

    def show_error(self, message: str) -> None: ...


@runtime_checkable
class OutputSink(Protocol):
    """Append-only output transcript."""

    def append(self, text: str) -> None: ...

    def append_line(self, text: str) -> None: ...

    def clear(self) -> None: ...

    def show(self) -> None: ...


class NullStatusSink:
    """StatusSink that discards everything."""

    def update(self, status: StatusIndicator) -> None:
        pass

    def show_info(self, message: str) -> None:
        pass

    def show_warning(self, message: str) -> None:
        pass

    def show_error(self, message: str) -> None:
        pass


class NullOutputSink:
    """OutputSink that discards everything."""

    def append(self, text: str) -> None:
        pass

    def append_line(self, text: str) -> None:
        pass

    def clear(self) -> None:
        pass

    def show(self) -> None:
        pass
