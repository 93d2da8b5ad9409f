"""rich-backed StatusSink and OutputSink.

Both write to a shared ``rich.console.Console`` so output from the read
loop, the backend and the prompt interleave on one terminal.
"""

from __future__ import annotations

from rich.console import Console
from rich.theme import Theme

from lila.core.sinks import StatusIndicator, StatusLevel


def create_theme(
    *,
    input_text: str = "bold cyan",
    output_text: str = "default",
    success: str = "bold green",
    error: str = "bold red",
    warning: str = "bold yellow",
    server: str = "dim",
    status: str = "dim cyan",
) -> Theme:
    """Create the console theme.

    Every style the sinks use is defined here, so callers can restyle
    without touching the sinks.
    """
    return Theme(
        {
            "input": input_text,
            "output": output_text,
            "success": success,
            "error": error,
            "warning": warning,
            "server": server,
            "status": status,
        }
    )


# Transcript line prefix -> theme style
_PREFIX_STYLES = (
    (">>> ", "input"),
    ("✓", "success"),
    ("✗", "error"),
    ("[Server]", "server"),
)

_STATUS_MARKERS = {
    StatusLevel.CONNECTED: "●",
    StatusLevel.SERVER_RUNNING: "◐",
    StatusLevel.DISCONNECTED: "○",
}


def _style_for(text: str) -> str:
    for prefix, style in _PREFIX_STYLES:
        if text.startswith(prefix):
            return style
    return "output"


class ConsoleOutput:
    """OutputSink that prints the transcript to a rich console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(theme=create_theme())

    def append(self, text: str) -> None:
        self.console.print(text, end="", style=_style_for(text), markup=False, highlight=False)

    def append_line(self, text: str) -> None:
        self.console.print(text, style=_style_for(text), markup=False, highlight=False)

    def clear(self) -> None:
        self.console.clear()

    def show(self) -> None:
        # The terminal is always visible
        pass


class ConsoleStatus:
    """StatusSink that prints status changes and notices.

    Repeated updates with an unchanged level are not printed.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(theme=create_theme(), stderr=True)
        self._last: StatusIndicator | None = None

    @property
    def current(self) -> StatusIndicator | None:
        return self._last

    def update(self, status: StatusIndicator) -> None:
        if self._last is not None and self._last.level is status.level:
            self._last = status
            return
        self._last = status
        marker = _STATUS_MARKERS[status.level]
        self.console.print(f"{marker} {status.tooltip}", style="status", markup=False)

    def show_info(self, message: str) -> None:
        self.console.print(message, markup=False)

    def show_warning(self, message: str) -> None:
        self.console.print(message, style="warning", markup=False)

    def show_error(self, message: str) -> None:
        self.console.print(message, style="error", markup=False)
