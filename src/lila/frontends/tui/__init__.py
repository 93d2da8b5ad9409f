"""Terminal UI pieces: rich-backed sinks and the interactive prompt."""

from lila.frontends.tui.console import ConsoleOutput, ConsoleStatus, create_theme

__all__ = ["ConsoleOutput", "ConsoleStatus", "create_theme"]
