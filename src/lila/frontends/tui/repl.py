"""Interactive prompt for a Lila server.

Each line typed is sent as one unit; responses are printed as they
arrive, above the prompt. Lines starting with ``:`` are local commands.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console
from rich.markup import escape

from lila.core.config import LilaConfig
from lila.core.process import ProcessLauncher
from lila.frontends.tui.console import ConsoleOutput, ConsoleStatus, create_theme
from lila.session import LilaSession

PROMPT = "lila> "

HELP_TEXT = """\
[bold]Commands:[/]
  [bold]:status[/]       Show server and client status
  [bold]:connect[/]      Connect to the server
  [bold]:disconnect[/]   Disconnect from the server
  [bold]:restart[/]      Restart the server (when managed)
  [bold]:clear[/]        Clear the screen
  [bold]:help[/]         Show this help
  [bold]:quit[/]         Exit

Anything else is sent to the server as one line."""


@dataclass
class LilaRepl:
    """Prompt loop driving a LilaSession.

    Example:
        >>> repl = LilaRepl(load_config(), start_server=False)
        >>> await repl.run()
    """

    config: LilaConfig
    start_server: bool = True
    launcher: ProcessLauncher | None = None

    console: Console = field(init=False)
    session: LilaSession = field(init=False)
    _prompt_session: PromptSession[str] = field(init=False)
    _running: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        # force_terminal keeps colours working through patch_stdout()
        self.console = Console(theme=create_theme(), force_terminal=True)
        self._prompt_session = PromptSession(history=InMemoryHistory())
        self.session = LilaSession(
            self.config,
            status=ConsoleStatus(self.console),
            output=ConsoleOutput(self.console),
            launcher=self.launcher,
            confirm=self.confirm,
        )

    async def confirm(self, prompt: str) -> bool:
        answer = await self._prompt_session.prompt_async(f"{prompt} [Y/n] ")
        return answer.strip().lower() in ("", "y", "yes")

    async def run(self) -> None:
        """Run until :quit or EOF, then dispose the session."""
        self._running = True
        self.console.print(
            f"[bold]Lila[/] [dim]{self.config.host}:{self.config.port} | :help for commands[/]"
        )

        if self.start_server:
            await self.session.start_server()
        else:
            await self.session.connect_client()

        try:
            with patch_stdout(raw=True):
                while self._running:
                    try:
                        line = await self._prompt_session.prompt_async(PROMPT)
                    except KeyboardInterrupt:
                        continue
                    except EOFError:
                        break

                    if not line.strip():
                        continue
                    await self.handle_input(line)
        finally:
            await self.session.dispose()

    async def handle_input(self, line: str) -> None:
        command = line.strip()
        if not command.startswith(":"):
            await self.session.send_code(line, log_input=False)
            return

        if command in (":quit", ":exit", ":q"):
            self._running = False
        elif command == ":status":
            self.session.show_status()
        elif command == ":connect":
            await self.session.connect_client()
        elif command == ":disconnect":
            self.session.disconnect_client()
        elif command == ":restart":
            await self.session.restart_server()
        elif command == ":clear":
            self.session.clear_output()
        elif command == ":help":
            self.console.print(HELP_TEXT)
        else:
            self.console.print(f"[warning]Unknown command: {escape(command)}[/] [dim](:help)[/]")
