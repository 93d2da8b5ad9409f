"""CLI entry point."""

from __future__ import annotations

import asyncio
import sys
from typing import NoReturn, TextIO

import rich_click as click

from lila.core.config import LilaConfig, load_config
from lila.core.errors import ConfigError
from lila.core.logging_config import configure_logging
from lila.core.protocol import FramingMode

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.USE_MARKDOWN = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = "Try running '--help' for more information."
click.rich_click.MAX_WIDTH = 100


def error_exit(message: str, code: int = 1) -> NoReturn:
    """Print error message and exit with code."""
    click.echo(f"Error: {message}", err=True)
    sys.exit(code)


@click.group()
@click.version_option(package_name="lila")
@click.option("--host", default=None, help="Server host (default: LILA_HOST or 127.0.0.1)")
@click.option("--port", type=int, default=None, help="Server port (default: LILA_PORT or 9090)")
@click.option("--server-path", default=None, help="Command that launches the server")
@click.option(
    "--timeout", "connect_timeout", type=float, default=None, help="Connect timeout in seconds"
)
@click.option(
    "--framing",
    type=click.Choice([m.value for m in FramingMode]),
    default=None,
    help="How server output is split into responses",
)
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
@click.pass_context
def cli(
    ctx: click.Context,
    host: str | None,
    port: int | None,
    server_path: str | None,
    connect_timeout: float | None,
    framing: str | None,
    log_level: str | None,
) -> None:
    """Lila - send code to a running Lila evaluation server.

    Settings come from the options below, then `LILA_*` environment
    variables (a `.env.local` or `.env` in the project root is loaded
    first), then built-in defaults.

    **Commands:**

        lila eval      Evaluate a file, a line or a block

        lila repl      Interactive prompt

        lila status    Check whether the server is reachable
    """
    try:
        configure_logging(level=log_level or "WARNING")
        ctx.obj = load_config(
            host=host,
            port=port,
            server_path=server_path,
            connect_timeout=connect_timeout,
            framing=framing,
        )
    except (ConfigError, ValueError) as e:
        error_exit(str(e))


@cli.command(name="eval")
@click.argument("file", type=click.File("r"), default="-")
@click.option("--line", "-l", type=int, default=None, help="Evaluate only this line (1-based)")
@click.option(
    "--block", "-b", type=int, default=None, help="Evaluate the block around this line (1-based)"
)
@click.option(
    "--start/--no-start",
    default=None,
    help="Launch the server first (default: LILA_AUTO_START_SERVER)",
)
@click.option("--wait", "-w", type=float, default=1.0, help="Seconds to wait for responses")
@click.pass_obj
def eval_command(
    config: LilaConfig,
    file: TextIO,
    line: int | None,
    block: int | None,
    start: bool | None,
    wait: float,
) -> None:
    """Evaluate code on the server.

    FILE defaults to stdin. Responses are printed as they arrive for
    `--wait` seconds, then the connection (and any server started by this
    command) is shut down.

    **Examples:**

        lila eval script.lila

        lila eval script.lila --line 12

        echo '(+ 1 2)' | lila eval --no-start
    """
    if line is not None and block is not None:
        error_exit("--line and --block cannot be combined")

    source = file.read()
    if start is None:
        start = config.auto_start_server

    ok = asyncio.run(_run_eval(config, source, line=line, block=block, start=start, wait=wait))
    if not ok:
        sys.exit(1)


async def _run_eval(
    config: LilaConfig,
    source: str,
    *,
    line: int | None,
    block: int | None,
    start: bool,
    wait: float,
) -> bool:
    from lila.frontends.tui.console import ConsoleOutput, ConsoleStatus
    from lila.session import AUTO_CONNECT_DELAY_S, LilaSession

    # Connect explicitly below rather than on the session's timer
    session = LilaSession(
        config.with_overrides(auto_connect=False),
        status=ConsoleStatus(),
        output=ConsoleOutput(),
    )
    try:
        if start:
            if not await session.start_server():
                return False
            await asyncio.sleep(AUTO_CONNECT_DELAY_S)

        if not await session.connect_client():
            session.status.show_error("Failed to connect to Lila server")
            return False

        if line is not None:
            sent = await session.eval_line(source, line - 1)
        elif block is not None:
            sent = await session.eval_block(source, block - 1)
        else:
            sent = await session.eval_buffer(source)

        if sent:
            await asyncio.sleep(wait)
        return sent
    finally:
        await session.dispose()


@cli.command()
@click.option(
    "--start/--no-start",
    default=None,
    help="Launch the server first (default: LILA_AUTO_START_SERVER)",
)
@click.pass_obj
def repl(config: LilaConfig, start: bool | None) -> None:
    """Interactive prompt.

    Every line is sent to the server. Type `:help` for local commands.
    """
    from lila.frontends.tui.repl import LilaRepl

    if start is None:
        start = config.auto_start_server

    asyncio.run(LilaRepl(config, start_server=start).run())


@cli.command()
@click.pass_obj
def status(config: LilaConfig) -> None:
    """Try to connect once and report the result.

    Exits with status 1 when the server cannot be reached.
    """
    connected = asyncio.run(_probe(config))
    if not connected:
        sys.exit(1)


async def _probe(config: LilaConfig) -> bool:
    from lila.session import LilaSession

    session = LilaSession(config)
    try:
        connected = await session.connect_client()
        click.echo(session.status_report())
        return connected
    finally:
        await session.dispose()


def main() -> None:
    """Main entry point for the CLI."""
    cli()
