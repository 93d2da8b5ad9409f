"""CLI frontend for lila."""

from lila.frontends.cli.main import main

__all__ = ["main"]
