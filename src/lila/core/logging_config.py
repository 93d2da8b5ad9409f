"""Centralized logging configuration for Lila.

Library modules only ever do ``logger = logging.getLogger(__name__)``;
handlers are installed once, by whichever application embeds lila (the
bundled CLI calls ``configure_logging`` at startup).

Usage:
    from lila.core.logging_config import configure_logging

    configure_logging(level="DEBUG")            # rich console output
    configure_logging(format="json", force=True)  # one JSON object per line

Environment Variables:
    LILA_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    LILA_LOG_FORMAT: Output format ("rich", "text" or "json")
    LILA_LOG_FILE: Optional log file path (always plain text or JSON)
"""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from rich.console import Console
from rich.logging import RichHandler

LogFormat = Literal["rich", "text", "json"]

TEXT_FORMAT = "%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Logger that owns every lila module logger
ROOT_LOGGER_NAME = "lila"

# Attributes present on every LogRecord; anything else came in via ``extra=``
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime", "taskName"}

_configured = False


@dataclass
class LogConfig:
    """Resolved logging configuration.

    Attributes:
        level: Log level name.
        format: Console output format.
        file_path: Optional file to mirror records into.
    """

    level: str = "INFO"
    format: LogFormat = "rich"
    file_path: str | None = None

    @classmethod
    def from_env(
        cls,
        level: str | None = None,
        format: LogFormat | None = None,
        file_path: str | None = None,
    ) -> LogConfig:
        """Resolve values with priority argument > environment > default."""
        return cls(
            level=(level or os.environ.get("LILA_LOG_LEVEL") or "INFO").upper(),
            format=format or os.environ.get("LILA_LOG_FORMAT", "rich"),  # type: ignore[arg-type]
            file_path=file_path or os.environ.get("LILA_LOG_FILE"),
        )


class JsonFormatter(logging.Formatter):
    """Render each record as a single JSON object.

    Fields passed through ``extra=`` (for example ``session_id``) are
    collected under an ``extra`` key.
    """

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS}
        if extra:
            data["extra"] = extra

        return json.dumps(data, default=str)


def _build_formatter(format: LogFormat) -> logging.Formatter:
    if format == "json":
        return JsonFormatter()
    return logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)


def _build_console_handler(format: LogFormat) -> logging.Handler:
    if format == "rich":
        return RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_build_formatter(format))
    return handler


def configure_logging(
    level: str | None = None,
    format: LogFormat | None = None,
    file_path: str | None = None,
    force: bool = False,
) -> LogConfig:
    """Install handlers on the ``lila`` logger.

    Only the first call has an effect unless ``force`` is set.

    Args:
        level: Log level. Defaults to LILA_LOG_LEVEL or INFO.
        format: Console format. Defaults to LILA_LOG_FORMAT or rich.
        file_path: Mirror records to this file. Defaults to LILA_LOG_FILE.
        force: Replace handlers installed by an earlier call.

    Returns:
        The configuration that was applied.

    Raises:
        ValueError: If the level or format name is unknown.
    """
    global _configured

    config = LogConfig.from_env(level, format, file_path)
    if config.format not in ("rich", "text", "json"):
        raise ValueError(f"Unknown log format: {config.format}")
    numeric_level = logging.getLevelName(config.level)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {config.level}")

    if _configured and not force:
        return config

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(numeric_level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(_build_console_handler(config.format))

    if config.file_path:
        file_handler = logging.FileHandler(config.file_path)
        # Files never get terminal markup
        file_handler.setFormatter(_build_formatter("json" if config.format == "json" else "text"))
        logger.addHandler(file_handler)

    logger.propagate = False
    _configured = True
    return config


def set_level(level: str, logger_name: str = ROOT_LOGGER_NAME) -> None:
    """Change the level of a lila logger after configuration."""
    logging.getLogger(logger_name).setLevel(level.upper())
