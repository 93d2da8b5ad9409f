"""Configuration for lila sessions.

Values resolve with priority: explicit argument > environment > default.
Before the environment is read, ``.env.local`` and then ``.env`` are
loaded from the project root (the nearest directory holding a
``pyproject.toml``, else the working directory). Variables already set in
the environment are never overridden by those files.

Environment Variables:
    LILA_HOST, LILA_PORT, LILA_SERVER_PATH, LILA_AUTO_START_SERVER,
    LILA_AUTO_CONNECT, LILA_CONNECT_TIMEOUT, LILA_FRAMING
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from lila.core.errors import ConfigError
from lila.core.protocol import CONNECT_TIMEOUT_S, FramingMode

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9090
DEFAULT_SERVER_PATH = "lila_server"

ENV_PREFIX = "LILA_"
ENV_FILES = (".env.local", ".env")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def parse_bool(value: str) -> bool:
    """Parse a boolean environment value.

    Raises:
        ConfigError: If the value is not a recognised boolean.
    """
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigError(f"Expected a boolean, got {value!r}")


@dataclass(frozen=True)
class LilaConfig:
    """Settings for talking to (and optionally launching) a Lila server.

    Attributes:
        host: Server address.
        port: Server TCP port.
        server_path: Command used to launch the backend.
        auto_start_server: Launch the backend when a session is activated.
        auto_connect: Connect once the backend has started.
        connect_timeout: Seconds connect() waits before failing.
        framing: How inbound bytes are cut into units ("chunk" or "line").
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    server_path: str = DEFAULT_SERVER_PATH
    auto_start_server: bool = True
    auto_connect: bool = True
    connect_timeout: float = CONNECT_TIMEOUT_S
    framing: str = FramingMode.CHUNK.value

    def validate(self) -> LilaConfig:
        """Check value ranges.

        Returns:
            self, so calls can be chained.

        Raises:
            ConfigError: If any value is out of range.
        """
        if not self.host:
            raise ConfigError("host is required")
        if not 1 <= self.port <= 65535:
            raise ConfigError(f"port must be between 1 and 65535, got {self.port}")
        if not self.server_path.strip():
            raise ConfigError("server_path is required")
        if self.connect_timeout <= 0:
            raise ConfigError(f"connect_timeout must be positive, got {self.connect_timeout}")
        try:
            FramingMode(self.framing)
        except ValueError:
            modes = ", ".join(m.value for m in FramingMode)
            raise ConfigError(f"framing must be one of {modes}, got {self.framing!r}") from None
        return self

    @property
    def framing_mode(self) -> FramingMode:
        return FramingMode(self.framing)

    def with_overrides(self, **overrides: Any) -> LilaConfig:
        """Return a copy with the non-None overrides applied."""
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **values).validate()


def _find_project_root() -> Path | None:
    current = Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return None


def load_env_files(root: Path | None = None) -> list[Path]:
    """Load ``.env.local`` then ``.env`` into the environment.

    Args:
        root: Directory to look in. Defaults to the project root.

    Returns:
        The files that were loaded.
    """
    base = root or _find_project_root() or Path.cwd()
    loaded = []
    for name in ENV_FILES:
        path = base / name
        if path.is_file():
            load_dotenv(path, override=False)
            loaded.append(path)
    return loaded


_CONVERTERS: dict[str, Callable[[str], Any]] = {
    "host": str,
    "port": int,
    "server_path": str,
    "auto_start_server": parse_bool,
    "auto_connect": parse_bool,
    "connect_timeout": float,
    "framing": str.lower,
}


def load_config(env_root: Path | None = None, **overrides: Any) -> LilaConfig:
    """Build a validated configuration.

    Args:
        env_root: Directory holding ``.env`` files (defaults to project root).
        **overrides: Explicit values; None means "not given".

    Returns:
        The resolved configuration.

    Raises:
        ConfigError: If an environment value cannot be parsed or a value
            is out of range.

    Example:
        >>> config = load_config(port=9191)
        >>> config.port
        9191
    """
    load_env_files(env_root)

    values: dict[str, Any] = {}
    for f in fields(LilaConfig):
        if overrides.get(f.name) is not None:
            values[f.name] = overrides[f.name]
            continue
        env_key = ENV_PREFIX + f.name.upper()
        raw = os.environ.get(env_key)
        if raw is None or raw == "":
            continue
        try:
            values[f.name] = _CONVERTERS[f.name](raw)
        except ValueError as e:
            raise ConfigError(f"Invalid {env_key}={raw!r}: {e}") from e

    unknown = set(overrides) - set(_CONVERTERS)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    return LilaConfig(**values).validate()
