"""Error types for lila.

The connection layer never raises across its public boundary; these are
raised by the surfaces around it (configuration, process launching) and
by frontends.
"""


class LilaError(Exception):
    """Base class for lila errors."""


class ConfigError(LilaError, ValueError):
    """Raised when configuration values are invalid."""


class LaunchError(LilaError, OSError):
    """Raised by a ProcessLauncher when the backend cannot be started."""
