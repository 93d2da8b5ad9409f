"""Core - protocol, configuration and backend lifecycle.

Nothing in here touches a UI. Hosts plug in through the sink and
launcher protocols.

Architecture:
    types       ConnectionState, ServerState and the Response variants
    protocol    Wire format: line encoding, handshake, decoding, framing
    config      LilaConfig and environment/.env loading
    sinks       StatusSink / OutputSink capability interfaces
    process/    ServerLifecycle and process launchers
    errors      LilaError hierarchy
"""

from lila.core.config import LilaConfig, load_config
from lila.core.errors import ConfigError, LaunchError, LilaError
from lila.core.process import ServerLifecycle, SubprocessLauncher
from lila.core.protocol import FramingMode, decode_unit
from lila.core.sinks import OutputSink, StatusIndicator, StatusLevel, StatusSink
from lila.core.types import (
    ConnectionState,
    ErrorResult,
    Raw,
    Response,
    ResponseKind,
    ServerState,
    Success,
    Unclassified,
    ValueResult,
)

__all__ = [
    # Config
    "LilaConfig",
    "load_config",
    # Errors
    "LilaError",
    "ConfigError",
    "LaunchError",
    # Process
    "ServerLifecycle",
    "SubprocessLauncher",
    # Protocol
    "FramingMode",
    "decode_unit",
    # Sinks
    "StatusSink",
    "OutputSink",
    "StatusIndicator",
    "StatusLevel",
    # Types
    "ConnectionState",
    "ServerState",
    "Response",
    "ResponseKind",
    "Success",
    "ErrorResult",
    "ValueResult",
    "Raw",
    "Unclassified",
]
