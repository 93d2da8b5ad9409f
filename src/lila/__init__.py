"""Lila - send code from an editor to a running Lila evaluation server.

Lila keeps a persistent TCP session to an external evaluation server,
queues input while offline, and turns whatever the server writes back
into typed responses.

Layers:
    core/       Protocol, configuration, backend process lifecycle
    transport/  SessionConnection (the client state machine)
    session     LilaSession, which composes the two for a host
    frontends/  Terminal frontend (CLI, console sinks, REPL)

Quick Start (client only):
    >>> from lila import SessionConnection
    >>>
    >>> conn = SessionConnection("127.0.0.1", 9090, on_response=print)
    >>> await conn.connect()
    True
    >>> conn.send("(+ 1 2)")
    ValueResult(result=3)

With a managed server:
    >>> from lila import LilaSession, load_config
    >>>
    >>> session = LilaSession(load_config())
    >>> await session.start_server()      # connects shortly after
    >>> await session.send_code("(+ 1 2)")
    >>> await session.dispose()
"""

from lila.__version__ import __version__
from lila.core import (
    ConnectionState,
    ErrorResult,
    LilaConfig,
    Raw,
    Response,
    ServerLifecycle,
    ServerState,
    Success,
    Unclassified,
    ValueResult,
    load_config,
)
from lila.session import LilaSession
from lila.transport import SessionConnection

__all__ = [
    "__version__",
    # Components
    "SessionConnection",
    "ServerLifecycle",
    "LilaSession",
    # Config
    "LilaConfig",
    "load_config",
    # Types
    "ConnectionState",
    "ServerState",
    "Response",
    "Success",
    "ErrorResult",
    "ValueResult",
    "Raw",
    "Unclassified",
]
