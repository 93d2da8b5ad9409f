"""Backend process management.

Classes:
    ServerLifecycle: Start/stop the evaluation server, track its state
    ProcessLauncher: Protocol for anything that can launch a backend
    ProcessHandle: Protocol for a launched backend
    SubprocessLauncher: Default launcher using asyncio subprocesses

Example:
    >>> from lila.core.process import ServerLifecycle
    >>>
    >>> server = ServerLifecycle("lila_server --port 9090", on_output=print)
    >>> await server.start()
    True
    >>> await server.stop()
"""

from lila.core.process.launcher import (
    LaunchConfig,
    ProcessHandle,
    ProcessLauncher,
    SubprocessHandle,
    SubprocessLauncher,
)
from lila.core.process.lifecycle import ServerLifecycle

__all__ = [
    "ServerLifecycle",
    "ProcessLauncher",
    "ProcessHandle",
    "LaunchConfig",
    "SubprocessLauncher",
    "SubprocessHandle",
]
