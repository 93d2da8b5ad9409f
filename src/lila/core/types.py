"""Pure data types for lila.core.

These are simple enums and frozen dataclasses with no behavior coupling.
They can be logged, compared in tests and rendered by any frontend.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Union


class ConnectionState(Enum):
    """Client connection lifecycle states."""

    DISCONNECTED = "disconnected"  # No stream held
    CONNECTING = "connecting"  # Stream being established
    CONNECTED = "connected"  # Handshake sent, ready for input
    ERROR = "error"  # Last attempt or session failed


class ServerState(Enum):
    """Backend process lifecycle states."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    ERROR = "error"


class ResponseKind(Enum):
    """Discriminator for decoded server responses."""

    SUCCESS = "success"
    ERROR = "error"
    RESULT = "result"
    RAW = "raw"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class Success:
    """Operation acknowledged by the server."""

    message: str | None = None

    kind: ClassVar[ResponseKind] = ResponseKind.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": "success"}
        if self.message is not None:
            data["message"] = self.message
        return data


@dataclass(frozen=True)
class ErrorResult:
    """Operation failed server-side."""

    message: str | None = None

    kind: ClassVar[ResponseKind] = ResponseKind.ERROR

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": "error"}
        if self.message is not None:
            data["message"] = self.message
        return data


@dataclass(frozen=True)
class ValueResult:
    """Evaluation result carrying an arbitrary JSON payload."""

    result: Any

    kind: ClassVar[ResponseKind] = ResponseKind.RESULT

    def to_dict(self) -> dict[str, Any]:
        return {"result": self.result}


@dataclass(frozen=True)
class Raw:
    """Inbound text that did not parse as JSON, passed through verbatim."""

    text: str

    kind: ClassVar[ResponseKind] = ResponseKind.RAW

    def to_dict(self) -> dict[str, Any]:
        return {"status": "raw", "data": self.text}


@dataclass(frozen=True)
class Unclassified:
    """Parsed JSON that matched none of the known response shapes."""

    payload: Any

    kind: ClassVar[ResponseKind] = ResponseKind.UNCLASSIFIED

    def to_dict(self) -> dict[str, Any]:
        if isinstance(self.payload, dict):
            return dict(self.payload)
        return {"payload": self.payload}


Response = Union[Success, ErrorResult, ValueResult, Raw, Unclassified]
