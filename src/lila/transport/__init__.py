"""Transport - connection to the evaluation server.

Available transports:
    SessionConnection: Persistent TCP stream with session handshake,
        offline send queue and response decoding.

Example:
    >>> from lila.transport import SessionConnection
    >>>
    >>> conn = SessionConnection("127.0.0.1", 9090, on_response=print)
    >>> await conn.connect()
    >>> conn.send("(+ 1 2)")
"""

from lila.transport.tcp_socket import SessionConnection

__all__ = ["SessionConnection"]
