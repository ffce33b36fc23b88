"""
Plain TCP connection to an origin server.

One Connection per fetch, never reused. Reads go through a single buffered
reader so the header codec and body reader share what has been received and
neither consumes bytes that belong to the other.
"""

import socket
from typing import Optional

import structlog

from .errors import CacheIOError

logger = structlog.get_logger(__name__)


class Connection:
    def __init__(self, sock: socket.socket, host: str, port: int):
        self.host = host
        self.port = port
        self._sock = sock
        self.reader = sock.makefile('rb')

    def send(self, data: bytes):
        """Write the whole of ``data`` to the peer."""
        try:
            self._sock.sendall(data)
        except OSError as e:
            logger.warning("send_failed", host=self.host, port=self.port, error=str(e))
            raise CacheIOError(f"Failed to send request to {self.host}:{self.port}: {e}") from e

    def close(self):
        self.reader.close()
        self._sock.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def open_connection(
    host: str,
    port: int,
    connect_timeout: Optional[float] = None,
    read_timeout: Optional[float] = None,
) -> Connection:
    """Connect to ``host:port``. Timeouts of None block indefinitely."""
    try:
        sock = socket.create_connection((host, port), timeout=connect_timeout)
    except OSError as e:
        logger.warning("connect_failed", host=host, port=port, error=str(e))
        raise CacheIOError(f"Failed to connect to {host}:{port}: {e}") from e

    sock.settimeout(read_timeout)
    logger.debug("connection_opened", host=host, port=port)
    return Connection(sock, host, port)
