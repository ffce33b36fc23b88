"""
Split a fully-qualified ``host[:port]/path`` URL into its connection target.
"""

from typing import NamedTuple

from .errors import MalformedUrlError

DEFAULT_PORT = 80


class RequestTarget(NamedTuple):
    host: str
    port: int
    path: str


def decompose_url(url: str) -> RequestTarget:
    """Return (host, port, path) for ``url``; the port defaults to 80.

    The path is always re-prefixed with a leading ``/``. A URL with no ``/``
    between host and path raises MalformedUrlError.
    """
    if not url or '/' not in url:
        raise MalformedUrlError(url)

    authority, path = url.split('/', 1)

    if ':' in authority:
        host, port_text = authority.split(':', 1)
        if not (port_text.isascii() and port_text.isdigit()):
            raise MalformedUrlError(url, f"invalid port {port_text!r}")
        port = int(port_text)
        if not 0 < port < 65536:
            raise MalformedUrlError(url, f"port out of range: {port}")
    else:
        host, port = authority, DEFAULT_PORT

    if not host:
        raise MalformedUrlError(url, "empty host")

    return RequestTarget(host, port, '/' + path)


def object_name(path: str) -> str:
    """Last segment of ``path``: the local file name for a downloaded object."""
    return path.split('/')[-1]
