"""
Request construction and response header parsing for the raw HTTP/1.1 client.

The response header is read line by line from a buffered reader until the
CRLFCRLF boundary. Nothing past the boundary is consumed, so the body is still
available to whoever reads from the same reader next.
"""

from typing import BinaryIO, Dict, Optional

import structlog

from .errors import CacheIOError, MalformedResponseError

logger = structlog.get_logger(__name__)

CRLF = b'\r\n'
HEADER_TERMINATOR = b'\r\n\r\n'
HEADER_ENCODING = 'iso-8859-1'
DEFAULT_MAX_HEADER_BYTES = 64 * 1024


def _is_ascii_digits(text: str) -> bool:
    return text.isascii() and text.isdigit()


class ResponseHeader:
    def __init__(self, status_line: str, fields: Dict[str, str] = None, raw: bytes = b''):
        """Parsed response header: status line plus raw field values by name."""
        self.status_line = status_line
        self.fields = fields or {}
        self.raw = raw

    @property
    def status_code(self) -> int:
        """Numeric status from the status line, e.g. 200 for ``HTTP/1.1 200 OK``."""
        parts = self.status_line.split()
        if len(parts) < 2 or not _is_ascii_digits(parts[1]):
            raise MalformedResponseError(f"Bad status line: {self.status_line!r}")
        return int(parts[1])

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Field value by exact name, falling back to a case-insensitive match."""
        if name in self.fields:
            return self.fields[name]
        lowered = name.lower()
        for key, value in self.fields.items():
            if key.lower() == lowered:
                return value
        return default

    def require(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise MalformedResponseError(f"Response header missing {name}: {self.status_line!r}")
        return value

    @property
    def content_length(self) -> int:
        """Body length from Content-Length; raises if absent or not a count."""
        value = self.require('Content-Length').strip()
        if not _is_ascii_digits(value):
            raise MalformedResponseError(f"Invalid Content-Length: {value!r}")
        return int(value)

    @property
    def last_modified(self) -> str:
        return self.require('Last-Modified')

    def __repr__(self):
        return f"ResponseHeader({self.status_line!r}, {len(self.fields)} fields)"


def build_request(path: str, host: str, port: int, if_modified_since: Optional[str] = None) -> bytes:
    """Build a GET request; the If-Modified-Since line is added only with a validator."""
    lines = [
        f"GET {path} HTTP/1.1",
        f"Host: {host}:{port}",
    ]
    if if_modified_since is not None:
        lines.append(f"If-Modified-Since: {if_modified_since}")
    return ('\r\n'.join(lines) + '\r\n\r\n').encode(HEADER_ENCODING)


def read_header(reader: BinaryIO, max_bytes: int = DEFAULT_MAX_HEADER_BYTES) -> ResponseHeader:
    """Read exactly one response header block off ``reader`` and parse it.

    Raises MalformedResponseError if the peer closes before the blank line or
    the block grows past ``max_bytes``, and CacheIOError on transport errors.
    """
    buf = bytearray()
    while not buf.endswith(HEADER_TERMINATOR):
        try:
            line = reader.readline(max_bytes + 1 - len(buf))
        except OSError as e:
            logger.warning("header_read_failed", error=str(e), received=len(buf))
            raise CacheIOError(f"Failed reading response header: {e}") from e

        if not line:
            logger.warning("header_truncated", received=len(buf))
            raise MalformedResponseError(
                f"Connection closed after {len(buf)} bytes, before end of response header"
            )
        buf.extend(line)
        if len(buf) > max_bytes:
            raise MalformedResponseError(f"Response header exceeds {max_bytes} bytes")

    return parse_header(bytes(buf))


def parse_header(raw: bytes) -> ResponseHeader:
    """Split a complete header block into status line and fields."""
    text = raw.decode(HEADER_ENCODING)
    lines = text[:-len(HEADER_TERMINATOR)].split('\r\n')

    fields = {}
    for line in lines[1:]:
        if ':' not in line:
            logger.debug("header_line_ignored", line=line)
            continue
        name, value = line.split(':', 1)
        fields[name.strip()] = value.strip()

    return ResponseHeader(lines[0], fields, raw)
