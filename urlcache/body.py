"""
Length-delimited body reads and object persistence.
"""

import os
import stat
import tempfile
from typing import BinaryIO

import structlog

from .errors import CacheIOError

logger = structlog.get_logger(__name__)

DEFAULT_CHUNK_SIZE = 8192


def file_mode(path: str) -> int:
    """Permission bits a rewrite of ``path`` should carry.

    An existing file keeps its mode; a new one gets 0666 minus the umask, as
    a plain open() would give it.
    """
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def read_body(reader: BinaryIO, length: int, chunk_size: int = DEFAULT_CHUNK_SIZE) -> bytes:
    """Read exactly ``length`` bytes; the header must already be consumed."""
    body = bytearray()
    while len(body) < length:
        try:
            chunk = reader.read(min(chunk_size, length - len(body)))
        except OSError as e:
            logger.warning("body_read_failed", error=str(e), received=len(body), expected=length)
            raise CacheIOError(f"Failed reading response body: {e}") from e

        if not chunk:
            logger.warning("body_truncated", received=len(body), expected=length)
            raise CacheIOError(f"Connection closed after {len(body)} of {length} body bytes")
        body.extend(chunk)

    return bytes(body)


def write_object(path: str, data: bytes):
    """Write ``data`` verbatim to ``path``, replacing any existing file.

    The bytes land in a temporary file in the same directory first, so a
    failed write never leaves a half-written object behind.
    """
    directory = os.path.dirname(os.path.abspath(path))
    tmp_path = None
    try:
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.urlcache-', suffix='.part')
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        os.chmod(tmp_path, file_mode(path))
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        logger.error("object_write_failed", path=path, error=str(e))
        raise CacheIOError(f"Failed to write object {path}: {e}") from e

    logger.info("object_written", path=path, size=len(data))
