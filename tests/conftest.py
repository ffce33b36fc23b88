"""
Shared fixtures: in-memory connections for unit tests and a loopback origin
server for end-to-end fetches.
"""

import io
import socket
import threading

import pytest

from urlcache.catalog import CatalogStore
from urlcache.cache import UrlCache

LAST_MODIFIED = "Wed, 21 Oct 2015 07:28:00 GMT"

OK_HELLO = (
    b"HTTP/1.1 200 OK\r\n"
    b"Content-Length: 5\r\n"
    b"Last-Modified: " + LAST_MODIFIED.encode() + b"\r\n"
    b"\r\n"
    b"hello"
)
NOT_MODIFIED = b"HTTP/1.1 304 Not Modified\r\n\r\n"


class FakeConnection:
    def __init__(self, host, port, response: bytes):
        self.host = host
        self.port = port
        self.reader = io.BytesIO(response)
        self.sent = bytearray()
        self.closed = False

    def send(self, data: bytes):
        self.sent.extend(data)

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class FakeConnector:
    """Hands out FakeConnections that replay queued responses in order."""

    def __init__(self):
        self.responses = []
        self.connections = []
        self.calls = []

    def queue(self, *responses: bytes):
        self.responses.extend(responses)

    def __call__(self, host, port, connect_timeout=None, read_timeout=None):
        self.calls.append((host, port, connect_timeout, read_timeout))
        conn = FakeConnection(host, port, self.responses.pop(0))
        self.connections.append(conn)
        return conn

    @property
    def requests(self):
        return [bytes(conn.sent) for conn in self.connections]


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def catalog_path(tmp_path):
    return str(tmp_path / "fileCatalog.txt")


@pytest.fixture
def object_dir(tmp_path):
    path = tmp_path / "objects"
    path.mkdir()
    return path


@pytest.fixture
def cache(catalog_path, object_dir, connector):
    catalog = CatalogStore(catalog_path)
    catalog.load()
    return UrlCache(catalog, object_dir=str(object_dir), connector=connector)


class OriginServer:
    """Loopback HTTP origin that answers each connection with the next queued response.

    After answering it keeps the connection open until the client closes it,
    so a client that waits for bytes it should not expect will time out.
    """

    def __init__(self):
        self.responses = []
        self.requests = []
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen(5)
        self._sock.settimeout(0.1)
        self._stopped = threading.Event()
        self.port = self._sock.getsockname()[1]
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def queue(self, *responses: bytes):
        self.responses.extend(responses)

    def url(self, path: str) -> str:
        return f"127.0.0.1:{self.port}{path}"

    def _serve(self):
        while not self._stopped.is_set():
            try:
                client, _ = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with client:
                client.settimeout(5)
                request = b""
                try:
                    while b"\r\n\r\n" not in request:
                        data = client.recv(4096)
                        if not data:
                            break
                        request += data
                    self.requests.append(request)
                    client.sendall(self.responses.pop(0))
                    while client.recv(4096):
                        pass
                except OSError:
                    pass

    def close(self):
        self._stopped.set()
        self._thread.join(timeout=5)
        self._sock.close()


@pytest.fixture
def origin():
    server = OriginServer()
    yield server
    server.close()
