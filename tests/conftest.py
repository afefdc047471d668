"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Callable, Generator, List

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from embedhttp import HTTPServer, ServerConfig
from embedhttp.core import Connection
from embedhttp.logger import reset_logging


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo configure_logging() done by a server run inside a test."""
    yield
    reset_logging()


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request with a query string."""
    return (
        b"GET /echo?name=world&x=1 HTTP/1.0\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: */*\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a body in the same read."""
    body = b"name=John&email=john@example.com"
    return (
        b"POST /submit HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/x-www-form-urlencoded\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
    ) + body


class ScriptedSocket:
    """
    Stand-in for a connected client socket.

    recv() hands out the scripted chunks in order (split to the requested
    size), then b"" as if the peer closed. An exception instance in the
    script is raised instead of returned. Everything sent is recorded.
    """

    def __init__(self, chunks=(), fail_send: bool = False):
        self._chunks = list(chunks)
        self.fail_send = fail_send
        self.sent: List[bytes] = []
        self.recv_sizes: List[int] = []
        self.timeout = "unset"
        self.blocking = None
        self.shutdown_called = False
        self.closed = False

    def setblocking(self, flag):
        self.blocking = flag

    def settimeout(self, value):
        self.timeout = value

    def recv(self, size):
        if self.closed:
            raise OSError("socket is closed")
        self.recv_sizes.append(size)
        if not self._chunks:
            return b""
        item = self._chunks.pop(0)
        if isinstance(item, BaseException):
            raise item
        if len(item) > size:
            self._chunks.insert(0, item[size:])
            item = item[:size]
        return item

    def sendall(self, data):
        if self.fail_send:
            raise BrokenPipeError("peer went away")
        self.sent.append(bytes(data))

    def shutdown(self, how):
        self.shutdown_called = True

    def close(self):
        self.closed = True

    @property
    def output(self) -> bytes:
        return b"".join(self.sent)


@pytest.fixture
def make_connection() -> Callable[..., Connection]:
    """Factory for Connections over a ScriptedSocket."""
    def factory(chunks=(), fail_send=False, **kwargs) -> Connection:
        sock = ScriptedSocket(chunks, fail_send=fail_send)
        return Connection(socket=sock, address=("127.0.0.1", 50000), **kwargs)
    return factory


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


class BackgroundServer:
    """Runs an HTTPServer in a background thread for end-to-end tests."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def address(self):
        return self.server.address

    def start(self) -> "BackgroundServer":
        """Start serving and wait for the socket to be bound."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(5.0):
            raise RuntimeError("Server failed to start")
        return self

    def request(self, raw: bytes, timeout: float = 5.0) -> bytes:
        """Send raw request bytes and read the response until close."""
        with socket.create_connection(self.address, timeout=timeout) as sock:
            sock.sendall(raw)
            chunks = []
            while True:
                data = sock.recv(4096)
                if not data:
                    break
                chunks.append(data)
        return b"".join(chunks)

    def stop(self):
        """Stop the server."""
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def make_server() -> Generator[Callable[..., BackgroundServer], None, None]:
    """
    Factory for background servers on a free loopback port.

    Register routes on `.server`, then call `.start()`. Servers are
    stopped when the test ends.
    """
    created: List[BackgroundServer] = []

    def factory(**overrides) -> BackgroundServer:
        settings = dict(host="127.0.0.1", port=0, timeout=5.0, log_level="INFO")
        settings.update(overrides)
        background = BackgroundServer(HTTPServer(ServerConfig(**settings)))
        created.append(background)
        return background

    yield factory

    for background in created:
        background.stop()
