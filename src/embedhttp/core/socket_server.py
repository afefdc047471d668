"""
=============================================================================
SEQUENTIAL TCP LISTENER
=============================================================================

Binds, listens, and services ONE connection at a time:

                    ┌───────────────────────┐
                    │   Listening Socket    │  bound to 0.0.0.0:8080
                    └───────────┬───────────┘
                                │ accept()
                                ▼
                    ┌───────────────────────┐
                    │  Connection N         │  read → dispatch → write
                    │  (handler runs here)  │  → close
                    └───────────┬───────────┘
                                │ handler returned
                                ▼
                            accept() again, Connection N+1

Connection N+1 is never accepted before connection N is closed. A client
that stalls therefore blocks everyone behind it; ServerConfig.timeout
bounds that wait when set.

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR:
    Restarting the server right after it stopped does not fail with
    "Address already in use" while old sockets sit in TIME_WAIT.

TCP_NODELAY:
    Every ResponseWriter.write() and chunk goes out immediately instead
    of waiting for Nagle's algorithm to coalesce it with the next one.

Accept timeout (1 s):
    accept() wakes up once a second so shutdown() from another thread or
    a signal handler is noticed without a connection arriving.

=============================================================================
SHUTDOWN
=============================================================================

SIGINT (Ctrl+C) and SIGTERM stop the accept loop. Python only allows
signal handlers in the main thread, so when start() runs in a background
thread (tests, embedding) no handlers are installed and shutdown() is the
only way out.

An accept() failure while the loop is running is fatal: the listening
socket is closed and the OSError propagates out of start().

=============================================================================
"""

import logging
import signal
import socket
import threading
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Sequential TCP listener.

        SocketServer.start(handler)
            │
            ├──► _create_socket()   SO_REUSEADDR, TCP_NODELAY, 1 s timeout
            ├──► bind() / listen()  failures raise to the caller
            ├──► _setup_signals()   main thread only
            ├──► _ready.set()       wait_until_ready() returns
            │
            └──► _accept_loop()
                     while running:
                         accept()
                         handler(Connection(...))   synchronous
                         (exceptions logged, loop goes on)

    Usage:
        def handle_connection(conn: Connection):
            with conn:
                ...

        server = SocketServer(config)
        server.start(handle_connection)  # Blocks until shutdown
    """

    def __init__(self, config: ServerConfig):
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._bound_address: Optional[Tuple[str, int]] = None

        self._ready = threading.Event()

        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """
        Bound (ip, port).

        Before start() this is the configured address; afterwards it is what
        the OS actually assigned, so port 0 resolves to the real port.
        """
        if self._bound_address is not None:
            return self._bound_address
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(1.0)
        return sock

    def _setup_signals(self):
        """Install SIGTERM/SIGINT handlers that call shutdown()."""
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not in main thread, signal handlers not installed")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and serve connections one by one.

        BLOCKS until shutdown() is called.

        Args:
            connection_handler: Called with each accepted Connection. The
                                next connection is accepted only after it
                                returns.

        Raises:
            OSError: bind(), listen() or accept() failed.
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
            self._socket.listen(self.config.backlog)
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._bound_address = self._socket.getsockname()[:2]
        self._running = True

        self._setup_signals()

        host, port = self._bound_address
        logger.info(f"Server listening on {host}:{port}")
        self._ready.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._running:
                    break
                logger.error(f"Accept error: {e}")
                raise

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                max_headers=self.config.max_headers,
                timeout=self.config.timeout,
            )

            try:
                connection_handler(conn)
            except Exception:
                logger.exception(f"[{conn.id}] Unhandled error in connection handler")
            finally:
                conn.close()

    def shutdown(self):
        """
        Stop the accept loop.

        Callable from a signal handler or another thread; idempotent. The
        loop notices within one accept timeout.
        """
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._running = False
        self._ready.clear()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the socket is bound and listening.

        Returns:
            True if the server is ready, False on timeout.
        """
        return self._ready.wait(timeout)
