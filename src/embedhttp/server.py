"""
=============================================================================
HTTP SERVER: REGISTRATION, RUN LOOP, DISPATCH
=============================================================================

The public face of the engine. Embedding code registers handlers, then
calls run(), which blocks and services one connection at a time:

    SocketServer.accept()
        │
        ▼
    Connection.read_request()        400 / 413 on bad or oversized head
        │
        ▼
    log "GET /echo"  (INFO)
        │
        ▼
    Router.match(request.path)
        │
        ├── TEXT route    handler(request) → str | bytes
        │                 → 200 text/plain, one send
        │
        ├── STREAM route  handler(writer, request)
        │                 → whatever the handler writes; head flushed on
        │                   return if the handler never wrote
        │
        └── no route      → 404 "not found"
        │
        ▼
    close()

=============================================================================
FAILURE BOUNDARY
=============================================================================

Nothing that happens inside one connection reaches the accept loop:

    handler raises        → ERROR log with traceback, 500 if the head is
                            still unsent, then close
    peer disappears       → close, DEBUG log if a send failed
    malformed request     → 400, close
    head too large        → 413, close

=============================================================================
"""

import logging
from typing import Callable, Optional, Tuple, Union

from .config import ServerConfig
from .core import Connection, SocketServer
from .http import (
    HandlerKind,
    HTTPParseError,
    HTTPRequest,
    HTTPResponse,
    ResponseWriter,
    Route,
    Router,
    internal_error,
    not_found,
    text_response,
)
from .http.response import error_response
from .logger import configure_logging, has_external_handlers


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Minimal embeddable HTTP/1.0 server.

    =========================================================================
    USAGE
    =========================================================================

        server = HTTPServer(ServerConfig(port=8080))

        @server.get("/")
        def index(request):
            return "hello"

        @server.get("/echo")
        def echo(request):
            return "hi " + request.query_params.get("name", "")

        @server.get("/events")
        def events(writer, request):
            writer.set_header("Content-Type", "text/event-stream")
            with ChunkedWriter(writer) as stream:
                stream.write("data: 1\\n\\n")

        server.run()          # blocks until SIGINT/SIGTERM or shutdown()

    Registration can also be direct:

        server.get("/", index)
        server.post("/submit", submit, kind=HandlerKind.TEXT)

    =========================================================================
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Args:
            config: Server configuration. Defaults apply if not provided.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self._router = Router()
        self._socket_server = SocketServer(self.config)

    @property
    def router(self) -> Router:
        return self._router

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (ip, port) once running, the configured one before."""
        return self._socket_server.address

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def route(self, path: str, method: str = "GET", kind: Optional[HandlerKind] = None):
        """Decorator registering a handler for any method name."""
        return self._router.route(path, method, kind)

    def get(
        self,
        path: str,
        handler: Optional[Callable] = None,
        kind: Optional[HandlerKind] = None,
    ):
        """
        Register a GET handler, directly or as a decorator.

        The method is recorded only; a GET route also answers POST.
        """
        return self._register(path, "GET", handler, kind)

    def post(
        self,
        path: str,
        handler: Optional[Callable] = None,
        kind: Optional[HandlerKind] = None,
    ):
        """Register a POST handler, directly or as a decorator."""
        return self._register(path, "POST", handler, kind)

    def _register(self, path, method, handler, kind):
        if handler is None:
            return self._router.route(path, method, kind)
        self._router.add_route(path, handler, method, kind)
        return handler

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Start the server (blocking).

        Installs the stderr log handler at config.log_level unless the
        embedding program already put handlers on the "embedhttp" logger.

        Args:
            host: Override config host.
            port: Override config port. 0 picks a free port.

        Raises:
            OSError: The address could not be bound, or accept() failed.
        """
        if host is not None:
            self.config.host = host
        if port is not None:
            self.config.port = port
        self.config.validate()
        self._setup_logging()

        logger.info(f"Starting HTTP server on {self.config.host}:{self.config.port}")
        for route in self._router.routes():
            logger.debug(f"Route {route.method} {route.path} ({route.kind.value})")

        try:
            self._socket_server.start(self._process_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            logger.info("Server stopped")

    def _setup_logging(self):
        if has_external_handlers():
            return
        configure_logging(self.config.log_level)

    def shutdown(self):
        """Stop accepting connections. Safe from other threads."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the listening socket is bound. False on timeout."""
        return self._socket_server.wait_until_ready(timeout)

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _process_connection(self, conn: Connection):
        """
        Service one connection: read, dispatch, respond, close.

        Called by SocketServer for each accepted connection, one at a time.
        """
        with conn:
            try:
                request = conn.read_request()
            except HTTPParseError as e:
                logger.debug(f"[{conn.id}] {e}, answering {e.status_code}")
                self._send(conn, error_response(e.status_code))
                return

            if request is None:
                return

            logger.info(f"{request.method} {request.path}")

            route = self._router.match(request.path)
            if route is None:
                self._send(conn, not_found())
            elif route.kind is HandlerKind.TEXT:
                self._run_text_handler(conn, route, request)
            else:
                self._run_stream_handler(conn, route, request)

    def _run_text_handler(self, conn: Connection, route: Route, request: HTTPRequest):
        try:
            body = _text_body(route.handler(request))
        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error on {request.path}: {e}")
            self._send(conn, internal_error())
            return

        self._send(conn, text_response(body))

    def _run_stream_handler(self, conn: Connection, route: Route, request: HTTPRequest):
        writer = ResponseWriter(conn)
        try:
            route.handler(writer, request)
            # A handler that never wrote still owes the client a head.
            writer.write_headers()
        except OSError as e:
            if writer.headers_sent:
                logger.debug(f"[{conn.id}] Connection dropped while streaming: {e}")
                return
            logger.exception(f"[{conn.id}] Handler error on {request.path}: {e}")
            self._send(conn, internal_error())
        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error on {request.path}: {e}")
            if not writer.headers_sent:
                self._send(conn, internal_error())

    def _send(self, conn: Connection, response: HTTPResponse):
        try:
            conn.send(response.to_bytes())
        except OSError as e:
            logger.debug(f"[{conn.id}] Send failed, dropping connection: {e}")


def _text_body(result: Union[str, bytes]) -> bytes:
    """Body bytes of a TEXT handler result."""
    if isinstance(result, str):
        return result.encode("utf-8")
    if isinstance(result, (bytes, bytearray)):
        return bytes(result)
    raise TypeError(
        f"text handler must return str or bytes, not {type(result).__name__}"
    )


def create_app(config: Optional[ServerConfig] = None) -> HTTPServer:
    """
    Create an HTTP server application.

    Example:
        app = create_app(ServerConfig(port=3000))

        @app.get("/")
        def index(request):
            return "hello"

        app.run()
    """
    return HTTPServer(config)
