"""
=============================================================================
EMBEDHTTP - A MINIMAL EMBEDDABLE HTTP/1.0 SERVER
=============================================================================

Accept a connection, parse one request, call the handler registered for
its exact path, write the response, close. One connection at a time.

    from embedhttp import HTTPServer, ChunkedWriter

    server = HTTPServer()

    @server.get("/hi")
    def hi(request):
        return "hello"

    @server.get("/events")
    def events(writer, request):
        writer.set_header("Content-Type", "text/event-stream")
        with ChunkedWriter(writer) as stream:
            stream.write("data: 1\\n\\n")

    server.run()

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .http import (
    ChunkedWriter,
    HandlerKind,
    HeadersSentError,
    HTTPParseError,
    HTTPRequest,
    HTTPStatus,
    ResponseError,
    ResponseWriter,
)
from .logger import LogLevel, configure_logging
from .server import HTTPServer, create_app

__all__ = [
    "HTTPServer",
    "create_app",
    "ServerConfig",
    "HTTPRequest",
    "HTTPParseError",
    "ResponseWriter",
    "ChunkedWriter",
    "ResponseError",
    "HeadersSentError",
    "HandlerKind",
    "HTTPStatus",
    "LogLevel",
    "configure_logging",
    "__version__",
]
