"""
=============================================================================
DEMO SERVER ENTRY POINT
=============================================================================

Runs a small demo application so the engine can be tried from a shell:

    python -m embedhttp                       # 0.0.0.0:8080
    python -m embedhttp --port 3000
    python -m embedhttp --log-level DEBUG
    EMBEDHTTP_PORT=3000 python -m embedhttp   # environment works too

    curl http://localhost:8080/               → hello
    curl http://localhost:8080/echo?name=bob  → hi bob
    curl -N http://localhost:8080/events      → chunked event stream

Command-line flags override EMBEDHTTP_* environment variables, which
override the ServerConfig defaults.

=============================================================================
"""

import argparse
import sys
import time

from . import __version__
from .config import ServerConfig
from .http import ChunkedWriter
from .server import HTTPServer, create_app


EVENT_INTERVAL = 0.1


def build_demo_app(config: ServerConfig) -> HTTPServer:
    """Create a server with the demo routes registered."""
    app = create_app(config)

    @app.get("/")
    def index(request):
        return "hello"

    @app.get("/echo")
    def echo(request):
        return "hi " + request.query_params.get("name", "")

    @app.get("/events")
    def events(writer, request):
        count = int(request.query_params.get("count", "10"))

        writer.status = 200
        writer.set_header("Content-Type", "text/event-stream; charset=utf-8")

        with ChunkedWriter(writer) as stream:
            for n in range(count):
                stream.write(f"data: {n}\n\n")
                time.sleep(EVENT_INTERVAL)

    return app


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="embedhttp",
        description="Demo server for the embedhttp engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m embedhttp                       # Run with defaults
  python -m embedhttp --port 3000           # Custom port
  python -m embedhttp --timeout 5           # Drop clients idle for 5 s
        """
    )

    parser.add_argument("--host", "-H", help="Host to bind to (default: 0.0.0.0)")
    parser.add_argument("--port", "-p", type=int, help="Port to listen on (default: 8080)")
    parser.add_argument(
        "--log-level", "-l",
        choices=["ERR", "WARN", "INFO", "DEBUG"],
        help="Log threshold (default: INFO)",
    )
    parser.add_argument(
        "--buffer-size",
        type=int,
        help="Request buffer size in bytes (default: 4096)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Per-connection socket timeout in seconds (default: none)",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"embedhttp {__version__}",
    )

    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Environment config with command-line overrides applied."""
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.buffer_size is not None:
        config.buffer_size = args.buffer_size
    if args.timeout is not None:
        config.timeout = args.timeout

    return config


def main(argv=None):
    args = parse_args(argv)

    try:
        config = config_from_args(args)
        server = build_demo_app(config)
        server.run()
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
