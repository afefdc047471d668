"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All tunables of the engine in one dataclass. An embedding program builds
one in code; the demo runner can also read it from the environment.

    config = ServerConfig(port=9000, log_level="DEBUG")
    config = ServerConfig.from_env()      # EMBEDHTTP_PORT=9000 ...

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional

from .http.tokenizer import MAX_HEADERS
from .logger import LogLevel


ENV_PREFIX = "EMBEDHTTP_"


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, timeout

    REQUEST LIMITS
    - buffer_size, max_headers

    LOGGING
    - log_level

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """
    The IP address to bind to.
    - "0.0.0.0" - All IPv4 interfaces
    - "127.0.0.1" - Localhost only
    """

    port: int = 8080
    """
    The port number to listen on. 0 asks the OS for a free port; the
    real one is then available as HTTPServer.address.
    """

    backlog: int = 16
    """
    Maximum number of queued connections. Only one connection is
    serviced at a time, so the rest wait here.
    """

    timeout: Optional[float] = None
    """
    Per-connection socket timeout in seconds.
    None = block indefinitely on a stalled client.
    A timed-out read or write drops the connection without a response.
    """

    # ─────────────────────────────────────────────────────────────────────
    # REQUEST LIMITS
    # ─────────────────────────────────────────────────────────────────────

    buffer_size: int = 4096
    """
    Capacity of the request buffer in bytes. A request head that has not
    ended when the buffer is full is answered with 413.
    """

    max_headers: int = MAX_HEADERS
    """
    Header lines accepted per request. More is a malformed request (400).
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """
    Log threshold: ERR, WARN, INFO or DEBUG (the standard logging names
    ERROR and WARNING are accepted too).
    """

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        EMBEDHTTP_HOST         Bind address (default: 0.0.0.0)
        EMBEDHTTP_PORT         Port (default: 8080)
        EMBEDHTTP_BUFFER_SIZE  Request buffer in bytes (default: 4096)
        EMBEDHTTP_TIMEOUT      Socket timeout in seconds (default: none)
        EMBEDHTTP_LOG_LEVEL    Log threshold (default: INFO)

        =====================================================================
        """
        timeout = os.getenv(f"{ENV_PREFIX}TIMEOUT", "").strip()
        return cls(
            host=os.getenv(f"{ENV_PREFIX}HOST", "0.0.0.0"),
            port=int(os.getenv(f"{ENV_PREFIX}PORT", "8080")),
            buffer_size=int(os.getenv(f"{ENV_PREFIX}BUFFER_SIZE", "4096")),
            timeout=float(timeout) if timeout else None,
            log_level=os.getenv(f"{ENV_PREFIX}LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """
        Validate configuration values, failing fast at startup.

        Raises:
            ValueError: On the first invalid value.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 64:
            raise ValueError("buffer_size must be >= 64")

        if self.max_headers < 0:
            raise ValueError("max_headers must be >= 0")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        LogLevel.parse(self.log_level)
