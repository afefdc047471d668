"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking half of the engine:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         SOCKET SERVER                               │
    │  • Creates the TCP listening socket, binds, listens                 │
    │  • Accepts ONE connection, hands it to the HTTP server, waits for   │
    │    it to finish, then accepts the next                              │
    │  • Stops on SIGINT/SIGTERM or shutdown()                            │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ one connection at a time
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          CONNECTION                                 │
    │  • Accumulates request bytes in a fixed-size buffer                 │
    │  • Drives the head tokenizer until PARSED, ERROR or TOO_LARGE       │
    │  • Sends response bytes and closes the socket                       │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .connection import Connection, ConnectionState, ReadState
from .socket_server import SocketServer

__all__ = [
    "SocketServer",     # Sequential TCP listener
    "Connection",       # One client socket: read loop, send, close
    "ConnectionState",  # Connection lifecycle states
    "ReadState",        # Request buffer states
]
