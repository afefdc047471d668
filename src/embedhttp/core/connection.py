"""
=============================================================================
CONNECTION: BUFFERED READ LOOP, SEND, CLOSE
=============================================================================

One accepted socket, one request, one response, then close. There is no
keep-alive: every response is HTTP/1.0 and the connection ends with it.

=============================================================================
TCP IS A BYTE STREAM
=============================================================================

The request head can arrive split at any byte:

    recv() → b"GET /echo?na"
    recv() → b"me=world HTTP/1.0\r\n"
    recv() → b"\r\n"

So bytes are accumulated in a fixed-capacity buffer and the tokenizer is
run over the WHOLE buffer after every read, together with the length the
buffer had before that read (the resumption cursor):

    ┌──────────────────────────────────────────────────────────────────┐
    │ buffer (capacity = buffer_size)                                  │
    │ ┌───────────────────────────────┬─────────────┬────────────────┐ │
    │ │ bytes seen by the last call   │ new bytes   │   free space   │ │
    │ └───────────────────────────────┴─────────────┴────────────────┘ │
    │                                 ▲             ▲                  │
    │                              last_len     len(buffer)            │
    └──────────────────────────────────────────────────────────────────┘

=============================================================================
READ STATE MACHINE
=============================================================================

                    recv() got bytes
                 ┌──────────────────┐
                 │                  │
                 ▼                  │ INCOMPLETE, buffer has room
         ┌──────────────┐           │
         │ ACCUMULATING │───────────┘
         └──────┬───────┘
                │
      ┌─────────┼──────────────────┬──────────────────────┐
      │ COMPLETE│                  │ ERROR                │ INCOMPLETE,
      ▼         │                  ▼                      ▼ buffer full
   PARSED       │               ERROR                 TOO_LARGE
   → HTTPRequest│               → 400                 → 413
                │
                └── recv() returned b"" or failed: give up, no response

=============================================================================
"""

import socket
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..http.request import HTTPParseError, HTTPRequest
from ..http.tokenizer import MAX_HEADERS, HeadParseResult, parse_request_head


class ConnectionState(Enum):
    """Connection lifecycle, for close() idempotence."""
    NEW = "new"              # just accepted
    READING = "reading"      # accumulating the request head
    WRITING = "writing"      # response bytes going out
    CLOSED = "closed"        # socket released


class ReadState(Enum):
    """State of the request buffer, driven by tokenizer outcomes."""
    ACCUMULATING = "accumulating"
    PARSED = "parsed"
    ERROR = "error"
    TOO_LARGE = "too_large"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The accepted client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier used in log lines.
        buffer_size: Capacity of the request buffer. A head that does not
                     fit is rejected with 413.
        max_headers: Header lines accepted per request.
        timeout: Socket timeout in seconds, None blocks indefinitely.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    read_state: ReadState = ReadState.ACCUMULATING

    buffer_size: int = 4096
    max_headers: int = MAX_HEADERS
    timeout: Optional[float] = None

    _buffer: bytearray = field(default_factory=bytearray, repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        # settimeout(None) keeps the socket blocking with no deadline
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def buffered(self) -> int:
        """Bytes accumulated so far."""
        return len(self._buffer)

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[HTTPRequest]:
        """
        Read and parse one request.

        Returns:
            The parsed request, or None when the peer closed the connection
            or the read failed before a full head arrived. No response
            should be sent in that case.

        Raises:
            HTTPParseError: 400 for a malformed head, 413 when the buffer
                            filled up before the head was complete.
        """
        self.state = ConnectionState.READING
        last_len = len(self._buffer)

        while True:
            chunk = self._recv(self.buffer_size - len(self._buffer))
            if not chunk:
                return None

            self._buffer += chunk
            result = parse_request_head(self._buffer, last_len, self.max_headers)
            self.read_state = self._next_state(result)

            if self.read_state is ReadState.PARSED:
                return HTTPRequest.from_head(result, self._buffer, self.address)

            if self.read_state is ReadState.ERROR:
                raise HTTPParseError("Malformed request head", 400)

            if self.read_state is ReadState.TOO_LARGE:
                raise HTTPParseError(
                    f"Request head exceeds {self.buffer_size} bytes", 413
                )

            last_len = len(self._buffer)

    def _next_state(self, result: HeadParseResult) -> ReadState:
        if result.is_complete:
            return ReadState.PARSED
        if result.is_error:
            return ReadState.ERROR
        if len(self._buffer) >= self.buffer_size:
            return ReadState.TOO_LARGE
        return ReadState.ACCUMULATING

    def _recv(self, size: int) -> bytes:
        """
        Receive up to `size` bytes.

        Returns:
            Received bytes, or b"" if the peer closed, reset, or timed out.
        """
        try:
            return self.socket.recv(size)
        except OSError:
            # socket.timeout and ConnectionResetError are both OSError
            return b""

    # =========================================================================
    # WRITING
    # =========================================================================

    def send(self, data: bytes) -> None:
        """
        Send all of `data`.

        Raises:
            OSError: The peer went away. The caller drops the connection.
        """
        self.state = ConnectionState.WRITING
        self.socket.sendall(data)

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection. Safe to call more than once.

        shutdown(SHUT_WR) sends FIN so the client sees end of response,
        then unread request bytes are drained before the socket is released.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # already disconnected

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED

    def __enter__(self):
        """
        Close automatically on exit:

            with conn:
                request = conn.read_request()
                conn.send(response.to_bytes())
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
