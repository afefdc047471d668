"""
=============================================================================
HTTP RESPONSES: ONE-SHOT, WRITER AND CHUNKED STREAM
=============================================================================

A handler produces its response in one of two ways:

    TEXT handler                          STREAM handler
    ────────────                          ──────────────
    def hello(request):                   def events(writer, request):
        return "hello"                        writer.set_header(...)
                                              writer.write("tick")
            │                                     │
            ▼                                     ▼
    HTTPResponse.to_bytes()               ResponseWriter
    one send: head + body                 head sent once, then one send
                                          per write() call

=============================================================================
THE HEADERS-FLUSHED INVARIANT
=============================================================================

The status line and header block must reach the socket exactly once, and
before the first body byte:

    writer.set_header("Content-Type", "text/event-stream")   # buffered
    writer.write("a")      ──►  HTTP/1.0 200 OK\r\n
                                Content-Type: text/event-stream\r\n
                                \r\n
                                a
    writer.write("b")      ──►  b
    writer.set_header(...) ──►  HeadersSentError   (too late, head is gone)

=============================================================================
CHUNKED FRAMING
=============================================================================

ChunkedWriter keeps every write() a separate frame on the wire, so a
consumer sees the same message boundaries the producer used:

    stream.write(b"a")   ──►  1\r\na\r\n
    stream.write(b"bc")  ──►  2\r\nbc\r\n
    stream.end()         ──►  0\r\n\r\n        (terminating chunk)

Length is hexadecimal, exactly as in Transfer-Encoding: chunked.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Union

from .status_codes import HTTPStatus, reason_phrase


HTTP_VERSION = "HTTP/1.0"


class ResponseError(Exception):
    """Misuse of a ResponseWriter or ChunkedWriter."""


class HeadersSentError(ResponseError):
    """Header or status change after the head was already written."""


def _to_bytes(data: Union[str, bytes]) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def render_head(status: int, headers: list) -> bytes:
    """
    Serialize a status line and header block.

        HTTP/1.0 200 OK\r\n
        Content-Type: text/plain\r\n
        \r\n
    """
    lines = [f"{HTTP_VERSION} {int(status)} {reason_phrase(status)}"]
    for name, value in headers:
        lines.append(f"{name}: {value}")
    lines.append("")
    return ("\r\n".join(lines) + "\r\n").encode("utf-8")


@dataclass
class HTTPResponse:
    """
    A complete response sent in one piece.

    Used for TEXT handler results and for the responses the engine writes
    on its own (404, 400, 413, 500). Headers are written exactly as given;
    nothing is added automatically.
    """

    status: int = HTTPStatus.OK
    headers: list = field(default_factory=list)
    body: bytes = b""

    @property
    def status_line(self) -> str:
        return f"{HTTP_VERSION} {int(self.status)} {reason_phrase(self.status)}"

    def to_bytes(self) -> bytes:
        return render_head(self.status, self.headers) + self.body


def text_response(body: Union[str, bytes], status: int = HTTPStatus.OK) -> HTTPResponse:
    """A text/plain response, the shape every TEXT handler result takes."""
    return HTTPResponse(
        status=status,
        headers=[("Content-Type", "text/plain")],
        body=_to_bytes(body),
    )


def not_found() -> HTTPResponse:
    return text_response("not found", HTTPStatus.NOT_FOUND)


def bad_request() -> HTTPResponse:
    return text_response("bad request", HTTPStatus.BAD_REQUEST)


def payload_too_large() -> HTTPResponse:
    return text_response("request too large", HTTPStatus.PAYLOAD_TOO_LARGE)


def internal_error() -> HTTPResponse:
    return text_response("internal server error", HTTPStatus.INTERNAL_SERVER_ERROR)


def error_response(status_code: int) -> HTTPResponse:
    """Fixed response for an HTTPParseError status code."""
    if status_code == HTTPStatus.PAYLOAD_TOO_LARGE:
        return payload_too_large()
    if status_code == HTTPStatus.BAD_REQUEST:
        return bad_request()
    return text_response(reason_phrase(status_code).lower(), status_code)


class ResponseWriter:
    """
    Incremental response bound to one connection.

    =========================================================================
    LIFECYCLE
    =========================================================================

        ResponseWriter(conn)
             │
             ├──► status = 201             (optional, default 200)
             ├──► set_header(name, value)  (any number, order kept)
             │
             ├──► write_headers()          (optional explicit flush)
             │        or
             └──► write(data)              first call flushes the head,
                      │                    every call is one send
                      ▼
                 headers_sent = True       set_header/status now raise

    =========================================================================

    Args:
        conn: Anything with a send(bytes) method, normally a Connection.
              Send failures (OSError) propagate to the caller.
    """

    def __init__(self, conn):
        self._conn = conn
        self._status = int(HTTPStatus.OK)
        self._headers: list = []
        self._headers_sent = False

    @property
    def status(self) -> int:
        return self._status

    @status.setter
    def status(self, code: int) -> None:
        if self._headers_sent:
            raise HeadersSentError("status cannot change after headers were sent")
        code = int(code)
        if not 100 <= code <= 999:
            raise ValueError(f"Invalid status code: {code}")
        self._status = code

    @property
    def headers(self) -> list:
        """Copy of the registered headers, in registration order."""
        return list(self._headers)

    @property
    def headers_sent(self) -> bool:
        return self._headers_sent

    def has_header(self, name: str) -> bool:
        wanted = name.lower()
        return any(header_name.lower() == wanted for header_name, _ in self._headers)

    def set_header(self, name: str, value: str) -> "ResponseWriter":
        """
        Append a header.

        Raises:
            HeadersSentError: The head has already been written.
        """
        if self._headers_sent:
            raise HeadersSentError(f"cannot set header {name!r} after headers were sent")
        self._headers.append((name, value))
        return self

    def write_headers(self) -> None:
        """Send status line and headers now. Later calls do nothing."""
        if self._headers_sent:
            return
        # Flip first: a failed send must not let a retry emit a second head.
        self._headers_sent = True
        self._conn.send(render_head(self._status, self._headers))

    # Alias used by the server's end-of-handler safeguard.
    flush = write_headers

    def write(self, data: Union[str, bytes]) -> None:
        """
        Send body bytes, flushing the head first if needed.

        str is encoded as UTF-8. Each call is exactly one send.
        """
        self.write_headers()
        payload = _to_bytes(data)
        if payload:
            self._conn.send(payload)


class ChunkedWriter:
    """
    Chunked-transfer body on top of a ResponseWriter.

    For producers that emit data over time (one event per loop iteration)
    instead of one buffer:

        writer.set_header("Content-Type", "text/event-stream; charset=utf-8")
        with ChunkedWriter(writer) as stream:
            for n in range(100):
                stream.write(f"data: {n}\\n\\n")
                time.sleep(0.1)
        # terminating chunk written on exit

    begin() adds "Transfer-Encoding: chunked" if the caller did not set it
    and the head is still pending.
    """

    def __init__(self, writer: ResponseWriter):
        self._writer = writer
        self._ended = False

    @property
    def ended(self) -> bool:
        return self._ended

    def begin(self) -> None:
        """Make sure the head is on the wire before the first chunk."""
        if not self._writer.headers_sent:
            if not self._writer.has_header("Transfer-Encoding"):
                self._writer.set_header("Transfer-Encoding", "chunked")
            self._writer.write_headers()

    def write(self, data: Union[str, bytes]) -> None:
        """
        Send one chunk.

        Empty data is skipped: a zero-length chunk is the end marker.

        Raises:
            ResponseError: end() was already called.
        """
        if self._ended:
            raise ResponseError("write after end of chunked stream")
        self.begin()
        payload = _to_bytes(data)
        if not payload:
            return
        self._writer.write(b"%x\r\n%s\r\n" % (len(payload), payload))

    def end(self) -> None:
        """
        Send the terminating zero-length chunk.

        Raises:
            ResponseError: end() was already called.
        """
        if self._ended:
            raise ResponseError("chunked stream already ended")
        self.begin()
        self._ended = True
        self._writer.write(b"0\r\n\r\n")

    def __enter__(self) -> "ChunkedWriter":
        self.begin()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # On error the connection is dropped; a terminator would claim the
        # body is complete.
        if exc_type is None and not self._ended:
            self.end()
        return False
