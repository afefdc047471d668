"""
=============================================================================
HTTP REQUEST MODEL
=============================================================================

Builds the immutable HTTPRequest a handler receives from a completed
tokenizer result plus the raw connection buffer.

    ┌─────────────────────────────────────────────────────────────────────┐
    │   GET /echo?name=world&x=1 HTTP/1.0\r\n                             │
    │   ─┬─ ────────┬───────────                                          │
    │    │          │                                                     │
    │  method    raw_path ──split_path()──►  path          "/echo"        │
    │                                        query_params  {"name":       │
    │                                                        "world",     │
    │                                                       "x": "1"}     │
    │   Host: example\r\n           ──►  headers  (("Host", "example"),)  │
    │   \r\n                                                              │
    │   ...bytes already received   ──►  body                             │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
KNOWN LIMITATIONS
=============================================================================

1. Query values are NOT percent-decoded: "?q=a%20b" gives "a%20b".
2. body is whatever arrived together with the head. Content-Length is not
   consulted and no further reads are made for the body.
3. Header names keep the case the client sent. get_header() compares
   case-insensitively, the stored tuple does not change.

=============================================================================
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from .tokenizer import HeadParseResult


class HTTPParseError(Exception):
    """
    Raised when a request cannot be read.

    Carries the status code the connection should answer with before it is
    closed:

        400 Bad Request        - malformed request line or headers
        413 Payload Too Large  - head did not fit in the read buffer
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def parse_query(query: str) -> dict:
    """
    Parse "k1=v1&k2=v2" into a dict.

    - pieces without "=" are dropped ("bad" in "a=1&bad")
    - pieces with an empty value are dropped ("k=")
    - the first "=" splits, so "a=1=2" gives {"a": "1=2"}
    - a repeated key keeps its last value
    - no percent-decoding
    """
    params = {}
    for piece in query.split("&"):
        key, sep, value = piece.partition("=")
        if not sep or not value:
            continue
        params[key] = value
    return params


def split_path(raw_path: str) -> tuple:
    """
    Split a raw request target at the first "?".

    Returns:
        (path, query_params). query_params is empty when there is no "?".
    """
    path, sep, query = raw_path.partition("?")
    if not sep:
        return path, {}
    return path, parse_query(query)


@dataclass(frozen=True)
class HTTPRequest:
    """
    One parsed request. Created once per connection, read-only afterwards.

    Attributes:
        method:         Request method token ("GET", "POST", ...).
        raw_path:       Request target exactly as sent, query included.
        path:           raw_path without the "?query" suffix. Routing key.
        query_params:   Read-only mapping of query parameters.
        headers:        Ordered (name, value) pairs, duplicates preserved.
        body:           Bytes that followed the head in the read buffer.
        minor_version:  x in "HTTP/1.x".
        client_address: Peer (ip, port), for logging.
    """

    method: str
    raw_path: str
    path: str
    query_params: Mapping[str, str] = field(default_factory=dict)
    headers: tuple = ()
    body: bytes = b""
    minor_version: int = 0
    client_address: tuple = ("", 0)

    @classmethod
    def from_head(
        cls,
        head: HeadParseResult,
        buffer: bytes,
        client_address: tuple = ("", 0),
    ) -> "HTTPRequest":
        """
        Build a request from a COMPLETE tokenizer result.

        Args:
            head: Result of parse_request_head() with status COMPLETE.
            buffer: The buffer that was tokenized; bytes after
                    head.consumed become the body.
            client_address: Peer address of the connection.
        """
        path, query_params = split_path(head.path)
        return cls(
            method=head.method,
            raw_path=head.path,
            path=path,
            query_params=MappingProxyType(query_params),
            headers=tuple(head.headers),
            body=bytes(buffer[head.consumed:]),
            minor_version=head.minor_version,
            client_address=client_address,
        )

    @property
    def version(self) -> str:
        """Version string as sent, e.g. "HTTP/1.0"."""
        return f"HTTP/1.{self.minor_version}"

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        First value of a header, compared case-insensitively.

        Example:
            request.get_header("content-type")   # finds "Content-Type"
        """
        wanted = name.lower()
        for header_name, value in self.headers:
            if header_name.lower() == wanted:
                return value
        return default

    def get_headers(self, name: str) -> list:
        """All values of a repeated header, in the order they were sent."""
        wanted = name.lower()
        return [value for header_name, value in self.headers if header_name.lower() == wanted]

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Value of a query parameter, or default."""
        return self.query_params.get(name, default)
