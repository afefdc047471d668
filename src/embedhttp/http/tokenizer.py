"""
=============================================================================
HTTP REQUEST HEAD TOKENIZER
=============================================================================

Turns the bytes of a request head (request line + header block) into
tokens. It is deliberately a PURE FUNCTION over a growing buffer:

    parse_request_head(buf, last_len) ──► HeadParseResult

        status      COMPLETE | INCOMPLETE | ERROR
        method      "GET"
        path        "/echo?name=world"      (raw request target)
        minor_version  0                    (HTTP/1.0)
        headers     (("Host", "x"), ...)    (ordered, names untouched)
        consumed    number of head bytes, including the blank line

=============================================================================
WHY A CURSOR?
=============================================================================

The connection loop calls us again after every recv() with the SAME
buffer, now longer, and the length it had before the read:

    call 1:  buf = b"GET / HT"                      last_len = 0  → INCOMPLETE
    call 2:  buf = b"GET / HTTP/1.0\r\n\r"          last_len = 8  → INCOMPLETE
    call 3:  buf = b"GET / HTTP/1.0\r\n\r\n"        last_len = 17 → COMPLETE
                                        ▲
                                        └── only the tail can hold the end

The end-of-head marker is at most 4 bytes long, so a marker that was not
visible at last_len must end in the new bytes. We only search from
last_len - 3 onwards instead of rescanning the whole buffer.

=============================================================================
WHAT COUNTS AS MALFORMED
=============================================================================

    - method that is not an RFC 7230 token       "G@T / HTTP/1.0"
    - missing or empty request target            "GET  HTTP/1.0"
    - version other than HTTP/1.x                "GET / HTTP/2.0"
    - header line without "name:"                "Host localhost"
    - more than max_headers header lines

A complete but malformed request line or header line is reported as
ERROR right away, even if the blank line has not arrived yet, so the
caller does not keep waiting on a head that can never become valid.

=============================================================================
"""

import re
from dataclasses import dataclass
from enum import Enum


# Upper bound on header lines per request, the same bound the read loop
# uses for its fixed header table.
MAX_HEADERS = 100

_TOKEN = rb"[!#$%&'*+\-.^_`|~0-9A-Za-z]+"

REQUEST_LINE_PATTERN = re.compile(
    rb"^(" + _TOKEN + rb") ([^\x00-\x20\x7f]+) HTTP/1\.(\d)$"
)
HEADER_PATTERN = re.compile(rb"^(" + _TOKEN + rb"):[ \t]*(.*?)[ \t]*$")
METHOD_PREFIX_PATTERN = re.compile(rb"^" + _TOKEN + rb"$")

# Blank line that terminates the head: CRLF CRLF, or the bare-LF variants
# some hand-written clients send.
HEAD_END_PATTERN = re.compile(rb"\r?\n\r?\n")


class ParseStatus(Enum):
    """Outcome of one tokenizer call."""
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"
    ERROR = "error"


@dataclass(frozen=True)
class HeadParseResult:
    """
    Result of parse_request_head().

    Only `status` is meaningful unless status is COMPLETE.
    """
    status: ParseStatus
    method: str = ""
    path: str = ""
    minor_version: int = -1
    headers: tuple = ()
    consumed: int = 0

    @property
    def is_complete(self) -> bool:
        return self.status is ParseStatus.COMPLETE

    @property
    def is_error(self) -> bool:
        return self.status is ParseStatus.ERROR


INCOMPLETE = HeadParseResult(ParseStatus.INCOMPLETE)
MALFORMED = HeadParseResult(ParseStatus.ERROR)


def parse_request_head(
    buf: bytes,
    last_len: int = 0,
    max_headers: int = MAX_HEADERS,
) -> HeadParseResult:
    """
    Tokenize an HTTP/1.x request head.

    Args:
        buf: Everything received on the connection so far.
        last_len: Length of `buf` at the previous call (0 on the first call).
        max_headers: Maximum number of header lines accepted.

    Returns:
        HeadParseResult. Bytes after `consumed` are body bytes and are left
        to the caller.
    """
    data = bytes(buf)
    start = _skip_leading_newlines(data)

    search_from = max(start, last_len - 3)
    end = HEAD_END_PATTERN.search(data, search_from)
    if end is None:
        return _check_partial(data, start, max_headers)

    lines = [line.rstrip(b"\r") for line in data[start:end.start()].split(b"\n")]

    match = REQUEST_LINE_PATTERN.match(lines[0])
    if not match:
        return MALFORMED
    method, target, minor = match.groups()

    headers = _parse_header_lines(lines[1:], max_headers)
    if headers is None:
        return MALFORMED

    return HeadParseResult(
        status=ParseStatus.COMPLETE,
        method=method.decode("ascii"),
        path=target.decode("latin-1"),
        minor_version=int(minor),
        headers=headers,
        consumed=end.end(),
    )


def _skip_leading_newlines(data: bytes) -> int:
    # RFC 7230 section 3.5: servers SHOULD ignore empty lines before the
    # request line.
    pos = 0
    while True:
        if data.startswith(b"\r\n", pos):
            pos += 2
        elif data.startswith(b"\n", pos):
            pos += 1
        else:
            return pos


def _check_partial(data: bytes, start: int, max_headers: int) -> HeadParseResult:
    """Decide between INCOMPLETE and ERROR for a head with no end yet."""
    newline = data.find(b"\n", start)
    if newline != -1:
        if not REQUEST_LINE_PATTERN.match(data[start:newline].rstrip(b"\r")):
            return MALFORMED

        # Header lines that already ended must be well formed too; the
        # trailing partial line is judged once its newline arrives.
        last_newline = data.rfind(b"\n")
        if last_newline > newline:
            lines = [
                line.rstrip(b"\r")
                for line in data[newline + 1:last_newline].split(b"\n")
            ]
            if _parse_header_lines(lines, max_headers) is None:
                return MALFORMED
        return INCOMPLETE

    # No full request line yet: at least the method must look like a token.
    pending = data[start:]
    if pending == b"\r":
        # first half of a leading CRLF
        return INCOMPLETE
    space = pending.find(b" ")
    method = pending if space == -1 else pending[:space]
    if method and not METHOD_PREFIX_PATTERN.match(method):
        return MALFORMED
    if space == 0:
        return MALFORMED
    return INCOMPLETE


def _parse_header_lines(lines: list, max_headers: int):
    """
    Parse "Name: value" lines into an ordered tuple of pairs.

    Returns None when a line is malformed or there are too many headers.
    """
    headers: list = []
    for line in lines:
        if line[:1] in (b" ", b"\t"):
            # obs-fold: continuation of the previous header value
            if not headers:
                return None
            name, value = headers[-1]
            headers[-1] = (name, f"{value} {line.strip().decode('latin-1')}".strip())
            continue

        match = HEADER_PATTERN.match(line)
        if not match:
            return None

        if len(headers) >= max_headers:
            return None

        name, value = match.groups()
        headers.append((name.decode("ascii"), value.decode("latin-1")))

    return tuple(headers)
