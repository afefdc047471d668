"""
Unit tests for one-shot responses, ResponseWriter and ChunkedWriter.
"""

import pytest

from embedhttp.http.response import (
    ChunkedWriter,
    HeadersSentError,
    HTTPResponse,
    ResponseError,
    ResponseWriter,
    bad_request,
    error_response,
    internal_error,
    not_found,
    payload_too_large,
    text_response,
)
from embedhttp.http.status_codes import HTTPStatus, reason_phrase


class RecordingConn:
    """Collects every send() as a separate item."""

    def __init__(self):
        self.sends = []

    def send(self, data: bytes):
        self.sends.append(data)

    @property
    def output(self) -> bytes:
        return b"".join(self.sends)


class TestHTTPResponse:
    """Tests for HTTPResponse class."""

    def test_status_line(self):
        """Test status line generation."""
        assert HTTPResponse(status=HTTPStatus.OK).status_line == "HTTP/1.0 200 OK"
        assert HTTPResponse(status=404).status_line == "HTTP/1.0 404 Not Found"

    def test_to_bytes_exact_headers(self):
        """Test that exactly the given headers are written, in order."""
        response = HTTPResponse(
            status=HTTPStatus.OK,
            headers=[("X-One", "1"), ("X-Two", "2")],
            body=b"test",
        )

        assert response.to_bytes() == (
            b"HTTP/1.0 200 OK\r\n"
            b"X-One: 1\r\n"
            b"X-Two: 2\r\n"
            b"\r\n"
            b"test"
        )

    def test_unknown_status_phrase(self):
        """Test that unlisted codes still get a status line."""
        assert HTTPResponse(status=299).status_line == "HTTP/1.0 299 Unknown"


class TestFixedResponses:
    """Tests for the engine's own responses."""

    def test_text_response(self):
        """Test a TEXT handler result."""
        assert text_response("hello").to_bytes() == (
            b"HTTP/1.0 200 OK\r\nContent-Type: text/plain\r\n\r\nhello"
        )

    def test_text_response_utf8(self):
        """Test that str bodies are UTF-8 encoded."""
        assert text_response("café").body == b"caf\xc3\xa9"

    def test_not_found(self):
        """Test the exact 404 bytes."""
        assert not_found().to_bytes() == (
            b"HTTP/1.0 404 Not Found\r\nContent-Type: text/plain\r\n\r\nnot found"
        )

    def test_bad_request(self):
        """Test the 400 response."""
        response = bad_request()

        assert response.status == 400
        assert response.body == b"bad request"

    def test_payload_too_large(self):
        """Test the 413 response."""
        response = payload_too_large()

        assert response.status_line == "HTTP/1.0 413 Payload Too Large"
        assert response.body == b"request too large"

    def test_internal_error(self):
        """Test the 500 response."""
        response = internal_error()

        assert response.status == 500
        assert response.body == b"internal server error"

    def test_error_response_by_code(self):
        """Test picking the fixed response for a parse error code."""
        assert error_response(400).body == b"bad request"
        assert error_response(413).body == b"request too large"
        assert error_response(431).status == 431


class TestResponseWriter:
    """Tests for the incremental writer."""

    def test_first_write_flushes_head(self):
        """Test that headers precede the first body bytes."""
        conn = RecordingConn()
        writer = ResponseWriter(conn)
        writer.set_header("Content-Type", "text/plain")
        writer.set_header("X-Id", "7")

        writer.write("a")
        writer.write(b"b")

        assert conn.sends == [
            b"HTTP/1.0 200 OK\r\nContent-Type: text/plain\r\nX-Id: 7\r\n\r\n",
            b"a",
            b"b",
        ]
        assert writer.headers_sent

    def test_set_header_after_write_rejected(self):
        """Test that late headers raise and never reach the wire."""
        conn = RecordingConn()
        writer = ResponseWriter(conn)
        writer.write("body")

        with pytest.raises(HeadersSentError):
            writer.set_header("X-Late", "1")

        assert b"X-Late" not in conn.output

    def test_status_settable_before_flush(self):
        """Test a custom status code on the status line."""
        conn = RecordingConn()
        writer = ResponseWriter(conn)
        writer.status = 201
        writer.write_headers()

        assert conn.output.startswith(b"HTTP/1.0 201 Created\r\n")

    def test_status_locked_after_flush(self):
        """Test that changing status after the head is sent raises."""
        writer = ResponseWriter(RecordingConn())
        writer.write_headers()

        with pytest.raises(HeadersSentError):
            writer.status = 500
        assert writer.status == 200

    def test_invalid_status_rejected(self):
        """Test out-of-range status codes."""
        writer = ResponseWriter(RecordingConn())

        with pytest.raises(ValueError):
            writer.status = 42

    def test_write_headers_idempotent(self):
        """Test that a second explicit flush sends nothing."""
        conn = RecordingConn()
        writer = ResponseWriter(conn)
        writer.write_headers()
        writer.write_headers()
        writer.write("x")

        assert conn.sends == [b"HTTP/1.0 200 OK\r\n\r\n", b"x"]

    def test_empty_write_still_flushes(self):
        """Test that write('') sends the head and no body send."""
        conn = RecordingConn()
        writer = ResponseWriter(conn)
        writer.write("")

        assert conn.sends == [b"HTTP/1.0 200 OK\r\n\r\n"]

    def test_headers_in_registration_order(self):
        """Test that header order and duplicates are kept."""
        conn = RecordingConn()
        writer = ResponseWriter(conn)
        writer.set_header("B", "2").set_header("A", "1").set_header("B", "3")
        writer.write_headers()

        assert conn.output == b"HTTP/1.0 200 OK\r\nB: 2\r\nA: 1\r\nB: 3\r\n\r\n"
        assert writer.headers == [("B", "2"), ("A", "1"), ("B", "3")]

    def test_failed_head_send_not_repeated(self):
        """Test that a failed flush is not retried by the next write."""
        class FailingConn(RecordingConn):
            def send(self, data):
                raise BrokenPipeError("gone")

        writer = ResponseWriter(FailingConn())
        with pytest.raises(OSError):
            writer.write_headers()

        assert writer.headers_sent


class TestChunkedWriter:
    """Tests for chunked framing."""

    def test_frames_and_terminator(self):
        """Test that each write is its own frame, then the end marker."""
        conn = RecordingConn()
        writer = ResponseWriter(conn)
        stream = ChunkedWriter(writer)

        stream.write("a")
        stream.write("bc")
        stream.end()

        assert conn.sends[0] == (
            b"HTTP/1.0 200 OK\r\nTransfer-Encoding: chunked\r\n\r\n"
        )
        assert conn.sends[1:] == [b"1\r\na\r\n", b"2\r\nbc\r\n", b"0\r\n\r\n"]

    def test_hex_length(self):
        """Test that chunk sizes are hexadecimal."""
        conn = RecordingConn()
        stream = ChunkedWriter(ResponseWriter(conn))
        stream.write(b"x" * 26)

        assert conn.sends[-1].startswith(b"1a\r\n")

    def test_utf8_length_in_bytes(self):
        """Test that the length counts encoded bytes, not characters."""
        conn = RecordingConn()
        stream = ChunkedWriter(ResponseWriter(conn))
        stream.write("\U0001F4A9")

        assert conn.sends[-1] == b"4\r\n\xf0\x9f\x92\xa9\r\n"

    def test_empty_write_ignored(self):
        """Test that empty data does not emit a premature terminator."""
        conn = RecordingConn()
        stream = ChunkedWriter(ResponseWriter(conn))
        stream.write("")
        stream.end()

        assert conn.sends[1:] == [b"0\r\n\r\n"]

    def test_existing_headers_kept(self):
        """Test begin() after the caller already flushed headers."""
        conn = RecordingConn()
        writer = ResponseWriter(conn)
        writer.set_header("content-type", "text/event-stream; charset=utf-8")
        writer.write_headers()

        stream = ChunkedWriter(writer)
        stream.write("e")

        assert conn.sends[0] == (
            b"HTTP/1.0 200 OK\r\ncontent-type: text/event-stream; charset=utf-8\r\n\r\n"
        )
        assert conn.sends[1] == b"1\r\ne\r\n"

    def test_transfer_encoding_not_duplicated(self):
        """Test that a caller-set Transfer-Encoding is not added again."""
        conn = RecordingConn()
        writer = ResponseWriter(conn)
        writer.set_header("transfer-encoding", "chunked")
        ChunkedWriter(writer).begin()

        assert conn.sends[0].lower().count(b"transfer-encoding") == 1

    def test_double_end_raises(self):
        """Test that end() can only be called once."""
        stream = ChunkedWriter(ResponseWriter(RecordingConn()))
        stream.end()

        with pytest.raises(ResponseError):
            stream.end()

    def test_write_after_end_raises(self):
        """Test that writes after end() are rejected."""
        stream = ChunkedWriter(ResponseWriter(RecordingConn()))
        stream.end()

        with pytest.raises(ResponseError):
            stream.write("late")

    def test_context_manager_ends_stream(self):
        """Test that leaving the block writes the terminator."""
        conn = RecordingConn()
        with ChunkedWriter(ResponseWriter(conn)) as stream:
            stream.write("a")

        assert stream.ended
        assert conn.sends[-1] == b"0\r\n\r\n"

    def test_context_manager_no_terminator_on_error(self):
        """Test that an exception inside the block skips the terminator."""
        conn = RecordingConn()
        with pytest.raises(RuntimeError):
            with ChunkedWriter(ResponseWriter(conn)) as stream:
                stream.write("a")
                raise RuntimeError("producer failed")

        assert conn.sends[-1] == b"1\r\na\r\n"


class TestHTTPStatus:
    """Tests for status codes."""

    def test_status_phrases(self):
        """Test reason phrases."""
        assert HTTPStatus.OK.phrase == "OK"
        assert HTTPStatus.PAYLOAD_TOO_LARGE.phrase == "Payload Too Large"
        assert reason_phrase(404) == "Not Found"
        assert reason_phrase(799) == "Unknown"
