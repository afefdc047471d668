"""HTTP protocol pieces: head tokenizer, request model, responses, routing."""

from .request import HTTPParseError, HTTPRequest, parse_query, split_path
from .response import (
    ChunkedWriter,
    HeadersSentError,
    HTTPResponse,
    ResponseError,
    ResponseWriter,
    bad_request,
    internal_error,
    not_found,
    payload_too_large,
    text_response,
)
from .router import HandlerKind, Route, Router
from .status_codes import HTTPStatus
from .tokenizer import HeadParseResult, ParseStatus, parse_request_head

__all__ = [
    "HTTPRequest",
    "HTTPParseError",
    "parse_query",
    "split_path",
    "HTTPResponse",
    "ResponseWriter",
    "ChunkedWriter",
    "ResponseError",
    "HeadersSentError",
    "text_response",
    "not_found",
    "bad_request",
    "payload_too_large",
    "internal_error",
    "Router",
    "Route",
    "HandlerKind",
    "HTTPStatus",
    "parse_request_head",
    "HeadParseResult",
    "ParseStatus",
]
