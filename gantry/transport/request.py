"""
Request - ASGI request wrapper for the transport layer.

Provides:
- method / path / original_url from the ASGI scope
- query map (single values, repeated keys become lists)
- lower-cased header map
- path params (filled by the router on match)
- parsed body (filled by the body parser)
- per-request context dict and free-form state
"""

from __future__ import annotations

import json as stdlib_json
from typing import Any, Callable, Dict, List, Optional, Union
from urllib.parse import parse_qsl

from ..faults import BadRequestException, PayloadTooLargeException


QueryValue = Union[str, List[str]]


def parse_query_string(query_string: str) -> Dict[str, QueryValue]:
    """Parse a raw query string; repeated keys collect into a list."""
    query: Dict[str, QueryValue] = {}
    for key, value in parse_qsl(query_string, keep_blank_values=True):
        if key in query:
            existing = query[key]
            if isinstance(existing, list):
                existing.append(value)
            else:
                query[key] = [existing, value]
        else:
            query[key] = value
    return query


class Request:
    """
    Request handle passed through the middleware chain.

    Attributes:
        scope: Raw ASGI scope
        params: Path parameters of the matched route
        body: Parsed body (``None`` until parsed or when empty)
        context: Per-request context (``request_id``, auth flags, ...)
        user: Authenticated principal set by auth middleware/guards
        state: Free-form per-request storage
    """

    def __init__(self, scope: dict, receive: Optional[Callable] = None):
        self.scope = scope
        self._receive = receive
        self.params: Dict[str, str] = {}
        self.query: Dict[str, QueryValue] = parse_query_string(self.query_string)
        self.headers: Dict[str, str] = self._parse_headers(scope.get("headers", ()))
        self.body: Any = None
        self.context: Dict[str, Any] = {}
        self.user: Any = None
        self.state: Dict[str, Any] = {}
        self._raw_body: Optional[bytes] = None

    @staticmethod
    def _parse_headers(raw_headers) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        for name, value in raw_headers:
            key = name.decode("latin-1").lower() if isinstance(name, bytes) else str(name).lower()
            val = value.decode("latin-1") if isinstance(value, bytes) else str(value)
            if key in headers:
                headers[key] = f"{headers[key]}, {val}"
            else:
                headers[key] = val
        return headers

    # ------------------------------------------------------------------
    # Scope accessors
    # ------------------------------------------------------------------

    @property
    def method(self) -> str:
        return self.scope.get("method", "GET").upper()

    @property
    def path(self) -> str:
        return self.scope.get("path", "/") or "/"

    @property
    def query_string(self) -> str:
        raw = self.scope.get("query_string", b"")
        return raw.decode("latin-1") if isinstance(raw, bytes) else raw

    @property
    def original_url(self) -> str:
        """Path plus query string, as received."""
        qs = self.query_string
        return f"{self.path}?{qs}" if qs else self.path

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "").split(";")[0].strip().lower()

    @property
    def request_id(self) -> Optional[str]:
        return self.context.get("request_id")

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get header (case-insensitive)."""
        return self.headers.get(name.lower(), default)

    # ------------------------------------------------------------------
    # Body
    # ------------------------------------------------------------------

    async def read_body(self, max_size: Optional[int] = None) -> bytes:
        """Read and cache the raw body from the ASGI receive channel."""
        if self._raw_body is not None:
            return self._raw_body

        chunks: List[bytes] = []
        size = 0
        if self._receive is not None:
            while True:
                message = await self._receive()
                if message.get("type") == "http.disconnect":
                    break
                chunk = message.get("body", b"")
                if chunk:
                    size += len(chunk)
                    if max_size is not None and size > max_size:
                        raise PayloadTooLargeException(
                            f"Request body exceeds {max_size} bytes"
                        )
                    chunks.append(chunk)
                if not message.get("more_body", False):
                    break

        self._raw_body = b"".join(chunks)
        return self._raw_body

    async def parse_body(self, max_size: Optional[int] = None) -> Any:
        """
        Parse the body according to its content type.

        JSON → decoded value (malformed JSON propagates
        ``json.JSONDecodeError``), url-encoded forms → dict, other
        non-empty bodies → text. Empty bodies leave ``body`` as ``None``.
        """
        raw = await self.read_body(max_size)
        if not raw:
            self.body = None
            return self.body

        content_type = self.content_type
        if content_type == "application/json" or content_type.endswith("+json"):
            try:
                text = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise BadRequestException("Request body is not valid UTF-8") from e
            self.body = stdlib_json.loads(text)
        elif content_type == "application/x-www-form-urlencoded":
            self.body = parse_query_string(raw.decode("latin-1"))
        else:
            self.body = raw.decode("utf-8", errors="replace")
        return self.body

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.original_url}>"
