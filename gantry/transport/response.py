"""
Response - mutable response handle for the transport layer.

Handlers, middleware and guards write through this object
(``res.status(403).json({...})``). Once a body has been written the
response counts as sent and later writes are ignored with a warning.
The application serialises the final state to ASGI messages.
"""

from __future__ import annotations

import inspect
import json as stdlib_json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union


logger = logging.getLogger("gantry.transport")


def _json_default_serializer(o):
    """Default JSON serializer for non-standard types."""
    if isinstance(o, (set, tuple)):
        return list(o)
    if hasattr(o, "isoformat"):
        return o.isoformat()
    if hasattr(o, "to_dict"):
        return o.to_dict()
    return str(o)


def dumps(obj: Any) -> bytes:
    return stdlib_json.dumps(obj, default=_json_default_serializer).encode("utf-8")


FinishCallback = Callable[["Response"], Union[None, Awaitable[None]]]


class Response:
    """
    Response handle.

    Attributes:
        status_code: Current HTTP status (defaults to 200)
        headers: Lower-cased response headers
        body: Encoded body bytes once written
    """

    def __init__(self) -> None:
        self.status_code: int = 200
        self.headers: Dict[str, str] = {}
        self.body: bytes = b""
        self._sent = False
        self._finish_callbacks: List[FinishCallback] = []

    @property
    def headers_sent(self) -> bool:
        """True once a body has been written (manual response control)."""
        return self._sent

    def status(self, code: int) -> "Response":
        """Set the status code. Chainable."""
        self.status_code = int(code)
        return self

    def set_header(self, name: str, value: str) -> "Response":
        self.headers[name.lower()] = str(value)
        return self

    def set(self, headers: Dict[str, str]) -> "Response":
        """Set several headers at once."""
        for name, value in headers.items():
            self.set_header(name, value)
        return self

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    # ------------------------------------------------------------------
    # Body writers
    # ------------------------------------------------------------------

    def json(self, obj: Any) -> "Response":
        """Write ``obj`` as a JSON body."""
        if self._refuse_write():
            return self
        self.headers.setdefault("content-type", "application/json; charset=utf-8")
        self.body = dumps(obj)
        self._sent = True
        return self

    def send(self, content: Any = b"") -> "Response":
        """Write bytes, text, or a JSON-able object."""
        if isinstance(content, (dict, list)):
            return self.json(content)
        if self._refuse_write():
            return self
        if isinstance(content, str):
            self.headers.setdefault("content-type", "text/plain; charset=utf-8")
            self.body = content.encode("utf-8")
        elif isinstance(content, (bytes, bytearray)):
            self.headers.setdefault("content-type", "application/octet-stream")
            self.body = bytes(content)
        elif content is None:
            self.body = b""
        else:
            return self.json(content)
        self._sent = True
        return self

    def end(self) -> "Response":
        """Finish without (further) body."""
        self._sent = True
        return self

    def _refuse_write(self) -> bool:
        if self._sent:
            logger.warning("Response already sent; ignoring additional write")
            return True
        return False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def on_finish(self, callback: FinishCallback) -> None:
        """Register a callback run after the response is handed to ASGI."""
        self._finish_callbacks.append(callback)

    async def send_asgi(self, send: Callable, head_only: bool = False) -> None:
        """
        Send the response via ASGI and run finish callbacks.

        With ``head_only`` the body is withheld but ``content-length``
        still describes it.
        """
        body = self.body if self.status_code not in (204, 304) else b""
        headers = dict(self.headers)
        if self.status_code not in (204, 304):
            headers["content-length"] = str(len(body))
        else:
            headers.pop("content-length", None)
            headers.pop("content-type", None)

        await send({
            "type": "http.response.start",
            "status": self.status_code,
            "headers": [
                (name.encode("latin-1"), value.encode("latin-1"))
                for name, value in headers.items()
            ],
        })
        await send({
            "type": "http.response.body",
            "body": b"" if head_only else body,
            "more_body": False,
        })
        self._sent = True

        for callback in self._finish_callbacks:
            try:
                result = callback(self)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Error in response finish callback: {e}", exc_info=True)

    def __repr__(self) -> str:
        return f"<Response {self.status_code} sent={self._sent}>"
