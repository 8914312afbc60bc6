"""
Transport Router - Express-style handler chains over ASGI requests.

Handlers have the shape ``(request, response, next)`` and may be sync or
async. A handler continues the chain by calling ``next()`` (awaited or
not), short-circuits by writing to the response and returning, or fails
by raising / calling ``next(error)`` which jumps to the error handlers.

Matching rules:
- Layers are tried in registration order; the first match runs first.
- ``:name`` placeholders match one non-empty path segment.
- Re-registering an identical (method, path) replaces the earlier
  handler chain in place, so the last registration wins.
"""

from __future__ import annotations

import inspect
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Pattern, Tuple
from urllib.parse import unquote

from .request import Request
from .response import Response


logger = logging.getLogger("gantry.transport")

Handler = Callable[[Request, Response, "Next"], Any]
ErrorHandler = Callable[[BaseException, Request, Response, "Next"], Any]

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD")

_PLACEHOLDER = re.compile(r"^:([A-Za-z_][A-Za-z0-9_]*)$")


def compile_path(path: str) -> Tuple[Pattern[str], List[str]]:
    """
    Compile a route path into a regex plus its placeholder names.

    ``/items/:id`` matches ``/items/42`` and ``/items/42/``.
    """
    segments = [s for s in path.strip("/").split("/") if s]
    names: List[str] = []
    parts: List[str] = []
    for segment in segments:
        placeholder = _PLACEHOLDER.match(segment)
        if placeholder:
            names.append(placeholder.group(1))
            parts.append(f"(?P<{placeholder.group(1)}>[^/]+)")
        else:
            parts.append(re.escape(segment))
    body = "/" + "/".join(parts) if parts else ""
    return re.compile(f"^{body}/?$"), names


class Next:
    """
    Continuation handed to every handler.

    Calling it schedules the rest of the chain; awaiting the returned
    object runs it immediately. If a handler calls ``next()`` without
    awaiting, the chain resumes as soon as the handler returns.
    """

    __slots__ = ("_advance", "called", "error", "_done")

    def __init__(self, advance: Callable[[Optional[BaseException]], Awaitable[None]]):
        self._advance = advance
        self.called = False
        self.error: Optional[BaseException] = None
        self._done = False

    def __call__(self, error: Optional[BaseException] = None) -> "Next":
        if not self.called:
            self.called = True
            self.error = error
        return self

    def __await__(self):
        return self.run().__await__()

    @property
    def done(self) -> bool:
        return self._done

    async def run(self) -> None:
        if self._done:
            return
        self._done = True
        await self._advance(self.error)


@dataclass
class Layer:
    """One registered handler chain."""
    method: Optional[str]          # None matches every method
    path: Optional[str]            # None matches every path
    handlers: List[Handler]
    pattern: Optional[Pattern[str]] = None
    param_names: List[str] = field(default_factory=list)

    def match(self, method: str, path: str) -> Optional[Dict[str, str]]:
        if self.method is not None and self.method != method:
            # HEAD falls back to GET handlers, as Express does
            if not (method == "HEAD" and self.method == "GET"):
                return None
        if self.pattern is None:
            return {}
        m = self.pattern.match(path)
        if m is None:
            return None
        return {name: unquote(value) for name, value in m.groupdict().items()}


async def _call(func: Callable, *args) -> Any:
    result = func(*args)
    if inspect.isawaitable(result):
        return await result
    return result


class Router:
    """
    Express-style router.

    Example:
        router = Router()
        router.route("GET", "/items/:id", auth, get_item)
        await router.dispatch(request, response)
    """

    def __init__(self) -> None:
        self._layers: List[Layer] = []
        self._error_handlers: List[ErrorHandler] = []
        self._not_found: Optional[Handler] = None

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def route(self, method: str, path: str, *handlers: Handler) -> "Router":
        """Bind ``handlers`` (run in order) to ``METHOD path``."""
        if not handlers:
            raise ValueError(f"route({method!r}, {path!r}) requires at least one handler")
        method = method.upper()
        for layer in self._layers:
            if layer.method == method and layer.path == path:
                layer.handlers = list(handlers)
                return self

        pattern, names = compile_path(path)
        self._layers.append(Layer(method, path, list(handlers), pattern, names))
        return self

    def get(self, path: str, *handlers: Handler) -> "Router":
        return self.route("GET", path, *handlers)

    def post(self, path: str, *handlers: Handler) -> "Router":
        return self.route("POST", path, *handlers)

    def put(self, path: str, *handlers: Handler) -> "Router":
        return self.route("PUT", path, *handlers)

    def delete(self, path: str, *handlers: Handler) -> "Router":
        return self.route("DELETE", path, *handlers)

    def patch(self, path: str, *handlers: Handler) -> "Router":
        return self.route("PATCH", path, *handlers)

    def use(self, *handlers: Handler) -> "Router":
        """Add handlers that run for every request, in order."""
        self._layers.append(Layer(None, None, list(handlers)))
        return self

    def mount(self, router: "Router") -> "Router":
        """Append another router's layers and error handlers."""
        self._layers.extend(router._layers)
        self._error_handlers.extend(router._error_handlers)
        return self

    def use_error_handler(self, handler: ErrorHandler) -> "Router":
        self._error_handlers.append(handler)
        return self

    def set_not_found_handler(self, handler: Handler) -> "Router":
        self._not_found = handler
        return self

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_routes(self) -> List[Dict[str, Any]]:
        """Registered routes in match order."""
        return [
            {"method": layer.method, "path": layer.path, "handlers": len(layer.handlers)}
            for layer in self._layers
            if layer.path is not None
        ]

    def match(self, method: str, path: str) -> Optional[Tuple[Layer, Dict[str, str]]]:
        """First route layer matching ``METHOD path``."""
        for layer in self._layers:
            if layer.path is None:
                continue
            params = layer.match(method.upper(), path)
            if params is not None:
                return layer, params
        return None

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, request: Request, response: Response) -> None:
        """Run the matching handler chains for ``request``."""
        steps: List[Tuple[Handler, Optional[Dict[str, str]]]] = []
        for layer in self._layers:
            params = layer.match(request.method, request.path)
            if params is None:
                continue
            for handler in layer.handlers:
                steps.append((handler, params if layer.path is not None else None))

        await self._step(steps, 0, request, response, None)

    async def _step(
        self,
        steps: List[Tuple[Handler, Optional[Dict[str, str]]]],
        index: int,
        request: Request,
        response: Response,
        error: Optional[BaseException],
    ) -> None:
        if error is not None:
            await self.handle_error(error, request, response)
            return
        if index >= len(steps):
            await self._handle_not_found(request, response)
            return

        handler, params = steps[index]
        if params is not None:
            request.params = params

        async def advance(err: Optional[BaseException]) -> None:
            await self._step(steps, index + 1, request, response, err)

        nxt = Next(advance)
        try:
            await _call(handler, request, response, nxt)
        except Exception as e:
            if nxt.done and response.headers_sent:
                logger.error(f"Error raised after response was sent: {e}", exc_info=True)
                return
            await self.handle_error(e, request, response)
            return

        if nxt.called and not nxt.done:
            await nxt.run()

    async def handle_error(
        self,
        error: BaseException,
        request: Request,
        response: Response,
        index: int = 0,
    ) -> None:
        """Hand ``error`` to the registered error handlers in order."""
        if index >= len(self._error_handlers):
            self._default_error(error, request, response)
            return

        handler = self._error_handlers[index]

        async def advance(err: Optional[BaseException]) -> None:
            await self.handle_error(err or error, request, response, index + 1)

        nxt = Next(advance)
        try:
            await _call(handler, error, request, response, nxt)
        except Exception as e:
            logger.error(f"Error handler failed: {e}", exc_info=True)
            self._default_error(e, request, response)
            return

        if nxt.called and not nxt.done:
            await nxt.run()

    async def _handle_not_found(self, request: Request, response: Response) -> None:
        if response.headers_sent:
            return
        if self._not_found is not None:
            try:
                await _call(self._not_found, request, response, Next(self._noop))
            except Exception as e:
                await self.handle_error(e, request, response)
            return
        response.status(404).json({
            "error": "Not Found",
            "message": f"Route {request.method} {request.original_url} not found",
        })

    @staticmethod
    async def _noop(error: Optional[BaseException]) -> None:
        return None

    @staticmethod
    def _default_error(error: BaseException, request: Request, response: Response) -> None:
        logger.error(
            f"Unhandled error for {request.method} {request.path}: {error}",
            exc_info=error,
        )
        if not response.headers_sent:
            response.status(500).json({"error": "Internal Server Error"})
