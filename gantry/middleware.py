"""
Middleware - request-processing steps that run before a handler.

A middleware is a class with ``use(request, response, next)`` (sync or
async) or a plain callable of the same shape. It may:
- call ``next()`` to continue the chain,
- write to the response and return without calling ``next()``,
- raise (or call ``next(error)``), which hands the error to the filters.

Bindings are declared with ``@UseMiddleware`` on a controller class or
method. Class-level entries run first, then method-level entries, each
in declaration order.
"""

from __future__ import annotations

import inspect
import logging
import os
import time
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence

from .metadata import MetadataKeys, MetadataStore, bind
from .transport.request import Request
from .transport.response import Response
from .transport.router import Handler, Next


def activate(ref: Any, *args: Any) -> Any:
    """Instantiate ``ref`` if it is a class, otherwise return it as-is."""
    return ref(*args) if isinstance(ref, type) else ref


class Middleware:
    """Base middleware. Subclasses override ``use``."""

    def use(self, request: Request, response: Response, next: Next) -> Any:
        return next()


def UseMiddleware(*middleware: Any, store: Optional[MetadataStore] = None) -> Callable[[Any], Any]:
    """
    Bind middleware to a controller class or a route method.

    Example:
        @Controller("/admin")
        @UseMiddleware(LoggingMiddleware, AuthMiddleware)
        class AdminController:
            ...
    """
    return bind(MetadataKeys.MIDDLEWARE, middleware, store)


def compose_chain(class_middleware: Sequence[Any], method_middleware: Sequence[Any]) -> List[Any]:
    """Class-level entries first, then method-level, order preserved."""
    return [*class_middleware, *method_middleware]


def adapt_middleware(ref: Any) -> Handler:
    """
    Adapt a middleware reference to the router's handler shape.

    Classes are instantiated per request. Errors raised before ``next``
    is called are forwarded through ``next(error)``.
    """
    async def handler(request: Request, response: Response, next: Next) -> None:
        try:
            instance = activate(ref)
            use = getattr(instance, "use", None)
            if use is None and not callable(instance):
                next()
                return
            result = use(request, response, next) if use is not None else instance(request, response, next)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            if next.called:
                raise
            next(e)

    handler.__name__ = getattr(ref, "__name__", type(ref).__name__)
    return handler


# ============================================================================
# Built-in middleware
# ============================================================================

class RequestIdMiddleware(Middleware):
    """Adds a request id to ``request.context`` and the response headers."""

    def __init__(self, header_name: str = "X-Request-ID"):
        self.header_name = header_name

    def use(self, request: Request, response: Response, next: Next) -> Any:
        request_id = request.header(self.header_name) or os.urandom(8).hex()
        request.context["request_id"] = request_id
        response.set_header(self.header_name, request_id)
        return next()


class LoggingMiddleware(Middleware):
    """Logs request start and finish with timing."""

    def __init__(self):
        self.logger = logging.getLogger("gantry.requests")

    def use(self, request: Request, response: Response, next: Next) -> Any:
        start = time.monotonic()
        request_id = request.context.get("request_id") or os.urandom(5).hex()
        request.context["request_id"] = request_id
        request.context["start_time"] = start

        self.logger.info("[%s] %s %s - Start", request_id, request.method, request.original_url)
        if request.body:
            self.logger.debug("[%s] Body: %r", request_id, request.body)

        def finished(res: Response) -> None:
            elapsed_ms = (time.monotonic() - start) * 1000.0
            level = logging.WARNING if res.status_code >= 400 else logging.INFO
            self.logger.log(
                level,
                "[%s] %s %s - %d (%.1fms)",
                request_id, request.method, request.original_url, res.status_code, elapsed_ms,
            )

        response.on_finish(finished)
        return next()


class AuthMiddleware(Middleware):
    """
    Minimal bearer-header check.

    Rejects requests without an ``Authorization`` header (or with the
    well-known invalid token) with 401, otherwise sets ``request.user``.
    """

    INVALID_TOKEN = "Bearer invalid-token"

    def __init__(self, user: Optional[dict] = None):
        self.user = user or {"id": 1, "name": "John Doe", "email": "john@example.com"}
        self.logger = logging.getLogger("gantry.requests")

    def use(self, request: Request, response: Response, next: Next) -> Any:
        token = request.header("authorization")
        if not token:
            response.status(401).json({"error": "Unauthorized", "message": "No token provided"})
            return None
        if token == self.INVALID_TOKEN:
            response.status(401).json({"error": "Unauthorized", "message": "Invalid token"})
            return None

        request.user = dict(self.user)
        request.context["authenticated"] = True
        request.context["timestamp"] = datetime.now(timezone.utc).isoformat()
        self.logger.debug("Authentication successful for %s %s", request.method, request.path)
        return next()
