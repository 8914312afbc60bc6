"""
Interceptors - before/after wrappers around the handler call.

``intercept(request, response, call_handler)`` runs its "before" logic,
awaits ``call_handler()`` (the inner interceptors plus the handler) and
may transform the result or the raised error. Class-level interceptors
wrap method-level ones.
"""

from __future__ import annotations

import inspect
import json
import time
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Tuple

from .metadata import MetadataKeys, MetadataStore, bind
from .middleware import activate
from .transport.request import Request
from .transport.response import Response


CallHandler = Callable[[], Awaitable[Any]]


class Interceptor:
    """Base interceptor. Passes the result through."""

    async def intercept(self, request: Request, response: Response, call_handler: CallHandler) -> Any:
        return await call_handler()


def UseInterceptors(*interceptors: Any, store: Optional[MetadataStore] = None) -> Callable[[Any], Any]:
    """Bind interceptors to a controller class or a route method."""
    return bind(MetadataKeys.INTERCEPTORS, interceptors, store)


async def run_intercepted(
    interceptors: Sequence[Any],
    request: Request,
    response: Response,
    handler: CallHandler,
) -> Any:
    """Call ``handler`` wrapped by ``interceptors`` (first is outermost)."""
    call = handler
    for ref in reversed(list(interceptors)):
        call = _wrap(activate(ref), request, response, call)
    return await call()


def _wrap(interceptor: Any, request: Request, response: Response, inner: CallHandler) -> CallHandler:
    async def call() -> Any:
        result = interceptor.intercept(request, response, inner)
        if inspect.isawaitable(result):
            result = await result
        return result
    return call


# ============================================================================
# Built-in interceptors
# ============================================================================

class ResponseTransformInterceptor(Interceptor):
    """
    Wraps results in a standard envelope::

        {"success": true, "data": ..., "timestamp": ...,
         "metadata": {"requestId": ..., "processingTime": ..., "version": ...}}
    """

    def __init__(
        self,
        add_metadata: bool = True,
        version: str = "1.0.0",
        transform: Optional[Callable[[Any], Any]] = None,
    ):
        self.add_metadata = add_metadata
        self.version = version
        self.transform = transform

    async def intercept(self, request: Request, response: Response, call_handler: CallHandler) -> Any:
        start = time.monotonic()
        result = await call_handler()
        if response.headers_sent:
            return result

        data = self.transform(result) if self.transform else result
        envelope: Dict[str, Any] = {
            "success": True,
            "data": data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if self.add_metadata:
            envelope["metadata"] = {
                "requestId": request.context.get("request_id"),
                "processingTime": round((time.monotonic() - start) * 1000.0, 3),
                "version": self.version,
            }
        return envelope


class CacheInterceptor(Interceptor):
    """
    In-memory response cache with TTL and size bound.

    Only GET/HEAD are cached; 4xx/5xx results are never stored. Sets
    ``X-Cache: HIT|MISS``. The oldest entry is evicted when ``max_size``
    is reached.
    """

    def __init__(
        self,
        ttl: float = 60.0,
        max_size: int = 100,
        key_generator: Optional[Callable[[Request], str]] = None,
        allowed_methods: Sequence[str] = ("GET", "HEAD"),
    ):
        self.ttl = ttl
        self.max_size = max_size
        self.key_generator = key_generator or self.default_key
        self.allowed_methods = {m.upper() for m in allowed_methods}
        self._cache: "OrderedDict[str, Tuple[Any, float]]" = OrderedDict()

    @staticmethod
    def default_key(request: Request) -> str:
        relevant = {
            "accept": request.header("accept"),
            "accept-language": request.header("accept-language"),
            "authorization": "authenticated" if request.header("authorization") else "anonymous",
        }
        return f"{request.method}:{request.original_url}:{json.dumps(relevant, sort_keys=True)}"

    async def intercept(self, request: Request, response: Response, call_handler: CallHandler) -> Any:
        if request.method not in self.allowed_methods:
            return await call_handler()

        key = self.key_generator(request)
        entry = self._get(key)
        if entry is not None:
            data, expires_at = entry
            response.set({
                "X-Cache": "HIT",
                "Cache-Control": f"max-age={max(int(expires_at - time.monotonic()), 0)}",
            })
            return data

        result = await call_handler()
        if response.headers_sent or response.status_code >= 400:
            return result

        self._set(key, result)
        response.set({"X-Cache": "MISS", "Cache-Control": f"max-age={int(self.ttl)}"})
        return result

    def _get(self, key: str) -> Optional[Tuple[Any, float]]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        if time.monotonic() > entry[1]:
            del self._cache[key]
            return None
        return entry

    def _set(self, key: str, data: Any) -> None:
        self.cleanup()
        while self._cache and len(self._cache) >= self.max_size:
            self._cache.popitem(last=False)
        self._cache[key] = (data, time.monotonic() + self.ttl)

    def cleanup(self) -> None:
        """Drop expired entries."""
        now = time.monotonic()
        for key in [k for k, (_, expires_at) in self._cache.items() if now > expires_at]:
            del self._cache[key]

    def clear(self) -> None:
        self._cache.clear()

    def stats(self) -> Dict[str, Any]:
        return {"size": len(self._cache), "max_size": self.max_size, "keys": list(self._cache)}
