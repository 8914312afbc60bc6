"""
Application - ASGI entry point tying the router engine, body parsing,
global middleware and exception filters together.

Request path:
    body parser → global middleware → controller routes
    (middleware → guards → interceptors → handler) → 404 handler
Errors anywhere end in the exception filters.
"""

from __future__ import annotations

import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Union

from . import __version__
from .config import AppConfig
from .controller.engine import Dependencies, RouterEngine
from .faults import ExceptionFilter, FilterChain
from .middleware import adapt_middleware
from .module import collect_controllers
from .transport.request import Request
from .transport.response import Response
from .transport.router import Handler, Next, Router


Hook = Callable[[], Union[None, Awaitable[None]]]


class Application:
    """
    Gantry application.

    Example:
        app = Application(AppConfig(global_prefix="/api"))
        app.register_controller(UsersController)
        app.listen(3000)

    The instance is itself an ASGI 3 callable, so it can also be served
    with ``uvicorn module:app``.
    """

    def __init__(self, config: Optional[AppConfig] = None):
        self.config = config or AppConfig()
        self.logger = logging.getLogger("gantry.app")
        self.filters = FilterChain(env=self.config.env)
        self.engine = RouterEngine(filters=self.filters)
        self.router = Router()
        self.router.use_error_handler(self._handle_error)
        self.router.set_not_found_handler(self._not_found)
        self._initialized = False
        self._startup_hooks: List[Hook] = []
        self._shutdown_hooks: List[Hook] = []

        if self.config.body_parser:
            self.router.use(self._parse_body)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_controller(self, controller_cls: type, dependencies: Dependencies = None) -> "Application":
        """Register one controller under the global prefix."""
        self._check_not_started("register_controller")
        self.engine.register_controller(controller_cls, self.config.global_prefix, dependencies)
        return self

    def register_controllers(self, controllers: Iterable[type]) -> "Application":
        for controller in controllers:
            self.register_controller(controller)
        return self

    def register_module(self, module: type) -> "Application":
        """Register every controller reachable from ``module``."""
        return self.register_controllers(collect_controllers(module, self.engine.store))

    def use(self, middleware: Any) -> "Application":
        """
        Add global middleware.

        Accepts a ``(request, response, next)`` callable, a middleware
        class or a middleware instance.
        """
        self._check_not_started("use")
        handler: Handler = middleware
        if isinstance(middleware, type) or hasattr(middleware, "use"):
            handler = adapt_middleware(middleware)
        self.router.use(handler)
        return self

    def set_global_prefix(self, prefix: str) -> "Application":
        """Prefix for controllers registered after this call."""
        self.config.global_prefix = prefix
        return self

    def use_global_filters(self, *filters: Union[ExceptionFilter, type]) -> "Application":
        for exception_filter in filters:
            self.filters.add(exception_filter)
        return self

    def on_startup(self, hook: Hook) -> Hook:
        self._startup_hooks.append(hook)
        return hook

    def on_shutdown(self, hook: Hook) -> Hook:
        self._shutdown_hooks.append(hook)
        return hook

    def _check_not_started(self, operation: str) -> None:
        if self._initialized:
            raise RuntimeError(f"{operation}() called after the application started handling requests")

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def init(self) -> "Application":
        """Mount controller routes and the welcome route. Idempotent."""
        if self._initialized:
            return self
        self.router.mount(self.engine.get_router())
        if self.config.welcome_route and self.router.match("GET", "/") is None:
            self.router.get("/", self._welcome)
        self._initialized = True
        self.logger.debug(f"Application initialized with {len(self.router.get_routes())} routes")
        return self

    def get_router(self) -> Router:
        return self.router

    def get_routes(self) -> List[dict]:
        self.init()
        return self.router.get_routes()

    # ------------------------------------------------------------------
    # Built-in handlers
    # ------------------------------------------------------------------

    async def _parse_body(self, request: Request, response: Response, next: Next) -> None:
        await request.parse_body(self.config.max_body_size)
        await next()

    def _welcome(self, request: Request, response: Response, next: Next) -> None:
        response.json({
            "message": "Hello there! Welcome to Gantry",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    def _not_found(self, request: Request, response: Response, next: Next) -> None:
        response.status(404).json({
            "statusCode": 404,
            "error": "Not Found",
            "message": f"Route {request.method} {request.original_url} not found",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    def _handle_error(self, error: BaseException, request: Request, response: Response, next: Next) -> None:
        self.filters.handle(error, request, response)

    # ------------------------------------------------------------------
    # ASGI
    # ------------------------------------------------------------------

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        scope_type = scope["type"]
        if scope_type == "http":
            await self.handle_http(scope, receive, send)
        elif scope_type == "websocket":
            self.logger.warning("WebSocket connection attempt but WebSockets are not supported")
            await send({"type": "websocket.close", "code": 1003})
        elif scope_type == "lifespan":
            await self.handle_lifespan(scope, receive, send)

    async def handle_http(self, scope: dict, receive: Callable, send: Callable) -> None:
        self.init()
        request = Request(scope, receive)
        response = Response()
        try:
            await self.router.dispatch(request, response)
        except Exception as e:
            self.logger.error(f"Critical error in request pipeline: {e}", exc_info=True)
            if not response.headers_sent:
                response.status(500).json({"error": "Internal Server Error"})

        await response.send_asgi(send, head_only=request.method == "HEAD")

    async def handle_lifespan(self, scope: dict, receive: Callable, send: Callable) -> None:
        """Handle ASGI lifespan events."""
        while True:
            message = await receive()

            if message["type"] == "lifespan.startup":
                try:
                    await self.startup()
                    await send({"type": "lifespan.startup.complete"})
                except Exception as e:
                    self.logger.error(f"Startup error: {e}", exc_info=True)
                    await send({"type": "lifespan.startup.failed", "message": str(e)})
                    raise

            elif message["type"] == "lifespan.shutdown":
                try:
                    await self.shutdown()
                    await send({"type": "lifespan.shutdown.complete"})
                except Exception as e:
                    self.logger.error(f"Shutdown error: {e}", exc_info=True)
                    await send({"type": "lifespan.shutdown.failed", "message": str(e)})
                return

    async def startup(self) -> None:
        """Initialize routes, then run startup hooks and controller bootstrap hooks."""
        self.init()
        for hook in self._startup_hooks:
            await _maybe_await(hook())
        for registration in self.engine.registrations:
            instance = self.engine.get_instance(registration)
            bootstrap = getattr(instance, "on_application_bootstrap", None)
            if bootstrap is not None:
                await _maybe_await(bootstrap())
        self.logger.info("Application startup complete")

    async def shutdown(self) -> None:
        for registration in reversed(self.engine.registrations):
            instance = self.engine.get_instance(registration)
            destroy = getattr(instance, "on_module_destroy", None)
            if destroy is not None:
                await _maybe_await(destroy())
        for hook in reversed(self._shutdown_hooks):
            await _maybe_await(hook())
        self.logger.info("Application shutdown complete")

    def listen(self, port: Optional[int] = None, host: Optional[str] = None) -> None:
        """Serve the application with uvicorn (blocking)."""
        import uvicorn

        server_port = port or self.config.port
        server_host = host or self.config.host
        logging.basicConfig(
            level=getattr(logging, self.config.log_level.upper(), logging.INFO),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        )
        self.init()
        self.logger.info(f"Gantry is running on http://{server_host}:{server_port}")
        uvicorn.run(self, host=server_host, port=server_port, log_level=self.config.log_level.lower())


async def _maybe_await(value: Any) -> None:
    if inspect.isawaitable(value):
        await value


def create_app(config: Optional[AppConfig] = None, **overrides: Any) -> Application:
    """Create an application; keyword overrides patch the config."""
    base = config or AppConfig()
    if overrides:
        base = base.with_overrides(**overrides)
    return Application(base)
