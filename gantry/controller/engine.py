"""
Router Engine - mounts controllers onto the transport router.

For each registered controller:
1. instantiate it once (singleton per registration),
2. read routes, prefix and bindings from the metadata store,
3. stable-sort routes so static paths precede dynamic ones,
4. join base path, prefix and route path,
5. bind ``[*middleware, guards, handler]`` at ``METHOD full_path``.

The bound handler resolves arguments, runs pipes and interceptors
around the controller method, and serialises the result. Errors go to
the router's error handlers, which end in the exception filters.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from ..faults import FilterChain
from ..guards import adapt_guards
from ..interceptors import run_intercepted
from ..metadata import MetadataKeys, MetadataStore, metadata
from ..middleware import activate, adapt_middleware, compose_chain
from ..transport.request import Request
from ..transport.response import Response
from ..transport.router import Handler, Next, Router
from .decorators import collect_routes
from .metadata import ControllerRegistration, MountedRoute, RouteDescriptor
from .params import ParamDescriptor, apply_pipes, handler_parameters, resolve_arguments


logger = logging.getLogger("gantry.router")

Dependencies = Union[Mapping[str, Any], Sequence[Any], None]


class RouterEngine:
    """
    Registers controllers and owns the transport router they are bound to.

    Example:
        engine = RouterEngine()
        engine.register_controller(UsersController, "/api")
        router = engine.get_router()
    """

    def __init__(
        self,
        router: Optional[Router] = None,
        filters: Optional[FilterChain] = None,
        store: Optional[MetadataStore] = None,
    ):
        self._router = router or Router()
        self.filters = filters or FilterChain()
        self.store = store or metadata
        self._registrations: List[ControllerRegistration] = []
        self._instances: List[Any] = []
        self._router.use_error_handler(self._filter_error)

    def get_router(self) -> Router:
        """The transport router. Same instance on every call."""
        return self._router

    @property
    def registrations(self) -> List[ControllerRegistration]:
        return list(self._registrations)

    def get_instance(self, registration: ControllerRegistration) -> Any:
        return self._instances[registration.index]

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------

    @staticmethod
    def combine_paths(*paths: Optional[str]) -> str:
        """
        Join path parts with single slashes.

        ``combine_paths("", "/test/", "/:id")`` and
        ``combine_paths("test", "", ":id")`` both give ``/test/:id``.
        """
        parts = [p.strip().strip("/") for p in paths if p and p.strip()]
        joined = "/".join(p for p in parts if p)
        return "/" + joined if joined else "/"

    @staticmethod
    def sort_routes(routes: Sequence[RouteDescriptor]) -> List[RouteDescriptor]:
        """Static routes first, dynamic (``:``) after; stable within each group."""
        return sorted(routes, key=lambda r: r.is_dynamic)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_controller(
        self,
        controller_cls: type,
        base_path: str = "",
        dependencies: Dependencies = None,
    ) -> ControllerRegistration:
        """Instantiate ``controller_cls`` and bind all of its routes."""
        if not isinstance(controller_cls, type):
            raise TypeError(f"register_controller expects a class, got {controller_cls!r}")

        collect_routes(controller_cls, self.store)
        instance = self._instantiate(controller_cls, dependencies)

        prefix = self.store.get(MetadataKeys.CONTROLLER_PREFIX, controller_cls) or ""
        routes = self.sort_routes(self.store.get(MetadataKeys.ROUTES, controller_cls))
        class_middleware = self.store.get(MetadataKeys.MIDDLEWARE, controller_cls)
        class_guards = self.store.get(MetadataKeys.GUARDS, controller_cls)
        class_interceptors = self.store.get(MetadataKeys.INTERCEPTORS, controller_cls)

        registration = ControllerRegistration(
            index=len(self._registrations),
            controller=controller_cls,
            prefix=prefix,
            base_path=base_path or "",
            routes=list(routes),
            class_middleware=list(class_middleware),
        )

        for route in routes:
            name = route.handler_name
            full_path = self.combine_paths(base_path, prefix, route.path)
            middleware = compose_chain(
                class_middleware, self.store.get(MetadataKeys.MIDDLEWARE, controller_cls, name)
            )
            guards = [
                activate(g) for g in compose_chain(
                    class_guards, self.store.get(MetadataKeys.GUARDS, controller_cls, name)
                )
            ]
            interceptors = [
                activate(i) for i in compose_chain(
                    class_interceptors, self.store.get(MetadataKeys.INTERCEPTORS, controller_cls, name)
                )
            ]

            handlers: List[Handler] = [adapt_middleware(m) for m in middleware]
            if guards:
                handlers.append(adapt_guards(guards))
            handlers.append(self.create_route_handler(instance, controller_cls, name, interceptors))

            self._router.route(route.method, full_path, *handlers)
            registration.mounted.append(MountedRoute(
                route.method, full_path, name, tuple(middleware), tuple(guards), tuple(interceptors),
            ))
            logger.info(f"Registering route: {route.method} {full_path}")

        self._registrations.append(registration)
        self._instances.append(instance)
        return registration

    @staticmethod
    def _instantiate(controller_cls: type, dependencies: Dependencies) -> Any:
        if dependencies is None:
            return controller_cls()
        if isinstance(dependencies, Mapping):
            return controller_cls(**dependencies)
        return controller_cls(*dependencies)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def create_route_handler(
        self,
        instance: Any,
        controller_cls: type,
        method_name: str,
        interceptors: Sequence[Any] = (),
    ) -> Handler:
        """Build the router handler invoking ``instance.method_name``."""
        method = getattr(instance, method_name)
        descriptors: List[ParamDescriptor] = self.store.get(
            MetadataKeys.ROUTE_PARAMS, controller_cls, method_name
        )
        arity = len(handler_parameters(method))

        async def route_handler(request: Request, response: Response, next: Next) -> None:
            try:
                args = resolve_arguments(descriptors, request, response, arity)
                args = await apply_pipes(descriptors, args)

                async def call_handler() -> Any:
                    result = method(*args)
                    if inspect.isawaitable(result):
                        result = await result
                    return result

                result = await run_intercepted(interceptors, request, response, call_handler)
            except Exception as e:
                next(e)
                return

            self.write_result(result, response)

        route_handler.__name__ = f"{controller_cls.__name__}.{method_name}"
        return route_handler

    @staticmethod
    def write_result(result: Any, response: Response) -> None:
        """Serialise a handler result unless the handler already responded."""
        if response.headers_sent or result is response:
            return
        if result is None:
            response.status(204).end()
            return
        response.json(result)

    def _filter_error(self, error: BaseException, request: Request, response: Response, next: Next) -> None:
        self.filters.handle(error, request, response)
