"""
Controller Metadata

Immutable records produced at registration time:
- RouteDescriptor: one declared (method, path) → handler binding
- ControllerRegistration: everything the engine mounted for one controller
"""

from dataclasses import dataclass, field
from typing import Any, List, Tuple


@dataclass(frozen=True)
class RouteDescriptor:
    """
    Declared route on a controller method.

    Attributes:
        path: Route path, may contain ``:name`` placeholders
        method: Upper-case HTTP method
        handler_name: Name of the controller method
    """
    path: str
    method: str
    handler_name: str

    @property
    def is_dynamic(self) -> bool:
        return ":" in self.path


@dataclass(frozen=True)
class MountedRoute:
    """A route as bound on the transport router."""
    method: str
    full_path: str
    handler_name: str
    middleware: Tuple[Any, ...] = ()
    guards: Tuple[Any, ...] = ()
    interceptors: Tuple[Any, ...] = ()


@dataclass
class ControllerRegistration:
    """
    Registration record for one controller.

    Built once by the router engine. The controller instance is kept by
    the engine, indexed by ``index``.
    """
    index: int
    controller: type
    prefix: str
    base_path: str
    routes: List[RouteDescriptor] = field(default_factory=list)
    class_middleware: List[Any] = field(default_factory=list)
    mounted: List[MountedRoute] = field(default_factory=list)
