"""
Controller Decorators

Route declarations attach metadata to the function without import-time
side effects. ``@Controller`` (or the router engine, for undecorated
classes) collects it into the metadata store.

Example:
    @Controller("/users")
    @UseMiddleware(LoggingMiddleware)
    class UsersController:

        @GET("/:id")
        async def show(self, id: Annotated[str, Param("id")]):
            ...
"""

from typing import Any, Callable, Dict, List, Optional, TypeVar, Union

from ..metadata import BINDING_ATTRS, MetadataKeys, MetadataStore, metadata
from .metadata import RouteDescriptor
from .params import extract_param_descriptors


F = TypeVar('F', bound=Callable[..., Any])

# Function attribute carrying pending route declarations.
ROUTE_ATTR = "__route_metadata__"


class RouteDecorator:
    """
    Base route decorator.

    Appends ``{http_method, path, func_name}`` to the function's
    ``__route_metadata__`` list. A function may carry several routes.
    """

    method: Optional[str] = None

    def __init__(self, path: str = ""):
        self.path = path or ""

    def __call__(self, func: F) -> F:
        if not hasattr(func, ROUTE_ATTR):
            func.__route_metadata__ = []

        func.__route_metadata__.append({
            'http_method': self.method,
            'path': self.path,
            'func_name': func.__name__,
        })
        return func


class GET(RouteDecorator):
    """GET request decorator."""
    method = 'GET'


class POST(RouteDecorator):
    """POST request decorator."""
    method = 'POST'


class PUT(RouteDecorator):
    """PUT request decorator."""
    method = 'PUT'


class PATCH(RouteDecorator):
    """PATCH request decorator."""
    method = 'PATCH'


class DELETE(RouteDecorator):
    """DELETE request decorator."""
    method = 'DELETE'


class HEAD(RouteDecorator):
    """HEAD request decorator."""
    method = 'HEAD'


class OPTIONS(RouteDecorator):
    """OPTIONS request decorator."""
    method = 'OPTIONS'


_DECORATORS = {
    'GET': GET,
    'POST': POST,
    'PUT': PUT,
    'PATCH': PATCH,
    'DELETE': DELETE,
    'HEAD': HEAD,
    'OPTIONS': OPTIONS,
}


def route(method: Union[str, List[str]], path: str = "") -> Callable[[F], F]:
    """
    Generic route decorator.

    Example:
        @route(["GET", "POST"], "/items")
        async def items(self):
            ...
    """
    methods = [method] if isinstance(method, str) else method

    def decorator(func: F) -> F:
        for http_method in methods:
            decorator_cls = _DECORATORS.get(http_method.upper())
            if decorator_cls is None:
                raise ValueError(f"Unsupported HTTP method: {http_method}")
            func = decorator_cls(path)(func)
        return func

    return decorator


def Controller(prefix: str = "", store: Optional[MetadataStore] = None) -> Callable[[type], type]:
    """
    Mark a class as a controller mounted under ``prefix``.

    Records the prefix and controller flag and collects the routes
    declared on the class body.
    """
    target_store = store or metadata

    def decorator(cls: type) -> type:
        target_store.define(MetadataKeys.CONTROLLER_PREFIX, prefix or "", cls)
        target_store.define(MetadataKeys.IS_CONTROLLER, True, cls)
        collect_routes(cls, target_store)
        return cls

    return decorator


def collect_routes(cls: type, store: Optional[MetadataStore] = None) -> List[RouteDescriptor]:
    """
    Move route, parameter and method-binding declarations of ``cls``
    into the metadata store. Runs once per class.

    Declarations are inherited from base classes. A subclass method that
    carries its own route decorators replaces the base declarations of
    that name; an undecorated override keeps them and is what gets called.
    """
    store = store or metadata
    if store.get(MetadataKeys.ROUTES_COLLECTED, cls):
        return store.get(MetadataKeys.ROUTES, cls)

    for name, func in _declared_routes(cls).items():
        for declaration in getattr(func, ROUTE_ATTR):
            store.append(
                MetadataKeys.ROUTES,
                RouteDescriptor(declaration['path'], declaration['http_method'], name),
                cls,
            )

        store.extend(MetadataKeys.ROUTE_PARAMS, extract_param_descriptors(func), cls, name)

        for kind, attr in BINDING_ATTRS.items():
            refs = getattr(func, attr, None)
            if refs:
                store.extend(kind, list(refs), cls, name)

    store.define(MetadataKeys.ROUTES_COLLECTED, True, cls)
    return store.get(MetadataKeys.ROUTES, cls)


def _declared_routes(cls: type) -> Dict[str, Callable]:
    """Route-carrying functions by member name, base classes first."""
    declared: Dict[str, Callable] = {}
    for klass in reversed(cls.__mro__):
        if klass is object:
            continue
        for name, member in vars(klass).items():
            func = getattr(member, "__func__", member)
            if not callable(func):
                declared.pop(name, None)
            elif getattr(func, ROUTE_ATTR, None):
                declared[name] = func
    return declared
