"""
Metadata Store - class-identity keyed side table for declarative facts.

Decorators write here at class-definition time; the router engine reads
at registration time. Entries are keyed by ``(kind, target, member)``
where ``target`` is a class and ``member`` an optional method name.
Nothing is stored on instances.

Example:
    store = MetadataStore()
    store.define(MetadataKeys.CONTROLLER_PREFIX, "/users", UsersController)
    store.get(MetadataKeys.CONTROLLER_PREFIX, UsersController)   # "/users"
    store.get(MetadataKeys.ROUTES, UsersController)              # [] if unset
"""

from __future__ import annotations

import weakref
from typing import Any, Callable, Dict, List, Optional, Tuple


class MetadataKeys:
    """Metadata kinds used by the framework."""

    CONTROLLER_PREFIX = "controller_prefix"
    IS_CONTROLLER = "is_controller"
    ROUTES = "routes"
    MIDDLEWARE = "middleware"
    ROUTE_PARAMS = "route_params"
    GUARDS = "guards"
    INTERCEPTORS = "interceptors"
    MODULE = "module"
    ROUTES_COLLECTED = "routes_collected"

    # Kinds holding lists; reads of an unset list kind return [].
    LIST_KINDS = frozenset({ROUTES, MIDDLEWARE, ROUTE_PARAMS, GUARDS, INTERCEPTORS})


_Slot = Tuple[str, Optional[str]]


class MetadataStore:
    """
    Side table mapping ``(target, member)`` to values keyed by kind.

    Singleton kinds are overwritten on ``define``. List kinds are never
    replaced implicitly: callers append with ``append``/``extend`` (or
    read-modify-write through ``get`` + ``define``).

    Targets are held weakly so that classes defined in tests or
    short-lived scopes do not leak.
    """

    def __init__(self) -> None:
        self._table: "weakref.WeakKeyDictionary[Any, Dict[_Slot, Any]]" = weakref.WeakKeyDictionary()

    def define(self, kind: str, value: Any, target: Any, member: Optional[str] = None) -> None:
        """Store ``value`` under ``(kind, target, member)``; last write wins."""
        self._table.setdefault(target, {})[(kind, member)] = value

    def get(self, kind: str, target: Any, member: Optional[str] = None) -> Any:
        """
        Return the stored value.

        Missing list kinds read as a fresh empty list, anything else as
        ``None``. Never raises.
        """
        slots = self._table.get(target)
        if slots is not None and (kind, member) in slots:
            return slots[(kind, member)]
        if kind in MetadataKeys.LIST_KINDS:
            return []
        return None

    def has(self, kind: str, target: Any, member: Optional[str] = None) -> bool:
        slots = self._table.get(target)
        return slots is not None and (kind, member) in slots

    def append(self, kind: str, value: Any, target: Any, member: Optional[str] = None) -> None:
        """Push one entry onto a list kind."""
        self.extend(kind, [value], target, member)

    def extend(self, kind: str, values: List[Any], target: Any, member: Optional[str] = None) -> None:
        """Push entries onto a list kind, preserving their order."""
        existing = list(self.get(kind, target, member) or [])
        existing.extend(values)
        self.define(kind, existing, target, member)

    def members(self, kind: str, target: Any) -> List[str]:
        """Member names that carry ``kind`` on ``target``."""
        slots = self._table.get(target, {})
        return [member for (k, member) in slots if k == kind and member is not None]

    def clear(self, target: Any = None) -> None:
        """Drop everything recorded for ``target`` (or the whole table)."""
        if target is None:
            self._table.clear()
        else:
            self._table.pop(target, None)


# Process-wide store used by the decorators.
metadata = MetadataStore()


def get_metadata_store() -> MetadataStore:
    return metadata


# Function attributes parking method-level bindings until the class is
# collected (see ``gantry.controller.decorators.collect_routes``).
BINDING_ATTRS = {
    MetadataKeys.MIDDLEWARE: "__gantry_middleware__",
    MetadataKeys.GUARDS: "__gantry_guards__",
    MetadataKeys.INTERCEPTORS: "__gantry_interceptors__",
}


def bind(kind: str, refs: tuple, store: Optional[MetadataStore] = None) -> Callable[[Any], Any]:
    """
    Decorator factory behind ``UseMiddleware``/``UseGuards``/``UseInterceptors``.

    On a class, refs are appended to the class-level list. On a function,
    they are parked on the function until the class is collected.
    Repeated application appends in application order.
    """
    target_store = store or metadata
    attr = BINDING_ATTRS[kind]

    def decorator(target: Any) -> Any:
        if isinstance(target, type):
            target_store.extend(kind, list(refs), target)
        else:
            existing = list(getattr(target, attr, []))
            existing.extend(refs)
            setattr(target, attr, existing)
        return target

    return decorator
