"""
Parameter Resolver - declared handler parameters → positional arguments.

Parameters are declared with markers, either through ``Annotated``::

    async def show(self, id: Annotated[str, Param("id")], full: Annotated[str, Query("full")]):
        ...

or as the parameter default::

    async def show(self, id: str = Param("id")):
        ...

Markers:
- Param(key?)    path parameter (whole map without key)
- Query(key?)    query value (whole map without key)
- Body()         parsed request body
- Headers(key?)  header value, case-insensitive (whole map without key)
- Req()          the request handle
- Res()          the response handle

Each marker may carry pipes, applied in order after resolution.
"""

from __future__ import annotations

import inspect
import re
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Callable, List, Optional, Sequence, Tuple, get_args, get_origin, get_type_hints

from ..transport.request import Request
from ..transport.response import Response


class ParamSource(str, Enum):
    PATH = "param"
    QUERY = "query"
    BODY = "body"
    HEADER = "headers"
    REQUEST = "request"
    RESPONSE = "response"


@dataclass(frozen=True)
class ParamDescriptor:
    """
    Declared parameter of a handler.

    Attributes:
        argument_index: Position in the handler signature (``self`` excluded)
        source: Where the value comes from
        key: Optional lookup key within the source
        pipes: Pipes applied to the resolved value, in order
        name: Parameter name, for diagnostics
    """
    argument_index: int
    source: ParamSource
    key: Optional[str] = None
    pipes: Tuple[Any, ...] = ()
    name: Optional[str] = None


class ParamMarker:
    """Base class for parameter markers."""

    source: ParamSource

    def __init__(self, key: Optional[str] = None, *pipes: Any):
        self.key = key
        self.pipes = pipes

    def describe(self, index: int, name: Optional[str] = None) -> ParamDescriptor:
        key = self.key
        if key is not None and self.source is ParamSource.HEADER:
            key = key.lower()
        return ParamDescriptor(index, self.source, key, tuple(self.pipes), name)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.key!r})" if self.key else f"{type(self).__name__}()"


class Param(ParamMarker):
    source = ParamSource.PATH


class Query(ParamMarker):
    source = ParamSource.QUERY


class Headers(ParamMarker):
    source = ParamSource.HEADER


class Body(ParamMarker):
    source = ParamSource.BODY

    def __init__(self, *pipes: Any):
        super().__init__(None, *pipes)


class Req(ParamMarker):
    source = ParamSource.REQUEST

    def __init__(self):
        super().__init__(None)


class Res(ParamMarker):
    source = ParamSource.RESPONSE

    def __init__(self):
        super().__init__(None)


# ============================================================================
# Declaration-side extraction
# ============================================================================

_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)

_HINT_ERRORS = (NameError, AttributeError, SyntaxError, TypeError)

# A string annotation that mentions a marker call, e.g. "Annotated[int, Query('q')]".
_MARKER_CALL = re.compile(r"\b(?:Param|Query|Body|Headers|Req|Res)\s*\(")


def handler_parameters(func: Callable) -> List[inspect.Parameter]:
    """Positional parameters of ``func``, without the bound instance."""
    params = [
        p for p in inspect.signature(func).parameters.values()
        if p.kind in _POSITIONAL
    ]
    if params and params[0].name in ("self", "cls") and not inspect.ismethod(func):
        params = params[1:]
    return params


def _annotations(func: Callable) -> dict:
    """
    Evaluated annotations of ``func``.

    When the hints cannot be resolved as a whole (postponed annotations
    naming something only imported under ``TYPE_CHECKING``), each
    parameter is evaluated on its own so one bad hint does not hide the
    markers of the others.
    """
    try:
        return get_type_hints(func, include_extras=True)
    except _HINT_ERRORS:
        pass

    globalns = getattr(inspect.unwrap(func), "__globals__", {})
    return {
        name: _evaluate(func, name, raw, globalns)
        for name, raw in getattr(func, "__annotations__", {}).items()
    }


def _evaluate(func: Callable, name: str, raw: Any, globalns: dict) -> Any:
    if not isinstance(raw, str):
        return raw
    try:
        return eval(raw, globalns)
    except _HINT_ERRORS as e:
        if _MARKER_CALL.search(raw):
            raise TypeError(
                f"Cannot resolve the parameter marker of {func.__qualname__}() "
                f"argument '{name}' ({raw}): {e}"
            ) from e
        return raw


def _marker_for(param: inspect.Parameter, hint: Any) -> Optional[ParamMarker]:
    if get_origin(hint) is Annotated:
        for extra in get_args(hint)[1:]:
            if isinstance(extra, ParamMarker):
                return extra
    if isinstance(param.default, ParamMarker):
        return param.default
    return None


def extract_param_descriptors(func: Callable) -> List[ParamDescriptor]:
    """
    Build descriptors for every marked parameter of ``func``.

    Markers bind positional arguments only; a marker on a keyword-only
    or variadic parameter raises ``TypeError``.
    """
    hints = _annotations(func)
    for param in inspect.signature(func).parameters.values():
        if param.kind in _POSITIONAL:
            continue
        if _marker_for(param, hints.get(param.name, param.annotation)) is not None:
            raise TypeError(
                f"{func.__qualname__}() argument '{param.name}' carries a parameter "
                f"marker but is not positional"
            )

    descriptors = []
    for index, param in enumerate(handler_parameters(func)):
        marker = _marker_for(param, hints.get(param.name, param.annotation))
        if marker is not None:
            descriptors.append(marker.describe(index, param.name))
    return descriptors


# ============================================================================
# Request-side resolution
# ============================================================================

def _lookup(source: dict, key: Optional[str]) -> Any:
    return source if key is None else source.get(key)


def resolve_value(descriptor: ParamDescriptor, request: Request, response: Response) -> Any:
    source = descriptor.source
    if source is ParamSource.PATH:
        return _lookup(request.params, descriptor.key)
    if source is ParamSource.QUERY:
        return _lookup(request.query, descriptor.key)
    if source is ParamSource.BODY:
        return request.body
    if source is ParamSource.HEADER:
        key = descriptor.key.lower() if descriptor.key else None
        return _lookup(request.headers, key)
    if source is ParamSource.REQUEST:
        return request
    if source is ParamSource.RESPONSE:
        return response
    return None


def resolve_arguments(
    descriptors: Sequence[ParamDescriptor],
    request: Request,
    response: Response,
    arity: int = 0,
) -> List[Any]:
    """
    Positional argument list for a handler call.

    Descriptors are applied in ascending ``argument_index`` order (stable),
    so when two claim the same index the later declaration wins. Indices
    nobody claims stay ``None``. The list is at least ``arity`` long.
    """
    ordered = sorted(descriptors, key=lambda d: d.argument_index)
    size = max([arity] + [d.argument_index + 1 for d in ordered])
    args: List[Any] = [None] * size
    for descriptor in ordered:
        args[descriptor.argument_index] = resolve_value(descriptor, request, response)
    return args


async def apply_pipes(descriptors: Sequence[ParamDescriptor], args: List[Any]) -> List[Any]:
    """Run each descriptor's pipes over its resolved argument."""
    for descriptor in sorted(descriptors, key=lambda d: d.argument_index):
        for pipe in descriptor.pipes:
            instance = pipe() if isinstance(pipe, type) else pipe
            value = instance.transform(args[descriptor.argument_index], descriptor)
            if inspect.isawaitable(value):
                value = await value
            args[descriptor.argument_index] = value
    return args
