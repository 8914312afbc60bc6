"""
Gantry Controllers - declarative route classes and the router engine.
"""

from .decorators import (
    Controller,
    RouteDecorator,
    GET,
    POST,
    PUT,
    PATCH,
    DELETE,
    HEAD,
    OPTIONS,
    route,
    collect_routes,
)
from .engine import RouterEngine
from .metadata import ControllerRegistration, MountedRoute, RouteDescriptor
from .params import (
    ParamSource,
    ParamDescriptor,
    ParamMarker,
    Param,
    Query,
    Body,
    Headers,
    Req,
    Res,
    extract_param_descriptors,
    resolve_arguments,
    apply_pipes,
)

__all__ = [
    "Controller",
    "RouteDecorator",
    "GET",
    "POST",
    "PUT",
    "PATCH",
    "DELETE",
    "HEAD",
    "OPTIONS",
    "route",
    "collect_routes",
    "RouterEngine",
    "ControllerRegistration",
    "MountedRoute",
    "RouteDescriptor",
    "ParamSource",
    "ParamDescriptor",
    "ParamMarker",
    "Param",
    "Query",
    "Body",
    "Headers",
    "Req",
    "Res",
    "extract_param_descriptors",
    "resolve_arguments",
    "apply_pipes",
]
