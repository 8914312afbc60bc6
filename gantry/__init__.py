"""
Gantry - decorator-driven async web framework on ASGI

Complete integration of:
- Controllers: class-based routes declared with decorators
- Parameters: Annotated markers resolved into handler arguments
- Middleware, guards, interceptors and pipes around each handler
- Faults: typed HTTP exceptions and exception filters
- Config: typed settings from defaults, .env and environment
"""

__version__ = "0.1.0"

# ============================================================================
# Core Framework
# ============================================================================

from .application import Application, create_app
from .config import AppConfig, ConfigLoader, ConfigError
from .metadata import MetadataKeys, MetadataStore, get_metadata_store
from .module import Module, collect_controllers

from .transport import Request, Response, Router, Next

# ============================================================================
# Controllers
# ============================================================================

from .controller import (
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
    RouterEngine,
    RouteDescriptor,
    ControllerRegistration,
    ParamSource,
    ParamDescriptor,
    Param,
    Query,
    Body,
    Headers,
    Req,
    Res,
)

# ============================================================================
# Middleware, Guards, Interceptors, Pipes
# ============================================================================

from .middleware import (
    Middleware,
    UseMiddleware,
    LoggingMiddleware,
    AuthMiddleware,
    RequestIdMiddleware,
)
from .guards import Guard, UseGuards, JwtAuthGuard, RolesGuard, Roles
from .interceptors import (
    Interceptor,
    UseInterceptors,
    ResponseTransformInterceptor,
    CacheInterceptor,
)
from .pipes import (
    Pipe,
    ParseIntPipe,
    ParseFloatPipe,
    ParseBoolPipe,
    ValidationPipe,
    ValidationRule,
)

# ============================================================================
# Faults
# ============================================================================

from .faults import (
    Fault,
    FaultDomain,
    Severity,
    HttpException,
    BadRequestException,
    UnauthorizedException,
    ForbiddenException,
    NotFoundException,
    ConflictException,
    UnprocessableEntityException,
    InternalServerErrorException,
    ValidationError,
    PipeValidationError,
    ExceptionFilter,
    GlobalExceptionFilter,
    HttpExceptionFilter,
    ValidationExceptionFilter,
    FilterChain,
)

__all__ = [
    "__version__",
    "Application",
    "create_app",
    "AppConfig",
    "ConfigLoader",
    "ConfigError",
    "MetadataKeys",
    "MetadataStore",
    "get_metadata_store",
    "Module",
    "collect_controllers",
    "Request",
    "Response",
    "Router",
    "Next",
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
    "RouterEngine",
    "RouteDescriptor",
    "ControllerRegistration",
    "ParamSource",
    "ParamDescriptor",
    "Param",
    "Query",
    "Body",
    "Headers",
    "Req",
    "Res",
    "Middleware",
    "UseMiddleware",
    "LoggingMiddleware",
    "AuthMiddleware",
    "RequestIdMiddleware",
    "Guard",
    "UseGuards",
    "JwtAuthGuard",
    "RolesGuard",
    "Roles",
    "Interceptor",
    "UseInterceptors",
    "ResponseTransformInterceptor",
    "CacheInterceptor",
    "Pipe",
    "ParseIntPipe",
    "ParseFloatPipe",
    "ParseBoolPipe",
    "ValidationPipe",
    "ValidationRule",
    "Fault",
    "FaultDomain",
    "Severity",
    "HttpException",
    "BadRequestException",
    "UnauthorizedException",
    "ForbiddenException",
    "NotFoundException",
    "ConflictException",
    "UnprocessableEntityException",
    "InternalServerErrorException",
    "ValidationError",
    "PipeValidationError",
    "ExceptionFilter",
    "GlobalExceptionFilter",
    "HttpExceptionFilter",
    "ValidationExceptionFilter",
    "FilterChain",
]
