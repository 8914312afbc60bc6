"""
Gantry Faults - typed error signals.

Core exports:
- Fault: Base fault class
- FaultDomain: Domain enumeration
- Severity: Severity levels
- HttpException and its status-specific subclasses
- ValidationError / PipeValidationError
- Exception filters (the last-resort error-to-response layer)
"""

from .core import Fault, FaultDomain, Severity
from .http import (
    HttpException,
    BadRequestException,
    UnauthorizedException,
    ForbiddenException,
    NotFoundException,
    MethodNotAllowedException,
    ConflictException,
    PayloadTooLargeException,
    UnprocessableEntityException,
    InternalServerErrorException,
    NotImplementedException,
    BadGatewayException,
    ServiceUnavailableException,
    ValidationError,
    PipeValidationError,
)
from .filters import (
    ExceptionFilter,
    GlobalExceptionFilter,
    HttpExceptionFilter,
    ValidationExceptionFilter,
    FilterChain,
    classify,
)

__all__ = [
    "Fault",
    "FaultDomain",
    "Severity",
    "HttpException",
    "BadRequestException",
    "UnauthorizedException",
    "ForbiddenException",
    "NotFoundException",
    "MethodNotAllowedException",
    "ConflictException",
    "PayloadTooLargeException",
    "UnprocessableEntityException",
    "InternalServerErrorException",
    "NotImplementedException",
    "BadGatewayException",
    "ServiceUnavailableException",
    "ValidationError",
    "PipeValidationError",
    "ExceptionFilter",
    "GlobalExceptionFilter",
    "HttpExceptionFilter",
    "ValidationExceptionFilter",
    "FilterChain",
    "classify",
]
