"""
Declared HTTP exceptions.

Application code raises these deliberately; the filter layer uses the
carried status and message as-is.
"""

from __future__ import annotations

from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, List, Optional, Sequence

from .core import Fault, FaultDomain, Severity


class HttpException(Fault):
    """
    Fault carrying an explicit HTTP status.

    Args:
        message: Human readable message returned to the client
        status: HTTP status code
        details: Optional structured detail (surfaced by the filters)

    Example:
        ```python
        raise HttpException("Quota exceeded", 429)
        ```
    """

    domain = FaultDomain.HTTP
    public = True
    status: int = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: Optional[str] = None,
        status: Optional[int] = None,
        details: Any = None,
        *,
        code: Optional[str] = None,
    ):
        self.status = int(status if status is not None else self.status)
        phrase = _reason_phrase(self.status)
        super().__init__(
            code=code or phrase.upper().replace(" ", "_"),
            message=message if message is not None else phrase,
            severity=Severity.ERROR if self.status >= 500 else Severity.WARN,
        )
        self.details = details

    @property
    def error(self) -> str:
        """Short error label (the HTTP reason phrase)."""
        return _reason_phrase(self.status)

    def get_status(self) -> int:
        return self.status

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error,
            "message": self.message,
            "statusCode": self.status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "details": self.details,
        }


def _reason_phrase(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Error"


class BadRequestException(HttpException):
    status = HTTPStatus.BAD_REQUEST


class UnauthorizedException(HttpException):
    status = HTTPStatus.UNAUTHORIZED
    domain = FaultDomain.SECURITY


class ForbiddenException(HttpException):
    status = HTTPStatus.FORBIDDEN
    domain = FaultDomain.SECURITY


class NotFoundException(HttpException):
    status = HTTPStatus.NOT_FOUND
    domain = FaultDomain.ROUTING


class MethodNotAllowedException(HttpException):
    status = HTTPStatus.METHOD_NOT_ALLOWED
    domain = FaultDomain.ROUTING


class ConflictException(HttpException):
    status = HTTPStatus.CONFLICT


class PayloadTooLargeException(HttpException):
    status = HTTPStatus.REQUEST_ENTITY_TOO_LARGE
    domain = FaultDomain.IO


class UnprocessableEntityException(HttpException):
    status = HTTPStatus.UNPROCESSABLE_ENTITY


class InternalServerErrorException(HttpException):
    status = HTTPStatus.INTERNAL_SERVER_ERROR
    domain = FaultDomain.SYSTEM


class NotImplementedException(HttpException):
    status = HTTPStatus.NOT_IMPLEMENTED


class BadGatewayException(HttpException):
    status = HTTPStatus.BAD_GATEWAY
    domain = FaultDomain.IO


class ServiceUnavailableException(HttpException):
    status = HTTPStatus.SERVICE_UNAVAILABLE
    domain = FaultDomain.IO


# ============================================================================
# Validation
# ============================================================================

class ValidationError(HttpException):
    """
    Input failed validation.

    Carries the failing field name(s) so the filter layer can surface
    field-level detail outside production.
    """

    status = HTTPStatus.BAD_REQUEST
    domain = FaultDomain.VALIDATION

    def __init__(
        self,
        message: str = "Validation failed",
        fields: Optional[Sequence[str]] = None,
        details: Any = None,
    ):
        super().__init__(message, details=details, code="VALIDATION_FAILED")
        self.fields: List[str] = list(fields or [])

    @property
    def error(self) -> str:
        return "Validation Failed"


class PipeValidationError(ValidationError):
    """Raised by pipes when a value cannot be transformed."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        status_code: int = HTTPStatus.BAD_REQUEST,
    ):
        super().__init__(message, fields=[field] if field else None)
        self.field = field
        self.status = int(status_code)
