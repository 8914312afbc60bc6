"""
Exception filters - last-resort mapping from errors to JSON responses.

The filter layer never re-raises: whatever reaches it is turned into a
structured body

    {statusCode, timestamp, path, method, error, message, requestId?}

plus ``stack`` outside production.

Classification order:
1. HttpException (declared status and message, used as-is)
2. Recognised error shapes, matched by class name along the MRO
3. Anything else → 500
"""

from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Tuple, Type, Union

from .http import HttpException, ValidationError

if TYPE_CHECKING:
    from ..transport.request import Request
    from ..transport.response import Response


logger = logging.getLogger("gantry.filters")

PRODUCTION = "production"

# (class name, status, error label, fixed message or None for str(error))
_KNOWN_SHAPES: Tuple[Tuple[str, int, str, Optional[str]], ...] = (
    ("JSONDecodeError", 400, "Bad Request", "Invalid JSON syntax"),
    ("TypeError", 400, "Bad Request", "Invalid data type"),
    ("ValidationError", 400, "Validation Failed", None),
    ("UnauthorizedError", 401, "Unauthorized", "Authentication required"),
    ("ForbiddenError", 403, "Forbidden", "Access denied"),
    ("PermissionError", 403, "Forbidden", "Access denied"),
    ("NotFoundError", 404, "Not Found", "Resource not found"),
)

_FIXED_MESSAGES = {"JSONDecodeError", "TypeError"}


@dataclass(frozen=True)
class Classification:
    status: int
    error: str
    message: Any


def classify(exception: BaseException, env: str = "development") -> Classification:
    """Map ``exception`` to a status, error label and client message."""
    if isinstance(exception, HttpException):
        return Classification(exception.status, exception.error, exception.message)

    for klass in type(exception).__mro__:
        for name, status, label, fallback in _KNOWN_SHAPES:
            if klass.__name__ != name:
                continue
            if name in _FIXED_MESSAGES:
                return Classification(status, label, fallback)
            return Classification(status, label, str(exception) or fallback or label)

    if env == PRODUCTION:
        message = "Internal server error"
    else:
        message = str(exception) or "An unexpected error occurred"
    return Classification(500, "Internal Server Error", message)


def format_stack(exception: BaseException) -> str:
    return "".join(
        traceback.format_exception(type(exception), exception, exception.__traceback__)
    )


class ExceptionFilter:
    """
    Base exception filter.

    Subclasses set ``catches`` to the exception types they handle and
    implement ``catch``. An empty ``catches`` matches everything.
    """

    catches: Tuple[Type[BaseException], ...] = ()

    def __init__(self, env: Optional[str] = None):
        self.env = env

    @property
    def production(self) -> bool:
        return self.env == PRODUCTION

    def matches(self, exception: BaseException) -> bool:
        return not self.catches or isinstance(exception, self.catches)

    def catch(self, exception: BaseException, request: "Request", response: "Response") -> None:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Helpers shared by the built-in filters
    # ------------------------------------------------------------------

    def build_body(
        self,
        request: "Request",
        status: int,
        error: str,
        message: Any,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "statusCode": status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "path": request.original_url,
            "method": request.method,
            "error": error,
            "message": message,
        }
        request_id = request.context.get("request_id")
        if request_id:
            body["requestId"] = request_id
        return body

    def log(self, request: "Request", status: int, error: str, exception: BaseException) -> None:
        line = f"{request.method} {request.original_url} - {status} {error}"
        if status >= 500:
            logger.error(line, exc_info=exception)
        else:
            logger.warning(line)


class GlobalExceptionFilter(ExceptionFilter):
    """Handles every exception using the full classification table."""

    def catch(self, exception: BaseException, request: "Request", response: "Response") -> None:
        result = classify(exception, self.env or "development")
        body = self.build_body(request, result.status, result.error, result.message)

        if isinstance(exception, HttpException) and exception.details is not None:
            body["details"] = exception.details
        elif not self.production and getattr(exception, "fields", None):
            body["details"] = {"fields": list(exception.fields)}

        if not self.production:
            body["stack"] = format_stack(exception)

        self.log(request, result.status, result.error, exception)
        response.status(result.status).json(body)


class HttpExceptionFilter(ExceptionFilter):
    """Handles declared ``HttpException`` instances only."""

    catches = (HttpException,)

    def catch(self, exception: HttpException, request: "Request", response: "Response") -> None:
        body = self.build_body(request, exception.status, exception.error, exception.message)
        if exception.details is not None:
            body["details"] = exception.details
        self.log(request, exception.status, exception.error, exception)
        response.status(exception.status).json(body)


class ValidationExceptionFilter(ExceptionFilter):
    """Handles validation failures, always reporting the failing fields."""

    catches = (ValidationError,)

    def catch(self, exception: ValidationError, request: "Request", response: "Response") -> None:
        details = exception.details
        if details is None:
            field = getattr(exception, "field", None)
            if field:
                details = {"field": field}
            elif exception.fields:
                details = {"fields": list(exception.fields)}

        body = self.build_body(request, exception.status, "Validation Error", exception.message)
        body["details"] = details
        self.log(request, exception.status, "Validation Error", exception)
        response.status(exception.status).json(body)


FilterRef = Union[ExceptionFilter, Type[ExceptionFilter]]


class FilterChain:
    """
    Ordered set of exception filters.

    The first filter whose ``catches`` matches handles the error; the
    ``GlobalExceptionFilter`` is the fallback. A filter that fails
    itself yields a bare 500 body.
    """

    def __init__(self, filters: Optional[Iterable[FilterRef]] = None, env: str = "development"):
        self.env = env
        self._filters: List[ExceptionFilter] = []
        self._fallback = GlobalExceptionFilter(env)
        for f in filters or ():
            self.add(f)

    def add(self, exception_filter: FilterRef) -> "FilterChain":
        instance = exception_filter() if isinstance(exception_filter, type) else exception_filter
        if instance.env is None:
            instance.env = self.env
        self._filters.append(instance)
        return self

    @property
    def filters(self) -> List[ExceptionFilter]:
        return list(self._filters)

    def select(self, exception: BaseException) -> ExceptionFilter:
        for f in self._filters:
            if f.matches(exception):
                return f
        return self._fallback

    def handle(self, exception: BaseException, request: "Request", response: "Response") -> None:
        """Write an error response for ``exception``. Never raises."""
        if response.headers_sent:
            logger.error(
                f"Error after response was sent for {request.method} {request.path}: {exception}",
                exc_info=exception,
            )
            return

        selected = self.select(exception)
        try:
            selected.catch(exception, request, response)
        except Exception as e:
            logger.error(
                f"Exception filter {type(selected).__name__} failed: {e}",
                exc_info=True,
            )
            if not response.headers_sent:
                response.status(500).json({
                    "statusCode": 500,
                    "error": "Internal Server Error",
                    "message": "Internal server error",
                })
