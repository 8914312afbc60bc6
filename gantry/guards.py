"""
Guards - admission control in front of route handlers.

``can_activate(request, response)`` returns a bool (or an awaitable of
one). A guard that denies is expected to write its own response
(typically 401/403); if it does not, a ``ForbiddenException`` is raised
so the request is still answered by the filter layer.
"""

from __future__ import annotations

import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from .faults import ForbiddenException
from .metadata import MetadataKeys, MetadataStore, bind
from .middleware import activate
from .transport.request import Request
from .transport.response import Response
from .transport.router import Handler, Next


logger = logging.getLogger("gantry.router")

TokenVerifier = Callable[[str], Optional[Dict[str, Any]]]


class Guard:
    """Base guard. Allows everything."""

    def can_activate(self, request: Request, response: Response) -> Any:
        return True


def UseGuards(*guards: Any, store: Optional[MetadataStore] = None) -> Callable[[Any], Any]:
    """
    Bind guards to a controller class or a route method.

    Example:
        @GET("/admin")
        @UseGuards(JwtAuthGuard, Roles("admin"))
        async def admin(self):
            ...
    """
    return bind(MetadataKeys.GUARDS, guards, store)


async def run_guards(guards: Iterable[Any], request: Request, response: Response) -> bool:
    """Run guards in order; stop at the first denial."""
    for ref in guards:
        guard = activate(ref)
        allowed = guard.can_activate(request, response)
        if inspect.isawaitable(allowed):
            allowed = await allowed
        if not allowed:
            logger.debug(f"Guard {type(guard).__name__} denied {request.method} {request.path}")
            return False
    return True


def adapt_guards(guards: Sequence[Any]) -> Handler:
    """Single router step running ``guards`` before the handler."""
    guards = list(guards)

    async def guard_step(request: Request, response: Response, next: Next) -> None:
        if await run_guards(guards, request, response):
            await next()
            return
        if not response.headers_sent:
            raise ForbiddenException("Access denied")

    return guard_step


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def stub_verifier(token: str) -> Optional[Dict[str, Any]]:
    """
    Permissive placeholder verifier.

    Accepts any token longer than ten characters except ``invalid-token``
    and returns a fixed principal. Real deployments pass a verifier
    backed by a JWT library.
    """
    if len(token) > 10 and token != "invalid-token":
        return {"id": 1, "email": "user@example.com", "roles": ["user"]}
    return None


class JwtAuthGuard(Guard):
    """
    Bearer token authentication.

    Token validation is delegated to ``verifier``, a callable returning
    the principal for a valid token or ``None``.
    """

    def __init__(self, verifier: Optional[TokenVerifier] = None):
        self.verifier = verifier or stub_verifier

    def _deny(self, response: Response, message: str) -> bool:
        response.status(401).json({
            "error": "Unauthorized",
            "message": message,
            "timestamp": _now(),
        })
        return False

    def can_activate(self, request: Request, response: Response) -> bool:
        header = request.header("authorization")
        if not header:
            return self._deny(response, "JWT token is required")

        token = header[7:] if header.startswith("Bearer ") else header
        try:
            principal = self.verifier(token)
        except Exception as e:
            logger.warning(f"Token verification failed: {e}")
            return self._deny(response, "JWT token validation failed")

        if not principal:
            return self._deny(response, "Invalid JWT token")

        request.user = principal
        request.context["authenticated"] = True
        request.context["auth_method"] = "jwt"
        return True


class RolesGuard(Guard):
    """Requires the authenticated user to hold at least one of ``roles``."""

    def __init__(self, roles: Sequence[str]):
        self.required_roles: List[str] = list(roles)

    def can_activate(self, request: Request, response: Response) -> bool:
        user = request.user
        if not user:
            response.status(401).json({
                "error": "Unauthorized",
                "message": "User authentication required",
                "timestamp": _now(),
            })
            return False

        user_roles = user.get("roles", []) if isinstance(user, dict) else getattr(user, "roles", [])
        if not any(role in user_roles for role in self.required_roles):
            response.status(403).json({
                "error": "Forbidden",
                "message": f"Access denied. Required roles: {', '.join(self.required_roles)}",
                "timestamp": _now(),
            })
            return False

        request.context["authorized"] = True
        request.context["authorized_roles"] = list(self.required_roles)
        return True


def Roles(*roles: str) -> RolesGuard:
    """Shorthand for ``RolesGuard(roles)``."""
    return RolesGuard(roles)
