"""
Guards (guards.py)

Tests guard sequencing, the silent-denial fallback, bearer token
authentication and role checks.
"""

import json

import pytest

from gantry.faults import ForbiddenException
from gantry.guards import (
    Guard,
    JwtAuthGuard,
    Roles,
    RolesGuard,
    adapt_guards,
    run_guards,
    stub_verifier,
)
from gantry.transport import Next, Response
from tests.conftest import make_request


def bearer(token):
    return [("authorization", f"Bearer {token}")]


class Recorder(Guard):
    def __init__(self, calls, allow=True):
        self.calls = calls
        self.allow = allow

    def can_activate(self, request, response):
        self.calls.append(self)
        return self.allow


# ============================================================================
# Sequencing
# ============================================================================

class TestRunGuards:

    @pytest.mark.asyncio
    async def test_all_allow(self):
        calls = []
        guards = [Recorder(calls), Recorder(calls)]
        assert await run_guards(guards, make_request(), Response()) is True
        assert calls == guards

    @pytest.mark.asyncio
    async def test_stops_at_first_denial(self):
        calls = []
        first, second = Recorder(calls, allow=False), Recorder(calls)
        assert await run_guards([first, second], make_request(), Response()) is False
        assert calls == [first]

    @pytest.mark.asyncio
    async def test_async_guard(self):
        class AsyncAllow(Guard):
            async def can_activate(self, request, response):
                return True

        assert await run_guards([AsyncAllow], make_request(), Response()) is True

    @pytest.mark.asyncio
    async def test_adapt_guards_continues(self):
        reached = []

        async def advance(error):
            reached.append(error)

        step = adapt_guards([Guard()])
        await step(make_request(), Response(), Next(advance))
        assert reached == [None]

    @pytest.mark.asyncio
    async def test_adapt_guards_silent_denial_raises(self):
        class Silent(Guard):
            def can_activate(self, request, response):
                return False

        async def advance(error):
            raise AssertionError("chain must not continue")

        step = adapt_guards([Silent()])
        with pytest.raises(ForbiddenException):
            await step(make_request(), Response(), Next(advance))


# ============================================================================
# JwtAuthGuard
# ============================================================================

class TestJwtAuthGuard:

    def test_missing_header(self):
        response = Response()
        assert JwtAuthGuard().can_activate(make_request(), response) is False
        assert response.status_code == 401
        assert json.loads(response.body)["message"] == "JWT token is required"

    def test_invalid_token(self):
        response = Response()
        request = make_request(headers=bearer("invalid-token"))
        assert JwtAuthGuard().can_activate(request, response) is False
        assert json.loads(response.body)["message"] == "Invalid JWT token"

    def test_short_token(self):
        response = Response()
        assert JwtAuthGuard().can_activate(make_request(headers=bearer("short")), response) is False
        assert response.status_code == 401

    def test_valid_token_sets_user(self):
        request = make_request(headers=bearer("a-long-enough-token"))
        assert JwtAuthGuard().can_activate(request, Response()) is True
        assert request.user["roles"] == ["user"]
        assert request.context["authenticated"] is True
        assert request.context["auth_method"] == "jwt"

    def test_verifier_failure(self):
        def broken(token):
            raise ValueError("bad signature")

        response = Response()
        guard = JwtAuthGuard(verifier=broken)
        assert guard.can_activate(make_request(headers=bearer("x" * 20)), response) is False
        assert json.loads(response.body)["message"] == "JWT token validation failed"

    def test_custom_verifier(self):
        guard = JwtAuthGuard(verifier=lambda token: {"id": token, "roles": ["admin"]})
        request = make_request(headers=bearer("abc"))
        assert guard.can_activate(request, Response()) is True
        assert request.user == {"id": "abc", "roles": ["admin"]}

    def test_stub_verifier(self):
        assert stub_verifier("invalid-token") is None
        assert stub_verifier("tiny") is None
        assert stub_verifier("long-enough-token")["id"] == 1


# ============================================================================
# RolesGuard
# ============================================================================

class TestRolesGuard:

    def test_requires_user(self):
        response = Response()
        assert RolesGuard(["admin"]).can_activate(make_request(), response) is False
        assert response.status_code == 401

    def test_missing_role(self):
        request = make_request()
        request.user = {"roles": ["user"]}
        response = Response()
        assert RolesGuard(["admin", "owner"]).can_activate(request, response) is False
        assert response.status_code == 403
        assert json.loads(response.body)["message"] == "Access denied. Required roles: admin, owner"

    def test_any_role_matches(self):
        request = make_request()
        request.user = {"roles": ["owner"]}
        assert RolesGuard(["admin", "owner"]).can_activate(request, Response()) is True
        assert request.context["authorized_roles"] == ["admin", "owner"]

    def test_roles_shorthand(self):
        guard = Roles("admin", "editor")
        assert isinstance(guard, RolesGuard)
        assert guard.required_roles == ["admin", "editor"]

    @pytest.mark.asyncio
    async def test_jwt_then_roles(self):
        request = make_request(headers=bearer("a-long-enough-token"))
        response = Response()
        allowed = await run_guards([JwtAuthGuard(), Roles("admin")], request, response)
        assert allowed is False
        assert response.status_code == 403
