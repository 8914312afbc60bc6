"""
Application (application.py)

End-to-end tests over ASGI with an in-process httpx client: welcome
route, 404 handling, body parsing errors, global prefix and middleware,
modules, lifespan hooks and unsupported scopes.
"""

import pytest
from typing import Annotated

from gantry import (
    AppConfig,
    Application,
    Body,
    Controller,
    GET,
    Module,
    NotFoundException,
    Param,
    POST,
    Query,
    ResponseTransformInterceptor,
    UseGuards,
    UseInterceptors,
    create_app,
    __version__,
)
from gantry.guards import JwtAuthGuard, Roles
from gantry.middleware import RequestIdMiddleware
from tests.conftest import SendRecorder, client_for


@Controller("/users")
class UsersController:

    def __init__(self):
        self.users = {"1": {"id": "1", "name": "Ada"}}

    @GET("/")
    async def index(self, limit: Annotated[str, Query("limit")]):
        users = list(self.users.values())
        return users[: int(limit)] if limit else users

    @GET("/:id")
    async def show(self, id: Annotated[str, Param("id")]):
        if id not in self.users:
            raise NotFoundException(f"User {id} not found")
        return self.users[id]

    @POST("/")
    async def create(self, body: Annotated[dict, Body()]):
        user = {"id": str(len(self.users) + 1), **body}
        self.users[user["id"]] = user
        return user

    @GET("/admin/report")
    @UseGuards(JwtAuthGuard, Roles("admin"))
    async def report(self):
        return {"report": True}

    @GET("/wrapped/:id")
    @UseInterceptors(ResponseTransformInterceptor)
    async def wrapped(self, id: Annotated[str, Param("id")]):
        return {"id": id}


# ============================================================================
# Built-in routes
# ============================================================================

class TestBuiltinRoutes:

    @pytest.mark.asyncio
    async def test_welcome(self, app):
        async with client_for(app) as client:
            response = await client.get("/")
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Hello there! Welcome to Gantry"
        assert body["version"] == __version__

    @pytest.mark.asyncio
    async def test_welcome_disabled(self):
        app = Application(AppConfig(env="test", welcome_route=False))
        async with client_for(app) as client:
            response = await client.get("/")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_controller_root_wins_over_welcome(self):
        @Controller("")
        class RootController:
            @GET("/")
            def home(self):
                return {"home": True}

        app = Application(AppConfig(env="test"))
        app.register_controller(RootController)
        async with client_for(app) as client:
            response = await client.get("/")
        assert response.json() == {"home": True}

    @pytest.mark.asyncio
    async def test_not_found(self, app):
        async with client_for(app) as client:
            response = await client.get("/missing?x=1")
        assert response.status_code == 404
        body = response.json()
        assert body["statusCode"] == 404
        assert body["error"] == "Not Found"
        assert body["message"] == "Route GET /missing?x=1 not found"


# ============================================================================
# Controllers over HTTP
# ============================================================================

class TestControllers:

    @pytest.mark.asyncio
    async def test_crud(self, app):
        app.register_controller(UsersController)
        async with client_for(app) as client:
            created = await client.post("/users", json={"name": "Grace"})
            listed = await client.get("/users", params={"limit": "5"})
            shown = await client.get("/users/2")

        assert created.status_code == 200
        assert created.json() == {"id": "2", "name": "Grace"}
        assert [u["name"] for u in listed.json()] == ["Ada", "Grace"]
        assert shown.json()["name"] == "Grace"

    @pytest.mark.asyncio
    async def test_declared_http_error(self, app):
        app.register_controller(UsersController)
        async with client_for(app) as client:
            response = await client.get("/users/99")
        assert response.status_code == 404
        assert response.json()["message"] == "User 99 not found"

    @pytest.mark.asyncio
    async def test_guards(self, app):
        app.register_controller(UsersController)
        async with client_for(app) as client:
            anonymous = await client.get("/users/admin/report")
            user = await client.get(
                "/users/admin/report", headers={"Authorization": "Bearer a-long-enough-token"}
            )
        assert anonymous.status_code == 401
        assert user.status_code == 403

    @pytest.mark.asyncio
    async def test_interceptor_envelope(self, app):
        app.register_controller(UsersController)
        async with client_for(app) as client:
            response = await client.get("/users/wrapped/5")
        body = response.json()
        assert body["success"] is True
        assert body["data"] == {"id": "5"}

    @pytest.mark.asyncio
    async def test_global_prefix(self):
        app = create_app(AppConfig(env="test"), global_prefix="/api")
        app.register_controller(UsersController)
        async with client_for(app) as client:
            prefixed = await client.get("/api/users/1")
            bare = await client.get("/users/1")
        assert prefixed.status_code == 200
        assert bare.status_code == 404

    @pytest.mark.asyncio
    async def test_head_request(self, app):
        app.register_controller(UsersController)
        async with client_for(app) as client:
            response = await client.head("/users/1")
        assert response.status_code == 200
        assert response.content == b""
        assert int(response.headers["content-length"]) > 0

    @pytest.mark.asyncio
    async def test_module_registration(self, app):
        @Module(controllers=[UsersController])
        class UsersModule:
            pass

        @Module(imports=[UsersModule])
        class AppModule:
            pass

        app.register_module(AppModule)
        routes = app.get_routes()
        assert {"method": "GET", "path": "/users/:id", "handlers": 1} in routes


# ============================================================================
# Body parsing
# ============================================================================

class TestBodyParsing:

    @pytest.mark.asyncio
    async def test_invalid_json(self, app):
        app.register_controller(UsersController)
        async with client_for(app) as client:
            response = await client.post(
                "/users", content=b"{not json", headers={"Content-Type": "application/json"}
            )
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid JSON syntax"

    @pytest.mark.asyncio
    async def test_body_too_large(self):
        app = Application(AppConfig(env="test", max_body_size=16))
        app.register_controller(UsersController)
        async with client_for(app) as client:
            response = await client.post("/users", json={"name": "x" * 64})
        assert response.status_code == 413


# ============================================================================
# Global middleware and filters
# ============================================================================

class TestGlobalMiddleware:

    @pytest.mark.asyncio
    async def test_use_class(self, app):
        app.use(RequestIdMiddleware)
        async with client_for(app) as client:
            response = await client.get("/", headers={"X-Request-ID": "abc"})
        assert response.headers["x-request-id"] == "abc"

    @pytest.mark.asyncio
    async def test_use_function(self, app):
        async def stamp(request, response, next):
            response.set_header("X-Stamp", "yes")
            await next()

        app.use(stamp)
        async with client_for(app) as client:
            response = await client.get("/")
        assert response.headers["x-stamp"] == "yes"

    @pytest.mark.asyncio
    async def test_runs_for_unmatched_routes(self, app):
        app.use(RequestIdMiddleware)
        async with client_for(app) as client:
            response = await client.get("/missing", headers={"X-Request-ID": "rid"})
        assert response.status_code == 404
        assert response.headers["x-request-id"] == "rid"

    def test_registration_after_start_rejected(self, app):
        app.init()
        with pytest.raises(RuntimeError):
            app.register_controller(UsersController)
        with pytest.raises(RuntimeError):
            app.use(RequestIdMiddleware)

    def test_init_is_idempotent(self, app):
        app.register_controller(UsersController)
        first = app.get_routes()
        app.init()
        assert app.get_routes() == first


# ============================================================================
# ASGI scopes
# ============================================================================

def lifespan_receive(*types):
    messages = [{"type": t} for t in types]

    async def receive():
        return messages.pop(0)

    return receive


class TestAsgi:

    @pytest.mark.asyncio
    async def test_lifespan_hooks(self, app):
        events = []

        @Controller("/hooks")
        class HookController:
            def on_application_bootstrap(self):
                events.append("bootstrap")

            async def on_module_destroy(self):
                events.append("destroy")

        app.register_controller(HookController)
        app.on_startup(lambda: events.append("startup"))

        @app.on_shutdown
        async def closing():
            events.append("shutdown")

        send = SendRecorder()
        await app({"type": "lifespan"}, lifespan_receive("lifespan.startup", "lifespan.shutdown"), send)

        assert [m["type"] for m in send.messages] == [
            "lifespan.startup.complete",
            "lifespan.shutdown.complete",
        ]
        assert events == ["startup", "bootstrap", "destroy", "shutdown"]

    @pytest.mark.asyncio
    async def test_startup_failure_reported(self, app):
        def broken():
            raise RuntimeError("no database")

        app.on_startup(broken)
        send = SendRecorder()
        with pytest.raises(RuntimeError):
            await app({"type": "lifespan"}, lifespan_receive("lifespan.startup"), send)
        assert send.messages[0] == {"type": "lifespan.startup.failed", "message": "no database"}

    @pytest.mark.asyncio
    async def test_websocket_closed(self, app):
        send = SendRecorder()
        await app({"type": "websocket", "path": "/ws"}, lifespan_receive(), send)
        assert send.messages == [{"type": "websocket.close", "code": 1003}]
