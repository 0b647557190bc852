"""Tests for hyper.app: registration, pipeline, lifespan, and the top-level API."""

import logging
from pathlib import Path

import pytest

import hyper
from hyper import InlineTemplate, Redirect, Response, Template, g, get_db
from hyper.app import App
from hyper.config import AppConfig
from hyper.errors import ConfigurationError, HTTPError, NotFound
from hyper.testing import TestClient


class Greeter:
    def greet(self, name: str) -> str:
        return f"Hello, {name}!"


class GreetController:
    def __init__(self, greeter: Greeter) -> None:
        self.greeter = greeter

    async def show(self, name: str) -> str:
        return self.greeter.greet(name)


# =============================================================================
# Registration
# =============================================================================


class TestRegistration:
    def test_decorator_returns_handler(self) -> None:
        app = App()

        @app.get("/", name="home")
        def index():
            return "home"

        assert index() == "home"
        assert len(app.routes) == 1
        assert app.url_for("home") == "/"

    def test_direct_registration_and_methods(self) -> None:
        app = App()
        app.post("/items", lambda: "created")
        app.any("/echo", lambda request: request.method)
        methods = [set(route.methods) for route in app.routes.routes]
        assert methods[0] == {"POST"}
        assert methods[1] >= {"GET", "POST", "PUT", "PATCH", "DELETE"}

    def test_url_for(self) -> None:
        app = App()
        app.get("/users/{id}/posts/{slug?}", lambda id: id, name="user.posts")
        assert app.url_for("user.posts", {"id": 3, "slug": "intro"}) == "/users/3/posts/intro"
        assert app.url_for("user.posts", {"id": 3}) == "/users/3/posts"

    def test_url_for_unknown_name(self) -> None:
        with pytest.raises(ConfigurationError, match="not registered"):
            App().url_for("nowhere")

    async def test_registration_after_freeze_fails(self) -> None:
        app = App()
        app.get("/", lambda: "ok")
        async with TestClient(app) as client:
            await client.get("/")
        with pytest.raises(RuntimeError, match="Cannot modify the app"):
            app.get("/late", lambda: "late")
        with pytest.raises(RuntimeError):
            app.before(lambda: None)

    def test_db_without_configuration(self) -> None:
        with pytest.raises(RuntimeError, match="No database configured"):
            _ = App().db

    def test_cache_and_uploader_use_config_dirs(self, tmp_path) -> None:
        app = App(AppConfig(tmp_dir=tmp_path, upload_dir=tmp_path / "media"))
        assert app.cache("github").path.parent == tmp_path
        assert app.uploader("avatars", extensions=("png",)).upload_dir == tmp_path / "media" / "avatars"

    def test_app_is_in_its_container(self) -> None:
        app = App()
        assert app.container.get(App) is app
        assert app.container.get(AppConfig) is app.config


# =============================================================================
# Responses
# =============================================================================


class TestResponses:
    async def test_return_types(self) -> None:
        app = App()
        app.get("/text", lambda: "plain")
        app.get("/json", lambda: {"ok": True})
        app.get("/empty", lambda: None)
        app.get("/created", lambda: ("made", 201, {"X-Id": "7"}))
        app.get("/go", lambda: Redirect("/text"))
        app.get("/raw", lambda: Response("teapot", status=418))

        async with TestClient(app) as client:
            assert (await client.get("/text")).text == "plain"

            response = await client.get("/json")
            assert response.content_type.startswith("application/json")
            assert response.text == '{"ok": true}'

            assert (await client.get("/empty")).status == 204

            response = await client.get("/created")
            assert response.status == 201
            assert response.header("x-id") == "7"

            response = await client.get("/go")
            assert response.status == 302
            assert response.header("location") == "/text"

            assert (await client.get("/raw")).status == 418

    async def test_params_are_converted_by_annotation(self) -> None:
        app = App()

        @app.get("/users/{id}")
        async def show(id: int):
            return {"id": id, "type": type(id).__name__}

        async with TestClient(app) as client:
            assert (await client.get("/users/42")).text == '{"id": 42, "type": "int"}'

    async def test_unmatched_route_is_404(self) -> None:
        app = App()
        app.get("/", lambda: "home")
        async with TestClient(app) as client:
            response = await client.get("/missing")
            assert response.status == 404
            assert response.text == "Not Found"

    async def test_method_mismatch_is_404(self) -> None:
        app = App()
        app.post("/items", lambda: "created")
        async with TestClient(app) as client:
            assert (await client.get("/items")).status == 404

    async def test_head_falls_back_to_get(self) -> None:
        app = App()
        app.get("/", lambda: "body text")
        async with TestClient(app) as client:
            response = await client.head("/")
            assert response.status == 200
            assert response.body == b""

    async def test_form_post(self) -> None:
        app = App()

        @app.post("/echo")
        async def echo(request):
            form = await request.form()
            return f"{form['name']}:{','.join(form.get_list('tag'))}"

        async with TestClient(app) as client:
            response = await client.post("/echo", form={"name": "Ada", "tag": ["a", "b"]})
            assert response.text == "Ada:a,b"
            response = await client.post("/echo", json={"name": "Linus", "tag": ["c"]})
            assert response.text == "Linus:c"

    async def test_upload_post(self) -> None:
        app = App()

        @app.post("/upload")
        async def upload(request):
            file = await request.file("doc")
            return f"{file.filename}:{file.size}"

        async with TestClient(app) as client:
            response = await client.post("/upload", files={"doc": ("a.txt", b"abc")})
            assert response.text == "a.txt:3"

    async def test_payload_too_large(self) -> None:
        app = App(AppConfig(max_content_length=10))
        app.post("/", lambda: "ok")
        async with TestClient(app) as client:
            response = await client.post("/", body=b"x" * 20)
            assert response.status == 413
            assert response.text == "Payload Too Large"
            assert (await client.post("/", body=b"small")).status == 200


# =============================================================================
# Interceptors and middleware
# =============================================================================


class TestInterceptors:
    async def test_global_interceptor_can_short_circuit(self) -> None:
        app = App()

        def require_login(request):
            if request.path.startswith("/admin"):
                return Redirect("/login")
            return None

        app.before(require_login)
        app.get("/admin", lambda: "secret")
        app.get("/public", lambda: "open")

        async with TestClient(app) as client:
            assert (await client.get("/admin")).header("location") == "/login"
            assert (await client.get("/public")).text == "open"

    async def test_global_runs_before_route_interceptors(self) -> None:
        app = App()
        calls: list[str] = []
        app.before(lambda: calls.append("global"))
        app.get("/", lambda: "ok", middleware=[lambda request, response: calls.append("route")])

        async with TestClient(app) as client:
            await client.get("/")
            await client.get("/")
        assert calls == ["global", "route", "global", "route"]

    async def test_route_interceptor_only_applies_to_its_route(self) -> None:
        app = App()
        app.get("/guarded", lambda: "inside", middleware=[lambda: ("denied", 403)])
        app.get("/open", lambda: "open")

        async with TestClient(app) as client:
            response = await client.get("/guarded")
            assert (response.status, response.text) == (403, "denied")
            assert (await client.get("/open")).text == "open"

    async def test_g_is_shared_within_a_request(self) -> None:
        app = App()

        def load_user():
            g.user = "ada"

        app.before(load_user)
        app.get("/", lambda: f"user={g.user}")
        async with TestClient(app) as client:
            assert (await client.get("/")).text == "user=ada"
        assert "user" not in g

    async def test_onion_middleware_order(self) -> None:
        app = App()
        order: list[str] = []

        def tracer(label: str):
            async def middleware(request, next):
                order.append(f"{label}:in")
                response = await next(request)
                order.append(f"{label}:out")
                return response.with_header(f"X-{label}", "1")

            return middleware

        app.add_middleware(tracer("outer"))
        app.add_middleware(tracer("inner"))
        app.get("/", lambda: "ok")

        async with TestClient(app) as client:
            response = await client.get("/")
        assert order == ["outer:in", "inner:in", "inner:out", "outer:out"]
        assert response.header("x-outer") == "1"
        assert response.header("x-inner") == "1"


# =============================================================================
# Errors
# =============================================================================


class TestErrors:
    async def test_http_error_without_handler(self) -> None:
        app = App()

        @app.get("/")
        def index():
            raise HTTPError(403, "Forbidden", headers=(("X-Reason", "role"),))

        async with TestClient(app) as client:
            response = await client.get("/")
            assert response.status == 403
            assert response.text == "Forbidden"
            assert response.header("x-reason") == "role"

    async def test_status_handler(self) -> None:
        app = App()

        @app.get("/posts/{id}")
        def show(id):
            raise NotFound(f"post {id}")

        @app.error(404)
        def not_found(request, exc):
            return f"custom: {exc.detail}"

        async with TestClient(app) as client:
            response = await client.get("/posts/9")
            assert response.status == 404
            assert response.text == "custom: post 9"

    async def test_exception_handler(self) -> None:
        app = App()

        @app.get("/")
        def index():
            raise KeyError("user")

        @app.error(LookupError)
        def lookup_failed(request, exc):
            return {"error": type(exc).__name__}, 400

        async with TestClient(app) as client:
            response = await client.get("/")
            assert response.status == 400
            assert response.text == '{"error": "KeyError"}'

    async def test_unhandled_exception_is_500(self, caplog) -> None:
        app = App()

        @app.get("/")
        def index():
            raise RuntimeError("kaboom")

        async with TestClient(app) as client:
            with caplog.at_level(logging.ERROR, logger="hyper.server"):
                response = await client.get("/")
        assert response.status == 500
        assert response.text == "Internal Server Error"
        assert "kaboom" in caplog.text

    async def test_debug_500_shows_traceback(self) -> None:
        app = App(AppConfig(debug=True))

        @app.get("/")
        def index():
            raise RuntimeError("kaboom <b>")

        async with TestClient(app) as client:
            response = await client.get("/")
        assert response.status == 500
        assert "kaboom &lt;b&gt;" in response.text

    async def test_500_handler(self) -> None:
        app = App()
        app.get("/", lambda: 1 / 0)
        app.error(500)(lambda: "sorry")

        async with TestClient(app) as client:
            response = await client.get("/")
            assert (response.status, response.text) == (500, "sorry")


# =============================================================================
# Templates
# =============================================================================


class TestTemplates:
    def _app(self, tmp_path: Path) -> App:
        (tmp_path / "hello.html").write_text("Hello {{ name }}! {{ url_for('hello', {'name': 'x'}) }}")
        (tmp_path / "page.html").write_text("{{ title | shout }} {{ request.path }} {{ version() }}")
        return App(AppConfig(template_dir=tmp_path))

    async def test_template_route_gets_path_params(self, tmp_path) -> None:
        app = self._app(tmp_path)
        app.template("/hello/{name}", "hello.html", name="hello")
        async with TestClient(app) as client:
            assert (await client.get("/hello/Ada")).text == "Hello Ada! /hello/x"

    async def test_template_return_with_filters_and_globals(self, tmp_path) -> None:
        app = self._app(tmp_path)

        @app.template_filter()
        def shout(value):
            return value.upper()

        @app.template_global("version")
        def version():
            return "1.0"

        app.get("/page", lambda: Template("page.html", title="news"))
        async with TestClient(app) as client:
            assert (await client.get("/page")).text == "NEWS /page 1.0"

    async def test_inline_template_is_escaped(self) -> None:
        app = App()
        app.get("/", lambda: InlineTemplate("<p>{{ text }}</p>", text="<script>"))
        async with TestClient(app) as client:
            assert (await client.get("/")).text == "<p>&lt;script&gt;</p>"

    async def test_absolute_url_global(self, tmp_path) -> None:
        (tmp_path / "link.html").write_text("{{ url('/about') }}")
        app = App(AppConfig(template_dir=tmp_path))
        app.get("/", lambda: Template("link.html"))
        async with TestClient(app) as client:
            response = await client.get("/", headers={"host": "example.com"})
            assert response.text == "http://example.com/about"

    def test_template_route_needs_only_a_template(self) -> None:
        app = App()
        with pytest.raises(ConfigurationError):
            app.routes.route("/x", lambda: "x", template="x.html")


# =============================================================================
# Services and data
# =============================================================================


class TestServices:
    async def test_controller_built_through_container(self) -> None:
        app = App()
        app.get("/greet/{name}", (GreetController, "show"))
        async with TestClient(app) as client:
            assert (await client.get("/greet/Ada")).text == "Hello, Ada!"

    async def test_handler_parameter_from_container(self) -> None:
        app = App()
        app.container.singleton(Greeter)

        @app.get("/hi")
        def hi(greeter: Greeter):
            return greeter.greet("you")

        async with TestClient(app) as client:
            assert (await client.get("/hi")).text == "Hello, you!"

    async def test_provider_boots_on_freeze(self) -> None:
        booted: list[bool] = []

        class Provider:
            def register(self, container) -> None:
                container.instance("greeting", "hey")

            def boot(self, container) -> None:
                booted.append(True)

        app = App()
        app.provider(Provider())
        app.get("/", lambda: app.container.get("greeting"))
        assert booted == []
        async with TestClient(app) as client:
            assert (await client.get("/")).text == "hey"
        assert booted == [True]

    async def test_database_in_handlers(self, tmp_path) -> None:
        app = App(db=f"sqlite:///{tmp_path / 'app.db'}")

        @app.on_startup
        async def create_schema():
            await app.db.execute_script("CREATE TABLE notes (id INTEGER PRIMARY KEY, body TEXT)")

        @app.post("/notes")
        async def add(request):
            form = await request.form()
            return str(await get_db().insert("INSERT INTO notes (body) VALUES (?)", form["body"]))

        @app.get("/notes")
        async def count():
            return str(await get_db().fetch_val("SELECT COUNT(*) FROM notes"))

        async with TestClient(app) as client:
            assert (await client.post("/notes", form={"body": "a"})).text == "1"
            assert (await client.get("/notes")).text == "1"
        assert app.container.get("db") is app.db


# =============================================================================
# Lifespan
# =============================================================================


class TestLifespan:
    async def _run(self, app: App) -> list[dict]:
        messages = iter([{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}])
        sent: list[dict] = []

        async def receive() -> dict:
            return next(messages)

        async def send(message: dict) -> None:
            sent.append(message)

        await app({"type": "lifespan"}, receive, send)
        return sent

    async def test_hooks_run_in_order(self, tmp_path) -> None:
        app = App(db=f"sqlite:///{tmp_path / 'app.db'}")
        events: list[str] = []

        @app.on_startup
        async def start():
            events.append(f"start:{await app.db.fetch_val('SELECT 1')}")

        @app.on_shutdown
        def stop():
            events.append("stop")

        sent = await self._run(app)
        assert [m["type"] for m in sent] == ["lifespan.startup.complete", "lifespan.shutdown.complete"]
        assert events == ["start:1", "stop"]

    async def test_startup_failure_is_reported(self, caplog) -> None:
        app = App()

        @app.on_startup
        def broken():
            raise RuntimeError("no config")

        sent = await self._run(app)
        assert sent == [{"type": "lifespan.startup.failed", "message": "no config"}]
        assert "Startup failed" in caplog.text

    async def test_client_runs_hooks(self) -> None:
        app = App()
        events: list[str] = []
        app.on_startup(lambda: events.append("up"))
        app.on_shutdown(lambda: events.append("down"))
        async with TestClient(app):
            assert events == ["up"]
        assert events == ["up", "down"]


# =============================================================================
# Top-level API
# =============================================================================


class TestLazyExports:
    def test_exports_resolve(self) -> None:
        from hyper.container import Container
        from hyper.http.request import Request
        from hyper.middleware.sessions import get_session

        assert hyper.App is App
        assert hyper.AppConfig is AppConfig
        assert hyper.Container is Container
        assert hyper.Request is Request
        assert hyper.get_session is get_session
        assert hyper.NotFound is NotFound

    def test_every_name_in_all_resolves(self) -> None:
        for name in hyper.__all__:
            assert getattr(hyper, name) is not None

    def test_unknown_name(self) -> None:
        with pytest.raises(AttributeError, match="has no attribute 'nope'"):
            _ = hyper.nope
