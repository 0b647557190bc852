"""Tests for hyper.routing.dispatcher and hyper.routing.binding."""

import json
import logging

import pytest

from hyper.container import Container
from hyper.errors import ConfigurationError
from hyper.http.request import Request
from hyper.http.response import Redirect, Response
from hyper.routing.binding import build_plan, resolve_handler
from hyper.routing.dispatcher import Dispatcher
from hyper.routing.router import RouteTable


async def _receive() -> dict:
    return {"type": "http.request", "body": b"", "more_body": False}


def _request(path: str, method: str = "GET") -> Request:
    scope = {"type": "http", "method": method, "path": path, "headers": [], "query_string": b""}
    return Request.from_asgi(scope, _receive)


class Greeter:
    def greet(self, name: str) -> str:
        return f"Hello, {name}!"


class UserController:
    def __init__(self, greeter: Greeter) -> None:
        self.greeter = greeter

    def show(self, name: str) -> str:
        return self.greeter.greet(name)

    @staticmethod
    def ping() -> str:
        return "pong"


class TestBindingPlan:
    def test_request_and_response_by_name(self) -> None:
        def handler(request, response, id):
            return None

        plan = build_plan(handler)
        assert [p.source for p in plan.params] == ["request", "response", "route"]
        # request/response do not take a route position
        assert plan.params[2].position == 0

    def test_request_by_annotation(self) -> None:
        def handler(req: Request) -> None:
            return None

        assert build_plan(handler).params[0].source == "request"

    def test_method_handler_skips_self(self) -> None:
        plan = build_plan((UserController, "show"))
        assert plan.owner is UserController
        assert [p.name for p in plan.params] == ["name"]

    def test_static_method_has_no_owner(self) -> None:
        assert build_plan((UserController, "ping")).owner is None

    def test_missing_method(self) -> None:
        with pytest.raises(ConfigurationError, match="no handler method"):
            build_plan((UserController, "missing"))

    def test_string_handler(self) -> None:
        func, owner = resolve_handler("json:dumps")
        assert func is json.dumps
        assert owner is None

    def test_unimportable_string_handler(self) -> None:
        with pytest.raises(ConfigurationError, match="Cannot import"):
            resolve_handler("no_such_module_xyz:handler")

    def test_not_callable(self) -> None:
        with pytest.raises(ConfigurationError, match="must be callable"):
            resolve_handler(42)  # type: ignore[arg-type]


class TestParameterResolution:
    async def _dispatch(self, routes: RouteTable, path: str, container: Container | None = None) -> Response:
        return await Dispatcher(routes, container or Container()).dispatch(_request(path))

    async def test_by_name_with_int_conversion(self) -> None:
        routes = RouteTable()
        routes.get("/add/{a}/{b}", lambda b, a: {"sum": int(a) + int(b)})
        response = await self._dispatch(routes, "/add/2/3")
        assert json.loads(response.text) == {"sum": 5}

    async def test_annotation_converts(self) -> None:
        def double(n: int) -> dict:
            return {"n": n * 2}

        routes = RouteTable()
        routes.get("/double/{n}", double)
        assert json.loads((await self._dispatch(routes, "/double/21")).text) == {"n": 42}

    async def test_by_position_when_names_disagree(self, caplog) -> None:
        def download(bucket, rest):
            return f"{bucket}:{rest}"

        routes = RouteTable()
        routes.get("/files/{bucket}/*", download)
        with caplog.at_level(logging.DEBUG, logger="hyper.routing"):
            response = await self._dispatch(routes, "/files/photos/2024/cat.jpg")
        assert response.text == "photos:2024/cat.jpg"
        assert "by position" in caplog.text

    async def test_position_counts_only_route_params(self) -> None:
        def show(request, first, second):
            return f"{request.path}|{first}|{second}"

        routes = RouteTable()
        routes.get("/x/*/*", show)
        response = await self._dispatch(routes, "/x/a/b")
        assert response.text == "/x/a/b|a|b"

    async def test_default_then_container_then_none(self) -> None:
        container = Container()
        container.instance(Greeter, Greeter())

        def handler(page=1, greeter: Greeter = None, missing=None, other: str = None):  # type: ignore[assignment]
            return {"page": page, "greeter": isinstance(greeter, Greeter), "other": other}

        def no_default(greeter: Greeter, unknown):
            return {"greeter": isinstance(greeter, Greeter), "unknown": unknown}

        routes = RouteTable()
        routes.get("/defaults", handler)
        routes.get("/container", no_default)
        data = json.loads((await self._dispatch(routes, "/defaults", container)).text)
        assert data == {"page": 1, "greeter": False, "other": None}

        data = json.loads((await self._dispatch(routes, "/container", container)).text)
        assert data == {"greeter": True, "unknown": None}

    async def test_controller_built_through_container(self) -> None:
        routes = RouteTable()
        routes.get("/hello/{name}", (UserController, "show"))
        response = await self._dispatch(routes, "/hello/Ada")
        assert response.text == "Hello, Ada!"


class TestDispatch:
    async def test_unmatched_is_plain_404(self) -> None:
        response = await Dispatcher(RouteTable(), Container()).dispatch(_request("/nowhere"))
        assert response.status == 404
        assert response.text == "Not Found"

    async def test_head_falls_back_to_get(self) -> None:
        routes = RouteTable()
        routes.get("/", lambda: "home")
        response = await Dispatcher(routes, Container()).dispatch(_request("/", "HEAD"))
        assert response.status == 200

    async def test_global_interceptors_run_before_route_ones(self) -> None:
        calls: list[str] = []
        routes = RouteTable()
        routes.get("/", lambda: calls.append("handler") or "ok").middleware(lambda: calls.append("route"))
        dispatcher = Dispatcher(routes, Container(), interceptors=[lambda: calls.append("global")])

        await dispatcher.dispatch(_request("/"))
        assert calls == ["global", "route", "handler"]

    async def test_short_circuit_skips_handler(self) -> None:
        calls: list[str] = []
        routes = RouteTable()
        routes.get("/admin", lambda: calls.append("handler")).middleware(lambda request: Redirect("/login"))

        response = await Dispatcher(routes, Container()).dispatch(_request("/admin"))
        assert response.status == 302
        assert response.header("Location") == "/login"
        assert calls == []

    async def test_interceptors_do_not_leak_between_requests(self) -> None:
        calls: list[str] = []
        routes = RouteTable()
        routes.get("/a", lambda: "a").middleware(lambda: calls.append("a-only"))
        routes.get("/b", lambda: "b")
        dispatcher = Dispatcher(routes, Container())

        await dispatcher.dispatch(_request("/a"))
        await dispatcher.dispatch(_request("/b"))
        assert calls == ["a-only"]

    async def test_handler_sees_path_params_on_request(self) -> None:
        routes = RouteTable()
        routes.get("/users/{id}", lambda request: request.param("id"))
        response = await Dispatcher(routes, Container()).dispatch(_request("/users/9"))
        assert response.text == "9"


class TestNegotiation:
    async def _value(self, value: object) -> Response:
        routes = RouteTable()
        routes.get("/", lambda: value)
        return await Dispatcher(routes, Container()).dispatch(_request("/"))

    async def test_str_is_html(self) -> None:
        response = await self._value("<p>hi</p>")
        assert response.content_type.startswith("text/html")

    async def test_bytes_is_octet_stream(self) -> None:
        response = await self._value(b"\x00\x01")
        assert response.content_type == "application/octet-stream"

    async def test_dict_and_list_are_json(self) -> None:
        assert (await self._value({"a": 1})).content_type.startswith("application/json")
        assert json.loads((await self._value([1, 2])).text) == [1, 2]

    async def test_tuple_overrides_status_and_headers(self) -> None:
        response = await self._value(("created", 201, {"X-Id": "7"}))
        assert response.status == 201
        assert response.header("X-Id") == "7"

    async def test_none_is_204(self) -> None:
        response = await self._value(None)
        assert response.status == 204
        assert response.text == ""

    async def test_unsupported_type(self) -> None:
        with pytest.raises(TypeError, match="Cannot convert"):
            await self._value(object())
