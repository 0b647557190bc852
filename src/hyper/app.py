"""Hyper application class.

Mutable during setup (route registration, middleware, filters).
Frozen at runtime when ``__call__()`` is first invoked.
"""

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any

from jinja2 import Environment

from hyper._internal.asgi import Receive, Scope, Send
from hyper._internal.invoke import invoke
from hyper._internal.types import ErrorHandler, Handler, Interceptor
from hyper.config import AppConfig
from hyper.container import Container, ServiceProvider
from hyper.context import request_var
from hyper.data.database import Database, DatabaseConfig, _db_var
from hyper.middleware.protocol import Middleware
from hyper.middleware.sessions import SessionConfig, SessionMiddleware
from hyper.routing.dispatcher import Dispatcher
from hyper.routing.router import RouteTable
from hyper.server.handler import handle_request
from hyper.templating.integration import create_environment, template_exists
from hyper.uploads import Uploader
from hyper.utils.cache import Cache

logger = logging.getLogger("hyper.app")

_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")


class App:
    """The hyper application.

    Routes, interceptors, middleware, error handlers and template
    extensions are registered during setup. The first ASGI call freezes
    the app: the jinja2 environment and the dispatcher are built and no
    more registrations are accepted.

    Thread safety:
        The setup phase is single-threaded (decorators at import time).
        The freeze transition uses a Lock + double-check so exactly one
        thread compiles the app, even if several workers receive their
        first request at once.
    """

    __slots__ = (
        "_container",
        "_db",
        "_dispatcher",
        "_env",
        "_error_handlers",
        "_freeze_lock",
        "_frozen",
        "_interceptors",
        "_middleware",
        "_middleware_list",
        "_routes",
        "_shutdown_hooks",
        "_startup_hooks",
        "_template_filters",
        "_template_globals",
        "config",
    )

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        db: Database | DatabaseConfig | str | None = None,
        container: Container | None = None,
    ) -> None:
        self.config: AppConfig = config or AppConfig()
        self._routes = RouteTable()
        self._interceptors: list[Interceptor] = []
        self._middleware_list: list[Middleware] = []
        self._error_handlers: dict[int | type[BaseException], ErrorHandler] = {}
        self._template_filters: dict[str, Callable[..., Any]] = {}
        self._template_globals: dict[str, Any] = {}
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []
        self._frozen = False
        self._freeze_lock = threading.Lock()

        # Accepts a Database, its config, or a connection URL
        self._db: Database | None = db if isinstance(db, Database) or db is None else Database(db)

        self._container = container or Container()
        self._container.instance(App, self)
        self._container.instance(AppConfig, self.config)
        if self._db is not None:
            self._container.instance(Database, self._db)
            self._container.alias("db", Database)

        # Compiled state, set during _freeze()
        self._dispatcher: Dispatcher | None = None
        self._middleware: tuple[Middleware, ...] = ()
        self._env: Environment | None = None

    # -- Route registration --

    def route(
        self,
        path: str,
        handler: Handler | None = None,
        *,
        methods: Iterable[str] | None = None,
        name: str | None = None,
        middleware: Iterable[Interceptor] = (),
    ) -> Any:
        """Register a route handler, directly or as a decorator.

        ::

            @app.route("/users/{id}", name="users.show")
            async def show(id: int): ...

            app.route("/posts", (PostController, "index"), methods=["GET", "HEAD"])
            app.route("/admin", "myapp.admin:Dashboard@index", middleware=[require_login])

        Args:
            path: URL pattern. ``{param}`` captures a segment, ``{param?}``
                an optional one, and a trailing ``*`` the rest of the path.
            handler: A callable, a ``(cls, "method")`` pair, or a
                ``"module:Class@method"`` string. Omit it to use the
                decorator form.
            methods: HTTP methods. Defaults to ``["GET"]``.
            name: Route name for ``url_for``.
            middleware: Interceptors run after the global ones, for this
                route only.
        """

        def register(func: Handler) -> Handler:
            self._check_not_frozen()
            self._routes.route(
                path,
                func,
                methods=methods or ("GET",),
                name=name,
                middleware=middleware,
            )
            return func

        if handler is not None:
            return register(handler)
        return register

    def get(self, path: str, handler: Handler | None = None, **kwargs: Any) -> Any:
        return self.route(path, handler, methods=("GET",), **kwargs)

    def post(self, path: str, handler: Handler | None = None, **kwargs: Any) -> Any:
        return self.route(path, handler, methods=("POST",), **kwargs)

    def put(self, path: str, handler: Handler | None = None, **kwargs: Any) -> Any:
        return self.route(path, handler, methods=("PUT",), **kwargs)

    def patch(self, path: str, handler: Handler | None = None, **kwargs: Any) -> Any:
        return self.route(path, handler, methods=("PATCH",), **kwargs)

    def delete(self, path: str, handler: Handler | None = None, **kwargs: Any) -> Any:
        return self.route(path, handler, methods=("DELETE",), **kwargs)

    def any(self, path: str, handler: Handler | None = None, **kwargs: Any) -> Any:
        """Register *handler* for every supported method."""
        return self.route(path, handler, methods=_METHODS, **kwargs)

    def template(
        self,
        path: str,
        template: str,
        *,
        name: str | None = None,
        middleware: Iterable[Interceptor] = (),
    ) -> None:
        """Serve *template* on GET *path*. Route params become template variables."""
        self._check_not_frozen()
        self._routes.route(path, methods=("GET",), template=template, name=name, middleware=middleware)

    @property
    def routes(self) -> RouteTable:
        """The route table, in match order."""
        return self._routes

    def url_for(self, name: str, context: Mapping[str, Any] | Any = None) -> str:
        """Build the path of the named route. See ``RouteTable.url_for``."""
        return self._routes.url_for(name, context)

    # -- Interceptors and middleware --

    def before(self, *interceptors: Interceptor) -> None:
        """Add global interceptors, run before every route's own.

        An interceptor takes ``()``, ``(request)`` or ``(request, response)``
        and returns ``None`` to continue or a response value to stop::

            def require_login(request):
                if "user_id" not in get_session():
                    return Redirect("/login")
        """
        self._check_not_frozen()
        self._interceptors.extend(interceptors)

    def add_middleware(self, middleware: Middleware) -> None:
        """Add an onion middleware wrapping every request, outermost first."""
        self._check_not_frozen()
        self._middleware_list.append(middleware)

    # -- Error handlers --

    def error(self, code_or_exception: int | type[BaseException]) -> Callable[[ErrorHandler], ErrorHandler]:
        """Register an error handler via decorator.

        ::

            @app.error(404)
            def not_found(request):
                return Template("404.html"), 404

            @app.error(ValidationError)
            def invalid(request, exc):
                return {"errors": exc.errors}, 422
        """

        def decorator(func: ErrorHandler) -> ErrorHandler:
            self._check_not_frozen()
            self._error_handlers[code_or_exception] = func
            return func

        return decorator

    # -- Templates --

    def template_filter(self, name: str | None = None) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register a jinja2 filter via decorator."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self._check_not_frozen()
            self._template_filters[name or func.__name__] = func
            return func

        return decorator

    def template_global(self, name: str | None = None) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register a jinja2 global via decorator."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self._check_not_frozen()
            self._template_globals[name or func.__name__] = func
            return func

        return decorator

    # -- Services --

    @property
    def container(self) -> Container:
        """The dependency container used to build controllers and services."""
        return self._container

    def provider(self, provider: ServiceProvider) -> None:
        """Register a service provider. Its ``boot`` runs when the app freezes."""
        self._check_not_frozen()
        self._container.add_provider(provider)

    def use_sessions(self, **options: Any) -> None:
        """Add signed-cookie sessions keyed with ``config.secret_key``.

        *options* are passed to ``SessionConfig`` (``cookie_name``, ``max_age``, ...).
        """
        self.add_middleware(SessionMiddleware(SessionConfig(secret_key=self.config.secret_key, **options)))

    def cache(self, name: str) -> Cache:
        """A file cache namespace stored under ``config.tmp_dir``."""
        return Cache(name, tmp_dir=self.config.tmp_dir)

    def uploader(self, subdir: str = "", **options: Any) -> Uploader:
        """An ``Uploader`` writing into ``config.upload_dir/subdir``."""
        return Uploader(Path(self.config.upload_dir) / subdir, **options)

    @property
    def db(self) -> Database:
        """The database, if configured.

        Raises ``RuntimeError`` if no database was configured on this app.
        """
        if self._db is None:
            msg = "No database configured. Pass db= to App() or use hyper.data.Database directly."
            raise RuntimeError(msg)
        return self._db

    # -- Lifecycle hooks --

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync startup hook via decorator.

        Hooks run in registration order during ASGI lifespan startup,
        after the database connects.
        """
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync shutdown hook via decorator.

        Hooks run in registration order during ASGI lifespan shutdown,
        before the database disconnects.
        """
        self._shutdown_hooks.append(func)
        return func

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(scope, receive, send)
            return

        self._ensure_frozen()
        assert self._dispatcher is not None

        await handle_request(
            scope,
            receive,
            send,
            dispatcher=self._dispatcher,
            middleware=self._middleware,
            error_handlers=self._error_handlers,
            env=self._env,
            debug=self.config.debug,
            max_content_length=self.config.max_content_length,
            db=self._db,
        )

    async def _handle_lifespan(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Run the ASGI lifespan protocol.

        Freezes the app at startup (before the first HTTP request), then
        runs the startup/shutdown hooks and signals completion back to
        the server.
        """
        self._ensure_frozen()

        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    if self._db is not None:
                        await self._db.connect()
                        _db_var.set(self._db)
                    for hook in self._startup_hooks:
                        await invoke(hook)
                    await send({"type": "lifespan.startup.complete"})
                except Exception as exc:
                    logger.exception("Startup failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return

            elif msg_type == "lifespan.shutdown":
                for hook in self._shutdown_hooks:
                    await invoke(hook)
                if self._db is not None:
                    await self._db.disconnect()
                await send({"type": "lifespan.shutdown.complete"})
                return

    # -- Internal --

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compile the app into its frozen runtime state.

        MUST only be called while holding _freeze_lock.
        """
        logging.getLogger("hyper").setLevel(self.config.log_level.upper())

        globals_ = {"url_for": self.url_for, "url": _absolute_url, **self._template_globals}
        self._env = create_environment(self.config, filters=self._template_filters, globals_=globals_)
        self._container.instance(Environment, self._env)

        if self.config.debug:
            for route in self._routes.routes:
                if route.template is not None and not template_exists(self._env, route.template):
                    logger.warning("Route %s renders missing template %r", route.path, route.template)

        self._routes.freeze()
        self._middleware = tuple(self._middleware_list)
        self._dispatcher = Dispatcher(
            self._routes,
            self._container,
            interceptors=self._interceptors,
            env=self._env,
        )
        self._container.boot()
        self._frozen = True
        logger.debug("App frozen with %d routes", len(self._routes))

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register routes, middleware, and filters before the first request."
            )
            raise RuntimeError(msg)


def _absolute_url(path: str = "") -> str:
    """Absolute URL for *path* on the current request's host."""
    request = request_var.get(None)
    root = request.root_url if request is not None else ""
    return f"{root}/{path.lstrip('/')}"
