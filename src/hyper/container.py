"""Dependency injection container.

Keys are types or strings. A registration maps a key to a concrete: a
class to construct, a factory callable, or (via ``instance``) a ready
object. Classes that were never registered are built on demand by
resolving their annotated ``__init__`` parameters::

    container = Container()
    container.singleton(Database, lambda c: Database(config))
    container.alias("db", Database)

    class UserService:
        def __init__(self, db: Database) -> None: ...

    service = container.get(UserService)  # db injected
"""

from __future__ import annotations

import inspect
import pkgutil
import types
import typing
from collections.abc import Callable
from typing import Any, Protocol, TypeAlias

from hyper.errors import ConfigurationError, ResolutionError

Key: TypeAlias = type | str
Concrete: TypeAlias = type | Callable[..., Any]

_UNSET: Any = object()


class ServiceProvider(Protocol):
    """Registers bindings, then optionally boots once all are registered."""

    def register(self, container: Container) -> None: ...


class Container:
    """Bindings, singletons, and aliases, with constructor autowiring."""

    __slots__ = ("_aliases", "_bindings", "_instances", "_providers", "_signatures")

    def __init__(self) -> None:
        self._bindings: dict[Key, Concrete] = {}
        self._instances: dict[Key, Any] = {}
        self._aliases: dict[Key, Key] = {}
        self._providers: list[ServiceProvider] = []
        self._signatures: dict[Callable[..., Any], list[tuple[inspect.Parameter, Any]]] = {}

    # -- Registration --

    def bind(self, key: Key, concrete: Concrete | None = None) -> None:
        """Register *concrete* under *key*. A new object is built on every ``get``."""
        self._bindings[key] = concrete if concrete is not None else _as_concrete(key)
        self._instances.pop(key, None)

    def singleton(self, key: Key, concrete: Concrete | None = None) -> None:
        """Register *concrete* under *key*, built once on first ``get``."""
        self.bind(key, concrete)
        self._instances[key] = _UNSET

    def instance(self, key: Key, obj: Any) -> None:
        """Register an already-built object under *key*."""
        self._bindings.pop(key, None)
        self._instances[key] = obj

    def alias(self, alias: Key, key: Key) -> None:
        """Make *alias* resolve to whatever *key* resolves to."""
        self._aliases[alias] = key

    def add_provider(self, provider: ServiceProvider) -> None:
        """Let *provider* register its bindings now; boot it later."""
        provider.register(self)
        self._providers.append(provider)

    def boot(self) -> None:
        """Call ``boot(container)`` on every provider that defines it."""
        for provider in self._providers:
            boot = getattr(provider, "boot", None)
            if boot is not None:
                boot(self)

    # -- Lookup --

    def has(self, key: Key) -> bool:
        """True if *key* (or an alias of it) has been registered."""
        try:
            key = self._resolve_alias(key)
        except ConfigurationError:
            return False
        return key in self._bindings or key in self._instances

    def get(self, key: Key) -> Any:
        """Resolve *key* to an object.

        Raises:
            ConfigurationError: On a circular alias or an unknown string key.
            ResolutionError: If a constructor parameter cannot be resolved.
        """
        key = self._resolve_alias(key)
        if key in self._instances:
            obj = self._instances[key]
            if obj is _UNSET:
                obj = self._build(self._bindings[key])
                self._instances[key] = obj
            return obj
        if key in self._bindings:
            return self._build(self._bindings[key])
        return self._build(_as_concrete(key))

    def call(self, target: Any, parameters: dict[str, Any] | None = None) -> Any:
        """Call *target*, injecting any parameter not given in *parameters*.

        *target* is a callable, a ``(cls_or_key, "method")`` pair, or a
        ``"package.module:Class@method"`` string. Owners are resolved
        through ``get``.
        """
        parameters = parameters or {}
        if isinstance(target, str):
            if "@" not in target:
                msg = f"Invalid call target {target!r}: expected 'module:Class@method'."
                raise ConfigurationError(msg)
            owner, _, method = target.partition("@")
            target = (owner, method)
        if isinstance(target, tuple):
            owner, method = target
            obj = self.get(owner)
            func = getattr(obj, method, None)
            if func is None:
                msg = f"Method {method!r} does not exist on {type(obj).__qualname__}."
                raise ConfigurationError(msg)
            target = func
        if not callable(target):
            msg = f"Invalid call target {target!r}."
            raise ConfigurationError(msg)
        return target(**self._arguments(target, parameters))

    # -- Removal --

    def forget(self, key: Key) -> None:
        """Drop *key*'s registration, cached instance, and every alias to it."""
        key = self._aliases.get(key, key)
        self._bindings.pop(key, None)
        self._instances.pop(key, None)
        for alias in [a for a, target in self._aliases.items() if target == key]:
            del self._aliases[alias]

    def flush(self) -> None:
        """Drop all registrations, instances, aliases, and providers."""
        self._bindings.clear()
        self._instances.clear()
        self._aliases.clear()
        self._providers.clear()
        self._signatures.clear()

    # -- Internals --

    def _resolve_alias(self, key: Key) -> Key:
        seen: list[Key] = []
        while key in self._aliases:
            if key in seen:
                msg = f"Circular alias detected for {key!r}."
                raise ConfigurationError(msg)
            seen.append(key)
            key = self._aliases[key]
        return key

    def _build(self, concrete: Concrete) -> Any:
        if isinstance(concrete, type):
            if inspect.isabstract(concrete):
                msg = f"{concrete.__qualname__} is abstract and cannot be instantiated."
                raise ResolutionError(msg)
            if concrete.__init__ is object.__init__:
                return concrete()
            return concrete(**self._arguments(concrete, {}))
        if _positional_count(concrete) >= 1:
            return concrete(self)
        return concrete()

    def _arguments(self, func: Callable[..., Any], given: dict[str, Any]) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        for param, annotation in self._parameters(func):
            if param.name in given:
                kwargs[param.name] = given[param.name]
                continue
            resolved = self._resolve_parameter(param, annotation)
            if resolved is not _UNSET:
                kwargs[param.name] = resolved
        return kwargs

    def _parameters(self, func: Callable[..., Any]) -> list[tuple[inspect.Parameter, Any]]:
        cached = self._signatures.get(func)
        if cached is not None:
            return cached
        target = func.__init__ if isinstance(func, type) else func
        try:
            hints = typing.get_type_hints(target)
        except (NameError, TypeError):
            hints = {}
        try:
            signature = inspect.signature(func)
        except (ValueError, TypeError):
            # Builtins without introspectable signatures take no injections
            self._signatures[func] = []
            return []
        params = [
            (param, hints.get(param.name, inspect.Parameter.empty))
            for param in signature.parameters.values()
            if param.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
        ]
        self._signatures[func] = params
        return params

    def _resolve_parameter(self, param: inspect.Parameter, annotation: Any) -> Any:
        for candidate in _class_candidates(annotation):
            if self.has(candidate) or not _is_builtin(candidate):
                return self.get(candidate)
        if param.default is not inspect.Parameter.empty:
            return _UNSET
        msg = f"Unable to resolve parameter {param.name!r}."
        raise ResolutionError(msg)


def _as_concrete(key: Key) -> Concrete:
    if isinstance(key, type):
        return key
    try:
        resolved = pkgutil.resolve_name(key)
    except (ImportError, AttributeError, ValueError):
        msg = f"Nothing is bound to {key!r} and it does not name an importable class."
        raise ConfigurationError(msg) from None
    if not callable(resolved):
        msg = f"{key!r} does not resolve to a class or factory."
        raise ConfigurationError(msg)
    return resolved


def _class_candidates(annotation: Any) -> list[type]:
    if annotation is inspect.Parameter.empty:
        return []
    if isinstance(annotation, types.UnionType) or typing.get_origin(annotation) is typing.Union:
        return [arg for arg in typing.get_args(annotation) if isinstance(arg, type) and arg is not type(None)]
    if isinstance(annotation, type):
        return [annotation]
    return []


def _is_builtin(cls: type) -> bool:
    return cls.__module__ == "builtins"


def _positional_count(func: Callable[..., Any]) -> int:
    return sum(
        1
        for p in inspect.signature(func).parameters.values()
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        and p.default is inspect.Parameter.empty
    )
