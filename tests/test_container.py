"""Tests for hyper.container: bindings, singletons, aliases, autowiring."""

import pytest

from hyper.container import Container
from hyper.errors import ConfigurationError, ResolutionError


class Clock:
    pass


class Mailer:
    def __init__(self, clock: Clock, sender: str = "noreply@example.com") -> None:
        self.clock = clock
        self.sender = sender


class NeedsName:
    def __init__(self, name: str) -> None:
        self.name = name


class Optional_:
    def __init__(self, clock: Clock | None = None) -> None:
        self.clock = clock


class Provider:
    def __init__(self) -> None:
        self.booted = False

    def register(self, container: Container) -> None:
        container.singleton("clock", lambda: Clock())

    def boot(self, container: Container) -> None:
        self.booted = container.has("clock")


class TestRegistration:
    def test_bind_builds_each_time(self) -> None:
        container = Container()
        container.bind(Clock)
        assert container.get(Clock) is not container.get(Clock)

    def test_singleton_builds_once(self) -> None:
        container = Container()
        container.singleton(Clock)
        assert container.get(Clock) is container.get(Clock)

    def test_instance(self) -> None:
        clock = Clock()
        container = Container()
        container.instance(Clock, clock)
        assert container.get(Clock) is clock
        assert container.has(Clock)

    def test_factory_receives_container(self) -> None:
        container = Container()
        container.instance("sender", "team@example.com")
        container.bind(Mailer, lambda c: Mailer(Clock(), c.get("sender")))
        assert container.get(Mailer).sender == "team@example.com"

    def test_string_key(self) -> None:
        container = Container()
        container.instance("config", {"debug": True})
        assert container.get("config") == {"debug": True}


class TestAliases:
    def test_alias_resolves_target(self) -> None:
        container = Container()
        container.singleton(Clock)
        container.alias("clock", Clock)
        assert container.get("clock") is container.get(Clock)

    def test_circular_alias(self) -> None:
        container = Container()
        container.alias("a", "b")
        container.alias("b", "a")
        with pytest.raises(ConfigurationError, match="Circular alias"):
            container.get("a")
        assert not container.has("a")


class TestAutowiring:
    def test_unregistered_class_is_built(self) -> None:
        mailer = Container().get(Mailer)
        assert isinstance(mailer.clock, Clock)
        assert mailer.sender == "noreply@example.com"

    def test_registered_dependency_is_used(self) -> None:
        clock = Clock()
        container = Container()
        container.instance(Clock, clock)
        assert container.get(Mailer).clock is clock

    def test_optional_union_annotation(self) -> None:
        assert isinstance(Container().get(Optional_).clock, Clock)

    def test_unresolvable_builtin_parameter(self) -> None:
        with pytest.raises(ResolutionError, match="'name'"):
            Container().get(NeedsName)

    def test_unknown_string_key(self) -> None:
        with pytest.raises(ConfigurationError, match="Nothing is bound"):
            Container().get("no.such.module:Thing")

    def test_importable_string_key(self) -> None:
        from collections import OrderedDict

        assert isinstance(Container().get("collections:OrderedDict"), OrderedDict)


class TestCall:
    def test_injects_missing_parameters(self) -> None:
        def handler(clock: Clock, greeting: str) -> str:
            return f"{greeting} {type(clock).__name__}"

        assert Container().call(handler, {"greeting": "hi"}) == "hi Clock"

    def test_method_pair(self) -> None:
        class Service:
            def run(self, clock: Clock) -> bool:
                return isinstance(clock, Clock)

        assert Container().call((Service, "run")) is True

    def test_missing_method(self) -> None:
        with pytest.raises(ConfigurationError, match="does not exist"):
            Container().call((Clock, "tick"))

    def test_string_without_method(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid call target"):
            Container().call("collections:OrderedDict")


class TestRemoval:
    def test_forget_drops_binding_and_aliases(self) -> None:
        container = Container()
        container.singleton(Clock)
        container.alias("clock", Clock)
        container.forget(Clock)
        assert not container.has(Clock)
        assert not container.has("clock")

    def test_flush(self) -> None:
        container = Container()
        container.instance("x", 1)
        container.flush()
        assert not container.has("x")


class TestProviders:
    def test_register_then_boot(self) -> None:
        provider = Provider()
        container = Container()
        container.add_provider(provider)
        assert container.has("clock")
        assert not provider.booted
        container.boot()
        assert provider.booted
