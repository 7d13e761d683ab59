from abc import ABC
from typing import Optional

import pytest

from pico_conventions import (
    ComponentCreationError,
    ConfigurationError,
    Container,
    ContainerExtension,
    Dependency,
    ResolutionFailedError,
    Value,
)
from pico_conventions.constants import LIFETIME_SINGLETON
from pico_conventions.exceptions import CircularDependencyError
from sample_app.services import (
    FooService,
    IFooService,
    IHandler,
    IRepository,
    Message,
    MessageHandler,
    Repository,
    ServiceWithCtorArgs,
)


class IClock(ABC):
    pass


class Clock(IClock):
    pass


class NeedsClock:
    def __init__(self, clock: IClock, label: str = "default", retries: Optional[int] = None):
        self.clock = clock
        self.label = label
        self.retries = retries


class ChickenService:
    def __init__(self, egg: "EggService"):
        self.egg = egg


class EggService:
    def __init__(self, chicken: ChickenService):
        self.chicken = chicken


class Exploding:
    def __init__(self):
        raise ValueError("boom")


class RecordingObserver:
    def __init__(self):
        self.resolved = []
        self.hits = []

    def on_resolve(self, key, took_ms):
        self.resolved.append(key)

    def on_cache_hit(self, key):
        self.hits.append(key)


def test_resolve_registered_mapping(container):
    container.register(IFooService, FooService)
    assert isinstance(container.resolve(IFooService), FooService)
    assert container.resolve(IFooService) is not container.resolve(IFooService)


def test_singleton_is_cached(container):
    container.register(IFooService, FooService, lifetime=LIFETIME_SINGLETON)
    assert container.resolve(IFooService) is container.resolve(IFooService)


def test_unregistered_abstraction_fails(container):
    with pytest.raises(ResolutionFailedError) as ei:
        container.resolve(IFooService)
    assert ei.value.key is IFooService


def test_concrete_classes_are_built_on_the_fly(container):
    container.register(IClock, Clock)
    built = container.resolve(NeedsClock)
    assert isinstance(built.clock, Clock)
    assert built.label == "default"
    assert built.retries is None


def test_defaulted_parameters_are_injected_when_registered(container):
    container.register(IFooService, FooService)
    built = container.resolve(ServiceWithCtorArgs)
    assert built.some_string is None
    assert isinstance(built.foo_service, FooService)


def test_missing_dependency_names_the_requiring_class(container):
    with pytest.raises(ResolutionFailedError) as ei:
        container.resolve(NeedsClock)
    assert ei.value.key is IClock
    assert ei.value.origin is NeedsClock


def test_named_registrations_are_separate(container):
    container.register(IFooService, FooService, name="a")
    assert isinstance(container.resolve(IFooService, "a"), FooService)
    assert container.is_registered(IFooService, "a")
    assert not container.is_registered(IFooService)
    with pytest.raises(ResolutionFailedError):
        container.resolve(IFooService, "b")


def test_open_generic_registration_serves_closed_requests(container):
    container.register(IRepository, Repository)
    assert isinstance(container.resolve(IRepository[Message]), Repository)
    assert isinstance(container.resolve(IRepository[int]), Repository)


def test_closed_registration_only_serves_its_arguments(container):
    container.register(IHandler[Message], MessageHandler)
    assert isinstance(container.resolve(IHandler[Message]), MessageHandler)
    with pytest.raises(ResolutionFailedError):
        container.resolve(IHandler[int])


def test_resolve_all_includes_named_default_and_members(container):
    container.register(IFooService, factory=lambda c: FooService())
    container.register(IFooService, FooService, name="x")
    container.register(IFooService, FooService, member=FooService)
    assert len(container.resolve_all(IFooService)) == 3
    assert container.resolve_all(IClock) == []


def test_resolve_all_returns_a_default_that_is_also_a_member_once(container):
    container.register(IFooService, FooService)
    container.register(IFooService, FooService, member=FooService)
    container.register(IFooService, FooService, name="x")
    assert [type(x) for x in container.resolve_all(IFooService)] == [FooService, FooService]
    assert isinstance(container.resolve(IFooService), FooService)


def test_collection_members_are_not_default_registrations(container):
    container.register(IFooService, FooService, member=FooService)
    with pytest.raises(ResolutionFailedError):
        container.resolve(IFooService)


def test_constructor_arguments(container):
    container.register(IClock, Clock)
    container.register(
        NeedsClock,
        NeedsClock,
        arguments=(Dependency(IClock), Value("label"), 3),
    )
    built = container.resolve(NeedsClock)
    assert isinstance(built.clock, Clock)
    assert built.label == "label"
    assert built.retries == 3


def test_factory_receives_the_resolving_container(container):
    seen = []
    container.register(IFooService, factory=lambda c: seen.append(c) or FooService())
    child = container.create_child_scope()
    child.resolve(IFooService)
    assert seen == [child]


def test_post_build_hooks_run_once_per_instance(container):
    calls = []
    container.register(IFooService, FooService, lifetime=LIFETIME_SINGLETON, post_build=(calls.append,))
    first = container.resolve(IFooService)
    container.resolve(IFooService)
    assert calls == [first]


def test_child_scope_shadows_parent(container):
    container.register(IClock, Clock)
    child = container.create_child_scope()
    child.register(IClock, factory=lambda c: "child clock")
    assert child.resolve(IClock) == "child clock"
    assert isinstance(container.resolve(IClock), Clock)
    assert child.resolve_all(IClock) == ["child clock"]


def test_child_singleton_of_implementation_overrides_parent_mapping(container):
    container.register(IFooService, FooService)
    child = container.create_child_scope()
    child.register(FooService, FooService, lifetime=LIFETIME_SINGLETON)
    assert child.resolve(IFooService) is child.resolve(IFooService)
    assert container.resolve(IFooService) is not container.resolve(IFooService)
    assert container.resolve(IFooService) is not child.resolve(IFooService)


def test_singletons_live_in_the_owning_container(container):
    container.register(IFooService, FooService, lifetime=LIFETIME_SINGLETON)
    child = container.create_child_scope()
    assert child.resolve(IFooService) is container.resolve(IFooService)


def test_failures_are_wrapped(container):
    with pytest.raises(ComponentCreationError) as ei:
        container.resolve(Exploding)
    assert isinstance(ei.value.cause, ValueError)


def test_circular_dependencies_are_detected(container):
    with pytest.raises(ComponentCreationError) as ei:
        container.resolve(ChickenService)
    assert isinstance(ei.value.cause, CircularDependencyError)
    assert ei.value.cause.current is ChickenService


def test_observers_and_stats(container):
    observer = RecordingObserver()
    container.add_observer(observer)
    container.register(IFooService, FooService, lifetime=LIFETIME_SINGLETON)
    container.resolve(IFooService)
    container.resolve(IFooService)
    assert observer.resolved == [IFooService]
    assert observer.hits == [IFooService]
    stats = container.stats()
    assert stats["total_resolves"] == 1
    assert stats["cache_hits"] == 1
    assert stats["cache_hit_rate"] == 0.5
    assert stats["registered_components"] == 1


def test_extensions_are_initialized_with_the_container(container):
    class ClockExtension(ContainerExtension):
        def initialize(self, c):
            c.register(IClock, Clock)

    ext = container.add_extension(ClockExtension)
    assert container.extensions == (ext,)
    assert isinstance(container.resolve(IClock), Clock)
    with pytest.raises(ConfigurationError):
        container.add_extension(object())


def test_register_instance(container):
    service = FooService()
    container.register_instance(IFooService, service)
    assert container.resolve(IFooService) is service
