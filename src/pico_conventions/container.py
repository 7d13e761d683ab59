# src/pico_conventions/container.py
import contextvars
import inspect
import random
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, get_origin

from .constants import LIFETIME_SINGLETON, LIFETIME_TRANSIENT, LIFETIMES, LOGGER
from .exceptions import (
    CircularDependencyError,
    ComponentCreationError,
    ConfigurationError,
    ConventionsError,
    ResolutionFailedError,
)
from .entries import Dependency, Value
from .reflection import ConstructorInfo, ParameterInfo, TypeCache, default_type_cache
from .type_shapes import Shape, can_satisfy, definition_of, display_name, is_concrete, shape_of

SlotT = Tuple[Any, Optional[str], Any]
_resolve_chain: contextvars.ContextVar[Tuple["Registration", ...]] = contextvars.ContextVar("pico_conventions_resolve_chain", default=())
_MISSING = object()


@dataclass(frozen=True)
class Registration:
    """One registration as the container stores it.

    ``member`` is ``None`` for default and named registrations and the
    implementation (or factory) for collection members, which only
    :meth:`Container.resolve_all` returns.
    """

    key: Shape
    name: Optional[str]
    implementation: Optional[type]
    factory: Optional[Callable[["Container"], Any]]
    lifetime: str
    member: Any = None
    constructor: Optional[ConstructorInfo] = None
    arguments: Optional[Tuple[Any, ...]] = None
    post_build: Tuple[Callable[[Any], Any], ...] = ()

    @property
    def slot(self) -> SlotT:
        return (self.key, self.name, self.member)

    @property
    def is_mapping(self) -> bool:
        return self.implementation is not None and self.key != shape_of(self.implementation)


class ContainerObserver(Protocol):
    """Receives a callback per created instance and per singleton cache hit."""

    def on_resolve(self, key: Any, took_ms: float): ...
    def on_cache_hit(self, key: Any): ...


class ContainerExtension:
    """Base class for container extensions.

    Subclasses override :meth:`initialize`, called once when the extension
    is added, typically to register further components.
    """

    def initialize(self, container: "Container") -> None:
        pass


class Container:
    """A small hierarchical IoC container.

    Lookups walk from this container to its ancestors; singletons live in
    the container that owns their registration.
    """

    class _Ctx:
        def __init__(self, container_id: str, created_at: float) -> None:
            self.container_id = container_id
            self.created_at = created_at
            self.resolve_count = 0
            self.cache_hit_count = 0

    def __init__(
        self,
        parent: Optional["Container"] = None,
        *,
        container_id: Optional[str] = None,
        observers: Optional[List[ContainerObserver]] = None,
        type_cache: Optional[TypeCache] = None,
    ) -> None:
        self.parent = parent
        self.container_id = container_id or self._generate_container_id()
        self.context = Container._Ctx(self.container_id, time.time())
        self._registrations: Dict[SlotT, Registration] = {}
        self._instances: Dict[SlotT, Any] = {}
        self._extensions: List[ContainerExtension] = []
        self._observers = list(observers or [])
        self._type_cache = type_cache

    @staticmethod
    def _generate_container_id() -> str:
        return f"c{time.time_ns():x}{random.randrange(1 << 16):04x}"

    @property
    def type_cache(self) -> TypeCache:
        return self._type_cache or default_type_cache()

    def info(self, msg: str) -> None:
        LOGGER.info(f"[{self.container_id[:8]}] {msg}")

    def _scopes(self):
        scope: Optional[Container] = self
        while scope is not None:
            yield scope
            scope = scope.parent

    # registration

    def register(
        self,
        abstraction: Any,
        implementation: Optional[type] = None,
        *,
        factory: Optional[Callable[["Container"], Any]] = None,
        name: Optional[str] = None,
        lifetime: str = LIFETIME_TRANSIENT,
        member: Any = None,
        constructor: Optional[ConstructorInfo] = None,
        arguments: Optional[Tuple[Any, ...]] = None,
        post_build: Tuple[Callable[[Any], Any], ...] = (),
    ) -> Registration:
        """Register *implementation* or *factory* under *abstraction*.

        A registration with the same ``(abstraction, name, member)`` replaces
        the previous one and drops its cached singleton.
        """
        if (implementation is None) == (factory is None):
            raise ConfigurationError(f"register({display_name(abstraction)}) needs exactly one of implementation or factory")
        if lifetime not in LIFETIMES:
            raise ConfigurationError(f"Unknown lifetime {lifetime!r}; expected one of {LIFETIMES}")
        reg = Registration(
            shape_of(abstraction),
            name,
            implementation,
            factory,
            lifetime,
            member,
            constructor,
            tuple(arguments) if arguments is not None else None,
            tuple(post_build),
        )
        self._registrations[reg.slot] = reg
        self._instances.pop(reg.slot, None)
        return reg

    def register_instance(self, abstraction: Any, instance: Any, *, name: Optional[str] = None) -> Registration:
        """Register an already built object; it is returned as a singleton."""
        self._instances[(shape_of(abstraction), name, None)] = instance
        reg = Registration(shape_of(abstraction), name, None, lambda _c: instance, LIFETIME_SINGLETON)
        self._registrations[reg.slot] = reg
        return reg

    def registrations(self) -> Tuple[Registration, ...]:
        return tuple(self._registrations.values())

    def _checkpoint(self) -> Tuple[Dict[SlotT, Registration], Dict[SlotT, Any], List[ContainerExtension]]:
        return dict(self._registrations), dict(self._instances), list(self._extensions)

    def _rollback(self, checkpoint: Tuple[Dict[SlotT, Registration], Dict[SlotT, Any], List[ContainerExtension]]) -> None:
        registrations, instances, extensions = checkpoint
        self._registrations = dict(registrations)
        self._instances = dict(instances)
        self._extensions = list(extensions)

    def _lookup(self, shape: Shape, name: Optional[str]) -> Optional[Tuple["Container", Registration]]:
        for scope in self._scopes():
            reg = scope._registrations.get((shape, name, None))
            if reg is not None:
                return scope, reg
            for reg in reversed(list(scope._registrations.values())):
                if reg.member is None and reg.name == name and can_satisfy(shape, reg.key):
                    return scope, reg
        return None

    def is_registered(self, abstraction: Any, name: Optional[str] = None) -> bool:
        try:
            shape = shape_of(abstraction)
        except TypeError:
            return False
        return self._lookup(shape, name) is not None

    # resolution

    def resolve(self, abstraction: Any, name: Optional[str] = None) -> Any:
        """Return an instance for *abstraction* (and *name*).

        Unregistered concrete classes are built on the fly as transients.

        Raises:
            ResolutionFailedError: Nothing is registered and the request
                cannot be built directly.
            ComponentCreationError: A constructor, factory or hook failed.
        """
        shape = shape_of(abstraction)
        found = self._lookup(shape, name)
        if found is not None:
            owner, reg = found
            return self._get(owner, reg, ())
        definition = definition_of(shape)
        if name is None and is_concrete(definition):
            reg = Registration(shape, None, definition, None, LIFETIME_TRANSIENT)
            return self._get(self, reg, ())
        chain = _resolve_chain.get()
        raise ResolutionFailedError(shape, name, origin=chain[-1].implementation if chain else None)

    def resolve_all(self, abstraction: Any) -> List[Any]:
        """Return one instance per registration satisfying *abstraction*.

        Named, unnamed and collection registrations are all included, in
        registration order; a child registration shadows the parent one with
        the same key. An unnamed default whose implementation is also a
        collection member under the same key is returned once, as the member.
        """
        shape = shape_of(abstraction)
        found: Dict[SlotT, Tuple[Container, Registration]] = {}
        for scope in reversed(list(self._scopes())):
            for reg in scope._registrations.values():
                if can_satisfy(shape, reg.key):
                    found[reg.slot] = (scope, reg)
        members = {(key, member) for key, _, member in found if member is not None}
        return [
            self._get(owner, reg, ())
            for owner, reg in found.values()
            if not (reg.member is None and reg.name is None and (reg.key, reg.implementation) in members)
        ]

    def _redirect(self, reg: Registration) -> Optional[Tuple["Container", Registration]]:
        if not reg.is_mapping:
            return None
        found = self._lookup(shape_of(reg.implementation), None)
        if found is None:
            return None
        _, target = found
        if target.slot == reg.slot or target.implementation is not reg.implementation:
            return None
        if reg.lifetime == LIFETIME_SINGLETON and target.lifetime != LIFETIME_SINGLETON:
            return None
        return found

    def _get(self, owner: "Container", reg: Registration, extra_hooks: Tuple[Callable[[Any], Any], ...]) -> Any:
        redirected = self._redirect(reg)
        if redirected is not None:
            target_owner, target = redirected
            LOGGER.debug("%s built through %s", display_name(reg.key), display_name(target.key))
            hooks = tuple(h for h in reg.post_build + extra_hooks if h not in target.post_build)
            if target.constructor is None and target.arguments is None:
                target = replace(target, constructor=reg.constructor, arguments=reg.arguments)
            return self._get(target_owner, target, hooks)

        if reg.lifetime == LIFETIME_SINGLETON:
            cached = owner._instances.get(reg.slot, _MISSING)
            if cached is not _MISSING:
                self.context.cache_hit_count += 1
                for o in self._observers:
                    o.on_cache_hit(reg.key)
                return cached

        t0 = time.perf_counter()
        instance = self._create(reg, reg.post_build + extra_hooks)
        took_ms = (time.perf_counter() - t0) * 1000
        if reg.lifetime == LIFETIME_SINGLETON:
            owner._instances[reg.slot] = instance
        self.context.resolve_count += 1
        for o in self._observers:
            o.on_resolve(reg.key, took_ms)
        return instance

    def _create(self, reg: Registration, hooks: Tuple[Callable[[Any], Any], ...]) -> Any:
        chain = _resolve_chain.get()
        for in_flight in chain:
            if in_flight.slot == reg.slot:
                raise ComponentCreationError(reg.key, CircularDependencyError([r.key for r in chain], reg.key))

        token = _resolve_chain.set(chain + (reg,))
        try:
            try:
                if reg.factory is not None:
                    instance = reg.factory(self)
                else:
                    instance = self._construct(reg)
                for hook in hooks:
                    hook(instance)
            except ConventionsError:
                raise
            except Exception as creation_error:
                raise ComponentCreationError(reg.key, creation_error) from creation_error
            return instance
        finally:
            _resolve_chain.reset(token)

    def _construct(self, reg: Registration) -> Any:
        ctor = reg.constructor or self.type_cache.primary_constructor(reg.implementation)
        if reg.arguments is not None:
            args = [self._argument(a) for a in reg.arguments]
        else:
            args = [self._parameter(p, reg.implementation) for p in ctor.parameters]
        return ctor.invoke(args)

    def _argument(self, value: Any) -> Any:
        if isinstance(value, Value):
            return value.value
        if isinstance(value, Dependency):
            return self.resolve(value.abstraction, value.name)
        if inspect.isclass(value) or inspect.isclass(get_origin(value)):
            return self.resolve(value)
        return value

    def _parameter(self, param: ParameterInfo, owner: type) -> Any:
        ann = param.annotation
        try:
            shape = shape_of(ann) if ann is not None else None
        except TypeError:
            shape = None
        if param.has_default:
            if shape is not None and self._lookup(shape, None) is not None:
                return self.resolve(shape)
            return param.default
        if shape is None:
            raise ResolutionFailedError(param.name, origin=owner)
        return self.resolve(shape)

    # scopes, extensions, observers

    def create_child_scope(self) -> "Container":
        """Return a child whose registrations shadow this container's."""
        return Container(self, observers=self._observers, type_cache=self._type_cache)

    def add_extension(self, extension: Any) -> ContainerExtension:
        ext = extension() if inspect.isclass(extension) else extension
        if not isinstance(ext, ContainerExtension):
            raise ConfigurationError(f"{extension!r} is not a ContainerExtension")
        self._extensions.append(ext)
        ext.initialize(self)
        return ext

    @property
    def extensions(self) -> Tuple[ContainerExtension, ...]:
        return tuple(self._extensions)

    def add_observer(self, observer: ContainerObserver) -> None:
        self._observers.append(observer)

    def stats(self) -> Dict[str, Any]:
        resolves = self.context.resolve_count
        hits = self.context.cache_hit_count
        total = resolves + hits
        return {
            "container_id": self.container_id,
            "uptime_seconds": time.time() - self.context.created_at,
            "total_resolves": resolves,
            "cache_hits": hits,
            "cache_hit_rate": (hits / total) if total > 0 else 0.0,
            "registered_components": len(self._registrations),
            "extensions": len(self._extensions),
        }

    def initialize(self, configure: Any, *, settings: Any = None) -> "Container":
        """Shorthand for :func:`pico_conventions.api.initialize` on this container."""
        from .api import initialize

        return initialize(self, configure, settings=settings)
