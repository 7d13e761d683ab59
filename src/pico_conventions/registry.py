"""The registry builder.

A :class:`Registry` accumulates declarations (explicit registrations,
scans, lifetime and constructor configuration, post-build hooks and
extensions) and turns them into a :class:`~pico_conventions.entries.RegistrationPlan`
with :meth:`Registry.build`. Nothing touches a container until the plan
is applied.

Registries are usually subclassed and populated in ``__init__``::

    class ServicesRegistry(Registry):
        def __init__(self):
            super().__init__()
            self.register(IFooService, FooService).as_singleton()
            self.scan(lambda s: s.module_containing(FooService)
                                 .with_convention(FirstInterfaceConvention))
"""

import inspect
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .constants import (
    LIFETIME_SINGLETON,
    LIFETIME_TRANSIENT,
    LOGGER,
    ORIGIN_IMPLICIT,
    ORIGIN_SCANNED,
)
from .container import ContainerExtension
from .conventions import MappingPair
from .entries import RegistrationEntry, RegistrationPlan
from .exceptions import AmbiguousRegistrationError, ConfigurationError
from .reflection import TypeCache, unwrap_optional
from .scanner import AssemblyScanner
from .settings import Settings
from .type_shapes import can_satisfy, display_name, implements, is_concrete, shape_of

KeyT = Tuple[Any, Optional[str], Any]


class RegistrationExpression:
    """Handle on one explicit registration.

    Holds the registry and the entry's position rather than the entry
    itself; modifiers replace the stored entry.
    """

    def __init__(self, registry: "Registry", index: int) -> None:
        self._registry = registry
        self._index = index

    @property
    def entry(self) -> RegistrationEntry:
        return self._registry._items[self._index]

    def as_singleton(self) -> "RegistrationExpression":
        self._registry._update(self._index, lifetime=LIFETIME_SINGLETON)
        return self

    def as_transient(self) -> "RegistrationExpression":
        self._registry._update(self._index, lifetime=LIFETIME_TRANSIENT)
        return self

    def with_name(self, name: str) -> "RegistrationExpression":
        self._registry._update(self._index, name=name)
        return self


class Registry:
    """Mutable accumulator of registration declarations.

    Args:
        settings: Scan defaults; ``Settings()`` when omitted.
        type_cache: Reflection cache handed to scanners; the process default
            when omitted.
    """

    def __init__(self, settings: Optional[Settings] = None, *, type_cache: Optional[TypeCache] = None) -> None:
        self.settings = settings or Settings()
        self._type_cache = type_cache
        self._items: List[Union[RegistrationEntry, AssemblyScanner]] = []
        self._singletons: List[type] = []
        self._ctor_args: Dict[type, Tuple[Any, ...]] = {}
        self._ctor_selections: Dict[type, Tuple[Any, ...]] = {}
        self._build_up: List[Tuple[Any, Callable[[Any], Any]]] = []
        self._extensions: List[Any] = []

    def _update(self, index: int, **changes: Any) -> None:
        self._items[index] = replace(self._items[index], **changes)

    # explicit registrations

    def register(self, abstraction: Any, implementation: Any = None, *, factory: Optional[Callable[[Any], Any]] = None) -> RegistrationExpression:
        """Register *implementation* (a class) or *factory* for *abstraction*.

        A non-class callable passed as *implementation* is taken as a factory
        receiving the container. The entry starts transient and unnamed.
        """
        if implementation is not None and not inspect.isclass(implementation) and callable(implementation):
            implementation, factory = None, implementation
        if implementation is None and factory is None:
            raise ConfigurationError(f"register({display_name(abstraction)}) needs an implementation or a factory")
        if implementation is not None and factory is not None:
            raise ConfigurationError(f"register({display_name(abstraction)}) takes an implementation or a factory, not both")
        entry = RegistrationEntry(shape_of(abstraction), implementation=implementation, factory=factory)
        self._items.append(entry)
        return RegistrationExpression(self, len(self._items) - 1)

    def register_factory(self, abstraction: Any, factory: Callable[[Any], Any]) -> RegistrationExpression:
        return self.register(abstraction, factory=factory)

    def make_singleton(self, cls: type) -> "Registry":
        """Make every entry built from *cls* a singleton.

        Applies to entries declared or scanned before or after this call.
        With no such entry, *cls* is registered as its own singleton; in a
        child scope that overrides how the parent's mappings to *cls* are
        built, without touching the parent.
        """
        if cls not in self._singletons:
            self._singletons.append(cls)
        return self

    def configure_ctor_args_for(self, cls: type, *args: Any) -> "Registry":
        """Call the constructor of *cls* taking exactly ``len(args)`` parameters.

        Classes, generic aliases and :class:`~pico_conventions.entries.Dependency`
        values are resolved from the container; :class:`~pico_conventions.entries.Value`
        and any other object are passed as they are.
        """
        self._ctor_args[cls] = tuple(args)
        return self

    def select_constructor(self, cls: type, *param_types: Any) -> "Registry":
        """Build *cls* with the constructor whose parameter types are exactly
        *param_types*; none selects the zero-parameter constructor."""
        self._ctor_selections[cls] = tuple(unwrap_optional(t) for t in param_types)
        return self

    def after_build_up(self, target: Any, action: Callable[[Any], Any]) -> "Registry":
        """Run *action* on each new instance of the entries for *target*.

        *target* matches entries registered under it (every name, every
        collection member) and entries whose implementation subclasses it.
        """
        self._build_up.append((target, action))
        return self

    # scanning and composition

    def scan(self, configure: Callable[[AssemblyScanner], Any]) -> "Registry":
        """Record a scan pass configured by *configure*.

        The scan runs when the plan is built, so ``make_singleton`` and
        constructor configuration reach scanned entries whatever the order
        of calls.
        """
        scanner = AssemblyScanner(cache=self._type_cache, settings=self.settings)
        configure(scanner)
        self._items.append(scanner)
        return self

    def add_extension(self, extension: Any) -> "Registry":
        ok = isinstance(extension, ContainerExtension) or (inspect.isclass(extension) and issubclass(extension, ContainerExtension))
        if not ok:
            raise ConfigurationError(f"{extension!r} is not a ContainerExtension")
        self._extensions.append(extension)
        return self

    def add_registry(self, registry: Any) -> "Registry":
        """Merge the declarations of another registry (instance or subclass)."""
        if inspect.isclass(registry):
            registry = registry()
        if not isinstance(registry, Registry):
            raise ConfigurationError(f"{registry!r} is not a Registry")
        self._items.extend(registry._items)
        for cls in registry._singletons:
            self.make_singleton(cls)
        self._ctor_args.update(registry._ctor_args)
        self._ctor_selections.update(registry._ctor_selections)
        self._build_up.extend(registry._build_up)
        self._extensions.extend(registry._extensions)
        return self

    # plan

    def build(self) -> RegistrationPlan:
        """Run the recorded scans and resolve every declaration into a plan.

        Raises:
            AmbiguousRegistrationError: Two scan passes produced different
                implementations for the same key.
            InvalidConventionOutputError: A convention produced an invalid pair.
        """
        merged: Dict[KeyT, RegistrationEntry] = {}
        scan_pass = 0
        for item in self._items:
            if isinstance(item, RegistrationEntry):
                self._merge(merged, item)
                continue
            scan_pass += 1
            produced: Dict[KeyT, RegistrationEntry] = {}
            for pair in item.scan():
                self._merge(produced, self._scanned_entry(pair, scan_pass, item.allows_duplicates))
            for entry in produced.values():
                self._merge(merged, entry)

        entries = list(merged.values())
        self._apply_singletons(entries)
        self._apply_constructors(entries)
        self._apply_build_up(entries)
        LOGGER.debug("Built registration plan: %d entries, %d scan pass(es)", len(entries), scan_pass)
        return RegistrationPlan(tuple(entries), tuple(self._extensions))

    @staticmethod
    def _scanned_entry(pair: MappingPair, scan_pass: int, allow_duplicates: bool) -> RegistrationEntry:
        return RegistrationEntry(
            pair.abstraction,
            implementation=pair.implementation,
            collection=pair.collection,
            origin=ORIGIN_SCANNED,
            scan_pass=scan_pass,
            allow_duplicates=allow_duplicates,
        )

    @staticmethod
    def _merge(merged: Dict[KeyT, RegistrationEntry], entry: RegistrationEntry) -> None:
        key = entry.key
        existing = merged.get(key)
        if existing is None:
            merged[key] = entry
            return
        if entry.explicit:
            LOGGER.debug("Explicit registration overrides %s", existing.describe())
            merged[key] = entry
            return
        if existing.explicit:
            LOGGER.debug("Scanned %s ignored: explicit registration wins", entry.describe())
            return
        if existing.implementation is entry.implementation:
            return
        if existing.scan_pass == entry.scan_pass or entry.allow_duplicates:
            LOGGER.debug("Scanned %s replaces %s", entry.describe(), existing.describe())
            merged[key] = entry
            return
        raise AmbiguousRegistrationError(
            entry.abstraction,
            entry.name,
            [existing.implementation, entry.implementation],
            reason=f"scan passes {existing.scan_pass} and {entry.scan_pass}",
        )

    @staticmethod
    def _built_from(entries: List[RegistrationEntry], cls: type) -> List[int]:
        return [i for i, e in enumerate(entries) if e.implementation is cls]

    @staticmethod
    def _implicit(entries: List[RegistrationEntry], cls: type, **fields: Any) -> None:
        entries.append(RegistrationEntry(shape_of(cls), implementation=cls, origin=ORIGIN_IMPLICIT, **fields))

    def _apply_singletons(self, entries: List[RegistrationEntry]) -> None:
        for cls in self._singletons:
            idx = self._built_from(entries, cls)
            for i in idx:
                entries[i] = replace(entries[i], lifetime=LIFETIME_SINGLETON)
            if not idx:
                self._implicit(entries, cls, lifetime=LIFETIME_SINGLETON)

    def _apply_constructors(self, entries: List[RegistrationEntry]) -> None:
        for attr, configured in (("ctor_args", self._ctor_args), ("constructor", self._ctor_selections)):
            for cls, value in configured.items():
                idx = self._built_from(entries, cls)
                for i in idx:
                    entries[i] = replace(entries[i], **{attr: value})
                if not idx:
                    self._implicit(entries, cls, **{attr: value})

    def _apply_build_up(self, entries: List[RegistrationEntry]) -> None:
        for target, action in self._build_up:
            shape = shape_of(target)
            idx = [
                i
                for i, e in enumerate(entries)
                if can_satisfy(e.abstraction, shape) or (e.implementation is not None and implements(e.implementation, target))
            ]
            for i in idx:
                entries[i] = replace(entries[i], post_build=entries[i].post_build + (action,))
            if idx:
                continue
            if is_concrete(target):
                self._implicit(entries, target, post_build=(action,))
            else:
                LOGGER.warning("after_build_up(%s) matched no registration", display_name(target))
