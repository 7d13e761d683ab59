"""Assembly scanning: enumerate classes, filter them, run conventions.

:func:`scan_types` is the pure orchestration step. :class:`AssemblyScanner`
is the fluent object handed to ``Registry.scan`` callbacks; it gathers
modules, filters and conventions and runs :func:`scan_types` when the
registry builds its plan.
"""

import importlib
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .constants import LOGGER, OVERLAP_ERROR, OVERLAP_MERGE, OVERLAP_POLICIES
from .conventions import Convention, MappingPair
from .exceptions import AmbiguousRegistrationError, ConfigurationError, InvalidConventionOutputError
from .filters import ExactType, NamespacePrefix, TypeFilterSet
from .reflection import TypeCache, default_type_cache, iter_modules
from .settings import Settings
from .type_shapes import is_concrete, matching_base


def _validate(convention: Convention, pair: MappingPair) -> None:
    if not isinstance(pair, MappingPair):
        raise InvalidConventionOutputError(convention, pair, pair, "convention must yield MappingPair values")
    if not is_concrete(pair.implementation):
        raise InvalidConventionOutputError(convention, pair.abstraction, pair.implementation, "implementation is not concrete")
    if matching_base(pair.implementation, pair.abstraction) is None:
        raise InvalidConventionOutputError(convention, pair.abstraction, pair.implementation, "implementation does not implement the abstraction")


def scan_types(
    modules: Iterable[Any],
    filters: Optional[TypeFilterSet] = None,
    conventions: Sequence[Convention] = (),
    *,
    overlap: str = OVERLAP_MERGE,
    cache: Optional[TypeCache] = None,
) -> List[MappingPair]:
    """Run *conventions* over the eligible classes of *modules*.

    Output order is convention order, then class order (module order as
    given, declaration order inside a module). A pair produced twice by the
    same convention is kept once. Identical pairs from different
    conventions are collapsed into the first one under ``"merge"`` (a
    collection copy makes the survivor a collection member) and raise
    :class:`AmbiguousRegistrationError` under ``"error"``.

    Raises:
        InvalidConventionOutputError: A convention mapped a class to an
            abstraction it does not implement, or a non-concrete class.
    """
    if overlap not in OVERLAP_POLICIES:
        raise ConfigurationError(f"Unknown overlap policy {overlap!r}")
    cache = cache or default_type_cache()
    filters = filters or TypeFilterSet()

    candidates = [cls for m in modules for cls in cache.types_in(m) if filters.is_eligible(cls)]

    pairs: List[MappingPair] = []
    seen: Dict[Tuple[Any, type], Tuple[int, Convention]] = {}
    for convention in conventions:
        for pair in convention.apply(candidates, cache):
            _validate(convention, pair)
            ident = (pair.abstraction, pair.implementation)
            first = seen.get(ident)
            if first is None:
                seen[ident] = (len(pairs), convention)
                pairs.append(pair)
                continue
            idx, owner = first
            if owner is convention:
                continue
            if overlap == OVERLAP_ERROR:
                raise AmbiguousRegistrationError(
                    pair.abstraction,
                    None,
                    [pair.implementation, pair.implementation],
                    reason=f"produced by both {type(owner).__name__} and {type(convention).__name__}",
                )
            if pair.collection and not pairs[idx].collection:
                pairs[idx] = replace(pairs[idx], collection=True)
            LOGGER.debug("Merged overlapping pair %r from %s", pair, type(convention).__name__)
    return pairs


class AssemblyScanner:
    """Fluent scan configuration.

    Every method returns the scanner so calls can be chained::

        registry.scan(lambda s: s.package_containing(FooService)
                                 .exclude_namespace("app.legacy")
                                 .with_convention(FirstInterfaceConvention))
    """

    def __init__(self, *, cache: Optional[TypeCache] = None, settings: Optional[Settings] = None) -> None:
        settings = settings or Settings()
        self.filters = TypeFilterSet()
        self._inputs: List[Tuple[Any, bool]] = []
        self._conventions: List[Convention] = []
        self._cache = cache
        self._overlap = settings.overlap
        self._allow_duplicates = settings.allow_duplicate_scans

    # modules

    def module(self, *modules: Any) -> "AssemblyScanner":
        self._inputs.extend((m, False) for m in modules)
        return self

    def module_containing(self, cls: type) -> "AssemblyScanner":
        return self.module(cls.__module__)

    def package(self, *packages: Any) -> "AssemblyScanner":
        self._inputs.extend((p, True) for p in packages)
        return self

    def package_containing(self, cls: type) -> "AssemblyScanner":
        mod = importlib.import_module(cls.__module__)
        if not hasattr(mod, "__path__") and "." in mod.__name__:
            mod = importlib.import_module(mod.__name__.rpartition(".")[0])
        return self.package(mod)

    def modules(self) -> List[Any]:
        out: List[Any] = []
        names = set()
        for target, recursive in self._inputs:
            for m in iter_modules(target, recursive=recursive):
                if m.__name__ not in names:
                    names.add(m.__name__)
                    out.append(m)
        return out

    # filters

    def include(self, predicate: Any) -> "AssemblyScanner":
        self.filters.include(predicate)
        return self

    def exclude(self, predicate: Any) -> "AssemblyScanner":
        self.filters.exclude(predicate)
        return self

    def include_type(self, cls: type) -> "AssemblyScanner":
        return self.include(ExactType(cls))

    def exclude_type(self, cls: type) -> "AssemblyScanner":
        return self.exclude(ExactType(cls))

    def include_namespace(self, namespace: str) -> "AssemblyScanner":
        return self.include(NamespacePrefix(namespace))

    def exclude_namespace(self, namespace: str) -> "AssemblyScanner":
        return self.exclude(NamespacePrefix(namespace))

    def include_namespace_containing(self, cls: type) -> "AssemblyScanner":
        return self.include_namespace(cls.__module__)

    def exclude_namespace_containing(self, cls: type) -> "AssemblyScanner":
        return self.exclude_namespace(cls.__module__)

    # conventions and policies

    def with_convention(self, convention: Any) -> "AssemblyScanner":
        """Add a convention instance, or a convention class built with no arguments."""
        if isinstance(convention, type):
            convention = convention()
        if not callable(getattr(convention, "apply", None)):
            raise ConfigurationError(f"{convention!r} is not a convention")
        self._conventions.append(convention)
        return self

    def allow_duplicates(self, allow: bool = True) -> "AssemblyScanner":
        """Let this scan replace entries produced by earlier scan passes."""
        self._allow_duplicates = bool(allow)
        return self

    def on_overlap(self, policy: str) -> "AssemblyScanner":
        if policy not in OVERLAP_POLICIES:
            raise ConfigurationError(f"Unknown overlap policy {policy!r}; expected one of {OVERLAP_POLICIES}")
        self._overlap = policy
        return self

    @property
    def conventions(self) -> Tuple[Convention, ...]:
        return tuple(self._conventions)

    @property
    def allows_duplicates(self) -> bool:
        return self._allow_duplicates

    def scan(self) -> List[MappingPair]:
        modules = self.modules()
        if not self._conventions:
            LOGGER.warning("Scan of %d module(s) has no conventions; nothing will be registered", len(modules))
        pairs = scan_types(modules, self.filters, self._conventions, overlap=self._overlap, cache=self._cache)
        LOGGER.debug(
            "Scanned %s: %d pair(s)",
            ", ".join(m.__name__ for m in modules) or "<no modules>",
            len(pairs),
        )
        return pairs
