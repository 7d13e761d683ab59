"""Inclusion and exclusion rules deciding which classes a scan considers."""

from typing import Any, Callable, List


class TypeFilter:
    """A predicate over a class. Subclasses implement :meth:`matches`."""

    def matches(self, cls: type) -> bool:
        raise NotImplementedError

    def __call__(self, cls: type) -> bool:
        return self.matches(cls)


class ExactType(TypeFilter):
    def __init__(self, target: type) -> None:
        self.target = target

    def matches(self, cls: type) -> bool:
        return cls is self.target

    def __repr__(self) -> str:
        return f"ExactType({self.target.__name__})"


class NamespacePrefix(TypeFilter):
    """Matches classes whose module is *namespace* or lives below it.

    ``NamespacePrefix("app.other")`` matches ``app.other`` and
    ``app.other.sub`` but not ``app.otherwise``.
    """

    def __init__(self, namespace: str) -> None:
        self.namespace = namespace.rstrip(".")

    def matches(self, cls: type) -> bool:
        ns = getattr(cls, "__module__", "") or ""
        return ns == self.namespace or ns.startswith(self.namespace + ".")

    def __repr__(self) -> str:
        return f"NamespacePrefix({self.namespace!r})"


class PredicateFilter(TypeFilter):
    def __init__(self, predicate: Callable[[type], Any]) -> None:
        self.predicate = predicate

    def matches(self, cls: type) -> bool:
        return bool(self.predicate(cls))


def as_filter(rule: Any) -> TypeFilter:
    if isinstance(rule, TypeFilter):
        return rule
    if callable(rule):
        return PredicateFilter(rule)
    raise TypeError(f"Expected a TypeFilter or a callable, got {rule!r}")


class TypeFilterSet:
    """Composable inclusion/exclusion rules.

    A class is eligible when no inclusion rule is registered or at least one
    matches, and no exclusion rule matches. Inclusion rules add to a
    whitelist: registering the first one excludes everything it does not
    match.
    """

    def __init__(self) -> None:
        self._includes: List[TypeFilter] = []
        self._excludes: List[TypeFilter] = []

    def include(self, rule: Any) -> "TypeFilterSet":
        self._includes.append(as_filter(rule))
        return self

    def exclude(self, rule: Any) -> "TypeFilterSet":
        self._excludes.append(as_filter(rule))
        return self

    @property
    def includes(self) -> tuple:
        return tuple(self._includes)

    @property
    def excludes(self) -> tuple:
        return tuple(self._excludes)

    def is_eligible(self, cls: type) -> bool:
        if self._includes and not any(f.matches(cls) for f in self._includes):
            return False
        return not any(f.matches(cls) for f in self._excludes)

    __call__ = is_eligible
