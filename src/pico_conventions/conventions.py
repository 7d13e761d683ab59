"""Mapping conventions: rules turning discovered classes into
``(abstraction, implementation)`` pairs."""

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from .exceptions import ConfigurationError
from .reflection import TypeCache, default_type_cache
from .type_shapes import Shape, display_name, is_concrete, matching_base, shape_of


@dataclass(frozen=True)
class MappingPair:
    """One discovered mapping.

    Attributes:
        abstraction: The shape the implementation is registered under.
        implementation: The concrete class.
        collection: ``True`` when the pair joins a multi-registration
            reachable through ``resolve_all`` rather than the default slot.
    """

    abstraction: Shape
    implementation: type
    collection: bool = False

    def __repr__(self) -> str:
        kind = "collection" if self.collection else "default"
        return f"MappingPair({display_name(self.abstraction)} -> {self.implementation.__name__}, {kind})"


class Convention:
    """Capability interface for mapping strategies.

    :meth:`apply` receives the filtered candidates in scan order and must
    preserve that order in its output.
    """

    def apply(self, candidates: Sequence[type], cache: Optional[TypeCache] = None) -> List[MappingPair]:
        raise NotImplementedError


class FirstInterfaceConvention(Convention):
    """Map each concrete class to the first abstraction it declares.

    Marker bases (``ABC``, ``Protocol``, ``Generic``) never count. A class
    declaring ``Handler[Message]`` is registered under that closed form; a
    generic class forwarding its own parameters (``Repository(Store[T])``)
    is registered under the open form and serves every ``Store[X]``.
    """

    def apply(self, candidates: Sequence[type], cache: Optional[TypeCache] = None) -> List[MappingPair]:
        cache = cache or default_type_cache()
        pairs: List[MappingPair] = []
        for cls in candidates:
            if not is_concrete(cls):
                continue
            interfaces = cache.interfaces_of(cls)
            if interfaces:
                pairs.append(MappingPair(interfaces[0], cls))
        return pairs


class ExplicitInterfaceConvention(Convention):
    """Map every concrete candidate implementing one of the given
    abstractions, each as a collection member of that abstraction."""

    def __init__(self, *abstractions: Any) -> None:
        if not abstractions:
            raise ConfigurationError(f"{type(self).__name__} needs at least one abstraction")
        self.abstractions = tuple(shape_of(a) for a in abstractions)

    def apply(self, candidates: Sequence[type], cache: Optional[TypeCache] = None) -> List[MappingPair]:
        pairs: List[MappingPair] = []
        for abstraction in self.abstractions:
            for cls in candidates:
                if not is_concrete(cls):
                    continue
                base = matching_base(cls, abstraction)
                if base is not None:
                    pairs.append(MappingPair(base, cls, collection=True))
        return pairs

    def __repr__(self) -> str:
        return f"{type(self).__name__}({', '.join(display_name(a) for a in self.abstractions)})"


class AddAllConvention(ExplicitInterfaceConvention):
    """Register every implementation of one abstraction; ``resolve_all``
    on it returns one instance per implementation."""

    def __init__(self, abstraction: Any) -> None:
        super().__init__(abstraction)
