"""Registration entries: the declarative plan a registry produces.

This module defines :class:`RegistrationEntry` (one immutable
abstraction-to-implementation record), :class:`RegistrationPlan` (the
ordered entries plus extensions handed to the adapter) and the argument
placeholders :class:`Value` and :class:`Dependency` accepted by
``configure_ctor_args_for``.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional, Tuple

from .constants import LIFETIME_TRANSIENT, LIFETIMES, ORIGIN_EXPLICIT
from .exceptions import ConfigurationError
from .type_shapes import Shape, display_name, shape_of


@dataclass(frozen=True)
class Value:
    """A constructor argument passed verbatim, even when it is a class."""

    value: Any


@dataclass(frozen=True)
class Dependency:
    """A constructor argument resolved from the container, optionally by name."""

    abstraction: Any
    name: Optional[str] = None


@dataclass(frozen=True)
class RegistrationEntry:
    """Immutable description of one registration.

    Exactly one of *implementation* and *factory* is set. Entries are
    never mutated; builder modifiers replace them with
    :func:`dataclasses.replace`.

    Attributes:
        abstraction: The shape the entry is resolvable by.
        implementation: Class to construct, or ``None`` for factory entries.
        factory: ``Container -> instance`` callable, or ``None``.
        lifetime: ``"transient"`` or ``"singleton"``.
        name: Registration name; ``None`` is the default registration.
        collection: Member of a multi-registration (``resolve_all`` only).
        ctor_args: Positional constructor arguments, literal or placeholder.
        constructor: Exact constructor parameter types to use.
        post_build: Hooks run on every newly created instance.
        origin: ``"explicit"``, ``"scanned"`` or ``"implicit"``.
        scan_pass: 1-based scan pass number for scanned entries.
        allow_duplicates: Whether the producing scan may replace entries of
            earlier passes.
    """

    abstraction: Shape
    implementation: Optional[type] = None
    factory: Optional[Callable[[Any], Any]] = None
    lifetime: str = LIFETIME_TRANSIENT
    name: Optional[str] = None
    collection: bool = False
    ctor_args: Optional[Tuple[Any, ...]] = None
    constructor: Optional[Tuple[Any, ...]] = None
    post_build: Tuple[Callable[[Any], Any], ...] = field(default=(), compare=False)
    origin: str = ORIGIN_EXPLICIT
    scan_pass: Optional[int] = None
    allow_duplicates: bool = False

    def __post_init__(self) -> None:
        if (self.implementation is None) == (self.factory is None):
            raise ConfigurationError(f"Registration for {display_name(self.abstraction)} needs exactly one of implementation or factory")
        if self.lifetime not in LIFETIMES:
            raise ConfigurationError(f"Unknown lifetime {self.lifetime!r}; expected one of {LIFETIMES}")

    @property
    def key(self) -> Tuple[Any, Optional[str], Any]:
        """Identity used for overrides: ``(abstraction, name, member)``.

        ``member`` is the implementation for collection entries and ``None``
        otherwise, so default and named entries collide on
        ``(abstraction, name)`` alone.
        """
        member = (self.implementation or self.factory) if self.collection else None
        return (self.abstraction, self.name, member)

    @property
    def explicit(self) -> bool:
        return self.origin == ORIGIN_EXPLICIT

    def describe(self) -> str:
        target = self.implementation.__name__ if self.implementation is not None else "<factory>"
        parts = [f"{display_name(self.abstraction)} -> {target}", self.lifetime]
        if self.name is not None:
            parts.append(f"name={self.name!r}")
        if self.collection:
            parts.append("collection")
        return ", ".join(parts)


@dataclass(frozen=True)
class RegistrationPlan:
    """The final, ordered output of a registry build."""

    entries: Tuple[RegistrationEntry, ...]
    extensions: Tuple[Any, ...] = ()

    def __iter__(self) -> Iterator[RegistrationEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def find(self, abstraction: Any, name: Optional[str] = None) -> Tuple[RegistrationEntry, ...]:
        shape = shape_of(abstraction)
        return tuple(e for e in self.entries if e.abstraction == shape and e.name == name)
