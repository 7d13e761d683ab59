"""Exception hierarchy for pico-conventions.

All framework-specific exceptions inherit from :class:`ConventionsError`,
making it easy to catch any pico-conventions error with a single
``except ConventionsError`` clause.
"""

from typing import Any, Optional, Sequence


def _name(key: Any) -> str:
    from .type_shapes import display_name

    return display_name(key)


def _label(key: Any, name: Optional[str]) -> str:
    return _name(key) if name is None else f"{_name(key)} (name={name!r})"


class ConventionsError(Exception):
    """Base exception for all pico-conventions errors."""

    pass


class AmbiguousRegistrationError(ConventionsError):
    """Raised when two scanned registrations compete for the same key.

    Scanned entries from independent scan passes may not silently replace
    each other; an explicit ``register`` call or ``allow_duplicates()`` on the
    later scan resolves the conflict.

    Attributes:
        key: The abstraction shape both entries claim.
        name: The registration name (``None`` for the default registration).
        implementations: The competing implementations, earlier first.
    """

    def __init__(self, key: Any, name: Optional[str], implementations: Sequence[Any], reason: str = ""):
        impls = ", ".join(_name(i) for i in implementations)
        msg = f"Ambiguous registration for {_label(key, name)}: {impls}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)
        self.key = key
        self.name = name
        self.implementations = tuple(implementations)


class ConstructorNotFoundError(ConventionsError):
    """Raised at apply time when a configured constructor does not exist.

    Attributes:
        implementation: The class whose constructors were searched.
        requested: A human-readable description of what was asked for.
    """

    def __init__(self, implementation: Any, requested: str):
        super().__init__(f"No constructor of {_name(implementation)} matches {requested}")
        self.implementation = implementation
        self.requested = requested


class ResolutionFailedError(ConventionsError):
    """Raised when the container has no registration for a requested key.

    Attributes:
        key: The requested abstraction (or parameter name).
        name: The requested registration name.
        origin: The implementation whose construction needed the key.
    """

    def __init__(self, key: Any, name: Optional[str] = None, origin: Any = None):
        origin_name = _name(origin) if origin is not None else "caller"
        super().__init__(f"Resolution of {_label(key, name)} failed: no registration found (required by: '{origin_name}')")
        self.key = key
        self.name = name
        self.origin = origin


class InvalidConventionOutputError(ConventionsError):
    """Raised when a convention maps a class to an abstraction it does not satisfy.

    Attributes:
        convention: The convention that produced the pair.
        abstraction: The claimed abstraction shape.
        implementation: The offending class.
    """

    def __init__(self, convention: Any, abstraction: Any, implementation: Any, reason: str):
        conv = type(convention).__name__
        super().__init__(f"{conv} produced invalid mapping {_name(abstraction)} -> {_name(implementation)}: {reason}")
        self.convention = convention
        self.abstraction = abstraction
        self.implementation = implementation


class ComponentCreationError(ConventionsError):
    """Raised when a constructor, factory or post-build hook fails.

    Attributes:
        key: The resolution key whose creation failed.
        cause: The original exception.
    """

    def __init__(self, key: Any, cause: Exception):
        super().__init__(f"Failed to create instance for key: {_name(key)}; cause: {cause.__class__.__name__}: {cause}")
        self.key = key
        self.cause = cause


class CircularDependencyError(ConventionsError):
    """Raised when a key is requested while it is already being built.

    Attributes:
        chain: The keys being built, outermost first.
        current: The key requested again.
    """

    def __init__(self, chain: Sequence[Any], current: Any):
        path = " -> ".join(_name(k) for k in (*chain, current))
        super().__init__(f"Circular dependency detected: {path}")
        self.chain = tuple(chain)
        self.current = current


class ConfigurationError(ConventionsError):
    """Raised for invalid builder input or settings (unknown policy, bad source, bad extension)."""

    def __init__(self, msg: str):
        super().__init__(msg)
