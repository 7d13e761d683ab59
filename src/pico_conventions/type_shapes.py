"""Type descriptors used as registration keys.

A registration key is a *shape*: either a plain class, an
:class:`OpenGeneric` (a generic definition whose parameters are still
unbound, e.g. ``Handler`` or ``Handler[T]``) or a :class:`ClosedGeneric`
(a definition applied to arguments, e.g. ``Handler[Message]``). Closed
arguments may still contain type variables; those act as wildcards bound
consistently across one match.

:func:`can_satisfy` is the structural matcher the container uses when a
request has no exact registration.
"""

import inspect
from abc import ABC
from dataclasses import dataclass
from typing import Any, Dict, Generic, Protocol, Tuple, TypeVar, Union, get_args, get_origin

from .constants import ABSTRACTION_FLAG

MARKER_BASES = (object, Generic, ABC, Protocol)


@dataclass(frozen=True)
class OpenGeneric:
    """A generic definition with all of its parameters unbound."""

    definition: type
    arity: int


@dataclass(frozen=True)
class ClosedGeneric:
    """A generic definition applied to concrete (or partially bound) arguments."""

    definition: type
    arguments: Tuple[Any, ...]


Shape = Union[type, OpenGeneric, ClosedGeneric]

_UNBOUND = object()


def _parameters(cls: type) -> Tuple[Any, ...]:
    params = getattr(cls, "__parameters__", ())
    return params if isinstance(params, tuple) else ()


def shape_of(tp: Any) -> Shape:
    """Normalise a class, generic alias or existing shape into a hashable key.

    Raises:
        TypeError: If *tp* cannot act as a registration key (``Optional[...]``,
            strings, instances).
    """
    if isinstance(tp, (OpenGeneric, ClosedGeneric)):
        return tp
    origin = get_origin(tp)
    if origin is not None and inspect.isclass(origin):
        args = get_args(tp)
        if args and all(isinstance(a, TypeVar) for a in args) and len(set(args)) == len(args):
            return OpenGeneric(origin, len(args))
        return ClosedGeneric(origin, tuple(args))
    if inspect.isclass(tp):
        params = _parameters(tp)
        if params:
            return OpenGeneric(tp, len(params))
        return tp
    raise TypeError(f"Cannot use {tp!r} as a registration key")


def definition_of(shape: Shape) -> type:
    if isinstance(shape, (OpenGeneric, ClosedGeneric)):
        return shape.definition
    return shape


def _arity(shape: Shape) -> int:
    if isinstance(shape, OpenGeneric):
        return shape.arity
    if isinstance(shape, ClosedGeneric):
        return len(shape.arguments)
    return 0


def _match_argument(requested: Any, registered: Any, bindings: Dict[Any, Any]) -> bool:
    if isinstance(registered, TypeVar):
        bound = bindings.get(registered, _UNBOUND)
        if bound is _UNBOUND:
            bindings[registered] = requested
            return True
        return bound == requested
    if requested == registered:
        return True
    req_origin, reg_origin = get_origin(requested), get_origin(registered)
    if req_origin is None or reg_origin is None or req_origin is not reg_origin:
        return False
    req_args, reg_args = get_args(requested), get_args(registered)
    if len(req_args) != len(reg_args):
        return False
    return all(_match_argument(a, b, bindings) for a, b in zip(req_args, reg_args))


def can_satisfy(requested: Any, registered: Any) -> bool:
    """Tell whether a registration keyed by *registered* may serve *requested*.

    - equal shapes always match;
    - an open registration serves any request on the same definition and arity;
    - an open request accepts any registration on the same definition;
    - closed against closed matches argument by argument, type variables in
      the registration binding to whatever the request supplies.
    """
    requested = shape_of(requested)
    registered = shape_of(registered)
    if requested == registered:
        return True
    if not isinstance(requested, (OpenGeneric, ClosedGeneric)):
        return False
    if not isinstance(registered, (OpenGeneric, ClosedGeneric)):
        return False
    if requested.definition is not registered.definition or _arity(requested) != _arity(registered):
        return False
    if isinstance(registered, OpenGeneric) or isinstance(requested, OpenGeneric):
        return True
    bindings: Dict[Any, Any] = {}
    return all(_match_argument(a, b, bindings) for a, b in zip(requested.arguments, registered.arguments))


def is_marker(cls: Any) -> bool:
    return any(cls is m for m in MARKER_BASES)


def is_abstraction(cls: Any) -> bool:
    """An abstraction declares ``ABC`` or ``Protocol`` directly, has abstract
    methods, or was marked with ``@abstraction``."""
    if not inspect.isclass(cls):
        return False
    if is_marker(cls):
        return True
    own = vars(cls)
    if own.get(ABSTRACTION_FLAG, False) or own.get("_is_protocol", False):
        return True
    if ABC in cls.__bases__:
        return True
    return inspect.isabstract(cls)


def is_concrete(cls: Any) -> bool:
    if not inspect.isclass(cls) or is_abstraction(cls):
        return False
    return cls.__module__ != "builtins"


def declared_bases(cls: type) -> Tuple[Any, ...]:
    """Bases as written in the class statement, generic arguments included."""
    return tuple(vars(cls).get("__orig_bases__", cls.__bases__))


def declared_interfaces(cls: type) -> Tuple[Shape, ...]:
    """Abstraction shapes among the declared bases, in declaration order."""
    out = []
    for base in declared_bases(cls):
        origin = get_origin(base) or base
        if not inspect.isclass(origin) or is_marker(origin):
            continue
        if not is_abstraction(origin):
            continue
        out.append(shape_of(base))
    return tuple(out)


def _ancestry_shapes(cls: type):
    for klass in cls.__mro__:
        for base in declared_bases(klass):
            origin = get_origin(base) or base
            if inspect.isclass(origin) and not is_marker(origin):
                yield shape_of(base)


def matching_base(cls: type, abstraction: Any):
    """Return the most specific shape through which *cls* implements *abstraction*.

    For a plain abstraction this is the abstraction itself. For a generic one
    it is the declared base found in the class hierarchy, so that
    ``Handler`` matched against ``class H(Handler[Message])`` yields
    ``Handler[Message]``. Returns ``None`` when *cls* does not implement it.
    """
    shape = shape_of(abstraction)
    if inspect.isclass(shape):
        if shape in cls.__mro__:
            return shape
        try:
            return shape if issubclass(cls, shape) else None
        except TypeError:
            return None
    for base_shape in _ancestry_shapes(cls):
        if can_satisfy(base_shape, shape):
            return base_shape
    return None


def implements(cls: type, abstraction: Any) -> bool:
    return matching_base(cls, abstraction) is not None


def _argument_name(arg: Any) -> str:
    if isinstance(arg, TypeVar):
        return arg.__name__
    if inspect.isclass(arg) and get_origin(arg) is None:
        return arg.__name__
    return repr(arg).replace("typing.", "")


def display_name(key: Any) -> str:
    if isinstance(key, OpenGeneric):
        params = _parameters(key.definition)
        names = [_argument_name(p) for p in params] if len(params) == key.arity else ["?"] * key.arity
        return f"{key.definition.__name__}[{', '.join(names)}]"
    if isinstance(key, ClosedGeneric):
        return f"{key.definition.__name__}[{', '.join(_argument_name(a) for a in key.arguments)}]"
    if get_origin(key) is not None:
        return _argument_name(key)
    return getattr(key, "__name__", str(key))
