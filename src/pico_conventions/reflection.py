"""Reflection facility over already-imported Python modules.

Provides the module iteration used by the scanner, the ``@abstraction`` and
``@constructor`` markers, the constructor model (:class:`ConstructorInfo`)
and :class:`TypeCache`, the process-scoped metadata cache keyed by module.
"""

import importlib
import inspect
import pkgutil
import typing
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple, Union, get_args, get_origin

from . import _state
from .constants import ABSTRACTION_FLAG, CONSTRUCTOR_FLAG, LOGGER
from .type_shapes import Shape, declared_interfaces, display_name


def abstraction(cls):
    """Mark a plain base class as an abstraction that conventions may map to."""
    setattr(cls, ABSTRACTION_FLAG, True)
    return cls


def constructor(fn):
    """Mark a ``classmethod`` or ``staticmethod`` as an alternate constructor.

    Works on either side of the ``@classmethod`` decorator.
    """
    target = fn.__func__ if isinstance(fn, (classmethod, staticmethod)) else fn
    setattr(target, CONSTRUCTOR_FLAG, True)
    return fn


def unwrap_optional(ann: Any) -> Any:
    if get_origin(ann) is Union:
        args = [a for a in get_args(ann) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return ann


@dataclass(frozen=True)
class ParameterInfo:
    """One positional constructor parameter.

    Attributes:
        name: Parameter name.
        annotation: The declared type with ``Optional`` removed, or ``None``.
        default: The default value, ``inspect.Parameter.empty`` when required.
    """

    name: str
    annotation: Any
    default: Any = inspect.Parameter.empty

    @property
    def has_default(self) -> bool:
        return self.default is not inspect.Parameter.empty


@dataclass(frozen=True)
class ConstructorInfo:
    """A way of building *owner*: ``__init__`` truncated to a parameter
    prefix, or a marked alternate constructor called by name."""

    owner: type
    method: Optional[str]
    parameters: Tuple[ParameterInfo, ...]

    @property
    def arity(self) -> int:
        return len(self.parameters)

    @property
    def parameter_types(self) -> Tuple[Any, ...]:
        return tuple(p.annotation for p in self.parameters)

    def invoke(self, args: Iterable[Any]) -> Any:
        target = self.owner if self.method is None else getattr(self.owner, self.method)
        return target(*args)

    def describe(self) -> str:
        head = self.owner.__name__ if self.method is None else f"{self.owner.__name__}.{self.method}"
        types = ", ".join(display_name(t) if t is not None else p.name for p, t in zip(self.parameters, self.parameter_types))
        return f"{head}({types})"


def _type_hints(fn: Callable[..., Any]) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(fn)
    except Exception:
        return dict(getattr(fn, "__annotations__", {}) or {})


def _positional_parameters(fn: Callable[..., Any], skip_first: bool) -> Tuple[ParameterInfo, ...]:
    try:
        sig = inspect.signature(fn)
    except (ValueError, TypeError):
        return ()
    hints = _type_hints(fn)
    out: List[ParameterInfo] = []
    params = list(sig.parameters.values())
    if skip_first and params:
        params = params[1:]
    for p in params:
        if p.kind not in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            continue
        ann = hints.get(p.name, p.annotation)
        ann = None if ann is inspect.Parameter.empty else unwrap_optional(ann)
        out.append(ParameterInfo(p.name, ann, p.default))
    return tuple(out)


def _alternate_constructors(cls: type) -> Iterable[ConstructorInfo]:
    for name, member in vars(cls).items():
        if not isinstance(member, (classmethod, staticmethod)):
            continue
        if not getattr(member.__func__, CONSTRUCTOR_FLAG, False):
            continue
        yield ConstructorInfo(cls, name, _positional_parameters(getattr(cls, name), skip_first=False))


def _scan_package(package) -> Iterable[Any]:
    for _, name, _ in pkgutil.walk_packages(package.__path__, package.__name__ + "."):
        yield importlib.import_module(name)


def iter_modules(inputs: Union[Any, Iterable[Any]], *, recursive: bool = False) -> Iterable[Any]:
    """Yield modules from module objects or dotted names, each once, in input order.

    With *recursive*, a package also yields every submodule below it.
    """
    seq = inputs if isinstance(inputs, Iterable) and not inspect.ismodule(inputs) and not isinstance(inputs, str) else [inputs]
    seen: Set[str] = set()
    for it in seq:
        mod = importlib.import_module(it) if isinstance(it, str) else it
        found = [mod]
        if recursive and hasattr(mod, "__path__"):
            found.extend(_scan_package(mod))
        for m in found:
            name = getattr(m, "__name__", None)
            if name and name not in seen:
                seen.add(name)
                yield m


class TypeCache:
    """Lazily populated reflection metadata.

    Class lists are keyed by module name; interface and constructor lookups
    by class. Nothing is invalidated automatically: a module mutated after its
    first scan needs :meth:`invalidate`.
    """

    def __init__(self) -> None:
        self._types: Dict[str, Tuple[type, ...]] = {}
        self._interfaces: Dict[type, Tuple[Shape, ...]] = {}
        self._constructors: Dict[type, Tuple[ConstructorInfo, ...]] = {}

    def types_in(self, module: Any) -> Tuple[type, ...]:
        """Classes defined in *module*, in declaration order."""
        name = module.__name__
        cached = self._types.get(name)
        if cached is not None:
            return cached
        seen: Set[int] = set()
        out: List[type] = []
        for obj in list(vars(module).values()):
            if inspect.isclass(obj) and obj.__module__ == name and id(obj) not in seen:
                seen.add(id(obj))
                out.append(obj)
        self._types[name] = tuple(out)
        LOGGER.debug("Indexed %d types in module '%s'", len(out), name)
        return self._types[name]

    def interfaces_of(self, cls: type) -> Tuple[Shape, ...]:
        cached = self._interfaces.get(cls)
        if cached is None:
            cached = self._interfaces[cls] = declared_interfaces(cls)
        return cached

    def constructors_of(self, cls: type) -> Tuple[ConstructorInfo, ...]:
        """``__init__`` once per reachable arity (shortest first), then marked
        alternate constructors in declaration order."""
        cached = self._constructors.get(cls)
        if cached is not None:
            return cached
        out: List[ConstructorInfo] = []
        if cls.__init__ is not object.__init__:
            params = _positional_parameters(cls.__init__, skip_first=True)
        else:
            params = ()
        required = sum(1 for p in params if not p.has_default)
        for n in range(required, len(params) + 1):
            out.append(ConstructorInfo(cls, None, params[:n]))
        out.extend(_alternate_constructors(cls))
        self._constructors[cls] = tuple(out)
        return self._constructors[cls]

    def primary_constructor(self, cls: type) -> ConstructorInfo:
        for ctor in reversed(self.constructors_of(cls)):
            if ctor.method is None:
                return ctor
        return ConstructorInfo(cls, None, ())

    def invalidate(self, module: Any) -> None:
        name = module if isinstance(module, str) else module.__name__
        for cls in self._types.pop(name, ()):
            self._interfaces.pop(cls, None)
            self._constructors.pop(cls, None)

    def reset(self) -> None:
        self._types.clear()
        self._interfaces.clear()
        self._constructors.clear()

    def __contains__(self, module: Any) -> bool:
        name = module if isinstance(module, str) else module.__name__
        return name in self._types


def default_type_cache() -> TypeCache:
    if _state._type_cache is None:
        _state._type_cache = TypeCache()
    return _state._type_cache


def reset_type_cache() -> None:
    """Drop every cached module index; the next scan re-reads the modules."""
    if _state._type_cache is not None:
        _state._type_cache.reset()
