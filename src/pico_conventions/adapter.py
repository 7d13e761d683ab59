"""Translation of a registration plan onto a :class:`~pico_conventions.container.Container`."""

import inspect
from typing import Any, Dict, List, Optional

from .container import Container, ContainerExtension
from .entries import RegistrationEntry, RegistrationPlan
from .exceptions import ConfigurationError, ConstructorNotFoundError
from .reflection import ConstructorInfo, TypeCache
from .type_shapes import display_name


def _signature(types) -> str:
    return "(" + ", ".join(display_name(t) for t in types) + ")"


class ContainerAdapter:
    """Applies plans to one container.

    Every entry is translated (constructors picked, arities checked) before
    the first registration is made, so a plan that fails leaves the
    container as it was.
    """

    def __init__(self, container: Container, type_cache: Optional[TypeCache] = None) -> None:
        self.container = container
        self._type_cache = type_cache

    @property
    def type_cache(self) -> TypeCache:
        return self._type_cache or self.container.type_cache

    def _select(self, entry: RegistrationEntry) -> Optional[ConstructorInfo]:
        impl = entry.implementation
        if impl is None:
            if entry.constructor is not None or entry.ctor_args is not None:
                raise ConfigurationError(f"Factory registration for {display_name(entry.abstraction)} cannot take constructor configuration")
            return None
        ctors = self.type_cache.constructors_of(impl)
        selected = None
        if entry.constructor is not None:
            selected = next((c for c in ctors if c.parameter_types == entry.constructor), None)
            if selected is None:
                raise ConstructorNotFoundError(impl, _signature(entry.constructor))
        if entry.ctor_args is not None:
            n = len(entry.ctor_args)
            if selected is None:
                selected = next((c for c in ctors if c.arity == n), None)
            if selected is None or selected.arity != n:
                raise ConstructorNotFoundError(impl, f"{n} argument(s)")
        return selected

    def _translate(self, entry: RegistrationEntry) -> Dict[str, Any]:
        return {
            "abstraction": entry.abstraction,
            "implementation": entry.implementation,
            "factory": entry.factory,
            "name": entry.name,
            "lifetime": entry.lifetime,
            "member": entry.key[2],
            "constructor": self._select(entry),
            "arguments": entry.ctor_args,
            "post_build": entry.post_build,
        }

    @staticmethod
    def _instantiate_extension(ext: Any) -> ContainerExtension:
        if isinstance(ext, ContainerExtension):
            return ext
        if inspect.isclass(ext) and issubclass(ext, ContainerExtension):
            return ext()
        raise ConfigurationError(f"{ext!r} is not a ContainerExtension")

    def apply(self, plan: RegistrationPlan) -> Container:
        """Register every entry of *plan*, then add its extensions.

        If an extension fails to initialize, the container is put back the
        way it was before the call and the error propagates.

        Raises:
            ConstructorNotFoundError: A selected constructor or argument
                count has no match; nothing is registered.
            ConfigurationError: An extension is not a ``ContainerExtension``.
        """
        prepared: List[Dict[str, Any]] = [self._translate(e) for e in plan]
        extensions = [self._instantiate_extension(x) for x in plan.extensions]

        checkpoint = self.container._checkpoint()
        try:
            for kwargs in prepared:
                self.container.register(**kwargs)
            for ext in extensions:
                self.container.add_extension(ext)
        except Exception:
            self.container._rollback(checkpoint)
            raise
        self.container.info(f"Applied registration plan: {len(prepared)} registration(s), {len(extensions)} extension(s)")
        return self.container
