import inspect
from typing import Any, Callable, Optional, Union

from .adapter import ContainerAdapter
from .container import Container
from .exceptions import ConfigurationError
from .registry import Registry
from .settings import EnvSource, Settings, load_settings

ConfigureT = Union[Callable[[Registry], Any], Registry, type]


def _registry_for(container: Container, configure: ConfigureT, settings: Settings) -> Registry:
    if isinstance(configure, Registry):
        return configure
    registry = Registry(settings, type_cache=container._type_cache)
    if inspect.isclass(configure) and issubclass(configure, Registry):
        return registry.add_registry(configure)
    if callable(configure):
        configure(registry)
        return registry
    raise ConfigurationError(f"Cannot configure a container with {configure!r}")


def initialize(container: Container, configure: ConfigureT, *, settings: Optional[Settings] = None) -> Container:
    """Build a registry, turn it into a plan and apply it to *container*.

    *configure* is a callable receiving a fresh :class:`Registry`, a
    ``Registry`` subclass (instantiated and merged) or a ready registry.
    Without *settings*, they are read from ``PICO_CONVENTIONS_*``
    environment variables.

    Example::

        container = initialize(Container(), lambda r: r.register(IFoo, Foo))
        container.resolve(IFoo)
    """
    settings = settings or load_settings(EnvSource())
    registry = _registry_for(container, configure, settings)
    plan = registry.build()
    return ContainerAdapter(container).apply(plan)
