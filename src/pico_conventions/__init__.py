# pico_conventions/__init__.py
try:
    from importlib.metadata import version as _version

    __version__ = _version("pico-conventions")
except Exception:
    __version__ = "0.0.0"

from .type_shapes import ClosedGeneric, OpenGeneric, can_satisfy, display_name, shape_of
from .reflection import TypeCache, abstraction, constructor, default_type_cache, reset_type_cache
from .filters import ExactType, NamespacePrefix, PredicateFilter, TypeFilter, TypeFilterSet
from .conventions import (
    AddAllConvention,
    Convention,
    ExplicitInterfaceConvention,
    FirstInterfaceConvention,
    MappingPair,
)
from .scanner import AssemblyScanner, scan_types
from .entries import Dependency, RegistrationEntry, RegistrationPlan, Value
from .registry import Registry, RegistrationExpression
from .container import Container, ContainerExtension, ContainerObserver
from .adapter import ContainerAdapter
from .settings import EnvSource, FlatDictSource, Settings, YamlFileSource, load_settings
from .api import initialize
from .exceptions import (
    AmbiguousRegistrationError,
    CircularDependencyError,
    ComponentCreationError,
    ConfigurationError,
    ConstructorNotFoundError,
    ConventionsError,
    InvalidConventionOutputError,
    ResolutionFailedError,
)

__all__ = [
    "__version__",
    "OpenGeneric",
    "ClosedGeneric",
    "shape_of",
    "can_satisfy",
    "display_name",
    "TypeCache",
    "abstraction",
    "constructor",
    "default_type_cache",
    "reset_type_cache",
    "TypeFilter",
    "ExactType",
    "NamespacePrefix",
    "PredicateFilter",
    "TypeFilterSet",
    "Convention",
    "MappingPair",
    "FirstInterfaceConvention",
    "ExplicitInterfaceConvention",
    "AddAllConvention",
    "AssemblyScanner",
    "scan_types",
    "Value",
    "Dependency",
    "RegistrationEntry",
    "RegistrationPlan",
    "Registry",
    "RegistrationExpression",
    "Container",
    "ContainerExtension",
    "ContainerObserver",
    "ContainerAdapter",
    "Settings",
    "EnvSource",
    "FlatDictSource",
    "YamlFileSource",
    "load_settings",
    "initialize",
    "ConventionsError",
    "AmbiguousRegistrationError",
    "ConstructorNotFoundError",
    "ResolutionFailedError",
    "InvalidConventionOutputError",
    "ComponentCreationError",
    "CircularDependencyError",
    "ConfigurationError",
]
