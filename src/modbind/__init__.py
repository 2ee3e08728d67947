"""Module-based dependency injection.

This package composes named, lazily constructed services from module
declarations: plain mappings of `name -> (type, definition)` where the type is
"value", "factory" or "type".

Exports:
- `Injector`: Resolves services on demand, one instance per name, and supports
  child injectors, private modules and ordered module initialization.
- `AsyncInjector`: asyncio variant whose factories may be coroutines.
- `Module`: Fluent builder for module declarations.
- `annotate`, `inject`, `scope`: Declare dependency names and scope tags on
  factories and types.
"""

from ._annotation import (
    KEYED,
    Keyed,
    NameProvider,
    Positional,
    annotate,
    declared_only,
    infer_dependencies,
    inject,
    scope,
)
from ._async_injector import AsyncInjector
from ._errors import (
    CircularDependencyError,
    InitializationError,
    InvalidCallableError,
    NoProviderError,
    NoProviderForScopeError,
    ResolutionError,
    UnsupportedFeatureError,
)
from ._injector import InitState, Injector, Provider, ProviderKind
from ._module import Module


__all__ = [
    "KEYED",
    "AsyncInjector",
    "CircularDependencyError",
    "InitState",
    "InitializationError",
    "Injector",
    "InvalidCallableError",
    "Keyed",
    "Module",
    "NameProvider",
    "NoProviderError",
    "NoProviderForScopeError",
    "Positional",
    "Provider",
    "ProviderKind",
    "ResolutionError",
    "UnsupportedFeatureError",
    "annotate",
    "declared_only",
    "infer_dependencies",
    "inject",
    "scope",
]
