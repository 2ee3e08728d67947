from __future__ import annotations

from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


def format_path(path: Iterable[str]) -> str:
    return " -> ".join(path)


class ResolutionError(RuntimeError):
    """Base class for failures while resolving a service.

    `path` holds the names being resolved, from the top-level request down to
    the point of failure.
    """

    def __init__(self, msg: str, path: Sequence[str] = ()) -> None:
        super().__init__(msg)
        self.msg = msg
        self.path = tuple(path)

    def __str__(self) -> str:
        if self.path:
            return f"{self.msg} (Resolving: {format_path(self.path)})"
        return self.msg


class NoProviderError(ResolutionError, LookupError):
    def __init__(self, name: str, path: Sequence[str] = ()) -> None:
        self.name = name
        super().__init__(f'No provider for "{name}"!', path)


class CircularDependencyError(ResolutionError):
    def __init__(self, path: Sequence[str]) -> None:
        super().__init__("Cannot resolve circular dependency!", path)


class NoProviderForScopeError(ResolutionError, LookupError):
    """Raised by `create_child` when a forced name or scope tag matches no provider."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f'No provider for "{name}". Cannot use provider from the parent!')


class InvalidCallableError(TypeError):
    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(f"Cannot invoke {value!r}. Expected a callable!")


class InitializationError(RuntimeError):
    """Aggregate failure raised by `Injector.init()`.

    `initializer` is the step that failed, `causes` the underlying errors,
    innermost last. The direct cause is also chained as `__cause__`.
    """

    def __init__(self, initializer: Any, causes: Sequence[BaseException]) -> None:
        self.initializer = initializer
        self.causes = tuple(causes)
        detail = "; ".join(str(c) for c in self.causes)
        super().__init__(f"Failed to initialize! ({initializer!r}: {detail})")


class UnsupportedFeatureError(TypeError):
    """Raised when a declaration or call needs a feature the injector lacks."""

    def __init__(self, feature: str, injector: str) -> None:
        self.feature = feature
        super().__init__(f"{feature} not supported by {injector}!")
