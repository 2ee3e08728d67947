"""Dependency declarations for callables.

A callable declares the names it depends on either explicitly (`annotate`,
`@inject` or the list form `["a", "b", fn]`) or, failing that, through a
`NameProvider` adapter. The default adapter reads the names from the
callable's signature.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, Union


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    F = TypeVar("F", bound=Callable[..., Any])

# Leading marker in a name list selecting the keyed calling convention.
KEYED = "**"


@dataclass(frozen=True)
class Positional:
    """Resolved dependencies are passed in order as positional arguments."""

    names: tuple[str, ...] = ()


@dataclass(frozen=True)
class Keyed:
    """Resolved dependencies are passed as keyword arguments.

    Names that cannot be resolved are left out, so parameter defaults apply.
    """

    names: tuple[str, ...] = ()


Dependencies = Union[Positional, Keyed]


class NameProvider(Protocol):
    def __call__(self, fn: Callable[..., Any], /) -> Dependencies: ...


def from_names(names: Iterable[str]) -> Dependencies:
    names = tuple(names)
    if names and names[0] == KEYED:
        return Keyed(names[1:])
    return Positional(names)


def annotate(*args: Any) -> Any:
    """Attach dependency names to the last argument and return it.

    Example:
      annotate("db", "config", make_repo)
      annotate(["db", "config", make_repo])

    """
    if len(args) == 1 and isinstance(args[0], list):
        args = tuple(args[0])

    if not args:
        msg = "annotate() needs a callable as its last argument"
        raise TypeError(msg)

    *names, fn = args
    fn.__inject__ = list(names)
    return fn


def inject(*names: str) -> Callable[[F], F]:
    """Decorator form of `annotate`."""

    def decorator(fn: F) -> F:
        return annotate(*names, fn)

    return decorator


def scope(*tags: str) -> Callable[[F], F]:
    """Tag a factory or type so `create_child(..., force_new=[tag])` rebuilds it."""

    def decorator(fn: F) -> F:
        fn.__scope__ = tuple(tags)
        return fn

    return decorator


def scopes_of(definition: Any) -> tuple[str, ...]:
    return tuple(getattr(definition, "__scope__", ()))


def unwrap(definition: Any) -> Any:
    """Turn the list form `[*names, fn]` into an annotated `fn`."""
    if isinstance(definition, list):
        return annotate(*definition)
    return definition


def infer_dependencies(fn: Callable[..., Any]) -> Dependencies:
    """Read dependency names from the signature of `fn`.

    Positional parameters map to `Positional`. A callable whose parameters are
    all keyword-only maps to `Keyed`, which lets those parameters keep their
    defaults when nothing provides them. `*args` and `**kwargs` are ignored.
    """
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        logger.warning("Cannot read a signature from %r; assuming no dependencies", fn)
        return Positional()

    positional: list[str] = []
    keyword: list[str] = []
    for p in sig.parameters.values():
        if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD):
            positional.append(p.name)
        elif p.kind is p.KEYWORD_ONLY:
            keyword.append(p.name)

    if keyword and not positional:
        return Keyed(tuple(keyword))

    return Positional(tuple(positional))


def declared_only(fn: Callable[..., Any]) -> Dependencies:  # noqa: ARG001
    """Adapter for injectors that never inspect signatures."""
    return Positional()


def dependencies_of(fn: Callable[..., Any], name_provider: NameProvider) -> Dependencies:
    names = getattr(fn, "__inject__", None)
    if names is not None:
        return from_names(names)
    return name_provider(fn)
