from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Union


if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    ModuleLike = Union[Mapping[str, Any], "Module"]

INIT = "__init__"
DEPENDS = "__depends__"
MODULES = "__modules__"
EXPORTS = "__exports__"

RESERVED = frozenset({INIT, DEPENDS, MODULES, EXPORTS})

VALUE = "value"
FACTORY = "factory"
TYPE = "type"
PRIVATE = "private"


class Module:
    """Fluent builder for a module declaration.

    Example:
      module = Module().value("port", 8080).factory("server", make_server)
      injector = Injector([module])

    """

    def __init__(self) -> None:
        self._providers: list[tuple[str, str, Any]] = []
        self._initializers: list[str | Callable[..., Any]] = []
        self._depends: list[ModuleLike] = []

    def factory(self, name: str, factory: Any) -> Module:
        self._providers.append((name, FACTORY, factory))
        return self

    def value(self, name: str, value: Any) -> Module:
        self._providers.append((name, VALUE, value))
        return self

    def type(self, name: str, type_: Any) -> Module:
        self._providers.append((name, TYPE, type_))
        return self

    def init(self, *initializers: str | Callable[..., Any]) -> Module:
        self._initializers.extend(initializers)
        return self

    def depends(self, *modules: ModuleLike) -> Module:
        self._depends.extend(modules)
        return self

    def __iter__(self) -> Iterator[tuple[str, str, Any]]:
        return iter(self._providers)

    def declaration(self) -> dict[str, Any]:
        decl: dict[str, Any] = {name: (kind, definition) for name, kind, definition in self._providers}
        if self._initializers:
            decl[INIT] = list(self._initializers)
        if self._depends:
            decl[DEPENDS] = list(self._depends)
        return decl


def as_declaration(module: ModuleLike) -> Mapping[str, Any]:
    if isinstance(module, Module):
        return module.declaration()
    if isinstance(module, Mapping):
        return module
    msg = f"Expected a module declaration mapping or Module, got {type(module).__name__}"
    raise TypeError(msg)


def provider_entries(decl: Mapping[str, Any]) -> Iterator[tuple[str, Any]]:
    for name, entry in decl.items():
        if name not in RESERVED:
            yield name, entry


def public_part(decl: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of `decl` without reserved keys, used as the body of a private boundary."""
    return dict(provider_entries(decl))


def initializers_of(decl: Mapping[str, Any]) -> list[Any]:
    return list(decl.get(INIT) or ())


def depends_of(decl: Mapping[str, Any]) -> list[Any]:
    return list(decl.get(DEPENDS) or ())


def nested_of(decl: Mapping[str, Any]) -> list[Any]:
    return list(decl.get(MODULES) or ())


def exports_of(decl: Mapping[str, Any]) -> list[str] | None:
    exports = decl.get(EXPORTS)
    # an empty list still makes the module private
    return None if exports is None else list(exports)


def schedule(modules: Iterable[ModuleLike]) -> list[ModuleLike]:
    """Order modules so each comes after its `__depends__`.

    Modules are compared by identity; one reachable through several paths is
    scheduled once, at its first position.
    """
    scheduled: list[ModuleLike] = []
    seen: set[int] = set()

    def visit(module: ModuleLike) -> None:
        if id(module) in seen:
            return
        seen.add(id(module))

        for dependency in depends_of(as_declaration(module)):
            visit(dependency)

        scheduled.append(module)

    for module in modules:
        visit(module)

    return scheduled
