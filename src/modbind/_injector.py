from __future__ import annotations

import logging
import threading
import types
from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

from . import _module
from ._annotation import Keyed, dependencies_of, infer_dependencies, scopes_of, unwrap
from ._errors import (
    CircularDependencyError,
    InitializationError,
    InvalidCallableError,
    NoProviderError,
    NoProviderForScopeError,
)


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from ._annotation import Dependencies, NameProvider
    from ._module import ModuleLike

# Returned internally by non-strict lookups that found nothing.
_MISSING = object()


class ProviderKind(Enum):
    VALUE = "value"
    FACTORY = "factory"
    TYPE = "type"
    PRIVATE = "private"


class InitState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    INITIALIZED = "initialized"


@dataclass
class Provider:
    kind: ProviderKind
    definition: Any
    dependencies: Dependencies | None = None
    scopes: tuple[str, ...] = ()
    # injector a PRIVATE alias forwards to
    private_injector: Injector | None = None


class Injector:
    """Lazily builds named services from module declarations.

    - register values, factories and types by name
    - resolve on demand, one instance per name and injector
    - child injectors delegate misses to their parent
    - private modules expose only their `__exports__`
    - `init()` runs module initializers in dependency order.
    """

    def __init__(
        self,
        modules: Iterable[ModuleLike] = (),
        parent: Injector | None = None,
        *,
        name_provider: NameProvider = infer_dependencies,
    ) -> None:
        self._parent = parent
        self._name_provider = name_provider
        self._providers: dict[str, Provider] = {}
        self._instances: dict[str, Any] = {"injector": self}
        # one lock and one resolution stack per injector tree
        self._lock = parent._lock if parent is not None else threading.RLock()
        self._resolving: list[tuple[Injector, str]] = parent._resolving if parent is not None else []
        self._state = InitState.UNINITIALIZED

        with self._lock:
            self._initializers = [self._load_module(module) for module in _module.schedule(modules)]

    @property
    def parent(self) -> Injector | None:
        return self._parent

    @property
    def state(self) -> InitState:
        return self._state

    def get(self, name: str, strict: bool = True) -> Any:  # noqa: FBT001, FBT002
        """Return the service registered as `name`, building it on first use.

        With `strict=False` a name nobody provides resolves to None instead of
        raising `NoProviderError`.
        """
        value = self._get(name, strict=strict)
        return None if value is _MISSING else value

    def invoke(
        self,
        fn: Callable[..., Any] | list[Any],
        context: Any = None,
        locals: Mapping[str, Any] | None = None,  # noqa: A002
    ) -> Any:
        """Call `fn` with its dependencies resolved.

        Names found in `locals` win over registered services. When `context`
        is given, `fn` is bound to it and receives it as its first argument.
        """
        fn = as_callable(fn)
        if context is not None:
            fn = types.MethodType(fn, context)

        with self._lock:
            return self._call(fn, dependencies_of(fn, self._name_provider), locals)

    def instantiate(self, cls: type | list[Any]) -> Any:
        """Construct `cls` with its dependencies resolved."""
        cls = as_callable(cls)
        with self._lock:
            return self._call(cls, dependencies_of(cls, self._name_provider))

    def create_child(self, modules: Iterable[ModuleLike] = (), force_new: Sequence[str] = ()) -> Injector:
        """Create an injector that falls back to this one for names it does not provide.

        Providers visible here whose name or scope tag is listed in `force_new`
        are cloned into the child, so the child builds its own instances of them.
        """
        modules = list(modules)
        with self._lock:
            if force_new:
                modules.insert(0, self._forced_module(list(force_new)))
            child = Injector(modules, self, name_provider=self._name_provider)

        logger.debug("Created child injector (forced: %s)", list(force_new))
        return child

    def init(self) -> None:
        """Run every module initializer once, dependencies first."""
        with self._lock:
            if self._state is not InitState.UNINITIALIZED:
                return

            self._state = InitState.INITIALIZING
            try:
                for step in self._initializers:
                    step()
            finally:
                self._state = InitState.INITIALIZED

    # resolution

    def _get(self, name: str, *, strict: bool) -> Any:
        with self._lock:
            if "." in name and not self._has_provider(name):
                return self._get_path(name, strict=strict)

            if name in self._instances:
                return self._instances[name]

            provider = self._providers.get(name)
            if provider is not None:
                return self._create(name, provider)

            if self._parent is not None:
                return self._parent._get(name, strict=strict)  # noqa: SLF001

            if not strict:
                return _MISSING

            raise NoProviderError(name, [*self._path(), name])

    def _path(self) -> list[str]:
        return [name for _, name in self._resolving]

    def _create(self, name: str, provider: Provider) -> Any:
        private = provider.private_injector
        if private is not None and private._resolving is self._resolving:  # noqa: SLF001
            # the private injector puts `name` on the shared stack itself
            instance = private._get(provider.definition, strict=True)  # noqa: SLF001
            self._instances[name] = instance
            return instance

        if any(owner is self and pending == name for owner, pending in self._resolving):
            raise CircularDependencyError([*self._path(), name])

        depth = len(self._resolving)
        self._resolving.append((self, name))
        try:
            instance = self._build(provider)
        except BaseException:
            # unwinds to empty once the failure leaves the top-level call
            del self._resolving[depth:]
            raise

        self._resolving.pop()
        self._instances[name] = instance
        return instance

    def _build(self, provider: Provider) -> Any:
        if provider.kind is ProviderKind.VALUE:
            return provider.definition

        if provider.kind is ProviderKind.PRIVATE:
            return provider.private_injector.get(provider.definition)

        # factories and types are both plain calls in Python
        return self._call(provider.definition, provider.dependencies)

    def _get_path(self, name: str, *, strict: bool) -> Any:
        first, *segments = name.split(".")
        pivot = self._get(first, strict=strict)

        for segment in segments:
            if pivot is _MISSING:
                break

            if isinstance(pivot, Mapping):
                pivot = pivot.get(segment, _MISSING)
            else:
                pivot = getattr(pivot, segment, _MISSING)

            if pivot is _MISSING and strict:
                raise NoProviderError(name, [*self._path(), name])

        return pivot

    def _has_provider(self, name: str) -> bool:
        if name in self._providers:
            return True
        return self._parent is not None and self._parent._has_provider(name)  # noqa: SLF001

    def _call(
        self,
        fn: Callable[..., Any],
        dependencies: Dependencies,
        locals: Mapping[str, Any] | None = None,  # noqa: A002
    ) -> Any:
        locals = locals or {}  # noqa: A001

        if isinstance(dependencies, Keyed):
            kwargs = {}
            for dep in dependencies.names:
                value = locals[dep] if dep in locals else self._get(dep, strict=False)
                if value is not _MISSING:
                    kwargs[dep] = value
            return fn(**kwargs)

        args = [locals[dep] if dep in locals else self._get(dep, strict=True) for dep in dependencies.names]
        return fn(*args)

    # scopes

    def _visible_providers(self) -> dict[str, Provider]:
        visible = self._parent._visible_providers() if self._parent is not None else {}  # noqa: SLF001
        visible.update(self._providers)
        return visible

    def _forced_module(self, force_new: list[str]) -> dict[str, Provider]:
        cloned: dict[str, Provider] = {}
        matched: set[str] = set()
        # private injector (by identity) -> its fresh child for this call
        private_children: dict[int, Injector] = {}

        for name, provider in self._visible_providers().items():
            if name in force_new:
                if provider.kind is ProviderKind.PRIVATE:
                    owner = provider.private_injector
                    fresh = private_children.get(id(owner))
                    if fresh is None:
                        fresh = owner.create_child([], force_new)
                        private_children[id(owner)] = fresh
                    cloned[name] = replace(provider, private_injector=fresh)
                else:
                    cloned[name] = replace(provider)
                matched.add(name)

            if provider.kind in (ProviderKind.FACTORY, ProviderKind.TYPE):
                for tag in provider.scopes:
                    if tag in force_new:
                        cloned[name] = replace(provider)
                        matched.add(tag)

        for name in force_new:
            if name not in matched:
                raise NoProviderForScopeError(name)

        logger.debug("Forcing new instances of %s", list(cloned))
        return cloned

    # registration and initialization

    def _load_module(self, module: ModuleLike) -> Callable[[], None]:
        decl = _module.as_declaration(module)
        exports = _module.exports_of(decl)

        if exports is not None:
            body = [*_module.nested_of(decl), _module.public_part(decl)]
            private = Injector(body, self, name_provider=self._name_provider)
            for key in exports:
                self._providers[key] = Provider(ProviderKind.PRIVATE, key, private_injector=private)

            logger.debug("Registered private module exporting %s", exports)
            return self._initializer_step(_module.initializers_of(decl), private, nested=private)

        for name, entry in _module.provider_entries(decl):
            self._providers[name] = make_provider(name, entry, self._name_provider)

        logger.debug("Registered module providing %s", [name for name, _ in _module.provider_entries(decl)])
        return self._initializer_step(_module.initializers_of(decl), self)

    def _initializer_step(
        self,
        initializers: list[Any],
        injector: Injector,
        nested: Injector | None = None,
    ) -> Callable[[], None]:
        def step() -> None:
            if nested is not None:
                nested.init()

            for initializer in initializers:
                logger.debug("Running initializer %r", initializer)
                try:
                    if isinstance(initializer, str):
                        injector.get(initializer)
                    else:
                        injector.invoke(initializer)
                except Exception as exc:
                    raise InitializationError(initializer, [exc]) from exc

        return step


def as_callable(fn: Any) -> Callable[..., Any]:
    fn = unwrap(fn)
    if not callable(fn):
        raise InvalidCallableError(fn)
    return fn


def make_provider(name: str, entry: Any, name_provider: NameProvider) -> Provider:
    """Build the provider for one `name -> entry` pair of a module declaration.

    `entry` is `(type, definition)`, an `(injector, key, "private")` forwarding
    entry, or an existing `Provider` (registered as is).
    """
    if isinstance(entry, Provider):
        return entry

    if not isinstance(entry, (tuple, list)) or len(entry) < 2:  # noqa: PLR2004
        msg = f"Expected a (type, definition) pair for {name!r}, got {entry!r}"
        raise TypeError(msg)

    if len(entry) > 2 and entry[2] == _module.PRIVATE:  # noqa: PLR2004
        injector, key = entry[0], entry[1]
        return Provider(ProviderKind.PRIVATE, key, private_injector=injector)

    kind, definition = entry[0], entry[1]
    if kind not in (_module.VALUE, _module.FACTORY, _module.TYPE):
        msg = f"Unknown provider type {kind!r} for {name!r}; expected 'value', 'factory' or 'type'"
        raise ValueError(msg)

    if kind == _module.VALUE:
        return Provider(ProviderKind.VALUE, definition)

    definition = as_callable(definition)
    return Provider(
        ProviderKind(kind),
        definition,
        dependencies=dependencies_of(definition, name_provider),
        scopes=scopes_of(definition),
    )
