"""asyncio flavour of `Injector`.

Factories may be coroutine functions. Dependencies of one provider are
resolved concurrently, and a service that is already being built is awaited
rather than built twice. Private modules and child injectors are not
supported here.
"""

from __future__ import annotations

import asyncio
import contextvars
import inspect
import logging
import types
from collections import Counter, defaultdict
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from . import _module
from ._annotation import Keyed, dependencies_of, infer_dependencies
from ._errors import CircularDependencyError, InitializationError, NoProviderError, UnsupportedFeatureError
from ._injector import _MISSING, InitState, Provider, ProviderKind, as_callable, make_provider


logger = logging.getLogger(__name__)

# injector whose initializers run in the current context
_initializing: contextvars.ContextVar[AsyncInjector | None] = contextvars.ContextVar("_initializing", default=None)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from ._annotation import Dependencies, NameProvider
    from ._module import ModuleLike


class AsyncInjector:
    def __init__(
        self,
        modules: Iterable[ModuleLike] = (),
        *,
        name_provider: NameProvider = infer_dependencies,
    ) -> None:
        self._name_provider = name_provider
        self._providers: dict[str, Provider] = {}
        self._instances: dict[str, Any] = {"injector": self}
        self._loading: dict[str, asyncio.Task[Any]] = {}
        # name -> names its construction is currently awaiting
        self._waiting: defaultdict[str, Counter[str]] = defaultdict(Counter)
        self._state = InitState.UNINITIALIZED
        self._initializers: list[Any] = []
        self._init_task: asyncio.Future[None] | None = None

        for module in _module.schedule(modules):
            self._load_module(module)

    @property
    def state(self) -> InitState:
        return self._state

    async def get(self, name: str, strict: bool = True) -> Any:  # noqa: FBT001, FBT002
        value = await self._get(name, strict=strict, path=())
        return None if value is _MISSING else value

    async def invoke(
        self,
        fn: Callable[..., Any] | list[Any],
        context: Any = None,
        locals: Mapping[str, Any] | None = None,  # noqa: A002
    ) -> Any:
        fn = as_callable(fn)
        if context is not None:
            fn = types.MethodType(fn, context)
        return await self._call(fn, dependencies_of(fn, self._name_provider), (), locals)

    async def instantiate(self, cls: type | list[Any]) -> Any:
        cls = as_callable(cls)
        return await self._call(cls, dependencies_of(cls, self._name_provider), ())

    def create_child(self, modules: Iterable[ModuleLike] = (), force_new: Sequence[str] = ()) -> AsyncInjector:  # noqa: ARG002
        feature = "Child injectors"
        raise UnsupportedFeatureError(feature, type(self).__name__)

    async def init(self) -> None:
        """Run every module initializer once, dependencies first.

        Concurrent callers wait for the same run. A call made from inside an
        initializer returns immediately.
        """
        if self._state is InitState.INITIALIZED or _initializing.get() is self:
            return

        if self._init_task is None:
            self._state = InitState.INITIALIZING
            self._init_task = asyncio.ensure_future(self._run_initializers())

        await self._init_task

    async def _run_initializers(self) -> None:
        _initializing.set(self)
        try:
            for initializer in self._initializers:
                logger.debug("Running initializer %r", initializer)
                try:
                    if isinstance(initializer, str):
                        await self.get(initializer)
                    else:
                        await self.invoke(initializer)
                except Exception as exc:
                    raise InitializationError(initializer, [exc]) from exc
        finally:
            self._state = InitState.INITIALIZED

    async def _get(self, name: str, *, strict: bool, path: tuple[str, ...]) -> Any:
        if "." in name and name not in self._providers:
            return await self._get_path(name, strict=strict, path=path)

        if name in self._instances:
            return self._instances[name]

        if name in path:
            raise CircularDependencyError([*path, name])

        if name not in self._loading:
            provider = self._providers.get(name)
            if provider is None:
                if not strict:
                    return _MISSING
                raise NoProviderError(name, [*path, name])

            self._loading[name] = asyncio.ensure_future(self._load(name, provider, (*path, name)))

        return await self._await_loading(name, path)

    async def _load(self, name: str, provider: Provider, path: tuple[str, ...]) -> Any:
        try:
            if provider.kind is ProviderKind.VALUE:
                instance = provider.definition
            else:
                instance = await self._call(provider.definition, provider.dependencies, path)
        finally:
            del self._loading[name]

        self._instances[name] = instance
        return instance

    async def _await_loading(self, name: str, path: tuple[str, ...]) -> Any:
        task = self._loading[name]
        if not path:
            return await task

        requester = path[-1]
        if self._waits_for(name, requester):
            # another chain is building `name` and is waiting on us
            raise CircularDependencyError([*path, name])

        self._waiting[requester][name] += 1
        try:
            return await task
        finally:
            self._waiting[requester][name] -= 1
            if not self._waiting[requester][name]:
                del self._waiting[requester][name]

    def _waits_for(self, start: str, target: str) -> bool:
        stack = [start]
        visited: set[str] = set()
        while stack:
            current = stack.pop()
            if current == target:
                return True
            if current in visited:
                continue
            visited.add(current)
            stack.extend(self._waiting.get(current, ()))
        return False

    async def _get_path(self, name: str, *, strict: bool, path: tuple[str, ...]) -> Any:
        first, *segments = name.split(".")
        pivot = await self._get(first, strict=strict, path=path)

        for segment in segments:
            if pivot is _MISSING:
                break

            if isinstance(pivot, Mapping):
                pivot = pivot.get(segment, _MISSING)
            else:
                pivot = getattr(pivot, segment, _MISSING)

            if pivot is _MISSING and strict:
                raise NoProviderError(name, [*path, name])

        return pivot

    async def _call(
        self,
        fn: Callable[..., Any],
        dependencies: Dependencies,
        path: tuple[str, ...],
        locals: Mapping[str, Any] | None = None,  # noqa: A002
    ) -> Any:
        locals = locals or {}  # noqa: A001
        strict = not isinstance(dependencies, Keyed)

        async def resolve(dep: str) -> Any:
            if dep in locals:
                return locals[dep]
            return await self._get(dep, strict=strict, path=path)

        # wait for every sibling so no failure is left unretrieved
        values = await asyncio.gather(*(resolve(dep) for dep in dependencies.names), return_exceptions=True)
        for value in values:
            if isinstance(value, BaseException):
                raise value

        if strict:
            result = fn(*values)
        else:
            result = fn(**{dep: value for dep, value in zip(dependencies.names, values) if value is not _MISSING})

        if inspect.isawaitable(result):
            result = await result
        return result

    def _load_module(self, module: ModuleLike) -> None:
        decl = _module.as_declaration(module)
        if _module.exports_of(decl) is not None or _module.MODULES in decl:
            feature = "Private modules"
            raise UnsupportedFeatureError(feature, type(self).__name__)

        for name, entry in _module.provider_entries(decl):
            provider = make_provider(name, entry, self._name_provider)
            if provider.kind is ProviderKind.PRIVATE:
                feature = f"Private provider {name!r}"
                raise UnsupportedFeatureError(feature, type(self).__name__)
            self._providers[name] = provider

        self._initializers.extend(_module.initializers_of(decl))
        logger.debug("Registered module providing %s", [name for name, _ in _module.provider_entries(decl)])
