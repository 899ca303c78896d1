"""Observable stores: named state, getters, actions and subscriptions.

A store is declared once with :func:`define_store` and instantiated lazily,
at most once per :class:`StoreRegistry`.  The registry is the application
scope: it threads every new store through its plugin chain before handing it
out, and releases store-owned resources on :meth:`StoreRegistry.dispose`.

State is a flat mapping of field name to value.  Values are replaced, not
mutated in place (``store.state["ids"] = [*ids, 42]``), so every change is
observed.  Subscribers are notified once per completed action that changed
something; writes made outside any action notify once per write (or once per
``patch``).
"""

from __future__ import annotations

import contextlib
import contextvars
import copy
import functools
import inspect
import logging
from collections.abc import Callable, Hashable, Iterator, Mapping, MutableMapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from pycontent.events import MutationEvent, MutationType
from pycontent.exceptions import ContentConflictError, ContentNotFoundError, ContentValidationError

_logger = logging.getLogger(__name__)

Getter = Callable[["Store"], Any]
Listener = Callable[[MutationEvent, Mapping[str, Any]], None]
Interceptor = Callable[["ActionContext"], None]
StorePlugin = Callable[["Store", "StoreOptions"], None]
StoreSetupFn = Callable[["StoreRegistry"], "StoreSetup"]


@dataclass(slots=True)
class StoreSetup:
    """What a setup function returns.

    ``actions`` are called as ``fn(store, *args, **kwargs)``; ``getters`` as
    ``fn(store)``.  A getter may return a function to take parameters.
    ``dispose`` releases resources the store owns (timers, handles).
    """

    state: dict[str, Any]
    getters: dict[str, Getter] = field(default_factory=dict)
    actions: dict[str, Callable[..., Any]] = field(default_factory=dict)
    dispose: Callable[[], None] | None = None


@dataclass(frozen=True, slots=True)
class StoreOptions:
    """Definition-level options consumed by plugins."""

    persist: bool | tuple[str, ...] | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)


class StoreDefinition:
    """A declared store.  Call it with a registry to get the instance."""

    def __init__(self, store_id: str, setup: StoreSetupFn, options: StoreOptions) -> None:
        self.id = store_id
        self.setup = setup
        self.options = options

    def __call__(self, registry: StoreRegistry) -> Store:
        return registry.use(self)

    def __repr__(self) -> str:
        return f"StoreDefinition({self.id!r})"


def define_store(
    store_id: str,
    setup: StoreSetupFn,
    *,
    persist: bool | list[str] | tuple[str, ...] | None = None,
    **options: Any,
) -> StoreDefinition:
    """Declare a store.

    Parameters
    ----------
    store_id
        Unique id of the store within a registry.
    setup
        ``setup(registry) -> StoreSetup``; called once per registry, the
        first time the store is used.  Other stores can be pulled in with
        ``registry.use(...)``.
    persist
        ``True`` to persist every state field, a list of field names to
        persist only those, ``None``/``False`` to persist nothing.
    **options
        Free-form options made available to plugins.
    """
    if not isinstance(store_id, str) or not store_id.strip():
        raise ContentValidationError("store id must be a non-empty string")
    if persist is False:
        persist = None
    elif isinstance(persist, (list, tuple)):
        persist = tuple(persist)
    return StoreDefinition(store_id.strip(), setup, StoreOptions(persist=persist, extra=dict(options)))


# ----------------------------------------------------------------------
# Mutation batching
# ----------------------------------------------------------------------


@dataclass(slots=True)
class _MutationFrame:
    store: Store
    type: MutationType
    action: str | None
    changed: set[str] = field(default_factory=set)
    closed: bool = False


# The innermost open mutation scope of the running task.  Each asyncio task
# carries its own copy, so interleaved actions never share a frame.
_current_frame: contextvars.ContextVar[_MutationFrame | None] = contextvars.ContextVar(
    "pycontent_mutation_frame", default=None
)


class StoreState(MutableMapping[str, Any]):
    """Mapping view over a store's state that reports every change."""

    __slots__ = ("_store", "_data")

    def __init__(self, store: Store, data: dict[str, Any]) -> None:
        self._store = store
        self._data = data

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if key not in self._data:
            raise ContentNotFoundError(f"Store {self._store.id!r} has no state field {key!r}")
        old = self._data[key]
        if old is value or old == value:
            return
        self._data[key] = value
        self._store._record_change(key)  # noqa: SLF001

    def __delitem__(self, key: str) -> None:
        raise TypeError("store state fields cannot be deleted")

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"StoreState({self._data!r})"


class ActionContext:
    """Passed to action interceptors before each action call."""

    __slots__ = ("name", "args", "kwargs", "store", "_after", "_on_error")

    def __init__(self, store: Store, name: str, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        self.store = store
        self.name = name
        self.args = args
        self.kwargs = kwargs
        self._after: Callable[[Any], None] | None = None
        self._on_error: Callable[[BaseException], None] | None = None

    def after(self, callback: Callable[[Any], None]) -> None:
        """Run *callback(result)* once the action has returned."""
        self._after = callback

    def on_error(self, callback: Callable[[BaseException], None]) -> None:
        """Run *callback(error)* if the action raises."""
        self._on_error = callback


class Store:
    """A live store instance.  Create through :class:`StoreRegistry`."""

    def __init__(self, store_id: str, setup: StoreSetup, options: StoreOptions) -> None:
        self.id = store_id
        self.options = options
        self._defaults = copy.deepcopy(setup.state)
        self._state = StoreState(self, dict(setup.state))
        self._getters = dict(setup.getters)
        self._actions = {name: self._wrap_action(name, fn) for name, fn in setup.actions.items()}
        self._listeners: list[Listener] = []
        self._interceptors: list[Interceptor] = []
        self._dispose_hooks: list[Callable[[], None]] = []
        self._disposed = False
        #: Targets with an unresolved optimistic change, see ``pycontent.optimistic``.
        self.pending_targets: set[Hashable] = set()
        if setup.dispose is not None:
            self._dispose_hooks.append(setup.dispose)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> StoreState:
        return self._state

    def snapshot(self) -> dict[str, Any]:
        """Deep copy of the current state."""
        return copy.deepcopy(self._state._data)  # noqa: SLF001

    def patch(self, values: Mapping[str, Any]) -> None:
        """Write several fields as a single mutation."""
        with self._mutation_scope(MutationType.PATCH):
            for key, value in values.items():
                self._state[key] = value

    def reset(self) -> None:
        """Restore the factory-default state."""
        self.patch(copy.deepcopy(self._defaults))

    def getter(self, name: str) -> Any:
        fn = self._getters.get(name)
        if fn is None:
            raise ContentNotFoundError(f"Store {self.id!r} has no getter {name!r}")
        return fn(self)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        actions = self.__dict__.get("_actions", {})
        if name in actions:
            return actions[name]
        getters = self.__dict__.get("_getters", {})
        if name in getters:
            return getters[name](self)
        state = self.__dict__.get("_state")
        if state is not None and name in state:
            return state[name]
        raise AttributeError(f"Store {self.__dict__.get('id')!r} has no action, getter or state field {name!r}")

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener(event, state)*; returns an unsubscribe function."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return _unsubscribe

    def _record_change(self, key: str) -> None:
        frame = _current_frame.get()
        if frame is not None and frame.store is self and not frame.closed:
            frame.changed.add(key)
            return
        self._notify(MutationEvent(store_id=self.id, type=MutationType.DIRECT, keys=(key,)))

    @contextlib.contextmanager
    def _mutation_scope(self, mutation_type: MutationType, action: str | None = None) -> Iterator[None]:
        outer = _current_frame.get()
        if outer is not None and outer.store is self and not outer.closed:
            # Nested scope of the same store joins the outer batch.
            yield
            return
        frame = _MutationFrame(store=self, type=mutation_type, action=action)
        token = _current_frame.set(frame)
        try:
            yield
        finally:
            frame.closed = True
            _current_frame.reset(token)
            if frame.changed:
                self._notify(
                    MutationEvent(
                        store_id=self.id,
                        type=frame.type,
                        action=frame.action,
                        keys=tuple(sorted(frame.changed)),
                    )
                )

    def _notify(self, event: MutationEvent) -> None:
        view = MappingProxyType(self._state._data)  # noqa: SLF001
        for listener in list(self._listeners):
            try:
                listener(event, view)
            except Exception:
                _logger.warning("Subscriber of store %s failed", self.id, exc_info=True)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def on_action(self, interceptor: Interceptor) -> Callable[[], None]:
        """Register *interceptor(ctx)* to run before every action call.

        Returns a function removing the interceptor.
        """
        self._interceptors.append(interceptor)

        def _remove() -> None:
            with contextlib.suppress(ValueError):
                self._interceptors.remove(interceptor)

        return _remove

    def dispatch(self, name: str, /, *args: Any, **kwargs: Any) -> Any:
        action = self._actions.get(name)
        if action is None:
            raise ContentNotFoundError(f"Store {self.id!r} has no action {name!r}")
        return action(*args, **kwargs)

    @property
    def action_names(self) -> tuple[str, ...]:
        return tuple(self._actions)

    def _intercept(self, name: str, args: tuple[Any, ...], kwargs: dict[str, Any]) -> list[ActionContext]:
        contexts: list[ActionContext] = []
        for interceptor in list(self._interceptors):
            ctx = ActionContext(self, name, args, kwargs)
            try:
                interceptor(ctx)
            except Exception:
                _logger.warning("Action interceptor failed for %s.%s", self.id, name, exc_info=True)
            contexts.append(ctx)
        return contexts

    def _finish(self, contexts: list[ActionContext], result: Any) -> None:
        for ctx in contexts:
            if ctx._after is None:  # noqa: SLF001
                continue
            try:
                ctx._after(result)  # noqa: SLF001
            except Exception:
                _logger.warning("after() callback failed for %s.%s", self.id, ctx.name, exc_info=True)

    def _fail(self, contexts: list[ActionContext], error: BaseException) -> None:
        for ctx in contexts:
            if ctx._on_error is None:  # noqa: SLF001
                continue
            try:
                ctx._on_error(error)  # noqa: SLF001
            except Exception:
                _logger.warning("on_error() callback failed for %s.%s", self.id, ctx.name, exc_info=True)

    def _wrap_action(self, name: str, fn: Callable[..., Any]) -> Callable[..., Any]:
        if inspect.iscoroutinefunction(fn):

            @functools.wraps(fn)
            async def _async_action(*args: Any, **kwargs: Any) -> Any:
                contexts = self._intercept(name, args, kwargs)
                try:
                    with self._mutation_scope(MutationType.ACTION, name):
                        result = await fn(self, *args, **kwargs)
                except BaseException as exc:
                    self._fail(contexts, exc)
                    raise
                self._finish(contexts, result)
                return result

            return _async_action

        @functools.wraps(fn)
        def _action(*args: Any, **kwargs: Any) -> Any:
            contexts = self._intercept(name, args, kwargs)
            try:
                with self._mutation_scope(MutationType.ACTION, name):
                    result = fn(self, *args, **kwargs)
            except BaseException as exc:
                self._fail(contexts, exc)
                raise
            self._finish(contexts, result)
            return result

        return _action

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def add_dispose_hook(self, hook: Callable[[], None]) -> None:
        self._dispose_hooks.append(hook)

    def dispose(self) -> None:
        """Release store-owned resources.  Only the first call has an effect."""
        if self._disposed:
            return
        self._disposed = True
        for hook in reversed(self._dispose_hooks):
            try:
                hook()
            except Exception:
                _logger.warning("Dispose hook of store %s failed", self.id, exc_info=True)
        self._listeners.clear()
        self._interceptors.clear()

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def __repr__(self) -> str:
        return f"Store({self.id!r})"


class StoreRegistry:
    """Application-scoped home of store instances, keyed by id.

    ``context`` is whatever the application wants setup functions to reach
    (services such as the API client or cache); the registry never looks
    inside it.
    """

    def __init__(self, context: Any = None, *, plugins: tuple[StorePlugin, ...] | list[StorePlugin] = ()) -> None:
        self.context = context
        self._plugins: list[StorePlugin] = list(plugins)
        self._definitions: dict[str, StoreDefinition] = {}
        self._stores: dict[str, Store] = {}
        self._building: set[str] = set()

    def use_plugin(self, plugin: StorePlugin) -> None:
        """Append *plugin* to the chain.  Applies to stores built afterwards."""
        self._plugins.append(plugin)

    def register(self, definition: StoreDefinition) -> None:
        """Bind *definition* to its id; rebinding to another definition is a conflict."""
        existing = self._definitions.get(definition.id)
        if existing is not None and existing is not definition:
            raise ContentConflictError(f"Store id {definition.id!r} is already registered")
        self._definitions[definition.id] = definition

    def use(self, definition: StoreDefinition) -> Store:
        """Return the store for *definition*, building it on first use."""
        self.register(definition)
        store = self._stores.get(definition.id)
        if store is not None:
            return store
        if definition.id in self._building:
            raise ContentConflictError(f"Store {definition.id!r} depends on itself during setup")
        self._building.add(definition.id)
        try:
            store = self._build(definition)
        finally:
            self._building.discard(definition.id)
        self._stores[definition.id] = store
        return store

    def _build(self, definition: StoreDefinition) -> Store:
        setup = definition.setup(self)
        if not isinstance(setup, StoreSetup):
            raise ContentValidationError(f"setup of store {definition.id!r} must return a StoreSetup")
        store = Store(definition.id, setup, definition.options)
        for plugin in self._plugins:
            plugin(store, definition.options)
        _logger.debug("Store %s created", definition.id)
        return store

    def get(self, store_id: str) -> Store:
        store = self._stores.get(store_id)
        if store is None:
            raise ContentNotFoundError(f"Store {store_id!r} has not been created")
        return store

    def __contains__(self, store_id: object) -> bool:
        return store_id in self._stores

    def __iter__(self) -> Iterator[Store]:
        return iter(list(self._stores.values()))

    def dispose(self) -> None:
        """Dispose every store, most recently created first."""
        for store in reversed(list(self._stores.values())):
            store.dispose()
        self._stores.clear()
        self._definitions.clear()
