from __future__ import annotations

import asyncio
import logging

import pytest

from pycontent.events import MutationEvent, MutationType
from pycontent.exceptions import ContentConflictError, ContentNotFoundError, ContentValidationError
from pycontent.store import Store, StoreRegistry, StoreSetup, define_store


def _counter_setup(_registry: StoreRegistry) -> StoreSetup:
    def increment(store: Store, by: int = 1) -> int:
        store.state["count"] = store.state["count"] + by
        store.state["last"] = by
        return store.state["count"]

    def increment_twice(store: Store) -> None:
        store.increment()
        store.increment()

    async def increment_later(store: Store, by: int = 1) -> int:
        await asyncio.sleep(0)
        store.state["count"] = store.state["count"] + by
        return store.state["count"]

    def fail(store: Store) -> None:
        store.state["count"] = -1
        raise RuntimeError("nope")

    return StoreSetup(
        state={"count": 0, "last": None},
        getters={
            "double": lambda store: store.state["count"] * 2,
            "plus": lambda store: lambda n: store.state["count"] + n,
        },
        actions={
            "increment": increment,
            "increment_twice": increment_twice,
            "increment_later": increment_later,
            "fail": fail,
        },
    )


use_counter = define_store("counter", _counter_setup)


def _events(store: Store) -> list[MutationEvent]:
    events: list[MutationEvent] = []
    store.subscribe(lambda event, _state: events.append(event))
    return events


def test_registry_builds_store_once() -> None:
    calls = 0

    def _setup(_registry: StoreRegistry) -> StoreSetup:
        nonlocal calls
        calls += 1
        return StoreSetup(state={"x": 1})

    definition = define_store("once", _setup)
    registry = StoreRegistry()

    assert definition(registry) is definition(registry)
    assert registry.use(definition) is registry.get("once")
    assert calls == 1
    assert "once" in registry


def test_separate_registries_have_separate_instances() -> None:
    a = use_counter(StoreRegistry())
    b = use_counter(StoreRegistry())
    a.increment()
    assert b.count == 0


def test_conflicting_definition_for_same_id() -> None:
    registry = StoreRegistry()
    registry.use(use_counter)
    other = define_store("counter", _counter_setup)
    with pytest.raises(ContentConflictError):
        registry.use(other)


def test_store_depending_on_itself_is_rejected() -> None:
    holder: dict[str, object] = {}

    def _setup(registry: StoreRegistry) -> StoreSetup:
        registry.use(holder["def"])  # type: ignore[arg-type]
        return StoreSetup(state={})

    holder["def"] = define_store("loop", _setup)
    with pytest.raises(ContentConflictError):
        StoreRegistry().use(holder["def"])  # type: ignore[arg-type]


def test_define_store_validates_id_and_normalizes_persist() -> None:
    with pytest.raises(ContentValidationError):
        define_store("  ", _counter_setup)

    assert define_store("a", _counter_setup, persist=["x", "y"]).options.persist == ("x", "y")
    assert define_store("b", _counter_setup, persist=False).options.persist is None
    assert define_store("c", _counter_setup, persist=True, flavor="mint").options.extra == {"flavor": "mint"}


def test_setup_must_return_store_setup() -> None:
    bad = define_store("bad", lambda _registry: {"state": {}})  # type: ignore[arg-type, return-value]
    with pytest.raises(ContentValidationError):
        StoreRegistry().use(bad)


def test_getters_and_state_attribute_access() -> None:
    store = use_counter(StoreRegistry())
    store.increment(by=3)

    assert store.count == 3
    assert store.double == 6
    assert store.plus(4) == 7
    assert store.getter("double") == 6
    with pytest.raises(ContentNotFoundError):
        store.getter("missing")
    with pytest.raises(AttributeError):
        _ = store.missing


def test_unknown_state_field_and_delete_rejected() -> None:
    store = use_counter(StoreRegistry())
    with pytest.raises(ContentNotFoundError):
        store.state["nope"] = 1
    with pytest.raises(TypeError):
        del store.state["count"]


def test_subscriber_fires_once_per_action() -> None:
    store = use_counter(StoreRegistry())
    events = _events(store)

    store.increment(by=2)

    assert len(events) == 1
    assert events[0].type == MutationType.ACTION
    assert events[0].action == "increment"
    assert events[0].keys == ("count", "last")


def test_nested_actions_of_same_store_batch_into_outer() -> None:
    store = use_counter(StoreRegistry())
    events = _events(store)

    store.increment_twice()

    assert store.count == 2
    assert [e.action for e in events] == ["increment_twice"]


def test_action_without_change_does_not_notify() -> None:
    store = use_counter(StoreRegistry())
    events = _events(store)

    store.state["last"] = 0
    store.increment(by=0)

    # Only the direct write changed anything.
    assert [e.type for e in events] == [MutationType.DIRECT]


def test_direct_write_and_patch_notify_once_each() -> None:
    store = use_counter(StoreRegistry())
    events = _events(store)

    store.state["count"] = 5
    store.patch({"count": 6, "last": 1})

    assert [(e.type, e.keys) for e in events] == [
        (MutationType.DIRECT, ("count",)),
        (MutationType.PATCH, ("count", "last")),
    ]


def test_listener_receives_read_only_state_view() -> None:
    store = use_counter(StoreRegistry())
    seen: list[int] = []

    def _listener(_event: MutationEvent, state) -> None:
        seen.append(state["count"])
        with pytest.raises(TypeError):
            state["count"] = 99

    store.subscribe(_listener)
    store.increment()
    assert seen == [1]
    assert store.count == 1


def test_unsubscribe_stops_notifications() -> None:
    store = use_counter(StoreRegistry())
    events: list[MutationEvent] = []
    unsubscribe = store.subscribe(lambda event, _state: events.append(event))

    store.increment()
    unsubscribe()
    unsubscribe()
    store.increment()

    assert len(events) == 1


def test_failing_listener_is_logged_and_others_still_run(caplog: pytest.LogCaptureFixture) -> None:
    store = use_counter(StoreRegistry())
    events = []

    def _broken(_event: MutationEvent, _state) -> None:
        raise RuntimeError("listener bug")

    store.subscribe(_broken)
    store.subscribe(lambda event, _state: events.append(event))

    with caplog.at_level(logging.WARNING, logger="pycontent.store"):
        store.increment()

    assert len(events) == 1
    assert "Subscriber of store counter failed" in caplog.text


def test_failed_action_still_notifies_changes_and_reraises() -> None:
    store = use_counter(StoreRegistry())
    events = _events(store)

    with pytest.raises(RuntimeError, match="nope"):
        store.fail()

    assert store.count == -1
    assert [e.action for e in events] == ["fail"]


def test_dispatch_unknown_action() -> None:
    store = use_counter(StoreRegistry())
    assert store.dispatch("increment", 4) == 4
    with pytest.raises(ContentNotFoundError):
        store.dispatch("explode")
    assert "increment" in store.action_names


def test_interceptors_run_in_order_with_after_callbacks() -> None:
    store = use_counter(StoreRegistry())
    log: list[str] = []

    def _first(ctx) -> None:
        log.append(f"first:{ctx.name}:{ctx.args}")
        ctx.after(lambda result: log.append(f"first-after:{result}"))

    def _second(ctx) -> None:
        log.append(f"second:{ctx.name}")
        ctx.after(lambda result: log.append(f"second-after:{result}"))

    store.on_action(_first)
    store.on_action(_second)
    store.increment(5)

    assert log == ["first:increment:(5,)", "second:increment", "first-after:5", "second-after:5"]


def test_on_error_callback_receives_error() -> None:
    store = use_counter(StoreRegistry())
    errors: list[BaseException] = []
    store.on_action(lambda ctx: ctx.on_error(errors.append))

    with pytest.raises(RuntimeError):
        store.fail()

    assert len(errors) == 1
    assert str(errors[0]) == "nope"


def test_throwing_interceptor_does_not_change_action_outcome(caplog: pytest.LogCaptureFixture) -> None:
    store = use_counter(StoreRegistry())

    def _bad_callback(_exc: BaseException) -> None:
        raise ValueError("callback bug")

    def _broken(ctx) -> None:
        ctx.on_error(_bad_callback)
        raise KeyError("interceptor bug")

    store.on_action(_broken)

    with caplog.at_level(logging.WARNING, logger="pycontent.store"):
        assert store.increment() == 1
        with pytest.raises(RuntimeError, match="nope"):
            store.fail()

    assert "Action interceptor failed" in caplog.text
    assert "on_error() callback failed" in caplog.text


def test_removed_interceptor_no_longer_runs() -> None:
    store = use_counter(StoreRegistry())
    names: list[str] = []
    remove = store.on_action(lambda ctx: names.append(ctx.name))

    store.increment()
    remove()
    store.increment()

    assert names == ["increment"]


@pytest.mark.asyncio
async def test_async_action_batches_and_intercepts() -> None:
    store = use_counter(StoreRegistry())
    events = _events(store)
    results: list[int] = []
    store.on_action(lambda ctx: ctx.after(results.append))

    value = await store.increment_later(by=3)

    assert value == 3
    assert results == [3]
    assert [(e.action, e.keys) for e in events] == [("increment_later", ("count",))]


@pytest.mark.asyncio
async def test_interleaved_async_actions_notify_separately() -> None:
    store = use_counter(StoreRegistry())
    events = _events(store)

    await asyncio.gather(store.increment_later(), store.increment_later())

    assert store.count == 2
    assert [e.action for e in events] == ["increment_later", "increment_later"]


def test_reset_restores_defaults() -> None:
    store = use_counter(StoreRegistry())
    store.increment(7)
    store.reset()
    assert store.snapshot() == {"count": 0, "last": None}


def test_snapshot_is_a_deep_copy() -> None:
    registry = StoreRegistry()
    store = registry.use(define_store("lists", lambda _r: StoreSetup(state={"items": [1, 2]})))
    snap = store.snapshot()
    snap["items"].append(3)
    assert store.state["items"] == [1, 2]


def test_plugins_run_in_order_before_store_is_returned() -> None:
    order: list[str] = []
    registry = StoreRegistry(plugins=[lambda store, _opts: order.append(f"a:{store.id}")])
    registry.use_plugin(lambda store, opts: order.append(f"b:{store.id}:{opts.persist}"))

    registry.use(define_store("p", _counter_setup, persist=["count"]))

    assert order == ["a:p", "b:p:('count',)"]


def test_dispose_runs_hooks_once_in_reverse_order() -> None:
    order: list[str] = []

    def _setup(_registry: StoreRegistry) -> StoreSetup:
        return StoreSetup(state={}, dispose=lambda: order.append("setup"))

    registry = StoreRegistry()
    store = registry.use(define_store("d", _setup))
    store.add_dispose_hook(lambda: order.append("plugin"))

    registry.dispose()
    store.dispose()

    assert order == ["plugin", "setup"]
    assert store.is_disposed
    assert "d" not in registry
    with pytest.raises(ContentNotFoundError):
        registry.get("d")
