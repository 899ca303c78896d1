from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from pycontent.events import ActionOutcome, ActionRecord
from pycontent.models.auth import User
from pycontent.plugins import logging_plugin, persistence_plugin, storage_key
from pycontent.storage import FileStorage, MemoryStorage
from pycontent.store import Store, StoreRegistry, StoreSetup, define_store


def _abc_setup(_registry: StoreRegistry) -> StoreSetup:
    def bump(store: Store) -> None:
        store.patch({"a": store.state["a"] + 1, "c": store.state["c"] + 1})

    return StoreSetup(state={"a": 0, "b": [], "c": 0}, actions={"bump": bump})


use_partial = define_store("partial", _abc_setup, persist=["a", "b"])
use_full = define_store("full", _abc_setup, persist=True)
use_plain = define_store("plain", _abc_setup)


class _FailingStorage(MemoryStorage):
    def set(self, key: str, value: str) -> None:
        raise OSError("disk full")


class _BrokenReadStorage(MemoryStorage):
    def get(self, key: str) -> str | None:
        raise OSError("permission denied")


def test_storage_key_format() -> None:
    assert storage_key("app", "favorites") == "app-favorites"


def test_persisted_fields_round_trip_and_others_reset() -> None:
    storage = MemoryStorage()
    first = StoreRegistry(plugins=[persistence_plugin(storage, namespace="t")]).use(use_partial)
    first.patch({"a": 5, "b": ["x"], "c": 9})

    saved = json.loads(storage.get("t-partial") or "{}")
    assert saved == {"a": 5, "b": ["x"]}

    second = StoreRegistry(plugins=[persistence_plugin(storage, namespace="t")]).use(use_partial)
    assert second.snapshot() == {"a": 5, "b": ["x"], "c": 0}


def test_persist_true_restores_every_declared_field() -> None:
    storage = MemoryStorage({"t-full": json.dumps({"a": 2, "b": [1], "c": 3, "stale": "ignored"})})
    store = StoreRegistry(plugins=[persistence_plugin(storage, namespace="t")]).use(use_full)
    assert store.snapshot() == {"a": 2, "b": [1], "c": 3}


def test_store_without_persist_is_left_alone() -> None:
    storage = MemoryStorage({"t-plain": json.dumps({"a": 7})})
    store = StoreRegistry(plugins=[persistence_plugin(storage, namespace="t")]).use(use_plain)
    store.bump()
    assert store.state["a"] == 1
    assert storage.keys() == ["t-plain"]


@pytest.mark.parametrize("raw", ["{not json", "[1, 2, 3]", '"just a string"'])
def test_corrupt_snapshot_keeps_defaults(raw: str, caplog: pytest.LogCaptureFixture) -> None:
    storage = MemoryStorage({"t-partial": raw})
    with caplog.at_level(logging.WARNING, logger="pycontent.plugins"):
        store = StoreRegistry(plugins=[persistence_plugin(storage, namespace="t")]).use(use_partial)

    assert store.snapshot() == {"a": 0, "b": [], "c": 0}
    assert "Discarding corrupt persisted state for store partial" in caplog.text


def test_unreadable_medium_keeps_defaults(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="pycontent.plugins"):
        store = StoreRegistry(plugins=[persistence_plugin(_BrokenReadStorage(), namespace="t")]).use(use_partial)

    assert store.state["a"] == 0
    assert "Failed to load persisted state" in caplog.text


def test_typed_field_is_validated_on_restore() -> None:
    def _setup(_registry: StoreRegistry) -> StoreSetup:
        return StoreSetup(state={"user": None, "token": None})

    definition = define_store("typed", _setup, persist=["user", "token"], persist_types={"user": User | None})
    payload = {"user": {"id": 3, "username": "demo", "name": "Demo"}, "token": "tok"}
    storage = MemoryStorage({"t-typed": json.dumps(payload)})

    store = StoreRegistry(plugins=[persistence_plugin(storage, namespace="t")]).use(definition)

    assert isinstance(store.state["user"], User)
    assert store.state["user"].username == "demo"
    assert store.state["token"] == "tok"


def test_invalid_typed_field_keeps_defaults() -> None:
    def _setup(_registry: StoreRegistry) -> StoreSetup:
        return StoreSetup(state={"user": None, "token": None})

    definition = define_store("typed", _setup, persist=["user", "token"], persist_types={"user": User | None})
    storage = MemoryStorage({"t-typed": json.dumps({"user": {"id": "not-a-number"}, "token": "tok"})})

    store = StoreRegistry(plugins=[persistence_plugin(storage, namespace="t")]).use(definition)

    assert store.snapshot() == {"user": None, "token": None}


def test_write_failure_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    store = StoreRegistry(plugins=[persistence_plugin(_FailingStorage(), namespace="t")]).use(use_partial)

    with caplog.at_level(logging.WARNING, logger="pycontent.plugins"):
        store.bump()

    assert store.state["a"] == 1
    assert "Failed to save state for store partial" in caplog.text


def test_dispose_stops_saving() -> None:
    storage = MemoryStorage()
    registry = StoreRegistry(plugins=[persistence_plugin(storage, namespace="t")])
    store = registry.use(use_partial)
    store.bump()
    registry.dispose()

    store.bump()

    assert json.loads(storage.get("t-partial") or "{}")["a"] == 1


def test_file_storage_round_trip(tmp_path: Path) -> None:
    storage = FileStorage(tmp_path / "state")
    first = StoreRegistry(plugins=[persistence_plugin(storage, namespace="app")]).use(use_partial)
    first.bump()

    assert (tmp_path / "state" / "app-partial.json").exists()
    second = StoreRegistry(plugins=[persistence_plugin(storage, namespace="app")]).use(use_partial)
    assert second.state["a"] == 1

    storage.remove("app-partial")
    storage.remove("app-partial")
    assert storage.get("app-partial") is None


def test_logging_plugin_records_success_and_error(caplog: pytest.LogCaptureFixture) -> None:
    def _setup(_registry: StoreRegistry) -> StoreSetup:
        def login(store: Store, username: str, password: str) -> str:
            if password != "pw":
                raise ValueError("bad credentials")
            store.state["user"] = username
            return username

        return StoreSetup(state={"user": None}, actions={"login": login})

    records: list[ActionRecord] = []
    registry = StoreRegistry(plugins=[logging_plugin(sink=records.append)])
    store = registry.use(define_store("auth", _setup))

    with caplog.at_level(logging.DEBUG, logger="pycontent.plugins"):
        assert store.login("demo", "pw") == "demo"
        with pytest.raises(ValueError, match="bad credentials"):
            store.login("demo", password="wrong")

    ok, failed = records
    assert ok.outcome == ActionOutcome.SUCCESS
    assert ok.args == {"args": ["demo", "<redacted>"], "kwargs": {}}
    assert ok.duration_ms >= 0
    assert failed.outcome == ActionOutcome.ERROR
    assert failed.error == "bad credentials"
    assert failed.args["kwargs"] == {"password": "<redacted>"}
    assert "wrong" not in caplog.text
    assert "Action auth.login failed" in caplog.text


@pytest.mark.asyncio
async def test_logging_plugin_traces_async_actions() -> None:
    def _setup(_registry: StoreRegistry) -> StoreSetup:
        async def load(store: Store, node_id: int) -> int:
            store.state["loaded"] = node_id
            return node_id

        return StoreSetup(state={"loaded": None}, actions={"load": load})

    records: list[ActionRecord] = []
    store = StoreRegistry(plugins=[logging_plugin(sink=records.append)]).use(define_store("nodes", _setup))

    await store.load(7)

    assert [(r.store_id, r.action, r.outcome) for r in records] == [("nodes", "load", ActionOutcome.SUCCESS)]
