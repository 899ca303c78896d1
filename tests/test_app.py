from __future__ import annotations

import logging
from pathlib import Path

import aiohttp
import pytest

from pycontent.api import HttpContentApi, MockContentApi
from pycontent.app import ContentApp
from pycontent.config import ContentConfig
from pycontent.exceptions import ContentError, ContentNotFoundError
from pycontent.models.notification import Severity
from pycontent.storage import FileStorage, MemoryStorage


def _config(**overrides) -> ContentConfig:
    return ContentConfig(cache_sweep_interval=0, notification_duration=0, **overrides)


def _messages(app: ContentApp) -> list[tuple[str, Severity]]:
    return [(n.message, n.severity) for n in app.ui.state["notifications"]]


@pytest.mark.asyncio
async def test_load_nodes_notifies_and_toggles_global_loading() -> None:
    loading_seen: list[bool] = []
    async with ContentApp(_config(), api=MockContentApi(failure_rate=0)) as app:
        app.ui.subscribe(lambda _event, state: loading_seen.append(state["global_loading"]))
        await app.login("demo", "demo")

        nodes = await app.load_nodes()

        assert len(nodes) == 10
        assert loading_seen[0] is True
        assert app.ui.global_loading is False
        assert _messages(app) == [("Loaded 10 nodes", Severity.SUCCESS)]


@pytest.mark.asyncio
async def test_load_node_failure_notifies_and_reraises() -> None:
    async with ContentApp(_config(), api=MockContentApi(failure_rate=0)) as app:
        await app.login("demo", "demo")

        with pytest.raises(ContentNotFoundError):
            await app.load_node(404)

        assert app.ui.global_loading is False
        assert _messages(app) == [("Failed to load node: Node not found", Severity.ERROR)]


@pytest.mark.asyncio
async def test_load_node_cache_hit_is_silent() -> None:
    api = MockContentApi(failure_rate=0)
    async with ContentApp(_config(), api=api) as app:
        await app.login("demo", "demo")

        await app.load_node(7)
        node = await app.load_node(7)

        assert node.id == 7
        assert api.calls["get_one"] == 1
        assert app.content.state["current_node"] == node
        assert _messages(app) == [("Node loaded successfully", Severity.SUCCESS)]


@pytest.mark.asyncio
async def test_clear_cache_and_stats() -> None:
    async with ContentApp(_config(), api=MockContentApi(failure_rate=0)) as app:
        await app.login("demo", "demo")
        await app.load_nodes()
        await app.load_node(3)
        assert app.cache_stats().valid == 2

        app.clear_cache()

        assert app.cache_stats().total == 0
        assert app.content.node_count == 0
        assert ("Cache cleared", Severity.INFO) in _messages(app)


@pytest.mark.asyncio
async def test_stores_are_singletons_per_app() -> None:
    async with ContentApp(_config(), api=MockContentApi()) as app:
        assert app.favorites is app.favorites
        assert app.registry.get("auth") is app.auth
        assert {store.id for store in app.registry} >= {"auth", "ui", "favorites"}
        first_ui = app.ui

    async with ContentApp(_config(), api=MockContentApi()) as other:
        assert other.ui is not first_ui


@pytest.mark.asyncio
async def test_dispose_is_idempotent_and_stops_sweep() -> None:
    app = ContentApp(ContentConfig(cache_sweep_interval=30), api=MockContentApi())
    async with app:
        assert app.cache.is_sweeping
        ui = app.ui

    assert not app.cache.is_sweeping
    assert ui.is_disposed
    await app.dispose()


@pytest.mark.asyncio
async def test_owns_http_session_only_when_not_supplied() -> None:
    app = ContentApp(_config())
    with pytest.raises(ContentError):
        _ = app.api

    async with app:
        assert isinstance(app.api, HttpContentApi)
        owned = app._http_session  # type: ignore[attr-defined]
        assert owned is not None
    assert owned.closed

    async with aiohttp.ClientSession() as session:
        async with ContentApp(_config(), session=session) as shared:
            assert isinstance(shared.api, HttpContentApi)
        assert not session.closed


@pytest.mark.asyncio
async def test_file_storage_from_config(tmp_path: Path) -> None:
    config = _config(storage_dir=str(tmp_path), persist_namespace="demo")
    async with ContentApp(config, api=MockContentApi()) as app:
        assert isinstance(app.storage, FileStorage)
        app.preferences.set_theme("dark")

    assert (tmp_path / "demo-preferences.json").exists()

    async with ContentApp(config, api=MockContentApi()) as again:
        assert again.preferences.theme == "dark"


@pytest.mark.asyncio
async def test_log_actions_installs_logging_plugin(caplog: pytest.LogCaptureFixture) -> None:
    async with ContentApp(_config(log_actions=True), api=MockContentApi(), storage=MemoryStorage()) as app:
        with caplog.at_level(logging.DEBUG, logger="pycontent.plugins"):
            await app.login("demo", "demo")

    assert "Action auth.login ok" in caplog.text
    assert "'<redacted>'" in caplog.text
