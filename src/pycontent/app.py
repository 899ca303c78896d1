"""Application scope tying stores, cache, coordinator and API together."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

import aiohttp

from pycontent._constants import node_cache_key
from pycontent.api import ContentApi, HttpContentApi
from pycontent.cache import CacheStats, TtlCache
from pycontent.config import ContentConfig
from pycontent.coordinator import RequestCoordinator
from pycontent.exceptions import ContentError, ContentValidationError
from pycontent.models.auth import LoginResult
from pycontent.models.node import Node
from pycontent.models.notification import Severity
from pycontent.plugins import logging_plugin, persistence_plugin
from pycontent.storage import FileStorage, MemoryStorage, Storage
from pycontent.store import Store, StoreRegistry
from pycontent.stores import (
    use_auth_store,
    use_content_store,
    use_favorites_store,
    use_preferences_store,
    use_search_store,
    use_ui_store,
)

_logger = logging.getLogger(__name__)


class ContentApp:
    """Client-side state of a content server application.

    Usage::

        async with ContentApp(ContentConfig.from_env()) as app:
            await app.login()
            await app.load_nodes()
            await app.favorites.add_favorite(7)

    Without an explicit ``api`` an :class:`HttpContentApi` is created on
    entry, on the supplied aiohttp ``session`` or on one the app owns.
    """

    def __init__(
        self,
        config: ContentConfig | None = None,
        *,
        api: ContentApi | None = None,
        storage: Storage | None = None,
        session: aiohttp.ClientSession | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or ContentConfig()
        self._api = api
        self._external_session = session is not None
        self._http_session = session
        if storage is None:
            storage = FileStorage(self.config.storage_dir) if self.config.storage_dir else MemoryStorage()
        self.storage = storage
        self.cache = TtlCache(
            clock=clock,
            default_ttl=self.config.cache_ttl,
            sweep_interval=self.config.cache_sweep_interval,
        )
        self.coordinator = RequestCoordinator(timeout=self.config.request_timeout)
        self.registry = StoreRegistry(self, plugins=[persistence_plugin(storage, namespace=self.config.persist_namespace)])
        if self.config.log_actions:
            self.registry.use_plugin(logging_plugin())
        self._disposed = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> ContentApp:
        if self._api is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._api = HttpContentApi(self.config, self._http_session)
        self.cache.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.dispose()

    async def dispose(self) -> None:
        """Release timers, store hooks and the owned HTTP session.  Idempotent."""
        if self._disposed:
            return
        self._disposed = True
        self.cache.dispose()
        self.registry.dispose()
        self.coordinator.clear()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        _logger.debug("Content app disposed")

    @property
    def api(self) -> ContentApi:
        if self._api is None:
            raise ContentError("No content API. Pass api=... or use 'async with ContentApp(...) as app:'")
        return self._api

    # ------------------------------------------------------------------
    # Stores
    # ------------------------------------------------------------------

    @property
    def auth(self) -> Store:
        return self.registry.use(use_auth_store)

    @property
    def content(self) -> Store:
        return self.registry.use(use_content_store)

    @property
    def favorites(self) -> Store:
        return self.registry.use(use_favorites_store)

    @property
    def ui(self) -> Store:
        return self.registry.use(use_ui_store)

    @property
    def search(self) -> Store:
        return self.registry.use(use_search_store)

    @property
    def preferences(self) -> Store:
        return self.registry.use(use_preferences_store)

    # ------------------------------------------------------------------
    # Composite operations
    # ------------------------------------------------------------------

    async def login(self, username: str | None = None, password: str | None = None) -> LoginResult:
        """Log in with explicit credentials or those from the config."""
        username = username if username is not None else self.config.username
        password = password if password is not None else self.config.password
        if not username or not password:
            raise ContentValidationError("No credentials (pass them or set CONTENT_USERNAME/CONTENT_PASSWORD)")
        return await self.auth.login(username, password)

    async def load_node(self, node_id: int, *, force_reload: bool = False) -> Node:
        """Load one node with the global loading flag and a result notification.

        A cache hit is returned silently.
        """
        if not force_reload:
            cached = self.cache.get(node_cache_key(node_id))
            if cached is not None:
                self.content.set_current_node(cached)
                return cached

        ui = self.ui
        ui.set_loading(True)
        try:
            node = await self.content.fetch_node(node_id, force_reload=force_reload)
        except Exception as exc:
            ui.show_notification(f"Failed to load node: {exc}", Severity.ERROR)
            raise
        finally:
            ui.set_loading(False)
        ui.show_notification("Node loaded successfully", Severity.SUCCESS)
        return node

    async def load_nodes(self, *, force_reload: bool = False) -> list[Node]:
        ui = self.ui
        ui.set_loading(True)
        try:
            nodes = await self.content.fetch_nodes(force_reload=force_reload)
        except Exception as exc:
            ui.show_notification(f"Failed to load nodes: {exc}", Severity.ERROR)
            raise
        finally:
            ui.set_loading(False)
        ui.show_notification(f"Loaded {len(nodes)} nodes", Severity.SUCCESS)
        return nodes

    def clear_cache(self) -> None:
        self.content.clear_cache()
        self.ui.show_notification("Cache cleared", Severity.INFO)

    def cache_stats(self) -> CacheStats:
        return self.cache.get_stats()
