"""Content server store: node list, current node, cached and deduplicated fetches.

Reads go cache first, then through the request coordinator so concurrent
fetches of the same key share one remote call; successful results are put
back into the cache.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from pycontent._constants import ALL_NODES_CACHE_KEY, node_cache_key
from pycontent.models.node import Node, NodeType
from pycontent.store import Store, StoreRegistry, StoreSetup, define_store
from pycontent.stores._services import services
from pycontent.stores._validation import validate_node_id
from pycontent.stores.auth import use_auth_store

_logger = logging.getLogger(__name__)


def _child_nodes(store: Store) -> Callable[[int | None], list[Node]]:
    return lambda parent_id: [node for node in store.state["nodes"] if node.parent_id == parent_id]


def _breadcrumb_path(store: Store) -> Callable[[int], list[Node]]:
    def _path(node_id: int) -> list[Node]:
        by_id = {node.id: node for node in store.state["nodes"]}
        path: list[Node] = []
        seen: set[int] = set()
        current: int | None = node_id
        while current is not None and current not in seen:
            node = by_id.get(current)
            if node is None:
                break
            seen.add(current)
            path.insert(0, node)
            current = node.parent_id
        return path

    return _path


def _setup(registry: StoreRegistry) -> StoreSetup:
    svc = services(registry)
    api = svc.api
    cache = svc.cache
    coordinator = svc.coordinator
    ttl = svc.config.cache_ttl
    auth = registry.use(use_auth_store)

    async def fetch_nodes(store: Store, force_reload: bool = False) -> list[Node]:
        if not force_reload:
            cached = cache.get(ALL_NODES_CACHE_KEY)
            if cached is not None:
                _logger.debug("Using cached node list")
                store.state["nodes"] = list(cached)
                return list(cached)

        async def _fetch() -> list[Node]:
            nodes = await api.get_all(token=auth.state["token"])
            cache.set(ALL_NODES_CACHE_KEY, list(nodes), ttl)
            return nodes

        store.patch({"loading": True, "error": None})
        try:
            nodes = await coordinator.call(ALL_NODES_CACHE_KEY, _fetch)
        except Exception as exc:
            store.state["error"] = str(exc)
            _logger.debug("Failed to fetch nodes: %s", exc)
            raise
        finally:
            store.state["loading"] = False

        store.state["nodes"] = list(nodes)
        _logger.debug("Fetched %d nodes", len(nodes))
        return list(nodes)

    async def fetch_node(store: Store, node_id: int, force_reload: bool = False) -> Node:
        node_id = validate_node_id(node_id)
        key = node_cache_key(node_id)
        if not force_reload:
            cached = cache.get(key)
            if cached is not None:
                _logger.debug("Using cached node %d", node_id)
                store.state["current_node"] = cached
                return cached

        async def _fetch() -> Node:
            node = await api.get_one(node_id, token=auth.state["token"])
            cache.set(key, node, ttl)
            return node

        store.patch({"loading": True, "error": None})
        try:
            node = await coordinator.call(key, _fetch)
        except Exception as exc:
            store.state["error"] = str(exc)
            _logger.debug("Failed to fetch node %d: %s", node_id, exc)
            raise
        finally:
            store.state["loading"] = False

        nodes = list(store.state["nodes"])
        for index, existing in enumerate(nodes):
            if existing.id == node.id:
                nodes[index] = node
                break
        else:
            nodes.append(node)
        store.patch({"current_node": node, "nodes": nodes})
        return node

    def set_current_node(store: Store, node: Node | None) -> None:
        store.state["current_node"] = node

    def clear_cache(store: Store) -> None:
        store.patch({"nodes": [], "current_node": None, "error": None})
        cache.clear()
        coordinator.clear()
        _logger.debug("Content cache cleared")

    def clear_error(store: Store) -> None:
        store.state["error"] = None

    return StoreSetup(
        state={"nodes": [], "current_node": None, "loading": False, "error": None},
        getters={
            "node_count": lambda store: len(store.state["nodes"]),
            "folder_nodes": lambda store: [n for n in store.state["nodes"] if n.type == NodeType.FOLDER],
            "document_nodes": lambda store: [n for n in store.state["nodes"] if n.type == NodeType.DOCUMENT],
            "folder_count": lambda store: len(store.folder_nodes),
            "document_count": lambda store: len(store.document_nodes),
            "child_nodes": _child_nodes,
            "breadcrumb_path": _breadcrumb_path,
        },
        actions={
            "fetch_nodes": fetch_nodes,
            "fetch_node": fetch_node,
            "set_current_node": set_current_node,
            "clear_cache": clear_cache,
            "clear_error": clear_error,
        },
    )


use_content_store = define_store("content", _setup)
