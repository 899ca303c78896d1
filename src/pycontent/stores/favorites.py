"""Favorites store: optimistic add/remove with rollback and notifications."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pycontent.models.notification import Severity
from pycontent.optimistic import Restore, optimistic_update
from pycontent.store import Store, StoreRegistry, StoreSetup, define_store
from pycontent.stores._services import services
from pycontent.stores._validation import validate_node_id
from pycontent.stores.auth import use_auth_store
from pycontent.stores.ui import use_ui_store

_logger = logging.getLogger(__name__)


def _restore_membership(node_id: int) -> Restore:
    """Put back whether *node_id* was a favorite, keeping other ids as they are now."""

    def _restore(snapshot: Mapping[str, Any], current: Mapping[str, Any]) -> dict[str, Any]:
        before: list[int] = snapshot["favorite_ids"]
        ids = [fid for fid in current["favorite_ids"] if fid != node_id]
        if node_id in before:
            # Back at its old position relative to the ids that preceded it.
            preceding = set(before[: before.index(node_id)])
            position = sum(1 for fid in ids if fid in preceding)
            ids.insert(position, node_id)
        return {"favorite_ids": ids}

    return _restore


def _setup(registry: StoreRegistry) -> StoreSetup:
    api = services(registry).api
    auth = registry.use(use_auth_store)
    ui = registry.use(use_ui_store)

    def _notify(message: str, severity: Severity) -> None:
        ui.show_notification(message, severity)

    async def add_favorite(store: Store, node_id: int) -> None:
        node_id = validate_node_id(node_id)
        ids = store.state["favorite_ids"]
        target = ids if node_id in ids else [*ids, node_id]
        await optimistic_update(
            store,
            target_id=node_id,
            values={"favorite_ids": target},
            operation=lambda: api.add_favorite(node_id, token=auth.state["token"]),
            notify=_notify,
            failure_message=lambda exc: f"Failed to add favorite: {exc}",
            restore=_restore_membership(node_id),
        )
        _logger.debug("Added favorite %d", node_id)
        ui.show_notification("Added to favorites", Severity.SUCCESS)

    async def remove_favorite(store: Store, node_id: int) -> None:
        node_id = validate_node_id(node_id)
        target = [fid for fid in store.state["favorite_ids"] if fid != node_id]
        await optimistic_update(
            store,
            target_id=node_id,
            values={"favorite_ids": target},
            operation=lambda: api.remove_favorite(node_id, token=auth.state["token"]),
            notify=_notify,
            failure_message=lambda exc: f"Failed to remove favorite: {exc}",
            restore=_restore_membership(node_id),
        )
        _logger.debug("Removed favorite %d", node_id)
        ui.show_notification("Removed from favorites", Severity.SUCCESS)

    async def toggle_favorite(store: Store, node_id: int) -> None:
        if store.is_favorite(node_id):
            await store.remove_favorite(node_id)
        else:
            await store.add_favorite(node_id)

    def clear_favorites(store: Store) -> None:
        store.state["favorite_ids"] = []

    return StoreSetup(
        state={"favorite_ids": [], "loading": False},
        getters={
            "favorite_count": lambda store: len(store.state["favorite_ids"]),
            "is_favorite": lambda store: lambda node_id: node_id in store.state["favorite_ids"],
        },
        actions={
            "add_favorite": add_favorite,
            "remove_favorite": remove_favorite,
            "toggle_favorite": toggle_favorite,
            "clear_favorites": clear_favorites,
        },
    )


use_favorites_store = define_store(
    "favorites",
    _setup,
    persist=["favorite_ids"],
)
