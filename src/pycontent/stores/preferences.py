"""User preferences store, persisted in full."""

from __future__ import annotations

import logging

from pycontent.exceptions import ContentValidationError
from pycontent.store import Store, StoreRegistry, StoreSetup, define_store
from pycontent.stores._validation import validate_choice

_logger = logging.getLogger(__name__)

THEMES = ("light", "dark")
VIEWS = ("list", "grid")


def _setup(_registry: StoreRegistry) -> StoreSetup:
    def set_theme(store: Store, theme: str) -> None:
        store.state["theme"] = validate_choice("theme", theme, THEMES)

    def set_items_per_page(store: Store, count: int) -> None:
        if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
            raise ContentValidationError(f"items_per_page must be a positive integer, got {count!r}")
        store.state["items_per_page"] = count

    def set_default_view(store: Store, view: str) -> None:
        store.state["default_view"] = validate_choice("default_view", view, VIEWS)

    def reset_preferences(store: Store) -> None:
        store.reset()
        _logger.debug("Preferences reset to defaults")

    return StoreSetup(
        state={"theme": "light", "items_per_page": 25, "default_view": "list"},
        actions={
            "set_theme": set_theme,
            "set_items_per_page": set_items_per_page,
            "set_default_view": set_default_view,
            "reset_preferences": reset_preferences,
        },
    )


use_preferences_store = define_store(
    "preferences",
    _setup,
    persist=True,
    persist_types={"theme": str, "items_per_page": int, "default_view": str},
)
