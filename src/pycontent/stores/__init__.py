"""Domain stores of the content server client."""

from pycontent.stores.auth import use_auth_store
from pycontent.stores.content import use_content_store
from pycontent.stores.favorites import use_favorites_store
from pycontent.stores.preferences import use_preferences_store
from pycontent.stores.search import use_search_store
from pycontent.stores.ui import use_ui_store

__all__ = [
    "use_auth_store",
    "use_content_store",
    "use_favorites_store",
    "use_preferences_store",
    "use_search_store",
    "use_ui_store",
]
