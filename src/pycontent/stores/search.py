"""Search store: query and filters over the content store's nodes, plus history."""

from __future__ import annotations

from pycontent._constants import MAX_SEARCH_HISTORY
from pycontent.models.node import Node
from pycontent.store import Store, StoreRegistry, StoreSetup, define_store
from pycontent.stores._validation import validate_choice
from pycontent.stores.content import use_content_store

TYPE_FILTERS = ("all", "folder", "document")


def _matches(node: Node, query: str, type_filter: str, owner: str) -> bool:
    if query and query not in node.name.lower() and query not in node.description.lower():
        return False
    if type_filter != "all" and node.type != type_filter:
        return False
    return not owner or owner in node.owner.lower()


def _setup(registry: StoreRegistry) -> StoreSetup:
    content = registry.use(use_content_store)

    def search_results(store: Store) -> list[Node]:
        query = store.state["query"].strip().lower()
        owner = store.state["owner_filter"].strip().lower()
        type_filter = store.state["type_filter"]
        return [node for node in content.state["nodes"] if _matches(node, query, type_filter, owner)]

    def set_query(store: Store, query: str) -> None:
        store.state["query"] = str(query or "")

    def set_type_filter(store: Store, type_filter: str) -> None:
        store.state["type_filter"] = validate_choice("type_filter", type_filter, TYPE_FILTERS)

    def set_owner_filter(store: Store, owner: str) -> None:
        store.state["owner_filter"] = str(owner or "")

    def add_to_history(store: Store, query: str) -> None:
        """Record *query* as the most recent search.  Blank queries are ignored."""
        if not isinstance(query, str) or not query.strip():
            return
        history = [query, *(q for q in store.state["search_history"] if q != query)]
        store.state["search_history"] = history[:MAX_SEARCH_HISTORY]

    def clear_history(store: Store) -> None:
        store.state["search_history"] = []

    def clear_filters(store: Store) -> None:
        store.patch({"query": "", "type_filter": "all", "owner_filter": ""})

    return StoreSetup(
        state={"query": "", "type_filter": "all", "owner_filter": "", "search_history": []},
        getters={
            "search_results": search_results,
            "result_count": lambda store: len(store.search_results),
        },
        actions={
            "set_query": set_query,
            "set_type_filter": set_type_filter,
            "set_owner_filter": set_owner_filter,
            "add_to_history": add_to_history,
            "clear_history": clear_history,
            "clear_filters": clear_filters,
        },
    )


use_search_store = define_store(
    "search",
    _setup,
    persist=["search_history"],
    persist_types={"search_history": list[str]},
)
