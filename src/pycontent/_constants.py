"""Internal constants shared across the library."""

DEFAULT_BASE_URL = "http://localhost:3000/api"
USER_AGENT = "pycontent/1"

#: Default time-to-live of cache entries, in seconds (5 minutes).
DEFAULT_CACHE_TTL: float = 5 * 60

#: Default period of the cache's expired-entry sweep, in seconds.
DEFAULT_SWEEP_INTERVAL: float = 60.0

#: Default auto-dismiss delay of notifications, in seconds.
DEFAULT_NOTIFICATION_DURATION: float = 3.0

DEFAULT_PERSIST_NAMESPACE = "pycontent"

#: Most recent searches kept by the search store.
MAX_SEARCH_HISTORY = 10

ALL_NODES_CACHE_KEY = "all-nodes"


def node_cache_key(node_id: int) -> str:
    """Cache/dedup key for a single node."""
    return f"node-{node_id}"
