"""pycontent - Reactive client-side state for a content server."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pycontent")
except PackageNotFoundError:
    __version__ = "0+local"
from pycontent.api import ContentApi, HttpContentApi, MockContentApi
from pycontent.app import ContentApp
from pycontent.cache import CacheStats, TtlCache
from pycontent.config import ContentConfig
from pycontent.coordinator import RequestCoordinator
from pycontent.events import ActionOutcome, ActionRecord, MutationEvent, MutationType
from pycontent.exceptions import (
    ContentAuthError,
    ContentConflictError,
    ContentError,
    ContentNotFoundError,
    ContentParseError,
    ContentRemoteError,
    ContentTimeoutError,
    ContentTransientError,
    ContentValidationError,
)
from pycontent.models import LoginResult, Node, NodeType, Notification, Severity, User
from pycontent.optimistic import ChangeStatus, OptimisticChange, optimistic_update
from pycontent.plugins import logging_plugin, persistence_plugin
from pycontent.storage import FileStorage, MemoryStorage, Storage
from pycontent.store import Store, StoreRegistry, StoreSetup, define_store

__all__ = [
    "__version__",
    "ActionOutcome",
    "ActionRecord",
    "CacheStats",
    "ChangeStatus",
    "ContentApi",
    "ContentApp",
    "ContentAuthError",
    "ContentConfig",
    "ContentConflictError",
    "ContentError",
    "ContentNotFoundError",
    "ContentParseError",
    "ContentRemoteError",
    "ContentTimeoutError",
    "ContentTransientError",
    "ContentValidationError",
    "FileStorage",
    "HttpContentApi",
    "LoginResult",
    "MemoryStorage",
    "MockContentApi",
    "MutationEvent",
    "MutationType",
    "Node",
    "NodeType",
    "Notification",
    "OptimisticChange",
    "RequestCoordinator",
    "Severity",
    "Storage",
    "Store",
    "StoreRegistry",
    "StoreSetup",
    "TtlCache",
    "User",
    "define_store",
    "logging_plugin",
    "optimistic_update",
    "persistence_plugin",
]
