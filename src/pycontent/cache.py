"""Key/value cache with per-entry expiry and a periodic sweep."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict

from pycontent._constants import DEFAULT_CACHE_TTL, DEFAULT_SWEEP_INTERVAL

_logger = logging.getLogger(__name__)

_MISSING = object()


def is_expired(now: float, expires_at: float) -> bool:
    return now >= expires_at


@dataclass(slots=True)
class CacheEntry:
    key: Hashable
    value: Any
    expires_at: float


class CacheStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int
    valid: int
    expired: int


class TtlCache:
    """In-memory cache whose entries expire after a time-to-live.

    An entry is live while ``now < expires_at``; at the expiry instant it is
    already expired, which is what makes ``ttl <= 0`` miss on the very next
    read.  Expired entries are never returned: ``get`` evicts them on read,
    and an optional background task sweeps them periodically.  The sweep task is
    owned by the cache and must be released with :meth:`dispose` (or by
    leaving ``async with``); it is not cancelled on garbage collection.

    Usage::

        async with TtlCache(default_ttl=60) as cache:
            cache.set("node-7", node)
            cache.get("node-7")
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        default_ttl: float = DEFAULT_CACHE_TTL,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
    ) -> None:
        self._clock = clock
        self._default_ttl = default_ttl
        self._sweep_interval = sweep_interval
        self._entries: dict[Hashable, CacheEntry] = {}
        self._sweeper: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TtlCache:
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.dispose()

    def start(self) -> None:
        """Start the periodic sweep on the running event loop.

        Idempotent.  A non-positive ``sweep_interval`` disables the sweeper.
        """
        if self._sweep_interval <= 0:
            return
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_loop(), name="pycontent-cache-sweep")

    def dispose(self) -> None:
        """Cancel the sweep task.  Entries are kept."""
        sweeper = self._sweeper
        self._sweeper = None
        if sweeper is not None and not sweeper.done():
            sweeper.cancel()

    @property
    def is_sweeping(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            removed = self.clear_expired()
            if removed:
                _logger.debug("Cache sweep evicted %d expired entries", removed)

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def set(self, key: Hashable, value: Any, ttl: float | None = None) -> None:
        """Store *value* for *ttl* seconds (default: the cache's ``default_ttl``).

        A non-positive *ttl* stores an entry that is already expired on the
        next read.
        """
        effective_ttl = self._default_ttl if ttl is None else ttl
        self._entries[key] = CacheEntry(key=key, value=value, expires_at=self._clock() + effective_ttl)

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Return the live value for *key*, evicting it if it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return default
        if is_expired(self._clock(), entry.expires_at):
            del self._entries[key]
            return default
        return entry.value

    def has(self, key: Hashable) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def remove(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def clear_expired(self) -> int:
        """Evict every expired entry and return how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if is_expired(now, entry.expires_at)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def get_stats(self) -> CacheStats:
        """Count entries, classifying each against the clock right now."""
        now = self._clock()
        expired = sum(1 for entry in self._entries.values() if is_expired(now, entry.expires_at))
        total = len(self._entries)
        return CacheStats(total=total, valid=total - expired, expired=expired)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return self.has(key)  # type: ignore[arg-type]
