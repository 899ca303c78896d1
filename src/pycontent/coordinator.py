"""In-flight request deduplication.

Concurrent fetches that share a key collapse onto one underlying call.  The
coordinator keeps nothing past settlement; callers layer the TTL cache on top
(check cache -> ``call`` -> ``cache.set`` on success).
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import Any, TypeVar

from pycontent.exceptions import ContentTimeoutError

_logger = logging.getLogger(__name__)

T = TypeVar("T")

_DEFAULT = object()


class RequestCoordinator:
    """Share one pending task per key between concurrent callers.

    ``call`` checks and registers in a single synchronous step, so no other
    coroutine can slip in between and start a duplicate request.  The key is
    released by the task's first done-callback, before any waiter resumes: a
    caller that reacts to the result (even from a done-callback) and calls
    again with the same key starts a fresh request.

    Each caller gets its own shielded view of the shared task, so a caller
    that is cancelled stops waiting without cancelling the request for the
    others.
    """

    def __init__(self, *, timeout: float | None = None) -> None:
        self._timeout = timeout if timeout and timeout > 0 else None
        self._pending: dict[Hashable, asyncio.Task[Any]] = {}

    def call(
        self,
        key: Hashable,
        factory: Callable[[], Awaitable[T]],
        *,
        timeout: float | None | object = _DEFAULT,
    ) -> asyncio.Future[T]:
        """Return a waiter on the pending request for *key*, starting it if needed.

        Parameters
        ----------
        key
            Deduplication key, e.g. ``"node-7"``.
        factory
            Zero-argument callable returning the awaitable to run.  Invoked
            at most once per pending period, synchronously inside ``call``.
        timeout
            Seconds before the call is aborted with
            :class:`ContentTimeoutError`.  Defaults to the coordinator-wide
            timeout; ``None`` disables it for this call.

        Returns
        -------
        asyncio.Future
            A shield around the shared task.  Every concurrent caller
            observes the same result or exception; cancelling one waiter
            leaves the request running.
        """
        pending = self._pending.get(key)
        if pending is not None:
            _logger.debug("Joining pending request key=%s", key)
            return asyncio.shield(pending)

        effective_timeout = self._timeout if timeout is _DEFAULT else timeout
        awaitable = factory()
        task: asyncio.Task[T] = asyncio.ensure_future(self._run(key, awaitable, effective_timeout))  # type: ignore[arg-type]
        self._pending[key] = task
        # Registered before any waiter exists, so it runs first on settlement,
        # including a cancellation that lands before the task's first step.
        task.add_done_callback(functools.partial(self._release, key))
        return asyncio.shield(task)

    def _release(self, key: Hashable, task: asyncio.Task[Any]) -> None:
        # Only drop our own registration; clear() may have let a newer
        # request take the key in the meantime.
        if self._pending.get(key) is task:
            del self._pending[key]

    async def _run(self, key: Hashable, awaitable: Awaitable[T], timeout: float | None) -> T:
        if timeout is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout)
        except ContentTimeoutError:
            raise
        except TimeoutError as exc:
            _logger.debug("Request key=%s timed out after %.3fs", key, timeout)
            raise ContentTimeoutError(f"Request {key!r} timed out after {timeout}s", endpoint=str(key)) from exc

    def is_pending(self, key: Hashable) -> bool:
        return key in self._pending

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def clear(self) -> None:
        """Forget all pending keys.  In-flight work is not cancelled."""
        self._pending.clear()
