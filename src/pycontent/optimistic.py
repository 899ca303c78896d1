"""Optimistic updates with exact-snapshot rollback.

The local state is changed to the intended end result immediately, the
remote operation runs concurrently, and the outcome either confirms the
change (reconciling to the server's answer if it differs) or restores the
snapshot taken just before the change.  Rollback never computes an inverse.

When several targets share one field (a list of ids, say), a change passes a
``restore`` function that puts back only its own target's slice of the
snapshot, so a late rollback does not undo another target's change that
settled in the meantime.

Only one unresolved change per target id is allowed on a store; starting a
second one raises :class:`ContentConflictError` and leaves state untouched.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Awaitable, Callable, Hashable, Iterable, Mapping
from enum import StrEnum
from typing import Any, TypeVar

from pycontent.exceptions import ContentConflictError, ContentError, ContentTransientError
from pycontent.models.notification import Severity
from pycontent.store import Store

_logger = logging.getLogger(__name__)

T = TypeVar("T")

Notify = Callable[[str, Severity], Any]

# restore(snapshot, current) -> values to patch back on rollback.
Restore = Callable[[Mapping[str, Any], Mapping[str, Any]], Mapping[str, Any]]


class ChangeStatus(StrEnum):
    IDLE = "idle"
    APPLIED = "applied"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


class OptimisticChange:
    """One optimistic change of a slice of a store's state.

    Parameters
    ----------
    store
        Store whose state is changed.
    keys
        State fields captured in the snapshot.  Every field written by
        :meth:`apply` must be listed here.
    target_id
        Logical target of the change (e.g. a node id).
    restore
        Optional merge of the snapshot into the current values on rollback.
        Without it the snapshot is restored verbatim.
    """

    def __init__(
        self,
        store: Store,
        keys: Iterable[str],
        *,
        target_id: Hashable,
        restore: Restore | None = None,
    ) -> None:
        self.store = store
        self.keys = tuple(keys)
        self.target_id = target_id
        self.restore = restore
        self.status = ChangeStatus.IDLE
        self.snapshot: dict[str, Any] = {}

    def apply(self, values: Mapping[str, Any]) -> None:
        """Snapshot the slice, then write *values* into the store."""
        if self.status != ChangeStatus.IDLE:
            raise ContentError(f"Optimistic change for {self.target_id!r} was already applied")
        unknown = set(values) - set(self.keys)
        if unknown:
            raise ContentError(f"Fields {sorted(unknown)} are not covered by the snapshot")
        if self.target_id in self.store.pending_targets:
            raise ContentConflictError(
                f"An optimistic change for {self.target_id!r} is still pending on store {self.store.id!r}"
            )

        self.snapshot = {key: copy.deepcopy(self.store.state[key]) for key in self.keys}
        self.store.pending_targets.add(self.target_id)
        self.status = ChangeStatus.APPLIED
        self.store.patch(values)

    def confirm(self, authoritative: Mapping[str, Any] | None = None) -> None:
        """Keep the change, reconciling to *authoritative* values that disagree."""
        self._resolve(ChangeStatus.CONFIRMED)
        if not authoritative:
            return
        differing = {key: value for key, value in authoritative.items() if self.store.state[key] != value}
        if differing:
            _logger.debug("Reconciling %s for target %r to server values", sorted(differing), self.target_id)
            self.store.patch(differing)

    def rollback(
        self,
        error: BaseException,
        *,
        notify: Notify | None = None,
        message: str | None = None,
    ) -> None:
        """Restore the snapshot, then report the failure through *notify*."""
        self._resolve(ChangeStatus.ROLLED_BACK)
        if self.restore is None:
            self.store.patch(copy.deepcopy(self.snapshot))
        else:
            current = {key: self.store.state[key] for key in self.keys}
            self.store.patch(self.restore(copy.deepcopy(self.snapshot), current))
        _logger.debug("Rolled back optimistic change for target %r: %s", self.target_id, error)
        if notify is not None:
            text = message if message is not None else str(error)
            notify(text, Severity.ERROR)

    def _resolve(self, status: ChangeStatus) -> None:
        if self.status != ChangeStatus.APPLIED:
            raise ContentError(f"Cannot move optimistic change from {self.status} to {status}")
        self.status = status
        self.store.pending_targets.discard(self.target_id)


def _as_rollback_error(error: BaseException) -> ContentError:
    """Classify *error* for rollback; unknown failures count as transient."""
    if isinstance(error, ContentError):
        return error
    return ContentTransientError(str(error) or type(error).__name__)


async def optimistic_update(
    store: Store,
    *,
    target_id: Hashable,
    values: Mapping[str, Any],
    operation: Callable[[], Awaitable[T]],
    notify: Notify | None = None,
    failure_message: Callable[[ContentError], str] | None = None,
    reconcile: Callable[[T], Mapping[str, Any] | None] | None = None,
    restore: Restore | None = None,
) -> T:
    """Apply *values*, run *operation*, then confirm or roll back.

    Parameters
    ----------
    store
        Store to change.
    target_id
        Logical target; see the module docstring for the overlap policy.
    values
        Intended end state of the changed fields.
    operation
        Zero-argument callable starting the remote call.
    notify
        ``notify(message, severity)``; receives exactly one error message
        when the change is rolled back.
    failure_message
        Builds the notification text from the (classified) error.
    reconcile
        Maps the remote result to authoritative field values, if the server
        returns them.
    restore
        Passed to :class:`OptimisticChange`; restores only this target's
        slice of a field shared with other targets.

    Returns
    -------
    T
        The remote result.  On failure the original exception is re-raised
        after the rollback.
    """
    change = OptimisticChange(store, values.keys(), target_id=target_id, restore=restore)
    change.apply(values)
    try:
        result = await operation()
    except asyncio.CancelledError as exc:
        change.rollback(exc)
        raise
    except Exception as exc:
        classified = _as_rollback_error(exc)
        message = failure_message(classified) if failure_message is not None else str(classified)
        change.rollback(classified, notify=notify, message=message)
        raise
    change.confirm(reconcile(result) if reconcile is not None else None)
    return result
