"""UI store: global loading flag and notifications."""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any

from pycontent._constants import DEFAULT_NOTIFICATION_DURATION
from pycontent.exceptions import ContentValidationError
from pycontent.models.notification import Notification, Severity
from pycontent.store import Store, StoreRegistry, StoreSetup, define_store

_logger = logging.getLogger(__name__)


def _setup(registry: StoreRegistry) -> StoreSetup:
    config = getattr(registry.context, "config", None)
    default_duration = config.notification_duration if config is not None else DEFAULT_NOTIFICATION_DURATION
    ids = itertools.count(1)
    timers: dict[int, asyncio.TimerHandle] = {}

    def _cancel_timers() -> None:
        for handle in timers.values():
            handle.cancel()
        timers.clear()

    def set_loading(store: Store, is_loading: bool) -> None:
        store.state["global_loading"] = bool(is_loading)

    def show_notification(
        store: Store,
        message: str,
        severity: Severity | str = Severity.INFO,
        duration: float | None = None,
    ) -> int:
        """Add a notification and return its id.

        Auto-dismissed after *duration* seconds; ``<= 0`` keeps it until
        removed.  Without a running event loop nothing is scheduled and the
        notification stays until removed.
        """
        try:
            level = Severity(severity)
        except ValueError as exc:
            raise ContentValidationError(f"Unknown notification severity {severity!r}") from exc
        effective = default_duration if duration is None else float(duration)
        notification = Notification(id=next(ids), message=str(message), severity=level, duration=effective)
        store.state["notifications"] = [*store.state["notifications"], notification]

        if effective > 0:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                _logger.debug("No running loop; notification %d stays until dismissed", notification.id)
            else:
                timers[notification.id] = loop.call_later(effective, store.remove_notification, notification.id)
        return notification.id

    def remove_notification(store: Store, notification_id: int) -> None:
        handle = timers.pop(notification_id, None)
        if handle is not None:
            handle.cancel()
        current = store.state["notifications"]
        remaining = [n for n in current if n.id != notification_id]
        if len(remaining) != len(current):
            store.state["notifications"] = remaining

    def clear_notifications(store: Store) -> None:
        _cancel_timers()
        store.state["notifications"] = []

    def _by_severity(store: Store) -> Any:
        return lambda severity: [n for n in store.state["notifications"] if n.severity == Severity(severity)]

    return StoreSetup(
        state={"global_loading": False, "notifications": []},
        getters={
            "notification_count": lambda store: len(store.state["notifications"]),
            "notifications_by_severity": _by_severity,
        },
        actions={
            "set_loading": set_loading,
            "show_notification": show_notification,
            "remove_notification": remove_notification,
            "clear_notifications": clear_notifications,
        },
        dispose=_cancel_timers,
    )


use_ui_store = define_store("ui", _setup)
