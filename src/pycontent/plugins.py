"""Store plugins: persistence and action logging.

A plugin is ``plugin(store, options) -> None``.  The registry applies its
plugins in registration order to every store it builds, before the store is
handed to any caller.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import TypeAdapter, ValidationError

from pycontent._constants import DEFAULT_PERSIST_NAMESPACE
from pycontent._redact import redact_action_args
from pycontent.events import ActionOutcome, ActionRecord, MutationEvent
from pycontent.exceptions import ContentParseError
from pycontent.storage import Storage
from pycontent.store import ActionContext, Store, StoreOptions, StorePlugin

_logger = logging.getLogger(__name__)

_SNAPSHOT_ADAPTER: TypeAdapter[dict[str, Any]] = TypeAdapter(dict[str, Any])


def storage_key(namespace: str, store_id: str) -> str:
    return f"{namespace}-{store_id}"


def _persisted_fields(store: Store, options: StoreOptions) -> tuple[str, ...]:
    if options.persist is True:
        return tuple(store.state)
    return tuple(name for name in options.persist or () if name in store.state)


def _decode_snapshot(
    raw: str,
    fields: tuple[str, ...],
    field_types: Mapping[str, Any],
) -> dict[str, Any]:
    """Parse a saved snapshot and keep the configured fields.

    Fields listed in *field_types* are validated into their declared type
    (e.g. ``{"user": User | None}``); the rest are taken as decoded JSON.
    """
    try:
        saved = _SNAPSHOT_ADAPTER.validate_json(raw)
    except ValidationError as exc:
        raise ContentParseError(f"Persisted snapshot is not a JSON object: {exc.error_count()} error(s)") from exc

    restored: dict[str, Any] = {}
    for name in fields:
        if name not in saved:
            continue
        value = saved[name]
        field_type = field_types.get(name)
        if field_type is not None:
            try:
                value = TypeAdapter(field_type).validate_python(value)
            except ValidationError as exc:
                raise ContentParseError(f"Persisted field {name!r} is invalid") from exc
        restored[name] = value
    return restored


def persistence_plugin(storage: Storage, *, namespace: str = DEFAULT_PERSIST_NAMESPACE) -> StorePlugin:
    """Build a plugin that saves and restores stores declaring ``persist``.

    On creation the store is hydrated from ``storage`` under
    ``"<namespace>-<store_id>"``.  A corrupt or unreadable snapshot is logged
    and the factory defaults are kept; creation never fails because of it.
    Afterwards every mutation writes the persisted fields back.  Write
    failures are logged, never raised into the action that mutated.

    Per-field types for hydration come from the definition option
    ``persist_types``.
    """

    def _plugin(store: Store, options: StoreOptions) -> None:
        if not options.persist:
            return

        key = storage_key(namespace, store.id)
        fields = _persisted_fields(store, options)
        field_types: Mapping[str, Any] = options.extra.get("persist_types", {})

        try:
            raw = storage.get(key)
            if raw is not None:
                restored = _decode_snapshot(raw, fields, field_types)
                if restored:
                    store.patch(restored)
                _logger.debug("Restored %s for store %s", sorted(restored), store.id)
        except ContentParseError:
            _logger.warning("Discarding corrupt persisted state for store %s", store.id, exc_info=True)
        except Exception:
            _logger.warning("Failed to load persisted state for store %s", store.id, exc_info=True)

        def _save(_event: MutationEvent, state: Mapping[str, Any]) -> None:
            try:
                values = {name: state[name] for name in fields}
                storage.set(key, _SNAPSHOT_ADAPTER.dump_json(values).decode("utf-8"))
            except Exception:
                _logger.warning("Failed to save state for store %s", store.id, exc_info=True)

        store.add_dispose_hook(store.subscribe(_save))

    return _plugin


def logging_plugin(
    *,
    sink: Callable[[ActionRecord], None] | None = None,
    logger: logging.Logger | None = None,
) -> StorePlugin:
    """Build a plugin that traces every action call.

    Each call produces one :class:`ActionRecord` (arguments redacted), logged
    at DEBUG on success and WARNING on error, and passed to *sink* when
    given.  The action's result and error are left untouched.
    """
    log = logger or _logger

    def _plugin(store: Store, _options: StoreOptions) -> None:
        def _intercept(ctx: ActionContext) -> None:
            started = time.perf_counter()
            args = redact_action_args(ctx.name, ctx.args, ctx.kwargs)

            def _emit(outcome: ActionOutcome, error: BaseException | None = None) -> None:
                record = ActionRecord(
                    store_id=store.id,
                    action=ctx.name,
                    args=args,
                    duration_ms=(time.perf_counter() - started) * 1000.0,
                    outcome=outcome,
                    error=None if error is None else str(error) or type(error).__name__,
                )
                if outcome == ActionOutcome.SUCCESS:
                    log.debug("Action %s.%s ok in %.1fms args=%s", record.store_id, record.action, record.duration_ms, args)
                else:
                    log.warning(
                        "Action %s.%s failed in %.1fms: %s",
                        record.store_id,
                        record.action,
                        record.duration_ms,
                        record.error,
                    )
                if sink is not None:
                    sink(record)

            ctx.after(lambda _result: _emit(ActionOutcome.SUCCESS))
            ctx.on_error(lambda exc: _emit(ActionOutcome.ERROR, exc))

        store.add_dispose_hook(store.on_action(_intercept))

    return _plugin
