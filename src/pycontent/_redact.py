"""Helpers for safe debug logging.

Store actions receive credentials (``login(username, password)``) and the auth
store holds bearer tokens. This module redacts such values before they reach
log records or action traces.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "token",
        "accesstoken",
        "refreshtoken",
        "authorization",
        "cookie",
        "secret",
    }
)

# Positional arguments of these actions are redacted by index.
_SENSITIVE_POSITIONAL: dict[str, frozenset[int]] = {
    "login": frozenset({1}),
}


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    if _depth > 20:
        return "<max-depth>"

    if value is None:
        return None

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, BaseModel):
        return redact_for_log(value.model_dump(), max_string=max_string, _depth=_depth + 1)

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            if key.replace("_", "").lower() in _SENSITIVE_VALUE_KEYS:
                redacted[key] = "<redacted>"
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    # Fallback: represent unknown objects without dumping internals.
    return repr(value)


def redact_action_args(action: str, args: Sequence[Any], kwargs: Mapping[str, Any]) -> dict[str, Any]:
    """Redact the call arguments of a store action for tracing."""
    hidden = _SENSITIVE_POSITIONAL.get(action, frozenset())
    positional = ["<redacted>" if index in hidden else redact_for_log(arg) for index, arg in enumerate(args)]
    return {"args": positional, "kwargs": redact_for_log(dict(kwargs))}
