"""Application configuration for pycontent."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pycontent._constants import (
    DEFAULT_BASE_URL,
    DEFAULT_CACHE_TTL,
    DEFAULT_NOTIFICATION_DURATION,
    DEFAULT_PERSIST_NAMESPACE,
    DEFAULT_SWEEP_INTERVAL,
)


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class ContentConfig:
    """Application configuration.

    Parameters
    ----------
    base_url : str
        Root URL of the content server REST API.
    username : str or None
        Account name used by :meth:`ContentApp.login` when no explicit
        credentials are passed.
    password : str or None
        Account password.
    cache_ttl : float
        Seconds a fetched node (or node list) stays in the TTL cache.
    cache_sweep_interval : float
        Seconds between background sweeps of expired cache entries.
        ``0`` disables the sweeper; expired entries are then only evicted
        on read or by an explicit ``clear_expired()``.
    request_timeout : float
        Seconds before a stalled remote call is aborted with
        :class:`~pycontent.exceptions.ContentTimeoutError`.  ``0`` disables
        the timeout.
    persist_namespace : str
        Prefix of durable storage keys (``"<namespace>-<store_id>"``).
    storage_dir : str or None
        Directory for the file-backed durable medium.  ``None`` keeps
        persisted snapshots in memory for the lifetime of the app.
    notification_duration : float
        Default auto-dismiss delay of notifications, in seconds.
    favorite_failure_rate : float
        Fraction of favorite calls the mock API fails on purpose.
    log_actions : bool
        Install the action logging plugin on every store.
    """

    base_url: str = DEFAULT_BASE_URL
    username: str | None = None
    password: str | None = None
    cache_ttl: float = DEFAULT_CACHE_TTL
    cache_sweep_interval: float = DEFAULT_SWEEP_INTERVAL
    request_timeout: float = 10.0
    persist_namespace: str = DEFAULT_PERSIST_NAMESPACE
    storage_dir: str | None = None
    notification_duration: float = DEFAULT_NOTIFICATION_DURATION
    favorite_failure_rate: float = 0.1
    log_actions: bool = False

    @classmethod
    def from_env(cls, **overrides: Any) -> ContentConfig:
        """Create configuration from environment variables.

        Reads optional ``CONTENT_*`` variables.  Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        ContentConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "CONTENT_BASE_URL": "base_url",
            "CONTENT_USERNAME": "username",
            "CONTENT_PASSWORD": "password",
            "CONTENT_PERSIST_NAMESPACE": "persist_namespace",
            "CONTENT_STORAGE_DIR": "storage_dir",
        }
        _ENV_FLOAT_MAP = {
            "CONTENT_CACHE_TTL": "cache_ttl",
            "CONTENT_CACHE_SWEEP_INTERVAL": "cache_sweep_interval",
            "CONTENT_REQUEST_TIMEOUT": "request_timeout",
            "CONTENT_NOTIFICATION_DURATION": "notification_duration",
            "CONTENT_FAVORITE_FAILURE_RATE": "favorite_failure_rate",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        # Numeric values, handled separately
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = float(val)

        if "log_actions" not in overrides:
            config_kwargs["log_actions"] = _env_bool(env.get("CONTENT_LOG_ACTIONS"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
