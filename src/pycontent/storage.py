"""Durable key-value media used by the persistence plugin."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Protocol

_logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class Storage(Protocol):
    """Structural interface of a durable string store.

    Having a protocol here makes it easy to pass test doubles (e.g. a medium
    whose writes fail) while keeping the shipped implementations concrete.
    """

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryStorage:
    """Process-local medium.  Survives store re-creation, not the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class FileStorage:
    """One UTF-8 file per key inside *directory*."""

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self._directory / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set(self, key: str, value: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)
        _logger.debug("Wrote %d bytes to %s", len(value), path)

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
