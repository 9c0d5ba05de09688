"""Key-value backends shared by the result cache and the cost tracker.

Two implementations: a JSON document on disk that survives restarts, and a
process-local dictionary. `open_store` picks the first one that works.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
import tempfile
from typing import Any, Protocol, runtime_checkable

log = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal JSON-value store used by the cache and the cost tracker.

    Values must be JSON-serializable (dicts, lists, str, numbers, bools, None).
    """

    def get(self, key: str) -> Any | None:
        """Return the value for `key`, if present."""
        ...

    def set(self, key: str, value: Any) -> None:
        """Store `value` under `key`, replacing any previous value."""
        ...

    def delete(self, key: str) -> None:
        """Remove `key` if present."""
        ...

    def keys(self, prefix: str = "") -> list[str]:
        """Return the stored keys that start with `prefix`."""
        ...


class InMemoryStore:
    """Process-local store; contents vanish with the process."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Any | None:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        return [k for k in self._data if k.startswith(prefix)]


class JsonFileStore:
    """Persistent store backed by a single JSON object on disk.

    The whole document is held in memory and rewritten atomically on every
    mutation. Single writer only.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        """Open (or create) the backing file.

        Raises:
            OSError: If the file or its directory cannot be created or read.
            ValueError: If the file exists but is not a JSON object.
        """
        self.path = Path(path)
        self._data = self._load()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._write({})
            return {}
        raw = self.path.read_text(encoding="utf-8")
        if not raw.strip():
            return {}
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not contain a JSON object")
        return data

    def _write(self, data: dict[str, Any]) -> None:
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> Any | None:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._write(self._data)

    def delete(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._write(self._data)

    def keys(self, prefix: str = "") -> list[str]:
        return [k for k in self._data if k.startswith(prefix)]


def open_store(path: str | os.PathLike[str] | None) -> KeyValueStore:
    """Open the persistent store at `path`, degrading to memory.

    Args:
        path: JSON file location, or None for a process-local store.

    Returns:
        A `JsonFileStore` when `path` is usable, otherwise an `InMemoryStore`.
    """
    if path is None:
        return InMemoryStore()
    try:
        store = JsonFileStore(path)
    except (OSError, ValueError) as e:
        log.warning(
            "Persistent store at %s unavailable (%s); using in-memory store", path, e
        )
        return InMemoryStore()
    if not os.access(store.path, os.W_OK):
        log.warning("Persistent store at %s is read-only; using in-memory store", path)
        return InMemoryStore()
    log.debug("Using persistent store at %s", store.path)
    return store
