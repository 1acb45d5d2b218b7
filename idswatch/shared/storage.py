"""Persistent key-value storage for client-side state.

Each key holds one JSON document (annotation map, notification settings,
user filters). Writes replace the whole document; there is no locking or
versioning, so two processes sharing a directory race last-writer-wins.
"""

from __future__ import annotations

import abc
import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any

from idswatch.errors import StorageError

log = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStorage(abc.ABC):
    """Minimal JSON document store keyed by name."""

    @abc.abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the stored document, or None when the key is absent.

        Raises:
            StorageError: if the document exists but cannot be read.
        """

    @abc.abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store *value* under *key*.

        Raises:
            StorageError: if the document cannot be written.
        """

    @abc.abstractmethod
    def remove(self, key: str) -> None:
        """Delete *key*; missing keys are ignored."""


class MemoryStorage(KeyValueStorage):
    """In-process storage; values are round-tripped through JSON."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"value for '{key}' is not JSON-serialisable: {exc}") from exc

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class JsonFileStorage(KeyValueStorage):
    """One ``<key>.json`` file per key inside *directory*."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory).expanduser()

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise StorageError(f"invalid storage key '{key}'")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Any | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, ValueError) as exc:
            raise StorageError(f"cannot read {path}: {exc}") from exc

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        try:
            content = json.dumps(value, ensure_ascii=False, indent=2)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"value for '{key}' is not JSON-serialisable: {exc}") from exc
        try:
            atomic_write(path, content)
        except OSError as exc:
            raise StorageError(f"cannot write {path}: {exc}") from exc
        log.debug("Stored %s (%d bytes)", path.name, len(content))

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise StorageError(f"cannot remove {path}: {exc}") from exc


def atomic_write(path: str | Path, content: str) -> None:
    """Атомарно записує content у файл path."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(
        dir=str(target.parent),
        prefix=f".{target.name}.",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, target)
    except BaseException:
        # Clean up temp file on any failure
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise
