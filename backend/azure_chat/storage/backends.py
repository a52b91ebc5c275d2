"""Key/value backends for the chat store.

Both backends model browser ``localStorage``: string keys, string values,
and an optional capacity after which writes are rejected with
``QuotaExceededError``. Usage is counted as characters × 2 (UTF-16 code
units) over keys and values.
"""

from __future__ import annotations

import errno
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator

from azure_chat.errors import QuotaExceededError

logger = logging.getLogger(__name__)


def _entry_size(key: str, value: str) -> int:
    return (len(key) + len(value)) * 2


class KeyValueStorage(ABC):
    """Minimal string key/value interface used by ``ChatStorage``."""

    def __init__(self, quota_bytes: int = 0) -> None:
        self.quota_bytes = quota_bytes

    @abstractmethod
    def get_item(self, key: str) -> str | None: ...

    @abstractmethod
    def set_item(self, key: str, value: str) -> None: ...

    @abstractmethod
    def remove_item(self, key: str) -> None: ...

    @abstractmethod
    def keys(self) -> Iterator[str]: ...

    def _check_quota(self, items: dict[str, str], key: str, value: str) -> None:
        if not self.quota_bytes:
            return
        projected = sum(_entry_size(k, v) for k, v in items.items() if k != key)
        projected += _entry_size(key, value)
        if projected > self.quota_bytes:
            raise QuotaExceededError(
                f"Writing {key!r} needs {projected} bytes, quota is {self.quota_bytes}"
            )


class MemoryStorage(KeyValueStorage):
    """Process-local storage; contents are lost on exit."""

    def __init__(self, quota_bytes: int = 0) -> None:
        super().__init__(quota_bytes)
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._check_quota(self._items, key, value)
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(list(self._items))


class JsonFileStorage(KeyValueStorage):
    """Durable storage in a single JSON object file.

    Every mutation rewrites the file through a temp file and
    ``os.replace`` so a crash never leaves a half-written store.
    """

    def __init__(self, path: str | Path, quota_bytes: int = 0) -> None:
        super().__init__(quota_bytes)
        self.path = Path(path).expanduser()
        self._items = self._load()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = self.path.read_bytes()
        except OSError as exc:
            logger.error("Cannot read storage file %s: %s", self.path, exc)
            raise
        try:
            data = json.loads(raw.decode("utf-8"))
        except ValueError as exc:
            backup = self.path.with_suffix(self.path.suffix + ".corrupt")
            logger.error(
                "Storage file %s is unreadable (%s); moving it to %s", self.path, exc, backup
            )
            os.replace(self.path, backup)
            return {}
        if not isinstance(data, dict):
            logger.error("Storage file %s does not hold an object; ignoring it", self.path)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(self._items, handle)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._check_quota(self._items, key, value)
        previous = self._items.get(key)
        self._items[key] = value
        try:
            self._flush()
        except OSError as exc:
            if previous is None:
                self._items.pop(key, None)
            else:
                self._items[key] = previous
            if exc.errno == errno.ENOSPC:
                raise QuotaExceededError(f"Disk full while writing {key!r}") from exc
            raise

    def remove_item(self, key: str) -> None:
        if self._items.pop(key, None) is not None:
            self._flush()

    def keys(self) -> Iterator[str]:
        return iter(list(self._items))
