# Overview: Keyed local storage for staged scan lists.

"""
Local key/value storage used by the scanning client.

Values are JSON-serialisable lists. JsonFileStore keeps everything in one
file so staged lists survive a restart of the client.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path


class KeyValueStore(ABC):

    @abstractmethod
    def get(self, key: str):
        """Stored value, or None when the key is absent."""

    @abstractmethod
    def set(self, key: str, value) -> None: ...

    @abstractmethod
    def clear(self, key: str) -> None: ...


class MemoryStore(KeyValueStore):
    """Process-local store. Values are deep-copied through JSON."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str):
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value) -> None:
        self._data[key] = json.dumps(value)

    def clear(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStore(KeyValueStore):
    """
    All keys in a single JSON object on disk.

    Every write goes to a temporary file in the same directory and is
    moved into place with os.replace, so a crash never leaves a
    half-written file behind.
    """

    def __init__(self, path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as fh:
            content = fh.read()
        if not content.strip():
            return {}
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not contain a JSON object")
        return data

    def _write_all(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".staged-", suffix=".json", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str):
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def clear(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key in data:
                del data[key]
                self._write_all(data)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._read_all())
