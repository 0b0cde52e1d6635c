"""Durable key-value stores used to mirror the event log."""

import json
import os
import tempfile
import threading
from typing import Protocol, runtime_checkable


class StorageError(Exception):
    """Raised when a store cannot be read or written."""


@runtime_checkable
class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Dict-backed store. Survives for the lifetime of the object only."""

    def __init__(self, initial: dict | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """Single JSON object file mapping keys to text values.

    Writes go to a temp file in the same directory and are moved into place
    with os.replace, so a crash mid-write leaves the previous file intact.
    """

    def __init__(self, path: str):
        self._path = path
        self._lock = threading.Lock()
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)

    @property
    def path(self) -> str:
        return self._path

    def _load(self) -> dict:
        if not os.path.exists(self._path):
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            raise StorageError(f"Could not read {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageError(f"Unexpected content in {self._path}")
        return data

    def _dump(self, data: dict):
        directory = os.path.dirname(os.path.abspath(self._path))
        try:
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise StorageError(f"Could not write {self._path}: {exc}") from exc

    def get(self, key: str) -> str | None:
        with self._lock:
            value = self._load().get(key)
        if value is not None and not isinstance(value, str):
            raise StorageError(f"Value for {key!r} is not text")
        return value

    def set(self, key: str, value: str) -> None:
        with self._lock:
            try:
                data = self._load()
            except StorageError:
                # A corrupt file is overwritten rather than blocking writes
                data = {}
            data[key] = value
            self._dump(data)

    def delete(self, key: str) -> None:
        with self._lock:
            try:
                data = self._load()
            except StorageError:
                data = {}
            if key in data:
                del data[key]
                self._dump(data)
