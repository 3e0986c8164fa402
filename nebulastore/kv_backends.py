"""Key-value stores used to hold S3 metadata, and a factory to create them."""

from __future__ import annotations

import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

from nebulastore.types import StorageIOError

Creator = Callable[[str], "MetadataBackend"]


def _take_prefixed(
    items: Iterable[tuple[str, bytes]], prefix: str, limit: int
) -> list[tuple[str, bytes]]:
    """Collect sorted items while they share ``prefix``; at least one when any match."""
    result: list[tuple[str, bytes]] = []
    for key, value in items:
        if not key.startswith(prefix):
            break
        result.append((key, value))
        if len(result) >= limit:
            break
    return result


class MetadataBackend(ABC):
    """An ordered key-value store with prefix scans."""

    @abstractmethod
    def put(self, key: str, value: bytes) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """The value under ``key``, or ``None`` when absent."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; a missing key is not an error."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Whether ``key`` is present."""

    @abstractmethod
    def batch_put(self, items: Iterable[tuple[str, bytes]]) -> None:
        """Store all pairs atomically."""

    @abstractmethod
    def scan(self, prefix: str, limit: int = 1000) -> list[tuple[str, bytes]]:
        """Pairs whose key starts with ``prefix``, in key order, at most ``limit``."""


class MemoryBackend(MetadataBackend):
    """A backend held in a dictionary; nothing is persisted."""

    def __init__(self, config: str = "") -> None:
        self._data: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def put(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._data

    def batch_put(self, items: Iterable[tuple[str, bytes]]) -> None:
        staged = {key: bytes(value) for key, value in items}
        with self._lock:
            self._data.update(staged)

    def scan(self, prefix: str, limit: int = 1000) -> list[tuple[str, bytes]]:
        with self._lock:
            keys = sorted(k for k in self._data if k >= prefix)
            items = [(k, self._data[k]) for k in keys]
        return _take_prefixed(items, prefix, limit)


class SqliteBackend(MetadataBackend):
    """A persistent backend in an SQLite file inside a directory.

    ``path`` names a directory, created if needed; ``":memory:"`` keeps the
    database in memory.
    """

    FILE_NAME = "metadata.sqlite3"

    def __init__(self, path: str | Path) -> None:
        if str(path) == ":memory:":
            target = ":memory:"
        else:
            directory = Path(path)
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StorageIOError(f"Failed to open metadata store: {exc}") from exc
            target = str(directory / self.FILE_NAME)
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(target, check_same_thread=False)
            with self._conn:
                self._conn.execute(
                    "CREATE TABLE IF NOT EXISTS kv "
                    "(key TEXT PRIMARY KEY, value BLOB NOT NULL) WITHOUT ROWID"
                )
        except sqlite3.Error as exc:
            raise StorageIOError(f"Failed to open metadata store: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "SqliteBackend":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _write(self, sql: str, rows: list[tuple]) -> None:
        with self._lock:
            try:
                with self._conn:
                    self._conn.executemany(sql, rows)
            except sqlite3.Error as exc:
                raise StorageIOError(f"Metadata write failed: {exc}") from exc

    def put(self, key: str, value: bytes) -> None:
        self._write("INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)", [(key, bytes(value))])

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            try:
                row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            except sqlite3.Error as exc:
                raise StorageIOError(f"Metadata read failed: {exc}") from exc
        return None if row is None else bytes(row[0])

    def delete(self, key: str) -> None:
        self._write("DELETE FROM kv WHERE key = ?", [(key,)])

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def batch_put(self, items: Iterable[tuple[str, bytes]]) -> None:
        rows = [(key, bytes(value)) for key, value in items]
        self._write("INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)", rows)

    def scan(self, prefix: str, limit: int = 1000) -> list[tuple[str, bytes]]:
        with self._lock:
            try:
                cursor = self._conn.execute(
                    "SELECT key, value FROM kv WHERE key >= ? ORDER BY key", (prefix,)
                )
                rows: Iterator[tuple[str, bytes]] = ((k, bytes(v)) for k, v in cursor)
                return _take_prefixed(rows, prefix, limit)
            except sqlite3.Error as exc:
                raise StorageIOError(f"Metadata scan failed: {exc}") from exc


class BackendFactory:
    """Creates backends by registered type name."""

    def __init__(self) -> None:
        self._creators: dict[str, Creator] = {}

    def register(self, kind: str, creator: Creator) -> None:
        self._creators[kind] = creator

    def create(self, kind: str, config: str) -> MetadataBackend:
        """A new backend of ``kind``; ``ValueError`` if the type is unknown."""
        try:
            creator = self._creators[kind]
        except KeyError:
            raise ValueError(f"unknown metadata backend type: {kind!r}") from None
        return creator(config)


_default: Optional[BackendFactory] = None
_default_lock = threading.Lock()


def default_factory() -> BackendFactory:
    """The shared factory, with ``sqlite`` and ``memory`` registered."""
    global _default
    with _default_lock:
        if _default is None:
            factory = BackendFactory()
            factory.register("sqlite", SqliteBackend)
            factory.register("memory", MemoryBackend)
            _default = factory
        return _default