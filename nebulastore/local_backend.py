"""Storage backend that keeps each object as a file under a data directory."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from nebulastore.types import InvalidArgumentError, NotFoundError, StorageIOError

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapacityInfo:
    total_bytes: int
    available_bytes: int
    used_bytes: int


class LocalBackend:
    """Objects stored as files named ``{data_dir}/{key}``."""

    def __init__(self, data_dir: str | Path) -> None:
        self.data_dir = str(data_dir)
        Path(self.data_dir).mkdir(parents=True, exist_ok=True)
        _log.info("LocalBackend initialized: %s", self.data_dir)

    def key_to_path(self, key: str) -> Path:
        """The file path an object key is stored at."""
        base = self.data_dir
        if base and not base.endswith("/"):
            base += "/"
        return Path(base + key)

    def put(self, key: str, data: bytes) -> None:
        path = self.key_to_path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            _log.error("Failed to create directory: %s", exc)
            raise StorageIOError(f"Failed to create directory: {exc}") from exc
        try:
            with path.open("wb") as fh:
                fh.write(data)
        except OSError as exc:
            _log.error("Failed to write file: %s", path)
            raise StorageIOError(f"Failed to open file: {path}") from exc
        _log.debug("Written %d bytes to %s", len(data), path)

    def get(self, key: str) -> bytes:
        path = self.key_to_path(key)
        try:
            fh = path.open("rb")
        except OSError as exc:
            _log.error("Failed to open file for reading: %s", path)
            raise NotFoundError(f"File not found: {key}") from exc
        with fh:
            try:
                data = fh.read()
            except OSError as exc:
                _log.error("Failed to read file: %s", path)
                raise StorageIOError(f"Failed to read file: {path}") from exc
        _log.debug("Read %d bytes from %s", len(data), path)
        return data

    def delete(self, key: str) -> None:
        """Remove the object; a missing object is not an error."""
        path = self.key_to_path(key)
        try:
            if path.is_dir() and not path.is_symlink():
                path.rmdir()
            else:
                path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            _log.error("Failed to delete file: %s", exc)
            raise StorageIOError(f"Failed to delete file: {exc}") from exc
        _log.debug("Deleted: %s", path)

    def exists(self, key: str) -> bool:
        try:
            return self.key_to_path(key).exists()
        except OSError as exc:
            raise StorageIOError("Failed to check file existence") from exc

    def get_range(self, key: str, offset: int, size: int) -> bytes:
        """Up to ``size`` bytes from ``offset``; short or empty past the end."""
        if offset < 0:
            raise InvalidArgumentError("Invalid offset")
        if size < 0:
            raise InvalidArgumentError("Invalid size")
        path = self.key_to_path(key)
        try:
            fh = path.open("rb")
        except OSError as exc:
            raise NotFoundError(f"File not found: {key}") from exc
        with fh:
            try:
                fh.seek(offset)
                data = fh.read(size)
            except OSError as exc:
                raise StorageIOError("Failed to read file range") from exc
        _log.debug("Read range %d+%d from %s", offset, size, path)
        return data

    def batch_get(self, keys: Iterable[str]) -> list[bytes]:
        """Read each key in order; the first failure is raised."""
        return [self.get(key) for key in keys]

    def health_check(self) -> None:
        """Raise :class:`StorageIOError` if the data directory is gone."""
        if not Path(self.data_dir).exists():
            raise StorageIOError("Data directory not accessible")

    def capacity(self) -> CapacityInfo:
        try:
            usage = shutil.disk_usage(self.data_dir)
        except OSError as exc:
            raise StorageIOError("Failed to get disk space") from exc
        return CapacityInfo(
            total_bytes=usage.total,
            available_bytes=usage.free,
            used_bytes=usage.total - usage.free,
        )