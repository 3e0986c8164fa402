"""Core value types, error codes and time helpers."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar


class ErrorCode(IntEnum):
    """Error codes, numbered after the matching errno values."""

    OK = 0
    NOT_FOUND = 2
    IO_ERROR = 5
    PERMISSION_DENIED = 13
    EXIST = 17
    NOT_DIRECTORY = 20
    IS_DIRECTORY = 21
    INVALID_ARGUMENT = 22
    NO_SPACE = 28


class StatusError(Exception):
    """Base error carrying an :class:`ErrorCode` and a message."""

    default_code: ClassVar[ErrorCode] = ErrorCode.IO_ERROR

    def __init__(self, message: str = "", code: ErrorCode | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = ErrorCode(code) if code is not None else self.default_code

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, code={self.code.name})"


class NotFoundError(StatusError):
    """The requested entry does not exist."""

    default_code = ErrorCode.NOT_FOUND


class ExistError(StatusError):
    """The entry already exists."""

    default_code = ErrorCode.EXIST


class InvalidArgumentError(StatusError):
    """An argument was out of range or malformed."""

    default_code = ErrorCode.INVALID_ARGUMENT


class NotDirectoryError(StatusError):
    """A path component is not a directory."""

    default_code = ErrorCode.NOT_DIRECTORY


class StorageIOError(StatusError):
    """An I/O operation failed."""

    default_code = ErrorCode.IO_ERROR


class FileType(IntEnum):
    REGULAR = 1
    DIRECTORY = 2
    SYMLINK = 3


_TYPE_MASK = 0o170000
_TYPE_REGULAR = 0o100000
_TYPE_DIRECTORY = 0o040000
_TYPE_SYMLINK = 0o120000


@dataclass(frozen=True)
class FileMode:
    """POSIX mode bits: file type plus owner permissions."""

    mode: int = 0

    def is_readable(self) -> bool:
        return bool(self.mode & 0o400)

    def is_writable(self) -> bool:
        return bool(self.mode & 0o200)

    def is_executable(self) -> bool:
        return bool(self.mode & 0o100)

    def is_regular(self) -> bool:
        return (self.mode & _TYPE_MASK) == _TYPE_REGULAR

    def is_directory(self) -> bool:
        return (self.mode & _TYPE_MASK) == _TYPE_DIRECTORY

    def is_symlink(self) -> bool:
        return (self.mode & _TYPE_MASK) == _TYPE_SYMLINK


@dataclass
class InodeAttr:
    """File metadata."""

    inode_id: int = 0
    mode: FileMode = field(default_factory=FileMode)
    uid: int = 0
    gid: int = 0
    size: int = 0
    mtime: int = 0
    ctime: int = 0
    nlink: int = 0


@dataclass
class Dentry:
    """A directory entry."""

    name: str
    inode_id: int
    type: FileType


@dataclass
class SliceInfo:
    """A contiguous piece of file data stored under one key."""

    slice_id: int
    offset: int
    size: int
    storage_key: str


@dataclass
class FileLayout:
    """How a file's data is split into slices."""

    inode_id: int
    chunk_size: int = 4 * 1024 * 1024
    slices: list[SliceInfo] = field(default_factory=list)


def now_seconds() -> int:
    """Current wall-clock time in whole seconds since the epoch."""
    return int(time.time())


def now_millis() -> int:
    """Current wall-clock time in whole milliseconds since the epoch."""
    return time.time_ns() // 1_000_000