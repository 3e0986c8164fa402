import time

import pytest

from nebulastore.types import (
    Dentry,
    ErrorCode,
    ExistError,
    FileLayout,
    FileMode,
    FileType,
    InodeAttr,
    InvalidArgumentError,
    NotDirectoryError,
    NotFoundError,
    SliceInfo,
    StatusError,
    StorageIOError,
    now_millis,
    now_seconds,
)


@pytest.mark.parametrize(
    "cls, errno_value",
    [
        (NotFoundError, 2),
        (StorageIOError, 5),
        (ExistError, 17),
        (NotDirectoryError, 20),
        (InvalidArgumentError, 22),
    ],
)
def test_error_code_values_match_errno(cls, errno_value):
    error = cls("failure")
    assert int(error.code) == errno_value
    assert ErrorCode(errno_value) == error.code


@pytest.mark.parametrize(
    "cls, code",
    [
        (NotFoundError, ErrorCode.NOT_FOUND),
        (ExistError, ErrorCode.EXIST),
        (InvalidArgumentError, ErrorCode.INVALID_ARGUMENT),
        (NotDirectoryError, ErrorCode.NOT_DIRECTORY),
        (StorageIOError, ErrorCode.IO_ERROR),
    ],
)
def test_error_subclasses_carry_codes(cls, code):
    error = cls("boom")
    assert error.code == code
    assert error.message == "boom"
    assert isinstance(error, StatusError)


def test_status_error_explicit_code():
    error = StatusError("denied", ErrorCode.PERMISSION_DENIED)
    assert error.code == ErrorCode.PERMISSION_DENIED
    with pytest.raises(StatusError) as info:
        raise error
    assert str(info.value) == "denied"


def test_regular_file_mode():
    mode = FileMode(0o100644)
    assert mode.is_regular()
    assert not mode.is_directory()
    assert not mode.is_symlink()
    assert mode.is_readable()
    assert mode.is_writable()
    assert not mode.is_executable()


def test_directory_and_symlink_modes():
    assert FileMode(0o040755).is_directory()
    assert FileMode(0o040755).is_executable()
    assert FileMode(0o120777).is_symlink()
    assert not FileMode(0o120777).is_regular()


def test_empty_mode_has_no_type_or_permissions():
    mode = FileMode()
    assert not (mode.is_regular() or mode.is_directory() or mode.is_symlink())
    assert not (mode.is_readable() or mode.is_writable() or mode.is_executable())


def test_inode_attr_defaults():
    attr = InodeAttr(inode_id=7, size=100)
    assert attr.inode_id == 7
    assert attr.size == 100
    assert attr.mode == FileMode(0)
    assert attr.nlink == 0


def test_dentry_and_layout():
    entry = Dentry("file.txt", 3, FileType.REGULAR)
    assert entry.type == FileType.REGULAR
    layout = FileLayout(inode_id=3)
    assert layout.chunk_size == 4 * 1024 * 1024
    assert layout.slices == []
    layout.slices.append(SliceInfo(1, 0, 10, "chunks/3/1"))
    assert FileLayout(inode_id=4).slices == []


def test_clock_helpers_agree():
    before = int(time.time())
    seconds = now_seconds()
    millis = now_millis()
    after = int(time.time()) + 1
    assert before <= seconds <= after
    assert before * 1000 <= millis <= after * 1000