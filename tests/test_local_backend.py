import shutil

import pytest

from nebulastore.local_backend import LocalBackend
from nebulastore.types import ErrorCode, InvalidArgumentError, NotFoundError, StorageIOError


@pytest.fixture
def backend(tmp_path):
    return LocalBackend(tmp_path / "data")


def test_constructor_creates_directory(tmp_path):
    target = tmp_path / "nested" / "dir"
    LocalBackend(target)
    assert target.is_dir()


def test_key_to_path(backend, tmp_path):
    assert backend.key_to_path("chunks/1/2") == tmp_path / "data" / "chunks" / "1" / "2"


def test_put_get_round_trip(backend):
    payload = bytes(range(256)) * 3
    backend.put("chunks/7/1", payload)
    assert backend.get("chunks/7/1") == payload
    assert backend.key_to_path("chunks/7/1").read_bytes() == payload


def test_put_overwrites(backend):
    backend.put("k", b"first version")
    backend.put("k", b"v2")
    assert backend.get("k") == b"v2"


def test_get_missing_raises_not_found(backend):
    with pytest.raises(NotFoundError) as info:
        backend.get("missing")
    assert info.value.code is ErrorCode.NOT_FOUND
    assert "missing" in info.value.message


def test_exists_and_delete(backend):
    backend.put("a/b", b"x")
    assert backend.exists("a/b")
    backend.delete("a/b")
    assert not backend.exists("a/b")
    backend.delete("a/b")
    assert not backend.exists("a/b")


def test_get_range(backend):
    data = b"0123456789"
    backend.put("r", data)
    assert backend.get_range("r", 2, 3) == data[2:5]
    assert backend.get_range("r", 8, 10) == data[8:]
    assert backend.get_range("r", 50, 4) == b""


def test_get_range_errors(backend):
    backend.put("r", b"abc")
    with pytest.raises(InvalidArgumentError):
        backend.get_range("r", -1, 2)
    with pytest.raises(NotFoundError):
        backend.get_range("nope", 0, 2)


def test_batch_get(backend):
    items = {"k1": b"one", "k2": b"two", "k3": b""}
    for key, value in items.items():
        backend.put(key, value)
    assert backend.batch_get(["k3", "k1", "k2"]) == [items["k3"], items["k1"], items["k2"]]
    with pytest.raises(NotFoundError):
        backend.batch_get(["k1", "absent"])


def test_health_check(backend):
    backend.health_check()
    assert backend.exists("") is True
    shutil.rmtree(backend.data_dir)
    with pytest.raises(StorageIOError):
        backend.health_check()


def test_capacity_invariants(backend):
    info = backend.capacity()
    assert info.total_bytes > 0
    assert info.used_bytes + info.available_bytes == info.total_bytes
    assert 0 <= info.available_bytes <= info.total_bytes