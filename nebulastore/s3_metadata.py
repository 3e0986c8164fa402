"""Bucket and object metadata, their binary encoding, and the metadata store."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Optional

from nebulastore.kv_backends import MetadataBackend
from nebulastore.types import NotFoundError

_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")
_U64_MASK = (1 << 64) - 1
_VERSION = 1


class DecodeError(ValueError):
    """Encoded metadata is truncated or of an unknown version."""


def put_u32(buf: bytearray, value: int) -> None:
    buf += _U32.pack(value)


def put_u64(buf: bytearray, value: int) -> None:
    buf += _U64.pack(value)


def put_string(buf: bytearray, text: str) -> None:
    raw = text.encode("utf-8")
    put_u32(buf, len(raw))
    buf += raw


def get_u32(data: bytes, pos: int) -> tuple[int, int]:
    """Read a u32 at ``pos``; returns the value and the next position."""
    if pos + 4 > len(data):
        raise DecodeError("truncated u32")
    return _U32.unpack_from(data, pos)[0], pos + 4


def get_u64(data: bytes, pos: int) -> tuple[int, int]:
    """Read a u64 at ``pos``; returns the value and the next position."""
    if pos + 8 > len(data):
        raise DecodeError("truncated u64")
    return _U64.unpack_from(data, pos)[0], pos + 8


def get_string(data: bytes, pos: int) -> tuple[str, int]:
    """Read a length-prefixed string; returns it and the next position."""
    length, pos = get_u32(data, pos)
    if pos + length > len(data):
        raise DecodeError("truncated string")
    try:
        text = bytes(data[pos : pos + length]).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError("string is not valid UTF-8") from exc
    return text, pos + length


def _read_version(data: bytes) -> int:
    version, pos = get_u32(data, 0)
    if version > _VERSION:
        raise DecodeError(f"unsupported version {version}")
    return pos


@dataclass
class BucketMeta:
    name: str = ""
    owner: str = ""
    creation_time: int = 0
    object_count: int = 0
    total_size: int = 0
    region: str = ""
    storage_class: str = ""

    def encode(self) -> bytes:
        buf = bytearray()
        put_u32(buf, _VERSION)
        put_string(buf, self.name)
        put_string(buf, self.owner)
        put_u64(buf, self.creation_time)
        put_u64(buf, self.object_count)
        put_u64(buf, self.total_size)
        put_string(buf, self.region)
        put_string(buf, self.storage_class)
        return bytes(buf)

    @classmethod
    def decode(cls, data: bytes) -> "BucketMeta":
        pos = _read_version(data)
        name, pos = get_string(data, pos)
        owner, pos = get_string(data, pos)
        creation_time, pos = get_u64(data, pos)
        object_count, pos = get_u64(data, pos)
        total_size, pos = get_u64(data, pos)
        region, pos = get_string(data, pos)
        storage_class, pos = get_string(data, pos)
        return cls(name, owner, creation_time, object_count, total_size, region, storage_class)


@dataclass
class ObjectMeta:
    bucket: str = ""
    key: str = ""
    size: int = 0
    etag: str = ""
    content_type: str = ""
    last_modified: int = 0
    storage_class: str = ""
    data_path: str = ""
    user_metadata: dict[str, str] = field(default_factory=dict)

    def encode(self) -> bytes:
        buf = bytearray()
        put_u32(buf, _VERSION)
        put_string(buf, self.bucket)
        put_string(buf, self.key)
        put_u64(buf, self.size)
        put_string(buf, self.etag)
        put_string(buf, self.content_type)
        put_u64(buf, self.last_modified)
        put_string(buf, self.storage_class)
        put_string(buf, self.data_path)
        put_u32(buf, len(self.user_metadata))
        for name, value in sorted(self.user_metadata.items()):
            put_string(buf, name)
            put_string(buf, value)
        return bytes(buf)

    @classmethod
    def decode(cls, data: bytes) -> "ObjectMeta":
        pos = _read_version(data)
        bucket, pos = get_string(data, pos)
        key, pos = get_string(data, pos)
        size, pos = get_u64(data, pos)
        etag, pos = get_string(data, pos)
        content_type, pos = get_string(data, pos)
        last_modified, pos = get_u64(data, pos)
        storage_class, pos = get_string(data, pos)
        data_path, pos = get_string(data, pos)
        count, pos = get_u32(data, pos)
        user_metadata: dict[str, str] = {}
        for _ in range(count):
            name, pos = get_string(data, pos)
            value, pos = get_string(data, pos)
            user_metadata[name] = value
        return cls(
            bucket, key, size, etag, content_type, last_modified,
            storage_class, data_path, user_metadata,
        )


def _bucket_key(name: str) -> str:
    return "B:" + name


def _bucket_list_key(name: str) -> str:
    return "BL:" + name


def _object_key(bucket: str, key: str) -> str:
    return f"O:{bucket}/{key}"


def _object_list_key(bucket: str, key: str) -> str:
    return f"OL:{bucket}/{key}"


class S3MetadataStore:
    """Bucket and object metadata kept in a :class:`MetadataBackend`."""

    _BUCKET_LIST_PREFIX = "BL:"

    def __init__(self, backend: MetadataBackend) -> None:
        self.backend = backend

    def put_bucket(self, meta: BucketMeta) -> None:
        self.backend.batch_put(
            [(_bucket_key(meta.name), meta.encode()), (_bucket_list_key(meta.name), b"")]
        )

    def get_bucket(self, name: str) -> Optional[BucketMeta]:
        """The bucket's metadata, or ``None`` if missing or unreadable."""
        raw = self.backend.get(_bucket_key(name))
        if raw is None:
            return None
        try:
            return BucketMeta.decode(raw)
        except DecodeError:
            return None

    def delete_bucket(self, name: str) -> None:
        self.backend.delete(_bucket_key(name))
        self.backend.delete(_bucket_list_key(name))

    def bucket_exists(self, name: str) -> bool:
        return self.backend.exists(_bucket_key(name))

    def list_buckets(self) -> list[BucketMeta]:
        prefix_len = len(self._BUCKET_LIST_PREFIX)
        buckets = []
        for list_key, _ in self.backend.scan(self._BUCKET_LIST_PREFIX):
            meta = self.get_bucket(list_key[prefix_len:])
            if meta is not None:
                buckets.append(meta)
        return buckets

    def put_object(self, meta: ObjectMeta) -> None:
        self.backend.batch_put(
            [
                (_object_key(meta.bucket, meta.key), meta.encode()),
                (_object_list_key(meta.bucket, meta.key), b""),
            ]
        )

    def get_object(self, bucket: str, key: str) -> Optional[ObjectMeta]:
        """The object's metadata, or ``None`` if missing or unreadable."""
        raw = self.backend.get(_object_key(bucket, key))
        if raw is None:
            return None
        try:
            return ObjectMeta.decode(raw)
        except DecodeError:
            return None

    def delete_object(self, bucket: str, key: str) -> None:
        self.backend.delete(_object_key(bucket, key))
        self.backend.delete(_object_list_key(bucket, key))

    def object_exists(self, bucket: str, key: str) -> bool:
        return self.backend.exists(_object_key(bucket, key))

    def list_objects(
        self, bucket: str, prefix: str = "", marker: str = "", max_keys: int = 1000
    ) -> list[ObjectMeta]:
        """Objects in key order after ``marker`` and under ``prefix``.

        At most ``2 * max_keys`` index entries are examined.
        """
        scan_prefix = f"OL:{bucket}/"
        objects: list[ObjectMeta] = []
        for list_key, _ in self.backend.scan(scan_prefix, max_keys * 2):
            obj_key = list_key[len(scan_prefix):]
            if marker and obj_key <= marker:
                continue
            if prefix and not obj_key.startswith(prefix):
                continue
            meta = self.get_object(bucket, obj_key)
            if meta is not None:
                objects.append(meta)
                if len(objects) >= max_keys:
                    break
        return objects

    def update_bucket_stats(self, bucket: str, size_delta: int, count_delta: int) -> None:
        """Add the deltas to the bucket's totals; counters wrap as unsigned 64-bit."""
        meta = self.get_bucket(bucket)
        if meta is None:
            raise NotFoundError(f"No such bucket: {bucket}")
        meta.total_size = (meta.total_size + size_delta) & _U64_MASK
        meta.object_count = (meta.object_count + count_delta) & _U64_MASK
        self.put_bucket(meta)