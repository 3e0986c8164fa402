"""Serves S3 bucket and object requests from a data directory."""

from __future__ import annotations

import hashlib
import logging
import shutil
import time
from email.utils import formatdate
from pathlib import Path
from typing import Callable

from nebulastore.kv_backends import default_factory
from nebulastore.s3_metadata import BucketMeta, ObjectMeta, S3MetadataStore
from nebulastore.s3_router import parse_request
from nebulastore.s3_types import (
    BucketInfo,
    ListObjectsResult,
    ObjectInfo,
    S3Error,
    S3Op,
    S3Request,
    S3Response,
)
from nebulastore.s3_xml import list_bucket_result, list_buckets_result
from nebulastore.types import NotFoundError, StatusError, now_seconds

_log = logging.getLogger(__name__)

_OWNER = "owner"
_STORAGE_CLASS = "STANDARD"
_DEFAULT_CONTENT_TYPE = "application/octet-stream"
_USER_META_PREFIXES = ("x-amz-meta-", "X-Amz-Meta-")


def _rfc822_time(ts: int) -> str:
    return formatdate(ts, usegmt=True)


def _iso8601_time(ts: int) -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%S.000Z", time.gmtime(ts))


def _error(error: S3Error) -> S3Response:
    response = S3Response()
    response.set_error(error)
    return response


class S3Handler:
    """Keeps object data as files under ``{data_dir}/data`` and metadata in a KV store."""

    def __init__(self, data_dir: str | Path, meta_backend: str = "sqlite") -> None:
        self.data_dir = str(data_dir)
        Path(self.data_dir, "data").mkdir(parents=True, exist_ok=True)
        backend = default_factory().create(meta_backend, f"{self.data_dir}/metadata")
        self.store = S3MetadataStore(backend)
        self._operations: dict[S3Op, Callable[[S3Request], S3Response]] = {
            S3Op.LIST_BUCKETS: self._list_buckets,
            S3Op.CREATE_BUCKET: self._create_bucket,
            S3Op.DELETE_BUCKET: self._delete_bucket,
            S3Op.HEAD_BUCKET: self._head_bucket,
            S3Op.LIST_OBJECTS: self._list_objects,
            S3Op.LIST_OBJECTS_V2: self._list_objects,
            S3Op.GET_OBJECT: self._get_object,
            S3Op.PUT_OBJECT: self._put_object,
            S3Op.DELETE_OBJECT: self._delete_object,
            S3Op.HEAD_OBJECT: self._head_object,
        }

    def handle(self, request: S3Request) -> S3Response:
        """Route ``request`` and carry out the operation it names."""
        parse_request(request)
        operation = self._operations.get(request.op)
        if operation is None:
            return _error(S3Error(501, "NotImplemented", "Not implemented"))
        return operation(request)

    def _data_path(self, bucket: str, key: str) -> str:
        return f"{self.data_dir}/data/{bucket}/{key}"

    def _bucket_dir(self, bucket: str) -> str:
        return f"{self.data_dir}/data/{bucket}"

    # Buckets

    def _list_buckets(self, request: S3Request) -> S3Response:
        infos = [BucketInfo(b.name, _iso8601_time(b.creation_time)) for b in self.store.list_buckets()]
        return S3Response(body=list_buckets_result(_OWNER, _OWNER, infos).encode("utf-8"))

    def _create_bucket(self, request: S3Request) -> S3Response:
        name = request.bucket_name
        if self.store.bucket_exists(name):
            return _error(S3Error.bucket_already_exists())
        meta = BucketMeta(
            name=name,
            owner=_OWNER,
            creation_time=now_seconds(),
            object_count=0,
            total_size=0,
            region="default",
            storage_class=_STORAGE_CLASS,
        )
        try:
            self.store.put_bucket(meta)
        except StatusError as exc:
            _log.error("Failed to store bucket %s: %s", name, exc.message)
            return _error(S3Error.internal_error())
        Path(self._bucket_dir(name)).mkdir(parents=True, exist_ok=True)
        return S3Response()

    def _delete_bucket(self, request: S3Request) -> S3Response:
        name = request.bucket_name
        if not self.store.bucket_exists(name):
            return _error(S3Error.no_such_bucket())
        if self.store.list_objects(name, "", "", 1):
            return _error(S3Error.bucket_not_empty())
        self.store.delete_bucket(name)
        shutil.rmtree(self._bucket_dir(name), ignore_errors=True)
        return S3Response(status_code=204)

    def _head_bucket(self, request: S3Request) -> S3Response:
        if not self.store.bucket_exists(request.bucket_name):
            return _error(S3Error.no_such_bucket())
        return S3Response()

    # Objects

    def _list_objects(self, request: S3Request) -> S3Response:
        bucket = request.bucket_name
        if not self.store.bucket_exists(bucket):
            return _error(S3Error.no_such_bucket())
        prefix = request.get_param("prefix")
        marker = request.get_param("marker")
        max_keys_text = request.get_param("max-keys")
        try:
            max_keys = int(max_keys_text) if max_keys_text else 1000
        except ValueError:
            return _error(S3Error.invalid_argument())

        objects = self.store.list_objects(bucket, prefix, marker, max_keys)
        result = ListObjectsResult(
            bucket_name=bucket,
            prefix=prefix,
            marker=marker,
            delimiter=request.get_param("delimiter"),
            max_keys=max_keys,
            is_truncated=len(objects) >= max_keys,
            objects=[
                ObjectInfo(o.key, o.etag, o.size, _iso8601_time(o.last_modified), o.storage_class)
                for o in objects
            ],
        )
        return S3Response(body=list_bucket_result(result).encode("utf-8"))

    def _get_object(self, request: S3Request) -> S3Response:
        meta = self.store.get_object(request.bucket_name, request.object_key)
        if meta is None:
            return _error(S3Error.no_such_key())
        try:
            with open(meta.data_path, "rb") as fh:
                body = fh.read()
        except OSError:
            return _error(S3Error.no_such_key())
        response = S3Response(body=body, content_type=meta.content_type or _DEFAULT_CONTENT_TYPE)
        response.headers["Content-Length"] = str(meta.size)
        response.headers["ETag"] = f'"{meta.etag}"'
        response.headers["Last-Modified"] = _rfc822_time(meta.last_modified)
        return response

    def _put_object(self, request: S3Request) -> S3Response:
        bucket, key = request.bucket_name, request.object_key
        if not self.store.bucket_exists(bucket):
            return _error(S3Error.no_such_bucket())

        body = bytes(request.body)
        etag = hashlib.md5(body).hexdigest()
        data_path = self._data_path(bucket, key)
        try:
            Path(data_path).parent.mkdir(parents=True, exist_ok=True)
            with open(data_path, "wb") as fh:
                fh.write(body)
        except OSError as exc:
            _log.error("Failed to write object data %s: %s", data_path, exc)
            return _error(S3Error.internal_error())

        old_meta = self.store.get_object(bucket, key) if self.store.object_exists(bucket, key) else None
        meta = ObjectMeta(
            bucket=bucket,
            key=key,
            size=len(body),
            etag=etag,
            content_type=request.get_header("Content-Type") or _DEFAULT_CONTENT_TYPE,
            last_modified=now_seconds(),
            storage_class=_STORAGE_CLASS,
            data_path=data_path,
            user_metadata={
                name: value
                for name, value in request.headers.items()
                if name.startswith(_USER_META_PREFIXES)
            },
        )
        try:
            self.store.put_object(meta)
        except StatusError as exc:
            _log.error("Failed to store object metadata %s/%s: %s", bucket, key, exc.message)
            return _error(S3Error.internal_error())

        if old_meta is not None:
            size_delta, count_delta = meta.size - old_meta.size, 0
        else:
            size_delta, count_delta = meta.size, 1
        self._update_stats(bucket, size_delta, count_delta)

        response = S3Response()
        response.headers["ETag"] = f'"{etag}"'
        return response

    def _delete_object(self, request: S3Request) -> S3Response:
        bucket, key = request.bucket_name, request.object_key
        meta = self.store.get_object(bucket, key)
        if meta is not None:
            Path(meta.data_path).unlink(missing_ok=True)
            self.store.delete_object(bucket, key)
            self._update_stats(bucket, -meta.size, -1)
        return S3Response(status_code=204)

    def _head_object(self, request: S3Request) -> S3Response:
        meta = self.store.get_object(request.bucket_name, request.object_key)
        if meta is None:
            return _error(S3Error.no_such_key())
        response = S3Response()
        response.headers["Content-Length"] = str(meta.size)
        response.headers["ETag"] = f'"{meta.etag}"'
        response.headers["Last-Modified"] = _rfc822_time(meta.last_modified)
        response.headers["Content-Type"] = meta.content_type
        return response

    def _update_stats(self, bucket: str, size_delta: int, count_delta: int) -> None:
        try:
            self.store.update_bucket_stats(bucket, size_delta, count_delta)
        except NotFoundError:
            _log.warning("Bucket %s vanished before its stats were updated", bucket)