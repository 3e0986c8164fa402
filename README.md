# nebulastore

An object-storage toolkit that needs only the Python standard library. It
contains:

- `nebulastore.s3_handler.S3Handler`: serves S3 bucket and object requests.
  Object data is kept as files under `{data_dir}/data/{bucket}/{key}`, and
  bucket and object metadata are kept in a key-value store (SQLite by default,
  under `{data_dir}/metadata`).
- `nebulastore.http_server.HttpServer`: a threaded HTTP server. Routes added
  with `register_handler(method, path, handler)` are matched exactly first;
  after `enable_s3(data_dir)` every other request goes to an `S3Handler`;
  otherwise the answer is a JSON 404. `dispatch(method, path, body, headers)`
  resolves one request without using the network.
- `nebulastore.s3_router`: `parse_request` fills in an `S3Request`'s bucket,
  key, query parameters and `S3Op`; `url_decode` decodes `%XX` and `+`.
- `nebulastore.s3_xml`: `list_buckets_result` and `list_bucket_result` build
  the S3 listing documents; `escape` escapes XML text.
- `nebulastore.s3_types`: `S3Op`, `S3Error`, `S3Request`, `S3Response`,
  `BucketInfo`, `ObjectInfo`, `ListObjectsResult`.
- `nebulastore.s3_metadata`: `BucketMeta` and `ObjectMeta` with a versioned
  little-endian binary encoding (`encode` / `decode`, which raises
  `DecodeError`), the low-level `put_*` / `get_*` helpers, and
  `S3MetadataStore`.
- `nebulastore.kv_backends`: the `MetadataBackend` interface, `MemoryBackend`,
  `SqliteBackend`, and `BackendFactory`; `default_factory()` has `"sqlite"` and
  `"memory"` registered.
- `nebulastore.local_backend.LocalBackend`: chunk storage in a local directory.
- `nebulastore.s3_backend.S3Backend`: chunk storage in a remote S3-compatible
  bucket, with requests signed by AWS Signature V4 (`S3Config`,
  `authorization_headers`, `signature_key`, `url_encode`, `build_url`).
- `nebulastore.concurrency`: `BoundedQueue`, `Semaphore`, `SingleFlight` and a
  work-stealing `WorkerPool` (usable as a context manager).
- `nebulastore.result`: `Result`, `ok` and `err`, for code that prefers
  returning errors to raising them.
- `nebulastore.types`: `ErrorCode`, the `StatusError` family (`NotFoundError`,
  `ExistError`, `InvalidArgumentError`, `NotDirectoryError`,
  `StorageIOError`), `FileMode`, `InodeAttr`, `Dentry`, `SliceInfo`,
  `FileLayout`, `now_seconds` and `now_millis`.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Running the server

```
nebulastore-server --host 127.0.0.1 --port 8080 --data-dir ./data
```

This starts `HttpServer` with the S3 API enabled and serves until interrupted.
Options: `--host` (default `0.0.0.0`), `--port` (default `8080`),
`--data-dir` (default `./data`) and `--log-level` (default `INFO`).

## Using the library

Routing an S3 request:

```python
from nebulastore.s3_types import S3Request, S3Op
from nebulastore.s3_router import parse_request

request = S3Request(method="GET", uri="/mybucket?list-type=2&prefix=dir/")
parse_request(request)
assert request.op is S3Op.LIST_OBJECTS_V2
assert request.bucket_name == "mybucket"
assert request.get_param("prefix") == "dir/"
```

Handling requests directly:

```python
from nebulastore.s3_handler import S3Handler
from nebulastore.s3_types import S3Request

handler = S3Handler("/tmp/nebula-s3")
handler.handle(S3Request(method="PUT", uri="/photos"))
handler.handle(S3Request(method="PUT", uri="/photos/cat.txt", body=b"meow"))
response = handler.handle(S3Request(method="GET", uri="/photos/cat.txt"))
assert response.body == b"meow"
```

Encoding metadata:

```python
from nebulastore.s3_metadata import BucketMeta

meta = BucketMeta(name="photos", owner="owner", creation_time=1704067200)
assert BucketMeta.decode(meta.encode()) == meta
```

Storing chunks on local disk:

```python
from nebulastore.local_backend import LocalBackend

backend = LocalBackend("/tmp/nebula-data")
backend.put("chunks/1/0", b"hello world")
assert backend.get_range("chunks/1/0", 6, 5) == b"world"
```

Failures are raised as subclasses of `StatusError`, for example
`NotFoundError` when a key does not exist and `StorageIOError` when the
filesystem or a remote service fails.

## What it does not do

- There is no POSIX mount and no unified namespace service joining file paths
  to object keys; the storage backends and the S3 handler are used separately.
- `S3Handler` answers bucket create/delete/head/list and object
  get/put/delete/head. Copy and multipart upload requests are routed but
  answered with `501 NotImplemented`, and the `delimiter` parameter is echoed
  but no common prefixes are computed.
- Incoming requests are not authenticated; request signing exists only on the
  client side, in `S3Backend`.
- `S3Backend.health_check` checks only that a bucket and access key are
  configured, and `capacity` reports unbounded space.