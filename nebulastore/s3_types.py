"""Request, response and listing types for the S3 protocol layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto


class S3Op(Enum):
    """The S3 operation a request maps to."""

    UNKNOWN = auto()
    LIST_BUCKETS = auto()
    CREATE_BUCKET = auto()
    DELETE_BUCKET = auto()
    HEAD_BUCKET = auto()
    LIST_OBJECTS = auto()
    LIST_OBJECTS_V2 = auto()
    GET_OBJECT = auto()
    PUT_OBJECT = auto()
    DELETE_OBJECT = auto()
    HEAD_OBJECT = auto()
    COPY_OBJECT = auto()
    INIT_MULTIPART = auto()
    UPLOAD_PART = auto()
    COMPLETE_MULTIPART = auto()
    ABORT_MULTIPART = auto()
    LIST_PARTS = auto()


@dataclass(frozen=True)
class S3Error:
    """An S3 error: HTTP status plus the S3 error code and message."""

    http_status: int
    code: str
    message: str

    @staticmethod
    def none() -> "S3Error":
        return S3Error(200, "", "")

    @staticmethod
    def access_denied() -> "S3Error":
        return S3Error(403, "AccessDenied", "Access Denied")

    @staticmethod
    def no_such_bucket() -> "S3Error":
        return S3Error(404, "NoSuchBucket", "The specified bucket does not exist")

    @staticmethod
    def no_such_key() -> "S3Error":
        return S3Error(404, "NoSuchKey", "The specified key does not exist")

    @staticmethod
    def bucket_already_exists() -> "S3Error":
        return S3Error(409, "BucketAlreadyExists", "Bucket already exists")

    @staticmethod
    def bucket_not_empty() -> "S3Error":
        return S3Error(409, "BucketNotEmpty", "Bucket is not empty")

    @staticmethod
    def invalid_argument() -> "S3Error":
        return S3Error(400, "InvalidArgument", "Invalid Argument")

    @staticmethod
    def internal_error() -> "S3Error":
        return S3Error(500, "InternalError", "Internal error")


@dataclass
class S3Request:
    """An incoming request; routing fills in bucket, key, params and op."""

    method: str = ""
    uri: str = ""
    query_string: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    bucket_name: str = ""
    object_key: str = ""
    op: S3Op = S3Op.UNKNOWN
    params: dict[str, str] = field(default_factory=dict)

    def get_header(self, name: str) -> str:
        """The header value, or an empty string when absent."""
        return self.headers.get(name, "")

    def get_param(self, name: str) -> str:
        """The query parameter value, or an empty string when absent."""
        return self.params.get(name, "")


@dataclass
class S3Response:
    """An outgoing response."""

    status_code: int = 200
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    content_type: str = "application/xml"

    def set_error(self, error: S3Error) -> None:
        """Take the error's status; write an XML error body if it has a code."""
        self.status_code = error.http_status
        if error.code:
            self.body = (
                '<?xml version="1.0" encoding="UTF-8"?>\n<Error>\n'
                f"  <Code>{error.code}</Code>\n"
                f"  <Message>{error.message}</Message>\n</Error>"
            ).encode("utf-8")


@dataclass
class BucketInfo:
    name: str = ""
    creation_date: str = ""


@dataclass
class ObjectInfo:
    key: str = ""
    etag: str = ""
    size: int = 0
    last_modified: str = ""
    storage_class: str = "STANDARD"


@dataclass
class ListObjectsResult:
    bucket_name: str = ""
    prefix: str = ""
    marker: str = ""
    delimiter: str = ""
    max_keys: int = 1000
    is_truncated: bool = False
    objects: list[ObjectInfo] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)