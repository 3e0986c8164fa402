"""Maps an S3 request's method, path and query onto an :class:`S3Op`."""

from __future__ import annotations

from nebulastore.s3_types import S3Op, S3Request

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")

_BUCKET_OPS = {
    "PUT": S3Op.CREATE_BUCKET,
    "DELETE": S3Op.DELETE_BUCKET,
    "HEAD": S3Op.HEAD_BUCKET,
}
_OBJECT_OPS = {
    "PUT": S3Op.PUT_OBJECT,
    "DELETE": S3Op.DELETE_OBJECT,
    "HEAD": S3Op.HEAD_OBJECT,
}


def url_decode(text: str) -> str:
    """Decode %XX escapes and '+' as space; malformed escapes stay literal."""
    out = bytearray()
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "%" and i + 2 < n and text[i + 1] in _HEX_DIGITS:
            pair = text[i + 1 : i + 3]
            digits = pair if pair[1] in _HEX_DIGITS else pair[0]
            out.append(int(digits, 16))
            i += 3
            continue
        if ch == "+":
            out += b" "
        else:
            out += ch.encode("utf-8", "surrogatepass")
        i += 1
    return out.decode("utf-8", "replace")


def parse_request(request: S3Request) -> S3Request:
    """Fill in bucket, key, query params and operation; returns the request."""
    _parse_uri(request)
    _parse_query_string(request)
    _determine_operation(request)
    return request


def _parse_uri(request: S3Request) -> None:
    path, sep, query = request.uri.partition("?")
    if sep:
        request.query_string = query
    if path.startswith("/"):
        path = path[1:]
    if not path:
        request.bucket_name = ""
        request.object_key = ""
        return
    bucket, slash, key = path.partition("/")
    request.bucket_name = url_decode(bucket)
    request.object_key = url_decode(key) if slash else ""


def _parse_query_string(request: S3Request) -> None:
    if not request.query_string:
        return
    for part in request.query_string.split("&"):
        key, _, value = part.partition("=")
        if key:
            request.params[url_decode(key)] = url_decode(value)


def _determine_operation(request: S3Request) -> None:
    has_bucket = bool(request.bucket_name)
    has_key = bool(request.object_key)
    method = request.method

    if method == "GET":
        if not has_bucket:
            request.op = S3Op.LIST_BUCKETS
        elif not has_key:
            request.op = (
                S3Op.LIST_OBJECTS_V2
                if request.params.get("list-type") == "2"
                else S3Op.LIST_OBJECTS
            )
        else:
            request.op = S3Op.GET_OBJECT
    elif method in _BUCKET_OPS:
        if not has_bucket:
            request.op = S3Op.UNKNOWN
        elif not has_key:
            request.op = _BUCKET_OPS[method]
        elif method == "PUT" and request.get_header("x-amz-copy-source"):
            request.op = S3Op.COPY_OBJECT
        else:
            request.op = _OBJECT_OPS[method]
    elif method == "POST":
        if "uploads" in request.params:
            request.op = S3Op.INIT_MULTIPART
        elif "uploadId" in request.params:
            request.op = S3Op.COMPLETE_MULTIPART