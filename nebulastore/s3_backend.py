"""Storage backend that keeps objects in an S3-compatible service."""

from __future__ import annotations

import hashlib
import hmac
import logging
import string
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Iterable, Optional

from nebulastore.local_backend import CapacityInfo
from nebulastore.types import InvalidArgumentError, NotFoundError, StorageIOError

_log = logging.getLogger(__name__)

_ALGORITHM = "AWS4-HMAC-SHA256"
_PAYLOAD_HASH = "UNSIGNED-PAYLOAD"
_SIGNED_HEADERS = "host;x-amz-content-sha256;x-amz-date"
_SERVICE = "s3"
_UNRESERVED = frozenset((string.ascii_letters + string.digits + "-_.~/").encode("ascii"))
_U64_MAX = (1 << 64) - 1


@dataclass(frozen=True)
class S3Config:
    """Where the bucket lives and the credentials used to sign requests."""

    bucket: str = ""
    region: str = "us-east-1"
    access_key: str = ""
    secret_key: str = ""
    endpoint: str = ""
    scheme: str = "https"
    timeout: float = 30.0

    def host(self) -> str:
        """The endpoint if set, else the virtual-hosted bucket address."""
        if self.endpoint:
            return self.endpoint
        return f"{self.bucket}.s3.{self.region}.amazonaws.com"


def url_encode(text: str) -> str:
    """Percent-encode every byte except letters, digits and ``-_.~/``."""
    return "".join(
        chr(byte) if byte in _UNRESERVED else f"%{byte:02x}"
        for byte in text.encode("utf-8")
    )


def build_url(config: S3Config, key: str) -> str:
    return f"{config.scheme}://{config.host()}/{url_encode(key)}"


def _hmac_sha256(key: bytes, data: str) -> bytes:
    return hmac.new(key, data.encode("utf-8"), hashlib.sha256).digest()


def signature_key(secret: str, date_stamp: str, region: str, service: str) -> bytes:
    """The Signature V4 signing key for one day, region and service."""
    k_date = _hmac_sha256(("AWS4" + secret).encode("utf-8"), date_stamp)
    k_region = _hmac_sha256(k_date, region)
    k_service = _hmac_sha256(k_region, service)
    return _hmac_sha256(k_service, "aws4_request")


def _amz_date_now() -> str:
    return time.strftime("%Y%m%dT%H%M%SZ", time.gmtime())


def authorization_headers(
    config: S3Config, method: str, key: str, amz_date: Optional[str] = None
) -> dict[str, str]:
    """Signed request headers for ``method`` on ``key``; ``amz_date`` defaults to now."""
    date = amz_date or _amz_date_now()
    date_stamp = date[:8]
    host = config.host()

    canonical_headers = (
        f"host:{host}\n"
        f"x-amz-content-sha256:{_PAYLOAD_HASH}\n"
        f"x-amz-date:{date}\n"
    )
    canonical_request = "\n".join(
        [method, "/" + key, "", canonical_headers, _SIGNED_HEADERS, _PAYLOAD_HASH]
    )
    credential_scope = f"{date_stamp}/{config.region}/{_SERVICE}/aws4_request"
    string_to_sign = "\n".join(
        [
            _ALGORITHM,
            date,
            credential_scope,
            hashlib.sha256(canonical_request.encode("utf-8")).hexdigest(),
        ]
    )
    signing_key = signature_key(config.secret_key, date_stamp, config.region, _SERVICE)
    signature = hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()
    authorization = (
        f"{_ALGORITHM} Credential={config.access_key}/{credential_scope}, "
        f"SignedHeaders={_SIGNED_HEADERS}, Signature={signature}"
    )
    return {
        "Host": host,
        "x-amz-date": date,
        "x-amz-content-sha256": _PAYLOAD_HASH,
        "Authorization": authorization,
    }


class S3Backend:
    """Objects stored in one bucket of an S3-compatible service."""

    def __init__(self, config: S3Config) -> None:
        self.config = config
        self._opener = urllib.request.build_opener()
        _log.info("S3Backend initialized: bucket=%s, region=%s", config.bucket, config.region)

    def _perform(
        self,
        method: str,
        key: str,
        data: Optional[bytes] = None,
        extra_headers: Optional[dict[str, str]] = None,
    ) -> tuple[int, bytes]:
        headers = authorization_headers(self.config, method, key)
        if extra_headers:
            headers.update(extra_headers)
        if data is not None:
            headers["Content-Length"] = str(len(data))
        request = urllib.request.Request(
            build_url(self.config, key), data=data, headers=headers, method=method
        )
        try:
            with self._opener.open(request, timeout=self.config.timeout) as response:
                return response.status, response.read()
        except urllib.error.HTTPError as exc:
            with exc:
                return exc.code, exc.read()
        except urllib.error.URLError as exc:
            raise StorageIOError(f"request failed: {exc.reason}") from exc
        except OSError as exc:
            raise StorageIOError(f"request failed: {exc}") from exc

    def put(self, key: str, data: bytes) -> None:
        payload = bytes(data)
        try:
            status, _ = self._perform("PUT", key, data=payload)
            if status >= 400:
                raise StorageIOError(f"S3 PUT failed, HTTP {status}")
        except StorageIOError as exc:
            _log.error("S3 PUT failed: %s - %s", key, exc.message)
            raise
        _log.debug("S3 PUT: %s (%d bytes)", key, len(payload))

    def get(self, key: str) -> bytes:
        try:
            status, body = self._perform("GET", key)
            if status == 404:
                raise NotFoundError(f"Object not found: {key}")
            if status >= 400:
                raise StorageIOError(f"S3 GET failed, HTTP {status}")
        except (NotFoundError, StorageIOError) as exc:
            _log.error("S3 GET failed: %s - %s", key, exc.message)
            raise
        _log.debug("S3 GET: %s", key)
        return body

    def delete(self, key: str) -> None:
        """Remove the object; a missing object is not an error."""
        status, _ = self._perform("DELETE", key)
        if status >= 400 and status != 404:
            raise StorageIOError(f"S3 DELETE failed, HTTP {status}")
        _log.debug("S3 DELETE: %s", key)

    def exists(self, key: str) -> bool:
        status, _ = self._perform("HEAD", key)
        if status == 404:
            return False
        if status >= 400:
            raise StorageIOError(f"S3 HEAD failed, HTTP {status}")
        return True

    def get_range(self, key: str, offset: int, size: int) -> bytes:
        """``size`` bytes starting at ``offset``, as the service returns them."""
        if offset < 0:
            raise InvalidArgumentError("Invalid offset")
        if size < 1:
            raise InvalidArgumentError("Invalid size")
        byte_range = f"bytes={offset}-{offset + size - 1}"
        status, body = self._perform("GET", key, extra_headers={"Range": byte_range})
        if status == 404:
            raise NotFoundError(f"Object not found: {key}")
        if status >= 400:
            raise StorageIOError(f"S3 GET range failed, HTTP {status}")
        _log.debug("S3 GET range: %s [%d-%d]", key, offset, offset + size)
        return body

    def batch_get(self, keys: Iterable[str]) -> list[bytes]:
        """Read each key in order; the first failure is raised."""
        return [self.get(key) for key in keys]

    def health_check(self) -> None:
        """Raise :class:`InvalidArgumentError` if bucket or access key is missing."""
        if not self.config.bucket or not self.config.access_key:
            raise InvalidArgumentError("Invalid S3 configuration")

    def capacity(self) -> CapacityInfo:
        """Object storage is treated as unbounded."""
        return CapacityInfo(total_bytes=_U64_MAX, available_bytes=_U64_MAX, used_bytes=0)