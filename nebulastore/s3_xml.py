"""XML bodies for S3 listing responses."""

from __future__ import annotations

from typing import Iterable

from nebulastore.s3_types import BucketInfo, ListObjectsResult

XMLNS_AWS_S3 = "http://s3.amazonaws.com/doc/2006-03-01/"
_XML_HEADER = '<?xml version="1.0" encoding="UTF-8"?>\n'

_ESCAPES = str.maketrans({"&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&quot;"})


def escape(text: str) -> str:
    """Escape &, <, > and double quotes for XML text."""
    return text.translate(_ESCAPES)


def list_buckets_result(owner_id: str, owner_name: str, buckets: Iterable[BucketInfo]) -> str:
    """The ListAllMyBucketsResult document."""
    parts = [
        _XML_HEADER,
        f'<ListAllMyBucketsResult xmlns="{XMLNS_AWS_S3}">\n',
        f"  <Owner><ID>{escape(owner_id)}</ID>"
        f"<DisplayName>{escape(owner_name)}</DisplayName></Owner>\n",
        "  <Buckets>\n",
    ]
    parts.extend(
        f"    <Bucket><Name>{escape(b.name)}</Name>"
        f"<CreationDate>{b.creation_date}</CreationDate></Bucket>\n"
        for b in buckets
    )
    parts.append("  </Buckets>\n</ListAllMyBucketsResult>")
    return "".join(parts)


def list_bucket_result(result: ListObjectsResult) -> str:
    """The ListBucketResult document for an object listing."""
    parts = [
        _XML_HEADER,
        f'<ListBucketResult xmlns="{XMLNS_AWS_S3}">\n',
        f"  <Name>{escape(result.bucket_name)}</Name>\n",
        f"  <Prefix>{escape(result.prefix)}</Prefix>\n",
        f"  <Marker>{escape(result.marker)}</Marker>\n",
        f"  <MaxKeys>{result.max_keys}</MaxKeys>\n",
        f"  <IsTruncated>{'true' if result.is_truncated else 'false'}</IsTruncated>\n",
    ]
    for obj in result.objects:
        parts.append(
            "  <Contents>\n"
            f"    <Key>{escape(obj.key)}</Key>\n"
            f"    <LastModified>{obj.last_modified}</LastModified>\n"
            f'    <ETag>"{obj.etag}"</ETag>\n'
            f"    <Size>{obj.size}</Size>\n"
            f"    <StorageClass>{obj.storage_class}</StorageClass>\n"
            "  </Contents>\n"
        )
    parts.extend(
        f"  <CommonPrefixes><Prefix>{escape(p)}</Prefix></CommonPrefixes>\n"
        for p in result.common_prefixes
    )
    parts.append("</ListBucketResult>")
    return "".join(parts)