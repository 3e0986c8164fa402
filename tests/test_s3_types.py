import pytest

from nebulastore.s3_types import (
    ListObjectsResult,
    ObjectInfo,
    S3Error,
    S3Op,
    S3Request,
    S3Response,
)


@pytest.mark.parametrize(
    "factory, status, code",
    [
        (S3Error.access_denied, 403, "AccessDenied"),
        (S3Error.no_such_bucket, 404, "NoSuchBucket"),
        (S3Error.no_such_key, 404, "NoSuchKey"),
        (S3Error.bucket_already_exists, 409, "BucketAlreadyExists"),
        (S3Error.bucket_not_empty, 409, "BucketNotEmpty"),
        (S3Error.invalid_argument, 400, "InvalidArgument"),
        (S3Error.internal_error, 500, "InternalError"),
    ],
)
def test_error_factories(factory, status, code):
    error = factory()
    assert error.http_status == status
    assert error.code == code
    assert error.message


def test_set_error_writes_status_and_body():
    response = S3Response()
    error = S3Error.no_such_key()
    response.set_error(error)
    assert response.status_code == error.http_status
    text = response.body.decode()
    assert text.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert f"<Code>{error.code}</Code>" in text
    assert f"<Message>{error.message}</Message>" in text


def test_set_error_none_leaves_body():
    response = S3Response(body=b"payload")
    response.set_error(S3Error.none())
    assert response.status_code == 200
    assert response.body == b"payload"


def test_response_defaults():
    response = S3Response()
    assert response.status_code == 200
    assert response.content_type == "application/xml"
    assert response.headers == {}


def test_request_header_and_param_lookup():
    request = S3Request(headers={"Content-Type": "text/plain"}, params={"prefix": "dir/"})
    assert request.get_header("Content-Type") == "text/plain"
    assert request.get_header("content-type") == ""
    assert request.get_param("prefix") == "dir/"
    assert request.get_param("marker") == ""


def test_request_starts_unknown():
    assert S3Request().op is S3Op.UNKNOWN


def test_list_results_do_not_share_lists():
    first = ListObjectsResult()
    second = ListObjectsResult()
    first.objects.append(ObjectInfo(key="a"))
    first.common_prefixes.append("p/")
    assert second.objects == []
    assert second.common_prefixes == []
    assert first.objects[0].storage_class == "STANDARD"