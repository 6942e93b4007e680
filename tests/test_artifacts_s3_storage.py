"""Tests for S3 blob storage request mapping and error translation."""

from __future__ import annotations

import io
from typing import Any

from botocore.exceptions import ClientError
import pytest

from remote_jobs.artifacts import ArtifactStore, S3BlobStorage


class _S3ClientStub:
    """Minimal boto3 S3 client double recording calls."""

    def __init__(self, fail_operation: str | None = None):
        self.objects: dict[str, bytes] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._fail_operation = fail_operation

    def _maybe_fail(self, operation: str) -> None:
        if operation == self._fail_operation:
            raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, operation)

    def upload_fileobj(self, fileobj, bucket: str, key: str, ExtraArgs: dict[str, str] | None = None) -> None:
        self._maybe_fail("PutObject")
        self.calls.append(("upload_fileobj", {"bucket": bucket, "key": key, "extra_args": ExtraArgs}))
        self.objects[key] = fileobj.read()

    def head_object(self, Bucket: str, Key: str) -> dict[str, Any]:
        self._maybe_fail("HeadObject")
        self.calls.append(("head_object", {"bucket": Bucket, "key": Key}))
        return {"ContentLength": len(self.objects[Key])}

    def generate_presigned_url(self, ClientMethod: str, Params: dict[str, str], ExpiresIn: int) -> str:
        self._maybe_fail("GetObject")
        self.calls.append(("generate_presigned_url", {"method": ClientMethod, "params": Params, "expires_in": ExpiresIn}))
        return f"https://{Params['Bucket']}.s3.test/{Params['Key']}?expires={ExpiresIn}"

    def delete_object(self, Bucket: str, Key: str) -> None:
        self._maybe_fail("DeleteObject")
        self.calls.append(("delete_object", {"bucket": Bucket, "key": Key}))
        self.objects.pop(Key, None)


def test_artifacts_s3_storage_uploads_with_content_type_and_presigns() -> None:
    """Map artifact intake onto S3 upload, head and presign calls.

    Returns:
        None: Assertions validate S3 request parameters.

    Raises:
        AssertionError: Raised when S3 calls are malformed.
    """

    client = _S3ClientStub()
    storage = S3BlobStorage(bucket=" artifacts ", url_ttl_seconds=3600, s3_client=client)
    store = ArtifactStore(storage, key_prefix="abc123", size_limit_bytes=1024, count_limit=5, log_line=lambda _: None)

    record = store.artifact_submit("logs.txt", io.BytesIO(b"hello"))

    assert record is not None
    assert record.size_bytes == 5
    assert record.url == "https://artifacts.s3.test/abc123/logs.txt?expires=3600"
    upload_call = client.calls[0]
    assert upload_call[0] == "upload_fileobj"
    assert upload_call[1] == {"bucket": "artifacts", "key": "abc123/logs.txt", "extra_args": {"ContentType": "text/plain"}}
    assert client.calls[2][1]["method"] == "get_object"


def test_artifacts_s3_storage_deletes_blob_exceeding_quota() -> None:
    client = _S3ClientStub()
    storage = S3BlobStorage(bucket="artifacts", s3_client=client)
    store = ArtifactStore(storage, key_prefix="abc123", size_limit_bytes=4, count_limit=5, log_line=lambda _: None)

    assert store.artifact_submit("big.bin", io.BytesIO(b"0123456789")) is None

    assert client.objects == {}
    assert client.calls[-1] == ("delete_object", {"bucket": "artifacts", "key": "abc123/big.bin"})


@pytest.mark.parametrize(
    ("operation", "call"),
    [
        ("PutObject", lambda storage: storage.blob_upload("k", io.BytesIO(b"x"), "text/plain")),
        ("HeadObject", lambda storage: storage.blob_get_size("k")),
        ("GetObject", lambda storage: storage.blob_get_url("k")),
        ("DeleteObject", lambda storage: storage.blob_delete("k")),
    ],
)
def test_artifacts_s3_storage_translates_client_errors(operation: str, call) -> None:
    """Raise ConnectionError carrying the S3 error code.

    Args:
        operation: Failing S3 operation name.
        call: Storage call triggering the operation.

    Returns:
        None: Assertions validate error translation.

    Raises:
        AssertionError: Raised when boto errors leak unchanged.
    """

    storage = S3BlobStorage(bucket="artifacts", s3_client=_S3ClientStub(fail_operation=operation))

    with pytest.raises(ConnectionError, match="AccessDenied"):
        call(storage)


def test_artifacts_s3_storage_validates_constructor_arguments() -> None:
    with pytest.raises(ValueError, match="bucket"):
        S3BlobStorage(bucket=" ", s3_client=_S3ClientStub())
    with pytest.raises(ValueError, match="url_ttl_seconds"):
        S3BlobStorage(bucket="artifacts", url_ttl_seconds=0, s3_client=_S3ClientStub())
