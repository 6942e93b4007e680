"""Amazon S3 blob storage implementation for job artifacts."""

from __future__ import annotations

from typing import Any, BinaryIO

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .interfaces import BlobStoragePort


class S3BlobStorage(BlobStoragePort):
    """Blob storage backed by one S3 bucket with presigned download URLs."""

    def __init__(
        self,
        bucket: str,
        region: str | None = None,
        url_ttl_seconds: int = 7 * 24 * 3600,
        s3_client: Any | None = None,
    ):
        """Initialize S3 blob storage.

        Args:
            bucket: Target bucket name.
            region: Optional AWS region; boto3 default resolution applies when omitted.
            url_ttl_seconds: Lifetime of generated download URLs.
            s3_client: Optional preconfigured client, mainly for tests.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when bucket is blank or URL TTL is not positive.
        """

        normalized_bucket = bucket.strip()
        if not normalized_bucket:
            raise ValueError("bucket must not be blank")
        if url_ttl_seconds <= 0:
            raise ValueError("url_ttl_seconds must be > 0")

        self._bucket = normalized_bucket
        self._url_ttl_seconds = url_ttl_seconds
        if s3_client is None:
            # v4 signing keeps presigned URLs valid for regional buckets.
            s3_client = boto3.client(
                "s3",
                region_name=region,
                config=Config(signature_version="s3v4", region_name=region),
            )
        self._s3_client = s3_client

    def blob_upload(self, key: str, content: BinaryIO, content_type: str) -> None:
        try:
            self._s3_client.upload_fileobj(
                content,
                self._bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except (ClientError, BotoCoreError) as error:
            raise ConnectionError(f"S3 upload failed: key={key}, error={_s3_describe_error(error)}") from error

    def blob_get_size(self, key: str) -> int:
        try:
            response = self._s3_client.head_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as error:
            raise ConnectionError(f"S3 head failed: key={key}, error={_s3_describe_error(error)}") from error
        return int(response.get("ContentLength", 0))

    def blob_get_url(self, key: str) -> str:
        try:
            return self._s3_client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self._bucket, "Key": key},
                ExpiresIn=self._url_ttl_seconds,
            )
        except (ClientError, BotoCoreError) as error:
            raise ConnectionError(f"S3 presign failed: key={key}, error={_s3_describe_error(error)}") from error

    def blob_delete(self, key: str) -> None:
        try:
            self._s3_client.delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as error:
            raise ConnectionError(f"S3 delete failed: key={key}, error={_s3_describe_error(error)}") from error


def _s3_describe_error(error: Exception) -> str:
    if isinstance(error, ClientError):
        details = error.response.get("Error", {})
        return f"{details.get('Code')} {details.get('Message')}"
    return str(error)
