"""Typed interfaces for artifact blob storage."""

from typing import BinaryIO
from typing import Protocol


class BlobStoragePort(Protocol):
    """Port definition for persisting job artifacts as named blobs."""

    def blob_upload(self, key: str, content: BinaryIO, content_type: str) -> None:
        """Upload one blob, replacing any existing blob at the same key.

        Args:
            key: Storage key.
            content: Readable binary stream positioned at the start of data.
            content_type: MIME type stored alongside the blob.

        Returns:
            None: Blob is persisted as side effect.

        Raises:
            ConnectionError: Raised when the storage backend is unreachable or rejects the upload.
        """

    def blob_get_size(self, key: str) -> int:
        """Return stored size in bytes for one blob.

        Args:
            key: Storage key.

        Returns:
            int: Stored blob size.

        Raises:
            ConnectionError: Raised when the storage backend fails.
        """

    def blob_get_url(self, key: str) -> str:
        """Return an externally reachable URL for one blob.

        Args:
            key: Storage key.

        Returns:
            str: Blob URL.

        Raises:
            ConnectionError: Raised when the storage backend fails.
        """

    def blob_delete(self, key: str) -> None:
        """Delete one blob if it exists.

        Args:
            key: Storage key.

        Returns:
            None: Blob is removed as side effect.

        Raises:
            ConnectionError: Raised when the storage backend fails.
        """
