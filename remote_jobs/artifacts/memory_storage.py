"""Process-local blob storage for local runs without an artifact bucket."""

from __future__ import annotations

import threading
from typing import BinaryIO

from .interfaces import BlobStoragePort


class InMemoryBlobStorage(BlobStoragePort):
    """Blob storage keeping artifact bytes in a dict.

    URLs use the `memory://` scheme and are not externally reachable.
    """

    def __init__(self, url_prefix: str = "memory://artifacts"):
        self._url_prefix = url_prefix.rstrip("/")
        self._lock = threading.Lock()
        self._blobs: dict[str, tuple[bytes, str]] = {}

    def blob_upload(self, key: str, content: BinaryIO, content_type: str) -> None:
        data = content.read()
        with self._lock:
            self._blobs[key] = (bytes(data), content_type)

    def blob_get_size(self, key: str) -> int:
        with self._lock:
            if key not in self._blobs:
                raise ConnectionError(f"blob not found: key={key}")
            return len(self._blobs[key][0])

    def blob_get_url(self, key: str) -> str:
        return f"{self._url_prefix}/{key}"

    def blob_delete(self, key: str) -> None:
        with self._lock:
            self._blobs.pop(key, None)

    def blob_read(self, key: str) -> bytes:
        """Return stored bytes for one blob.

        Raises:
            KeyError: Raised when the blob does not exist.
        """

        with self._lock:
            return self._blobs[key][0]

    def blob_keys(self) -> list[str]:
        with self._lock:
            return sorted(self._blobs)
