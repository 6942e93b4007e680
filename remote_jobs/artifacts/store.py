"""Per-job artifact intake with count and total size limits."""

from __future__ import annotations

import logging
import mimetypes
import threading
from typing import BinaryIO, Callable

from remote_jobs.domain import ArtifactRecord, domain_format_rough_size

from .interfaces import BlobStoragePort

logger = logging.getLogger(__name__)

_DEFAULT_CONTENT_TYPE = "application/octet-stream"


class ArtifactStore:
    """Accepts artifact uploads for one job and enforces its storage quota.

    The running total only ever counts accepted artifacts. A submission that
    would push the total past the size limit is deleted from blob storage
    again and reported through `log_line`.
    """

    def __init__(
        self,
        blob_storage: BlobStoragePort,
        key_prefix: str,
        size_limit_bytes: int,
        count_limit: int,
        log_line: Callable[[str], None],
    ):
        """Initialize artifact store.

        Args:
            blob_storage: Backing blob storage.
            key_prefix: Prefix prepended to every blob key, usually the external job id.
            size_limit_bytes: Maximum total accepted bytes.
            count_limit: Maximum number of submissions considered.
            log_line: Sink for job-visible log lines.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when prefix or limits are invalid.
        """

        normalized_prefix = key_prefix.strip().strip("/")
        if not normalized_prefix:
            raise ValueError("key_prefix must not be blank")
        if size_limit_bytes < 0:
            raise ValueError("size_limit_bytes must be >= 0")
        if count_limit < 0:
            raise ValueError("count_limit must be >= 0")

        self._blob_storage = blob_storage
        self._key_prefix = normalized_prefix
        self._size_limit_bytes = size_limit_bytes
        self._count_limit = count_limit
        self._log_line = log_line
        self._lock = threading.Lock()
        self._submission_count = 0
        self._total_size_bytes = 0
        self._records: list[ArtifactRecord] = []

    @property
    def artifact_total_size_bytes(self) -> int:
        with self._lock:
            return self._total_size_bytes

    def artifact_list(self) -> list[ArtifactRecord]:
        """Return a snapshot of accepted artifacts in acceptance order."""

        with self._lock:
            return list(self._records)

    def artifact_submit(self, file_name: str, content: BinaryIO) -> ArtifactRecord | None:
        """Persist one artifact unless a quota is exceeded.

        Args:
            file_name: Artifact file name, used as the last key segment.
            content: Readable binary stream with artifact bytes.

        Returns:
            ArtifactRecord | None: Accepted record, or `None` when the artifact was skipped.

        Raises:
            ValueError: Raised when file name is not a plain file name.
            ConnectionError: Raised when blob storage fails.
        """

        normalized_file_name = _artifact_validate_file_name(file_name)

        with self._lock:
            self._submission_count += 1
            submission_count = self._submission_count

        if submission_count > self._count_limit:
            self._log_line(f"Too many artifacts received, skipping {normalized_file_name}")
            return None

        key = f"{self._key_prefix}/{normalized_file_name}"
        content_type = mimetypes.guess_type(normalized_file_name)[0] or _DEFAULT_CONTENT_TYPE

        self._blob_storage.blob_upload(key, content, content_type)
        try:
            size_bytes = self._blob_storage.blob_get_size(key)
        except Exception:
            self._artifact_delete_quietly(key)
            raise

        with self._lock:
            accepted = self._total_size_bytes + size_bytes <= self._size_limit_bytes
            if accepted:
                self._total_size_bytes += size_bytes

        if not accepted:
            self._log_line(
                f"Artifact {normalized_file_name} ({domain_format_rough_size(size_bytes)}) "
                "exceeds the artifact size limit, deleting"
            )
            self._blob_storage.blob_delete(key)
            return None

        try:
            url = self._blob_storage.blob_get_url(key)
        except Exception:
            with self._lock:
                self._total_size_bytes -= size_bytes
            self._artifact_delete_quietly(key)
            raise

        record = ArtifactRecord(file_name=normalized_file_name, url=url, size_bytes=size_bytes)
        with self._lock:
            self._records.append(record)

        logger.debug("artifact accepted key=%s size_bytes=%s", key, size_bytes)
        return record

    def artifact_format_list(self) -> str:
        """Render accepted artifacts as a markdown list.

        Returns:
            str: One `- [name](url) (size)` line per artifact, or an empty string.

        Raises:
            RuntimeError: This method does not raise runtime errors.
        """

        return "\n".join(
            f"- [{record.file_name}]({record.url}) ({domain_format_rough_size(record.size_bytes)})"
            for record in self.artifact_list()
        )

    def _artifact_delete_quietly(self, key: str) -> None:
        """Delete a blob that was uploaded but never accepted; failures are only logged."""

        try:
            self._blob_storage.blob_delete(key)
        except Exception:
            logger.warning("failed to delete unaccepted artifact key=%s", key, exc_info=True)


def _artifact_validate_file_name(file_name: str) -> str:
    normalized_file_name = file_name.strip()
    if not normalized_file_name:
        raise ValueError("file_name must not be blank")
    if "/" in normalized_file_name or "\\" in normalized_file_name:
        raise ValueError("file_name must not contain path separators")
    if normalized_file_name in {".", ".."}:
        raise ValueError("file_name must not be a relative path segment")
    return normalized_file_name
