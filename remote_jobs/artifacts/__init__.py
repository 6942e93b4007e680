"""Artifacts package for per-job artifact intake and blob storage."""

from .interfaces import BlobStoragePort
from .memory_storage import InMemoryBlobStorage
from .s3_storage import S3BlobStorage
from .store import ArtifactStore

__all__ = ["ArtifactStore", "BlobStoragePort", "InMemoryBlobStorage", "S3BlobStorage"]
