"""Domain package for shared runtime contracts."""

from .formatting import domain_format_elapsed, domain_format_rough_size, domain_truncate_with_ellipsis
from .metadata import CaseInsensitiveMetadata
from .models import (
    ArtifactRecord,
    SystemHardwareInfo,
    TrackingRecordReference,
    WorkerHandle,
    WorkerResourceProfile,
)

__all__ = [
    "ArtifactRecord",
    "CaseInsensitiveMetadata",
    "SystemHardwareInfo",
    "TrackingRecordReference",
    "WorkerHandle",
    "WorkerResourceProfile",
    "domain_format_elapsed",
    "domain_format_rough_size",
    "domain_truncate_with_ellipsis",
]
