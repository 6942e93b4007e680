"""Typed domain models shared across runtime layers.

This module provides simple data contracts for cross-layer communication
between the job state machine, its external collaborators and the API layer.
"""

from __future__ import annotations

from dataclasses import dataclass
import re

_TRACKING_RECORD_PATTERN = re.compile(r"^([A-Za-z0-9_.-]+)/([A-Za-z0-9_.-]+)#(\d+)$")


@dataclass(frozen=True)
class ArtifactRecord:
    """One artifact persisted for a job.

    Attributes:
        file_name: Artifact file name as reported by the worker.
        url: Externally reachable URL of the stored object.
        size_bytes: Stored size as reported by blob storage.
    """

    file_name: str
    url: str
    size_bytes: int


@dataclass(frozen=True)
class WorkerResourceProfile:
    """Resource hints passed to the compute provisioner.

    Attributes:
        core_count: Requested CPU core count.
        architecture: `x64` or `arm64`.
        prefer_intel: Whether an Intel CPU is preferred over AMD on x64.
        fast: Whether a larger machine class was requested.
        memory_gb: Optional memory hint in GiB.
    """

    core_count: int
    architecture: str = "x64"
    prefer_intel: bool = False
    fast: bool = False
    memory_gb: int | None = None

    def __post_init__(self) -> None:
        if self.core_count < 1:
            raise ValueError("core_count must be >= 1")
        if self.architecture not in {"x64", "arm64"}:
            raise ValueError(f"unsupported architecture={self.architecture}")


@dataclass(frozen=True)
class WorkerHandle:
    """Opaque reference to a provisioned worker.

    Attributes:
        provider: Provisioner source name.
        worker_id: Provider-specific worker identifier.
        login_hint: Optional remote login hint for manual debugging.
    """

    provider: str
    worker_id: str
    login_hint: str | None = None


@dataclass(frozen=True)
class TrackingRecordReference:
    """Reference to an issue-like tracking record.

    Attributes:
        owner: Repository owner.
        repository: Repository name.
        number: Issue or pull request number.
    """

    owner: str
    repository: str
    number: int

    def __str__(self) -> str:
        return f"{self.owner}/{self.repository}#{self.number}"

    @classmethod
    def parse(cls, value: str) -> TrackingRecordReference:
        """Parse an `owner/repo#number` reference.

        Args:
            value: Reference text.

        Returns:
            TrackingRecordReference: Parsed reference.

        Raises:
            ValueError: Raised when the text does not match the reference format.
        """

        match = _TRACKING_RECORD_PATTERN.match(value.strip())
        if match is None:
            raise ValueError(f"invalid tracking record reference={value}")
        return cls(owner=match.group(1), repository=match.group(2), number=int(match.group(3)))


@dataclass(frozen=True)
class SystemHardwareInfo:
    """Last hardware utilization snapshot reported by a worker.

    Attributes:
        cpu_usage: Busy cores.
        cpu_cores_available: Total cores.
        memory_usage_gb: Used memory in GiB.
        memory_available_gb: Total memory in GiB.
    """

    cpu_usage: float
    cpu_cores_available: float
    memory_usage_gb: float
    memory_available_gb: float

    @property
    def cpu_usage_percentage(self) -> int:
        if self.cpu_cores_available <= 0:
            return 0
        return int(self.cpu_usage / self.cpu_cores_available * 100)

    @property
    def memory_usage_percentage(self) -> int:
        if self.memory_available_gb <= 0:
            return 0
        return int(self.memory_usage_gb / self.memory_available_gb * 100)
