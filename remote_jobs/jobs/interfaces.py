"""Typed interfaces for job-layer orchestration responsibilities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import time
from typing import TYPE_CHECKING, BinaryIO, Callable, Protocol

from remote_jobs.adapters import ComputeProvisionerPort, ResultReporterPort
from remote_jobs.artifacts import BlobStoragePort
from remote_jobs.domain import TrackingRecordReference

if TYPE_CHECKING:
    from .job import Job


class JobState(str, Enum):
    """Lifecycle states of one job; `COMPLETED` is terminal."""

    NOT_STARTED = "not_started"
    PROVISIONING = "provisioning"
    RUNNING = "running"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class JobKind(str, Enum):
    """Closed set of supported job variants."""

    JIT_DIFF = "jit_diff"
    FUZZ = "fuzz"
    BACKPORT = "backport"
    REBASE = "rebase"
    BENCHMARK = "benchmark"
    IN_MEMORY = "in_memory"


@dataclass(frozen=True)
class JobRequest:
    """Inbound request describing one job.

    Attributes:
        kind: Variant to run.
        arguments: Free-form argument line; only the first line is kept.
        requester_login: Optional login of the requesting user.
        source_record: Optional commentable record the request came from.
        source_link: Optional link to the tested branch or pull request.
        metadata: Extra metadata forwarded to the worker.
    """

    kind: JobKind
    arguments: str = ""
    requester_login: str | None = None
    source_record: TrackingRecordReference | None = None
    source_link: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class JobConfig:
    """Limits and behavior flags applied to every job.

    Attributes:
        max_duration_seconds: Hard lifetime ceiling.
        idle_timeout_seconds: Cancel after this long without worker activity.
        artifact_size_limit_bytes: Total artifact size cap.
        artifact_count_limit: Maximum artifact submissions considered.
        log_capacity_lines: Rolling log capacity.
        delete_worker_after_completion: Tear down workers when jobs finish.
        mention_requester: Mention the requester on the tracking record at completion.
        post_error_comments: Mirror first worker errors as comments where variants opt in.
        public_base_url: Base URL used for dashboard, progress and worker callback links.
        worker_runner_repository_url: Repository cloned by the worker startup script.
        worker_push_token: Token handed to workers that push branches, such as rebase jobs.
        tick_seconds: Progress interval of the in-memory variant.
    """

    max_duration_seconds: float = 5 * 60 * 60
    idle_timeout_seconds: float = 5 * 60
    artifact_size_limit_bytes: int = 16 * 1024 * 1024 * 1024
    artifact_count_limit: int = 128
    log_capacity_lines: int = 50_000
    delete_worker_after_completion: bool = True
    mention_requester: bool = True
    post_error_comments: bool = True
    public_base_url: str = "http://localhost:8000"
    worker_runner_repository_url: str = "https://github.com/remote-jobs/runner"
    worker_push_token: str | None = None
    tick_seconds: float = 1.0


@dataclass(frozen=True)
class JobDependencies:
    """Collaborators injected into jobs.

    Attributes:
        blob_storage: Artifact blob storage.
        provisioner: Optional compute provisioner; worker variants complete immediately without it.
        reporter: Optional result reporter; no tracking record is created without it.
        monotonic_provider: Clock used for elapsed-time accounting.
        wall_clock_provider: Clock used for start timestamps.
    """

    blob_storage: BlobStoragePort
    provisioner: ComputeProvisionerPort | None = None
    reporter: ResultReporterPort | None = None
    monotonic_provider: Callable[[], float] = time.monotonic
    wall_clock_provider: Callable[[], datetime] = field(default=lambda: datetime.now(timezone.utc))


class JobVariantPort(Protocol):
    """Behavior plugged into the shared job state machine.

    Attributes:
        variant_requires_worker: Whether the variant provisions a remote worker.
        variant_mirrors_errors: Whether the first worker error is mirrored as a comment.
        variant_suppresses_tracking_record: Whether no tracking record is created.
    """

    variant_requires_worker: bool
    variant_mirrors_errors: bool
    variant_suppresses_tracking_record: bool

    def variant_title_prefix(self, job: Job) -> str:
        """Return the bracketed title prefix, for example `Fuzzing`."""

    def variant_initialize(self, job: Job) -> None:
        """Validate arguments and add variant metadata before the run starts.

        Raises:
            ValueError: Raised when job arguments are invalid.
        """

    def variant_run_core(self, job: Job) -> None:
        """Execute the variant body; returns when the worker finished.

        Raises:
            JobCancelledError: Raised when the run was cancelled.
        """

    def variant_intercept_artifact(self, job: Job, file_name: str, content: BinaryIO) -> BinaryIO | None:
        """Inspect an artifact before storage.

        Returns:
            BinaryIO | None: Replacement stream to store, or `None` to store the original.
        """

    def variant_build_final_report(self, job: Job) -> str:
        """Return variant-specific markdown appended to the final tracking body."""
