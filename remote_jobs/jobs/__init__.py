"""Jobs package for the job state machine, variants and orchestrator."""

from .cancellation import CancellationSource, CompletionSignal, wait_for_first
from .errors import JobCancelledError, JobError, JobNotFoundError
from .interfaces import JobConfig, JobDependencies, JobKind, JobRequest, JobState, JobVariantPort
from .job import Job
from .orchestrator import JobIdKind, JobOrchestrator
from .variants import (
    BackportVariant,
    BenchmarkLibrariesVariant,
    FuzzLibrariesVariant,
    InMemoryVariant,
    JitDiffVariant,
    RebaseVariant,
    fuzz_truncate_stack_trace,
    job_variant_create,
)

__all__ = [
    "BackportVariant",
    "BenchmarkLibrariesVariant",
    "CancellationSource",
    "CompletionSignal",
    "FuzzLibrariesVariant",
    "InMemoryVariant",
    "JitDiffVariant",
    "Job",
    "JobCancelledError",
    "JobConfig",
    "JobDependencies",
    "JobError",
    "JobIdKind",
    "JobKind",
    "JobNotFoundError",
    "JobOrchestrator",
    "JobRequest",
    "JobState",
    "JobVariantPort",
    "RebaseVariant",
    "fuzz_truncate_stack_trace",
    "job_variant_create",
    "wait_for_first",
]
