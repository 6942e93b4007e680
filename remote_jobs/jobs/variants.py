"""Job variants plugged into the shared job state machine."""

from __future__ import annotations

import io
import logging
import random
import re
import uuid
from typing import BinaryIO, Callable

from remote_jobs.domain import (
    SystemHardwareInfo,
    WorkerResourceProfile,
    domain_format_rough_size,
    domain_truncate_with_ellipsis,
)

from .interfaces import JobKind, JobVariantPort
from .job import Job

logger = logging.getLogger(__name__)

SUMMARY_LENGTH_LIMIT_BYTES = 1024 * 1024
COMMENT_LENGTH_LIMIT = 65_000

_FUZZ_STACK_SUFFIX = "-stack.txt"
_FUZZ_STACK_MAX_LINES = 60
_BENCHMARK_RESULTS_NAME = "results.md"
_BACKPORT_PATTERN = re.compile(r"^backport to ([a-zA-Z\d/._-]+)", re.IGNORECASE)
_JIT_DIFF_SUMMARY_NAMES = frozenset(
    {
        "diff-frameworks.txt",
        "ShortDiffsImprovements.md",
        "ShortDiffsRegressions.md",
        "LongDiffsImprovements.md",
        "LongDiffsRegressions.md",
    }
)


def _variant_read_text_summary(content: BinaryIO, limit_bytes: int) -> tuple[str, BinaryIO | None]:
    """Read up to `limit_bytes` of text and keep the artifact storable.

    Args:
        content: Artifact stream positioned at the start.
        limit_bytes: Maximum number of bytes decoded into the summary.

    Returns:
        tuple[str, BinaryIO | None]: Decoded text and a replacement stream when
        the original cannot be rewound.

    Raises:
        OSError: Raised when reading the stream fails.
    """

    head = content.read(limit_bytes)
    text = head.decode("utf-8", errors="replace")
    if content.seekable():
        content.seek(0)
        return text, None
    return text, io.BytesIO(head + content.read())


def _variant_architecture(job: Job) -> str:
    return "arm64" if job.job_has_argument_flag("-arm") else "x64"


class _WorkerVariantBase:
    """Shared traits for variants that run on a provisioned worker."""

    variant_requires_worker = True
    variant_mirrors_errors = False
    variant_suppresses_tracking_record = False

    def variant_initialize(self, job: Job) -> None:
        return None

    def variant_intercept_artifact(self, job: Job, file_name: str, content: BinaryIO) -> BinaryIO | None:
        return None

    def variant_build_final_report(self, job: Job) -> str:
        return ""


class JitDiffVariant(_WorkerVariantBase):
    """Compiler diff run comparing a change against its base branch.

    The worker uploads `diff-frameworks.txt` plus short and long markdown diff
    lists; the summary lands in the final report and the short lists are posted
    as comments on the tracking record.
    """

    def __init__(self, post_diff_comments: bool = True):
        self._post_diff_comments = post_diff_comments
        self._summaries: dict[str, str] = {}

    def variant_title_prefix(self, job: Job) -> str:
        return f"JitDiff {_variant_architecture(job).upper()}"

    def variant_run_core(self, job: Job) -> None:
        core_count = 32 if job.job_has_argument_flag("-fast") else 16
        profile = WorkerResourceProfile(
            core_count=core_count,
            architecture=_variant_architecture(job),
            prefer_intel=job.job_has_argument_flag("-intel"),
            fast=job.job_has_argument_flag("-fast"),
        )
        job.job_run_on_worker(profile)
        job.job_update_system_info(None)

        record = job.tracking_record
        if self._post_diff_comments and record is not None and "diff-frameworks.txt" in self._summaries:
            for kind in ("Regressions", "Improvements"):
                comment = self._variant_build_diff_comment(job, kind)
                if comment:
                    job.job_post_comment(record, comment)

    def variant_intercept_artifact(self, job: Job, file_name: str, content: BinaryIO) -> BinaryIO | None:
        if file_name not in _JIT_DIFF_SUMMARY_NAMES:
            return None

        text, replacement = _variant_read_text_summary(content, SUMMARY_LENGTH_LIMIT_BYTES)
        self._summaries[file_name] = text
        return replacement

    def variant_build_final_report(self, job: Job) -> str:
        summary = self._summaries.get("diff-frameworks.txt")
        if summary is None:
            return ""

        block = f"```\n{summary}\n```"
        if len(summary) > COMMENT_LENGTH_LIMIT // 6:
            block = f"<details>\n<summary>Diffs</summary>\n\n{block}\n\n</details>"
        return f"### Diffs\n\n{block}"

    def _variant_build_diff_comment(self, job: Job, kind: str) -> str:
        short_diffs = self._summaries.get(f"ShortDiffs{kind}.md", "").strip()
        if not short_diffs:
            return ""

        long_name = f"LongDiffs{kind}.md"
        if self._summaries.get(long_name, "").strip():
            for artifact in job.job_artifact_list():
                if artifact.file_name == long_name:
                    short_diffs = f"{short_diffs}\n\nLarger list of diffs: {artifact.url}"
                    break
        return short_diffs


class FuzzLibrariesVariant(_WorkerVariantBase):
    """Fuzzing run that reports crash stack traces.

    Stack traces arrive as `{fuzzer}-stack.txt` artifacts. Traces longer than
    60 lines keep their first and last 30 lines around a skip marker.
    """

    variant_mirrors_errors = True

    def __init__(self) -> None:
        self._stack_traces: dict[str, str] = {}

    def variant_title_prefix(self, job: Job) -> str:
        return "Fuzzing"

    def variant_run_core(self, job: Job) -> None:
        job.job_run_on_worker(WorkerResourceProfile(core_count=8))
        job.job_update_system_info(None)

        source_record = job.request.source_record
        stack_traces = self._variant_format_stack_traces()
        if not stack_traces or source_record is None or not job.config.post_error_comments or not job.mention_requester:
            return

        job.job_suppress_requester_mention()
        input_names = {f"{fuzzer}-input.bin" for fuzzer in self._stack_traces}
        artifact_lines = [
            f"- [{artifact.file_name}]({artifact.url}) ({domain_format_rough_size(artifact.size_bytes)})"
            for artifact in job.job_artifact_list()
            if artifact.file_name in input_names
        ]
        job.job_post_comment(source_record, "\n\n".join(part for part in (stack_traces, "\n".join(artifact_lines)) if part))

    def variant_intercept_artifact(self, job: Job, file_name: str, content: BinaryIO) -> BinaryIO | None:
        if not file_name.endswith(_FUZZ_STACK_SUFFIX):
            return None

        text, replacement = _variant_read_text_summary(content, SUMMARY_LENGTH_LIMIT_BYTES)
        self._stack_traces[file_name[: -len(_FUZZ_STACK_SUFFIX)]] = fuzz_truncate_stack_trace(text)
        return replacement

    def variant_build_final_report(self, job: Job) -> str:
        stack_traces = self._variant_format_stack_traces()
        if stack_traces:
            return stack_traces
        if job.first_error_message is None:
            return "Ran the fuzzer(s) successfully."
        return ""

    def _variant_format_stack_traces(self) -> str:
        return "\n\n".join(f"```\n// {fuzzer}\n{trace}\n```" for fuzzer, trace in self._stack_traces.items())


def fuzz_truncate_stack_trace(stack_trace: str) -> str:
    """Keep the first and last 30 lines of traces longer than 60 lines.

    Args:
        stack_trace: Raw stack trace text.

    Returns:
        str: Trace text, truncated around a skip marker when too long.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    lines = stack_trace.splitlines()
    if len(lines) <= _FUZZ_STACK_MAX_LINES:
        return stack_trace

    half = _FUZZ_STACK_MAX_LINES // 2
    skipped_message = f"... Skipped {len(lines) - _FUZZ_STACK_MAX_LINES} lines ..."
    marker = "=" * len(skipped_message)
    return "\n".join([*lines[:half], "", marker, skipped_message, marker, "", *lines[-half:]])


class BackportVariant(_WorkerVariantBase):
    """Backport of a merged change onto a release branch.

    Arguments must read `backport to <branch>`; the worker opens the backport
    pull request from the `BackportJob_*` metadata.
    """

    variant_mirrors_errors = True

    def variant_title_prefix(self, job: Job) -> str:
        return "Backport"

    def variant_initialize(self, job: Job) -> None:
        match = _BACKPORT_PATTERN.match(job.custom_arguments)
        if match is None:
            raise ValueError("Invalid arguments. Expected `backport to release/latest`")

        source_record = job.request.source_record
        if source_record is None:
            raise ValueError("Backport requires a source pull request")

        target_branch = match.group(1)
        login = job.request.requester_login or "unknown"
        job.metadata.metadata_add("BackportJob_BaseRepo", f"{source_record.owner}/{source_record.repository}")
        job.metadata.metadata_add("BackportJob_TargetBranch", target_branch)
        job.metadata.metadata_add("BackportJob_NewBranch", f"bp-{uuid.uuid4().hex[:12]}")
        job.metadata.metadata_add("BackportJob_Title", f"[{target_branch}] Backport of #{source_record.number}")
        job.metadata.metadata_add(
            "BackportJob_Body",
            f"Backport of #{source_record.number} to {target_branch}\n\ncc: @{login}",
        )

    def variant_run_core(self, job: Job) -> None:
        job.job_run_on_worker(WorkerResourceProfile(core_count=2))
        job.job_update_system_info(None)
        if job.first_error_message is None:
            job.job_suppress_requester_mention()


class RebaseVariant(_WorkerVariantBase):
    """Rebase, merge or format a pull request branch and push the result.

    The first word of the arguments picks the operation; anything other than
    `rebase` or `merge` formats the branch. The worker pushes with the token
    handed over in the `WorkerPushToken` metadata entry.
    """

    variant_mirrors_errors = True

    def variant_title_prefix(self, job: Job) -> str:
        operation = job.custom_arguments.lower()
        if operation.startswith("rebase"):
            return "Rebase"
        if operation.startswith("merge"):
            return "Merge"
        return "Format"

    def variant_initialize(self, job: Job) -> None:
        if job.request.source_record is None:
            raise ValueError("Rebase requires a source pull request")
        push_token = job.config.worker_push_token
        if not push_token:
            raise ValueError("No push token configured for rebase jobs")
        job.metadata.metadata_add("WorkerPushToken", push_token)

    def variant_run_core(self, job: Job) -> None:
        job.job_run_on_worker(WorkerResourceProfile(core_count=2))
        job.job_update_system_info(None)
        if job.first_error_message is None:
            job.job_suppress_requester_mention()


class BenchmarkLibrariesVariant(_WorkerVariantBase):
    """Library benchmark run reporting the worker's `results.md` table.

    Runs on 8 cores when comparing a source pull request and 4 cores otherwise.
    Results too long for a comment are replaced by a link to the stored
    artifact.
    """

    variant_mirrors_errors = True

    def __init__(self) -> None:
        self._results_markdown = ""
        self._report_markdown = ""

    def variant_title_prefix(self, job: Job) -> str:
        return f"Benchmark {_variant_architecture(job).upper()}"

    def variant_run_core(self, job: Job) -> None:
        profile = WorkerResourceProfile(
            core_count=8 if job.request.source_record is not None else 4,
            architecture=_variant_architecture(job),
        )
        job.job_run_on_worker(profile)
        job.job_update_system_info(None)

        self._report_markdown = self._variant_shorten_results(job)
        source_record = job.request.source_record
        if self._report_markdown and source_record is not None and job.mention_requester:
            job.job_post_comment(source_record, self._report_markdown)
            job.job_suppress_requester_mention()

    def variant_intercept_artifact(self, job: Job, file_name: str, content: BinaryIO) -> BinaryIO | None:
        if file_name != _BENCHMARK_RESULTS_NAME:
            return None

        self._results_markdown, replacement = _variant_read_text_summary(content, SUMMARY_LENGTH_LIMIT_BYTES)
        return replacement

    def variant_build_final_report(self, job: Job) -> str:
        return self._report_markdown or self._variant_shorten_results(job)

    def _variant_shorten_results(self, job: Job) -> str:
        results = self._results_markdown.strip()
        if len(results) <= COMMENT_LENGTH_LIMIT * 0.8:
            return results

        for artifact in job.job_artifact_list():
            if artifact.file_name == _BENCHMARK_RESULTS_NAME:
                return f"See benchmark results at {artifact.url}"
        return domain_truncate_with_ellipsis(results, int(COMMENT_LENGTH_LIMIT * 0.8))


class InMemoryVariant:
    """Local variant without a worker, producing fake progress every tick."""

    variant_requires_worker = False
    variant_mirrors_errors = False
    variant_suppresses_tracking_record = True

    def __init__(self, random_unit_interval_provider: Callable[[], float] | None = None):
        self._random_unit_interval_provider = random_unit_interval_provider or random.random

    def variant_title_prefix(self, job: Job) -> str:
        return "Fake"

    def variant_initialize(self, job: Job) -> None:
        return None

    def variant_run_core(self, job: Job) -> None:
        counter = 0
        while not job.job_wait_for_completion_or_cancel(job.config.tick_seconds):
            counter += 1
            job.job_update_system_info(
                SystemHardwareInfo(
                    cpu_usage=self._variant_random() * 16,
                    cpu_cores_available=16,
                    memory_usage_gb=self._variant_random() * 64,
                    memory_available_gb=64,
                ),
                "a" * self._variant_random_int(5, 20),
            )
            job.job_log(f"Dummy message {counter} {'a' * self._variant_random_int(50, 500)}")

        job.job_raise_if_cancelled()

    def variant_intercept_artifact(self, job: Job, file_name: str, content: BinaryIO) -> BinaryIO | None:
        return None

    def variant_build_final_report(self, job: Job) -> str:
        return ""

    def _variant_random(self) -> float:
        return min(max(self._random_unit_interval_provider(), 0.0), 1.0)

    def _variant_random_int(self, lower: int, upper: int) -> int:
        """Return an integer in `[lower, upper)`."""

        return lower + min(int(self._variant_random() * (upper - lower)), upper - lower - 1)


_VARIANT_FACTORIES: dict[JobKind, Callable[[], JobVariantPort]] = {
    JobKind.JIT_DIFF: JitDiffVariant,
    JobKind.FUZZ: FuzzLibrariesVariant,
    JobKind.BACKPORT: BackportVariant,
    JobKind.REBASE: RebaseVariant,
    JobKind.BENCHMARK: BenchmarkLibrariesVariant,
    JobKind.IN_MEMORY: InMemoryVariant,
}


def job_variant_create(kind: JobKind) -> JobVariantPort:
    """Create a fresh variant instance for `kind`.

    Args:
        kind: Job kind.

    Returns:
        JobVariantPort: New variant.

    Raises:
        ValueError: Raised when `kind` has no registered variant.
    """

    factory = _VARIANT_FACTORIES.get(kind)
    if factory is None:
        raise ValueError(f"unsupported job kind: {kind}")
    logger.debug("creating variant kind=%s", kind)
    return factory()
