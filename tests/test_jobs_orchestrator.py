"""Tests for the job registry and orchestrator lifecycle."""

from __future__ import annotations

import threading
import time

import pytest

from remote_jobs.artifacts import InMemoryBlobStorage
from remote_jobs.jobs import (
    JobConfig,
    JobDependencies,
    JobKind,
    JobNotFoundError,
    JobOrchestrator,
    JobRequest,
    JobState,
)


def _build_orchestrator(retention_seconds: float = 60.0) -> JobOrchestrator:
    return JobOrchestrator(
        dependencies=JobDependencies(blob_storage=InMemoryBlobStorage()),
        config=JobConfig(tick_seconds=0.01),
        retention_seconds=retention_seconds,
    )


def _wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_jobs_orchestrator_lists_active_jobs_longest_running_first() -> None:
    """Register back-to-back jobs with distinct ids, oldest listed first.

    Returns:
        None: Assertions validate identity and ordering.

    Raises:
        AssertionError: Raised when ids collide or ordering is wrong.
    """

    orchestrator = _build_orchestrator()
    first = orchestrator.orchestrator_submit(JobRequest(kind=JobKind.IN_MEMORY))
    second = orchestrator.orchestrator_submit(JobRequest(kind=JobKind.IN_MEMORY))

    try:
        assert first.job_id != second.job_id
        assert first.external_id != second.external_id
        assert {first.job_id, first.external_id}.isdisjoint({second.job_id, second.external_id})
        assert set(orchestrator.orchestrator_list_active()) == {first, second}

        time.sleep(0.05)

        assert orchestrator.orchestrator_list_active() == [first, second]
    finally:
        orchestrator.orchestrator_shutdown(grace_seconds=5.0)


def test_jobs_orchestrator_lookup_rejects_cross_namespace_ids() -> None:
    orchestrator = _build_orchestrator()
    job = orchestrator.orchestrator_create_job(JobRequest(kind=JobKind.IN_MEMORY))
    orchestrator.orchestrator_start(job)

    try:
        assert orchestrator.orchestrator_try_get(job.job_id, use_public_id=False) is job
        assert orchestrator.orchestrator_try_get(job.external_id, use_public_id=True) is job
        assert orchestrator.orchestrator_try_get(job.job_id, use_public_id=True) is None
        assert orchestrator.orchestrator_try_get(job.external_id, use_public_id=False) is None
        assert orchestrator.orchestrator_try_get("  ", use_public_id=True) is None
        with pytest.raises(JobNotFoundError):
            orchestrator.orchestrator_get("missing", use_public_id=True)
    finally:
        orchestrator.orchestrator_shutdown(grace_seconds=5.0)


def test_jobs_orchestrator_evict_is_idempotent() -> None:
    orchestrator = _build_orchestrator()
    job = orchestrator.orchestrator_submit(JobRequest(kind=JobKind.IN_MEMORY))
    job.job_notify_completion()
    assert job.job_wait_until_completed(timeout=5.0)

    assert orchestrator.orchestrator_evict(job) is True
    assert orchestrator.orchestrator_evict(job) is False
    assert orchestrator.orchestrator_try_get(job.external_id, use_public_id=True) is None


def test_jobs_orchestrator_evicts_after_retention_window() -> None:
    """Remove jobs from the registry once retention elapses.

    Returns:
        None: Assertions validate timed eviction.

    Raises:
        AssertionError: Raised when jobs stay registered.
    """

    orchestrator = _build_orchestrator(retention_seconds=0.1)
    job = orchestrator.orchestrator_submit(JobRequest(kind=JobKind.IN_MEMORY))
    job.job_notify_completion()

    assert _wait_until(lambda: orchestrator.orchestrator_try_get(job.job_id, use_public_id=False) is None)


def test_jobs_orchestrator_rejects_duplicate_start() -> None:
    orchestrator = _build_orchestrator()
    job = orchestrator.orchestrator_submit(JobRequest(kind=JobKind.IN_MEMORY))

    try:
        with pytest.raises(ValueError, match="already registered"):
            orchestrator.orchestrator_start(job)
    finally:
        orchestrator.orchestrator_shutdown(grace_seconds=5.0)


def test_jobs_orchestrator_shutdown_cancels_active_jobs_and_stops_accepting() -> None:
    """Fail-fast active jobs on shutdown and leave later jobs unstarted.

    Returns:
        None: Assertions validate shutdown behavior.

    Raises:
        AssertionError: Raised when jobs survive shutdown.
    """

    orchestrator = _build_orchestrator()
    job = orchestrator.orchestrator_submit(JobRequest(kind=JobKind.IN_MEMORY))
    assert _wait_until(lambda: job.job_state is JobState.RUNNING)

    orchestrator.orchestrator_shutdown(grace_seconds=5.0)

    assert job.is_completed
    assert job.first_error_message == "!!! FailFast: Service is restarting"
    assert orchestrator.is_shutting_down
    assert orchestrator.orchestrator_list_active() == []

    late_job = orchestrator.orchestrator_submit(JobRequest(kind=JobKind.IN_MEMORY))

    assert late_job.job_state is JobState.NOT_STARTED
    assert orchestrator.orchestrator_try_get(late_job.external_id, use_public_id=True) is None


def test_jobs_orchestrator_try_start_reports_registration() -> None:
    orchestrator = _build_orchestrator()
    job = orchestrator.orchestrator_create_job(JobRequest(kind=JobKind.IN_MEMORY))

    assert orchestrator.orchestrator_try_start(job) is True
    assert orchestrator.orchestrator_try_get(job.job_id, use_public_id=False) is job

    orchestrator.orchestrator_shutdown(grace_seconds=5.0)
    late_job = orchestrator.orchestrator_create_job(JobRequest(kind=JobKind.IN_MEMORY))

    assert orchestrator.orchestrator_try_start(late_job) is False
    assert late_job.job_state is JobState.NOT_STARTED


def test_jobs_orchestrator_starts_racing_shutdown_are_either_cancelled_or_rejected() -> None:
    """Never leave a job registered but untouched by a concurrent shutdown.

    Returns:
        None: Assertions validate the start and shutdown interleaving.

    Raises:
        AssertionError: Raised when a registered job escapes shutdown.
    """

    orchestrator = _build_orchestrator()
    jobs = [orchestrator.orchestrator_create_job(JobRequest(kind=JobKind.IN_MEMORY)) for _ in range(16)]
    results: dict[str, bool] = {}
    barrier = threading.Barrier(len(jobs) + 1)

    def _start(job) -> None:
        barrier.wait()
        results[job.job_id] = orchestrator.orchestrator_try_start(job)

    threads = [threading.Thread(target=_start, args=(job,)) for job in jobs]
    for thread in threads:
        thread.start()
    barrier.wait()
    orchestrator.orchestrator_shutdown(grace_seconds=5.0)
    for thread in threads:
        thread.join(timeout=5.0)

    assert len(results) == len(jobs)
    for job in jobs:
        if results[job.job_id]:
            assert job.job_wait_until_completed(timeout=5.0)
            assert job.first_error_message == "!!! FailFast: Service is restarting"
        else:
            assert job.job_state is JobState.NOT_STARTED
            assert orchestrator.orchestrator_try_get(job.job_id, use_public_id=False) is None


def test_jobs_orchestrator_validates_retention() -> None:
    with pytest.raises(ValueError, match="retention_seconds"):
        _build_orchestrator(retention_seconds=0)


def test_jobs_orchestrator_unknown_kind_is_rejected() -> None:
    def _reject_kind(kind: JobKind):
        raise ValueError(f"unsupported job kind: {kind}")

    orchestrator = JobOrchestrator(
        dependencies=JobDependencies(blob_storage=InMemoryBlobStorage()),
        variant_factory=_reject_kind,
    )

    with pytest.raises(ValueError, match="unsupported job kind"):
        orchestrator.orchestrator_create_job(JobRequest(kind=JobKind.FUZZ))
