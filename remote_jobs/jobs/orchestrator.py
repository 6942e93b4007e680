"""Registry and lifecycle owner for in-flight jobs."""

from __future__ import annotations

from enum import Enum
import logging
import threading
import time
from typing import Callable

from .errors import JobNotFoundError
from .interfaces import JobConfig, JobDependencies, JobKind, JobRequest, JobVariantPort
from .job import Job
from .variants import job_variant_create

logger = logging.getLogger(__name__)

SHUTDOWN_FAIL_FAST_MESSAGE = "Service is restarting"


class JobIdKind(str, Enum):
    """Namespace tag for registry keys."""

    INTERNAL = "internal"
    EXTERNAL = "external"


class JobOrchestrator:
    """Create, register, run and evict jobs.

    Jobs are registered under two tagged keys so internal worker ids and public
    dashboard ids can never be confused for one another.
    """

    def __init__(
        self,
        dependencies: JobDependencies,
        config: JobConfig | None = None,
        retention_seconds: float = 7 * 24 * 60 * 60,
        variant_factory: Callable[[JobKind], JobVariantPort] = job_variant_create,
    ):
        """Initialize orchestrator state.

        Args:
            dependencies: Collaborators shared by all jobs.
            config: Per-job limits and flags.
            retention_seconds: How long jobs stay queryable after start.
            variant_factory: Factory creating variants per kind.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when `retention_seconds` is not positive.
        """

        if retention_seconds <= 0:
            raise ValueError("retention_seconds must be > 0")

        self._dependencies = dependencies
        self._config = config or JobConfig()
        self._retention_seconds = retention_seconds
        self._variant_factory = variant_factory
        self._lock = threading.Lock()
        self._jobs: dict[tuple[JobIdKind, str], Job] = {}
        self._eviction_timers: dict[str, threading.Timer] = {}
        self._run_threads: dict[str, threading.Thread] = {}
        self._shutting_down = False

    @property
    def config(self) -> JobConfig:
        return self._config

    @property
    def dependencies(self) -> JobDependencies:
        return self._dependencies

    @property
    def is_shutting_down(self) -> bool:
        with self._lock:
            return self._shutting_down

    def orchestrator_create_job(self, request: JobRequest) -> Job:
        """Create one unstarted job for `request`.

        Raises:
            ValueError: Raised when the kind is unsupported or job inputs are invalid.
            KeyError: Raised when request metadata collides with reserved keys.
        """

        return Job(request, self._variant_factory(request.kind), self._config, self._dependencies)

    def orchestrator_start(self, job: Job) -> Job:
        """Register `job` and run it on a background thread.

        Args:
            job: Unstarted job.

        Returns:
            Job: The same job; left unstarted while the service is shutting down.

        Raises:
            ValueError: Raised when the job was already registered.
        """

        self.orchestrator_try_start(job)
        return job

    def orchestrator_try_start(self, job: Job) -> bool:
        """Register and start `job` unless shutdown has begun.

        The shutdown check and the registration share one critical section, so
        a `True` result guarantees the job is in the registry and running.

        Returns:
            bool: `True` when the job was registered; `False` during shutdown.

        Raises:
            ValueError: Raised when the job was already registered.
        """

        with self._lock:
            if self._shutting_down:
                logger.warning("rejecting job start during shutdown external_id=%s", job.external_id)
                return False

            internal_key = (JobIdKind.INTERNAL, job.job_id)
            external_key = (JobIdKind.EXTERNAL, job.external_id)
            if internal_key in self._jobs or external_key in self._jobs:
                raise ValueError(f"job already registered: {job.external_id}")

            self._jobs[internal_key] = job
            self._jobs[external_key] = job

            eviction_timer = threading.Timer(self._retention_seconds, self.orchestrator_evict, args=(job,))
            eviction_timer.daemon = True
            eviction_timer.name = f"job-{job.external_id}-eviction"
            self._eviction_timers[job.job_id] = eviction_timer

            run_thread = threading.Thread(
                target=self._orchestrator_run_job,
                args=(job,),
                name=f"job-{job.external_id}",
                daemon=True,
            )
            self._run_threads[job.job_id] = run_thread
            eviction_timer.start()
            run_thread.start()

        logger.info("job registered kind=%s external_id=%s", job.kind.value, job.external_id)
        return True

    def orchestrator_submit(self, request: JobRequest) -> Job:
        """Create and start one job."""

        return self.orchestrator_start(self.orchestrator_create_job(request))

    def orchestrator_try_get(self, job_id: str, use_public_id: bool) -> Job | None:
        """Look up a job by internal or public id.

        Args:
            job_id: Internal id for worker callbacks, external id for public routes.
            use_public_id: Selects the namespace.

        Returns:
            Job | None: Matching job or `None`.

        Raises:
            RuntimeError: This method does not raise runtime errors.
        """

        normalized_id = (job_id or "").strip()
        if not normalized_id:
            return None

        id_kind = JobIdKind.EXTERNAL if use_public_id else JobIdKind.INTERNAL
        with self._lock:
            job = self._jobs.get((id_kind, normalized_id))

        if job is None:
            return None
        matching_id = job.external_id if use_public_id else job.job_id
        return job if matching_id == normalized_id else None

    def orchestrator_get(self, job_id: str, use_public_id: bool) -> Job:
        """Look up a job or raise `JobNotFoundError`."""

        job = self.orchestrator_try_get(job_id, use_public_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def orchestrator_list_active(self) -> list[Job]:
        """Return registered jobs that have not completed, longest running first."""

        with self._lock:
            jobs = {id(job): job for job in self._jobs.values()}.values()
            active_jobs = [job for job in jobs if not job.is_completed]

        return sorted(active_jobs, key=lambda job: job.job_elapsed_seconds(), reverse=True)

    def orchestrator_evict(self, job: Job) -> bool:
        """Remove `job` from the registry; return False when it was already gone."""

        with self._lock:
            removed_internal = self._jobs.pop((JobIdKind.INTERNAL, job.job_id), None)
            removed_external = self._jobs.pop((JobIdKind.EXTERNAL, job.external_id), None)
            eviction_timer = self._eviction_timers.pop(job.job_id, None)
            self._run_threads.pop(job.job_id, None)

        if eviction_timer is not None:
            eviction_timer.cancel()

        evicted = removed_internal is not None or removed_external is not None
        if evicted:
            logger.debug("job evicted external_id=%s", job.external_id)
        return evicted

    def orchestrator_shutdown(self, grace_seconds: float = 10.0) -> None:
        """Stop accepting jobs, cancel active ones and wait for their threads.

        Args:
            grace_seconds: Maximum total time spent waiting for job threads.

        Returns:
            None: Shutdown happens as side effect.

        Raises:
            RuntimeError: This method does not raise runtime errors.
        """

        with self._lock:
            self._shutting_down = True
            eviction_timers = list(self._eviction_timers.values())
            self._eviction_timers.clear()
            run_threads = list(self._run_threads.values())

        for eviction_timer in eviction_timers:
            eviction_timer.cancel()

        active_jobs = self.orchestrator_list_active()
        logger.info("orchestrator shutting down active_jobs=%s", len(active_jobs))
        for job in active_jobs:
            job.job_fail_fast(SHUTDOWN_FAIL_FAST_MESSAGE)

        deadline = time.monotonic() + max(0.0, grace_seconds)
        for run_thread in run_threads:
            run_thread.join(max(0.0, deadline - time.monotonic()))
            if run_thread.is_alive():
                logger.warning("job thread still running after shutdown grace period thread=%s", run_thread.name)

    def _orchestrator_run_job(self, job: Job) -> None:
        try:
            job.job_run()
        except Exception:
            logger.exception("job thread failed external_id=%s", job.external_id)
