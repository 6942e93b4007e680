"""Job state machine driving one remotely executed task.

A job owns its rolling log, artifact store, idle clock and lifetime clock.
`job_run` executes on a background thread while worker callbacks
(`job_receive_log_lines`, `job_receive_artifact`, `job_notify_completion`)
arrive concurrently from HTTP request handlers.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from datetime import timedelta
import io
import logging
import re
import secrets
import threading
import traceback
from typing import BinaryIO
import uuid

from remote_jobs.adapters import ProvisioningError
from remote_jobs.artifacts import ArtifactStore
from remote_jobs.domain import (
    ArtifactRecord,
    CaseInsensitiveMetadata,
    SystemHardwareInfo,
    TrackingRecordReference,
    WorkerHandle,
    WorkerResourceProfile,
    domain_format_elapsed,
    domain_format_rough_size,
    domain_truncate_with_ellipsis,
)
from remote_jobs.streaming import RollingLog, stream_rolling_log

from .cancellation import CancellationSource, CompletionSignal, wait_for_first
from .errors import JobCancelledError
from .interfaces import JobConfig, JobDependencies, JobKind, JobRequest, JobState, JobVariantPort

logger = logging.getLogger(__name__)

IDLE_TIMEOUT_MESSAGE = "Job idle timeout exceeded, terminating ..."
LIFETIME_EXCEEDED_MESSAGE = "Job duration exceeded, terminating ..."

_FIRST_ERROR_PATTERN = re.compile(r"^\[\d{2}:\d{2}:\d{2}\] ERROR: ")
_JOB_TITLE_MAX_LENGTH = 80
_WORKER_BOOT_IDLE_MULTIPLIER = 4
_TERMINAL_RUN_STATES = frozenset({JobState.TIMED_OUT, JobState.CANCELLED, JobState.COMPLETED})
_COLLABORATOR_ERRORS = (OSError, ValueError, RuntimeError)


class Job:
    """One orchestration request from creation to its terminal state.

    Attributes:
        job_id: Internal identifier used by worker callbacks; never exposed publicly.
        external_id: Public identifier used by dashboard and progress endpoints.
        kind: Variant kind.
        request: Original request.
        config: Limits and behavior flags.
        metadata: Case-insensitive metadata forwarded to the worker.
        start_time: Wall-clock creation time.
    """

    def __init__(
        self,
        request: JobRequest,
        variant: JobVariantPort,
        config: JobConfig,
        dependencies: JobDependencies,
    ):
        """Initialize job state and metadata.

        Args:
            request: Inbound job request.
            variant: Variant behavior for `request.kind`.
            config: Limits and behavior flags.
            dependencies: Injected collaborators.

        Returns:
            None: Initializer does not return a value.

        Raises:
            KeyError: Raised when request metadata collides with reserved keys.
            ValueError: Raised when request metadata or config values are invalid.
        """

        if config.idle_timeout_seconds <= 0:
            raise ValueError("config.idle_timeout_seconds must be > 0")
        if config.max_duration_seconds <= 0:
            raise ValueError("config.max_duration_seconds must be > 0")

        self.request = request
        self.kind: JobKind = request.kind
        self.config = config
        self._variant = variant
        self._dependencies = dependencies
        self._monotonic = dependencies.monotonic_provider

        self.job_id = uuid.uuid4().hex
        self.start_time = dependencies.wall_clock_provider()
        self.external_id = _job_new_external_id(int(self.start_time.timestamp() * 1000))

        self._lock = threading.Lock()
        self._started_at = self._monotonic()
        self._finished_at: float | None = None
        self._state = JobState.NOT_STARTED
        self._run_started = False
        self._run_phase_finished = False
        self._cleanup_done = False
        self._finished_event = threading.Event()

        self._max_duration_seconds = float(config.max_duration_seconds)
        self._first_error_message: str | None = None
        self._final_report: str | None = None
        self._job_title: str | None = None
        self._tracking_record: TrackingRecordReference | None = None
        self._worker_handle: WorkerHandle | None = None
        self._initial_worker_contact_seconds: float | None = None
        self._last_system_info: SystemHardwareInfo | None = None
        self._last_progress_summary: str | None = None
        self._manually_cancelled = False
        self._mention_requester = config.mention_requester

        self._rolling_log = RollingLog(config.log_capacity_lines)
        self._artifact_store = ArtifactStore(
            blob_storage=dependencies.blob_storage,
            key_prefix=self.external_id,
            size_limit_bytes=config.artifact_size_limit_bytes,
            count_limit=config.artifact_count_limit,
            log_line=self.job_log,
        )

        self._completion_signal = CompletionSignal()
        self._run_cancellation = CancellationSource(name=f"job-{self.external_id}-run")
        self._idle_clock = CancellationSource(name=f"job-{self.external_id}-idle")
        self._lifetime_clock = CancellationSource(name=f"job-{self.external_id}-lifetime")
        self._idle_clock.cancellation_register(lambda: self._job_on_clock_expired(IDLE_TIMEOUT_MESSAGE))
        self._lifetime_clock.cancellation_register(lambda: self._job_on_clock_expired(LIFETIME_EXCEEDED_MESSAGE))

        arguments_lines = (request.arguments or "").splitlines()
        self.metadata = CaseInsensitiveMetadata()
        self.metadata.metadata_add("JobId", self.job_id)
        self.metadata.metadata_add("ExternalId", self.external_id)
        self.metadata.metadata_add("JobType", self.kind.value)
        self.metadata.metadata_add("JobStartTime", self.start_time.isoformat())
        self.metadata.metadata_add("CustomArguments", arguments_lines[0].strip() if arguments_lines else "")
        for key, value in request.metadata.items():
            self.metadata.metadata_add(key, value)

        base_url = config.public_base_url.rstrip("/")
        self.dashboard_url = f"{base_url}/jobs/{self.external_id}"
        self.progress_url = f"{base_url}/jobs/{self.external_id}/progress"

        logger.debug("job created kind=%s dashboard=%s", self.kind.value, self.dashboard_url)

    @property
    def custom_arguments(self) -> str:
        return self.metadata["CustomArguments"]

    @custom_arguments.setter
    def custom_arguments(self, value: str) -> None:
        self.metadata["CustomArguments"] = value

    @property
    def job_state(self) -> JobState:
        with self._lock:
            return self._state

    @property
    def is_completed(self) -> bool:
        return self.job_state is JobState.COMPLETED

    @property
    def job_title(self) -> str:
        """Title used for the tracking record, at most 80 characters."""

        with self._lock:
            if self._job_title is None:
                self._job_title = self._job_build_title()
            return self._job_title

    @property
    def first_error_message(self) -> str | None:
        with self._lock:
            return self._first_error_message

    @property
    def final_report(self) -> str | None:
        """Final tracking body once the run phase finished."""

        with self._lock:
            return self._final_report

    @property
    def tracking_record(self) -> TrackingRecordReference | None:
        with self._lock:
            return self._tracking_record

    @property
    def worker_handle(self) -> WorkerHandle | None:
        with self._lock:
            return self._worker_handle

    @property
    def max_duration_seconds(self) -> float:
        return self._max_duration_seconds

    @property
    def mention_requester(self) -> bool:
        with self._lock:
            return self._mention_requester

    @property
    def initial_worker_contact_seconds(self) -> float | None:
        with self._lock:
            return self._initial_worker_contact_seconds

    @property
    def last_system_info(self) -> SystemHardwareInfo | None:
        with self._lock:
            return self._last_system_info

    @property
    def last_progress_summary(self) -> str | None:
        with self._lock:
            return self._last_progress_summary

    def job_has_argument_flag(self, flag: str) -> bool:
        """Return whether the argument line contains `flag`, ignoring case."""

        return flag.casefold() in self.custom_arguments.casefold()

    def job_elapsed_seconds(self) -> float:
        """Return elapsed run time; frozen once the job completed."""

        with self._lock:
            end = self._finished_at if self._finished_at is not None else self._monotonic()
        return max(0.0, end - self._started_at)

    def job_format_elapsed(self, include_seconds: bool = True) -> str:
        return domain_format_elapsed(self.job_elapsed_seconds(), include_seconds=include_seconds)

    def job_artifact_list(self) -> list[ArtifactRecord]:
        return self._artifact_store.artifact_list()

    def job_run(self) -> None:
        """Drive the job from start to its terminal state.

        The method never raises for failures inside the run; they are reported
        through the job log, the operational logger and the tracking record.

        Returns:
            None: Job state is updated as side effect.

        Raises:
            RuntimeError: Raised when the job was already started.
        """

        with self._lock:
            if self._run_started:
                raise RuntimeError(f"job already started: {self.external_id}")
            self._run_started = True

        logger.info("job starting kind=%s external_id=%s", self.kind.value, self.external_id)
        self.job_log("Starting ...")

        try:
            if self._variant.variant_requires_worker and self._dependencies.provisioner is None:
                self.job_log("No compute backend configured. Aborting ...")
                return

            if self.job_has_argument_flag("-noTimeLimit"):
                self._max_duration_seconds *= 2

            initialization_error: Exception | None = None
            try:
                self._variant.variant_initialize(self)
                max_end_time = self.start_time + timedelta(seconds=self._max_duration_seconds)
                self.metadata.metadata_add("JobMaxEndTime", max_end_time.isoformat())
            except Exception as error:
                initialization_error = error

            self._job_create_tracking_record()
            self._job_execute_guarded(initialization_error)
        finally:
            self._job_finalize()

    def job_run_on_worker(self, profile: WorkerResourceProfile) -> None:
        """Provision a worker and block until it reports completion.

        Args:
            profile: Resource hints for the worker.

        Returns:
            None: Returns once the worker signalled completion.

        Raises:
            JobCancelledError: Raised when the run was cancelled before or while waiting.
            ProvisioningError: Raised when no provisioner is configured or it returned no worker.
            ConnectionError: Raised when the compute backend is unreachable.
        """

        provisioner = self._dependencies.provisioner
        if provisioner is None:
            raise ProvisioningError("No compute backend configured")

        self.job_raise_if_cancelled()
        self._job_set_state(JobState.PROVISIONING)
        self.job_log(
            f"Provisioning a worker ({profile.core_count} cores, {profile.architecture}"
            f"{', fast' if profile.fast else ''}) using {provisioner.compute_source_name()} ..."
        )

        try:
            handle = provisioner.compute_provision(
                profile,
                self._job_build_startup_script(),
                worker_name=f"runner-{self.external_id}",
            )
        except _COLLABORATOR_ERRORS as error:
            self.job_log(f"Failed to provision a worker: {error}")
            raise

        with self._lock:
            self._worker_handle = handle

        self._job_set_state(JobState.RUNNING)
        self.job_log(f"Worker {handle.worker_id} starting ...")
        self._idle_clock.cancellation_cancel_after(
            self.config.idle_timeout_seconds * _WORKER_BOOT_IDLE_MULTIPLIER,
            IDLE_TIMEOUT_MESSAGE,
        )

        wait_for_first(self._completion_signal, self._run_cancellation)
        self.job_raise_if_cancelled()

    def job_wait_for_completion_or_cancel(self, timeout: float | None = None) -> bool:
        """Block until the worker completed, the run was cancelled, or `timeout` elapsed."""

        return wait_for_first(self._completion_signal, self._run_cancellation, timeout=timeout)

    def job_raise_if_cancelled(self) -> None:
        """Raise `JobCancelledError` when the run cancellation fired."""

        if self._run_cancellation.is_cancelled:
            raise JobCancelledError(self._run_cancellation.reason or "cancelled")

    def job_log(self, line: str) -> None:
        """Append one server-side line prefixed with the elapsed time."""

        elapsed = int(self.job_elapsed_seconds())
        hours, remainder = divmod(elapsed, 3600)
        minutes, seconds = divmod(remainder, 60)
        self._job_append_lines([f"[{hours:02d}:{minutes:02d}:{seconds:02d}]* {line}"])

    def job_receive_log_lines(self, lines: Sequence[str]) -> None:
        """Append lines received from the worker and reset the idle clock."""

        self._job_append_lines(lines)

    def job_receive_artifact(self, file_name: str, content: BinaryIO) -> ArtifactRecord | None:
        """Accept one artifact from the worker.

        Args:
            file_name: Artifact file name.
            content: Readable binary stream with artifact bytes.

        Returns:
            ArtifactRecord | None: Stored record, or `None` when skipped or failed.

        Raises:
            RuntimeError: This method does not raise runtime errors.
        """

        self._job_reset_idle_clock()

        replacement: BinaryIO | None = None
        try:
            replacement = self._variant.variant_intercept_artifact(self, file_name, content)
            record = self._artifact_store.artifact_submit(file_name, replacement or content)
        except _COLLABORATOR_ERRORS as error:
            logger.warning("artifact intake failed external_id=%s file_name=%s: %s", self.external_id, file_name, error)
            self.job_log(f"Failed to save artifact '{file_name}': {error}")
            return None
        finally:
            if replacement is not None:
                replacement.close()

        if record is not None:
            self.job_log(f"Saved artifact '{record.file_name}' to {record.url} ({domain_format_rough_size(record.size_bytes)})")
        return record

    def job_notify_completion(self) -> bool:
        """Signal worker completion; return False when already signalled."""

        first_completion = self._completion_signal.signal_try_set()
        if first_completion:
            logger.debug("job completion signalled external_id=%s elapsed=%s", self.external_id, self.job_format_elapsed())
        self._idle_clock.cancellation_cancel_after(None)
        return first_completion

    def job_fail_fast(self, message: str, cancelled_by_requester: bool = False) -> bool:
        """Cancel the run explicitly.

        Args:
            message: Reason recorded as the first error.
            cancelled_by_requester: Suppresses the requester mention when True.

        Returns:
            bool: False when the job was already completed or cancelled.

        Raises:
            RuntimeError: This method does not raise runtime errors.
        """

        fail_fast_message = f"!!! FailFast: {message}"
        with self._lock:
            if self._state is JobState.COMPLETED or self._run_cancellation.is_cancelled:
                return False
            self._manually_cancelled = True
            if cancelled_by_requester:
                self._mention_requester = False
            self._first_error_message = fail_fast_message
            self._state = JobState.CANCELLED

        self.job_log(fail_fast_message)
        self._run_cancellation.cancellation_cancel(fail_fast_message)
        return True

    def job_record_worker_contact(self) -> bool:
        """Record the first worker callback; return True only the first time."""

        elapsed_seconds = self.job_elapsed_seconds()
        with self._lock:
            if self._initial_worker_contact_seconds is not None:
                return False
            self._initial_worker_contact_seconds = elapsed_seconds

        self.job_log(f"Worker connected after {domain_format_elapsed(elapsed_seconds)}")
        return True

    def job_update_system_info(self, info: SystemHardwareInfo | None, progress_summary: str | None = None) -> None:
        with self._lock:
            self._last_system_info = info
            if progress_summary is not None:
                self._last_progress_summary = progress_summary

    def job_suppress_requester_mention(self) -> None:
        with self._lock:
            self._mention_requester = False

    def job_find_log_line(self, predicate: Callable[[str], bool]) -> str | None:
        """Return the first retained log line matching `predicate`."""

        position = 0
        while True:
            lines, position = self._rolling_log.rolling_log_get(position, 100)
            if not lines:
                return None
            for line in lines:
                if predicate(line):
                    return line

    def job_stream_logs(self, stop_event: threading.Event | None = None) -> Iterator[str | None]:
        """Tail the job log until completion; see `stream_rolling_log`."""

        return stream_rolling_log(self._rolling_log, lambda: self.is_completed, stop_event=stop_event)

    def job_render_logs(self) -> str:
        return self._rolling_log.rolling_log_render()

    def job_wait_until_completed(self, timeout: float | None = None) -> bool:
        """Block until the run finished including cleanup; return False on timeout."""

        return self._finished_event.wait(timeout)

    def job_post_comment(self, record: TrackingRecordReference, text: str) -> bool:
        """Post a comment through the reporter; failures are logged, not raised."""

        reporter = self._dependencies.reporter
        if reporter is None:
            return False
        try:
            reporter.reporter_post_comment(record, text)
        except _COLLABORATOR_ERRORS as error:
            logger.warning("failed to post comment record=%s external_id=%s: %s", record, self.external_id, error)
            return False
        return True

    def job_build_final_body(self, custom_info: str = "", cancelled: bool = False) -> str:
        """Render the final tracking-record body.

        Args:
            custom_info: Variant markdown appended after the error block.
            cancelled: Whether the header reports cancellation.

        Returns:
            str: Markdown body.

        Raises:
            RuntimeError: This method does not raise runtime errors.
        """

        runner_delay = ""
        contact_seconds = self.initial_worker_contact_seconds
        if contact_seconds is not None:
            runner_delay = f" (remote runner delay: {domain_format_elapsed(contact_seconds)})"

        if cancelled:
            header = f"[Job]({self.dashboard_url}) was cancelled after {self.job_format_elapsed()}{runner_delay}."
        else:
            header = f"[Job]({self.dashboard_url}) completed in {self.job_format_elapsed()}{runner_delay}."

        arguments = f"Using arguments: ````{self.custom_arguments}````" if self.custom_arguments.strip() else ""
        sections = ["\n".join(line for line in (header, self.request.source_link or "", arguments) if line)]

        first_error = self.first_error_message
        if first_error is not None:
            sections.append(f"```\n{first_error}\n```")
        if custom_info.strip():
            sections.append(custom_info.strip())

        artifact_list = self._artifact_store.artifact_format_list()
        if artifact_list:
            sections.append(f"Artifacts:\n{artifact_list}")

        return "\n\n".join(sections)

    def _job_execute_guarded(self, initialization_error: Exception | None) -> None:
        try:
            self._lifetime_clock.cancellation_cancel_after(self._max_duration_seconds, LIFETIME_EXCEEDED_MESSAGE)
            self.job_log(f"Using custom arguments: '{self.custom_arguments}'")

            if initialization_error is not None:
                raise initialization_error

            self.job_raise_if_cancelled()
            if not self._variant.variant_requires_worker:
                self._job_set_state(JobState.RUNNING)

            self._variant.variant_run_core(self)
            self.job_raise_if_cancelled()

            self._job_finish_run_phase()
            self._job_save_logs_artifact()
            self._job_publish_final_report(self.job_build_final_body(self._job_build_variant_report()))
        except JobCancelledError as error:
            self._job_finish_run_phase()
            logger.info("job cancelled external_id=%s reason=%s", self.external_id, error.reason)
            self.job_log(f"Job cancelled: {error.reason}")
            self._job_save_logs_artifact()
            self._job_publish_final_report(self.job_build_final_body(self._job_build_variant_report(), cancelled=True))
        except Exception as error:
            self._job_finish_run_phase()
            if not self._manually_cancelled:
                logger.exception("job failed external_id=%s", self.external_id)
            self.job_log(f"Uncaught exception: {error!r}")
            self._job_save_logs_artifact()

            error_text = self.first_error_message or "".join(traceback.format_exception_only(type(error), error)).strip()
            self._job_publish_final_report(
                f"Something went wrong with the [Job]({self.dashboard_url}) after {self.job_format_elapsed()} "
                f":man_shrugging:\n\n```\n{error_text}\n```"
            )

    def _job_finalize(self) -> None:
        with self._lock:
            self._state = JobState.COMPLETED
            if self._finished_at is None:
                self._finished_at = self._monotonic()

        self._completion_signal.signal_try_set()
        self._job_cleanup_once()
        self._finished_event.set()
        logger.info("job finished external_id=%s elapsed=%s", self.external_id, self.job_format_elapsed())

    def _job_cleanup_once(self) -> None:
        with self._lock:
            if self._cleanup_done:
                return
            self._cleanup_done = True

        self._job_release_worker()
        self._job_notify_requester()
        for source in (self._idle_clock, self._lifetime_clock, self._run_cancellation):
            source.cancellation_dispose()

    def _job_release_worker(self) -> None:
        handle = self.worker_handle
        provisioner = self._dependencies.provisioner
        if handle is None or provisioner is None:
            return

        if not self.config.delete_worker_after_completion:
            self.job_log("Configuration opted not to delete the worker")
            return

        self.job_log("Deleting the worker")
        try:
            provisioner.compute_deprovision(handle)
        except _COLLABORATOR_ERRORS as error:
            logger.warning("failed to deprovision worker=%s external_id=%s: %s", handle.worker_id, self.external_id, error)

    def _job_notify_requester(self) -> None:
        record = self.tracking_record
        login = self.request.requester_login
        if not self.mention_requester or record is None or not login:
            return
        self.job_post_comment(record, f"@{login}")

    def _job_create_tracking_record(self) -> None:
        reporter = self._dependencies.reporter
        if (
            reporter is None
            or self._variant.variant_suppresses_tracking_record
            or self.job_has_argument_flag("-noTrackingIssue")
        ):
            return

        arguments = f"Using arguments: ````{self.custom_arguments}````" if self.custom_arguments.strip() else ""
        body = "\n".join(
            line
            for line in (f"Job is in progress - see {self.dashboard_url}", self.request.source_link or "", arguments)
            if line
        )

        try:
            record = reporter.reporter_create_tracking_record(self.job_title, body)
        except _COLLABORATOR_ERRORS as error:
            logger.warning("failed to create tracking record external_id=%s: %s", self.external_id, error)
            self.job_log(f"Failed to create a tracking record: {error}")
            return

        with self._lock:
            self._tracking_record = record
        self.job_log(f"Tracking record: {record}")

    def _job_publish_final_report(self, body: str) -> None:
        with self._lock:
            self._final_report = body

        record = self.tracking_record
        reporter = self._dependencies.reporter
        if record is None or reporter is None:
            self.job_log("No tracking record. Final report:")
            self._job_append_lines(body.splitlines())
            return

        try:
            reporter.reporter_update_tracking_record(record, body)
        except _COLLABORATOR_ERRORS as error:
            logger.warning("failed to update tracking record=%s external_id=%s: %s", record, self.external_id, error)

    def _job_build_variant_report(self) -> str:
        try:
            return self._variant.variant_build_final_report(self)
        except Exception:
            logger.exception("variant report failed external_id=%s", self.external_id)
            return ""

    def _job_save_logs_artifact(self) -> None:
        content = self._rolling_log.rolling_log_render().encode("utf-8")
        try:
            self._artifact_store.artifact_submit("logs.txt", io.BytesIO(content))
        except _COLLABORATOR_ERRORS as error:
            logger.warning("failed to save logs artifact external_id=%s: %s", self.external_id, error)

    def _job_finish_run_phase(self) -> None:
        with self._lock:
            self._run_phase_finished = True
            self._last_system_info = None
        self._idle_clock.cancellation_cancel_after(None)
        self._lifetime_clock.cancellation_cancel_after(None)

    def _job_on_clock_expired(self, message: str) -> None:
        with self._lock:
            if self._run_phase_finished or self._state is JobState.COMPLETED or self._run_cancellation.is_cancelled:
                return
            record_message = self._first_error_message is None
            if record_message:
                self._first_error_message = message
            self._state = JobState.TIMED_OUT

        if record_message:
            self.job_log(message)
        self._run_cancellation.cancellation_cancel(message)

    def _job_append_lines(self, lines: Sequence[str]) -> None:
        if not lines:
            return

        self._rolling_log.rolling_log_add_lines(lines)
        self._job_reset_idle_clock()

        for line in lines:
            if _FIRST_ERROR_PATTERN.match(line) and self._job_try_set_first_error(line):
                self._job_mirror_error(line)

    def _job_reset_idle_clock(self) -> None:
        with self._lock:
            if self._run_phase_finished:
                return
        self._idle_clock.cancellation_cancel_after(self.config.idle_timeout_seconds, IDLE_TIMEOUT_MESSAGE)

    def _job_try_set_first_error(self, line: str) -> bool:
        with self._lock:
            if self._first_error_message is not None:
                return False
            self._first_error_message = line
            return True

    def _job_mirror_error(self, line: str) -> None:
        source_record = self.request.source_record
        if (
            not self._variant.variant_mirrors_errors
            or source_record is None
            or not self.config.post_error_comments
            or self._dependencies.reporter is None
        ):
            return

        comment_thread = threading.Thread(
            target=self.job_post_comment,
            args=(source_record, f"```\n{line}\n```"),
            name=f"job-{self.external_id}-error-comment",
            daemon=True,
        )
        comment_thread.start()

    def _job_set_state(self, state: JobState) -> None:
        with self._lock:
            if self._state in _TERMINAL_RUN_STATES:
                return
            self._state = state

    def _job_build_title(self) -> str:
        login = self.request.requester_login
        if self.request.source_record is not None and login:
            title = f"For {login} in {self.request.source_record}"
        elif login:
            title = f"For {login}"
        else:
            title = self.start_time.strftime("%Y-%m-%d %H:%M:%S")
        prefix = self._variant.variant_title_prefix(self)
        return domain_truncate_with_ellipsis(f"[{prefix}] {title}", _JOB_TITLE_MAX_LENGTH)

    def _job_build_startup_script(self) -> str:
        base_url = self.config.public_base_url.rstrip("/")
        metadata_url = f"{base_url}/jobs/worker/metadata?job_id={self.job_id}"
        commands = (
            "apt-get update",
            "apt-get install -y git",
            "cd /home",
            f"git clone --no-tags --single-branch --progress {self.config.worker_runner_repository_url} runner",
            "cd runner",
            f"HOME=/root JOB_ID={self.job_id} JOB_METADATA_URL='{metadata_url}' ./run.sh",
        )
        return "#cloud-config\nruncmd:\n" + "\n".join(f"  - {command}" for command in commands) + "\n"


def _job_new_external_id(timestamp_ms: int) -> str:
    return f"{timestamp_ms:012x}{secrets.token_hex(4)}"
