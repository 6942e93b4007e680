"""Typed interfaces for adapter-layer responsibilities."""

from typing import Protocol

from remote_jobs.domain import TrackingRecordReference, WorkerHandle, WorkerResourceProfile


class ComputeProvisionerPort(Protocol):
    """Port definition for starting and tearing down disposable workers."""

    def compute_source_name(self) -> str:
        """Return provisioner identifier for diagnostics.

        Returns:
            str: Human-readable backend identifier.

        Raises:
            RuntimeError: Raised when source metadata is unavailable.
        """

    def compute_provision(
        self,
        profile: WorkerResourceProfile,
        startup_script: str,
        worker_name: str | None = None,
    ) -> WorkerHandle:
        """Start one worker that runs `startup_script` on boot.

        Args:
            profile: Resource hints for the worker.
            startup_script: Script executed by the worker on first boot.
            worker_name: Optional backend-visible worker name.

        Returns:
            WorkerHandle: Handle used for later deprovisioning.

        Raises:
            ConnectionError: Raised when the compute backend is unreachable.
            ProvisioningError: Raised when the backend rejects the request.
        """

    def compute_deprovision(self, handle: WorkerHandle) -> None:
        """Tear down one worker.

        Args:
            handle: Handle returned by `compute_provision`.

        Returns:
            None: Worker is removed as side effect.

        Raises:
            ConnectionError: Raised when the compute backend is unreachable.
        """


class ResultReporterPort(Protocol):
    """Port definition for publishing job progress to a tracking surface."""

    def reporter_create_tracking_record(self, title: str, body: str) -> TrackingRecordReference:
        """Create one tracking record.

        Args:
            title: Record title.
            body: Initial markdown body.

        Returns:
            TrackingRecordReference: Reference to the created record.

        Raises:
            ConnectionError: Raised when the tracking surface is unreachable.
            ValueError: Raised when the tracking surface rejects the request.
        """

    def reporter_update_tracking_record(self, record: TrackingRecordReference, body: str) -> None:
        """Replace the body of one tracking record.

        Args:
            record: Target record.
            body: New markdown body.

        Returns:
            None: Record is updated as side effect.

        Raises:
            ConnectionError: Raised when the tracking surface is unreachable.
            ValueError: Raised when the tracking surface rejects the request.
        """

    def reporter_post_comment(self, record: TrackingRecordReference, text: str) -> None:
        """Post one comment on a tracking record or source record.

        Args:
            record: Target record.
            text: Markdown comment text.

        Returns:
            None: Comment is created as side effect.

        Raises:
            ConnectionError: Raised when the tracking surface is unreachable.
            ValueError: Raised when the tracking surface rejects the request.
        """
