"""Public job API router for submission, dashboards and progress streaming."""

from __future__ import annotations

import hmac
import logging
import threading
from collections.abc import Iterator

from fastapi import APIRouter, Header, status
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from remote_jobs.config import AppSettings
from remote_jobs.domain import TrackingRecordReference
from remote_jobs.jobs import Job, JobKind, JobOrchestrator, JobRequest

logger = logging.getLogger(__name__)


class JobSubmitPayload(BaseModel):
    """Request body accepted by `POST /jobs`."""

    kind: str
    arguments: str = ""
    requester_login: str | None = None
    source_record: str | None = None
    source_link: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)


class JobCancelPayload(BaseModel):
    """Request body accepted by `POST /jobs/{external_id}/cancel`."""

    reason: str = "Cancelled by request"
    cancelled_by_requester: bool = True


def api_job_summary(job: Job) -> dict[str, object]:
    """Build the public dashboard summary for one job.

    Args:
        job: Job to describe.

    Returns:
        dict[str, object]: JSON-serializable payload without the internal job id.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return {
        "external_id": job.external_id,
        "kind": job.kind.value,
        "title": job.job_title,
        "state": job.job_state.value,
        "started_at": job.start_time.isoformat(),
        "elapsed": job.job_format_elapsed(),
        "elapsed_seconds": round(job.job_elapsed_seconds(), 3),
        "progress_summary": job.last_progress_summary,
        "dashboard_url": job.dashboard_url,
        "progress_url": job.progress_url,
    }


def api_job_detail(job: Job) -> dict[str, object]:
    """Build the public dashboard detail payload for one job."""

    system_info = job.last_system_info
    tracking_record = job.tracking_record
    payload = api_job_summary(job)
    payload.update(
        {
            "arguments": job.custom_arguments,
            "first_error": job.first_error_message,
            "tracking_record": str(tracking_record) if tracking_record is not None else None,
            "system_info": (
                {
                    "cpu_usage_percentage": system_info.cpu_usage_percentage,
                    "cpu_cores_available": system_info.cpu_cores_available,
                    "memory_usage_percentage": system_info.memory_usage_percentage,
                    "memory_available_gb": system_info.memory_available_gb,
                }
                if system_info is not None
                else None
            ),
            "artifacts": [
                {"file_name": artifact.file_name, "url": artifact.url, "size_bytes": artifact.size_bytes}
                for artifact in job.job_artifact_list()
            ],
            "final_report": job.final_report,
        }
    )
    return payload


def api_format_sse_events(events: Iterator[str | None], stop_event: threading.Event) -> Iterator[str]:
    """Map log stream items to Server-Sent-Event frames.

    Lines become `data:` frames and flush markers become keepalive comments.
    A line carrying embedded breaks is sent as one frame with a `data:` field
    per sub-line. A final `complete` event marks the end of the log.
    """

    try:
        for item in events:
            if item is None:
                yield ": keepalive\n\n"
            else:
                yield "".join(f"data: {part}\n" for part in item.splitlines() or [""]) + "\n"
        if not stop_event.is_set():
            yield "event: complete\ndata: {}\n\n"
    finally:
        stop_event.set()


def api_create_jobs_router(settings: AppSettings, orchestrator: JobOrchestrator) -> APIRouter:
    """Create public job router keyed by external job ids.

    Args:
        settings: Runtime settings providing the submission token.
        orchestrator: Job orchestrator owning the registry.

    Returns:
        APIRouter: Router exposing job submission, dashboard and progress APIs.

    Raises:
        ValueError: Raised when dependencies are invalid.
    """

    if settings is None:
        raise ValueError("settings must not be None")
    if orchestrator is None:
        raise ValueError("orchestrator must not be None")

    router = APIRouter(prefix="/jobs", tags=["jobs"])

    def api_token_rejection(provided_token: str | None) -> JSONResponse | None:
        expected_token = settings.job_submit_token
        if expected_token is None:
            payload = {"status": "error", "message": "job submission is disabled"}
            return JSONResponse(content=payload, status_code=status.HTTP_403_FORBIDDEN)
        if provided_token is None or not hmac.compare_digest(provided_token.encode("utf-8"), expected_token.encode("utf-8")):
            payload = {"status": "error", "message": "invalid submission token"}
            return JSONResponse(content=payload, status_code=status.HTTP_403_FORBIDDEN)
        return None

    def api_job_not_found(external_id: str) -> JSONResponse:
        payload = {"status": "error", "message": f"job not found: {external_id}"}
        return JSONResponse(content=payload, status_code=status.HTTP_404_NOT_FOUND)

    @router.post("")
    def api_job_submit(
        body: JobSubmitPayload,
        x_job_submit_token: str | None = Header(default=None),
    ) -> JSONResponse:
        """Create and start one job.

        Returns:
            JSONResponse: 202 with public identifiers and URLs.

        Raises:
            RuntimeError: Raised when job start fails unexpectedly.
        """

        rejection = api_token_rejection(x_job_submit_token)
        if rejection is not None:
            return rejection

        try:
            kind = JobKind(body.kind.strip().lower())
        except ValueError:
            payload = {"status": "error", "message": f"unsupported job kind: {body.kind}"}
            return JSONResponse(content=payload, status_code=status.HTTP_400_BAD_REQUEST)

        try:
            source_record = TrackingRecordReference.parse(body.source_record) if body.source_record else None
            request = JobRequest(
                kind=kind,
                arguments=body.arguments,
                requester_login=(body.requester_login or "").strip() or None,
                source_record=source_record,
                source_link=(body.source_link or "").strip() or None,
                metadata=dict(body.metadata),
            )
            job = orchestrator.orchestrator_create_job(request)
        except (KeyError, ValueError) as error:
            payload = {"status": "error", "message": str(error)}
            return JSONResponse(content=payload, status_code=status.HTTP_400_BAD_REQUEST)

        if not orchestrator.orchestrator_try_start(job):
            payload = {"status": "error", "message": "service is shutting down"}
            return JSONResponse(content=payload, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)

        payload = {
            "status": "accepted",
            "external_id": job.external_id,
            "kind": job.kind.value,
            "dashboard_url": job.dashboard_url,
            "progress_url": job.progress_url,
        }
        return JSONResponse(content=payload, status_code=status.HTTP_202_ACCEPTED)

    @router.get("/active")
    def api_job_list_active() -> JSONResponse:
        """Return active jobs, longest running first."""

        payload = {"items": [api_job_summary(job) for job in orchestrator.orchestrator_list_active()]}
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.get("/{external_id}")
    def api_job_detail_get(external_id: str) -> JSONResponse:
        """Return dashboard detail for one job.

        Returns:
            JSONResponse: Detail payload, 404 for unknown ids.

        Raises:
            RuntimeError: This endpoint does not raise runtime errors.
        """

        job = orchestrator.orchestrator_try_get(external_id, use_public_id=True)
        if job is None:
            return api_job_not_found(external_id)
        return JSONResponse(content=api_job_detail(job), status_code=status.HTTP_200_OK)

    @router.get("/{external_id}/progress")
    def api_job_progress_stream(external_id: str):
        """Stream job log lines as Server-Sent Events until the job completes."""

        job = orchestrator.orchestrator_try_get(external_id, use_public_id=True)
        if job is None:
            return api_job_not_found(external_id)

        stop_event = threading.Event()
        return StreamingResponse(
            api_format_sse_events(job.job_stream_logs(stop_event=stop_event), stop_event),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    @router.post("/{external_id}/cancel")
    def api_job_cancel(
        external_id: str,
        body: JobCancelPayload | None = None,
        x_job_submit_token: str | None = Header(default=None),
    ) -> JSONResponse:
        """Cancel one job explicitly.

        Returns:
            JSONResponse: Cancellation outcome; 409 when already finished or cancelled.

        Raises:
            RuntimeError: This endpoint does not raise runtime errors.
        """

        rejection = api_token_rejection(x_job_submit_token)
        if rejection is not None:
            return rejection

        job = orchestrator.orchestrator_try_get(external_id, use_public_id=True)
        if job is None:
            return api_job_not_found(external_id)

        cancel_payload = body or JobCancelPayload()
        if not job.job_fail_fast(cancel_payload.reason, cancelled_by_requester=cancel_payload.cancelled_by_requester):
            payload = {"status": "error", "message": "job already completed or cancelled"}
            return JSONResponse(content=payload, status_code=status.HTTP_409_CONFLICT)

        logger.info("job cancelled via api external_id=%s", job.external_id)
        return JSONResponse(content={"status": "cancelled", "external_id": job.external_id}, status_code=status.HTTP_200_OK)

    return router
