"""Worker callback router keyed by internal job ids."""

from __future__ import annotations

import logging
import tempfile

from fastapi import APIRouter, Body, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from remote_jobs.config import AppSettings
from remote_jobs.domain import SystemHardwareInfo, domain_format_rough_size, domain_truncate_with_ellipsis
from remote_jobs.jobs import Job, JobOrchestrator

logger = logging.getLogger(__name__)

PROGRESS_SUMMARY_MAX_LENGTH = 100
_ARTIFACT_SPOOL_MAX_MEMORY_BYTES = 1024 * 1024


class SystemInfoPayload(BaseModel):
    """Hardware snapshot reported by the worker."""

    cpu_usage: float = Field(ge=0)
    cpu_cores_available: float = Field(ge=0)
    memory_usage_gb: float = Field(ge=0)
    memory_available_gb: float = Field(ge=0)


def api_create_worker_router(settings: AppSettings, orchestrator: JobOrchestrator) -> APIRouter:
    """Create worker callback router.

    Every route resolves the job by internal id only. Completed jobs answer
    400 with `X-Job-Completed: true` so workers can stop early.

    Args:
        settings: Runtime settings providing the log line length limit.
        orchestrator: Job orchestrator owning the registry.

    Returns:
        APIRouter: Router exposing `/jobs/worker/*` callbacks.

    Raises:
        ValueError: Raised when dependencies are invalid.
    """

    if settings is None:
        raise ValueError("settings must not be None")
    if orchestrator is None:
        raise ValueError("orchestrator must not be None")

    router = APIRouter(prefix="/jobs/worker", tags=["worker"])
    max_line_length = settings.job_max_log_line_length

    def api_resolve_job(job_id: str) -> Job | JSONResponse:
        job = orchestrator.orchestrator_try_get(job_id, use_public_id=False)
        if job is None:
            payload = {"status": "error", "message": "job not found"}
            return JSONResponse(content=payload, status_code=status.HTTP_404_NOT_FOUND)
        if job.is_completed:
            payload = {"status": "error", "message": "job already completed"}
            return JSONResponse(
                content=payload,
                status_code=status.HTTP_400_BAD_REQUEST,
                headers={"X-Job-Completed": "true"},
            )
        return job

    @router.get("/metadata")
    def api_worker_metadata(job_id: str = Query(...)) -> JSONResponse:
        """Return job metadata and record the first worker contact."""

        job = api_resolve_job(job_id)
        if isinstance(job, JSONResponse):
            return job

        job.job_record_worker_contact()
        return JSONResponse(content=job.metadata.metadata_snapshot(), status_code=status.HTTP_200_OK)

    @router.post("/logs")
    def api_worker_logs(job_id: str = Query(...), lines: list[str] | None = Body(default=None)) -> JSONResponse:
        """Append worker log lines.

        Entries containing line breaks are split so every stored entry is one line.

        Returns:
            JSONResponse: Accepted line count; 400 when no line list was sent.

        Raises:
            RuntimeError: This endpoint does not raise runtime errors.
        """

        job = api_resolve_job(job_id)
        if isinstance(job, JSONResponse):
            return job
        if lines is None:
            payload = {"status": "error", "message": "lines must not be null"}
            return JSONResponse(content=payload, status_code=status.HTTP_400_BAD_REQUEST)

        normalized_lines = [
            part if len(part) <= max_line_length else domain_truncate_with_ellipsis(part, max_line_length)
            for line in lines
            for part in (line.splitlines() or [""])
        ]
        job.job_receive_log_lines(normalized_lines)
        return JSONResponse(content={"status": "ok", "accepted": len(normalized_lines)}, status_code=status.HTTP_200_OK)

    @router.post("/system-info")
    def api_worker_system_info(
        job_id: str = Query(...),
        progress_summary: str | None = Query(default=None),
        body: SystemInfoPayload | None = None,
    ) -> JSONResponse:
        """Record the latest hardware snapshot and progress summary."""

        job = api_resolve_job(job_id)
        if isinstance(job, JSONResponse):
            return job

        system_info = None
        if body is not None:
            system_info = SystemHardwareInfo(
                cpu_usage=body.cpu_usage,
                cpu_cores_available=body.cpu_cores_available,
                memory_usage_gb=body.memory_usage_gb,
                memory_available_gb=body.memory_available_gb,
            )
        summary = None
        if progress_summary is not None and progress_summary.strip():
            summary = domain_truncate_with_ellipsis(progress_summary.strip(), PROGRESS_SUMMARY_MAX_LENGTH)

        job.job_update_system_info(system_info, summary)
        return JSONResponse(content={"status": "ok"}, status_code=status.HTTP_200_OK)

    @router.post("/complete")
    def api_worker_complete(job_id: str = Query(...)) -> JSONResponse:
        """Signal that the worker finished its work."""

        job = api_resolve_job(job_id)
        if isinstance(job, JSONResponse):
            return job

        first_completion = job.job_notify_completion()
        return JSONResponse(
            content={"status": "ok", "first_completion": first_completion},
            status_code=status.HTTP_200_OK,
        )

    @router.post("/artifact")
    async def api_worker_artifact(
        request: Request,
        job_id: str = Query(...),
        file_name: str = Query(...),
    ) -> JSONResponse:
        """Accept one artifact body.

        The body is spooled to a temporary file, which rolls over to disk past
        1 MiB. Spool writes and the job read both run off the event loop.

        Returns:
            JSONResponse: Stored artifact record, or a skipped status.

        Raises:
            OSError: Raised when the temporary spool file cannot be written.
        """

        job = api_resolve_job(job_id)
        if isinstance(job, JSONResponse):
            return job

        with tempfile.SpooledTemporaryFile(max_size=_ARTIFACT_SPOOL_MAX_MEMORY_BYTES) as spool:
            async for chunk in request.stream():
                await run_in_threadpool(spool.write, chunk)
            spool.seek(0)
            record = await run_in_threadpool(job.job_receive_artifact, file_name, spool)

        if record is None:
            return JSONResponse(content={"status": "skipped", "file_name": file_name}, status_code=status.HTTP_200_OK)

        logger.debug(
            "artifact stored external_id=%s file_name=%s size=%s",
            job.external_id,
            record.file_name,
            domain_format_rough_size(record.size_bytes),
        )
        payload = {"status": "ok", "file_name": record.file_name, "url": record.url, "size_bytes": record.size_bytes}
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    return router
