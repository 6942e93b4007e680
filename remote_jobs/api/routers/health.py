"""Health endpoint router composition for service and backend status."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from remote_jobs.jobs import JobOrchestrator


def api_create_health_router(orchestrator: JobOrchestrator) -> APIRouter:
    """Create health-check router with job count and configured backends.

    Args:
        orchestrator: Job orchestrator inspected for active jobs and collaborators.

    Returns:
        APIRouter: Router exposing `/health` endpoint.

    Raises:
        ValueError: Raised when orchestrator is invalid.
    """

    if orchestrator is None:
        raise ValueError("orchestrator must not be None")

    router = APIRouter(tags=["health"])

    @router.get("/health")
    def api_health_status() -> JSONResponse:
        """Return service health state.

        Returns:
            JSONResponse: Health payload; 503 while the service is shutting down.

        Raises:
            RuntimeError: This endpoint does not raise runtime errors.
        """

        dependencies = orchestrator.dependencies
        provisioner = dependencies.provisioner
        payload = {
            "status": "ok",
            "app": "up",
            "active_jobs": len(orchestrator.orchestrator_list_active()),
            "compute": provisioner.compute_source_name() if provisioner is not None else "disabled",
            "reporter": "enabled" if dependencies.reporter is not None else "disabled",
            "artifacts": type(dependencies.blob_storage).__name__,
        }
        if orchestrator.is_shutting_down:
            payload["status"] = "degraded"
            payload["app"] = "shutting_down"
            return JSONResponse(content=payload, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    return router
