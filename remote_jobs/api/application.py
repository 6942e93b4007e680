"""FastAPI application factory for the job orchestration service.

This module composes public dashboard routes and worker callback routes.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from remote_jobs.config import AppSettings
from remote_jobs.jobs import JobOrchestrator

from .routers import api_create_health_router, api_create_jobs_router, api_create_worker_router

logger = logging.getLogger(__name__)


def create_api_application(
    settings: AppSettings,
    orchestrator: JobOrchestrator,
    shutdown_grace_seconds: float = 10.0,
) -> FastAPI:
    """Create the FastAPI application instance for the service.

    Args:
        settings: Validated application settings used for runtime metadata.
        orchestrator: Job orchestrator owning the in-memory job registry.
        shutdown_grace_seconds: Time granted to active jobs when the service stops.

    Returns:
        FastAPI: Framework application instance with all routers registered.

    Raises:
        ValueError: Raised when dependencies are invalid.
    """

    if orchestrator is None:
        raise ValueError("orchestrator must not be None")

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        logger.info("service starting environment=%s", settings.environment_name)
        yield
        orchestrator.orchestrator_shutdown(grace_seconds=shutdown_grace_seconds)
        logger.info("service stopped")

    application = FastAPI(title="Remote Job Orchestrator", lifespan=lifespan)

    @application.get("/", tags=["foundation"])
    def foundation_index() -> dict[str, str]:
        """Return a minimal service banner.

        Returns:
            dict[str, str]: Service name, status and environment.

        Raises:
            RuntimeError: Raised if route handler cannot produce a response.
        """

        return {
            "service": "remote-job-orchestrator",
            "status": "ready",
            "environment": settings.environment_name,
        }

    application.include_router(api_create_health_router(orchestrator=orchestrator))
    application.include_router(api_create_worker_router(settings=settings, orchestrator=orchestrator))
    application.include_router(api_create_jobs_router(settings=settings, orchestrator=orchestrator))

    return application
