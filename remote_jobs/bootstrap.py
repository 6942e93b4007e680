"""Application bootstrap wiring for startup validation and dependency assembly."""

import logging

from fastapi import FastAPI

from remote_jobs.adapters import GitHubIssueReporter, HetznerComputeProvisioner
from remote_jobs.api import create_api_application
from remote_jobs.artifacts import BlobStoragePort, InMemoryBlobStorage, S3BlobStorage
from remote_jobs.config import AppSettings, config_load_settings
from remote_jobs.jobs import JobConfig, JobDependencies, JobOrchestrator

logger = logging.getLogger(__name__)


def bootstrap_create_job_config(settings: AppSettings) -> JobConfig:
    """Map validated settings to per-job limits and flags.

    Args:
        settings: Validated runtime settings.

    Returns:
        JobConfig: Job configuration.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return JobConfig(
        max_duration_seconds=settings.job_max_duration_seconds,
        idle_timeout_seconds=settings.job_idle_timeout_seconds,
        artifact_size_limit_bytes=settings.job_artifact_size_limit_bytes,
        artifact_count_limit=settings.job_artifact_count_limit,
        log_capacity_lines=settings.job_log_capacity_lines,
        delete_worker_after_completion=settings.job_delete_worker_after_completion,
        mention_requester=settings.job_mention_requester,
        post_error_comments=settings.job_post_error_comments,
        public_base_url=settings.public_base_url,
        worker_runner_repository_url=settings.worker_runner_repository_url,
        worker_push_token=settings.github_token,
    )


def bootstrap_create_dependencies(settings: AppSettings) -> JobDependencies:
    """Build external collaborators for configured backends only.

    Artifacts fall back to process-local storage without an S3 bucket; compute
    and reporting stay disabled without their tokens.

    Args:
        settings: Validated runtime settings.

    Returns:
        JobDependencies: Wired collaborators.

    Raises:
        ValueError: Raised when adapter configuration is invalid.
    """

    blob_storage: BlobStoragePort
    if settings.s3_bucket is not None:
        blob_storage = S3BlobStorage(
            bucket=settings.s3_bucket,
            region=settings.aws_region,
            url_ttl_seconds=settings.artifact_url_ttl_seconds,
        )
    else:
        logger.warning("no artifact bucket configured; artifacts are kept in memory")
        blob_storage = InMemoryBlobStorage()

    provisioner = None
    if settings.hetzner_api_token is not None:
        provisioner = HetznerComputeProvisioner(
            api_token=settings.hetzner_api_token,
            location=settings.hetzner_location,
            image=settings.hetzner_image,
        )

    reporter = None
    if settings.github_token is not None:
        reporter = GitHubIssueReporter(
            token=settings.github_token,
            repository_owner=settings.tracking_repository_owner,
            repository_name=settings.tracking_repository_name,
        )

    return JobDependencies(blob_storage=blob_storage, provisioner=provisioner, reporter=reporter)


def bootstrap_create_orchestrator(settings: AppSettings | None = None) -> JobOrchestrator:
    """Build the job orchestrator for HTTP and command-line surfaces.

    Returns:
        JobOrchestrator: Fully wired orchestrator instance.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
    """

    resolved_settings = settings or config_load_settings()
    return JobOrchestrator(
        dependencies=bootstrap_create_dependencies(resolved_settings),
        config=bootstrap_create_job_config(resolved_settings),
        retention_seconds=resolved_settings.job_retention_seconds,
    )


def bootstrap_create_application(settings: AppSettings | None = None) -> FastAPI:
    """Assemble the runtime application after validating startup configuration.

    Returns:
        FastAPI: Fully initialized FastAPI application instance.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
    """

    resolved_settings = settings or config_load_settings()
    return create_api_application(
        settings=resolved_settings,
        orchestrator=bootstrap_create_orchestrator(resolved_settings),
    )
