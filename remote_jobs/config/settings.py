"""Typed runtime settings with dotenv support and startup validation."""

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SettingsLoadError(RuntimeError):
    """Raised when runtime settings cannot be loaded or validated."""


class AppSettings(BaseSettings):
    """Application settings for API runtime and job orchestration.

    Environment variable names map directly to field names in uppercase.
    Example: `job_idle_timeout_seconds` reads from `JOB_IDLE_TIMEOUT_SECONDS`.

    Attributes:
        environment_name: Runtime environment label.
        application_host: Host interface for web server binding.
        application_port: Web server port.
        log_level: Root log level for the operational logger.
        public_base_url: Externally reachable base URL used in progress links.
        job_max_duration_seconds: Hard lifetime ceiling for one job.
        job_idle_timeout_seconds: Cancel a job after this long without worker activity.
        job_artifact_size_limit_bytes: Total artifact size cap per job.
        job_artifact_count_limit: Maximum accepted artifact submissions per job.
        job_retention_seconds: Registry retention window before eviction.
        job_log_capacity_lines: Rolling log capacity per job.
        job_max_log_line_length: Longer worker log lines are truncated.
        job_delete_worker_after_completion: Tear down workers when jobs finish.
        job_mention_requester: Mention the requester on the tracking record at completion.
        job_post_error_comments: Mirror the first worker error as a comment on the source record.
        job_submit_token: Shared secret for job submission and cancellation endpoints.
        worker_runner_repository_url: Repository cloned by the worker startup script.
        github_token: Token used by the issue tracking reporter.
        tracking_repository_owner: Owner of the repository hosting tracking issues.
        tracking_repository_name: Repository hosting tracking issues.
        hetzner_api_token: Token for the Hetzner Cloud compute provisioner.
        hetzner_location: Hetzner datacenter location.
        hetzner_image: Hetzner server image name.
        s3_bucket: Artifact bucket name.
        aws_region: Artifact bucket region.
        artifact_url_ttl_seconds: Presigned artifact URL lifetime.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment_name: str = Field(default="development")
    application_host: str = Field(default="0.0.0.0")
    application_port: int = Field(default=8000, ge=1, le=65535)
    log_level: str = Field(default="INFO")
    public_base_url: str = Field(default="http://localhost:8000")

    job_max_duration_seconds: float = Field(default=5 * 60 * 60, gt=0)
    job_idle_timeout_seconds: float = Field(default=5 * 60, gt=0)
    job_artifact_size_limit_bytes: int = Field(default=16 * 1024 * 1024 * 1024, ge=1)
    job_artifact_count_limit: int = Field(default=128, ge=1)
    job_retention_seconds: float = Field(default=7 * 24 * 60 * 60, gt=0)
    job_log_capacity_lines: int = Field(default=50_000, ge=1)
    job_max_log_line_length: int = Field(default=10_000, ge=16)
    job_delete_worker_after_completion: bool = Field(default=True)
    job_mention_requester: bool = Field(default=True)
    job_post_error_comments: bool = Field(default=True)
    job_submit_token: str | None = Field(default=None)

    worker_runner_repository_url: str = Field(default="https://github.com/remote-jobs/runner")

    github_token: str | None = Field(default=None)
    tracking_repository_owner: str = Field(default="remote-jobs")
    tracking_repository_name: str = Field(default="job-tracking")

    hetzner_api_token: str | None = Field(default=None)
    hetzner_location: str = Field(default="hel1")
    hetzner_image: str = Field(default="ubuntu-22.04")

    s3_bucket: str | None = Field(default=None)
    aws_region: str | None = Field(default=None)
    artifact_url_ttl_seconds: int = Field(default=7 * 24 * 60 * 60, ge=1, le=7 * 24 * 60 * 60)

    @field_validator(
        "public_base_url",
        "worker_runner_repository_url",
        "tracking_repository_owner",
        "tracking_repository_name",
        "hetzner_location",
        "hetzner_image",
    )
    @classmethod
    def _validate_non_empty_string(cls, value: str) -> str:
        stripped_value = value.strip()
        if not stripped_value:
            raise ValueError("value must not be blank")
        return stripped_value

    @field_validator("public_base_url")
    @classmethod
    def _validate_public_base_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("public_base_url must start with http:// or https://")
        return value.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        normalized_value = value.strip().upper()
        if normalized_value not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unsupported log_level={value}")
        return normalized_value

    @field_validator("job_submit_token", "github_token", "hetzner_api_token", "s3_bucket", "aws_region")
    @classmethod
    def _validate_optional_secret(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped_value = value.strip()
        return stripped_value or None

    @field_validator("job_idle_timeout_seconds")
    @classmethod
    def _validate_idle_timeout_bounds(cls, value: float, info) -> float:
        max_duration_seconds = float(info.data.get("job_max_duration_seconds", 5 * 60 * 60))
        if value > max_duration_seconds:
            raise ValueError("job_idle_timeout_seconds must be less than or equal to job_max_duration_seconds")
        return value


def config_load_settings() -> AppSettings:
    """Load and validate runtime settings from environment and dotenv.

    Returns:
        AppSettings: Validated runtime settings object.

    Raises:
        SettingsLoadError: Raised when required settings are missing or invalid.
    """

    try:
        return AppSettings()
    except ValidationError as error:
        raise SettingsLoadError(
            f"Startup configuration validation failed. Update .env or environment variables. Details: {error}"
        ) from error
