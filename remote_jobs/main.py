"""Main module entrypoint for local runtime execution.

This module validates startup configuration and launches the FastAPI service
or runs one job in the foreground.
"""

import argparse

import uvicorn

from remote_jobs.bootstrap import bootstrap_create_application, bootstrap_create_orchestrator
from remote_jobs.config import config_configure_logging, config_load_settings
from remote_jobs.jobs import JobKind, JobRequest


def main() -> None:
    """Run selected runtime command with validated startup configuration.

    Returns:
        None: This function does not return a runtime value.

    Raises:
        SettingsLoadError: Raised when configuration validation fails.
        SystemExit: Raised with status 1 when a foreground job recorded an error.
    """

    argument_parser = argparse.ArgumentParser(description="Remote job orchestrator runtime entrypoint")
    argument_parser.add_argument(
        "command",
        nargs="?",
        default="api",
        choices=("api", "run-job"),
        help="Runtime command: `api` starts server, `run-job` runs one job in the foreground",
        type=str,
    )
    argument_parser.add_argument(
        "--kind",
        dest="kind",
        default=JobKind.IN_MEMORY.value,
        choices=[kind.value for kind in JobKind],
        help="Job kind for `run-job`",
        type=str,
    )
    argument_parser.add_argument(
        "--arguments",
        dest="arguments",
        default="",
        help="Argument line forwarded to the job for `run-job`",
        type=str,
    )
    parsed_arguments = argument_parser.parse_args()

    settings = config_load_settings()
    config_configure_logging(settings.log_level)

    if parsed_arguments.command == "run-job":
        orchestrator = bootstrap_create_orchestrator(settings)
        job = orchestrator.orchestrator_create_job(
            JobRequest(kind=JobKind(parsed_arguments.kind), arguments=parsed_arguments.arguments)
        )
        orchestrator.orchestrator_start(job)
        try:
            while not job.job_wait_until_completed(timeout=1.0):
                pass
        except KeyboardInterrupt:
            job.job_fail_fast("Interrupted from the command line", cancelled_by_requester=True)
            job.job_wait_until_completed()
        print(job.final_report or "")
        if job.first_error_message is not None:
            raise SystemExit(1)
        return

    application = bootstrap_create_application(settings)
    uvicorn.run(
        application,
        host=settings.application_host,
        port=settings.application_port,
    )


if __name__ == "__main__":
    main()
