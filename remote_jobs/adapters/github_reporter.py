"""GitHub issues based result reporter."""

from __future__ import annotations

import logging
from typing import Final

import httpx

from remote_jobs.domain import TrackingRecordReference, domain_truncate_with_ellipsis

from .errors import AdapterRequestError
from .http_json import adapter_send_json_request
from .interfaces import ResultReporterPort

logger = logging.getLogger(__name__)


class GitHubIssueReporter(ResultReporterPort):
    """Reporter publishing tracking records as issues in one repository.

    Comments may target any `owner/repo#number` reference, which allows
    mirroring errors onto the pull request that triggered a job.
    """

    COMMENT_LENGTH_LIMIT: Final[int] = 65_000

    def __init__(
        self,
        token: str,
        repository_owner: str,
        repository_name: str,
        base_url: str = "https://api.github.com",
        request_timeout_seconds: float = 30.0,
        http_client: httpx.Client | None = None,
    ):
        """Initialize GitHub issue reporter.

        Args:
            token: GitHub token with issue write access.
            repository_owner: Owner of the tracking repository.
            repository_name: Name of the tracking repository.
            base_url: GitHub REST API base URL.
            request_timeout_seconds: HTTP request timeout in seconds.
            http_client: Optional preconfigured client, mainly for tests.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when required config values are blank.
        """

        normalized_token = token.strip()
        if not normalized_token:
            raise ValueError("token must not be blank")
        if not repository_owner.strip():
            raise ValueError("repository_owner must not be blank")
        if not repository_name.strip():
            raise ValueError("repository_name must not be blank")
        if request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be > 0")

        self._repository_owner = repository_owner.strip()
        self._repository_name = repository_name.strip()
        self._http_client = http_client or httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=request_timeout_seconds,
        )
        self._http_client.headers.update(
            {
                "Authorization": f"Bearer {normalized_token}",
                "Accept": "application/vnd.github+json",
                "User-Agent": "remote-job-orchestrator",
            }
        )

    def reporter_create_tracking_record(self, title: str, body: str) -> TrackingRecordReference:
        payload = adapter_send_json_request(
            self._http_client,
            "POST",
            f"/repos/{self._repository_owner}/{self._repository_name}/issues",
            context_label="github create issue",
            json_body={"title": title, "body": _reporter_truncate_body(body)},
        )

        issue_number = payload.get("number")
        if not isinstance(issue_number, int):
            raise AdapterRequestError("github create issue returned no issue number")

        record = TrackingRecordReference(
            owner=self._repository_owner,
            repository=self._repository_name,
            number=issue_number,
        )
        logger.info("tracking record created record=%s", record)
        return record

    def reporter_update_tracking_record(self, record: TrackingRecordReference, body: str) -> None:
        adapter_send_json_request(
            self._http_client,
            "PATCH",
            f"/repos/{record.owner}/{record.repository}/issues/{record.number}",
            context_label="github update issue",
            json_body={"body": _reporter_truncate_body(body)},
        )

    def reporter_post_comment(self, record: TrackingRecordReference, text: str) -> None:
        adapter_send_json_request(
            self._http_client,
            "POST",
            f"/repos/{record.owner}/{record.repository}/issues/{record.number}/comments",
            context_label="github create comment",
            json_body={"body": _reporter_truncate_body(text)},
        )


def _reporter_truncate_body(body: str) -> str:
    return domain_truncate_with_ellipsis(body, GitHubIssueReporter.COMMENT_LENGTH_LIMIT)
