"""Tests for GitHub issue reporter request mapping."""

from __future__ import annotations

import json

import httpx
import pytest

from remote_jobs.adapters import AdapterRequestError, GitHubIssueReporter
from remote_jobs.domain import TrackingRecordReference


def _build_reporter(handler) -> tuple[GitHubIssueReporter, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def _recording_handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    client = httpx.Client(base_url="https://github.test", transport=httpx.MockTransport(_recording_handler))
    reporter = GitHubIssueReporter(
        token="ghp_test",
        repository_owner="tracker",
        repository_name="jobs",
        http_client=client,
    )
    return reporter, requests


def test_adapters_github_create_tracking_record_returns_reference() -> None:
    """Create an issue in the tracking repository and return its reference.

    Returns:
        None: Assertions validate issue creation mapping.

    Raises:
        AssertionError: Raised when request or reference mapping changes.
    """

    reporter, requests = _build_reporter(lambda _: httpx.Response(201, json={"number": 42}))

    record = reporter.reporter_create_tracking_record("[Fuzzing] For alice", "Job is in progress")

    assert record == TrackingRecordReference(owner="tracker", repository="jobs", number=42)
    assert str(record) == "tracker/jobs#42"
    assert requests[0].method == "POST"
    assert requests[0].url.path == "/repos/tracker/jobs/issues"
    assert requests[0].headers["Authorization"] == "Bearer ghp_test"
    assert requests[0].headers["Accept"] == "application/vnd.github+json"
    assert json.loads(requests[0].content) == {"title": "[Fuzzing] For alice", "body": "Job is in progress"}


def test_adapters_github_create_tracking_record_requires_issue_number() -> None:
    reporter, _ = _build_reporter(lambda _: httpx.Response(201, json={"id": 1}))

    with pytest.raises(AdapterRequestError, match="no issue number"):
        reporter.reporter_create_tracking_record("title", "body")


def test_adapters_github_update_and_comment_target_given_record() -> None:
    """Route updates and comments to the referenced repository and issue.

    Returns:
        None: Assertions validate request paths and bodies.

    Raises:
        AssertionError: Raised when records are addressed incorrectly.
    """

    reporter, requests = _build_reporter(lambda _: httpx.Response(200, json={}))
    source_record = TrackingRecordReference(owner="org", repository="runtime", number=7)

    reporter.reporter_update_tracking_record(source_record, "final")
    reporter.reporter_post_comment(source_record, "x" * 70_000)

    assert requests[0].method == "PATCH"
    assert requests[0].url.path == "/repos/org/runtime/issues/7"
    assert json.loads(requests[0].content) == {"body": "final"}
    assert requests[1].method == "POST"
    assert requests[1].url.path == "/repos/org/runtime/issues/7/comments"
    comment_body = json.loads(requests[1].content)["body"]
    assert len(comment_body) == GitHubIssueReporter.COMMENT_LENGTH_LIMIT
    assert comment_body.endswith(" ...")


def test_adapters_github_rejected_request_raises_value_error() -> None:
    reporter, _ = _build_reporter(lambda _: httpx.Response(404, text="Not Found"))

    with pytest.raises(ValueError, match="status=404"):
        reporter.reporter_post_comment(TrackingRecordReference(owner="o", repository="r", number=1), "hi")


def test_adapters_github_validates_constructor_arguments() -> None:
    with pytest.raises(ValueError, match="token"):
        GitHubIssueReporter(token=" ", repository_owner="o", repository_name="r")
    with pytest.raises(ValueError, match="repository_name"):
        GitHubIssueReporter(token="t", repository_owner="o", repository_name=" ")
