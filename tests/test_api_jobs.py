"""Tests for public job submission, dashboard and progress routes."""

from __future__ import annotations

import threading

from fastapi.testclient import TestClient

from remote_jobs.api.application import create_api_application
from remote_jobs.api.routers.jobs import api_format_sse_events
from remote_jobs.artifacts import InMemoryBlobStorage
from remote_jobs.config import AppSettings
from remote_jobs.jobs import JobConfig, JobDependencies, JobOrchestrator

_TOKEN_HEADERS = {"X-Job-Submit-Token": "secret"}


def _build_client(job_submit_token: str | None = "secret") -> tuple[TestClient, JobOrchestrator]:
    """Create a test client over an orchestrator with in-memory collaborators.

    Args:
        job_submit_token: Submission token configured on the service.

    Returns:
        tuple[TestClient, JobOrchestrator]: Client and orchestrator under test.

    Raises:
        ValueError: Raised by AppSettings when values are invalid.
    """

    settings = AppSettings(
        environment_name="test",
        public_base_url="https://jobs.example.test/",
        job_submit_token=job_submit_token,
    )
    orchestrator = JobOrchestrator(
        dependencies=JobDependencies(blob_storage=InMemoryBlobStorage()),
        config=JobConfig(tick_seconds=0.05, public_base_url=settings.public_base_url),
    )
    return TestClient(create_api_application(settings, orchestrator)), orchestrator


def test_api_jobs_submit_starts_job_and_returns_public_links() -> None:
    """Accept a valid submission and expose only public identifiers.

    Returns:
        None: Assertions validate submit payload and registry state.

    Raises:
        AssertionError: Raised when the job is not started or ids leak.
    """

    client, orchestrator = _build_client()

    try:
        response = client.post("/jobs", json={"kind": "in_memory", "arguments": "-fast"}, headers=_TOKEN_HEADERS)

        assert response.status_code == 202
        payload = response.json()
        assert payload["status"] == "accepted"
        assert payload["kind"] == "in_memory"
        assert payload["dashboard_url"] == f"https://jobs.example.test/jobs/{payload['external_id']}"
        assert payload["progress_url"] == f"https://jobs.example.test/jobs/{payload['external_id']}/progress"
        job = orchestrator.orchestrator_get(payload["external_id"], use_public_id=True)
        assert job.job_id not in response.text
        assert job.custom_arguments == "-fast"
    finally:
        orchestrator.orchestrator_shutdown(grace_seconds=5.0)


def test_api_jobs_submit_rejects_missing_or_wrong_token() -> None:
    client, orchestrator = _build_client()

    missing_token_response = client.post("/jobs", json={"kind": "in_memory"})
    wrong_token_response = client.post("/jobs", json={"kind": "in_memory"}, headers={"X-Job-Submit-Token": "nope"})

    assert missing_token_response.status_code == 403
    assert wrong_token_response.status_code == 403
    assert wrong_token_response.json() == {"status": "error", "message": "invalid submission token"}
    assert orchestrator.orchestrator_list_active() == []


def test_api_jobs_submit_is_disabled_without_configured_token() -> None:
    client, _ = _build_client(job_submit_token=None)

    response = client.post("/jobs", json={"kind": "in_memory"}, headers=_TOKEN_HEADERS)

    assert response.status_code == 403
    assert response.json()["message"] == "job submission is disabled"


def test_api_jobs_submit_rejects_invalid_requests() -> None:
    """Return HTTP 400 for unknown kinds, bad references and reserved metadata.

    Returns:
        None: Assertions validate request validation.

    Raises:
        AssertionError: Raised when invalid requests are accepted.
    """

    client, orchestrator = _build_client()

    unknown_kind_response = client.post("/jobs", json={"kind": "mystery"}, headers=_TOKEN_HEADERS)
    bad_record_response = client.post(
        "/jobs",
        json={"kind": "fuzz", "source_record": "not-a-reference"},
        headers=_TOKEN_HEADERS,
    )
    reserved_metadata_response = client.post(
        "/jobs",
        json={"kind": "in_memory", "metadata": {"JobId": "spoofed"}},
        headers=_TOKEN_HEADERS,
    )

    assert unknown_kind_response.status_code == 400
    assert unknown_kind_response.json()["message"] == "unsupported job kind: mystery"
    assert bad_record_response.status_code == 400
    assert reserved_metadata_response.status_code == 400
    assert orchestrator.orchestrator_list_active() == []


def test_api_jobs_submit_returns_service_unavailable_during_shutdown() -> None:
    client, orchestrator = _build_client()
    orchestrator.orchestrator_shutdown(grace_seconds=1.0)

    response = client.post("/jobs", json={"kind": "in_memory"}, headers=_TOKEN_HEADERS)

    assert response.status_code == 503


class _ShutdownBeforeStartOrchestrator(JobOrchestrator):
    """Orchestrator whose shutdown begins after job creation but before registration."""

    def orchestrator_try_start(self, job) -> bool:
        self.orchestrator_shutdown(grace_seconds=0.0)
        return super().orchestrator_try_start(job)


def test_api_jobs_submit_returns_service_unavailable_when_shutdown_wins_registration() -> None:
    """Answer 503 instead of 202 when shutdown starts while a submission is in flight.

    Returns:
        None: Assertions validate the response and registry state.

    Raises:
        AssertionError: Raised when an unregistered job is reported as accepted.
    """

    settings = AppSettings(environment_name="test", job_submit_token="secret")
    orchestrator = _ShutdownBeforeStartOrchestrator(dependencies=JobDependencies(blob_storage=InMemoryBlobStorage()))
    client = TestClient(create_api_application(settings, orchestrator))

    response = client.post("/jobs", json={"kind": "in_memory"}, headers=_TOKEN_HEADERS)

    assert response.status_code == 503
    assert response.json() == {"status": "error", "message": "service is shutting down"}
    assert orchestrator.orchestrator_list_active() == []


def test_api_jobs_detail_and_active_listing() -> None:
    """Expose running jobs through detail and active listing routes.

    Returns:
        None: Assertions validate dashboard payloads.

    Raises:
        AssertionError: Raised when dashboard payloads are incomplete.
    """

    client, orchestrator = _build_client()

    try:
        external_id = client.post("/jobs", json={"kind": "in_memory"}, headers=_TOKEN_HEADERS).json()["external_id"]

        detail_response = client.get(f"/jobs/{external_id}")
        active_response = client.get("/jobs/active")

        assert detail_response.status_code == 200
        detail = detail_response.json()
        assert detail["external_id"] == external_id
        assert detail["kind"] == "in_memory"
        assert detail["title"].startswith("[Fake]")
        assert detail["state"] in {"not_started", "running"}
        assert detail["first_error"] is None
        assert detail["artifacts"] == []
        assert "job_id" not in detail
        assert active_response.status_code == 200
        assert [item["external_id"] for item in active_response.json()["items"]] == [external_id]
    finally:
        orchestrator.orchestrator_shutdown(grace_seconds=5.0)


def test_api_jobs_unknown_or_internal_ids_return_not_found() -> None:
    client, orchestrator = _build_client()

    try:
        external_id = client.post("/jobs", json={"kind": "in_memory"}, headers=_TOKEN_HEADERS).json()["external_id"]
        job = orchestrator.orchestrator_get(external_id, use_public_id=True)

        assert client.get("/jobs/missing").status_code == 404
        assert client.get(f"/jobs/{job.job_id}").status_code == 404
        assert client.get("/jobs/missing/progress").status_code == 404
        assert client.post("/jobs/missing/cancel", headers=_TOKEN_HEADERS).status_code == 404
    finally:
        orchestrator.orchestrator_shutdown(grace_seconds=5.0)


def test_api_jobs_cancel_fails_fast_once() -> None:
    """Cancel a running job and reject repeated cancellation with 409.

    Returns:
        None: Assertions validate cancellation flow.

    Raises:
        AssertionError: Raised when cancellation is not idempotent.
    """

    client, orchestrator = _build_client()
    external_id = client.post("/jobs", json={"kind": "in_memory"}, headers=_TOKEN_HEADERS).json()["external_id"]
    job = orchestrator.orchestrator_get(external_id, use_public_id=True)

    unauthorized_response = client.post(f"/jobs/{external_id}/cancel")
    cancel_response = client.post(
        f"/jobs/{external_id}/cancel",
        json={"reason": "Stopped by operator"},
        headers=_TOKEN_HEADERS,
    )
    repeat_response = client.post(f"/jobs/{external_id}/cancel", headers=_TOKEN_HEADERS)

    assert unauthorized_response.status_code == 403
    assert cancel_response.status_code == 200
    assert cancel_response.json() == {"status": "cancelled", "external_id": external_id}
    assert repeat_response.status_code == 409
    assert job.job_wait_until_completed(timeout=5.0)
    assert job.first_error_message == "!!! FailFast: Stopped by operator"
    assert job.mention_requester is False
    assert client.get(f"/jobs/{external_id}").json()["state"] == "completed"


def test_api_jobs_progress_streams_logs_until_completion() -> None:
    """Stream retained log lines as SSE frames followed by a completion event.

    Returns:
        None: Assertions validate SSE framing.

    Raises:
        AssertionError: Raised when frames are missing or malformed.
    """

    client, orchestrator = _build_client()
    external_id = client.post("/jobs", json={"kind": "in_memory"}, headers=_TOKEN_HEADERS).json()["external_id"]
    job = orchestrator.orchestrator_get(external_id, use_public_id=True)
    job.job_notify_completion()
    assert job.job_wait_until_completed(timeout=5.0)

    response = client.get(f"/jobs/{external_id}/progress")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    frames = [frame for frame in response.text.split("\n\n") if frame]
    data_frames = [frame for frame in frames if frame.startswith("data: ")]
    assert len(data_frames) == len(job.job_render_logs().splitlines())
    assert frames[-1] == "event: complete\ndata: {}"


def test_api_jobs_sse_frames_keep_embedded_breaks_inside_data_fields() -> None:
    """Prevent log text from injecting SSE fields or terminating the stream.

    Returns:
        None: Assertions validate frame boundaries.

    Raises:
        AssertionError: Raised when a line break escapes its `data:` field.
    """

    output = "".join(
        api_format_sse_events(iter(["[00:00:01] step\nevent: complete", "a\r\nb", "", None]), threading.Event())
    )
    frames = output.split("\n\n")

    assert frames[0] == "data: [00:00:01] step\ndata: event: complete"
    assert frames[1] == "data: a\ndata: b"
    assert frames[2] == "data: "
    assert frames[3] == ": keepalive"
    assert [line for line in output.split("\n") if line.startswith("event:")] == ["event: complete"]
    assert output.endswith("event: complete\ndata: {}\n\n")
