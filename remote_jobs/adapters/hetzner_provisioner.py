"""Hetzner Cloud compute provisioner creating one server per job."""

from __future__ import annotations

import logging
from typing import Final
import uuid

import httpx

from remote_jobs.domain import WorkerHandle, WorkerResourceProfile

from .errors import ProvisioningError
from .http_json import adapter_send_json_request
from .interfaces import ComputeProvisionerPort

logger = logging.getLogger(__name__)


class HetznerComputeProvisioner(ComputeProvisionerPort):
    """Provisioner backed by the Hetzner Cloud servers API.

    Server types are chosen from the resource profile: arm64 maps to the `cax`
    family, x64 to `cx` (Intel) or `cpx` (AMD), and `fast` selects the larger
    size in each family.
    """

    _SERVER_TYPES: Final[dict[tuple[str, bool], str]] = {
        ("arm64", False): "cax31",
        ("arm64", True): "cax41",
        ("intel", False): "cx42",
        ("intel", True): "cx52",
        ("amd", False): "cpx41",
        ("amd", True): "cpx51",
    }

    def __init__(
        self,
        api_token: str,
        location: str = "hel1",
        image: str = "ubuntu-22.04",
        base_url: str = "https://api.hetzner.cloud",
        request_timeout_seconds: float = 60.0,
        http_client: httpx.Client | None = None,
    ):
        """Initialize Hetzner provisioner.

        Args:
            api_token: Hetzner Cloud API token.
            location: Datacenter location name.
            image: OS image name.
            base_url: API base URL.
            request_timeout_seconds: HTTP request timeout in seconds.
            http_client: Optional preconfigured client, mainly for tests.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when required config values are blank.
        """

        normalized_token = api_token.strip()
        if not normalized_token:
            raise ValueError("api_token must not be blank")
        if not location.strip():
            raise ValueError("location must not be blank")
        if not image.strip():
            raise ValueError("image must not be blank")
        if request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be > 0")

        self._location = location.strip().lower()
        self._image = image.strip().lower()
        self._http_client = http_client or httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=request_timeout_seconds,
        )
        self._http_client.headers["Authorization"] = f"Bearer {normalized_token}"

    def compute_source_name(self) -> str:
        """Return stable provisioner source label.

        Returns:
            str: Source identifier.

        Raises:
            RuntimeError: This implementation does not raise runtime errors.
        """

        return "hetzner"

    def compute_select_server_type(self, profile: WorkerResourceProfile) -> str:
        """Map a resource profile to a Hetzner server type name."""

        if profile.architecture == "arm64":
            family = "arm64"
        else:
            family = "intel" if profile.prefer_intel else "amd"
        return self._SERVER_TYPES[(family, profile.fast)]

    def compute_provision(
        self,
        profile: WorkerResourceProfile,
        startup_script: str,
        worker_name: str | None = None,
    ) -> WorkerHandle:
        """Create one server with `startup_script` as cloud-init user data.

        Args:
            profile: Resource hints for the worker.
            startup_script: Cloud-init user data.
            worker_name: Optional server name; a random name is used when omitted.

        Returns:
            WorkerHandle: Handle carrying the numeric server id.

        Raises:
            ConnectionError: Raised when the API is unreachable or unavailable.
            TimeoutError: Raised when the API request times out.
            ValueError: Raised when the API rejects the request.
            ProvisioningError: Raised when the response carries no server.
        """

        server_type = self.compute_select_server_type(profile)
        server_name = worker_name or f"runner-{uuid.uuid4().hex[:12]}"
        payload = adapter_send_json_request(
            self._http_client,
            "POST",
            "/v1/servers",
            context_label="hetzner create server",
            json_body={
                "name": server_name,
                "image": self._image,
                "location": self._location,
                "server_type": server_type,
                "user_data": startup_script,
            },
        )

        server = payload.get("server")
        if not isinstance(server, dict) or server.get("id") is None:
            raise ProvisioningError("hetzner create server returned no server info")

        login_hint = None
        public_ip = ((server.get("public_net") or {}).get("ipv4") or {}).get("ip")
        if public_ip:
            login_hint = f"ssh root@{public_ip}"
            root_password = payload.get("root_password")
            if root_password:
                login_hint = f"{login_hint}  {root_password}"

        logger.info("hetzner server created id=%s type=%s", server["id"], server_type)
        return WorkerHandle(provider=self.compute_source_name(), worker_id=str(server["id"]), login_hint=login_hint)

    def compute_deprovision(self, handle: WorkerHandle) -> None:
        """Delete one server.

        Args:
            handle: Handle returned by `compute_provision`.

        Returns:
            None: Server is deleted as side effect.

        Raises:
            ConnectionError: Raised when the API is unreachable or unavailable.
            ValueError: Raised when the handle belongs to another provider or the API rejects it.
        """

        if handle.provider != self.compute_source_name():
            raise ValueError(f"handle provider mismatch: {handle.provider}")

        adapter_send_json_request(
            self._http_client,
            "DELETE",
            f"/v1/servers/{handle.worker_id}",
            context_label="hetzner delete server",
        )
        logger.info("hetzner server deleted id=%s", handle.worker_id)
