"""Adapter package for external compute and reporting integrations."""

from .errors import (
    AdapterConnectionError,
    AdapterError,
    AdapterRequestError,
    AdapterTimeoutError,
    ProvisioningError,
)
from .github_reporter import GitHubIssueReporter
from .hetzner_provisioner import HetznerComputeProvisioner
from .interfaces import ComputeProvisionerPort, ResultReporterPort

__all__ = [
    "AdapterConnectionError",
    "AdapterError",
    "AdapterRequestError",
    "AdapterTimeoutError",
    "ComputeProvisionerPort",
    "GitHubIssueReporter",
    "HetznerComputeProvisioner",
    "ProvisioningError",
    "ResultReporterPort",
]
