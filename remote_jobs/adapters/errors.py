"""Project-native typed exceptions for external collaborator failures."""

from __future__ import annotations


class AdapterError(Exception):
    """Base exception for adapter-level failures.

    Attributes:
        error_code: Optional upstream error code or HTTP status.
    """

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.error_code = error_code


class AdapterConnectionError(AdapterError, ConnectionError):
    """Transport-level connectivity failure while talking to an upstream API."""


class AdapterTimeoutError(AdapterError, TimeoutError):
    """Transport timeout while waiting for an upstream API response."""


class AdapterRequestError(AdapterError, ValueError):
    """Upstream rejected the request or returned an unusable payload."""


class ProvisioningError(AdapterError, RuntimeError):
    """Compute backend could not create or describe a worker."""
