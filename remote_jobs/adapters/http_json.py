"""Shared JSON-over-HTTP request helper for upstream API adapters."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .errors import AdapterConnectionError, AdapterRequestError, AdapterTimeoutError

logger = logging.getLogger(__name__)


def adapter_send_json_request(
    http_client: httpx.Client,
    method: str,
    url: str,
    context_label: str,
    json_body: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Send one JSON request and translate transport failures into typed errors.

    Args:
        http_client: Configured client carrying base URL and auth headers.
        method: HTTP method.
        url: Absolute URL or path relative to the client base URL.
        context_label: Short operation label used in error messages.
        json_body: Optional JSON request body.

    Returns:
        dict[str, Any]: Decoded JSON object, or an empty dict for empty responses.

    Raises:
        AdapterTimeoutError: Raised when the request times out.
        AdapterConnectionError: Raised for network failures and 5xx/429 responses.
        AdapterRequestError: Raised for other non-success responses and non-object payloads.
    """

    try:
        response = http_client.request(method, url, json=json_body)
    except httpx.TimeoutException as error:
        raise AdapterTimeoutError(f"{context_label} timed out: {error}") from error
    except httpx.HTTPError as error:
        raise AdapterConnectionError(f"{context_label} failed: {error}") from error

    logger.debug("%s status=%s", context_label, response.status_code)

    if response.status_code >= 500 or response.status_code == 429:
        raise AdapterConnectionError(
            f"{context_label} failed: status={response.status_code}",
            error_code=str(response.status_code),
        )
    if response.status_code >= 400:
        raise AdapterRequestError(
            f"{context_label} rejected: status={response.status_code}, body={response.text[:500]}",
            error_code=str(response.status_code),
        )

    if not response.content:
        return {}

    try:
        payload = response.json()
    except ValueError as error:
        raise AdapterRequestError(f"{context_label} returned invalid JSON") from error

    if not isinstance(payload, dict):
        raise AdapterRequestError(f"{context_label} returned non-object JSON")
    return payload
