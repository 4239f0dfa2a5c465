"""
Error taxonomy for the Hubspace bridge.

Callers use `retryable` to decide between retrying later and surfacing
the failure. Offline devices and missing attributes are read outcomes,
not errors; see `hubspace_bridge.devices.models.Missing`.
"""

from typing import Any, Optional

import aiohttp
from pydantic import ValidationError

from .responses import ErrorResponse


class HubspaceError(Exception):
    """Base exception for bridge errors."""

    def __init__(self, message: str, code: str = "HUBSPACE_ERROR", retryable: bool = False):
        super().__init__(message)
        self.code = code
        self.retryable = retryable


class AuthenticationFailed(HubspaceError):
    """Raised when neither refresh nor re-authentication produced a token.

    Usually means the credentials are wrong; do not retry in a tight loop.
    """

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTHENTICATION_FAILED", retryable=False)


class TransportError(HubspaceError):
    """Raised on connection-level failures and timeouts."""

    def __init__(self, message: str):
        super().__init__(message, code="TRANSPORT_ERROR", retryable=True)


class Unauthorized(HubspaceError):
    """Raised when the API still answers 401 after a token refresh."""

    status = 401

    def __init__(self, message: str = "Request was not authorized"):
        super().__init__(message, code="UNAUTHORIZED", retryable=False)


class RateLimited(HubspaceError):
    """Raised on HTTP 429. Retry with backoff."""

    status = 429

    def __init__(self, retry_after: Optional[float] = None):
        message = "Rate limited by remote API"
        if retry_after is not None:
            message += f" (retry after {retry_after}s)"
        super().__init__(message, code="RATE_LIMITED", retryable=True)
        self.retry_after = retry_after


class RemoteRejected(HubspaceError):
    """Raised when the remote API answers with a non-2xx status."""

    def __init__(self, status: int, description: Optional[str] = None, url: Optional[str] = None):
        message = f"Remote service rejected request with status {status}"
        if url:
            message += f" ({url})"
        if description:
            message += f": {description}"
        super().__init__(message, code="REMOTE_REJECTED", retryable=False)
        self.status = status
        self.description = description


class CapabilityNotSupported(HubspaceError, LookupError):
    """Raised when a device has no function matching a capability access."""

    def __init__(
        self,
        capability: str,
        instance_name: Optional[str] = None,
        positional_index: Optional[int] = None,
    ):
        target = capability
        if instance_name:
            target += f"/{instance_name}"
        if positional_index is not None:
            target += f"[{positional_index}]"
        super().__init__(f"Capability not supported: {target}", code="CAPABILITY_NOT_SUPPORTED")
        self.capability = capability
        self.instance_name = instance_name
        self.positional_index = positional_index


async def read_error_description(response: Any) -> Optional[str]:
    """Best-effort extraction of the vendor's error text from a failed response."""
    try:
        payload = await response.json(content_type=None)
    except (ValueError, aiohttp.ClientError):
        return None

    if not isinstance(payload, dict):
        return None
    try:
        body = ErrorResponse.model_validate(payload)
    except ValidationError:
        return None
    return body.error_description or body.error
