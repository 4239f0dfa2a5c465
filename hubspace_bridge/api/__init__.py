"""Afero cloud API: errors, wire models and the authenticated client."""
from .errors import (
    HubspaceError,
    AuthenticationFailed,
    TransportError,
    Unauthorized,
    RateLimited,
    RemoteRejected,
    CapabilityNotSupported,
)

__all__ = [
    "HubspaceError",
    "AuthenticationFailed",
    "TransportError",
    "Unauthorized",
    "RateLimited",
    "RemoteRejected",
    "CapabilityNotSupported",
]
