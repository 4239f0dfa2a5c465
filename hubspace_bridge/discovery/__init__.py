"""Discovery and reconciliation of the cloud device graph."""
from .reconcile import (
    CapabilityBinding,
    DiscoveryService,
    ReconcileResult,
    addressable_nodes,
    expand_bindings,
)

__all__ = [
    "CapabilityBinding",
    "DiscoveryService",
    "ReconcileResult",
    "addressable_nodes",
    "expand_bindings",
]
