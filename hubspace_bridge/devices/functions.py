"""
Capability resolution.

Given a device's function list and a requested (capability, instance,
positional index) triple, find the one `FunctionRecord` that backs it.
Called on every characteristic get/set, so it stays pure and cheap.
"""

import logging
from typing import List, Optional, Sequence

from ..api.errors import CapabilityNotSupported
from .models import Capability, FunctionRecord

logger = logging.getLogger(__name__)


def _candidates(
    functions: Sequence[FunctionRecord],
    capability: Capability,
    instance_name: Optional[str],
    positional_index: Optional[int],
) -> List[FunctionRecord]:
    matches = [f for f in functions if f.capability == capability]

    # An instance-qualified lookup never matches a bare record, and vice versa
    matches = [f for f in matches if f.instance_name == instance_name]

    if positional_index is None:
        return matches

    literal = [f for f in matches if f.positional_index == positional_index]
    if literal:
        return literal

    # Schemas that put positions in a parallel value array
    return [
        f for f in matches
        if f.positional_index is None and f.has_slot(positional_index)
    ]


def resolve(
    functions: Sequence[FunctionRecord],
    capability: Capability,
    instance_name: Optional[str] = None,
    positional_index: Optional[int] = None,
) -> FunctionRecord:
    """
    Resolve a capability access to a function record.

    Args:
        functions: The device's function list, in declaration order
        capability: Requested capability
        instance_name: Instance qualifier (e.g. "spigot-1"), or None for bare records
        positional_index: Sub-unit index, literal or value-slot

    Returns:
        The matching record. Use `record.key_for(positional_index)` for the
        attribute key.

    Raises:
        CapabilityNotSupported: If nothing matches
    """
    matches = _candidates(functions, capability, instance_name, positional_index)

    if not matches:
        raise CapabilityNotSupported(capability.value, instance_name, positional_index)

    if len(matches) > 1:
        logger.warning(
            f"{len(matches)} function records match {capability.value} "
            f"(instance={instance_name}, index={positional_index}); using the first"
        )

    return matches[0]


def supports(
    functions: Sequence[FunctionRecord],
    capability: Capability,
    instance_name: Optional[str] = None,
    positional_index: Optional[int] = None,
) -> bool:
    """True if `resolve` would find a record."""
    return bool(_candidates(functions, capability, instance_name, positional_index))
