"""
Per-accessory control surface.

`DeviceControl` is what the presentation layer holds for one accessory:
resolve a capability, then read or write it through the transport.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from ..api.errors import CapabilityNotSupported, HubspaceError
from .functions import resolve
from .models import Capability, DeviceNode, FunctionRecord, Missing, ReadResult, ValueType
from .transport import AttributeTransport
from .values import as_boolean, as_integer

logger = logging.getLogger(__name__)

Barrier = Callable[[], Awaitable[None]]


class DeviceControl:
    """Live get/set for the capabilities of one device node."""

    def __init__(
        self,
        node: DeviceNode,
        transport: AttributeTransport,
        barrier: Optional[Barrier] = None,
    ):
        self.node = node
        self.transport = transport
        self._barrier = barrier

    @property
    def device_id(self) -> str:
        return self.node.device_id

    def resolve(
        self,
        capability: Capability,
        instance_name: Optional[str] = None,
        positional_index: Optional[int] = None,
    ) -> FunctionRecord:
        try:
            return resolve(self.node.functions, capability, instance_name, positional_index)
        except CapabilityNotSupported as e:
            logger.error(f"{self.node.display_name}: {e}")
            raise

    async def get(
        self,
        capability: Capability,
        instance_name: Optional[str] = None,
        positional_index: Optional[int] = None,
    ) -> ReadResult:
        """Read a capability value converted to its Python type."""
        record = self.resolve(capability, instance_name, positional_index)
        await self._wait()

        raw = await self.transport.read_attribute(
            self.device_id, record.key_for(positional_index)
        )
        if isinstance(raw, Missing):
            return raw

        if record.value_type == ValueType.BOOLEAN:
            return as_boolean(raw)
        if record.value_type == ValueType.INTEGER:
            try:
                return as_integer(raw)
            except ValueError as e:
                raise HubspaceError(
                    f"{self.node.display_name}: {capability.value} value {raw!r} is not an integer",
                    code="MALFORMED_VALUE",
                ) from e
        return str(raw)

    async def set(
        self,
        capability: Capability,
        value: Any,
        instance_name: Optional[str] = None,
        positional_index: Optional[int] = None,
    ) -> None:
        """Write a capability value using the record's wire type."""
        record = self.resolve(capability, instance_name, positional_index)
        await self._wait()

        await self.transport.write_attribute(
            self.device_id,
            record.key_for(positional_index),
            value,
            record.value_type,
        )

    async def _wait(self) -> None:
        if self._barrier is not None:
            await self._barrier()
