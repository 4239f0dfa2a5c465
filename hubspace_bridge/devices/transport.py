"""
Attribute transport: device state reads and attribute writes.

Reads return a raw wire value or one of the `Missing` sentinels. Writes
serialize per the declared wire type. Nothing here retries; the client
retries once after a 401 and everything else goes to the caller.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from ..api.client import HubspaceClient
from ..api.endpoints import device_actions_path, device_state_path
from ..api.errors import HubspaceError
from ..api.responses import DeviceStatusResponse
from .models import NOT_FOUND, UNAVAILABLE, AttributeKey, Missing, RawValue, ValueType
from .values import as_boolean, as_integer, encode_value

logger = logging.getLogger(__name__)


@dataclass
class DeviceSnapshot:
    """Point-in-time state of one device."""
    available: bool
    attributes: Dict[AttributeKey, RawValue] = field(default_factory=dict)

    @classmethod
    def from_response(cls, response: DeviceStatusResponse) -> "DeviceSnapshot":
        return cls(
            available=response.device_state.available,
            attributes={a.id: a.raw_value for a in response.attributes},
        )


class AttributeTransport:
    """
    Reads and writes single attributes of cloud devices.

    Usage:
        transport = AttributeTransport(client)
        on = await transport.read_boolean(device_id, "1")
        await transport.write_attribute(device_id, "1", True)
    """

    def __init__(self, client: HubspaceClient):
        self.client = client

    async def read_snapshot(self, device_id: str) -> DeviceSnapshot:
        """Fetch availability and every attribute of a device."""
        account_id = await self.client.get_account_id()
        payload = await self.client.request("GET", device_state_path(account_id, device_id))

        try:
            response = DeviceStatusResponse.model_validate(payload or {})
        except ValidationError as e:
            raise HubspaceError(
                f"Malformed state response for device {device_id}",
                code="MALFORMED_RESPONSE",
            ) from e

        return DeviceSnapshot.from_response(response)

    async def read_attribute(self, device_id: str, key: AttributeKey) -> Union[RawValue, Missing]:
        """
        Read one raw attribute value.

        Returns UNAVAILABLE when the device is offline, even if the stale
        attribute list still holds the key, and NOT_FOUND when the key is absent.
        """
        snapshot = await self.read_snapshot(device_id)

        if not snapshot.available:
            logger.debug(f"Device {device_id} is unavailable")
            return UNAVAILABLE

        if key not in snapshot.attributes:
            logger.error(f"Attribute {key} not found on device {device_id}")
            return NOT_FOUND

        return snapshot.attributes[key]

    async def read_boolean(self, device_id: str, key: AttributeKey) -> Union[bool, Missing]:
        return as_boolean(await self.read_attribute(device_id, key))

    async def read_integer(self, device_id: str, key: AttributeKey) -> Union[int, Missing]:
        return as_integer(await self.read_attribute(device_id, key))

    async def write_attribute(
        self,
        device_id: str,
        key: AttributeKey,
        value: Any,
        value_type: Optional[ValueType] = None,
    ) -> None:
        """
        Write one attribute.

        Raises:
            RemoteRejected: On a non-2xx response
            TransportError: On connection failures and timeouts
        """
        data = encode_value(value, value_type)
        account_id = await self.client.get_account_id()

        logger.debug(f"Writing attribute {key}={data} on device {device_id}")
        await self.client.request(
            "POST",
            device_actions_path(account_id, device_id),
            body={"type": "attribute_write", "attrId": key, "data": data},
        )
