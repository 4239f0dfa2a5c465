"""
Tests for the per-accessory control surface.
"""

import logging

import pytest

from hubspace_bridge.api.errors import CapabilityNotSupported, HubspaceError
from hubspace_bridge.devices.control import DeviceControl
from hubspace_bridge.devices.mapping import DeviceMapper
from hubspace_bridge.devices.models import NOT_FOUND, UNAVAILABLE, Capability, ValueType

from fakes import raw_device, raw_function


class RecordingTransport:
    """Transport stand-in serving fixed raw values."""

    def __init__(self, values=None):
        self.values = values or {}
        self.reads = []
        self.writes = []

    async def read_attribute(self, device_id, key):
        self.reads.append((device_id, key))
        return self.values.get(key, NOT_FOUND)

    async def write_attribute(self, device_id, key, value, value_type=None):
        self.writes.append((device_id, key, value, value_type))


def fan_node():
    return DeviceMapper().map_device(raw_device(
        "fan", "ceiling-fan",
        [
            raw_function("power", "fan-power", keys=["1"]),
            raw_function("fan-speed", "fan-speed", keys=["2"]),
            raw_function("power", "light-power", keys=["3"]),
            raw_function("color-rgb", keys=["4"]),
        ],
    ))


class TestDeviceControl:
    """Tests for resolve/get/set."""

    @pytest.mark.asyncio
    async def test_get_converts_by_type(self):
        transport = RecordingTransport({"1": "01", "2": "4b", "4": "FF8800"})
        control = DeviceControl(fan_node(), transport)

        assert await control.get(Capability.FAN_POWER) is True
        assert await control.get(Capability.FAN_SPEED) == 75
        assert await control.get(Capability.LIGHT_COLOR) == "FF8800"
        assert transport.reads[0] == ("dev-fan", "1")

    @pytest.mark.asyncio
    async def test_sentinels_pass_through(self):
        transport = RecordingTransport({"1": UNAVAILABLE})
        control = DeviceControl(fan_node(), transport)

        assert await control.get(Capability.FAN_POWER) is UNAVAILABLE
        assert await control.get(Capability.FAN_SPEED) is NOT_FOUND

    @pytest.mark.asyncio
    async def test_set_uses_record_type(self):
        transport = RecordingTransport()
        control = DeviceControl(fan_node(), transport)

        await control.set(Capability.POWER, True, instance_name="light-power")
        await control.set(Capability.FAN_SPEED, 50)

        assert transport.writes == [
            ("dev-fan", "3", True, ValueType.BOOLEAN),
            ("dev-fan", "2", 50, ValueType.INTEGER),
        ]

    @pytest.mark.asyncio
    async def test_unsupported_capability_logged_and_raised(self, caplog):
        transport = RecordingTransport()
        control = DeviceControl(fan_node(), transport)

        with caplog.at_level(logging.ERROR, logger="hubspace_bridge.devices.control"):
            with pytest.raises(CapabilityNotSupported):
                await control.get(Capability.BRIGHTNESS)

        assert "Capability not supported: brightness" in caplog.text
        assert transport.reads == []

    @pytest.mark.asyncio
    async def test_waits_for_barrier(self):
        order = []

        class Transport(RecordingTransport):
            async def read_attribute(self, device_id, key):
                order.append("read")
                return "01"

        async def barrier():
            order.append("barrier")

        control = DeviceControl(fan_node(), Transport(), barrier)
        await control.get(Capability.FAN_POWER)

        assert order == ["barrier", "read"]

    @pytest.mark.asyncio
    async def test_malformed_integer_is_bridge_error(self):
        control = DeviceControl(fan_node(), RecordingTransport({"2": "zz"}))

        with pytest.raises(HubspaceError) as exc:
            await control.get(Capability.FAN_SPEED)

        assert exc.value.code == "MALFORMED_VALUE"
