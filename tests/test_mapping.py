"""
Tests for raw device → DeviceNode mapping.
"""

import logging

from hubspace_bridge.devices.mapping import DeviceMapper, device_class_for, split_models
from hubspace_bridge.devices.models import Capability, DeviceClass, DeviceNode

from fakes import light, power_strip, raw_device, raw_function


class TestClassification:
    """Tests for device classification."""

    def test_light(self):
        node = DeviceMapper().map_device(light())

        assert node.classification == DeviceClass.LIGHT
        assert node.display_name == "Kitchen Light"
        assert node.device_id == "dev-light"
        assert node.manufacturer == "Hubspace"
        assert node.capabilities() == [
            Capability.POWER,
            Capability.BRIGHTNESS,
            Capability.LIGHT_COLOR_TEMPERATURE,
        ]

    def test_lookup_table(self):
        assert device_class_for("Ceiling-Fan") == DeviceClass.FAN
        assert device_class_for("water-timer") == DeviceClass.SPRINKLER
        assert device_class_for("multi-outlet-accessory") == DeviceClass.MULTI_OUTLET
        assert device_class_for("power-outlet") == DeviceClass.OUTLET
        assert device_class_for("toaster") is None
        assert device_class_for(None) is None

    def test_unknown_class_skipped_siblings_kept(self, caplog):
        raws = [raw_device("x", "toaster", [raw_function("power")]), light()]

        with caplog.at_level(logging.WARNING):
            nodes = DeviceMapper().map_devices(raws)

        assert [n.id for n in nodes] == ["light"]
        assert "toaster" in caplog.text

    def test_malformed_record_skipped(self):
        nodes = DeviceMapper().map_devices([{"friendlyName": "no id"}, "garbage", light()])

        assert [n.id for n in nodes] == ["light"]

    def test_models_split(self):
        assert split_models("HS-1, HS-2 ,") == ("HS-1", "HS-2")
        assert split_models(None) == ()

        node = DeviceMapper().map_device(raw_device("a", "light", [raw_function("power")], model="A1,B2"))
        assert node.models == ("A1", "B2")
        assert node.model == "A1"


class TestComposite:
    """Tests for parents and children."""

    def test_parent_without_description(self):
        node = DeviceMapper().map_device(power_strip(outlets=4))

        assert node.classification == DeviceClass.PARENT
        assert node.is_composite
        assert not node.is_addressable
        assert node.functions == ()
        assert len(node.children) == 4
        assert [c.functions[0].positional_index for c in node.children] == [0, 1, 2, 3]

    def test_parent_with_own_functions(self):
        raw = raw_device("hub", children=[raw_device("child", "power-outlet", [raw_function("power")])])
        raw["description"] = {
            "device": {"manufacturerName": "Hubspace"},
            "functions": [raw_function("power", keys=["5"])],
        }

        node = DeviceMapper().map_device(raw)

        assert node.classification == DeviceClass.PARENT
        assert not node.is_composite
        assert node.is_addressable
        assert node.functions[0].key_for() == "5"
        assert [c.id for c in node.children] == ["child"]

    def test_bad_child_filtered(self):
        raw = raw_device("hub", children=[
            raw_device("good", "power-outlet", [raw_function("power")]),
            raw_device("bad", "toaster", [raw_function("power")]),
            {"no": "id"},
        ])

        node = DeviceMapper().map_device(raw)

        assert [c.id for c in node.children] == ["good"]

    def test_no_class_no_children_skipped(self):
        assert DeviceMapper().map_device(raw_device("lonely")) is None

    def test_walk(self):
        node = DeviceMapper().map_device(power_strip(outlets=2))
        assert [n.id for n in node.walk()] == ["strip", "strip-outlet-0", "strip-outlet-1"]


class TestFunctions:
    """Tests for function extraction."""

    def test_malformed_functions_dropped(self, caplog):
        functions = [
            {"functionInstance": "no-class", "values": []},
            {"functionClass": "power", "values": [{"name": "power", "deviceValues": []}]},
            {"functionClass": "power", "values": [{"deviceValues": [{"key": ""}]}]},
            "garbage",
            raw_function("brightness", keys=["2"]),
        ]

        with caplog.at_level(logging.WARNING):
            records = DeviceMapper().extract_functions(functions)

        assert [r.capability for r in records] == [Capability.BRIGHTNESS]
        assert "dropping" in caplog.text

    def test_unknown_function_class_ignored(self):
        records = DeviceMapper().extract_functions([
            raw_function("wifi-rssi"),
            raw_function("power"),
        ])
        assert [r.capability for r in records] == [Capability.POWER]

    def test_fan_power_instance(self):
        records = DeviceMapper().extract_functions([
            raw_function("power", "fan-power", keys=["1"]),
            raw_function("power", "light-power", keys=["2"]),
            raw_function("fan-speed", "fan-speed", keys=["3"]),
        ])

        assert [(r.capability, r.instance_name) for r in records] == [
            (Capability.FAN_POWER, None),
            (Capability.POWER, "light-power"),
            (Capability.FAN_SPEED, None),
        ]

    def test_keys_are_strings(self):
        records = DeviceMapper().extract_functions([raw_function("power", keys=[5])])
        assert records[0].attribute_keys == ("5",)

    def test_outlet_index_alias(self):
        entry = raw_function("power", keys=["1"])
        entry["outletIndex"] = 2

        records = DeviceMapper().extract_functions([entry])

        assert records[0].positional_index == 2

    def test_value_array_slots(self):
        records = DeviceMapper().extract_functions([
            raw_function("toggle", slots=[["a"], ["b"]]),
        ])

        assert len(records[0].slots) == 2
        assert records[0].key_for(1) == "b"

    def test_value_array_keeps_positions(self):
        """An entry without keys leaves a gap instead of shifting later slots."""
        records = DeviceMapper().extract_functions([
            raw_function("power", slots=[["a"], [], ["c"], ["d"]]),
        ])

        record = records[0]
        assert record.positions == (0, 2, 3)
        assert not record.has_slot(1)
        assert record.key_for(2) == "c"
        assert record.key_for(3) == "d"

    def test_duplicate_identity_dropped(self, caplog):
        with caplog.at_level(logging.WARNING):
            records = DeviceMapper().extract_functions([
                raw_function("power", keys=["1"]),
                raw_function("power", keys=["2"]),
            ])

        assert len(records) == 1
        assert records[0].key_for() == "1"
        assert "duplicate" in caplog.text

    def test_value_range(self):
        entry = raw_function("brightness", keys=["2"])
        entry["values"][0]["range"] = {"min": 1, "max": 100, "step": 1}

        records = DeviceMapper().extract_functions([entry])

        assert records[0].value_range.min == 1
        assert records[0].value_range.max == 100

    def test_function_level_device_values(self):
        entry = {"functionClass": "power", "deviceValues": [{"key": "9"}]}

        records = DeviceMapper().extract_functions([entry])

        assert records[0].key_for() == "9"


class TestSerialization:
    """Tests for DeviceNode persistence."""

    def test_round_trip(self):
        node = DeviceMapper().map_device(power_strip(outlets=2))
        assert DeviceNode.from_dict(node.to_dict()) == node

    def test_slot_positions_survive(self):
        node = DeviceMapper().map_device(raw_device(
            "multi", "multi-outlet-accessory",
            [raw_function("power", slots=[["a"], [], ["c"]])],
        ))

        restored = DeviceNode.from_dict(node.to_dict())

        assert restored == node
        assert restored.functions[0].key_for(2) == "c"
