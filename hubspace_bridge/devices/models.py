"""
Hubspace device models and data structures.

Defines the typed capability model the loosely typed vendor schema is
mapped onto. Nodes are immutable and rebuilt on every discovery cycle.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class ValueType(str, Enum):
    """Wire representation of an attribute value."""
    BOOLEAN = "boolean"
    INTEGER = "integer"
    STRING = "string"


class Capability(str, Enum):
    """Semantic unit of control, independent of the vendor wire format."""
    POWER = "power"
    BRIGHTNESS = "brightness"
    FAN_POWER = "fan-power"
    FAN_SPEED = "fan-speed"
    LIGHT_COLOR_TEMPERATURE = "color-temperature"
    LIGHT_COLOR = "color-rgb"
    COLOR_MODE = "color-mode"
    TOGGLE_VALVE = "toggle"
    MAX_ON_TIME = "max-on-time"
    TIMER = "timer"
    BATTERY_LEVEL = "battery-level"

    @property
    def value_type(self) -> ValueType:
        return _CAPABILITY_VALUE_TYPES[self]

    @property
    def label(self) -> str:
        return _CAPABILITY_LABELS[self]


_CAPABILITY_VALUE_TYPES: Dict[Capability, ValueType] = {
    Capability.POWER: ValueType.BOOLEAN,
    Capability.BRIGHTNESS: ValueType.INTEGER,
    Capability.FAN_POWER: ValueType.BOOLEAN,
    Capability.FAN_SPEED: ValueType.INTEGER,
    Capability.LIGHT_COLOR_TEMPERATURE: ValueType.INTEGER,
    Capability.LIGHT_COLOR: ValueType.STRING,
    Capability.COLOR_MODE: ValueType.STRING,
    Capability.TOGGLE_VALVE: ValueType.BOOLEAN,
    Capability.MAX_ON_TIME: ValueType.INTEGER,
    Capability.TIMER: ValueType.INTEGER,
    Capability.BATTERY_LEVEL: ValueType.INTEGER,
}

_CAPABILITY_LABELS: Dict[Capability, str] = {
    Capability.POWER: "Power",
    Capability.BRIGHTNESS: "Brightness",
    Capability.FAN_POWER: "Fan Power",
    Capability.FAN_SPEED: "Fan Speed",
    Capability.LIGHT_COLOR_TEMPERATURE: "Color Temperature",
    Capability.LIGHT_COLOR: "Color",
    Capability.COLOR_MODE: "Color Mode",
    Capability.TOGGLE_VALVE: "Valve",
    Capability.MAX_ON_TIME: "Max On Time",
    Capability.TIMER: "Timer",
    Capability.BATTERY_LEVEL: "Battery Level",
}


class DeviceClass(str, Enum):
    """Classification of a mapped device."""
    LIGHT = "light"
    FAN = "fan"
    OUTLET = "outlet"
    SPRINKLER = "sprinkler"
    MULTI_OUTLET = "multi-outlet"
    PARENT = "parent"  # composite parent, groups children only


class Missing(Enum):
    """Read outcomes that carry no value. These are not errors."""
    UNAVAILABLE = "unavailable"  # device offline
    NOT_FOUND = "not_found"  # device answered without the attribute


UNAVAILABLE = Missing.UNAVAILABLE
NOT_FOUND = Missing.NOT_FOUND

AttributeKey = str
RawValue = Any
TypedValue = Union[bool, int, str]
ReadResult = Union[bool, int, str, Missing]


@dataclass(frozen=True)
class ValueRange:
    """Valid range of a numeric value."""
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"min": self.min, "max": self.max, "step": self.step}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValueRange":
        return cls(min=data.get("min"), max=data.get("max"), step=data.get("step"))


@dataclass(frozen=True)
class ValueSlot:
    """
    One entry of a raw function's value array.

    `index` is the entry's position in the vendor array. Entries without
    attribute keys are dropped, so positions may have gaps.
    """
    keys: Tuple[AttributeKey, ...]
    name: Optional[str] = None
    raw_type: Optional[str] = None
    range: Optional[ValueRange] = None
    index: int = 0

    @property
    def key(self) -> AttributeKey:
        return self.keys[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "keys": list(self.keys),
            "name": self.name,
            "raw_type": self.raw_type,
            "range": self.range.to_dict() if self.range else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValueSlot":
        return cls(
            keys=tuple(data["keys"]),
            name=data.get("name"),
            raw_type=data.get("raw_type"),
            range=ValueRange.from_dict(data["range"]) if data.get("range") else None,
            index=data.get("index", 0),
        )


@dataclass(frozen=True)
class FunctionRecord:
    """
    A device's declared support for one capability.

    `instance_name` separates independent occurrences of one capability
    (two valves); `positional_index` separates homogeneous sub-units
    (outlet N of a strip). Schemas that express positions as a parallel
    value array instead carry one `ValueSlot` per position.
    """
    capability: Capability
    slots: Tuple[ValueSlot, ...]
    instance_name: Optional[str] = None
    positional_index: Optional[int] = None

    @property
    def identity(self) -> Tuple[Capability, Optional[str], Optional[int]]:
        return (self.capability, self.instance_name, self.positional_index)

    @property
    def attribute_keys(self) -> Tuple[AttributeKey, ...]:
        return tuple(key for slot in self.slots for key in slot.keys)

    @property
    def value_type(self) -> ValueType:
        return self.capability.value_type

    @property
    def value_range(self) -> Optional[ValueRange]:
        return self.slots[0].range if self.slots else None

    @property
    def positions(self) -> Tuple[int, ...]:
        """Value array positions that carry attribute keys."""
        return tuple(slot.index for slot in self.slots)

    @property
    def is_slotted(self) -> bool:
        """True if sub-units are expressed as value array positions."""
        return self.positional_index is None and self.positions not in ((), (0,))

    def slot_at(self, index: int) -> Optional[ValueSlot]:
        for slot in self.slots:
            if slot.index == index:
                return slot
        return None

    def has_slot(self, index: int) -> bool:
        return self.slot_at(index) is not None

    def key_for(self, positional_index: Optional[int] = None) -> AttributeKey:
        """Attribute key to read/write for an access at `positional_index`."""
        if positional_index is None or positional_index == self.positional_index:
            return self.slots[0].key
        slot = self.slot_at(positional_index)
        if slot is None:
            raise IndexError(f"No value slot at position {positional_index}")
        return slot.key

    def to_dict(self) -> Dict[str, Any]:
        return {
            "capability": self.capability.value,
            "instance_name": self.instance_name,
            "positional_index": self.positional_index,
            "slots": [slot.to_dict() for slot in self.slots],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FunctionRecord":
        return cls(
            capability=Capability(data["capability"]),
            instance_name=data.get("instance_name"),
            positional_index=data.get("positional_index"),
            slots=tuple(
                ValueSlot.from_dict({"index": i, **s})
                for i, s in enumerate(data.get("slots", []))
            ),
        )


@dataclass(frozen=True)
class DeviceNode:
    """
    Internal representation of one vendor device.

    A node may have children (a power strip and its outlets). Nodes are
    never mutated; the next discovery cycle supersedes the whole tree.
    """
    id: str
    device_id: str
    display_name: str
    classification: DeviceClass
    manufacturer: Optional[str] = None
    models: Tuple[str, ...] = ()
    functions: Tuple[FunctionRecord, ...] = ()
    children: Tuple["DeviceNode", ...] = field(default=())

    @property
    def is_composite(self) -> bool:
        """True if the node only groups children."""
        return self.classification == DeviceClass.PARENT and not self.functions

    @property
    def is_addressable(self) -> bool:
        """True if the node has directly controllable functions of its own."""
        return bool(self.functions)

    @property
    def model(self) -> Optional[str]:
        return self.models[0] if self.models else None

    def capabilities(self) -> List[Capability]:
        """Distinct capabilities in declaration order."""
        seen: List[Capability] = []
        for record in self.functions:
            if record.capability not in seen:
                seen.append(record.capability)
        return seen

    def walk(self) -> List["DeviceNode"]:
        """This node followed by all descendants, depth first."""
        nodes = [self]
        for child in self.children:
            nodes.extend(child.walk())
        return nodes

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "device_id": self.device_id,
            "display_name": self.display_name,
            "classification": self.classification.value,
            "manufacturer": self.manufacturer,
            "models": list(self.models),
            "functions": [f.to_dict() for f in self.functions],
            "children": [c.to_dict() for c in self.children],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeviceNode":
        """Deserialize from dictionary."""
        return cls(
            id=data["id"],
            device_id=data["device_id"],
            display_name=data.get("display_name", data["id"]),
            classification=DeviceClass(data["classification"]),
            manufacturer=data.get("manufacturer"),
            models=tuple(data.get("models", [])),
            functions=tuple(FunctionRecord.from_dict(f) for f in data.get("functions", [])),
            children=tuple(cls.from_dict(c) for c in data.get("children", [])),
        )
