"""
Device model, capability resolution and attribute I/O.

Key Components:
- models: Capability, FunctionRecord and DeviceNode
- values: wire value encoding and color conversion
- functions: the capability resolver
- mapping: raw vendor records → DeviceNode trees
- transport: attribute reads and writes
- control: per-accessory get/set surface
"""
from .models import (
    Capability,
    DeviceClass,
    DeviceNode,
    FunctionRecord,
    Missing,
    NOT_FOUND,
    UNAVAILABLE,
    ValueSlot,
    ValueType,
)
from .functions import resolve, supports
from .mapping import DeviceMapper
from .transport import AttributeTransport, DeviceSnapshot
from .control import DeviceControl

__all__ = [
    "Capability",
    "DeviceClass",
    "DeviceNode",
    "FunctionRecord",
    "Missing",
    "NOT_FOUND",
    "UNAVAILABLE",
    "ValueSlot",
    "ValueType",
    "resolve",
    "supports",
    "DeviceMapper",
    "AttributeTransport",
    "DeviceSnapshot",
    "DeviceControl",
]
