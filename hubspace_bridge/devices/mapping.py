"""
Vendor device graph → DeviceNode mapping.

Translates raw `metadevices` records into the typed device model.
Everything malformed is dropped at this boundary with a warning; one bad
device or function never blocks its siblings.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from pydantic import ValidationError

from ..api.responses import RawDevice, RawFunction, RawFunctionValue
from .models import (
    Capability,
    DeviceClass,
    DeviceNode,
    FunctionRecord,
    ValueRange,
    ValueSlot,
)

logger = logging.getLogger(__name__)


# =============================================================================
# LOOKUP TABLES
# =============================================================================

DEVICE_CLASSES: Dict[str, DeviceClass] = {
    "light": DeviceClass.LIGHT,
    "fan": DeviceClass.FAN,
    "ceiling-fan": DeviceClass.FAN,
    "power-outlet": DeviceClass.OUTLET,
    "water-timer": DeviceClass.SPRINKLER,
    "multi-outlet-accessory": DeviceClass.MULTI_OUTLET,
}

FUNCTION_CLASSES: Dict[str, Capability] = {
    "power": Capability.POWER,
    "brightness": Capability.BRIGHTNESS,
    "fan-speed": Capability.FAN_SPEED,
    "color-temperature": Capability.LIGHT_COLOR_TEMPERATURE,
    "color-rgb": Capability.LIGHT_COLOR,
    "color-mode": Capability.COLOR_MODE,
    "toggle": Capability.TOGGLE_VALVE,
    "max-on-time": Capability.MAX_ON_TIME,
    "timer": Capability.TIMER,
    "battery-level": Capability.BATTERY_LEVEL,
}

# (functionClass, functionInstance) pairs that name a capability of their own
INSTANCE_CAPABILITIES: Dict[Tuple[str, str], Capability] = {
    ("power", "fan-power"): Capability.FAN_POWER,
}


def device_class_for(name: Optional[str]) -> Optional[DeviceClass]:
    """Look up a vendor device class string (case-insensitive)."""
    if not name:
        return None
    return DEVICE_CLASSES.get(name.strip().lower())


def split_models(model: Optional[str]) -> Tuple[str, ...]:
    """Split a comma-joined model string."""
    if not model:
        return ()
    return tuple(part.strip() for part in model.split(",") if part.strip())


def _capability_for(function_class: str, instance: Optional[str]) -> Tuple[Optional[Capability], Optional[str]]:
    function_class = function_class.strip().lower()
    if instance is not None:
        instance = instance.strip() or None
    if instance == function_class:
        instance = None

    if instance is not None:
        aliased = INSTANCE_CAPABILITIES.get((function_class, instance))
        if aliased is not None:
            return aliased, None

    return FUNCTION_CLASSES.get(function_class), instance


def _slot(index: int, value: RawFunctionValue) -> Optional[ValueSlot]:
    if not value.device_values:
        return None

    value_range = None
    if value.range is not None:
        value_range = ValueRange(value.range.min, value.range.max, value.range.step)

    return ValueSlot(
        keys=tuple(dv.key for dv in value.device_values),
        name=value.name,
        raw_type=value.device_values[0].type,
        range=value_range,
        index=index,
    )


class DeviceMapper:
    """
    Maps raw vendor records to `DeviceNode` trees.

    Usage:
        mapper = DeviceMapper()
        nodes = mapper.map_devices(await client.get_metadevices())
    """

    def map_devices(self, raws: Iterable[Any]) -> List[DeviceNode]:
        """Map a list of raw records, dropping the ones that fail."""
        nodes = []
        for raw in raws:
            node = self.map_device(raw)
            if node is not None:
                nodes.append(node)
        return nodes

    def map_device(self, raw: Any) -> Optional[DeviceNode]:
        """Map one raw record. Returns None if the device must be skipped."""
        try:
            device = RawDevice.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Skipping malformed device record: {e.error_count()} invalid field(s)")
            return None

        name = device.friendly_name or device.id
        info = device.description.device if device.description else None
        children = tuple(self.map_devices(device.children))

        if info is None or not info.device_class:
            if not device.children:
                logger.warning(f"Skipping device {name}: no device class and no children")
                return None

            # A parent may still declare functions of its own (a hub's switch)
            functions: Tuple[FunctionRecord, ...] = ()
            if device.description is not None:
                functions = self.extract_functions(device.description.functions, name)

            logger.debug(
                f"Device {name} is a parent with {len(children)} child(ren) "
                f"and {len(functions)} function(s) of its own"
            )
            return DeviceNode(
                id=device.id,
                device_id=device.device_id or device.id,
                display_name=name,
                classification=DeviceClass.PARENT,
                manufacturer=info.manufacturer_name if info else None,
                models=split_models(info.model if info else None),
                functions=functions,
                children=children,
            )

        classification = device_class_for(info.device_class)
        if classification is None:
            logger.warning(f"Skipping device {name}: unsupported device class '{info.device_class}'")
            return None

        return DeviceNode(
            id=device.id,
            device_id=device.device_id or device.id,
            display_name=name,
            classification=classification,
            manufacturer=info.manufacturer_name,
            models=split_models(info.model),
            functions=self.extract_functions(device.description.functions, name),
            children=children,
        )

    def extract_functions(self, raw_functions: Iterable[Any], device_name: str = "device") -> Tuple[FunctionRecord, ...]:
        """Keep the structurally valid, recognized functions in declaration order."""
        records: List[FunctionRecord] = []
        seen: Set[Tuple[Capability, Optional[str], Optional[int]]] = set()

        for raw in raw_functions:
            try:
                function = RawFunction.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"{device_name}: dropping malformed function ({e.error_count()} invalid field(s))")
                continue

            capability, instance = _capability_for(function.function_class, function.function_instance)
            if capability is None:
                logger.debug(f"{device_name}: ignoring function class '{function.function_class}'")
                continue

            slots = []
            for index, value in enumerate(function.values):
                slot = _slot(index, value)
                if slot is None:
                    logger.debug(f"{device_name}: {function.function_class} value {index} has no attribute keys")
                    continue
                slots.append(slot)

            if not slots and function.device_values:
                slots = [ValueSlot(
                    keys=tuple(dv.key for dv in function.device_values),
                    raw_type=function.device_values[0].type,
                )]

            if not slots:
                logger.warning(f"{device_name}: dropping {function.function_class} function without attribute keys")
                continue

            record = FunctionRecord(
                capability=capability,
                slots=tuple(slots),
                instance_name=instance,
                positional_index=function.positional_index,
            )

            if record.identity in seen:
                logger.warning(
                    f"{device_name}: dropping duplicate {capability.value} function "
                    f"(instance={instance}, index={function.positional_index})"
                )
                continue

            seen.add(record.identity)
            records.append(record)

        return tuple(records)
