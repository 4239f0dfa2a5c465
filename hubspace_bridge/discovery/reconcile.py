"""
Discovery and reconciliation.

Each cycle fetches the account's full device graph, maps it, and diffs
it against the accessory registry:

    new device         → register
    known device       → replace context (only written when it changed)
    device gone        → unregister

A cycle is all-or-nothing with respect to the fetch: if fetching fails
or is cancelled the registry is left untouched. Cycles are serialized
and act as a barrier for live reads and writes.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from ..api.client import HubspaceClient
from ..api.errors import AuthenticationFailed, CapabilityNotSupported, HubspaceError
from ..auth.tokens import RetryPolicy
from ..config import Config
from ..devices.control import DeviceControl
from ..devices.functions import resolve
from ..devices.mapping import DeviceMapper
from ..devices.models import AttributeKey, Capability, DeviceClass, DeviceNode, ValueType
from ..devices.transport import AttributeTransport
from ..registry.accessories import AccessoryRecord, AccessoryRegistry

logger = logging.getLogger(__name__)


# Capabilities each device class exposes as control surfaces
SURFACES: Dict[DeviceClass, Tuple[Capability, ...]] = {
    DeviceClass.LIGHT: (
        Capability.POWER,
        Capability.BRIGHTNESS,
        Capability.LIGHT_COLOR_TEMPERATURE,
        Capability.LIGHT_COLOR,
        Capability.COLOR_MODE,
    ),
    DeviceClass.FAN: (
        Capability.FAN_POWER,
        Capability.FAN_SPEED,
        Capability.POWER,
        Capability.BRIGHTNESS,
    ),
    DeviceClass.OUTLET: (Capability.POWER,),
    DeviceClass.MULTI_OUTLET: (Capability.POWER,),
    DeviceClass.SPRINKLER: (
        Capability.TOGGLE_VALVE,
        Capability.MAX_ON_TIME,
        Capability.TIMER,
        Capability.BATTERY_LEVEL,
    ),
    DeviceClass.PARENT: (Capability.POWER,),
}

# Capabilities whose value array may hold one slot per sub-unit
INDEXABLE: Tuple[Capability, ...] = (Capability.POWER, Capability.TOGGLE_VALVE)


@dataclass(frozen=True)
class CapabilityBinding:
    """One independently controllable control surface of an accessory."""
    accessory_id: str
    device_id: str
    capability: Capability
    attribute_key: AttributeKey
    value_type: ValueType
    label: str
    instance_name: Optional[str] = None
    positional_index: Optional[int] = None


@dataclass
class ReconcileResult:
    """Outcome of one discovery cycle (accessory ids per operation)."""
    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    bindings: List[CapabilityBinding] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.created or self.updated or self.removed)

    def bindings_for(self, accessory_id: str) -> List[CapabilityBinding]:
        return [b for b in self.bindings if b.accessory_id == accessory_id]

    def summary(self) -> str:
        return (
            f"{len(self.created)} created, {len(self.updated)} updated, "
            f"{len(self.removed)} removed, {len(self.unchanged)} unchanged"
        )


def addressable_nodes(nodes: Iterable[DeviceNode]) -> List[DeviceNode]:
    """Flatten device trees to the nodes that get an accessory."""
    result = []
    for root in nodes:
        result.extend(node for node in root.walk() if node.is_addressable)
    return result


def _label(capability: Capability, instance_name: Optional[str], positional_index: Optional[int]) -> str:
    label = capability.label
    if instance_name:
        label += f" {instance_name}"
    if positional_index is not None:
        label += f" {positional_index + 1}"
    return label


def expand_bindings(accessory_id: str, node: DeviceNode) -> List[CapabilityBinding]:
    """
    Expand a node into its control surfaces.

    One binding per (capability, instance, index) present in the node's
    functions. Records that carry positions as a value array produce one
    binding per slot for indexable capabilities.
    """
    surfaced = SURFACES.get(node.classification, ())
    targets: List[Tuple[Capability, Optional[str], Optional[int]]] = []

    for record in node.functions:
        if record.capability not in surfaced:
            continue

        if record.capability in INDEXABLE and record.is_slotted:
            for index in record.positions:
                targets.append((record.capability, record.instance_name, index))
        else:
            targets.append(record.identity)

    bindings = []
    seen: Set[Tuple[Capability, Optional[str], Optional[int]]] = set()

    for capability, instance_name, positional_index in targets:
        if (capability, instance_name, positional_index) in seen:
            continue
        seen.add((capability, instance_name, positional_index))

        try:
            record = resolve(node.functions, capability, instance_name, positional_index)
        except CapabilityNotSupported as e:
            logger.warning(f"{node.display_name}: {e}")
            continue

        bindings.append(CapabilityBinding(
            accessory_id=accessory_id,
            device_id=node.device_id,
            capability=capability,
            attribute_key=record.key_for(positional_index),
            value_type=record.value_type,
            label=_label(capability, instance_name, positional_index),
            instance_name=instance_name,
            positional_index=positional_index,
        ))

    return bindings


class DiscoveryService:
    """
    Keeps the accessory registry in sync with the cloud device graph.

    Usage:
        service = DiscoveryService(client, AccessoryRegistry(data_dir))
        result = await service.run_cycle()
        control = service.control_for(result.created[0])
    """

    def __init__(
        self,
        client: HubspaceClient,
        registry: AccessoryRegistry,
        mapper: Optional[DeviceMapper] = None,
        transport: Optional[AttributeTransport] = None,
        interval: float = 300.0,
        retry: Optional[RetryPolicy] = None,
    ):
        self.client = client
        self.registry = registry
        self.mapper = mapper or DeviceMapper()
        self.transport = transport or AttributeTransport(client)
        self.interval = interval
        self.retry = retry or RetryPolicy(max_attempts=0, initial_delay=5.0, max_delay=300.0)

        self._controls: Dict[str, DeviceControl] = {}
        self._cycle_lock = asyncio.Lock()
        self._idle = asyncio.Event()
        self._idle.set()

    @classmethod
    def from_config(
        cls,
        config: Config,
        client: HubspaceClient,
        registry: Optional[AccessoryRegistry] = None,
    ) -> "DiscoveryService":
        return cls(
            client,
            registry if registry is not None else AccessoryRegistry(config.data_dir),
            interval=config.discovery_interval,
            retry=RetryPolicy.from_config(config.discovery_retry),
        )

    @property
    def running(self) -> bool:
        return not self._idle.is_set()

    async def wait_idle(self) -> None:
        """Wait until no discovery cycle is in progress."""
        await self._idle.wait()

    async def run_cycle(self) -> ReconcileResult:
        """
        Run one discovery cycle.

        Raises:
            HubspaceError: If fetching the device graph failed; the registry
                is unchanged
        """
        async with self._cycle_lock:
            self._idle.clear()
            try:
                raws = await self.client.get_metadevices()
                nodes = self.mapper.map_devices(raws)
                result = self._reconcile(nodes)
            finally:
                self._idle.set()

        logger.info(f"Discovery cycle complete: {result.summary()}")
        return result

    def _reconcile(self, nodes: List[DeviceNode]) -> ReconcileResult:
        result = ReconcileResult()
        visited: Set[str] = set()

        for node in addressable_nodes(nodes):
            record = AccessoryRecord.for_node(node)
            accessory_id = record.accessory_id

            if accessory_id in visited:
                logger.warning(f"Device {node.id} appears more than once in the graph; ignoring repeat")
                continue
            visited.add(accessory_id)

            existing = self.registry.get(accessory_id)
            if existing is None:
                self.registry.register(record)
                result.created.append(accessory_id)
            elif existing.context != node or existing.display_name != record.display_name:
                self.registry.update(record)
                result.updated.append(accessory_id)
            else:
                result.unchanged.append(accessory_id)

            self._controls[accessory_id] = DeviceControl(node, self.transport, self.wait_idle)
            result.bindings.extend(expand_bindings(accessory_id, node))

        for record in self.registry.all():
            if record.accessory_id not in visited:
                self.registry.unregister(record)
                self._controls.pop(record.accessory_id, None)
                result.removed.append(record.accessory_id)

        return result

    def control_for(self, accessory_id: str) -> DeviceControl:
        """
        Control surface for a registered accessory.

        Raises:
            KeyError: If the accessory is not registered
        """
        control = self._controls.get(accessory_id)
        if control is not None:
            return control

        record = self.registry.get(accessory_id)
        if record is None:
            raise KeyError(f"Unknown accessory: {accessory_id}")

        control = DeviceControl(record.context, self.transport, self.wait_idle)
        self._controls[accessory_id] = control
        return control

    async def run_forever(
        self,
        interval: Optional[float] = None,
        on_result: Optional[Callable[[ReconcileResult], None]] = None,
    ) -> None:
        """
        Run discovery cycles until cancelled.

        Failed cycles back off with the retry policy. AuthenticationFailed
        stops the loop.
        """
        interval = self.interval if interval is None else interval
        failures = 0

        while True:
            try:
                result = await self.run_cycle()
            except AuthenticationFailed:
                logger.error("Discovery stopped: authentication failed")
                raise
            except HubspaceError as e:
                failures += 1
                if self.retry.bounded and failures >= self.retry.max_attempts:
                    logger.error(f"Discovery failed {failures} times in a row, giving up: {e}")
                    raise
                delay = self.retry.delay_for(failures)
                logger.warning(f"Discovery cycle failed ({e}); retrying in {delay:.0f}s (attempt {failures})")
            else:
                failures = 0
                delay = interval
                if on_result is not None:
                    on_result(result)

            await asyncio.sleep(delay)
