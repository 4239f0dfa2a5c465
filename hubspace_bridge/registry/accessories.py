"""
Accessory Registry - Tracks the accessories exposed for cloud devices.

Each accessory stores:
- A stable id derived from the vendor device id
- Its display name
- The mapped DeviceNode as context

Without a data directory the registry lives in memory only.
"""

import json
import logging
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..devices.models import DeviceNode

logger = logging.getLogger(__name__)

REGISTRY_VERSION = 1

# Namespace for accessory ids; changing it re-creates every accessory
ACCESSORY_NAMESPACE = uuid.UUID("6f1d0c6e-8a57-4d59-9d1a-3f4e8c2b7a10")


def accessory_id_for(node_id: str) -> str:
    """Deterministic accessory id for a device node id."""
    return str(uuid.uuid5(ACCESSORY_NAMESPACE, node_id))


@dataclass
class AccessoryRecord:
    """One registered accessory."""
    accessory_id: str
    display_name: str
    context: DeviceNode

    @classmethod
    def for_node(cls, node: DeviceNode) -> "AccessoryRecord":
        return cls(
            accessory_id=accessory_id_for(node.id),
            display_name=node.display_name,
            context=node,
        )

    def to_dict(self) -> dict:
        return {
            "accessory_id": self.accessory_id,
            "display_name": self.display_name,
            "context": self.context.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AccessoryRecord":
        return cls(
            accessory_id=data["accessory_id"],
            display_name=data.get("display_name", ""),
            context=DeviceNode.from_dict(data["context"]),
        )


class AccessoryRegistry:
    """
    Host registry of exposed accessories.

    Stored in ~/.hubspace/accessories.json when a data directory is given.
    """

    def __init__(self, data_dir: Optional[Union[str, Path]] = None):
        self.data_dir = Path(data_dir) if data_dir else None
        self.registry_file = self.data_dir / "accessories.json" if self.data_dir else None

        self._accessories: Dict[str, AccessoryRecord] = {}
        self._load()

    def _load(self):
        """Load registry from disk. A missing file is a first run."""
        if self.registry_file is None or not self.registry_file.exists():
            return

        try:
            with open(self.registry_file) as f:
                data = json.load(f)
            for accessory_id, record_data in data.get("accessories", {}).items():
                self._accessories[accessory_id] = AccessoryRecord.from_dict(record_data)
            logger.info(f"Loaded {len(self._accessories)} accessories from registry")
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"Failed to load accessory registry, starting empty: {e}")
            self._accessories = {}

    def _save(self):
        """Save registry to disk."""
        if self.registry_file is None:
            return

        data = {
            "version": REGISTRY_VERSION,
            "updated": time.time(),
            "accessories": {
                accessory_id: record.to_dict()
                for accessory_id, record in self._accessories.items()
            },
        }

        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            with open(self.registry_file, "w") as f:
                json.dump(data, f, indent=2)
            logger.debug(f"Saved {len(self._accessories)} accessories to registry")
        except OSError as e:
            logger.error(f"Failed to save accessory registry: {e}")

    def all(self) -> List[AccessoryRecord]:
        return list(self._accessories.values())

    def get(self, accessory_id: str) -> Optional[AccessoryRecord]:
        return self._accessories.get(accessory_id)

    def __contains__(self, accessory_id: str) -> bool:
        return accessory_id in self._accessories

    def __len__(self) -> int:
        return len(self._accessories)

    def register(self, record: AccessoryRecord):
        """Add a new accessory."""
        self._accessories[record.accessory_id] = record
        logger.info(f"Registered accessory: {record.display_name} ({record.accessory_id[:8]}...)")
        self._save()

    def update(self, record: AccessoryRecord):
        """Replace an existing accessory's context."""
        self._accessories[record.accessory_id] = record
        logger.debug(f"Updated accessory: {record.display_name}")
        self._save()

    def unregister(self, record: AccessoryRecord):
        """Remove an accessory."""
        if self._accessories.pop(record.accessory_id, None) is not None:
            logger.info(f"Unregistered accessory: {record.display_name} ({record.accessory_id[:8]}...)")
            self._save()
