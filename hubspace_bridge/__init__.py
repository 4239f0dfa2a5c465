"""
Hubspace Bridge - Cloud device capability resolution and sync.

Discovers the devices of a Hubspace (Afero cloud) account, maps their
loosely typed function schema onto typed capabilities, and keeps a local
accessory registry in sync with the cloud device graph.

Example:
    >>> from hubspace_bridge import Config, TokenManager, HubspaceClient, DiscoveryService
    >>> config = Config.load()
    >>> client = HubspaceClient.from_config(config, TokenManager.from_config(config))
    >>> service = DiscoveryService.from_config(config, client)
    >>> result = await service.run_cycle()
"""

__version__ = "0.1.0"

from .config import Config, get_config
from .auth.tokens import TokenManager
from .api.client import HubspaceClient
from .devices.models import Capability, DeviceNode
from .devices.control import DeviceControl
from .registry.accessories import AccessoryRegistry
from .discovery.reconcile import DiscoveryService

__all__ = [
    "__version__",
    "Config",
    "get_config",
    "TokenManager",
    "HubspaceClient",
    "Capability",
    "DeviceNode",
    "DeviceControl",
    "AccessoryRegistry",
    "DiscoveryService",
]
