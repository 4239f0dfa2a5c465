"""Accessory registry module."""
from .accessories import (
    AccessoryRecord,
    AccessoryRegistry,
    accessory_id_for,
)

__all__ = [
    "AccessoryRecord",
    "AccessoryRegistry",
    "accessory_id_for",
]
