"""Persistent game records."""

from .character import Character, Equipment, HitPoints, InventoryEntry

__all__ = ["Character", "Equipment", "HitPoints", "InventoryEntry"]
