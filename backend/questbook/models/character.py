"""Persistent player character record."""
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class HitPoints(BaseModel):
    current: int
    max: int


class Equipment(BaseModel):
    main_hand: Optional[str] = None
    off_hand: Optional[str] = None
    body: Optional[str] = None


class InventoryEntry(BaseModel):
    id: str
    qty: int = 1


def _default_stats() -> Dict[str, int]:
    return {"str": 16, "dex": 14, "con": 14, "int": 10, "wis": 12, "cha": 10}


class Character(BaseModel):
    """
    Character sheet consumed by the combat engine.

    The engine snapshots it into a player combatant when combat starts and
    writes HP back as it changes.
    """

    name: str = "Hero"
    race: str = "Human"
    character_class: str = "Fighter"
    level: int = 1

    hp: HitPoints = Field(default_factory=lambda: HitPoints(current=12, max=12))
    armor_class: int = 16
    # Explicit initiative bonus; None means the dexterity modifier
    initiative: Optional[int] = None
    speed: int = 30
    proficiency_bonus: int = 2

    stats: Dict[str, int] = Field(default_factory=_default_stats)
    skills: List[str] = Field(default_factory=list)

    equipment: Equipment = Field(default_factory=Equipment)
    inventory: List[InventoryEntry] = Field(default_factory=list)

    # Spellcasting: spell level -> remaining / maximum uses
    spells: List[str] = Field(default_factory=list)
    spell_slots: Dict[int, int] = Field(default_factory=dict)
    max_spell_slots: Dict[int, int] = Field(default_factory=dict)

    def ability_modifier(self, ability: str) -> int:
        """Calculate ability modifier: (score - 10) // 2"""
        score = self.stats.get(ability, 10)
        return (score - 10) // 2

    @property
    def initiative_bonus(self) -> int:
        if self.initiative is not None:
            return self.initiative
        return self.ability_modifier("dex")

    def is_proficient(self, skill: Optional[str]) -> bool:
        if not skill:
            return False
        key = skill.strip().lower().replace(" ", "_")
        return key in {s.lower().replace(" ", "_") for s in self.skills}

    def item_quantity(self, item_id: str) -> int:
        return sum(entry.qty for entry in self.inventory if entry.id == item_id)

    def remove_item(self, item_id: str, quantity: int = 1) -> bool:
        """Remove item from inventory. Returns True if successful."""
        for index, entry in enumerate(self.inventory):
            if entry.id != item_id:
                continue
            if entry.qty < quantity:
                return False
            entry.qty -= quantity
            if entry.qty == 0:
                self.inventory.pop(index)
            return True
        return False

    def set_current_hp(self, value: int) -> None:
        self.hp.current = min(max(value, 0), self.hp.max)

    def slots_remaining(self, level: int) -> int:
        return self.spell_slots.get(level, 0)

