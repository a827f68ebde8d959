"""
Combatant model
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..dice import DEFAULT_FORMULA, DiceFormula
from ..rules import modifier_from_stats


class CombatantType(str, Enum):
    """Side of a combatant"""

    PLAYER = "player"
    ENEMY = "enemy"


@dataclass
class CombatantAttack:
    """One attack from a monster's stat block, formula already parsed."""

    name: str
    bonus: int
    damage: DiceFormula

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "bonus": self.bonus, "damage": self.damage.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CombatantAttack":
        return cls(
            name=data["name"],
            bonus=int(data["bonus"]),
            damage=DiceFormula.from_dict(data["damage"]),
        )


@dataclass
class Combatant:
    """
    A participant in combat.

    Invariants:
    - current_hp stays within [0, max_hp]
    - is_dead is True exactly when current_hp == 0
    """

    # ===== Identity =====
    id: str
    name: str
    combatant_type: CombatantType

    # ===== Hit points =====
    current_hp: int
    max_hp: int

    # ===== Defense =====
    armor_class: int

    # ===== Initiative =====
    initiative_bonus: int = 0
    initiative_score: int = 0

    # ===== Offense =====
    attack_bonus: int = 0
    damage: DiceFormula = DEFAULT_FORMULA
    attacks: List[CombatantAttack] = field(default_factory=list)

    # ===== Ability scores (saving throws) =====
    abilities: Dict[str, int] = field(default_factory=dict)

    # Content id this combatant was cloned from (monster id for enemies)
    source_id: Optional[str] = None

    is_dead: bool = False

    def __post_init__(self):
        self.max_hp = max(1, self.max_hp)
        self.current_hp = min(max(self.current_hp, 0), self.max_hp)
        self.is_dead = self.current_hp == 0

    def is_player(self) -> bool:
        return self.combatant_type == CombatantType.PLAYER

    def is_enemy(self) -> bool:
        return self.combatant_type == CombatantType.ENEMY

    def take_damage(self, amount: int) -> int:
        """
        Subtract damage, flooring HP at 0.

        Returns:
            int: damage actually removed
        """
        actual_damage = min(max(amount, 0), self.current_hp)
        self.current_hp -= actual_damage
        if self.current_hp == 0:
            self.is_dead = True
        return actual_damage

    def heal(self, amount: int) -> int:
        """
        Restore HP, capped at max_hp.

        Returns:
            int: HP actually restored
        """
        actual_heal = min(max(amount, 0), self.max_hp - self.current_hp)
        self.current_hp += actual_heal
        if self.current_hp > 0:
            self.is_dead = False
        return actual_heal

    def ability_modifier(self, ability: str) -> int:
        return modifier_from_stats(self.abilities, ability)

    def attack_for_round(self, round_number: int) -> CombatantAttack:
        """Attack used this round: cycles through the stat block's attacks."""
        if self.attacks:
            return self.attacks[(round_number - 1) % len(self.attacks)]
        return CombatantAttack(name="attack", bonus=self.attack_bonus, damage=self.damage)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.combatant_type.value,
            "current_hp": self.current_hp,
            "max_hp": self.max_hp,
            "armor_class": self.armor_class,
            "initiative_bonus": self.initiative_bonus,
            "initiative_score": self.initiative_score,
            "attack_bonus": self.attack_bonus,
            "damage": self.damage.to_dict(),
            "attacks": [attack.to_dict() for attack in self.attacks],
            "abilities": dict(self.abilities),
            "source_id": self.source_id,
            "is_dead": self.is_dead,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Combatant":
        return cls(
            id=data["id"],
            name=data["name"],
            combatant_type=CombatantType(data["type"]),
            current_hp=int(data["current_hp"]),
            max_hp=int(data["max_hp"]),
            armor_class=int(data["armor_class"]),
            initiative_bonus=int(data.get("initiative_bonus", 0)),
            initiative_score=int(data.get("initiative_score", 0)),
            attack_bonus=int(data.get("attack_bonus", 0)),
            damage=DiceFormula.from_dict(data["damage"]) if data.get("damage") else DEFAULT_FORMULA,
            attacks=[CombatantAttack.from_dict(a) for a in data.get("attacks", [])],
            abilities=dict(data.get("abilities") or {}),
            source_id=data.get("source_id"),
        )
