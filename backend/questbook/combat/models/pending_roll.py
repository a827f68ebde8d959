"""
Pending roll

A request for one externally supplied die result. Exactly one variant per
kind of check; the engine holds at most one at a time.
"""
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Type

from ..dice import DiceFormula


class PendingRollType(str, Enum):
    """Kind of pending roll"""

    INITIATIVE = "initiative"
    ATTACK = "attack"
    DAMAGE = "damage"
    HEAL = "heal"
    SKILL_CHECK = "skill_check"


@dataclass(frozen=True)
class PendingRoll:
    """Common payload: which die to roll, the fixed modifier, and why."""

    kind: ClassVar[PendingRollType]

    die_sides: int
    modifier: int
    label: str

    def describe(self) -> str:
        """Prompt text, e.g. "Attack roll vs Goblin: roll a d20 (+5)"."""
        sign = "+" if self.modifier >= 0 else "-"
        return f"{self.label}: roll a d{self.die_sides} ({sign}{abs(self.modifier)})"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind.value}
        for item in fields(self):
            value = getattr(self, item.name)
            data[item.name] = value.to_dict() if isinstance(value, DiceFormula) else value
        return data


@dataclass(frozen=True)
class InitiativeRoll(PendingRoll):
    kind: ClassVar[PendingRollType] = PendingRollType.INITIATIVE


@dataclass(frozen=True)
class AttackRoll(PendingRoll):
    """To-hit roll; carries the damage that follows a hit."""

    kind: ClassVar[PendingRollType] = PendingRollType.ATTACK

    target_id: str
    damage: DiceFormula
    spell_id: Optional[str] = None


@dataclass(frozen=True)
class DamageRoll(PendingRoll):
    """First damage die; the remaining dice_count * multiplier - 1 are rolled internally."""

    kind: ClassVar[PendingRollType] = PendingRollType.DAMAGE

    target_id: str
    dice_count: int
    multiplier: int = 1
    spell_id: Optional[str] = None

    @property
    def total_dice(self) -> int:
        return self.dice_count * self.multiplier


@dataclass(frozen=True)
class HealRoll(PendingRoll):
    kind: ClassVar[PendingRollType] = PendingRollType.HEAL

    target_id: str
    dice_count: int
    multiplier: int = 1
    source_id: Optional[str] = None

    @property
    def total_dice(self) -> int:
        return self.dice_count * self.multiplier


@dataclass(frozen=True)
class SkillCheckRoll(PendingRoll):
    kind: ClassVar[PendingRollType] = PendingRollType.SKILL_CHECK

    ability: str
    dc: int
    success_node: str
    failure_node: str


_VARIANTS: Dict[PendingRollType, Type[PendingRoll]] = {
    variant.kind: variant
    for variant in (InitiativeRoll, AttackRoll, DamageRoll, HealRoll, SkillCheckRoll)
}


def pending_roll_from_dict(data: Optional[Dict[str, Any]]) -> Optional[PendingRoll]:
    """Rebuild a pending roll from `PendingRoll.to_dict()` output."""
    if not data:
        return None
    variant = _VARIANTS[PendingRollType(data["kind"])]
    kwargs: Dict[str, Any] = {}
    for item in fields(variant):
        if item.name not in data:
            continue
        value = data[item.name]
        if item.name == "damage":
            value = DiceFormula.from_dict(value)
        kwargs[item.name] = value
    return variant(**kwargs)


__all__ = [
    "PendingRollType",
    "PendingRoll",
    "InitiativeRoll",
    "AttackRoll",
    "DamageRoll",
    "HealRoll",
    "SkillCheckRoll",
    "pending_roll_from_dict",
]
