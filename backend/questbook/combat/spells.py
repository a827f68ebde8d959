"""Spellcasting helpers: cast requests and slot accounting."""
from dataclasses import dataclass
from typing import Dict, Optional

from .content import SpellRecord


@dataclass(frozen=True)
class SpellCastRequest:
    """One cast; lives only for the duration of the cast command."""

    spell_id: str
    caster_slot_level: int
    target_id: Optional[str]


def build_cast_request(
    spell: SpellRecord, target_id: Optional[str], slot_level: Optional[int] = None
) -> SpellCastRequest:
    """Cantrips always cast at level 0; leveled spells never below their own level."""
    if spell.level == 0:
        level = 0
    else:
        level = max(spell.level, slot_level or spell.level)
    return SpellCastRequest(spell_id=spell.id, caster_slot_level=level, target_id=target_id)


def has_slot(spell_slots: Dict[int, int], level: int) -> bool:
    if level == 0:
        return True
    return spell_slots.get(level, 0) > 0


def consume_slot(spell_slots: Dict[int, int], level: int) -> None:
    if level == 0:
        return
    spell_slots[level] = spell_slots.get(level, 0) - 1
