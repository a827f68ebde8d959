"""
Combat rules (simplified 5e)

Constants and small rule functions shared by the engine and the AI.
"""
from typing import Dict, Iterable, Optional


# ============================================
# Constants
# ============================================

PLAYER_ID = "player"

D20 = 20

CRITICAL_HIT_ROLL = 20
CRITICAL_DAMAGE_MULTIPLIER = 2

# Base of spell save DCs: 8 + proficiency + spellcasting modifier
SPELL_SAVE_DC_BASE = 8

DEFAULT_SAVE_ABILITY = "dex"

SPELLCASTING_ABILITIES = ("int", "wis", "cha")

ABILITY_ALIASES: Dict[str, str] = {
    "strength": "str",
    "dexterity": "dex",
    "constitution": "con",
    "intelligence": "int",
    "wisdom": "wis",
    "charisma": "cha",
}

# Skill -> governing ability, for skill checks labelled by skill name
SKILL_ABILITIES: Dict[str, str] = {
    "athletics": "str",
    "acrobatics": "dex",
    "sleight_of_hand": "dex",
    "stealth": "dex",
    "arcana": "int",
    "history": "int",
    "investigation": "int",
    "nature": "int",
    "religion": "int",
    "animal_handling": "wis",
    "insight": "wis",
    "medicine": "wis",
    "perception": "wis",
    "survival": "wis",
    "deception": "cha",
    "intimidation": "cha",
    "performance": "cha",
    "persuasion": "cha",
}


# ============================================
# Rule functions
# ============================================


def normalize_ability(ability: Optional[str], default: str = DEFAULT_SAVE_ABILITY) -> str:
    """Map "dexterity"/"DEX"/"dex" to the short key used in stat blocks."""
    if not ability:
        return default
    key = ability.strip().lower()
    return ABILITY_ALIASES.get(key, key)


def ability_modifier(score: int) -> int:
    """(score - 10) // 2"""
    return (score - 10) // 2


def modifier_from_stats(stats: Optional[Dict[str, int]], ability: str) -> int:
    """Ability modifier from a stat block; missing scores count as 10."""
    if not stats:
        return 0
    return ability_modifier(stats.get(normalize_ability(ability), 10))


def spellcasting_modifier(stats: Optional[Dict[str, int]]) -> int:
    """Highest of the three mental ability modifiers."""
    return max(modifier_from_stats(stats, ability) for ability in SPELLCASTING_ABILITIES)


def spell_save_dc(stats: Optional[Dict[str, int]], proficiency_bonus: int) -> int:
    return SPELL_SAVE_DC_BASE + proficiency_bonus + spellcasting_modifier(stats)


def weapon_ability(properties: Iterable[str], stats: Optional[Dict[str, int]]) -> str:
    """
    Ability used for a weapon attack.

    Ranged weapons use dexterity, finesse weapons the better of strength and
    dexterity, everything else strength.
    """
    props = {prop.lower() for prop in properties}
    if "ranged" in props:
        return "dex"
    if "finesse" in props:
        if modifier_from_stats(stats, "dex") > modifier_from_stats(stats, "str"):
            return "dex"
    return "str"


def calculate_hit_chance(attack_bonus: int, target_ac: int) -> float:
    """
    Probability that d20 + attack_bonus meets target_ac.

    Args:
        attack_bonus: attack modifier
        target_ac: armor class to beat

    Returns:
        float: hit probability in [0, 1]
    """
    required_roll = target_ac - attack_bonus
    if required_roll <= 1:
        return 1.0
    if required_roll > D20:
        return 0.0
    return (21 - required_roll) / 20
