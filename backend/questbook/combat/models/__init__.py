"""Data models for the combat system."""

from .combatant import Combatant, CombatantAttack, CombatantType
from .pending_roll import (
    AttackRoll,
    DamageRoll,
    HealRoll,
    InitiativeRoll,
    PendingRoll,
    PendingRollType,
    SkillCheckRoll,
    pending_roll_from_dict,
)
from .combat_state import CombatEndReason, CombatPhase, CombatState, GameMode, LogEntry, LogType
from .action import ActionResult, ActionType

__all__ = [
    "Combatant",
    "CombatantAttack",
    "CombatantType",
    "PendingRoll",
    "PendingRollType",
    "InitiativeRoll",
    "AttackRoll",
    "DamageRoll",
    "HealRoll",
    "SkillCheckRoll",
    "pending_roll_from_dict",
    "CombatState",
    "CombatPhase",
    "CombatEndReason",
    "GameMode",
    "LogEntry",
    "LogType",
    "ActionResult",
    "ActionType",
]
