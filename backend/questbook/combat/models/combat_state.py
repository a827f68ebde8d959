"""
Combat state and adventure log models
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .combatant import Combatant, CombatantType


class CombatPhase(str, Enum):
    """Lifecycle of one combat"""

    IDLE = "idle"  # no combat
    INITIATIVE_PENDING = "initiative_pending"  # enemies rolled, waiting on the player
    ACTIVE = "active"  # turn order fixed
    ENDED = "ended"  # victory or defeat


class CombatEndReason(str, Enum):
    VICTORY = "victory"
    DEFEAT = "defeat"


class GameMode(str, Enum):
    NARRATIVE = "narrative"
    COMBAT = "combat"


class LogType(str, Enum):
    NARRATIVE = "narrative"
    COMBAT = "combat"
    SYSTEM = "system"


@dataclass
class LogEntry:
    """One line of the user-facing adventure log"""

    id: int
    text: str
    type: LogType = LogType.SYSTEM
    title: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "text": self.text, "type": self.type.value, "title": self.title}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogEntry":
        return cls(
            id=int(data["id"]),
            text=data["text"],
            type=LogType(data.get("type", LogType.SYSTEM.value)),
            title=data.get("title"),
        )


@dataclass
class CombatState:
    """
    State of the single active combat.

    Owned by the engine; the turn order is fixed once the player's initiative
    resolves.
    """

    active: bool = False
    phase: CombatPhase = CombatPhase.IDLE
    round: int = 1

    turn_order: List[Combatant] = field(default_factory=list)
    current_turn_index: int = 0

    # Narrative node ids to route to when combat ends
    on_victory: Optional[str] = None
    on_defeat: Optional[str] = None

    end_reason: Optional[CombatEndReason] = None

    # ===== Lookups =====

    def get_combatant(self, combatant_id: Optional[str]) -> Optional[Combatant]:
        for combatant in self.turn_order:
            if combatant.id == combatant_id:
                return combatant
        return None

    def current_combatant(self) -> Optional[Combatant]:
        if not self.turn_order or self.phase != CombatPhase.ACTIVE:
            return None
        return self.turn_order[self.current_turn_index]

    def get_player(self) -> Optional[Combatant]:
        for combatant in self.turn_order:
            if combatant.combatant_type == CombatantType.PLAYER:
                return combatant
        return None

    def enemies(self) -> List[Combatant]:
        return [c for c in self.turn_order if c.is_enemy()]

    def living_enemies(self) -> List[Combatant]:
        return [c for c in self.enemies() if not c.is_dead]

    def all_enemies_dead(self) -> bool:
        enemies = self.enemies()
        return bool(enemies) and all(c.is_dead for c in enemies)

    def is_players_turn(self) -> bool:
        current = self.current_combatant()
        return bool(self.active and current and current.is_player())

    # ===== Turn order =====

    def sort_turn_order(self) -> None:
        """Descending by initiative; ties keep insertion order (list.sort is stable)."""
        self.turn_order.sort(key=lambda combatant: combatant.initiative_score, reverse=True)

    def advance_turn(self) -> Optional[Combatant]:
        """
        Move to the next living combatant.

        The round counter goes up each time the index wraps to 0. Dead
        combatants are skipped.

        Returns:
            Optional[Combatant]: the new current combatant, or None when no
            combatant is alive (state is left unchanged)
        """
        count = len(self.turn_order)
        if not count:
            return None

        index = self.current_turn_index
        round_number = self.round
        for _ in range(count):
            index = (index + 1) % count
            if index == 0:
                round_number += 1
            candidate = self.turn_order[index]
            if not candidate.is_dead:
                self.current_turn_index = index
                self.round = round_number
                return candidate
        return None

    # ===== Serialization =====

    def to_dict(self) -> Dict[str, Any]:
        return {
            "active": self.active,
            "phase": self.phase.value,
            "round": self.round,
            "turn_order": [c.to_dict() for c in self.turn_order],
            "current_turn_index": self.current_turn_index,
            "on_victory": self.on_victory,
            "on_defeat": self.on_defeat,
            "end_reason": self.end_reason.value if self.end_reason else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CombatState":
        return cls(
            active=bool(data["active"]),
            phase=CombatPhase(data["phase"]),
            round=int(data["round"]),
            turn_order=[Combatant.from_dict(c) for c in data.get("turn_order", [])],
            current_turn_index=int(data.get("current_turn_index", 0)),
            on_victory=data.get("on_victory"),
            on_defeat=data.get("on_defeat"),
            end_reason=CombatEndReason(data["end_reason"]) if data.get("end_reason") else None,
        )
