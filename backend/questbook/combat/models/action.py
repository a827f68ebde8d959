"""
Command result model
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .pending_roll import PendingRoll


class ActionType(str, Enum):
    """Command or resolution step that produced a result"""

    START_COMBAT = "start_combat"
    ATTACK = "attack"
    SPELL = "spell"
    USE_ITEM = "use_item"
    ROLL = "roll"
    ENEMY_TURN = "enemy_turn"
    LONG_REST = "long_rest"
    SKILL_CHECK = "skill_check"
    CHOICE = "choice"


@dataclass
class ActionResult:
    """
    Outcome of one engine command.

    success is False when the command was rejected (wrong turn, wrong die,
    missing slot...). A lost action (target gone) is also
    unsuccessful but still ends the turn.
    """

    action_type: ActionType
    actor_id: Optional[str] = None
    target_id: Optional[str] = None

    success: bool = True

    # Roll opened by this command, if any
    pending_roll: Optional[PendingRoll] = None

    messages: List[str] = field(default_factory=list)

    def add_message(self, message: str):
        self.messages.append(message)

    def reject(self, message: str) -> "ActionResult":
        self.success = False
        self.add_message(message)
        return self

    def __bool__(self) -> bool:
        return self.success

    def to_display_text(self) -> str:
        return "\n".join(self.messages)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.action_type.value,
            "actor": self.actor_id,
            "target": self.target_id,
            "success": self.success,
            "pending_roll": self.pending_roll.to_dict() if self.pending_roll else None,
            "display_text": self.to_display_text(),
        }
