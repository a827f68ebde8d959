"""
Adventure graph

Nodes of narrative text joined by choices. A choice either jumps to another
node or carries a skill check whose outcome picks the node. Entering a combat
node starts combat; the engine routes back here on victory or defeat.
"""
from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, model_validator

from ..combat.combat_engine import CombatEngine
from ..combat.models.action import ActionResult, ActionType
from ..combat.models.combat_state import LogType
from ..combat.rules import PLAYER_ID

logger = logging.getLogger(__name__)


class NodeType(str, Enum):
    NARRATIVE = "narrative"
    COMBAT = "combat"


class SkillCheck(BaseModel):
    """Check attached to a choice; `stat` is an ability key or a skill name."""

    stat: str
    dc: int = Field(ge=1)
    success: str
    failure: str


class Choice(BaseModel):
    label: str
    target: Optional[str] = None
    check: Optional[SkillCheck] = None

    @model_validator(mode="after")
    def _needs_destination(self) -> "Choice":
        if not self.target and not self.check:
            raise ValueError(f"choice {self.label!r} needs a target or a check")
        return self


class AdventureNode(BaseModel):
    id: str
    title: Optional[str] = None
    text: str = ""
    type: NodeType = NodeType.NARRATIVE

    # Combat nodes only
    enemies: List[Union[str, Dict[str, Any]]] = Field(default_factory=list)
    on_victory: Optional[str] = None
    on_defeat: Optional[str] = None

    choices: List[Choice] = Field(default_factory=list)


class Adventure(BaseModel):
    title: str = "Adventure"
    start: str
    nodes: Dict[str, AdventureNode] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _index_nodes(cls, data: Any) -> Any:
        """Accept nodes as a list of records or an object keyed by id."""
        if isinstance(data, dict):
            nodes = data.get("nodes")
            if isinstance(nodes, list):
                data = {**data, "nodes": {node["id"]: node for node in nodes}}
            elif isinstance(nodes, dict):
                data = {
                    **data,
                    "nodes": {key: {"id": key, **node} for key, node in nodes.items()},
                }
        return data

    def get_node(self, node_id: Optional[str]) -> Optional[AdventureNode]:
        if not node_id:
            return None
        return self.nodes.get(node_id)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "Adventure":
        """Load an adventure from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            return cls.model_validate(json.load(f))


class AdventureRunner:
    """
    Narrative router.

    Tracks the current node and drives the engine: combat nodes start combat,
    check choices open skill-check rolls. Installs itself as the engine's
    router so combat outcomes and checks land back on a node.
    """

    def __init__(self, adventure: Adventure, engine: CombatEngine):
        self.adventure = adventure
        self.engine = engine
        self.current_node_id: Optional[str] = None
        engine.router = self.set_current_node

    @property
    def current_node(self) -> Optional[AdventureNode]:
        return self.adventure.get_node(self.current_node_id)

    def start(self) -> bool:
        return self.set_current_node(self.adventure.start)

    def set_current_node(self, node_id: str) -> bool:
        """
        Move to a node.

        Returns:
            bool: False when the node does not exist (state is unchanged)
        """
        node = self.adventure.get_node(node_id)
        if node is None:
            logger.error("Adventure node not found: %s", node_id)
            self.engine.add_log(f"The path to '{node_id}' leads nowhere.", LogType.SYSTEM)
            return False

        self.current_node_id = node.id
        logger.info("entered node %s (%s)", node.id, node.type.value)
        if node.text:
            self.engine.add_log(node.text, LogType.NARRATIVE, title=node.title)

        if node.type == NodeType.COMBAT:
            self.engine.start_combat(
                node.enemies,
                on_victory=node.on_victory,
                on_defeat=node.on_defeat,
            )
        return True

    @property
    def choices(self) -> List[Choice]:
        """Choices open to the player right now (none during combat or a pending roll)."""
        node = self.current_node
        if node is None or self.engine.combat.active or self.engine.pending_roll:
            return []
        return list(node.choices)

    def choose(self, index: int) -> ActionResult:
        """Take the choice at `index` of `choices`."""
        choices = self.choices
        if not 0 <= index < len(choices):
            result = ActionResult(action_type=ActionType.CHOICE, actor_id=PLAYER_ID)
            self.engine.add_log("That choice is not available.", LogType.SYSTEM)
            return result.reject("That choice is not available.")

        choice = choices[index]
        if choice.check:
            check = choice.check
            return self.engine.request_skill_check(
                check.stat,
                check.dc,
                check.success,
                check.failure,
                label=choice.label,
            )

        result = ActionResult(action_type=ActionType.CHOICE, actor_id=PLAYER_ID)
        if not self.set_current_node(choice.target):
            return result.reject(f"The path to '{choice.target}' leads nowhere.")
        result.add_message(choice.label)
        return result

    def to_dict(self) -> Dict[str, Any]:
        return {"current_node_id": self.current_node_id}

    def restore(self, data: Dict[str, Any]) -> None:
        """Restore position without re-entering the node."""
        self.current_node_id = data.get("current_node_id")
