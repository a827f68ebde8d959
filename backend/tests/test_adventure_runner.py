from typing import List, Optional

import pytest
from pydantic import ValidationError

from questbook.combat.combat_engine import CombatEngine
from questbook.combat.content import ContentLookup
from questbook.combat.dice import DiceSource
from questbook.combat.models.combat_state import CombatEndReason, GameMode, LogType
from questbook.combat.models.pending_roll import SkillCheckRoll
from questbook.combat.scheduler import ManualScheduler
from questbook.models.character import Character, Equipment
from questbook.narrative import Adventure, AdventureRunner, Choice


class _ScriptedDice(DiceSource):
    def __init__(self, values: Optional[List[int]] = None):
        super().__init__()
        self.values = list(values or [])

    def roll(self, sides: int) -> int:
        if not self.values:
            raise AssertionError(f"unexpected d{sides} roll")
        return self.values.pop(0)


ADVENTURE = {
    "title": "Test Cave",
    "start": "entrance",
    "nodes": [
        {
            "id": "entrance",
            "title": "Entrance",
            "text": "A dark cave.",
            "choices": [
                {"label": "Walk in", "target": "hall"},
                {"label": "Sneak in", "check": {"stat": "stealth", "dc": 12, "success": "hall", "failure": "fight"}},
                {"label": "Fall in a hole", "target": "nowhere"},
            ],
        },
        {"id": "hall", "text": "An empty hall."},
        {
            "id": "fight",
            "type": "combat",
            "text": "A goblin attacks!",
            "enemies": ["goblin"],
            "on_victory": "hall",
            "on_defeat": "entrance",
        },
    ],
}


def _runner(dice_values=None):
    content = ContentLookup(
        items=[{"id": "longsword", "name": "Longsword", "damage": "1d8"}],
        monsters=[{"id": "goblin", "name": "Goblin", "hp": 7, "ac": 13, "attack_bonus": 4, "damage": "1d6+2"}],
    )
    engine = CombatEngine(
        content,
        character=Character(equipment=Equipment(main_hand="longsword")),
        dice=_ScriptedDice(dice_values),
        scheduler=ManualScheduler(),
        enemy_turn_delay=0,
    )
    return AdventureRunner(Adventure.model_validate(ADVENTURE), engine), engine


def test_start_enters_start_node_and_logs_text():
    runner, engine = _runner()

    assert runner.start()

    assert runner.current_node_id == "entrance"
    assert engine.log[-1].text == "A dark cave."
    assert engine.log[-1].type == LogType.NARRATIVE
    assert engine.log[-1].title == "Entrance"
    assert [choice.label for choice in runner.choices] == ["Walk in", "Sneak in", "Fall in a hole"]


def test_plain_choice_jumps_to_target():
    runner, _ = _runner()
    runner.start()

    assert runner.choose(0)
    assert runner.current_node_id == "hall"


def test_missing_node_leaves_state_unchanged(caplog):
    runner, engine = _runner()
    runner.start()

    with caplog.at_level("ERROR"):
        result = runner.choose(2)

    assert not result.success
    assert runner.current_node_id == "entrance"
    assert "nowhere" in caplog.text
    assert engine.log[-1].type == LogType.SYSTEM


def test_invalid_choice_index_is_rejected():
    runner, _ = _runner()
    runner.start()

    assert not runner.choose(5)
    assert not runner.choose(-1)


def test_check_choice_opens_skill_check_and_routes_on_success():
    runner, engine = _runner()
    runner.start()

    runner.choose(1)
    assert isinstance(engine.pending_roll, SkillCheckRoll)
    assert runner.choices == []

    engine.resolve_dice_roll(20, 15)

    assert runner.current_node_id == "hall"


def test_failed_check_routes_into_combat_and_back():
    runner, engine = _runner([9])
    runner.start()
    runner.choose(1)

    engine.resolve_dice_roll(20, 2)

    assert runner.current_node_id == "fight"
    assert engine.game_mode == GameMode.COMBAT
    assert runner.choices == []

    engine.resolve_dice_roll(20, 13)
    engine.initiate_player_attack()
    engine.resolve_dice_roll(20, 15)
    engine.resolve_dice_roll(8, 8)

    assert engine.combat.end_reason == CombatEndReason.VICTORY
    assert runner.current_node_id == "hall"
    assert engine.game_mode == GameMode.NARRATIVE


def test_runner_position_round_trips():
    runner, engine = _runner()
    runner.start()
    runner.choose(0)

    other, _ = _runner()
    other.restore(runner.to_dict())

    assert other.current_node_id == "hall"


def test_choice_needs_a_destination():
    with pytest.raises(ValidationError):
        Choice(label="Stand still")


def test_nodes_may_be_keyed_by_id():
    adventure = Adventure.model_validate(
        {"start": "a", "nodes": {"a": {"text": "A", "choices": [{"label": "go", "target": "b"}]}, "b": {}}}
    )

    assert adventure.get_node("b").id == "b"
    assert adventure.get_node("a").choices[0].target == "b"
