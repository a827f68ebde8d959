import json
from typing import List, Optional

import pytest

from questbook.combat import combat_mcp_server
from questbook.combat.combat_engine import CombatEngine
from questbook.combat.content import ContentLookup
from questbook.combat.dice import DiceSource
from questbook.combat.scheduler import ManualScheduler
from questbook.models.character import Character, Equipment


class _ScriptedDice(DiceSource):
    def __init__(self, values: Optional[List[int]] = None):
        super().__init__()
        self.values = list(values or [])

    def roll(self, sides: int) -> int:
        if not self.values:
            raise AssertionError(f"unexpected d{sides} roll")
        return self.values.pop(0)


def _engine(dice_values=None) -> CombatEngine:
    content = ContentLookup(
        items=[{"id": "longsword", "name": "Longsword", "damage": "1d8"}],
        monsters=[{"id": "goblin", "name": "Goblin", "hp": 7, "ac": 13, "attack_bonus": 4, "damage": "1d6+2"}],
    )
    return CombatEngine(
        content,
        character=Character(equipment=Equipment(main_hand="longsword")),
        dice=_ScriptedDice(dice_values),
        scheduler=ManualScheduler(),
        enemy_turn_delay=0,
    )


@pytest.mark.asyncio
async def test_tools_drive_a_full_exchange(monkeypatch):
    monkeypatch.setattr(combat_mcp_server, "combat_engine", _engine([9, 10]))

    started = json.loads(await combat_mcp_server.start_combat(enemies=["goblin"]))
    assert started["success"] is True
    assert started["pending_roll"]["kind"] == "initiative"
    assert started["state"]["game_mode"] == "combat"

    rolled = json.loads(await combat_mcp_server.resolve_dice_roll(sides=20, value=13))
    assert rolled["state"]["current_turn"] == "player"

    attacked = json.loads(await combat_mcp_server.player_attack())
    assert attacked["pending_roll"]["kind"] == "attack"
    assert attacked["pending_roll"]["modifier"] == 5

    await combat_mcp_server.resolve_dice_roll(sides=20, value=18)
    damaged = json.loads(await combat_mcp_server.resolve_dice_roll(sides=8, value=3))
    assert damaged["state"]["current_turn"] == "goblin"
    assert damaged["state"]["enemy_turn_due"] is True

    advanced = json.loads(await combat_mcp_server.advance())
    assert advanced["enemy_turns"] == 1
    assert advanced["state"]["current_turn"] == "player"
    assert advanced["state"]["round"] == 2
    assert any("Miss!" in entry["text"] for entry in advanced["log"])


@pytest.mark.asyncio
async def test_wrong_die_is_reported_not_raised(monkeypatch):
    monkeypatch.setattr(combat_mcp_server, "combat_engine", _engine([9]))

    await combat_mcp_server.start_combat(enemies=["goblin"])
    payload = json.loads(await combat_mcp_server.resolve_dice_roll(sides=6, value=4))

    assert payload["success"] is False
    assert "Wrong die!" in payload["display_text"]
    assert payload["state"]["pending_roll"]["kind"] == "initiative"


@pytest.mark.asyncio
async def test_roll_pending_and_get_state(monkeypatch):
    engine = _engine([9, 12])
    monkeypatch.setattr(combat_mcp_server, "combat_engine", engine)

    await combat_mcp_server.start_combat(enemies=["goblin"], on_victory="win")
    await combat_mcp_server.roll_pending()
    state = json.loads(await combat_mcp_server.get_state())

    assert "log" not in state
    assert state["combat"]["phase"] == "active"
    assert state["combat"]["on_victory"] == "win"

    with_log = json.loads(await combat_mcp_server.get_state(include_log=True))
    assert with_log["log"][0]["type"] == "combat"


@pytest.mark.asyncio
async def test_long_rest_and_spell_rejections(monkeypatch):
    engine = _engine([9])
    engine.character.hp.current = 4
    monkeypatch.setattr(combat_mcp_server, "combat_engine", engine)

    rested = json.loads(await combat_mcp_server.long_rest())
    assert rested["success"] is True
    assert engine.character.hp.current == engine.character.hp.max

    await combat_mcp_server.start_combat(enemies=["goblin"])
    await combat_mcp_server.resolve_dice_roll(sides=20, value=13)
    cast = json.loads(await combat_mcp_server.cast_spell(spell_id="fireball"))
    assert cast["success"] is False
    item = json.loads(await combat_mcp_server.use_item(item_id="healing_potion"))
    assert item["success"] is False


@pytest.mark.asyncio
async def test_advance_counts_only_turns_an_enemy_took(monkeypatch):
    engine = _engine([5, 4, 2])
    monkeypatch.setattr(combat_mcp_server, "combat_engine", engine)

    await combat_mcp_server.start_combat(enemies=[{"id": "goblin", "count": 2}])
    await combat_mcp_server.resolve_dice_roll(sides=20, value=13)
    await combat_mcp_server.player_attack(target_id="goblin_2")
    missed = json.loads(await combat_mcp_server.resolve_dice_roll(sides=20, value=1))
    assert missed["state"]["current_turn"] == "goblin_1"

    engine.combat.get_combatant("goblin_1").take_damage(99)
    advanced = json.loads(await combat_mcp_server.advance())

    assert advanced["enemy_turns"] == 1
    assert advanced["state"]["current_turn"] == "player"
    assert advanced["state"]["round"] == 2
    assert engine.scheduler.pending == 0
