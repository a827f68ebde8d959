from typing import List, Optional

from questbook.combat.combat_engine import CombatEngine
from questbook.combat.content import ContentLookup
from questbook.combat.dice import DiceFormula, DiceSource
from questbook.combat.models.pending_roll import AttackRoll, DamageRoll, HealRoll, SkillCheckRoll
from questbook.combat.scheduler import ManualScheduler
from questbook.models.character import Character, Equipment, HitPoints, InventoryEntry


class _ScriptedDice(DiceSource):
    def __init__(self, values: Optional[List[int]] = None):
        super().__init__()
        self.values = list(values or [])

    def roll(self, sides: int) -> int:
        if not self.values:
            raise AssertionError(f"unexpected d{sides} roll")
        return self.values.pop(0)


class _RecordingRouter:
    def __init__(self):
        self.nodes: List[str] = []

    def __call__(self, node_id: str) -> None:
        self.nodes.append(node_id)


def _content() -> ContentLookup:
    return ContentLookup(
        items={
            "longsword": {"name": "Longsword", "damage": "1d8"},
            "healing_potion": {"name": "Potion of Healing", "healing": "2d4+2"},
            "torch": {"name": "Torch"},
        },
        spells=[
            {"id": "fire_bolt", "name": "Fire Bolt", "level": 0, "effect": "attack", "damage": "1d10"},
            {"id": "sacred_flame", "name": "Sacred Flame", "level": 0, "effect": "save", "damage": "1d8"},
            {"id": "guiding_bolt", "name": "Guiding Bolt", "level": 1, "effect": "attack", "damage": "4d6"},
            {"id": "cure_wounds", "name": "Cure Wounds", "level": 1, "effect": "heal", "healing": "1d8+3"},
            {"id": "bless", "name": "Bless", "level": 1, "effect": "buff", "description": "You feel blessed."},
        ],
        monsters=[
            {"id": "goblin", "name": "Goblin", "hp": 7, "ac": 13, "attack_bonus": 4, "damage": "1d6+2",
             "stats": {"dex": 14}},
        ],
    )


def _caster(hp: int = 12, slots=None) -> Character:
    slots = {1: 2} if slots is None else slots
    return Character(
        name="Cleric",
        hp=HitPoints(current=hp, max=12),
        stats={"str": 16, "dex": 14, "con": 14, "int": 10, "wis": 12, "cha": 10},
        skills=["stealth"],
        equipment=Equipment(main_hand="longsword"),
        inventory=[InventoryEntry(id="healing_potion", qty=1), InventoryEntry(id="torch")],
        spells=["fire_bolt", "sacred_flame", "guiding_bolt", "cure_wounds", "bless"],
        spell_slots=dict(slots),
        max_spell_slots={1: 2, 2: 1},
    )


def _engine(dice_values=None, hp: int = 12, slots=None):
    router = _RecordingRouter()
    dice = _ScriptedDice(dice_values)
    engine = CombatEngine(
        _content(),
        character=_caster(hp, slots),
        router=router,
        dice=dice,
        scheduler=ManualScheduler(),
        enemy_turn_delay=0,
    )
    return engine, dice, router


def _players_turn(engine: CombatEngine) -> None:
    """Start a fight where the goblin rolled 9 and the player wins initiative."""
    engine.start_combat(["goblin"], on_victory="win", on_defeat="lose")
    engine.resolve_dice_roll(20, 13)
    assert engine.combat.is_players_turn()


def test_no_slot_rejects_without_consuming_turn():
    engine, _, _ = _engine([9], slots={1: 0})
    _players_turn(engine)

    result = engine.cast_spell("goblin", "guiding_bolt")

    assert not result.success
    assert result.messages == ["Not enough level 1 spell slots!"]
    assert engine.log[-1].text == "Not enough level 1 spell slots!"
    assert engine.character.spell_slots[1] == 0
    assert engine.combat.is_players_turn()
    assert engine.pending_roll is None


def test_unknown_spell_is_rejected():
    engine, _, _ = _engine([9])
    _players_turn(engine)

    assert not engine.cast_spell("goblin", "wish")
    assert engine.combat.is_players_turn()


def test_spell_the_character_does_not_know_is_rejected():
    engine, _, _ = _engine([9])
    _players_turn(engine)
    engine.character.spells.remove("guiding_bolt")

    result = engine.cast_spell("goblin", "guiding_bolt")

    assert not result.success
    assert result.messages == ["You don't know Guiding Bolt."]
    assert engine.character.spell_slots == {1: 2}
    assert engine.combat.is_players_turn()
    assert engine.pending_roll is None


def test_attack_cantrip_uses_spell_attack_modifier_and_no_slot():
    engine, _, _ = _engine([9])
    _players_turn(engine)

    engine.cast_spell("goblin", "fire_bolt")

    roll = engine.pending_roll
    assert isinstance(roll, AttackRoll)
    assert roll.modifier == 3
    assert roll.spell_id == "fire_bolt"
    assert roll.damage == DiceFormula(1, 10, 0)
    assert engine.character.spell_slots == {1: 2}


def test_leveled_attack_spell_consumes_slot_then_hits():
    engine, dice, _ = _engine([9, 2, 2, 2])
    _players_turn(engine)

    engine.cast_spell(None, "guiding_bolt")
    assert engine.character.spell_slots[1] == 1
    engine.resolve_dice_roll(20, 12)

    damage = engine.pending_roll
    assert isinstance(damage, DamageRoll)
    assert damage.dice_count == 4
    assert damage.spell_id == "guiding_bolt"

    engine.resolve_dice_roll(6, 1)
    assert engine.combat.get_combatant("goblin").is_dead
    assert dice.values == []


def test_upcast_spends_the_higher_slot():
    engine, _, _ = _engine([9], slots={1: 1, 2: 1})
    _players_turn(engine)

    engine.cast_spell("goblin", "guiding_bolt", slot_level=2)

    assert engine.character.spell_slots == {1: 1, 2: 0}


def test_failed_save_opens_damage_roll():
    # goblin save: 5 + 2 = 7 vs DC 11
    engine, _, _ = _engine([9, 5])
    _players_turn(engine)

    engine.cast_spell("goblin", "sacred_flame")

    roll = engine.pending_roll
    assert isinstance(roll, DamageRoll)
    assert (roll.die_sides, roll.modifier, roll.dice_count) == (8, 0, 1)
    assert any("DC 11" in entry.text for entry in engine.log)

    engine.resolve_dice_roll(8, 5)
    assert engine.combat.get_combatant("goblin").current_hp == 2


def test_successful_save_takes_no_damage_and_ends_turn():
    engine, _, _ = _engine([9, 15])
    _players_turn(engine)

    engine.cast_spell("goblin", "sacred_flame")

    assert engine.pending_roll is None
    assert engine.combat.get_combatant("goblin").current_hp == 7
    assert engine.current_combatant().id == "goblin"
    assert any("resists Sacred Flame" in entry.text for entry in engine.log)


def test_heal_spell_caps_at_max_hp():
    engine, _, _ = _engine([9], hp=10)
    _players_turn(engine)

    engine.cast_spell(None, "cure_wounds")
    roll = engine.pending_roll
    assert isinstance(roll, HealRoll)
    assert roll.target_id == "player"
    assert engine.character.spell_slots[1] == 1

    engine.resolve_dice_roll(8, 6)

    assert engine.combat.get_player().current_hp == 12
    assert engine.character.hp.current == 12
    assert engine.current_combatant().id == "goblin"


def test_buff_spell_logs_and_advances():
    engine, _, _ = _engine([9])
    _players_turn(engine)

    result = engine.cast_spell(None, "bless")

    assert result.success
    assert engine.pending_roll is None
    assert engine.character.spell_slots[1] == 1
    assert any(entry.text == "You feel blessed." for entry in engine.log)
    assert engine.current_combatant().id == "goblin"


def test_healing_potion_rolls_two_dice():
    engine, dice, _ = _engine([9, 2], hp=3)
    _players_turn(engine)

    engine.use_item("healing_potion")
    roll = engine.pending_roll
    assert (roll.die_sides, roll.modifier, roll.dice_count) == (4, 2, 2)
    assert engine.character.item_quantity("healing_potion") == 0

    engine.resolve_dice_roll(4, 3)

    assert engine.character.hp.current == 10
    assert dice.values == []


def test_items_without_healing_or_stock_are_rejected():
    engine, _, _ = _engine([9])
    _players_turn(engine)

    assert not engine.use_item("torch")
    assert not engine.use_item("elixir")

    engine.character.inventory = []
    assert not engine.use_item("healing_potion")
    assert engine.combat.is_players_turn()


def test_long_rest_restores_hp_and_slots():
    engine, _, _ = _engine(hp=2, slots={1: 0})

    result = engine.perform_long_rest()

    assert result.success
    assert engine.character.hp.current == engine.character.hp.max
    assert engine.character.spell_slots == engine.character.max_spell_slots == {1: 2, 2: 1}


def test_long_rest_rejected_in_combat():
    engine, _, _ = _engine([9], hp=5)
    _players_turn(engine)

    assert not engine.perform_long_rest()
    assert engine.character.hp.current == 5


def test_skill_check_success_routes_to_success_node():
    engine, _, router = _engine()

    engine.request_skill_check("stealth", 12, "hidden", "spotted")
    roll = engine.pending_roll
    assert isinstance(roll, SkillCheckRoll)
    assert roll.ability == "dex"
    # dex +2, proficient +2
    assert roll.modifier == 4

    engine.resolve_dice_roll(20, 8)

    assert router.nodes == ["hidden"]
    assert engine.pending_roll is None


def test_skill_check_failure_routes_to_failure_node():
    engine, _, router = _engine()

    engine.request_skill_check("wisdom", 12, "hidden", "spotted")
    assert engine.pending_roll.modifier == 1

    engine.resolve_dice_roll(20, 10)

    assert router.nodes == ["spotted"]


def test_skill_check_rejected_during_combat():
    engine, _, _ = _engine([9])
    _players_turn(engine)

    assert not engine.request_skill_check("stealth", 10, "a", "b")
