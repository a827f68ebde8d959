from questbook.combat.dice import DiceFormula
from questbook.combat.models.combat_state import CombatPhase, CombatState, LogEntry, LogType
from questbook.combat.models.combatant import Combatant, CombatantType
from questbook.combat.models.pending_roll import (
    AttackRoll,
    DamageRoll,
    HealRoll,
    InitiativeRoll,
    PendingRollType,
    SkillCheckRoll,
    pending_roll_from_dict,
)


def _combatant(combatant_id: str, initiative: int, hp: int = 5, player: bool = False) -> Combatant:
    return Combatant(
        id=combatant_id,
        name=combatant_id.title(),
        combatant_type=CombatantType.PLAYER if player else CombatantType.ENEMY,
        current_hp=hp,
        max_hp=5,
        armor_class=12,
        initiative_score=initiative,
    )


def _state(*combatants: Combatant) -> CombatState:
    return CombatState(
        active=True,
        phase=CombatPhase.ACTIVE,
        turn_order=list(combatants),
    )


def test_sort_is_descending_and_stable_on_ties():
    state = _state(
        _combatant("a", 10),
        _combatant("b", 15),
        _combatant("c", 10),
        _combatant("player", 10, player=True),
    )
    state.sort_turn_order()

    assert [c.id for c in state.turn_order] == ["b", "a", "c", "player"]


def test_advance_wraps_and_counts_rounds():
    state = _state(_combatant("a", 3), _combatant("b", 2), _combatant("c", 1))

    assert state.advance_turn().id == "b"
    assert state.advance_turn().id == "c"
    assert state.round == 1
    assert state.advance_turn().id == "a"
    assert state.round == 2


def test_advance_skips_dead_combatants():
    state = _state(_combatant("a", 3), _combatant("b", 2, hp=0), _combatant("c", 1))

    assert state.advance_turn().id == "c"


def test_wrapping_past_dead_head_still_counts_the_round():
    state = _state(_combatant("a", 3, hp=0), _combatant("b", 2), _combatant("c", 1))
    state.current_turn_index = 2

    assert state.advance_turn().id == "b"
    assert state.round == 2


def test_advance_with_everyone_dead_changes_nothing():
    state = _state(_combatant("a", 3, hp=0), _combatant("b", 2, hp=0))
    state.current_turn_index = 1

    assert state.advance_turn() is None
    assert state.current_turn_index == 1
    assert state.round == 1


def test_current_combatant_only_when_active():
    state = _state(_combatant("a", 3))
    state.phase = CombatPhase.INITIATIVE_PENDING

    assert state.current_combatant() is None


def test_victory_needs_enemies():
    assert CombatState().all_enemies_dead() is False
    assert _state(_combatant("a", 1, hp=0)).all_enemies_dead() is True


def test_combat_state_dict_round_trip():
    state = _state(_combatant("goblin", 9), _combatant("player", 15, player=True))
    state.on_victory = "win"
    state.on_defeat = "lose"
    state.round = 3

    assert CombatState.from_dict(state.to_dict()) == state


def test_log_entry_round_trip():
    entry = LogEntry(id=4, text="Victory!", type=LogType.COMBAT, title="Victory")

    assert LogEntry.from_dict(entry.to_dict()) == entry


def test_pending_rolls_round_trip_every_variant():
    rolls = [
        InitiativeRoll(20, 2, "Initiative"),
        AttackRoll(20, 5, "Attack", target_id="goblin", damage=DiceFormula(1, 8, 3)),
        DamageRoll(8, 3, "Damage", target_id="goblin", dice_count=1, multiplier=2, spell_id=None),
        HealRoll(4, 2, "Potion", target_id="player", dice_count=2, source_id="healing_potion"),
        SkillCheckRoll(20, 4, "Stealth", ability="dex", dc=12, success_node="a", failure_node="b"),
    ]

    for roll in rolls:
        data = roll.to_dict()
        assert data["kind"] == roll.kind.value
        assert pending_roll_from_dict(data) == roll

    assert pending_roll_from_dict(None) is None


def test_pending_roll_describe_and_crit_dice():
    damage = DamageRoll(8, 3, "Damage vs Goblin", target_id="goblin", dice_count=2, multiplier=2)

    assert damage.kind == PendingRollType.DAMAGE
    assert damage.total_dice == 4
    assert damage.describe() == "Damage vs Goblin: roll a d8 (+3)"
    assert InitiativeRoll(20, -1, "Initiative").describe() == "Initiative: roll a d20 (-1)"
