"""
Combat engine

Initiative, turn progression, and resolution of attacks, damage, healing,
spells and skill checks. Player-side checks suspend on a pending roll until a
die result is supplied; enemy turns resolve automatically on a scheduler tick.
"""
import logging
import random
from collections import Counter
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from ..config import settings
from ..models.character import Character
from .ai_opponent import OpponentAI
from .content import ContentLookup, MonsterRecord, SpellEffect
from .dice import DiceFormula, DiceSource, parse_formula_or_default
from .models.action import ActionResult, ActionType
from .models.combat_state import (
    CombatEndReason,
    CombatPhase,
    CombatState,
    GameMode,
    LogEntry,
    LogType,
)
from .models.combatant import Combatant, CombatantAttack, CombatantType
from .models.pending_roll import (
    AttackRoll,
    DamageRoll,
    HealRoll,
    InitiativeRoll,
    PendingRoll,
    SkillCheckRoll,
    pending_roll_from_dict,
)
from .rules import (
    CRITICAL_DAMAGE_MULTIPLIER,
    CRITICAL_HIT_ROLL,
    D20,
    PLAYER_ID,
    SKILL_ABILITIES,
    normalize_ability,
    spell_save_dc,
    spellcasting_modifier,
    weapon_ability,
)
from .scheduler import ImmediateScheduler, Scheduler
from .spells import build_cast_request, consume_slot, has_slot

logger = logging.getLogger(__name__)

Router = Callable[[str], None]
EnemyEntry = Union[str, Dict[str, Any]]

UNARMED_DAMAGE = DiceFormula(count=1, sides=4, modifier=0)


class CombatEngine:
    """
    Combat engine

    Owns the single CombatState and the single pending-roll slot. Both are
    mutated only here; callers read them through properties.

    Commands:
    - start_combat / initiate_player_attack / cast_spell / use_item
    - resolve_dice_roll / roll_pending
    - perform_long_rest / request_skill_check
    - tick (enemy turn pacing)
    """

    def __init__(
        self,
        content: ContentLookup,
        character: Optional[Character] = None,
        router: Optional[Router] = None,
        dice: Optional[DiceSource] = None,
        scheduler: Optional[Scheduler] = None,
        enemy_turn_delay: Optional[float] = None,
        log_limit: Optional[int] = None,
    ):
        self.content = content
        self.router = router
        self.dice = dice or DiceSource(random.Random(settings.dice_seed))
        self.scheduler = scheduler or ImmediateScheduler()
        self.enemy_turn_delay = (
            settings.enemy_turn_delay_seconds if enemy_turn_delay is None else enemy_turn_delay
        )
        self.log_limit = settings.log_history_limit if log_limit is None else log_limit
        self.ai = OpponentAI(self.dice)

        self._character = character or Character()
        self._combat = CombatState()
        self._pending_roll: Optional[PendingRoll] = None
        self._log: List[LogEntry] = []
        self._log_seq = 0
        self._game_mode = GameMode.NARRATIVE
        self._enemy_turn_due = False

    # ============================================
    # Read-only state
    # ============================================

    @property
    def character(self) -> Character:
        return self._character

    @property
    def combat(self) -> CombatState:
        return self._combat

    @property
    def pending_roll(self) -> Optional[PendingRoll]:
        return self._pending_roll

    @property
    def log(self) -> List[LogEntry]:
        return list(self._log)

    @property
    def game_mode(self) -> GameMode:
        return self._game_mode

    @property
    def enemy_turn_due(self) -> bool:
        return self._enemy_turn_due

    def current_combatant(self) -> Optional[Combatant]:
        return self._combat.current_combatant()

    # ============================================
    # Combat lifecycle
    # ============================================

    def start_combat(
        self,
        enemies: Sequence[EnemyEntry],
        on_victory: Optional[str] = None,
        on_defeat: Optional[str] = None,
    ) -> ActionResult:
        """
        Start combat.

        Args:
            enemies: monster ids, or dicts {"id": ..., "count": n}
            on_victory: narrative node to route to on victory
            on_defeat: narrative node to route to on defeat

        Returns:
            ActionResult: carries the player's initiative pending roll

        Flow:
        1. Clone enemies from the content lookup
        2. Roll enemy initiative and order them provisionally
        3. Open the player's initiative roll
        """
        result = ActionResult(action_type=ActionType.START_COMBAT, actor_id=PLAYER_ID)

        if self._combat.active:
            return self._reject(result, "Combat is already in progress.")
        if self._pending_roll:
            return self._reject(result, self._pending_message())

        combatants = self._create_enemy_combatants(enemies)
        if not combatants:
            logger.warning("start_combat: no valid enemies in %r", enemies)
            self._game_mode = GameMode.NARRATIVE
            return self._reject(
                result, "No enemies could be found. The encounter ends before it begins."
            )

        for enemy in combatants:
            enemy.initiative_score = self.dice.d20() + enemy.initiative_bonus

        self._combat = CombatState(
            active=True,
            phase=CombatPhase.INITIATIVE_PENDING,
            round=1,
            turn_order=combatants,
            on_victory=on_victory,
            on_defeat=on_defeat,
        )
        self._combat.sort_turn_order()
        self._game_mode = GameMode.COMBAT
        self._enemy_turn_due = False

        names = ", ".join(enemy.name for enemy in combatants)
        self._say(result, f"Combat begins! You face: {names}.", title="Combat Encounter")
        logger.info("combat started against %s", [enemy.id for enemy in combatants])

        self._open_pending(
            result,
            InitiativeRoll(
                die_sides=D20,
                modifier=self._character.initiative_bonus,
                label="Initiative",
            ),
        )
        return result

    def next_turn(self) -> Optional[Combatant]:
        """
        Advance to the next living combatant.

        Enemies get their turn scheduled after the pacing delay; the player is
        left to issue a command.

        Returns:
            Optional[Combatant]: new current combatant, None if nothing changed
        """
        if not self._combat.active or self._combat.phase != CombatPhase.ACTIVE:
            return None

        self._enemy_turn_due = False
        current = self._combat.advance_turn()
        if current is None:
            logger.error(
                "Turn order exhausted with no living combatant (round %s); "
                "victory/defeat should have ended combat",
                self._combat.round,
            )
            self._add_log("No one is left standing to take a turn.", LogType.SYSTEM)
            return None

        if current.is_enemy():
            self._schedule_enemy_turn()
        else:
            self._add_log(f"Round {self._combat.round}: your turn!", LogType.SYSTEM)
        return current

    def tick(self) -> bool:
        """
        Run the enemy turn that is due, if any.

        Called by the scheduler after the pacing delay, or directly by tests
        and turn-based frontends.

        Returns:
            bool: True if an enemy turn was resolved
        """
        if not self._enemy_turn_due:
            return False
        self._enemy_turn_due = False

        if not self._combat.active or self._combat.phase != CombatPhase.ACTIVE:
            return False

        enemy = self._combat.current_combatant()
        if enemy is None or not enemy.is_enemy() or enemy.is_dead:
            self.next_turn()
            return False

        player = self._combat.get_player()
        if player is None:
            logger.error("Enemy turn with no player combatant")
            return False

        outcome = self.ai.take_turn(enemy, player, self._combat.round)
        for message in outcome.messages:
            self._add_log(message, LogType.COMBAT)
        self._sync_character_hp()

        if player.is_dead:
            self._end_combat(CombatEndReason.DEFEAT)
        else:
            self.next_turn()
        return True

    def resume(self) -> None:
        """Re-arm the scheduler for an enemy turn that was due when state was saved."""
        if self._enemy_turn_due:
            self._schedule_enemy_turn()

    def run_due_turns(self, limit: int = 1000) -> int:
        """
        Run due enemy turns now, without waiting on the scheduler.

        Stops when the player can act or combat ends.

        Returns:
            int: number of enemy turns resolved (skipped dead enemies do not count)
        """
        turns = 0
        steps = 0
        while self._enemy_turn_due and steps < limit:
            self.scheduler.cancel()
            if self.tick():
                turns += 1
            steps += 1
        if self._enemy_turn_due:
            logger.warning("Stopped running enemy turns after %d steps", limit)
        return turns

    # ============================================
    # Player commands
    # ============================================

    def initiate_player_attack(self, target_id: Optional[str] = None) -> ActionResult:
        """
        Attack with the main-hand weapon.

        Args:
            target_id: enemy to attack; None picks the first living enemy

        Returns:
            ActionResult: carries the attack pending roll when accepted
        """
        result = ActionResult(action_type=ActionType.ATTACK, actor_id=PLAYER_ID, target_id=target_id)
        error = self._check_player_turn()
        if error:
            return self._reject(result, error)

        if target_id is None:
            living = self._combat.living_enemies()
            if not living:
                return self._reject(result, "No valid targets!")
            target_id = living[0].id
            result.target_id = target_id

        target = self._combat.get_combatant(target_id)
        if target is None or not target.is_enemy() or target.is_dead:
            return self._lose_turn_on_missing_target(result, target_id)

        player = self._combat.get_player()
        self._say(result, f"You attack {target.name}!")
        self._open_pending(
            result,
            AttackRoll(
                die_sides=D20,
                modifier=player.attack_bonus,
                label=f"Attack roll vs {target.name}",
                target_id=target.id,
                damage=player.damage,
            ),
        )
        return result

    def cast_spell(
        self,
        target_id: Optional[str],
        spell_id: str,
        slot_level: Optional[int] = None,
    ) -> ActionResult:
        """
        Cast a spell.

        Args:
            target_id: enemy target for attack/save spells (None: first living enemy)
            spell_id: spell to cast
            slot_level: slot to spend when upcasting (defaults to the spell's level)

        Returns:
            ActionResult: carries the follow-up pending roll, if any
        """
        result = ActionResult(action_type=ActionType.SPELL, actor_id=PLAYER_ID, target_id=target_id)
        error = self._check_player_turn()
        if error:
            return self._reject(result, error)

        spell = self.content.get_spell(spell_id)
        if spell is None:
            return self._reject(result, f"Unknown spell: {spell_id}")
        if spell.id not in self._character.spells:
            return self._reject(result, f"You don't know {spell.name}.")

        request = build_cast_request(spell, target_id, slot_level)
        level = request.caster_slot_level
        if not has_slot(self._character.spell_slots, level):
            return self._reject(result, f"Not enough level {level} spell slots!")

        consume_slot(self._character.spell_slots, level)
        level_text = f" (level {level} slot)" if level else ""
        self._say(result, f"You cast {spell.name}{level_text}.")

        stats = self._character.stats
        proficiency = self._character.proficiency_bonus

        if spell.effect == SpellEffect.HEAL:
            formula = parse_formula_or_default(spell.healing)
            self._open_pending(
                result,
                HealRoll(
                    die_sides=formula.sides,
                    modifier=formula.modifier,
                    label=f"{spell.name} healing",
                    target_id=PLAYER_ID,
                    dice_count=formula.count,
                    source_id=spell.id,
                ),
            )
            return result

        if spell.effect in (SpellEffect.BUFF, SpellEffect.UTILITY):
            text = spell.description or f"The magic of {spell.name} takes hold."
            self._say(result, text, log_type=LogType.NARRATIVE)
            self.next_turn()
            return result

        # attack / save spells need an enemy target
        if request.target_id is None:
            living = self._combat.living_enemies()
            result.target_id = living[0].id if living else None
        else:
            result.target_id = request.target_id
        target = self._combat.get_combatant(result.target_id)
        if target is None or not target.is_enemy() or target.is_dead:
            return self._lose_turn_on_missing_target(result, result.target_id)

        damage = parse_formula_or_default(spell.damage)

        if spell.effect == SpellEffect.ATTACK:
            self._open_pending(
                result,
                AttackRoll(
                    die_sides=D20,
                    modifier=spellcasting_modifier(stats) + proficiency,
                    label=f"{spell.name} attack vs {target.name}",
                    target_id=target.id,
                    damage=damage,
                    spell_id=spell.id,
                ),
            )
            return result

        # save: the target rolls automatically
        dc = spell_save_dc(stats, proficiency)
        ability = normalize_ability(spell.save_ability)
        natural = self.dice.d20()
        save_modifier = target.ability_modifier(ability)
        save_total = natural + save_modifier
        save_text = (
            f"{target.name} makes a {ability.upper()} save: {natural} + {save_modifier} "
            f"= {save_total} vs DC {dc}."
        )
        if save_total >= dc:
            # no half damage on a successful save
            self._say(result, f"{save_text} {target.name} resists {spell.name}!")
            self.next_turn()
            return result

        self._say(result, f"{save_text} The save fails!")
        self._open_pending(
            result,
            DamageRoll(
                die_sides=damage.sides,
                modifier=damage.modifier,
                label=f"{spell.name} damage vs {target.name}",
                target_id=target.id,
                dice_count=damage.count,
                spell_id=spell.id,
            ),
        )
        return result

    def use_item(self, item_id: str) -> ActionResult:
        """Drink a healing item from the inventory (opens a heal roll)."""
        result = ActionResult(action_type=ActionType.USE_ITEM, actor_id=PLAYER_ID, target_id=PLAYER_ID)
        error = self._check_player_turn()
        if error:
            return self._reject(result, error)

        item = self.content.get_item(item_id)
        if item is None or not item.healing:
            return self._reject(result, f"{item.name if item else item_id} can't be used in combat.")
        if self._character.item_quantity(item_id) < 1:
            return self._reject(result, f"You don't have any {item.name} left.")

        self._character.remove_item(item_id)
        formula = parse_formula_or_default(item.healing)
        self._say(result, f"You use {item.name}.")
        self._open_pending(
            result,
            HealRoll(
                die_sides=formula.sides,
                modifier=formula.modifier,
                label=f"{item.name} healing",
                target_id=PLAYER_ID,
                dice_count=formula.count,
                source_id=item.id,
            ),
        )
        return result

    def perform_long_rest(self) -> ActionResult:
        """Restore HP and spell slots to their maximums."""
        result = ActionResult(action_type=ActionType.LONG_REST, actor_id=PLAYER_ID)
        if self._combat.active:
            return self._reject(result, "You cannot rest during combat!")
        if self._pending_roll:
            return self._reject(result, self._pending_message())

        self._character.hp.current = self._character.hp.max
        self._character.spell_slots = dict(self._character.max_spell_slots)
        self._say(
            result,
            "You take a long rest. Your hit points and spell slots are restored.",
            log_type=LogType.SYSTEM,
        )
        logger.info("long rest: hp=%s slots=%s", self._character.hp.current, self._character.spell_slots)
        return result

    def request_skill_check(
        self,
        ability: str,
        dc: int,
        success_node: str,
        failure_node: str,
        label: Optional[str] = None,
    ) -> ActionResult:
        """
        Open a skill check outside combat.

        Args:
            ability: ability key ("dex") or skill name ("stealth")
            dc: difficulty class
            success_node: narrative node on success
            failure_node: narrative node on failure
            label: text shown to the player (defaults to the check name)
        """
        result = ActionResult(action_type=ActionType.SKILL_CHECK, actor_id=PLAYER_ID)
        if self._combat.active:
            return self._reject(result, "You can't do that during combat!")
        if self._pending_roll:
            return self._reject(result, self._pending_message())

        key = ability.strip().lower().replace(" ", "_")
        if key in SKILL_ABILITIES:
            ability_key = SKILL_ABILITIES[key]
            proficient = self._character.is_proficient(key)
        else:
            ability_key = normalize_ability(key)
            proficient = self._character.is_proficient(label)

        modifier = self._character.ability_modifier(ability_key)
        if proficient:
            modifier += self._character.proficiency_bonus

        self._open_pending(
            result,
            SkillCheckRoll(
                die_sides=D20,
                modifier=modifier,
                label=label or f"{key.replace('_', ' ').title()} check",
                ability=ability_key,
                dc=dc,
                success_node=success_node,
                failure_node=failure_node,
            ),
        )
        return result

    # ============================================
    # Pending-roll resolution
    # ============================================

    def resolve_dice_roll(self, sides: int, raw_value: int) -> ActionResult:
        """
        Supply the result of the pending die.

        Args:
            sides: die that was rolled (must match the pending roll)
            raw_value: face that came up

        Returns:
            ActionResult: success is False when the roll was rejected; a
            rejected roll leaves the pending roll open and state untouched
        """
        result = ActionResult(action_type=ActionType.ROLL, actor_id=PLAYER_ID)
        pending = self._pending_roll
        if pending is None:
            return self._reject(result, "There is no roll to resolve.")
        if sides != pending.die_sides:
            return self._reject(
                result,
                f"Wrong die! {pending.label} needs a d{pending.die_sides}, not a d{sides}.",
            )
        if not 1 <= raw_value <= sides:
            return self._reject(result, f"A d{sides} cannot roll {raw_value}.")

        self._pending_roll = None
        total = raw_value + pending.modifier
        logger.debug("resolving %s: %s + %s = %s", pending.kind.value, raw_value, pending.modifier, total)

        if isinstance(pending, InitiativeRoll):
            self._resolve_initiative(result, pending, raw_value, total)
        elif isinstance(pending, AttackRoll):
            self._resolve_attack(result, pending, raw_value, total)
        elif isinstance(pending, DamageRoll):
            self._resolve_damage(result, pending, raw_value)
        elif isinstance(pending, HealRoll):
            self._resolve_heal(result, pending, raw_value)
        elif isinstance(pending, SkillCheckRoll):
            self._resolve_skill_check(result, pending, raw_value, total)
        return result

    def roll_pending(self) -> ActionResult:
        """Roll the pending die with the engine's dice and resolve it."""
        pending = self._pending_roll
        if pending is None:
            result = ActionResult(action_type=ActionType.ROLL, actor_id=PLAYER_ID)
            return self._reject(result, "There is no roll to resolve.")
        return self.resolve_dice_roll(pending.die_sides, self.dice.roll(pending.die_sides))

    def _resolve_initiative(
        self, result: ActionResult, pending: InitiativeRoll, raw_value: int, total: int
    ):
        player = self._create_player_combatant()
        player.initiative_score = total

        combat = self._combat
        combat.turn_order.append(player)
        combat.sort_turn_order()
        combat.current_turn_index = 0
        combat.round = 1
        combat.phase = CombatPhase.ACTIVE

        self._say(result, f"Initiative: {raw_value} + {pending.modifier} = {total}.")
        order = ", ".join(f"{c.name} ({c.initiative_score})" for c in combat.turn_order)
        self._say(result, f"Turn order: {order}.", log_type=LogType.SYSTEM)

        if player.is_dead:
            self._end_combat(CombatEndReason.DEFEAT)
            return

        first = combat.current_combatant()
        if first.is_enemy():
            self._schedule_enemy_turn()
        else:
            self._add_log("Round 1: your turn!", LogType.SYSTEM)

    def _resolve_attack(self, result: ActionResult, pending: AttackRoll, raw_value: int, total: int):
        target = self._combat.get_combatant(pending.target_id)
        result.target_id = pending.target_id
        if target is None or target.is_dead:
            self._lose_turn_on_missing_target(result, pending.target_id)
            return

        attack_text = (
            f"{pending.label}: {raw_value} + {pending.modifier} = {total} vs AC {target.armor_class}."
        )
        if total < target.armor_class:
            self._say(result, f"{attack_text} Miss!")
            self.next_turn()
            return

        is_critical = raw_value == CRITICAL_HIT_ROLL
        multiplier = CRITICAL_DAMAGE_MULTIPLIER if is_critical else 1
        self._say(result, f"{attack_text} {'Critical hit!' if is_critical else 'Hit!'}")
        self._open_pending(
            result,
            DamageRoll(
                die_sides=pending.damage.sides,
                modifier=pending.damage.modifier,
                label=f"Damage vs {target.name}",
                target_id=target.id,
                dice_count=pending.damage.count,
                multiplier=multiplier,
                spell_id=pending.spell_id,
            ),
        )

    def _resolve_damage(self, result: ActionResult, pending: DamageRoll, raw_value: int):
        target = self._combat.get_combatant(pending.target_id)
        result.target_id = pending.target_id
        if target is None:
            self._lose_turn_on_missing_target(result, pending.target_id)
            return

        amount = self._roll_remaining(pending.total_dice, pending.die_sides, raw_value, pending.modifier)
        dealt = target.take_damage(amount)
        self._say(
            result,
            f"{pending.label}: {amount} damage. {target.name} has "
            f"{target.current_hp}/{target.max_hp} HP.",
        )
        if target.is_player():
            self._sync_character_hp()
        if target.is_dead:
            self._say(result, f"{target.name} is defeated!")
        logger.debug("%s took %s damage", target.id, dealt)

        self._after_hp_change()

    def _resolve_heal(self, result: ActionResult, pending: HealRoll, raw_value: int):
        target = self._combat.get_combatant(pending.target_id) or self._combat.get_player()
        result.target_id = pending.target_id
        if target is None:
            self._lose_turn_on_missing_target(result, pending.target_id)
            return

        amount = self._roll_remaining(pending.total_dice, pending.die_sides, raw_value, pending.modifier)
        healed = target.heal(amount)
        if target.is_player():
            self._sync_character_hp()
        self._say(
            result,
            f"{pending.label}: {target.name} recovers {healed} HP "
            f"({target.current_hp}/{target.max_hp}).",
        )
        self.next_turn()

    def _resolve_skill_check(
        self, result: ActionResult, pending: SkillCheckRoll, raw_value: int, total: int
    ):
        passed = total >= pending.dc
        self._say(
            result,
            f"Attempted {pending.label}. Rolled {raw_value} + {pending.modifier} = {total} "
            f"(DC {pending.dc}). {'Success!' if passed else 'Failure!'}",
            log_type=LogType.SYSTEM,
        )
        self._route(pending.success_node if passed else pending.failure_node)

    def _roll_remaining(self, total_dice: int, sides: int, first_die: int, modifier: int) -> int:
        """Only the first die is supplied externally; the rest come from the dice source."""
        extra = self.dice.roll_many(max(total_dice - 1, 0), sides)
        return max(0, first_die + sum(extra) + modifier)

    def _after_hp_change(self):
        player = self._combat.get_player()
        if player is not None and player.is_dead:
            self._end_combat(CombatEndReason.DEFEAT)
        elif self._combat.all_enemies_dead():
            self._end_combat(CombatEndReason.VICTORY)
        else:
            self.next_turn()

    def _end_combat(self, reason: CombatEndReason):
        combat = self._combat
        self._sync_character_hp()
        combat.active = False
        combat.phase = CombatPhase.ENDED
        combat.end_reason = reason
        self._pending_roll = None
        self._enemy_turn_due = False
        self.scheduler.cancel()
        self._game_mode = GameMode.NARRATIVE

        if reason == CombatEndReason.VICTORY:
            self._add_log("Victory! All enemies have been defeated.", LogType.COMBAT, title="Victory")
            target_node = combat.on_victory
        else:
            self._add_log("You have been defeated...", LogType.COMBAT, title="Defeat")
            target_node = combat.on_defeat

        logger.info("combat ended: %s after %s rounds", reason.value, combat.round)
        self._route(target_node)

    # ============================================
    # Helpers
    # ============================================

    def _check_player_turn(self) -> Optional[str]:
        if self._pending_roll:
            return self._pending_message()
        if not self._combat.active:
            return "You are not in combat."
        if not self._combat.is_players_turn():
            return "It's not your turn!"
        return None

    def _pending_message(self) -> str:
        return f"Resolve the pending roll first. {self._pending_roll.describe()}"

    def _lose_turn_on_missing_target(self, result: ActionResult, target_id: Optional[str]) -> ActionResult:
        result.success = False
        self._say(result, f"Target {target_id or 'none'} is not a valid target. The action is lost.")
        logger.info("missing target %r, advancing turn", target_id)
        self.next_turn()
        return result

    def _open_pending(self, result: ActionResult, roll: PendingRoll):
        self._pending_roll = roll
        result.pending_roll = roll
        self._add_log(roll.describe(), LogType.SYSTEM)
        logger.debug("pending roll opened: %s", roll)

    def _schedule_enemy_turn(self):
        self._enemy_turn_due = True
        self.scheduler.cancel()
        self.scheduler.schedule(self.tick, self.enemy_turn_delay)

    def _route(self, node_id: Optional[str]):
        if not node_id:
            return
        if self.router is None:
            logger.warning("No narrative router; cannot move to node %s", node_id)
            return
        self.router(node_id)

    def _sync_character_hp(self):
        player = self._combat.get_player()
        if player is not None:
            self._character.set_current_hp(player.current_hp)

    def _say(
        self,
        result: ActionResult,
        text: str,
        log_type: LogType = LogType.COMBAT,
        title: Optional[str] = None,
    ):
        result.add_message(text)
        self._add_log(text, log_type, title=title)

    def _reject(self, result: ActionResult, message: str) -> ActionResult:
        logger.info("rejected %s: %s", result.action_type.value, message)
        self._add_log(message, LogType.SYSTEM)
        return result.reject(message)

    def add_log(self, text: str, log_type: LogType = LogType.NARRATIVE, title: Optional[str] = None) -> LogEntry:
        """Append an entry to the adventure log (used by the narrative layer)."""
        return self._add_log(text, log_type, title=title)

    def _add_log(self, text: str, log_type: LogType, title: Optional[str] = None) -> LogEntry:
        self._log_seq += 1
        entry = LogEntry(id=self._log_seq, text=text, type=log_type, title=title)
        self._log.append(entry)
        if self.log_limit and len(self._log) > self.log_limit:
            del self._log[: len(self._log) - self.log_limit]
        return entry

    # ============================================
    # Combatant construction
    # ============================================

    def _create_enemy_combatants(self, enemies: Sequence[EnemyEntry]) -> List[Combatant]:
        records: List[MonsterRecord] = []
        for entry in enemies:
            if isinstance(entry, dict):
                monster_id = entry.get("id")
                try:
                    count = max(int(entry.get("count", 1)), 1)
                except (TypeError, ValueError):
                    logger.warning("Bad count %r for monster %r skipped", entry.get("count"), monster_id)
                    continue
            else:
                monster_id, count = entry, 1
            record = self.content.get_monster(monster_id)
            if record is None:
                logger.warning("Unknown monster id %r skipped", monster_id)
                continue
            records.extend([record] * count)

        totals = Counter(record.id for record in records)
        seen: Counter = Counter()
        combatants = []
        for record in records:
            seen[record.id] += 1
            if totals[record.id] > 1:
                combatant_id = f"{record.id}_{seen[record.id]}"
                name = f"{record.name} {seen[record.id]}"
            else:
                combatant_id, name = record.id, record.name
            combatants.append(self._create_enemy_combatant(record, combatant_id, name))
        return combatants

    def _create_enemy_combatant(self, record: MonsterRecord, combatant_id: str, name: str) -> Combatant:
        """Clone a monster record into a combatant; formulas are parsed here, once."""
        return Combatant(
            id=combatant_id,
            name=name,
            combatant_type=CombatantType.ENEMY,
            current_hp=record.hp,
            max_hp=record.hp,
            armor_class=record.ac,
            initiative_bonus=record.initiative_bonus,
            attack_bonus=record.attack_bonus,
            damage=parse_formula_or_default(record.damage),
            attacks=[
                CombatantAttack(
                    name=attack.name,
                    bonus=attack.bonus,
                    damage=parse_formula_or_default(attack.damage),
                )
                for attack in record.attacks
            ],
            abilities=dict(record.stats),
            source_id=record.id,
        )

    def _create_player_combatant(self) -> Combatant:
        """Snapshot the character sheet into a combatant."""
        character = self._character
        weapon = self.content.get_item(character.equipment.main_hand)
        properties = weapon.properties if weapon else []
        ability = weapon_ability(properties, character.stats)
        ability_mod = character.ability_modifier(ability)

        base = parse_formula_or_default(weapon.damage) if weapon and weapon.damage else UNARMED_DAMAGE
        damage = DiceFormula(count=base.count, sides=base.sides, modifier=base.modifier + ability_mod)

        return Combatant(
            id=PLAYER_ID,
            name=character.name,
            combatant_type=CombatantType.PLAYER,
            current_hp=character.hp.current,
            max_hp=character.hp.max,
            armor_class=character.armor_class,
            initiative_bonus=character.initiative_bonus,
            attack_bonus=ability_mod + character.proficiency_bonus,
            damage=damage,
            abilities=dict(character.stats),
            source_id=character.equipment.main_hand,
        )

    # ============================================
    # Serialization
    # ============================================

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot of everything needed to restore the engine."""
        return {
            "character": self._character.model_dump(mode="json"),
            "combat": self._combat.to_dict(),
            "pending_roll": self._pending_roll.to_dict() if self._pending_roll else None,
            "log": [entry.to_dict() for entry in self._log],
            "log_seq": self._log_seq,
            "game_mode": self._game_mode.value,
            "enemy_turn_due": self._enemy_turn_due,
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        content: ContentLookup,
        router: Optional[Router] = None,
        dice: Optional[DiceSource] = None,
        scheduler: Optional[Scheduler] = None,
        enemy_turn_delay: Optional[float] = None,
        log_limit: Optional[int] = None,
    ) -> "CombatEngine":
        """
        Restore an engine from `to_dict()` output.

        A due enemy turn is not re-armed automatically; call `resume()` or
        `tick()`.
        """
        engine = cls(
            content,
            character=Character.model_validate(data["character"]),
            router=router,
            dice=dice,
            scheduler=scheduler,
            enemy_turn_delay=enemy_turn_delay,
            log_limit=log_limit,
        )
        engine._combat = CombatState.from_dict(data["combat"])
        engine._pending_roll = pending_roll_from_dict(data.get("pending_roll"))
        engine._log = [LogEntry.from_dict(entry) for entry in data.get("log", [])]
        engine._log_seq = int(data.get("log_seq", len(engine._log)))
        engine._game_mode = GameMode(data.get("game_mode", GameMode.NARRATIVE.value))
        engine._enemy_turn_due = bool(data.get("enemy_turn_due", False))
        return engine
