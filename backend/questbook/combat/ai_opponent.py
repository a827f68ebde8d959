"""
Enemy AI

Enemy turns resolve fully automatically: no pending roll, all dice drawn from
the engine's dice source.
"""
import logging

from .dice import DiceSource
from .models.action import ActionResult, ActionType
from .models.combatant import Combatant

logger = logging.getLogger(__name__)


class OpponentAI:
    """
    Rule-based enemy behaviour.

    Each enemy attacks the player with the attack its stat block lists for the
    current round.
    """

    def __init__(self, dice: DiceSource):
        self.dice = dice

    def take_turn(self, enemy: Combatant, player: Combatant, round_number: int) -> ActionResult:
        """
        Resolve one enemy attack against the player.

        Args:
            enemy: acting enemy
            player: the player combatant (mutated on hit)
            round_number: current round, selects the attack to use

        Returns:
            ActionResult: success is True on a hit
        """
        attack = enemy.attack_for_round(round_number)
        result = ActionResult(
            action_type=ActionType.ENEMY_TURN,
            actor_id=enemy.id,
            target_id=player.id,
        )

        natural = self.dice.d20()
        total = natural + attack.bonus
        is_hit = total >= player.armor_class
        logger.debug(
            "%s %s: %s + %s = %s vs AC %s", enemy.id, attack.name, natural, attack.bonus, total,
            player.armor_class,
        )

        if not is_hit:
            result.success = False
            result.add_message(
                f"{enemy.name} attacks with {attack.name}: {natural} + {attack.bonus} = {total} "
                f"vs AC {player.armor_class}. Miss!"
            )
            return result

        damage_total, rolls = self.dice.roll_formula(attack.damage)
        dealt = player.take_damage(damage_total)
        result.add_message(
            f"{enemy.name} attacks with {attack.name}: {natural} + {attack.bonus} = {total} "
            f"vs AC {player.armor_class}. Hit! {attack.damage} ({' + '.join(map(str, rolls))}) "
            f"deals {dealt} damage. {player.name} has {player.current_hp}/{player.max_hp} HP."
        )
        return result
