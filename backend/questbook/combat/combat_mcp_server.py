"""
Combat MCP server

Exposes the combat engine's commands as MCP tools.
"""
import argparse
import json
import logging
from typing import Any, Dict, List, Optional, Union

from mcp.server.fastmcp import FastMCP

from ..config import settings
from .combat_engine import CombatEngine
from .content import ContentLookup
from .models.action import ActionResult
from .scheduler import ManualScheduler

logger = logging.getLogger(__name__)


combat_mcp = FastMCP(
    name="Questbook Combat MCP",
    instructions="""
Questbook combat MCP server

Turn-based dice combat. Player checks pause on a pending roll until a die
result is supplied; enemy turns run when `advance` is called.

Flow:
1. start_combat - set up enemies, returns the initiative roll
2. resolve_dice_roll (or roll_pending) - supply each pending die
3. player_attack / cast_spell / use_item on the player's turn
4. advance - run due enemy turns
5. get_state - full engine snapshot
""",
)


def _build_engine() -> CombatEngine:
    content = ContentLookup.from_directory(settings.content_dir)
    return CombatEngine(content, scheduler=ManualScheduler())


combat_engine = _build_engine()


def _dump(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2, default=str)


def _result_json(result: ActionResult) -> str:
    payload = result.to_dict()
    payload["state"] = _summary()
    return _dump(payload)


def _summary() -> Dict[str, Any]:
    engine = combat_engine
    current = engine.current_combatant()
    return {
        "game_mode": engine.game_mode.value,
        "phase": engine.combat.phase.value,
        "round": engine.combat.round,
        "current_turn": current.id if current else None,
        "enemy_turn_due": engine.enemy_turn_due,
        "pending_roll": engine.pending_roll.to_dict() if engine.pending_roll else None,
        "combatants": [
            {
                "id": c.id,
                "name": c.name,
                "hp": c.current_hp,
                "max_hp": c.max_hp,
                "ac": c.armor_class,
                "initiative": c.initiative_score,
                "is_dead": c.is_dead,
            }
            for c in engine.combat.turn_order
        ],
    }


# ============================================
# MCP tools
# ============================================


@combat_mcp.tool()
async def start_combat(
    enemies: List[Union[str, Dict[str, Any]]],
    on_victory: Optional[str] = None,
    on_defeat: Optional[str] = None,
) -> str:
    """
    Start combat

    Args:
        enemies: monster ids, or {"id": ..., "count": n} entries
            e.g. ["goblin", {"id": "wolf", "count": 2}]
        on_victory: narrative node to route to on victory
        on_defeat: narrative node to route to on defeat

    Returns:
        str: JSON with the initiative pending roll and state summary
    """
    return _result_json(combat_engine.start_combat(enemies, on_victory, on_defeat))


@combat_mcp.tool()
async def player_attack(target_id: Optional[str] = None) -> str:
    """
    Attack an enemy with the equipped weapon

    Args:
        target_id: enemy id; omitted picks the first living enemy
    """
    return _result_json(combat_engine.initiate_player_attack(target_id))


@combat_mcp.tool()
async def cast_spell(
    spell_id: str,
    target_id: Optional[str] = None,
    slot_level: Optional[int] = None,
) -> str:
    """
    Cast a spell

    Args:
        spell_id: spell to cast
        target_id: enemy target for attack and save spells
        slot_level: slot level to spend (upcasting)
    """
    return _result_json(combat_engine.cast_spell(target_id, spell_id, slot_level))


@combat_mcp.tool()
async def use_item(item_id: str) -> str:
    """Use a healing item from the inventory."""
    return _result_json(combat_engine.use_item(item_id))


@combat_mcp.tool()
async def resolve_dice_roll(sides: int, value: int) -> str:
    """
    Supply the result of the pending die

    Args:
        sides: die rolled (must match the pending roll)
        value: face that came up
    """
    return _result_json(combat_engine.resolve_dice_roll(sides, value))


@combat_mcp.tool()
async def roll_pending() -> str:
    """Let the engine roll the pending die."""
    return _result_json(combat_engine.roll_pending())


@combat_mcp.tool()
async def long_rest() -> str:
    """Restore HP and spell slots (outside combat only)."""
    return _result_json(combat_engine.perform_long_rest())


@combat_mcp.tool()
async def advance() -> str:
    """
    Run due enemy turns until the player can act or combat ends

    Returns:
        str: JSON with the number of enemy turns run and state summary
    """
    history = combat_engine.log
    last_id = history[-1].id if history else 0

    turns = combat_engine.run_due_turns()

    new_entries = [entry.to_dict() for entry in combat_engine.log if entry.id > last_id]
    return _dump({"enemy_turns": turns, "log": new_entries, "state": _summary()})


@combat_mcp.tool()
async def get_state(include_log: bool = False) -> str:
    """
    Full engine snapshot

    Args:
        include_log: include the adventure log (can be long)
    """
    snapshot = combat_engine.to_dict()
    if not include_log:
        snapshot.pop("log", None)
    return _dump(snapshot)


def run_combat_mcp_server(transport: str = "stdio"):
    """
    Start the combat MCP server

    Args:
        transport: stdio / streamable-http / sse
    """
    combat_mcp.run(transport=transport)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Questbook Combat MCP Server")
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse", "streamable-http"],
        default=settings.mcp_transport,
        help="Transport protocol",
    )
    parser.add_argument(
        "--host",
        default=settings.mcp_host,
        help="Bind host for HTTP transports",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.mcp_port,
        help="Bind port for HTTP transports",
    )
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level.upper())
    combat_mcp.settings.host = args.host
    combat_mcp.settings.port = args.port
    run_combat_mcp_server(args.transport)
