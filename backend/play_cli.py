#!/usr/bin/env python3
"""
Questbook - terminal play CLI

Plays the bundled adventure (or any adventure JSON) against the combat engine.

Usage:
    cd backend
    python play_cli.py
    python play_cli.py path/to/adventure.json --seed 42
"""
import argparse
import logging
import random
import sys
import time
from pathlib import Path
from typing import List, Optional

sys.path.insert(0, str(Path(__file__).parent))

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from questbook.combat.combat_engine import CombatEngine
from questbook.combat.content import ContentLookup
from questbook.combat.dice import DiceSource
from questbook.combat.models.combatant import Combatant
from questbook.combat.models.combat_state import LogEntry, LogType
from questbook.combat.rules import calculate_hit_chance
from questbook.combat.scheduler import ManualScheduler
from questbook.config import settings, validate_config
from questbook.models.character import Character, Equipment, HitPoints, InventoryEntry
from questbook.narrative import Adventure, AdventureRunner


# ==================== Config ====================

COLORS = {
    LogType.NARRATIVE: "white",
    LogType.COMBAT: "bright_yellow",
    LogType.SYSTEM: "bright_magenta",
    "player": "bright_green",
    "enemy": "bright_red",
    "error": "bright_red",
    "hint": "dim",
}

HELP_TEXT = """
[bold]Story:[/bold]
  <number>              take a choice
  rest                  long rest (restores HP and spell slots)

[bold]Combat:[/bold]
  attack [target]       attack with your weapon
  cast <spell> [target] [slot]
  use <item>            use an item (e.g. healing_potion)

[bold]Dice:[/bold]
  roll <sides> <value>  enter a physical die result, e.g. roll 20 14
  roll                  let the engine roll the pending die

[bold]Info:[/bold]
  status / help / quit
"""


def default_character() -> Character:
    return Character(
        name="Aria",
        character_class="Paladin",
        hp=HitPoints(current=12, max=12),
        armor_class=16,
        stats={"str": 16, "dex": 14, "con": 14, "int": 10, "wis": 12, "cha": 14},
        skills=["athletics", "persuasion"],
        equipment=Equipment(main_hand="longsword", body="chain_mail"),
        inventory=[InventoryEntry(id="healing_potion", qty=2)],
        spells=["sacred_flame", "cure_wounds", "bless", "guiding_bolt"],
        spell_slots={1: 2},
        max_spell_slots={1: 2},
    )


# ==================== Rendering ====================

class GameRenderer:
    """Terminal renderer"""

    def __init__(self):
        self.console = Console()
        self._last_log_id = 0

    def print_banner(self, title: str):
        self.console.print(Panel(f"[bold]{title}[/bold]", border_style="bright_blue"))

    def print_help(self):
        self.console.print(Panel(HELP_TEXT, title="Help", border_style="green"))

    def print_new_log(self, entries: List[LogEntry]):
        """Print log entries not shown yet."""
        for entry in entries:
            if entry.id <= self._last_log_id:
                continue
            self._last_log_id = entry.id
            color = COLORS.get(entry.type, "white")
            if entry.type == LogType.NARRATIVE:
                self.console.print(Panel(entry.text, title=entry.title, border_style="blue"))
            elif entry.title:
                self.console.print(f"[bold {color}]{entry.title}[/] [{color}]{entry.text}[/]")
            else:
                self.console.print(f"[{color}]{entry.text}[/]")

    def print_combat_state(self, engine: CombatEngine):
        table = Table(show_header=True, box=None, padding=(0, 2))
        table.add_column("", width=1)
        table.add_column("Name")
        table.add_column("HP", justify="right")
        table.add_column("AC", justify="right")
        table.add_column("Init", justify="right")
        table.add_column("To hit", justify="right")

        current = engine.current_combatant()
        player = engine.combat.get_player()
        for combatant in engine.combat.turn_order:
            color = COLORS["player"] if combatant.is_player() else COLORS["enemy"]
            marker = ">" if current is not None and combatant.id == current.id else ""
            hp = "dead" if combatant.is_dead else f"{combatant.current_hp}/{combatant.max_hp}"
            table.add_row(
                marker,
                f"[{color}]{combatant.name}[/] [dim]({combatant.id})[/dim]",
                hp,
                str(combatant.armor_class),
                str(combatant.initiative_score),
                self._hit_chance_text(player, combatant),
            )
        self.console.print(Panel(table, title=f"Round {engine.combat.round}", border_style="red"))

    @staticmethod
    def _hit_chance_text(player: Optional[Combatant], combatant: Combatant) -> str:
        if player is None or not combatant.is_enemy() or combatant.is_dead:
            return ""
        chance = calculate_hit_chance(player.attack_bonus, combatant.armor_class)
        return f"{chance:.0%}"

    def print_status(self, engine: CombatEngine):
        character = engine.character
        slots = ", ".join(
            f"L{level}: {engine.character.slots_remaining(level)}/{maximum}"
            for level, maximum in sorted(character.max_spell_slots.items())
        ) or "none"
        items = ", ".join(f"{entry.id} x{entry.qty}" for entry in character.inventory) or "none"
        self.console.print(Panel(
            f"HP {character.hp.current}/{character.hp.max}  AC {character.armor_class}\n"
            f"Spell slots: {slots}\n"
            f"Spells: {', '.join(character.spells) or 'none'}\n"
            f"Items: {items}",
            title=f"[bold]{character.name}[/bold] the {character.character_class}",
            border_style=COLORS["player"],
        ))

    def print_choices(self, runner: AdventureRunner):
        for index, choice in enumerate(runner.choices, start=1):
            suffix = ""
            if choice.check:
                suffix = f" [dim]({choice.check.stat} DC {choice.check.dc})[/dim]"
            self.console.print(f"  [yellow]{index}[/yellow]. {choice.label}{suffix}")

    def print_error(self, message: str):
        self.console.print(f"[{COLORS['error']}]{message}[/]")

    def get_input(self, engine: CombatEngine) -> str:
        if engine.pending_roll:
            prompt_str = f"(roll d{engine.pending_roll.die_sides})"
        elif engine.combat.active:
            prompt_str = "(combat)"
        else:
            prompt_str = "(story)"
        try:
            return Prompt.ask(f"[green]{prompt_str}[/green]")
        except (KeyboardInterrupt, EOFError):
            return "quit"


# ==================== Game ====================

class GameCLI:
    """Command loop over one engine and one adventure"""

    def __init__(self, adventure: Adventure, content: ContentLookup, seed: Optional[int] = None):
        self.scheduler = ManualScheduler()
        self.engine = CombatEngine(
            content,
            character=default_character(),
            dice=DiceSource(random.Random(seed)),
            scheduler=self.scheduler,
        )
        self.runner = AdventureRunner(adventure, self.engine)
        self.renderer = GameRenderer()
        self.running = True

    def start(self):
        self.renderer.print_banner(self.runner.adventure.title)
        self.runner.start()
        self._refresh()
        while self.running:
            user_input = self.renderer.get_input(self.engine).strip()
            if not user_input:
                continue
            self.handle_input(user_input)
            self._run_enemy_turns()
            self._refresh()
            node = self.runner.current_node
            if node and not node.choices and not self.engine.combat.active and not self.engine.pending_roll:
                self.renderer.console.print("[bold]The End.[/bold]")
                self.running = False

    def handle_input(self, user_input: str):
        parts = user_input.split()
        command, args = parts[0].lower(), parts[1:]

        if command in ("quit", "exit"):
            self.running = False
        elif command == "help":
            self.renderer.print_help()
        elif command == "status":
            self.renderer.print_status(self.engine)
        elif command.isdigit():
            self.runner.choose(int(command) - 1)
        elif command == "rest":
            self.engine.perform_long_rest()
        elif command == "attack":
            self.engine.initiate_player_attack(args[0] if args else None)
        elif command == "cast":
            if not args:
                self.renderer.print_error("Usage: cast <spell> [target] [slot]")
                return
            target = args[1] if len(args) > 1 else None
            slot = int(args[2]) if len(args) > 2 and args[2].isdigit() else None
            self.engine.cast_spell(target, args[0], slot)
        elif command == "use":
            if not args:
                self.renderer.print_error("Usage: use <item>")
                return
            self.engine.use_item(args[0])
        elif command == "roll":
            if not args:
                self.engine.roll_pending()
            elif len(args) == 2 and all(arg.lstrip("d").isdigit() for arg in args):
                self.engine.resolve_dice_roll(int(args[0].lstrip("d")), int(args[1]))
            else:
                self.renderer.print_error("Usage: roll [<sides> <value>]")
        else:
            self.renderer.print_error(f"Unknown command: {command} (try 'help')")

    def _run_enemy_turns(self):
        while self.scheduler.pending:
            self._refresh()
            time.sleep(self.engine.enemy_turn_delay)
            self.scheduler.step()

    def _refresh(self):
        self.renderer.print_new_log(self.engine.log)
        if self.engine.combat.active and not self.engine.pending_roll:
            self.renderer.print_combat_state(self.engine)
        elif not self.engine.combat.active and not self.engine.pending_roll:
            self.renderer.print_choices(self.runner)


def main():
    parser = argparse.ArgumentParser(description="Questbook terminal play CLI")
    parser.add_argument("adventure", nargs="?", default=settings.adventure_file, help="Adventure JSON")
    parser.add_argument("--content", default=settings.content_dir, help="Content directory")
    parser.add_argument("--seed", type=int, default=settings.dice_seed, help="Dice seed")
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level.upper())
    validate_config()

    content = ContentLookup.from_directory(args.content)
    adventure = Adventure.load(args.adventure)
    GameCLI(adventure, content, seed=args.seed).start()


if __name__ == "__main__":
    main()
