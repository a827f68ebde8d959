"""Combat system package."""

from .combat_engine import CombatEngine
from .content import ContentLookup
from .dice import DiceFormula, DiceFormulaError, DiceSource, parse_formula

__all__ = [
    "CombatEngine",
    "ContentLookup",
    "DiceFormula",
    "DiceFormulaError",
    "DiceSource",
    "parse_formula",
]
