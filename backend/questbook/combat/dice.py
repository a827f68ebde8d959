"""
Dice

Dice source and parsing of compact damage formulas ("NdS+M").
"""
import logging
import random
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

_FORMULA_PATTERN = re.compile(r"^(\d*)d(\d+)([+-]\d+)?$")


class DiceFormulaError(ValueError):
    """Raised when a dice formula cannot be parsed."""


@dataclass(frozen=True)
class DiceFormula:
    """Parsed dice formula: roll `count` dice with `sides` faces, add `modifier`."""

    count: int
    sides: int
    modifier: int = 0

    def __str__(self) -> str:
        if self.modifier > 0:
            return f"{self.count}d{self.sides}+{self.modifier}"
        if self.modifier < 0:
            return f"{self.count}d{self.sides}{self.modifier}"
        return f"{self.count}d{self.sides}"

    def to_dict(self) -> dict:
        return {"count": self.count, "sides": self.sides, "modifier": self.modifier}

    @classmethod
    def from_dict(cls, data: dict) -> "DiceFormula":
        return cls(
            count=int(data["count"]),
            sides=int(data["sides"]),
            modifier=int(data.get("modifier", 0)),
        )


DEFAULT_FORMULA = DiceFormula(count=1, sides=4, modifier=0)


def parse_formula(text: str) -> DiceFormula:
    """
    Parse a dice formula.

    Args:
        text: formula such as "1d8", "d20", "2d6+3" or "1d4-1"

    Returns:
        DiceFormula: the parsed (count, sides, modifier)

    Raises:
        DiceFormulaError: malformed text, zero dice or zero-sided dice
    """
    if not isinstance(text, str):
        raise DiceFormulaError(f"Invalid dice formula: {text!r}")

    match = _FORMULA_PATTERN.match(text.strip().lower())
    if not match:
        raise DiceFormulaError(f"Invalid dice formula: {text!r}")

    count = int(match.group(1)) if match.group(1) else 1
    sides = int(match.group(2))
    modifier = int(match.group(3)) if match.group(3) else 0

    if count < 1 or sides < 1:
        raise DiceFormulaError(f"Invalid dice formula: {text!r}")

    return DiceFormula(count=count, sides=sides, modifier=modifier)


def parse_formula_or_default(
    text: Optional[str], default: DiceFormula = DEFAULT_FORMULA
) -> DiceFormula:
    """Parse a formula, falling back to `default` (1d4+0) on malformed input."""
    try:
        return parse_formula(text)
    except DiceFormulaError as exc:
        logger.warning("%s; using %s", exc, default)
        return default


class DiceSource:
    """Uniform dice roller. Pass a seeded `random.Random` for reproducible rolls."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def roll(self, sides: int) -> int:
        """
        Roll a single die.

        Args:
            sides: number of faces (20 for a d20)

        Returns:
            int: result in [1, sides]
        """
        if sides < 1:
            raise ValueError(f"A die needs at least one side, got {sides}")
        value = self._rng.randint(1, sides)
        logger.debug("rolled d%s -> %s", sides, value)
        return value

    def roll_many(self, count: int, sides: int) -> List[int]:
        return [self.roll(sides) for _ in range(count)]

    def roll_formula(self, formula: DiceFormula) -> Tuple[int, List[int]]:
        """
        Roll every die of a formula.

        Returns:
            Tuple[int, List[int]]: (total including modifier, individual rolls)
        """
        rolls = self.roll_many(formula.count, formula.sides)
        return sum(rolls) + formula.modifier, rolls

    def d20(self) -> int:
        return self.roll(20)
