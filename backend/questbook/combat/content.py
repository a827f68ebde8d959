"""Content lookup for items, spells and monsters.

Records are read-only to the engine. Sources are plain dicts (hydrated by the
host application) or JSON files in a content directory.
"""
from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class SpellEffect(str, Enum):
    ATTACK = "attack"
    SAVE = "save"
    HEAL = "heal"
    BUFF = "buff"
    UTILITY = "utility"


class ItemRecord(BaseModel):
    id: str
    name: str
    slot: Optional[str] = None  # main_hand / off_hand / body / consumable
    damage: Optional[str] = None
    properties: List[str] = Field(default_factory=list)
    ac_bonus: int = 0
    healing: Optional[str] = None
    description: str = ""


class SpellRecord(BaseModel):
    id: str
    name: str
    level: int = Field(default=0, ge=0, le=9)
    effect: SpellEffect = SpellEffect.UTILITY
    damage: Optional[str] = None
    healing: Optional[str] = None
    save_ability: Optional[str] = None
    description: str = ""


class MonsterAttack(BaseModel):
    name: str = "attack"
    bonus: int = 0
    damage: str = "1d4"


class MonsterRecord(BaseModel):
    id: str
    name: str
    hp: int = Field(ge=1)
    ac: int = 10
    initiative_bonus: int = 0
    attack_bonus: int = 0
    damage: str = "1d4"
    attacks: List[MonsterAttack] = Field(default_factory=list)
    stats: Dict[str, int] = Field(default_factory=dict)


RecordT = TypeVar("RecordT", bound=BaseModel)


def _iter_entries(raw: Any) -> Iterable[Dict[str, Any]]:
    """Accept a list of records or an object keyed by id."""
    if isinstance(raw, list):
        for entry in raw:
            if isinstance(entry, dict):
                yield entry
        return

    if isinstance(raw, dict):
        for key, entry in raw.items():
            if isinstance(entry, dict):
                payload = dict(entry)
                payload.setdefault("id", key)
                payload.setdefault("name", key)
                yield payload


def _build_records(raw: Any, model: Type[RecordT]) -> Dict[str, RecordT]:
    records: Dict[str, RecordT] = {}
    for entry in _iter_entries(raw):
        try:
            record = model.model_validate(entry)
        except ValidationError as exc:
            logger.warning("Skipping invalid %s %r: %s", model.__name__, entry.get("id"), exc)
            continue
        records[record.id] = record
    return records


class ContentLookup:
    """Synchronous id -> record maps for items, spells and monsters."""

    def __init__(
        self,
        items: Optional[Any] = None,
        spells: Optional[Any] = None,
        monsters: Optional[Any] = None,
    ) -> None:
        self.items: Dict[str, ItemRecord] = {}
        self.spells: Dict[str, SpellRecord] = {}
        self.monsters: Dict[str, MonsterRecord] = {}
        self.hydrate(items=items, spells=spells, monsters=monsters)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def hydrate(
        self,
        items: Optional[Any] = None,
        spells: Optional[Any] = None,
        monsters: Optional[Any] = None,
    ) -> None:
        """Merge records into the lookup; later entries replace earlier ones."""
        if items:
            self.items.update(_build_records(items, ItemRecord))
        if spells:
            self.spells.update(_build_records(spells, SpellRecord))
        if monsters:
            self.monsters.update(_build_records(monsters, MonsterRecord))

    def get_item(self, item_id: Optional[str]) -> Optional[ItemRecord]:
        if not item_id:
            return None
        return self.items.get(item_id)

    def get_spell(self, spell_id: Optional[str]) -> Optional[SpellRecord]:
        if not spell_id:
            return None
        return self.spells.get(spell_id)

    def get_monster(self, monster_id: Optional[str]) -> Optional[MonsterRecord]:
        if not monster_id:
            return None
        return self.monsters.get(monster_id)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_directory(cls, directory: str | Path) -> "ContentLookup":
        """Load items.json, spells.json and monsters.json from a directory."""
        base_dir = Path(directory)
        lookup = cls()
        lookup.hydrate(
            items=cls._load_file(base_dir / "items.json"),
            spells=cls._load_file(base_dir / "spells.json"),
            monsters=cls._load_file(base_dir / "monsters.json"),
        )
        logger.info(
            "Loaded content from %s: %d items, %d spells, %d monsters",
            base_dir,
            len(lookup.items),
            len(lookup.spells),
            len(lookup.monsters),
        )
        return lookup

    @staticmethod
    def _load_file(path: Path) -> Any:
        if not path.exists():
            logger.debug("Content file %s not found", path)
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to load %s: %s", path, exc)
            return None
