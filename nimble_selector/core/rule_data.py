"""
Nimble Selector - Rule Data Store.

Loads and caches the declarative rule tables:
- class-features.json: feature names granted per class/subclass and level
- spell-schools.json: spell schools granted (or offered as choices) per level
- spell-tiers.json: maximum spell tier per level
- equipment-proficiencies.json: armor and weapon proficiency tags per class
- weapon-categories.json (optional): weapon names belonging to each category tag

Tables are parsed once at load time into typed structures and are read-only
afterwards. Every query is synchronous and never raises: an unknown class or
subclass simply has no entitlements.
"""
import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from nimble_selector.core.errors import ResourceLoadError
from nimble_selector.core.normalize import normalize_string
from nimble_selector.core.resource_loader import ResourceLoader

logger = logging.getLogger("nimble_selector.rule_data")


MAX_LEVEL = 20

# Returned by max_spell_tier() for classes with no tier table.
# Distinct from 0, which means "cantrips only".
NO_SPELLCASTING = -1

ADDED_SCHOOL_MARKER = "+"

CLASS_FEATURES_FILE = "class-features.json"
SPELL_SCHOOLS_FILE = "spell-schools.json"
SPELL_TIERS_FILE = "spell-tiers.json"
EQUIPMENT_PROFICIENCIES_FILE = "equipment-proficiencies.json"
WEAPON_CATEGORIES_FILE = "weapon-categories.json"


# =============================================================================
# Parsed Rule Structures
# =============================================================================

@dataclass(frozen=True)
class GrantedSchools:
    """A plain list of schools granted at a level."""
    schools: Tuple[str, ...]


@dataclass(frozen=True)
class ChoiceDefinition:
    """The player picks `count` schools from `options`."""
    count: int
    options: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {"count": self.count, "options": list(self.options)}


# A subclass level entry is either a school list or a nested choice
SchoolGrant = Union[GrantedSchools, ChoiceDefinition]


@dataclass
class SpellSchoolAccess:
    """Schools a character can cast from, plus pending school choices."""
    granted: Set[str] = field(default_factory=set)
    choices: List[ChoiceDefinition] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "granted": sorted(self.granted),
            "choices": [c.to_dict() for c in self.choices],
        }


@dataclass
class EquipmentProficiencies:
    """Armor and weapon proficiency tags for a class."""
    armor: List[str] = field(default_factory=list)
    weapons: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"armor": list(self.armor), "weapons": list(self.weapons)}


@dataclass
class FeatureTable:
    base: Dict[int, List[str]] = field(default_factory=dict)
    subclasses: Dict[str, Dict[int, List[str]]] = field(default_factory=dict)


@dataclass
class SchoolTable:
    base: Dict[int, GrantedSchools] = field(default_factory=dict)
    choices: Dict[int, ChoiceDefinition] = field(default_factory=dict)
    subclasses: Dict[str, Dict[int, SchoolGrant]] = field(default_factory=dict)


@dataclass
class TierTable:
    base: Optional[Dict[int, int]] = None
    subclasses: Dict[str, Dict[int, int]] = field(default_factory=dict)


# =============================================================================
# Parsing Helpers
# =============================================================================

def _level_key(key: Any) -> Optional[int]:
    """Parse a table level key. Non-numeric keys are skipped."""
    try:
        return int(key)
    except (TypeError, ValueError):
        return None


def _strip_marker(school: str) -> str:
    return normalize_string(school.replace(ADDED_SCHOOL_MARKER, ""))


def _parse_level_map(raw: Any) -> Dict[int, Any]:
    if not isinstance(raw, dict):
        return {}
    parsed = {}
    for key, value in raw.items():
        level = _level_key(key)
        if level is not None:
            parsed[level] = value
    return parsed


def _parse_choice(raw: Any) -> Optional[ChoiceDefinition]:
    if not isinstance(raw, dict):
        return None
    options = raw.get("options", [])
    if not isinstance(options, list):
        options = []
    try:
        count = int(raw.get("count", 1))
    except (TypeError, ValueError):
        count = 1
    return ChoiceDefinition(
        count=count,
        options=tuple(_strip_marker(o) for o in options if isinstance(o, str)),
    )


def _parse_school_list(raw: Any) -> Optional[GrantedSchools]:
    if not isinstance(raw, list):
        return None
    return GrantedSchools(tuple(_strip_marker(s) for s in raw if isinstance(s, str)))


def parse_school_grant(raw: Any) -> Optional[SchoolGrant]:
    """
    Decide the shape of a subclass school entry.

    ["+wind"]                                   -> GrantedSchools
    {"choices": {"count": 1, "options": [...]}} -> ChoiceDefinition
    """
    if isinstance(raw, list):
        return _parse_school_list(raw)
    if isinstance(raw, dict):
        if "choices" in raw:
            return _parse_choice(raw["choices"])
        if "options" in raw:
            return _parse_choice(raw)
    return None


def _parse_feature_table(raw: Dict[str, Any]) -> Dict[str, FeatureTable]:
    tables = {}
    for class_id, class_data in raw.items():
        if not isinstance(class_data, dict):
            continue
        table = FeatureTable()
        for level, names in _parse_level_map(class_data.get("base")).items():
            if isinstance(names, list):
                table.base[level] = [n for n in names if isinstance(n, str)]
        subclasses = class_data.get("subclasses") or {}
        if isinstance(subclasses, dict):
            for sub_id, sub_levels in subclasses.items():
                table.subclasses[normalize_string(sub_id)] = {
                    level: [n for n in names if isinstance(n, str)]
                    for level, names in _parse_level_map(sub_levels).items()
                    if isinstance(names, list)
                }
        tables[normalize_string(class_id)] = table
    return tables


def _parse_school_table(raw: Dict[str, Any]) -> Dict[str, SchoolTable]:
    tables = {}
    for class_id, class_data in raw.items():
        if not isinstance(class_data, dict):
            continue
        table = SchoolTable()
        for level, schools in _parse_level_map(class_data.get("base")).items():
            granted = _parse_school_list(schools)
            if granted is not None:
                table.base[level] = granted
        for level, choice in _parse_level_map(class_data.get("choices")).items():
            parsed = _parse_choice(choice)
            if parsed is not None:
                table.choices[level] = parsed
        subclasses = class_data.get("subclasses") or {}
        if isinstance(subclasses, dict):
            for sub_id, sub_levels in subclasses.items():
                entries = {}
                for level, value in _parse_level_map(sub_levels).items():
                    grant = parse_school_grant(value)
                    if grant is not None:
                        entries[level] = grant
                table.subclasses[normalize_string(sub_id)] = entries
        tables[normalize_string(class_id)] = table
    return tables


def _parse_tier_map(raw: Any) -> Dict[int, int]:
    tiers = {}
    for level, tier in _parse_level_map(raw).items():
        try:
            tiers[level] = int(tier)
        except (TypeError, ValueError):
            continue
    return tiers


def _parse_tier_table(raw: Dict[str, Any]) -> Dict[str, TierTable]:
    tables = {}
    for class_id, class_data in raw.items():
        if not isinstance(class_data, dict):
            continue
        table = TierTable()
        if isinstance(class_data.get("base"), dict):
            table.base = _parse_tier_map(class_data["base"])
        subclasses = class_data.get("subclasses") or {}
        if isinstance(subclasses, dict):
            for sub_id, sub_tiers in subclasses.items():
                table.subclasses[normalize_string(sub_id)] = _parse_tier_map(sub_tiers)
        tables[normalize_string(class_id)] = table
    return tables


def _parse_proficiency_table(raw: Dict[str, Any]) -> Dict[str, EquipmentProficiencies]:
    tables = {}
    for class_id, class_data in raw.items():
        if not isinstance(class_data, dict):
            continue
        armor = class_data.get("armor") or []
        weapons = class_data.get("weapons") or []
        tables[normalize_string(class_id)] = EquipmentProficiencies(
            armor=[normalize_string(t) for t in armor if isinstance(t, str)],
            weapons=[normalize_string(t) for t in weapons if isinstance(t, str)],
        )
    return tables


def _parse_weapon_categories(raw: Dict[str, Any]) -> Dict[str, List[str]]:
    return {
        normalize_string(tag): [n for n in names if isinstance(n, str)]
        for tag, names in raw.items()
        if isinstance(names, list)
    }


# =============================================================================
# Rule Data Store
# =============================================================================

class RuleDataStore:
    """
    Loads and caches the rule tables.

    Construct one per process (or per test) and call load() once; repeated
    load() calls are no-ops.
    """

    def __init__(self, loader: ResourceLoader):
        self._loader = loader
        self._loaded = False

        self._class_features: Dict[str, FeatureTable] = {}
        self._spell_schools: Dict[str, SchoolTable] = {}
        self._spell_tiers: Dict[str, TierTable] = {}
        self._equipment_proficiencies: Dict[str, EquipmentProficiencies] = {}
        self._weapon_categories: Dict[str, List[str]] = {}

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def load(self) -> None:
        """Fetch all rule tables concurrently. A failed fetch yields an empty table."""
        if self._loaded:
            return

        features, schools, tiers, proficiencies, categories = await asyncio.gather(
            self._fetch_table(CLASS_FEATURES_FILE),
            self._fetch_table(SPELL_SCHOOLS_FILE),
            self._fetch_table(SPELL_TIERS_FILE),
            self._fetch_table(EQUIPMENT_PROFICIENCIES_FILE),
            self._fetch_table(WEAPON_CATEGORIES_FILE, optional=True),
        )

        self._class_features = _parse_feature_table(features)
        self._spell_schools = _parse_school_table(schools)
        self._spell_tiers = _parse_tier_table(tiers)
        self._equipment_proficiencies = _parse_proficiency_table(proficiencies)
        self._weapon_categories = _parse_weapon_categories(categories)
        self._loaded = True

        logger.info(
            f"[RuleData] Loaded rules for {len(self._class_features)} classes "
            f"({len(self._spell_schools)} with spell schools, "
            f"{len(self._weapon_categories)} weapon categories)"
        )

    async def _fetch_table(self, filename: str, optional: bool = False) -> Dict[str, Any]:
        try:
            data = await self._loader.fetch(filename)
        except (ResourceLoadError, OSError, ValueError) as e:
            if optional:
                logger.info(f"[RuleData] Optional table {filename} not loaded: {e}")
            else:
                logger.warning(f"[RuleData] Failed to load {filename}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"[RuleData] {filename} is not a JSON object, ignoring it")
            return {}
        return data

    # ==================== Class Features ====================

    def features_for_level(
        self,
        class_id: str,
        level: int,
        subclass_id: Optional[str] = None
    ) -> List[str]:
        """
        Get feature names granted at exactly this level.

        Args:
            class_id: Class identifier, e.g. "berserker"
            level: Character level (1-20)
            subclass_id: Optional subclass identifier

        Returns:
            Base features followed by subclass features
        """
        table = self._class_features.get(normalize_string(class_id))
        if table is None:
            return []

        features = list(table.base.get(level, []))
        if subclass_id:
            sub_levels = table.subclasses.get(normalize_string(subclass_id), {})
            features.extend(sub_levels.get(level, []))
        return features

    def features_for_range(
        self,
        class_id: str,
        from_level: int,
        to_level: int,
        subclass_id: Optional[str] = None
    ) -> "OrderedDict[int, List[str]]":
        """Feature names per level for [from_level, to_level]; empty levels omitted."""
        result: "OrderedDict[int, List[str]]" = OrderedDict()
        for level in range(from_level, to_level + 1):
            features = self.features_for_level(class_id, level, subclass_id)
            if features:
                result[level] = features
        return result

    # ==================== Spell Schools ====================

    def spell_schools(
        self,
        class_id: str,
        level: int,
        subclass_id: Optional[str] = None
    ) -> SpellSchoolAccess:
        """
        Get the spell schools accessible at a level.

        Schools accrue: every grant at or below the level is retained.
        Choices gated at or below the level are returned for the player to
        resolve.
        """
        table = self._spell_schools.get(normalize_string(class_id))
        access = SpellSchoolAccess()
        if table is None:
            return access

        for table_level in sorted(table.base):
            if table_level <= level:
                access.granted.update(table.base[table_level].schools)

        for table_level in sorted(table.choices):
            if table_level <= level:
                access.choices.append(table.choices[table_level])

        if subclass_id:
            sub_levels = table.subclasses.get(normalize_string(subclass_id), {})
            for table_level in sorted(sub_levels):
                if table_level > level:
                    continue
                grant = sub_levels[table_level]
                if isinstance(grant, ChoiceDefinition):
                    access.choices.append(grant)
                else:
                    access.granted.update(grant.schools)

        return access

    # ==================== Spell Tiers ====================

    def max_spell_tier(
        self,
        class_id: str,
        level: int,
        subclass_id: Optional[str] = None
    ) -> int:
        """
        Get the highest spell tier available at a level.

        Returns:
            Max tier (0 = cantrips only), or NO_SPELLCASTING
        """
        table = self._spell_tiers.get(normalize_string(class_id))
        if table is None:
            return NO_SPELLCASTING

        if subclass_id:
            sub_tiers = table.subclasses.get(normalize_string(subclass_id))
            if sub_tiers is not None:
                return self._max_tier_at_level(sub_tiers, level)

        if table.base is None:
            return NO_SPELLCASTING
        return self._max_tier_at_level(table.base, level)

    @staticmethod
    def _max_tier_at_level(tiers: Dict[int, int], level: int) -> int:
        max_tier = 0
        for table_level, tier in tiers.items():
            if table_level <= level:
                max_tier = max(max_tier, tier)
        return max_tier

    # ==================== Equipment ====================

    def equipment_proficiencies(self, class_id: str) -> EquipmentProficiencies:
        """Armor and weapon tags for a class; empty lists if unknown."""
        found = self._equipment_proficiencies.get(normalize_string(class_id))
        if found is None:
            return EquipmentProficiencies()
        return EquipmentProficiencies(armor=list(found.armor), weapons=list(found.weapons))

    def weapon_categories(self) -> Dict[str, List[str]]:
        """Weapon category tag -> weapon names."""
        return {tag: list(names) for tag, names in self._weapon_categories.items()}
