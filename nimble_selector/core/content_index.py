"""
Nimble Selector - Content Index.

Builds normalized lookup structures over the content catalog:
- Features, indexed by normalized name and by normalized class
- Spells, filterable by school and tier
- Equipment, filterable by object type

Features without a direct class inherit it from the topmost ancestor of their
catalog folder. The index is built once by initialize() and never mutated
afterwards.
"""
import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from nimble_selector.core.catalog import (
    FEATURES_COLLECTION,
    ITEMS_COLLECTION,
    SPELLS_COLLECTION,
    CollectionIndex,
    ContentCatalog,
)
from nimble_selector.core.errors import ResourceLoadError
from nimble_selector.core.normalize import (
    PLACEHOLDER_IMAGE,
    normalize_string,
    slugify,
    strip_numeric_suffix,
)

logger = logging.getLogger("nimble_selector.content_index")


PROGRESSION_GROUP_SUFFIX = "-progression"
UTILITY_SCHOOL = "utility"
UTILITY_SPELL_PROPERTY = "utilitySpell"
RANGED_PROPERTY = "ranged"

FEATURE_FIELDS = [
    "system.class",
    "system.group",
    "system.subclass",
    "system.gainedAtLevel",
    "system.gainedAtLevels",
    "system.description",
]
SPELL_FIELDS = [
    "system.school",
    "system.tier",
    "system.properties.selected",
    "system.description",
]
ITEM_FIELDS = [
    "system.objectType",
    "system.properties",
    "system.description",
]


# =============================================================================
# Index Entries
# =============================================================================

@dataclass
class FeatureEntry:
    """An indexed class feature."""
    uuid: str
    name: str
    img: str
    class_id: str
    group: str = ""
    subclass: bool = False
    levels: Tuple[int, ...] = ()
    description: str = ""

    @property
    def is_progression(self) -> bool:
        return self.group.endswith(PROGRESSION_GROUP_SUFFIX)


@dataclass
class SpellEntry:
    """An indexed spell."""
    uuid: str
    name: str
    img: str
    school: str
    tier: int = 0
    is_utility: bool = False
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uuid": self.uuid,
            "name": self.name,
            "img": self.img,
            "school": self.school,
            "tier": self.tier,
            "is_utility": self.is_utility,
            "description": self.description,
        }


@dataclass
class EquipmentEntry:
    """An indexed equipment item."""
    uuid: str
    name: str
    img: str
    object_type: str
    armor_type: Optional[str] = None
    weapon_attr: Optional[str] = None  # "strength" or "dexterity"
    is_ranged: bool = False
    properties: Dict[str, Any] = field(default_factory=dict)
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uuid": self.uuid,
            "name": self.name,
            "img": self.img,
            "object_type": self.object_type,
            "armor_type": self.armor_type,
            "weapon_attr": self.weapon_attr,
            "is_ranged": self.is_ranged,
            "description": self.description,
        }


@dataclass
class ClassFeatureGrant:
    """A feature available at a specific level."""
    uuid: str
    name: str
    img: str
    level: int
    group: str
    description: str = ""


@dataclass
class ClassFeatureSet:
    """Result of get_class_features()."""
    progression: List[ClassFeatureGrant] = field(default_factory=list)
    selectable_groups: "OrderedDict[str, List[ClassFeatureGrant]]" = field(
        default_factory=OrderedDict
    )


@dataclass
class FeatureMatch:
    """Result of looking up one rule-table feature name in the catalog."""
    uuid: Optional[str]
    name: str
    img: str
    matched: bool
    description: str = ""


# =============================================================================
# Parsing Helpers
# =============================================================================

def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        # Some catalogs store {"value": "<p>...</p>"}
        inner = value.get("value")
        return inner if isinstance(inner, str) else ""
    return ""


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _parse_levels(levels: Any, single: Any) -> Tuple[int, ...]:
    """Combine gainedAtLevels / gainedAtLevel into a sorted level set."""
    raw: List[Any] = []
    if isinstance(levels, (list, tuple, set)):
        raw.extend(levels)
    if single is not None:
        raw.append(single)

    parsed: Set[int] = set()
    for value in raw:
        level = _as_int(value, default=0)
        if level > 0:
            parsed.add(level)
    return tuple(sorted(parsed))


def _selected_properties(value: Any) -> Set[str]:
    if isinstance(value, (list, tuple, set)):
        return {str(v) for v in value}
    if isinstance(value, dict):
        # {"utilitySpell": true, ...}
        return {k for k, v in value.items() if v}
    return set()


def build_folder_class_map(folders: Iterable[Dict[str, Any]]) -> Dict[str, str]:
    """
    Map every folder id to the class slug of its topmost ancestor folder.

    A feature in "Berserker/Savage Arsenal" belongs to class "berserker".
    """
    by_id = {f["id"]: f for f in folders}
    result: Dict[str, str] = {}

    for folder_id in by_id:
        current = by_id[folder_id]
        visited = {folder_id}
        while current.get("parent") in by_id and current["parent"] not in visited:
            visited.add(current["parent"])
            current = by_id[current["parent"]]
        result[folder_id] = slugify(current.get("name", ""))

    return result


# =============================================================================
# Content Index
# =============================================================================

class ContentIndex:
    """
    Queryable indices over the features, spells and equipment collections.

    Construct with a ContentCatalog and call initialize() once; repeated
    calls are no-ops.
    """

    def __init__(self, catalog: ContentCatalog):
        self._catalog = catalog
        self._initialized = False

        self._features_by_name: Dict[str, List[FeatureEntry]] = {}
        self._features_by_class: Dict[str, List[FeatureEntry]] = {}
        self._spells: Dict[str, SpellEntry] = {}
        self._items: Dict[str, EquipmentEntry] = {}

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Index all three collections concurrently."""
        if self._initialized:
            return

        await asyncio.gather(
            self._index_features(),
            self._index_spells(),
            self._index_items(),
        )
        self._initialized = True

        logger.info(
            f"[ContentIndex] Indexed {self.feature_count} features, "
            f"{len(self._spells)} spells, {len(self._items)} items"
        )

    @property
    def feature_count(self) -> int:
        return sum(len(entries) for entries in self._features_by_name.values())

    def stats(self) -> Dict[str, int]:
        return {
            "features": self.feature_count,
            "spells": len(self._spells),
            "items": len(self._items),
        }

    async def _fetch_index(self, collection: str, fields: List[str]) -> Optional[CollectionIndex]:
        try:
            index = await self._catalog.get_index(collection, fields)
        except ResourceLoadError as e:
            logger.warning(f"[ContentIndex] Collection {collection} unavailable: {e.message}")
            return None

        if index is None:
            logger.warning(f"[ContentIndex] Collection {collection} not found")
        return index

    # ==================== Index Builders ====================

    async def _index_features(self) -> None:
        index = await self._fetch_index(FEATURES_COLLECTION, FEATURE_FIELDS)
        if index is None:
            return

        folder_classes = build_folder_class_map(index.folders)

        for raw in index.entries:
            class_id = normalize_string(raw.get("system.class"))
            if not class_id and raw.get("folder"):
                class_id = folder_classes.get(raw["folder"], "")

            entry = FeatureEntry(
                uuid=raw["uuid"],
                name=raw.get("name", ""),
                img=raw.get("img", ""),
                class_id=class_id,
                group=normalize_string(raw.get("system.group")),
                subclass=bool(raw.get("system.subclass")),
                levels=_parse_levels(raw.get("system.gainedAtLevels"), raw.get("system.gainedAtLevel")),
                description=_as_text(raw.get("system.description")),
            )

            self._features_by_name.setdefault(normalize_string(entry.name), []).append(entry)
            self._features_by_class.setdefault(class_id, []).append(entry)

    async def _index_spells(self) -> None:
        index = await self._fetch_index(SPELLS_COLLECTION, SPELL_FIELDS)
        if index is None:
            return

        for raw in index.entries:
            selected = _selected_properties(raw.get("system.properties.selected"))
            self._spells[raw["uuid"]] = SpellEntry(
                uuid=raw["uuid"],
                name=raw.get("name", ""),
                img=raw.get("img", ""),
                school=normalize_string(raw.get("system.school")),
                tier=_as_int(raw.get("system.tier")),
                is_utility=UTILITY_SPELL_PROPERTY in selected,
                description=_as_text(raw.get("system.description")),
            )

    async def _index_items(self) -> None:
        index = await self._fetch_index(ITEMS_COLLECTION, ITEM_FIELDS)
        if index is None:
            return

        for raw in index.entries:
            properties = raw.get("system.properties")
            if not isinstance(properties, dict):
                properties = {}
            selected = _selected_properties(properties.get("selected"))

            armor_type = properties.get("armorType")
            weapon_attr = properties.get("weaponAttribute")
            self._items[raw["uuid"]] = EquipmentEntry(
                uuid=raw["uuid"],
                name=raw.get("name", ""),
                img=raw.get("img", ""),
                object_type=normalize_string(raw.get("system.objectType")),
                armor_type=normalize_string(armor_type) if armor_type else None,
                weapon_attr=normalize_string(weapon_attr) if weapon_attr else None,
                is_ranged=RANGED_PROPERTY in selected or bool(properties.get("ranged")),
                properties=properties,
                description=_as_text(raw.get("system.description")),
            )

    # ==================== Feature Queries ====================

    def get_class_features(
        self,
        class_id: str,
        from_level: int,
        to_level: int,
        subclass_id: Optional[str] = None
    ) -> ClassFeatureSet:
        """
        Enumerate the features a class owns in [from_level, to_level].

        Progression features ("-progression" groups) and features of the
        selected subclass are emitted once per matching level. Features of
        other subclasses are dropped. Everything else is a selectable option
        and is bucketed by group, once per matching level.

        Output follows catalog order, not level order.
        """
        result = ClassFeatureSet()
        selected_subclass = normalize_string(subclass_id) if subclass_id else None

        for entry in self._features_by_class.get(normalize_string(class_id), []):
            levels = [lvl for lvl in entry.levels if from_level <= lvl <= to_level]
            if not levels:
                continue

            if entry.subclass:
                if selected_subclass is None or entry.group != selected_subclass:
                    continue
                target = result.progression
            elif entry.is_progression:
                target = result.progression
            else:
                target = result.selectable_groups.setdefault(entry.group, [])

            for level in levels:
                target.append(ClassFeatureGrant(
                    uuid=entry.uuid,
                    name=entry.name,
                    img=entry.img,
                    level=level,
                    group=entry.group,
                    description=entry.description,
                ))

        return result

    def find_features_by_name(self, names: List[str], class_id: str) -> List[FeatureMatch]:
        """
        Look up rule-table feature names in the catalog.

        Returns exactly one FeatureMatch per input name, in input order.
        Unmatched names come back with matched=False and a placeholder image.
        """
        wanted_class = normalize_string(class_id)
        results = []

        for name in names:
            candidates = self._features_by_name.get(normalize_string(name), [])
            if not candidates:
                candidates = self._features_by_name.get(
                    normalize_string(strip_numeric_suffix(name)), []
                )

            match = next((c for c in candidates if c.class_id == wanted_class), None)
            if match is None and candidates:
                match = candidates[0]

            results.append(FeatureMatch(
                uuid=match.uuid if match else None,
                name=name,
                img=match.img if match else PLACEHOLDER_IMAGE,
                matched=match is not None,
                description=match.description if match else "",
            ))

        return results

    # ==================== Spell Queries ====================

    def _matching_spells(self, schools: Iterable[str], max_tier: int, include_utility: bool):
        wanted = {normalize_string(s) for s in schools} - {UTILITY_SCHOOL}
        for spell in self._spells.values():
            if spell.is_utility and not include_utility:
                continue
            if spell.school in wanted and spell.tier <= max_tier:
                yield spell

    def find_spells_by_school_and_tier(
        self,
        schools: Iterable[str],
        max_tier: int,
        include_utility: bool = False
    ) -> List[SpellEntry]:
        """
        Find spells in the given schools up to max_tier (inclusive).

        Utility-flagged spells are only included when include_utility is set;
        they are still bounded by school and tier. The "utility" token itself
        is not a school and is ignored in `schools`.

        Returns:
            Spells sorted by (tier, name)
        """
        results = list(self._matching_spells(schools, max_tier, include_utility))
        results.sort(key=lambda s: (s.tier, s.name.lower()))
        return results

    def count_spells_by_school_and_tier(
        self,
        schools: Iterable[str],
        max_tier: int,
        include_utility: bool = False
    ) -> int:
        return sum(1 for _ in self._matching_spells(schools, max_tier, include_utility))

    # ==================== Equipment Queries ====================

    def find_equipment_by_type(self, object_types: Iterable[str]) -> List[EquipmentEntry]:
        """Find items whose object type is in object_types, sorted by name."""
        wanted = {normalize_string(t) for t in object_types}
        results = [item for item in self._items.values() if item.object_type in wanted]
        results.sort(key=lambda item: item.name.lower())
        return results

    # ==================== Documents ====================

    async def get_full_document(self, identity: str) -> Optional[Dict[str, Any]]:
        """Resolve the full catalog record for an identity; None on any failure."""
        try:
            return await self._catalog.get_document(identity)
        except Exception as e:
            logger.error(f"[ContentIndex] Failed to resolve {identity}: {e}", exc_info=True)
            return None
