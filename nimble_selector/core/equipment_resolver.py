"""
Equipment Proficiency Resolver.

Finds the equipment a class can use from its armor and weapon proficiency
tags.

Weapon tags are checked in order; any tag that admits the item is enough:
- "all-martial": any weapon
- "str" / "all-str": strength weapons
- "dex": dexterity weapons
- "melee": weapons without the ranged property
- anything else: a weapon category from weapon-categories.json
"""
from typing import Dict, List, Optional, Set

from nimble_selector.core.content_index import ContentIndex, EquipmentEntry
from nimble_selector.core.normalize import normalize_string
from nimble_selector.core.rule_data import EquipmentProficiencies, RuleDataStore


ALWAYS_AVAILABLE_TYPES = ("consumable", "misc")

ARMOR_ALL = "all"
ARMOR_SHIELDS = "shields"


class EquipmentProficiencyResolver:
    """Resolves available equipment for a class."""

    def __init__(self, rule_data: RuleDataStore, content_index: ContentIndex):
        self._rule_data = rule_data
        self._content_index = content_index
        self._weapon_category_index: Optional[Dict[str, Set[str]]] = None

    def resolve(self, class_id: str) -> EquipmentProficiencies:
        return self._rule_data.equipment_proficiencies(class_id)

    @staticmethod
    def available_object_types(proficiencies: EquipmentProficiencies) -> List[str]:
        """Object types implied by a proficiency set, plus consumables and misc."""
        types: List[str] = []
        if proficiencies.armor:
            types.append("armor")
        if ARMOR_SHIELDS in proficiencies.armor or ARMOR_ALL in proficiencies.armor:
            types.append("shield")
        if proficiencies.weapons:
            types.append("weapon")
        types.extend(ALWAYS_AVAILABLE_TYPES)
        return types

    def find_available_equipment(self, class_id: str, strict: bool = False) -> List[EquipmentEntry]:
        """
        Find catalog equipment of every object type the class can use.

        With strict=True each item must also pass matches_proficiency().
        """
        proficiencies = self.resolve(class_id)
        items = self._content_index.find_equipment_by_type(
            self.available_object_types(proficiencies)
        )
        if strict:
            items = [item for item in items if self.matches_proficiency(item, proficiencies)]
        return items

    def matches_proficiency(self, item: EquipmentEntry, proficiencies: EquipmentProficiencies) -> bool:
        """Per-item gate. Consumables and misc always pass."""
        object_type = item.object_type

        if object_type in ALWAYS_AVAILABLE_TYPES:
            return True

        armor_tags = {normalize_string(t) for t in proficiencies.armor}

        if object_type == "shield":
            return ARMOR_SHIELDS in armor_tags or ARMOR_ALL in armor_tags

        if object_type == "armor":
            if ARMOR_ALL in armor_tags:
                return True
            return item.armor_type is not None and normalize_string(item.armor_type) in armor_tags

        if object_type == "weapon":
            return self._matches_weapon_proficiency(item, proficiencies.weapons)

        return True

    def _matches_weapon_proficiency(self, item: EquipmentEntry, weapon_tags: List[str]) -> bool:
        for raw_tag in weapon_tags:
            tag = normalize_string(raw_tag)
            if tag == "all-martial":
                return True
            if tag in ("str", "all-str"):
                if item.weapon_attr == "strength":
                    return True
            elif tag == "dex":
                if item.weapon_attr == "dexterity":
                    return True
            elif tag == "melee":
                if not item.is_ranged:
                    return True
            else:
                names = self._get_weapon_category_index().get(tag)
                if names and normalize_string(item.name) in names:
                    return True
        return False

    def _get_weapon_category_index(self) -> Dict[str, Set[str]]:
        if self._weapon_category_index is not None:
            return self._weapon_category_index

        index = {
            tag: {normalize_string(n) for n in names}
            for tag, names in self._rule_data.weapon_categories().items()
        }
        # Not cached until the rule tables are loaded
        if self._rule_data.loaded:
            self._weapon_category_index = index
        return index
