"""Determines which spell schools a class can cast from at a level."""
from typing import Optional

from nimble_selector.core.rule_data import MAX_LEVEL, RuleDataStore, SpellSchoolAccess


class SpellSchoolResolver:
    """Spell school access per class, subclass and level."""

    def __init__(self, rule_data: RuleDataStore):
        self._rule_data = rule_data

    def resolve(
        self,
        class_id: str,
        level: int,
        subclass_id: Optional[str] = None
    ) -> SpellSchoolAccess:
        return self._rule_data.spell_schools(class_id, level, subclass_id)

    def has_casting(self, class_id: str, subclass_id: Optional[str] = None) -> bool:
        """
        Whether the class ever gets spell access.

        Checked at the level cap: a class with no school or choice at 20 has
        none at any level.
        """
        access = self._rule_data.spell_schools(class_id, MAX_LEVEL, subclass_id)
        return bool(access.granted) or bool(access.choices)
