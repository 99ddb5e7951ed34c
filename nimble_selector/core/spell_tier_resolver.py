"""Determines the maximum spell tier a class can cast at a level."""
from typing import Optional

from nimble_selector.core.rule_data import RuleDataStore


class SpellTierResolver:
    """Max spell tier per class, subclass and level."""

    def __init__(self, rule_data: RuleDataStore):
        self._rule_data = rule_data

    def resolve(self, class_id: str, level: int, subclass_id: Optional[str] = None) -> int:
        """Max tier (0 = cantrips only, NO_SPELLCASTING = none)."""
        return self._rule_data.max_spell_tier(class_id, level, subclass_id)

    def has_new_tier_at_level(
        self,
        class_id: str,
        level: int,
        subclass_id: Optional[str] = None
    ) -> bool:
        """True if reaching `level` unlocks a higher tier than level - 1."""
        if level <= 1:
            return False
        return self.resolve(class_id, level, subclass_id) > self.resolve(class_id, level - 1, subclass_id)
