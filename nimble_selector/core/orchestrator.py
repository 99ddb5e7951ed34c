"""
Selector Orchestrator.

Entry point for the host layer. Makes sure rule data and the content index
are ready, extracts class information from an actor and assembles the
per-character views (overview, feature list, spell list, equipment list) the
selection UI renders. Confirmed selections go through grant().
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from nimble_selector.core.actor import Actor, ActorClassInfo, ItemType, OwnedItem, OwnedItemStore
from nimble_selector.core.class_feature_resolver import ClassFeatureResolver, ResolvedFeature
from nimble_selector.core.content_index import ContentIndex, EquipmentEntry, SpellEntry
from nimble_selector.core.equipment_resolver import EquipmentProficiencyResolver
from nimble_selector.core.errors import NoClassAssignedError
from nimble_selector.core.item_granter import ItemGranter
from nimble_selector.core.normalize import build_owned_item_keys, capitalize, is_owned, slugify
from nimble_selector.core.rule_data import NO_SPELLCASTING, RuleDataStore
from nimble_selector.core.spell_school_resolver import SpellSchoolResolver
from nimble_selector.core.spell_tier_resolver import SpellTierResolver

logger = logging.getLogger("nimble_selector.orchestrator")


UTILITY_SCHOOL = "utility"


@dataclass
class AvailableSpell:
    """A spell the character may learn, annotated for display."""
    spell: SpellEntry
    already_owned: bool = False

    @property
    def school_label(self) -> str:
        return capitalize(self.spell.school)

    @property
    def tier_label(self) -> str:
        if self.spell.is_utility:
            return "Utility"
        if self.spell.tier == 0:
            return "Cantrip"
        return f"Tier {self.spell.tier}"

    def to_dict(self) -> Dict[str, Any]:
        data = self.spell.to_dict()
        data.update({
            "already_owned": self.already_owned,
            "school_label": self.school_label,
            "tier_label": self.tier_label,
        })
        return data


@dataclass
class AvailableEquipment:
    """An equipment item the character may take."""
    item: EquipmentEntry
    already_owned: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = self.item.to_dict()
        data["already_owned"] = self.already_owned
        return data


@dataclass
class SelectorSummary:
    """Overview of everything a character can pick at a level."""
    actor_name: str
    class_identifier: str
    subclass_identifier: Optional[str]
    from_level: int
    level: int
    features: List[ResolvedFeature] = field(default_factory=list)
    default_selection: List[str] = field(default_factory=list)
    has_spellcasting: bool = False
    spell_schools: List[Dict[str, str]] = field(default_factory=list)
    school_choices: List[Dict[str, Any]] = field(default_factory=list)
    spell_count: int = 0
    max_tier: int = NO_SPELLCASTING
    new_tier: bool = False
    equipment_count: int = 0
    proficiencies: Dict[str, List[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actor_name": self.actor_name,
            "class_name": capitalize(self.class_identifier),
            "class_identifier": self.class_identifier,
            "subclass_identifier": self.subclass_identifier,
            "from_level": self.from_level,
            "level": self.level,
            "features": [f.to_dict() for f in self.features],
            "default_selection": self.default_selection,
            "has_spellcasting": self.has_spellcasting,
            "spell_schools": self.spell_schools,
            "school_choices": self.school_choices,
            "spell_count": self.spell_count,
            "max_tier": self.max_tier,
            "new_tier": self.new_tier,
            "equipment_count": self.equipment_count,
            "proficiencies": self.proficiencies,
        }


def level_up_range(previous_level: Optional[int], new_level: int) -> Optional[Tuple[int, int]]:
    """
    Level range to offer after a class level change.

    Returns None when nothing should open: the new level is below 2 or the
    level did not go up.
    """
    if new_level < 2:
        return None
    if previous_level is None:
        return new_level, new_level
    if new_level <= previous_level:
        return None
    return previous_level + 1, new_level


class SelectorOrchestrator:
    """Coordinates data loading, resolution and granting for one process."""

    def __init__(
        self,
        rule_data: RuleDataStore,
        content_index: ContentIndex,
        auto_select_features: bool = True,
    ):
        self.rule_data = rule_data
        self.content_index = content_index
        self.auto_select_features = auto_select_features

        self.features = ClassFeatureResolver(content_index, rule_data)
        self.schools = SpellSchoolResolver(rule_data)
        self.tiers = SpellTierResolver(rule_data)
        self.equipment = EquipmentProficiencyResolver(rule_data, content_index)

    @property
    def ready(self) -> bool:
        return self.rule_data.loaded and self.content_index.initialized

    async def ensure_ready(self) -> bool:
        """Load rule data and index the catalog. Safe to call repeatedly."""
        if not self.ready:
            await asyncio.gather(self.rule_data.load(), self.content_index.initialize())
        return True

    # ==================== Actor Info ====================

    @staticmethod
    def get_actor_class_info(actor: Actor) -> Optional[ActorClassInfo]:
        """
        Extract class information from an actor.

        Identifiers fall back to a slug of the class or subclass name.
        Returns None for non-character actors and actors without a class.
        """
        if actor.actor_type != "character":
            return None

        class_identifier = actor.class_identifier or slugify(actor.class_name)
        if not class_identifier:
            return None

        subclass_identifier = actor.subclass_identifier or slugify(actor.subclass_name) or None

        return ActorClassInfo(
            class_identifier=class_identifier,
            subclass_identifier=subclass_identifier,
            level=actor.level or 1,
        )

    def require_class_info(self, actor: Actor) -> ActorClassInfo:
        info = self.get_actor_class_info(actor)
        if info is None:
            raise NoClassAssignedError(actor.id)
        return info

    # ==================== Views ====================

    def list_features(
        self,
        actor: Actor,
        from_level: Optional[int] = None,
        to_level: Optional[int] = None,
        expand_selectable: bool = False
    ) -> List[ResolvedFeature]:
        """
        Owned-marked features for a level range.

        The range defaults to the actor's current level on both ends.
        """
        info = self.require_class_info(actor)
        to_level = to_level if to_level is not None else info.level
        from_level = from_level if from_level is not None else to_level
        if from_level > to_level:
            return []

        features = self.features.resolve_range(
            info.class_identifier,
            from_level,
            to_level,
            info.subclass_identifier,
            expand_selectable=expand_selectable,
        )
        return self.features.mark_owned_features(actor.items, features)

    def _spell_query(self, info: ActorClassInfo) -> Tuple[List[str], int, bool]:
        access = self.schools.resolve(info.class_identifier, info.level, info.subclass_identifier)
        max_tier = self.tiers.resolve(info.class_identifier, info.level, info.subclass_identifier)
        has_utility = UTILITY_SCHOOL in access.granted
        real_schools = sorted(s for s in access.granted if s != UTILITY_SCHOOL)
        return real_schools, max_tier, has_utility

    def list_spells(self, actor: Actor) -> List[AvailableSpell]:
        """Spells the character can learn now; utility spells once "utility" is granted."""
        info = self.require_class_info(actor)
        if not self.schools.has_casting(info.class_identifier, info.subclass_identifier):
            return []

        schools, max_tier, has_utility = self._spell_query(info)
        owned_keys = build_owned_item_keys(actor.items, ItemType.SPELL.value)
        return [
            AvailableSpell(spell=s, already_owned=is_owned(owned_keys, s.name, s.uuid))
            for s in self.content_index.find_spells_by_school_and_tier(schools, max_tier, has_utility)
        ]

    def list_equipment(
        self,
        actor: Actor,
        strict: bool = False
    ) -> Dict[str, List[AvailableEquipment]]:
        """Available equipment grouped by object type."""
        info = self.require_class_info(actor)
        owned_keys = build_owned_item_keys(actor.items, ItemType.EQUIPMENT.value)
        grouped: Dict[str, List[AvailableEquipment]] = {}
        for item in self.equipment.find_available_equipment(info.class_identifier, strict=strict):
            grouped.setdefault(item.object_type, []).append(
                AvailableEquipment(item=item, already_owned=is_owned(owned_keys, item.name, item.uuid))
            )
        return grouped

    def build_summary(self, actor: Actor, from_level: Optional[int] = None) -> SelectorSummary:
        """Assemble the levelling overview for an actor."""
        info = self.require_class_info(actor)

        start = from_level if from_level is not None else info.level
        start = max(1, min(start, info.level))

        features = self.list_features(actor, start, info.level)

        has_spellcasting = self.schools.has_casting(info.class_identifier, info.subclass_identifier)
        access = self.schools.resolve(info.class_identifier, info.level, info.subclass_identifier)
        schools, max_tier, has_utility = self._spell_query(info)
        spell_count = (
            self.content_index.count_spells_by_school_and_tier(schools, max_tier, has_utility)
            if has_spellcasting else 0
        )

        proficiencies = self.equipment.resolve(info.class_identifier)
        equipment = self.equipment.find_available_equipment(info.class_identifier)

        return SelectorSummary(
            actor_name=actor.name,
            class_identifier=info.class_identifier,
            subclass_identifier=info.subclass_identifier,
            from_level=start,
            level=info.level,
            features=features,
            default_selection=(
                self.features.default_selection(features) if self.auto_select_features else []
            ),
            has_spellcasting=has_spellcasting,
            spell_schools=[{"id": s, "label": capitalize(s)} for s in sorted(access.granted)],
            school_choices=[c.to_dict() for c in access.choices],
            spell_count=spell_count,
            max_tier=max_tier,
            new_tier=self.tiers.has_new_tier_at_level(
                info.class_identifier, info.level, info.subclass_identifier
            ),
            equipment_count=len(equipment),
            proficiencies=proficiencies.to_dict(),
        )

    # ==================== Granting ====================

    async def grant(
        self,
        actor: Actor,
        identities: List[str],
        store: OwnedItemStore,
        skip_owned: bool = True
    ) -> List[OwnedItem]:
        """Grant the confirmed identities, dropping ones the actor already has by source."""
        granter = ItemGranter(self.content_index, store)

        wanted: List[str] = []
        for identity in identities:
            if not identity or identity in wanted:
                continue
            if skip_owned and granter.actor_has_item_from_source(actor, identity):
                logger.debug(f"[Orchestrator] Skipping already-owned {identity}")
                continue
            wanted.append(identity)

        return await granter.grant_by_identities(actor, wanted)
