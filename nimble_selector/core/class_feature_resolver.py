"""
Class Feature Resolver.

Answers "which class features is this character entitled to over a level
range", either from the catalog's own feature metadata (resolve_range) or
from the class-features rule table (resolve_table_range).
"""
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional

from nimble_selector.core.actor import ItemType
from nimble_selector.core.content_index import ContentIndex
from nimble_selector.core.normalize import build_owned_item_keys, is_owned, slug_to_label
from nimble_selector.core.rule_data import RuleDataStore


@dataclass
class ResolvedFeature:
    """A feature the character may pick, annotated for display."""
    uuid: Optional[str]
    name: str
    img: str
    level: Optional[int]  # None for selectable options presented once
    matched: bool = True
    selectable_group: Optional[str] = None
    selectable_group_id: Optional[str] = None
    description: str = ""
    already_owned: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uuid": self.uuid,
            "name": self.name,
            "img": self.img,
            "level": self.level,
            "matched": self.matched,
            "selectable_group": self.selectable_group,
            "selectable_group_id": self.selectable_group_id,
            "description": self.description,
            "already_owned": self.already_owned,
        }


class ClassFeatureResolver:
    """Resolves class features for a class, subclass and level range."""

    def __init__(self, content_index: ContentIndex, rule_data: RuleDataStore):
        self._content_index = content_index
        self._rule_data = rule_data

    def resolve_range(
        self,
        class_id: str,
        from_level: int,
        to_level: int,
        subclass_id: Optional[str] = None,
        expand_selectable: bool = False
    ) -> List[ResolvedFeature]:
        """
        Resolve every entitled feature in [from_level, to_level] from the catalog.

        Progression and subclass features come first, one per level gained.
        Selectable options follow, labelled with their group. By default each
        option appears once with level=None; with expand_selectable it appears
        once per level it is offered at.
        """
        feature_set = self._content_index.get_class_features(
            class_id, from_level, to_level, subclass_id
        )

        results = [
            ResolvedFeature(
                uuid=f.uuid,
                name=f.name,
                img=f.img,
                level=f.level,
                description=f.description,
            )
            for f in feature_set.progression
        ]

        for group_id, options in feature_set.selectable_groups.items():
            label = slug_to_label(group_id) if group_id else None
            seen = set()
            for option in options:
                if not expand_selectable:
                    if option.uuid in seen:
                        continue
                    seen.add(option.uuid)
                results.append(ResolvedFeature(
                    uuid=option.uuid,
                    name=option.name,
                    img=option.img,
                    level=option.level if expand_selectable else None,
                    selectable_group=label,
                    selectable_group_id=group_id or None,
                    description=option.description,
                ))

        return results

    def resolve_table_range(
        self,
        class_id: str,
        from_level: int,
        to_level: int,
        subclass_id: Optional[str] = None
    ) -> List[ResolvedFeature]:
        """
        Resolve the rule table's feature names for the range against the catalog.

        One record per table name, in level order; names with no catalog
        entry are kept with matched=False.
        """
        by_level = self._rule_data.features_for_range(class_id, from_level, to_level, subclass_id)

        results = []
        for level, names in by_level.items():
            for match in self._content_index.find_features_by_name(names, class_id):
                results.append(ResolvedFeature(
                    uuid=match.uuid,
                    name=match.name,
                    img=match.img,
                    level=level,
                    matched=match.matched,
                    description=match.description,
                ))
        return results

    def mark_owned_features(
        self,
        owned_records: Iterable,
        features: List[ResolvedFeature]
    ) -> List[ResolvedFeature]:
        """Flag features whose name or source the actor already owns."""
        owned_keys = build_owned_item_keys(owned_records, ItemType.FEATURE.value)
        return [
            replace(f, already_owned=is_owned(owned_keys, f.name, f.uuid))
            for f in features
        ]

    @staticmethod
    def default_selection(features: List[ResolvedFeature]) -> List[str]:
        """Identities to pre-select: matched and not already owned, deduplicated."""
        selected: List[str] = []
        for f in features:
            if f.matched and not f.already_owned and f.uuid and f.uuid not in selected:
                selected.append(f.uuid)
        return selected
