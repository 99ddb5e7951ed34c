"""Tests for the content catalog and index."""
import shutil
from pathlib import Path

import pytest
from unittest.mock import AsyncMock

from nimble_selector.core.catalog import (
    FEATURES_COLLECTION,
    ITEMS_COLLECTION,
    SPELLS_COLLECTION,
    CollectionIndex,
    InMemoryContentCatalog,
    JsonContentCatalog,
    get_property,
    make_identity,
    parse_identity,
)
from nimble_selector.core.content_index import ContentIndex, build_folder_class_map
from nimble_selector.core.errors import ResourceLoadError
from nimble_selector.core.normalize import PLACEHOLDER_IMAGE

CATALOG_DIR = Path(__file__).resolve().parent.parent / "nimble_selector" / "data" / "catalog"


def feature_uuid(entry_id: str) -> str:
    return make_identity(FEATURES_COLLECTION, entry_id)


class TestIdentity:
    """Test catalog identity helpers."""

    def test_round_trip(self):
        identity = make_identity(SPELLS_COLLECTION, "abc123")
        assert identity == "Compendium.nimble.nimble-spells.Item.abc123"
        assert parse_identity(identity) == (SPELLS_COLLECTION, "abc123")

    def test_malformed(self):
        assert parse_identity("") is None
        assert parse_identity("Actor.abc") is None
        assert parse_identity("Compendium.nimble.nimble-spells.Actor.abc") is None

    def test_get_property(self):
        data = {"system": {"properties": {"selected": ["ranged"]}}}
        assert get_property(data, "system.properties.selected") == ["ranged"]
        assert get_property(data, "system.missing.key", "x") == "x"


class TestFolderClassMap:
    """Test class inference from folders."""

    def test_topmost_ancestor_wins(self):
        folders = [
            {"id": "a", "name": "The Cheat", "parent": None},
            {"id": "b", "name": "Underhanded Tricks", "parent": "a"},
            {"id": "c", "name": "Deep", "parent": "b"},
        ]
        assert build_folder_class_map(folders) == {
            "a": "the-cheat",
            "b": "the-cheat",
            "c": "the-cheat",
        }

    def test_parent_cycle_terminates(self):
        folders = [
            {"id": "a", "name": "A", "parent": "b"},
            {"id": "b", "name": "B", "parent": "a"},
        ]
        result = build_folder_class_map(folders)
        assert set(result) == {"a", "b"}


class TestInitialize:
    """Test index construction."""

    @pytest.mark.asyncio
    async def test_counts(self, content_index):
        assert content_index.initialized is True
        assert content_index.stats() == {"features": 17, "spells": 8, "items": 10}

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, content_catalog):
        index = ContentIndex(content_catalog)
        await index.initialize()
        await index.initialize()
        assert index.feature_count == 17

    @pytest.mark.asyncio
    async def test_missing_collection_leaves_others(self, catalog_collections):
        del catalog_collections[SPELLS_COLLECTION]
        index = ContentIndex(InMemoryContentCatalog(catalog_collections))
        await index.initialize()

        assert index.initialized is True
        assert index.stats()["spells"] == 0
        assert index.stats()["items"] == 10

    @pytest.mark.asyncio
    async def test_failing_catalog_degrades_to_empty(self):
        catalog = AsyncMock()
        catalog.get_index.side_effect = ResourceLoadError("catalog", "offline")
        index = ContentIndex(catalog)
        await index.initialize()

        assert index.stats() == {"features": 0, "spells": 0, "items": 0}


class TestJsonCatalogFailures:
    """A collection file that cannot be read only empties that collection."""

    @pytest.fixture
    def catalog_dir(self, tmp_path):
        for name in (FEATURES_COLLECTION, SPELLS_COLLECTION, ITEMS_COLLECTION):
            shutil.copy(CATALOG_DIR / f"{name}.json", tmp_path / f"{name}.json")
        return tmp_path

    @pytest.mark.asyncio
    async def test_invalid_utf8(self, catalog_dir):
        (catalog_dir / f"{SPELLS_COLLECTION}.json").write_bytes(b'{"entries": ["\xff\xfe"]}')
        index = ContentIndex(JsonContentCatalog(catalog_dir))
        await index.initialize()

        assert index.initialized is True
        assert index.stats() == {"features": 17, "spells": 0, "items": 10}

    @pytest.mark.asyncio
    async def test_unreadable_path(self, catalog_dir):
        items_path = catalog_dir / f"{ITEMS_COLLECTION}.json"
        items_path.unlink()
        items_path.mkdir()
        index = ContentIndex(JsonContentCatalog(catalog_dir))
        await index.initialize()

        assert index.initialized is True
        assert index.stats() == {"features": 17, "spells": 8, "items": 0}


class TestClassFeatures:
    """Test get_class_features()."""

    @pytest.mark.asyncio
    async def test_progression_and_selectable(self, content_index):
        result = content_index.get_class_features("berserker", 1, 3)

        progression = [(f.name, f.level) for f in result.progression]
        assert progression == [
            ("Rage", 1),
            ("Savage Arsenal", 1),
            ("Savage Arsenal", 2),
            ("Intensifying Fury", 2),
        ]
        assert list(result.selectable_groups) == ["savage-arsenal"]
        names = [(f.name, f.level) for f in result.selectable_groups["savage-arsenal"]]
        assert names == [
            ("Into the Fray", 1),
            ("Into the Fray", 2),
            ("Unstoppable Brute", 1),
            ("Unstoppable Brute", 2),
        ]

    @pytest.mark.asyncio
    async def test_only_selected_subclass_included(self, content_index):
        result = content_index.get_class_features("berserker", 3, 3, "path-of-the-mountainheart")
        assert [f.name for f in result.progression] == ["Mountainheart’s Resolve"]

    @pytest.mark.asyncio
    async def test_subclass_features_dropped_without_subclass(self, content_index):
        result = content_index.get_class_features("berserker", 3, 3)
        assert result.progression == []
        assert len(result.selectable_groups) == 0

    @pytest.mark.asyncio
    async def test_class_inferred_from_folder(self, content_index):
        result = content_index.get_class_features("the-cheat", 1, 2)

        assert [f.name for f in result.progression] == ["Sneak Attack", "Thieves’ Cant"]
        assert [f.name for f in result.selectable_groups["underhanded-tricks"]] == ["Dirty Fighting"]

    @pytest.mark.asyncio
    async def test_unknown_class(self, content_index):
        result = content_index.get_class_features("necromancer", 1, 20)
        assert result.progression == []
        assert len(result.selectable_groups) == 0


class TestFindFeaturesByName:
    """Test rule-table name matching."""

    @pytest.mark.asyncio
    async def test_one_result_per_name_in_order(self, content_index):
        names = ["Subclass", "Rage", "Savage Arsenal (2)"]
        matches = content_index.find_features_by_name(names, "berserker")

        assert [m.name for m in matches] == names
        assert [m.matched for m in matches] == [False, True, True]
        assert matches[2].uuid == feature_uuid("bzkArsenal000001")

    @pytest.mark.asyncio
    async def test_unmatched_uses_placeholder(self, content_index):
        match = content_index.find_features_by_name(["Subclass"], "berserker")[0]
        assert match.uuid is None
        assert match.img == PLACEHOLDER_IMAGE

    @pytest.mark.asyncio
    async def test_curly_apostrophe_matches(self, content_index):
        match = content_index.find_features_by_name(["Mountainheart's Resolve"], "berserker")[0]
        assert match.matched is True
        assert match.uuid == feature_uuid("bzkMountain00001")

    @pytest.mark.asyncio
    async def test_prefers_same_class(self, content_index):
        mage = content_index.find_features_by_name(["Spellcasting"], "mage")[0]
        oath = content_index.find_features_by_name(["Spellcasting"], "oathsworn")[0]
        assert mage.uuid == feature_uuid("mageSpellcast001")
        assert oath.uuid == feature_uuid("oathSpellcast001")

    @pytest.mark.asyncio
    async def test_falls_back_to_other_class(self, content_index):
        match = content_index.find_features_by_name(["Spellcasting"], "berserker")[0]
        assert match.matched is True


class TestSpells:
    """Test spell queries."""

    @pytest.mark.asyncio
    async def test_school_and_tier(self, content_index):
        spells = content_index.find_spells_by_school_and_tier(["fire", "ice"], 1)
        assert [s.name for s in spells] == ["Flame Dart", "Ice Lance", "Frost Armor"]

    @pytest.mark.asyncio
    async def test_sorted_by_tier_then_name(self, content_index):
        spells = content_index.find_spells_by_school_and_tier(
            ["fire", "ice", "lightning", "radiant", "necrotic"], 9
        )
        keys = [(s.tier, s.name) for s in spells]
        assert keys == sorted(keys)

    @pytest.mark.asyncio
    async def test_name_order_ignores_case(self, catalog_collections):
        catalog_collections[SPELLS_COLLECTION]["entries"].append({
            "id": "splAsh0000000001", "name": "ash veil", "img": "", "type": "spell",
            "folder": None, "system": {"school": "fire", "tier": 0},
        })
        index = ContentIndex(InMemoryContentCatalog(catalog_collections))
        await index.initialize()

        spells = index.find_spells_by_school_and_tier(["fire"], 0)
        assert [s.name for s in spells] == ["ash veil", "Flame Dart"]

    @pytest.mark.asyncio
    async def test_utility_excluded_by_default(self, content_index):
        spells = content_index.find_spells_by_school_and_tier(["fire"], 0)
        assert [s.name for s in spells] == ["Flame Dart"]

    @pytest.mark.asyncio
    async def test_utility_included_when_requested(self, content_index):
        spells = content_index.find_spells_by_school_and_tier(["fire"], 0, include_utility=True)
        assert [s.name for s in spells] == ["Flame Dart", "Kindle"]
        assert spells[1].is_utility is True

    @pytest.mark.asyncio
    async def test_no_spellcasting_finds_nothing(self, content_index):
        assert content_index.find_spells_by_school_and_tier(["fire"], -1) == []

    @pytest.mark.asyncio
    async def test_count_matches_find(self, content_index):
        schools = ["fire", "ice", "lightning"]
        assert content_index.count_spells_by_school_and_tier(schools, 1, True) == len(
            content_index.find_spells_by_school_and_tier(schools, 1, True)
        )


class TestEquipment:
    """Test equipment queries."""

    @pytest.mark.asyncio
    async def test_by_type_sorted_by_name(self, content_index):
        items = content_index.find_equipment_by_type(["armor", "shield"])
        assert [i.name for i in items] == ["Leather Armor", "Plate Armor", "Wooden Shield"]

    @pytest.mark.asyncio
    async def test_name_order_ignores_case(self, catalog_collections):
        catalog_collections[ITEMS_COLLECTION]["entries"].append({
            "id": "itmBuckler000001", "name": "buckler", "img": "", "type": "object",
            "folder": None, "system": {"objectType": "shield"},
        })
        index = ContentIndex(InMemoryContentCatalog(catalog_collections))
        await index.initialize()

        items = index.find_equipment_by_type(["armor", "shield"])
        assert [i.name for i in items] == ["buckler", "Leather Armor", "Plate Armor", "Wooden Shield"]

    @pytest.mark.asyncio
    async def test_ranged_property(self, content_index):
        items = {i.name: i for i in content_index.find_equipment_by_type(["weapon"])}
        assert items["Longbow"].is_ranged is True
        assert items["Dagger"].is_ranged is False
        assert items["Greataxe"].weapon_attr == "strength"


class TestDocuments:
    """Test full document resolution."""

    @pytest.mark.asyncio
    async def test_get_full_document(self, content_index):
        doc = await content_index.get_full_document(make_identity(ITEMS_COLLECTION, "itmRope00000001"))
        assert doc["name"] == "Rope"
        assert doc["system"]["objectType"] == "misc"

    @pytest.mark.asyncio
    async def test_unknown_identity(self, content_index):
        assert await content_index.get_full_document(make_identity(ITEMS_COLLECTION, "nope")) is None
        assert await content_index.get_full_document("garbage") is None

    @pytest.mark.asyncio
    async def test_catalog_error_returns_none(self):
        catalog = AsyncMock()
        catalog.get_document.side_effect = RuntimeError("boom")
        index = ContentIndex(catalog)
        assert await index.get_full_document("Compendium.x.y.Item.z") is None

    @pytest.mark.asyncio
    async def test_documents_are_copies(self, content_index):
        identity = make_identity(ITEMS_COLLECTION, "itmRope00000001")
        doc = await content_index.get_full_document(identity)
        doc["name"] = "Changed"
        again = await content_index.get_full_document(identity)
        assert again["name"] == "Rope"


class TestCollectionIndexProjection:
    """Test the projected index returned by the catalog."""

    @pytest.mark.asyncio
    async def test_fields_projected(self, content_catalog):
        index = await content_catalog.get_index(SPELLS_COLLECTION, ["system.tier"])
        assert isinstance(index, CollectionIndex)
        entry = index.entries[0]
        assert entry["uuid"].startswith("Compendium.nimble.nimble-spells.Item.")
        assert "system.tier" in entry

    @pytest.mark.asyncio
    async def test_missing_collection(self, content_catalog):
        assert await content_catalog.get_index("nimble.nope", []) is None
