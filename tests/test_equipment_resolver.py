"""Tests for equipment proficiency resolution."""
import pytest

from nimble_selector.core.content_index import EquipmentEntry
from nimble_selector.core.equipment_resolver import EquipmentProficiencyResolver
from nimble_selector.core.resource_loader import InMemoryResourceLoader
from nimble_selector.core.rule_data import EquipmentProficiencies, RuleDataStore


@pytest.fixture
def resolver(rule_data, content_index) -> EquipmentProficiencyResolver:
    return EquipmentProficiencyResolver(rule_data, content_index)


def weapon(name: str, attr: str, ranged: bool = False) -> EquipmentEntry:
    return EquipmentEntry(
        uuid=f"uuid-{name}",
        name=name,
        img="",
        object_type="weapon",
        weapon_attr=attr,
        is_ranged=ranged,
    )


class TestAvailableObjectTypes:
    """Test object types implied by proficiencies."""

    def test_all_armor_admits_shields(self):
        types = EquipmentProficiencyResolver.available_object_types(
            EquipmentProficiencies(armor=["all"], weapons=["all-martial"])
        )
        assert types == ["armor", "shield", "weapon", "consumable", "misc"]

    def test_shields_only(self):
        types = EquipmentProficiencyResolver.available_object_types(
            EquipmentProficiencies(armor=["shields"], weapons=[])
        )
        assert types == ["armor", "shield", "consumable", "misc"]

    def test_no_proficiencies(self):
        types = EquipmentProficiencyResolver.available_object_types(EquipmentProficiencies())
        assert types == ["consumable", "misc"]


class TestFindAvailableEquipment:
    """Test catalog equipment filtering."""

    @pytest.mark.asyncio
    async def test_loose_mode_filters_by_type_only(self, resolver):
        names = [i.name for i in resolver.find_available_equipment("berserker")]
        assert names == [
            "Dagger", "Greataxe", "Healing Potion", "Longbow", "Quarterstaff", "Rope", "Wand",
        ]

    @pytest.mark.asyncio
    async def test_strict_mode_applies_weapon_tags(self, resolver):
        names = [i.name for i in resolver.find_available_equipment("berserker", strict=True)]
        assert names == ["Greataxe", "Healing Potion", "Quarterstaff", "Rope"]

    @pytest.mark.asyncio
    async def test_strict_weapon_categories(self, resolver):
        names = [i.name for i in resolver.find_available_equipment("mage", strict=True)]
        assert names == ["Healing Potion", "Quarterstaff", "Rope", "Wand"]

    @pytest.mark.asyncio
    async def test_strict_armor_type(self, resolver):
        items = resolver.find_available_equipment("the-cheat", strict=True)
        names = [i.name for i in items]

        assert "Leather Armor" in names
        assert "Plate Armor" not in names
        assert "Wooden Shield" not in names

    @pytest.mark.asyncio
    async def test_all_armor_includes_shield(self, resolver):
        names = [i.name for i in resolver.find_available_equipment("oathsworn", strict=True)]
        assert "Wooden Shield" in names
        assert "Plate Armor" in names
        assert "Longbow" in names

    @pytest.mark.asyncio
    async def test_unknown_class_gets_consumables_and_misc(self, resolver):
        names = [i.name for i in resolver.find_available_equipment("necromancer", strict=True)]
        assert names == ["Healing Potion", "Rope"]


class TestMatchesProficiency:
    """Test the per-item weapon tag walk."""

    @pytest.mark.asyncio
    async def test_ranged_dex_weapon_rejected_by_melee_only(self, resolver):
        profs = EquipmentProficiencies(armor=[], weapons=["melee"])
        assert resolver.matches_proficiency(weapon("Longbow", "dexterity", ranged=True), profs) is False
        assert resolver.matches_proficiency(weapon("Dagger", "dexterity"), profs) is True

    @pytest.mark.asyncio
    async def test_any_tag_admits(self, resolver):
        profs = EquipmentProficiencies(armor=[], weapons=["dex", "melee"])
        assert resolver.matches_proficiency(weapon("Longbow", "dexterity", ranged=True), profs) is True
        assert resolver.matches_proficiency(weapon("Greataxe", "strength"), profs) is True

    @pytest.mark.asyncio
    async def test_str_tags(self, resolver):
        for tag in ("str", "all-str"):
            profs = EquipmentProficiencies(armor=[], weapons=[tag])
            assert resolver.matches_proficiency(weapon("Greataxe", "strength"), profs) is True
            assert resolver.matches_proficiency(weapon("Dagger", "dexterity"), profs) is False

    @pytest.mark.asyncio
    async def test_category_name_match_is_normalized(self, resolver):
        profs = EquipmentProficiencies(armor=[], weapons=["staves"])
        assert resolver.matches_proficiency(weapon(" quarterSTAFF ", "strength"), profs) is True
        assert resolver.matches_proficiency(weapon("Greataxe", "strength"), profs) is False

    @pytest.mark.asyncio
    async def test_consumables_always_pass(self, resolver):
        potion = EquipmentEntry(uuid="p", name="Potion", img="", object_type="consumable")
        assert resolver.matches_proficiency(potion, EquipmentProficiencies()) is True


class TestWeaponCategoryCache:
    """Test the category index is not pinned before rule data loads."""

    @pytest.mark.asyncio
    async def test_query_before_load(self, resource_loader, content_index):
        store = RuleDataStore(resource_loader)
        resolver = EquipmentProficiencyResolver(store, content_index)
        staff = weapon("Quarterstaff", "strength")
        profs = EquipmentProficiencies(armor=[], weapons=["staves"])

        assert resolver.matches_proficiency(staff, profs) is False
        await store.load()
        assert resolver.matches_proficiency(staff, profs) is True

    @pytest.mark.asyncio
    async def test_without_category_table(self, rule_tables, content_index):
        del rule_tables["weapon-categories.json"]
        store = RuleDataStore(InMemoryResourceLoader(rule_tables))
        await store.load()
        resolver = EquipmentProficiencyResolver(store, content_index)

        names = [i.name for i in resolver.find_available_equipment("mage", strict=True)]
        assert names == ["Healing Potion", "Rope"]
