"""
Nimble Selector - Test Configuration and Fixtures
Shared rule tables, catalog data and loaded services for pytest.
"""
import copy
import json
from pathlib import Path
from typing import Any, Dict

import pytest
import pytest_asyncio

from nimble_selector.core.actor import Actor, InMemoryItemStore, OwnedItem
from nimble_selector.core.catalog import (
    FEATURES_COLLECTION,
    ITEMS_COLLECTION,
    SPELLS_COLLECTION,
    InMemoryContentCatalog,
    make_identity,
)
from nimble_selector.core.content_index import ContentIndex
from nimble_selector.core.orchestrator import SelectorOrchestrator
from nimble_selector.core.resource_loader import InMemoryResourceLoader
from nimble_selector.core.rule_data import (
    CLASS_FEATURES_FILE,
    EQUIPMENT_PROFICIENCIES_FILE,
    SPELL_SCHOOLS_FILE,
    SPELL_TIERS_FILE,
    WEAPON_CATEGORIES_FILE,
    RuleDataStore,
)

DATA_DIR = Path(__file__).resolve().parent.parent / "nimble_selector" / "data"
CATALOG_DIR = DATA_DIR / "catalog"

RULE_FILES = [
    CLASS_FEATURES_FILE,
    SPELL_SCHOOLS_FILE,
    SPELL_TIERS_FILE,
    EQUIPMENT_PROFICIENCIES_FILE,
    WEAPON_CATEGORIES_FILE,
]
COLLECTIONS = [FEATURES_COLLECTION, SPELLS_COLLECTION, ITEMS_COLLECTION]


def _read_json(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


_RULE_TABLES = {name: _read_json(DATA_DIR / name) for name in RULE_FILES}
_CATALOG = {name: _read_json(CATALOG_DIR / f"{name}.json") for name in COLLECTIONS}


def feature_uuid(entry_id: str) -> str:
    return make_identity(FEATURES_COLLECTION, entry_id)


def spell_uuid(entry_id: str) -> str:
    return make_identity(SPELLS_COLLECTION, entry_id)


def item_uuid(entry_id: str) -> str:
    return make_identity(ITEMS_COLLECTION, entry_id)


# ==================== Raw Data Fixtures ====================

@pytest.fixture
def rule_tables() -> Dict[str, Any]:
    """The bundled rule tables, keyed by file name. Safe to mutate."""
    return copy.deepcopy(_RULE_TABLES)


@pytest.fixture
def catalog_collections() -> Dict[str, Dict[str, Any]]:
    """The bundled catalog collections, keyed by collection name. Safe to mutate."""
    return copy.deepcopy(_CATALOG)


@pytest.fixture
def resource_loader(rule_tables) -> InMemoryResourceLoader:
    return InMemoryResourceLoader(rule_tables)


@pytest.fixture
def content_catalog(catalog_collections) -> InMemoryContentCatalog:
    return InMemoryContentCatalog(catalog_collections)


# ==================== Loaded Service Fixtures ====================

@pytest_asyncio.fixture
async def rule_data(resource_loader) -> RuleDataStore:
    store = RuleDataStore(resource_loader)
    await store.load()
    return store


@pytest_asyncio.fixture
async def content_index(content_catalog) -> ContentIndex:
    index = ContentIndex(content_catalog)
    await index.initialize()
    return index


@pytest_asyncio.fixture
async def orchestrator(rule_data, content_index) -> SelectorOrchestrator:
    return SelectorOrchestrator(rule_data, content_index)


@pytest.fixture
def item_store() -> InMemoryItemStore:
    return InMemoryItemStore()


# ==================== Actor Fixtures ====================

@pytest.fixture
def berserker() -> Actor:
    """A level 3 berserker who already took Rage."""
    return Actor(
        id="char-berserker",
        name="Grukk",
        class_name="Berserker",
        class_identifier="berserker",
        subclass_name="Path of the Mountainheart",
        subclass_identifier="path-of-the-mountainheart",
        level=3,
        items=[
            OwnedItem(
                id="owned-rage",
                item_type="feature",
                name="Rage",
                source_id=feature_uuid("bzkRage000000001"),
            ),
        ],
    )


@pytest.fixture
def mage() -> Actor:
    """A level 2 mage with no subclass yet."""
    return Actor(
        id="char-mage",
        name="Ysolde",
        class_name="Mage",
        class_identifier="mage",
        level=2,
    )


@pytest.fixture
def cheat() -> Actor:
    """A level 2 Cheat identified only by class name."""
    return Actor(
        id="char-cheat",
        name="Fennick",
        class_name="The Cheat",
        level=2,
    )
