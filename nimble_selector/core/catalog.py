"""
Content catalog access.

The catalog holds three collections (class features, spells, items). Each is
stored as one JSON document of the form:

    {
        "folders": [{"id": "...", "name": "Berserker", "parent": null}, ...],
        "entries": [{"id": "...", "name": "...", "img": "...", "type": "feature",
                     "folder": "...", "system": {...}}, ...]
    }

An entry's identity is "Compendium.<collection>.Item.<id>".
"""
import asyncio
import copy
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union

from nimble_selector.core.errors import ResourceLoadError

logger = logging.getLogger("nimble_selector.catalog")


FEATURES_COLLECTION = "nimble.nimble-class-features"
SPELLS_COLLECTION = "nimble.nimble-spells"
ITEMS_COLLECTION = "nimble.nimble-items"

IDENTITY_PREFIX = "Compendium"


def make_identity(collection: str, entry_id: str) -> str:
    return f"{IDENTITY_PREFIX}.{collection}.Item.{entry_id}"


def parse_identity(identity: str) -> Optional[Tuple[str, str]]:
    """Split an identity into (collection, entry id). None if malformed."""
    parts = identity.split(".") if identity else []
    # Compendium.<scope>.<pack>.Item.<id>
    if len(parts) < 4 or parts[0] != IDENTITY_PREFIX or parts[-2] != "Item":
        return None
    return ".".join(parts[1:-2]), parts[-1]


def get_property(data: Dict[str, Any], path: str, default: Any = None) -> Any:
    """Read a dotted path such as "system.properties.selected"."""
    current: Any = data
    for key in path.split("."):
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current


@dataclass
class CollectionIndex:
    """Lightweight projection of a collection used for indexing."""
    entries: List[Dict[str, Any]] = field(default_factory=list)
    folders: List[Dict[str, Any]] = field(default_factory=list)


class ContentCatalog(Protocol):
    """Read access to the content catalog."""

    async def get_index(self, collection: str, fields: List[str]) -> Optional[CollectionIndex]:
        """Projected entries and folders, or None if the collection does not exist."""
        ...

    async def get_document(self, identity: str) -> Optional[Dict[str, Any]]:
        """Full record for an identity, or None if unknown."""
        ...


class JsonContentCatalog:
    """ContentCatalog backed by one JSON file per collection."""

    def __init__(self, base_path: Union[str, Path]):
        self.base_path = Path(base_path)
        self._collections: Dict[str, Dict[str, Any]] = {}

    def _read_collection(self, collection: str) -> Dict[str, Any]:
        filepath = self.base_path / f"{collection}.json"
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise ResourceLoadError(str(filepath), "file not found")
        except json.JSONDecodeError as e:
            raise ResourceLoadError(str(filepath), f"invalid JSON ({e.msg})")
        except (OSError, ValueError) as e:
            raise ResourceLoadError(str(filepath), str(e))

        if not isinstance(data, dict):
            raise ResourceLoadError(str(filepath), "expected a JSON object")
        return data

    async def _load_collection(self, collection: str) -> Optional[Dict[str, Any]]:
        if collection not in self._collections:
            try:
                self._collections[collection] = await asyncio.to_thread(
                    self._read_collection, collection
                )
            except ResourceLoadError as e:
                logger.warning(f"[Catalog] {e.message}")
                return None
        return self._collections[collection]

    async def get_index(self, collection: str, fields: List[str]) -> Optional[CollectionIndex]:
        data = await self._load_collection(collection)
        if data is None:
            return None

        entries = []
        for raw in data.get("entries", []):
            if not isinstance(raw, dict) or "id" not in raw:
                continue
            entry = {
                "id": raw["id"],
                "uuid": make_identity(collection, raw["id"]),
                "name": raw.get("name", ""),
                "img": raw.get("img", ""),
                "type": raw.get("type", ""),
                "folder": raw.get("folder"),
            }
            for path in fields:
                entry[path] = get_property(raw, path)
            entries.append(entry)

        folders = [f for f in data.get("folders", []) if isinstance(f, dict) and "id" in f]
        return CollectionIndex(entries=entries, folders=folders)

    async def get_document(self, identity: str) -> Optional[Dict[str, Any]]:
        parsed = parse_identity(identity)
        if parsed is None:
            return None

        collection, entry_id = parsed
        data = await self._load_collection(collection)
        if data is None:
            return None

        for raw in data.get("entries", []):
            if isinstance(raw, dict) and raw.get("id") == entry_id:
                return copy.deepcopy(raw)
        return None


class InMemoryContentCatalog(JsonContentCatalog):
    """Catalog served from already-parsed collection documents."""

    def __init__(self, collections: Dict[str, Dict[str, Any]]):
        super().__init__(base_path=".")
        self._collections = dict(collections)

    async def _load_collection(self, collection: str) -> Optional[Dict[str, Any]]:
        return self._collections.get(collection)
