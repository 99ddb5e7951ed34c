"""
Actor and owned-content records.

An Actor is a read snapshot of a character as seen by the engine: its class
information plus the content it already owns. Owned items are created only by
the ItemGranter and persisted through an OwnedItemStore.
"""
import secrets
import string
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol


class ItemType(str, Enum):
    """Categories of owned content used for duplicate detection."""
    FEATURE = "feature"
    SPELL = "spell"
    EQUIPMENT = "equipment"


# Catalog documents use the host system's type names
CATALOG_TYPE_TO_ITEM_TYPE: Dict[str, str] = {
    "feature": ItemType.FEATURE.value,
    "spell": ItemType.SPELL.value,
    "object": ItemType.EQUIPMENT.value,
    "equipment": ItemType.EQUIPMENT.value,
}

_ID_ALPHABET = string.ascii_letters + string.digits


def generate_item_id(length: int = 16) -> str:
    """Generate a random alphanumeric local id for an owned item."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


@dataclass
class OwnedItem:
    """A character-owned copy of a catalog entry."""
    id: str
    item_type: str
    name: str
    source_id: Optional[str] = None  # Catalog identity this copy came from
    img: str = ""
    system: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "item_type": self.item_type,
            "name": self.name,
            "source_id": self.source_id,
            "img": self.img,
            "system": self.system,
        }


@dataclass
class Actor:
    """A character snapshot: class info and owned items."""
    id: str
    name: str
    actor_type: str = "character"
    class_name: Optional[str] = None
    class_identifier: Optional[str] = None
    subclass_name: Optional[str] = None
    subclass_identifier: Optional[str] = None
    level: int = 1
    items: List[OwnedItem] = field(default_factory=list)


@dataclass
class ActorClassInfo:
    """Class information extracted from an actor."""
    class_identifier: str
    subclass_identifier: Optional[str]
    level: int


class OwnedItemStore(Protocol):
    """Persistence collaborator for owned items."""

    async def create_items(
        self,
        actor: Actor,
        items: List[OwnedItem],
        keep_id: bool = True,
    ) -> List[OwnedItem]:
        """Persist all items in one batch and return the stored records."""
        ...


class InMemoryItemStore:
    """OwnedItemStore that appends to the actor snapshot. Used by tests and scripts."""

    def __init__(self):
        self.batches: List[List[OwnedItem]] = []

    async def create_items(
        self,
        actor: Actor,
        items: List[OwnedItem],
        keep_id: bool = True,
    ) -> List[OwnedItem]:
        created = []
        for item in items:
            if not keep_id:
                item = OwnedItem(
                    id=generate_item_id(),
                    item_type=item.item_type,
                    name=item.name,
                    source_id=item.source_id,
                    img=item.img,
                    system=dict(item.system),
                )
            created.append(item)

        actor.items.extend(created)
        self.batches.append(created)
        return created
