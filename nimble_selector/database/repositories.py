"""
Repository pattern for database access.

Provides clean abstractions over the character and owned-item tables, and
converts rows to the engine's Actor/OwnedItem snapshots.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nimble_selector.core.actor import Actor, OwnedItem, generate_item_id
from nimble_selector.database.models import (
    Character,
    CharacterCreate,
    CharacterItem,
)


def item_row_to_owned(row: CharacterItem) -> OwnedItem:
    return OwnedItem(
        id=row.id,
        item_type=row.item_type,
        name=row.name,
        source_id=row.source_id,
        img=row.img,
        system=dict(row.system or {}),
    )


# =============================================================================
# CHARACTER REPOSITORY
# =============================================================================

class CharacterRepository:
    """Repository for Character CRUD operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, data: CharacterCreate) -> Character:
        """Create a new character."""
        character = Character(
            name=data.name,
            actor_type=data.actor_type,
            class_name=data.class_name,
            class_identifier=data.class_identifier,
            subclass_name=data.subclass_name,
            subclass_identifier=data.subclass_identifier,
            level=data.level,
        )
        self.session.add(character)
        await self.session.flush()
        return character

    async def get_by_id(self, character_id: str) -> Optional[Character]:
        """Get a character by ID."""
        result = await self.session.execute(
            select(Character).where(Character.id == character_id)
        )
        return result.scalar_one_or_none()

    async def get_all(self, limit: int = 100) -> List[Character]:
        """Get all characters, most recently updated first."""
        query = select(Character).order_by(Character.updated_at.desc()).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def update_level(self, character_id: str, level: int) -> Optional[Character]:
        """Set a character's class level."""
        character = await self.get_by_id(character_id)
        if not character:
            return None

        character.level = level
        character.updated_at = datetime.utcnow()
        await self.session.flush()
        return character

    async def load_actor(self, character_id: str) -> Optional[Actor]:
        """Build an Actor snapshot with the character's owned items."""
        character = await self.get_by_id(character_id)
        if not character:
            return None

        items = await CharacterItemRepository(self.session).list_for_character(character_id)
        return Actor(
            id=character.id,
            name=character.name,
            actor_type=character.actor_type,
            class_name=character.class_name,
            class_identifier=character.class_identifier,
            subclass_name=character.subclass_name,
            subclass_identifier=character.subclass_identifier,
            level=character.level,
            items=[item_row_to_owned(row) for row in items],
        )


# =============================================================================
# CHARACTER ITEM REPOSITORY
# =============================================================================

class CharacterItemRepository:
    """Repository for owned items. Also serves as the engine's OwnedItemStore."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for_character(self, character_id: str) -> List[CharacterItem]:
        """Get all items owned by a character, oldest first."""
        result = await self.session.execute(
            select(CharacterItem)
            .where(CharacterItem.character_id == character_id)
            .order_by(CharacterItem.created_at)
        )
        return list(result.scalars().all())

    async def create_items(
        self,
        actor: Actor,
        items: List[OwnedItem],
        keep_id: bool = True,
    ) -> List[OwnedItem]:
        """
        Persist a batch of owned items with a single flush.

        With keep_id=False every item gets a fresh id. The actor snapshot is
        extended with the created items.
        """
        rows = [
            CharacterItem(
                id=item.id if keep_id and item.id else generate_item_id(),
                character_id=actor.id,
                item_type=item.item_type,
                name=item.name,
                img=item.img,
                source_id=item.source_id,
                system=item.system,
            )
            for item in items
        ]
        self.session.add_all(rows)
        await self.session.flush()

        created = [item_row_to_owned(row) for row in rows]
        actor.items.extend(created)
        return created
