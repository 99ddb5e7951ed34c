"""
Database models for the Nimble selector.

Uses SQLModel (SQLAlchemy + Pydantic) for type-safe database access.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlmodel import JSON, Column, Field, SQLModel

from nimble_selector.core.actor import generate_item_id


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def generate_uuid() -> str:
    """Generate a UUID string."""
    return str(uuid4())


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.utcnow()


# =============================================================================
# CHARACTER MODEL
# =============================================================================

class Character(SQLModel, table=True):
    """
    Persistent character storage.

    Only what the selector needs: class information and level. Owned content
    lives in CharacterItem.
    """
    __tablename__ = "characters"

    id: str = Field(default_factory=generate_uuid, primary_key=True)

    name: str = Field(index=True)
    actor_type: str = Field(default="character")

    # Class info (identifiers fall back to slugs of the names)
    class_name: Optional[str] = None
    class_identifier: Optional[str] = Field(default=None, index=True)
    subclass_name: Optional[str] = None
    subclass_identifier: Optional[str] = None
    level: int = Field(default=1, ge=1, le=20)

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class CharacterCreate(SQLModel):
    """Model for creating a character."""
    name: str = Field(min_length=1, max_length=64)
    actor_type: str = "character"
    class_name: Optional[str] = None
    class_identifier: Optional[str] = None
    subclass_name: Optional[str] = None
    subclass_identifier: Optional[str] = None
    level: int = Field(default=1, ge=1, le=20)


class CharacterLevelUpdate(SQLModel):
    """Model for changing a character's class level."""
    level: int = Field(ge=1, le=20)


# =============================================================================
# CHARACTER ITEM MODEL
# =============================================================================

class CharacterItem(SQLModel, table=True):
    """
    A feature, spell or equipment item owned by a character.

    source_id records the catalog identity the item was granted from.
    """
    __tablename__ = "character_items"

    id: str = Field(default_factory=generate_item_id, primary_key=True)
    character_id: str = Field(foreign_key="characters.id", index=True)

    item_type: str = Field(index=True)
    name: str
    img: str = Field(default="")
    source_id: Optional[str] = Field(default=None, index=True)

    system: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utc_now)


class CharacterRead(SQLModel):
    """Character with its owned items, as returned by the API."""
    id: str
    name: str
    actor_type: str
    class_name: Optional[str] = None
    class_identifier: Optional[str] = None
    subclass_name: Optional[str] = None
    subclass_identifier: Optional[str] = None
    level: int
    items: List[Dict[str, Any]] = []
