"""Database package for the Nimble selector."""
from nimble_selector.database.engine import (
    get_engine,
    get_session,
    init_db,
    close_db,
)
from nimble_selector.database.models import (
    Character,
    CharacterItem,
)

__all__ = [
    "get_engine",
    "get_session",
    "init_db",
    "close_db",
    "Character",
    "CharacterItem",
]
