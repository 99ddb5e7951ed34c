"""
Selector API Routes.

Endpoints behind the levelling panel:
- Character records (create, read, level change)
- Overview of what a character can pick
- Feature, spell and equipment listings flagged with ownership
- Granting confirmed selections
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from nimble_selector.config import get_settings
from nimble_selector.core.actor import Actor
from nimble_selector.core.errors import CharacterNotFoundError
from nimble_selector.core.orchestrator import SelectorOrchestrator, level_up_range
from nimble_selector.database.dependencies import (
    get_character_repo,
    get_item_repo,
    get_orchestrator,
)
from nimble_selector.database.models import CharacterCreate, CharacterLevelUpdate, CharacterRead
from nimble_selector.database.repositories import CharacterItemRepository, CharacterRepository

logger = logging.getLogger("nimble_selector.api")

router = APIRouter()


# =============================================================================
# Request/Response Models
# =============================================================================

class GrantRequest(BaseModel):
    """Confirmed selections to grant."""
    identities: List[str] = Field(default_factory=list)
    skip_owned: bool = True


class GrantResponse(BaseModel):
    """Items created by a grant."""
    character_id: str
    granted: List[Dict[str, Any]]
    count: int


class LevelChangeResponse(BaseModel):
    """Updated character plus the level range the panel should open on."""
    character: CharacterRead
    open_range: Optional[Dict[str, int]] = None


# =============================================================================
# Helpers
# =============================================================================

def _to_character_read(actor: Actor) -> CharacterRead:
    return CharacterRead(
        id=actor.id,
        name=actor.name,
        actor_type=actor.actor_type,
        class_name=actor.class_name,
        class_identifier=actor.class_identifier,
        subclass_name=actor.subclass_name,
        subclass_identifier=actor.subclass_identifier,
        level=actor.level,
        items=[item.to_dict() for item in actor.items],
    )


async def _load_actor(char_repo: CharacterRepository, character_id: str) -> Actor:
    actor = await char_repo.load_actor(character_id)
    if actor is None:
        raise CharacterNotFoundError(character_id)
    return actor


# =============================================================================
# Characters
# =============================================================================

@router.post("/characters", status_code=201, response_model=CharacterRead)
async def create_character(
    data: CharacterCreate,
    char_repo: CharacterRepository = Depends(get_character_repo),
):
    """Create a character to run the selector against."""
    character = await char_repo.create(data)
    logger.info(f"[Selector] Created character {character.name} ({character.id})")
    return _to_character_read(await _load_actor(char_repo, character.id))


@router.get("/characters")
async def list_characters(
    limit: int = Query(100, ge=1, le=500),
    char_repo: CharacterRepository = Depends(get_character_repo),
):
    characters = await char_repo.get_all(limit=limit)
    return {
        "characters": [
            {
                "id": c.id,
                "name": c.name,
                "class_name": c.class_name,
                "level": c.level,
            }
            for c in characters
        ],
        "count": len(characters),
    }


@router.get("/characters/{character_id}", response_model=CharacterRead)
async def get_character(
    character_id: str,
    char_repo: CharacterRepository = Depends(get_character_repo),
):
    return _to_character_read(await _load_actor(char_repo, character_id))


@router.patch("/characters/{character_id}/level", response_model=LevelChangeResponse)
async def change_level(
    character_id: str,
    data: CharacterLevelUpdate,
    char_repo: CharacterRepository = Depends(get_character_repo),
):
    """
    Change a character's class level.

    When the level goes up (to 2 or more) the response carries the level
    range the selector should open on.
    """
    character = await char_repo.get_by_id(character_id)
    if character is None:
        raise CharacterNotFoundError(character_id)

    previous_level = character.level
    await char_repo.update_level(character_id, data.level)

    open_range = None
    if get_settings().AUTO_OPEN_ON_LEVEL_UP:
        levels = level_up_range(previous_level, data.level)
        if levels is not None:
            open_range = {"from_level": levels[0], "to_level": levels[1]}

    actor = await _load_actor(char_repo, character_id)
    return LevelChangeResponse(character=_to_character_read(actor), open_range=open_range)


# =============================================================================
# Selector Views
# =============================================================================

@router.get("/characters/{character_id}/summary")
async def get_summary(
    character_id: str,
    from_level: Optional[int] = Query(None, ge=1, le=20),
    char_repo: CharacterRepository = Depends(get_character_repo),
    orchestrator: SelectorOrchestrator = Depends(get_orchestrator),
):
    """Overview of features, spells and equipment available to a character."""
    actor = await _load_actor(char_repo, character_id)
    return orchestrator.build_summary(actor, from_level).to_dict()


@router.get("/characters/{character_id}/features")
async def get_features(
    character_id: str,
    from_level: Optional[int] = Query(None, ge=1, le=20),
    to_level: Optional[int] = Query(None, ge=1, le=20),
    expand: bool = False,
    char_repo: CharacterRepository = Depends(get_character_repo),
    orchestrator: SelectorOrchestrator = Depends(get_orchestrator),
):
    """Features for a level range, defaulting to the character's current level."""
    actor = await _load_actor(char_repo, character_id)
    features = orchestrator.list_features(actor, from_level, to_level, expand_selectable=expand)
    return {
        "character_id": actor.id,
        "features": [f.to_dict() for f in features],
        "default_selection": (
            orchestrator.features.default_selection(features)
            if orchestrator.auto_select_features else []
        ),
    }


@router.get("/characters/{character_id}/spells")
async def get_spells(
    character_id: str,
    char_repo: CharacterRepository = Depends(get_character_repo),
    orchestrator: SelectorOrchestrator = Depends(get_orchestrator),
):
    actor = await _load_actor(char_repo, character_id)
    spells = orchestrator.list_spells(actor)
    return {
        "character_id": actor.id,
        "spells": [s.to_dict() for s in spells],
        "count": len(spells),
    }


@router.get("/characters/{character_id}/equipment")
async def get_equipment(
    character_id: str,
    strict: bool = False,
    char_repo: CharacterRepository = Depends(get_character_repo),
    orchestrator: SelectorOrchestrator = Depends(get_orchestrator),
):
    actor = await _load_actor(char_repo, character_id)
    grouped = orchestrator.list_equipment(actor, strict=strict)
    return {
        "character_id": actor.id,
        "equipment": {
            object_type: [item.to_dict() for item in items]
            for object_type, items in grouped.items()
        },
        "count": sum(len(items) for items in grouped.values()),
    }


# =============================================================================
# Granting
# =============================================================================

@router.post("/characters/{character_id}/grant", response_model=GrantResponse)
async def grant_items(
    character_id: str,
    request: GrantRequest,
    char_repo: CharacterRepository = Depends(get_character_repo),
    item_repo: CharacterItemRepository = Depends(get_item_repo),
    orchestrator: SelectorOrchestrator = Depends(get_orchestrator),
):
    """Grant confirmed catalog identities to a character."""
    actor = await _load_actor(char_repo, character_id)
    created = await orchestrator.grant(
        actor,
        request.identities,
        item_repo,
        skip_owned=request.skip_owned,
    )
    return GrantResponse(
        character_id=actor.id,
        granted=[item.to_dict() for item in created],
        count=len(created),
    )
