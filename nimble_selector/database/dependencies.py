"""
FastAPI dependencies for database access and the selector services.

Provides dependency injection for repositories and the orchestrator,
enabling clean separation of concerns and easy testing.
"""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from nimble_selector.core.errors import ServiceNotReadyError
from nimble_selector.core.orchestrator import SelectorOrchestrator
from nimble_selector.database.engine import get_session
from nimble_selector.database.repositories import (
    CharacterItemRepository,
    CharacterRepository,
)


async def get_character_repo(
    session: AsyncSession = Depends(get_session)
) -> CharacterRepository:
    """Dependency for CharacterRepository."""
    return CharacterRepository(session)


async def get_item_repo(
    session: AsyncSession = Depends(get_session)
) -> CharacterItemRepository:
    """Dependency for CharacterItemRepository."""
    return CharacterItemRepository(session)


async def get_orchestrator(request: Request) -> SelectorOrchestrator:
    """The process-wide orchestrator built at startup."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise ServiceNotReadyError("selector")
    await orchestrator.ensure_ready()
    return orchestrator
