"""
Item Granter.

Grants catalog content to an actor:
resolve identity -> clone with a fresh local id -> stamp the content source ->
persist the whole batch in one store call.

The granter keeps no state between calls. Granting an identity twice creates
two owned records; callers filter already-owned content before confirming.
"""
import asyncio
import copy
import logging
from typing import Any, Dict, List, Optional

from nimble_selector.core.actor import (
    CATALOG_TYPE_TO_ITEM_TYPE,
    Actor,
    OwnedItem,
    OwnedItemStore,
    generate_item_id,
)
from nimble_selector.core.content_index import ContentIndex

logger = logging.getLogger("nimble_selector.item_granter")


class ItemGranter:
    """Grants items from the catalog to an actor by identity."""

    def __init__(self, content_index: ContentIndex, store: OwnedItemStore):
        self._content_index = content_index
        self._store = store

    async def grant_by_identities(self, actor: Actor, identities: List[str]) -> List[OwnedItem]:
        """
        Grant multiple items to an actor.

        Args:
            actor: The receiving actor
            identities: Catalog identities to grant

        Returns:
            The created owned items (empty if nothing could be resolved)
        """
        if not identities:
            return []

        prepared = await asyncio.gather(
            *(self._prepare_item(identity) for identity in identities)
        )
        items = [item for item in prepared if item is not None]
        if not items:
            return []

        created = await self._store.create_items(actor, items, keep_id=True)
        logger.info(f"[Granter] Granted {len(created)} item(s) to {actor.name}")
        return created

    async def _prepare_item(self, identity: str) -> Optional[OwnedItem]:
        document = await self._content_index.get_full_document(identity)
        if not document:
            logger.warning(f"[Granter] Could not resolve item: {identity}")
            return None
        return clone_document(document, identity)

    @staticmethod
    def actor_has_item_from_source(actor: Actor, identity: str) -> bool:
        """Whether any owned item was granted from this catalog identity."""
        return any(item.source_id == identity for item in actor.items)


def clone_document(document: Dict[str, Any], identity: str) -> OwnedItem:
    """Copy a catalog record into a new owned item pointing back at its source."""
    data = copy.deepcopy(document)
    catalog_type = data.get("type", "")
    return OwnedItem(
        id=generate_item_id(),
        item_type=CATALOG_TYPE_TO_ITEM_TYPE.get(catalog_type, catalog_type),
        name=data.get("name", ""),
        source_id=identity,
        img=data.get("img", ""),
        system=data.get("system") or {},
    )
