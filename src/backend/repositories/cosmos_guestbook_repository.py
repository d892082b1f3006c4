"""
Cosmos DB Guestbook repository.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from db.cosmos_session import GUESTBOOK_CONTAINER, CosmosStore
from models.cosmos_documents import GuestbookDocument, to_json_datetime

logger = logging.getLogger(__name__)


class CosmosGuestbookRepository:
    """Repository for guestbook notes using Cosmos DB."""

    def __init__(self, store: CosmosStore):
        self.store = store

    async def get_by_id(self, note_id: str) -> Optional[GuestbookDocument]:
        item = await self.store.read_item(GUESTBOOK_CONTAINER, note_id, partition_key=note_id)
        if not item:
            return None
        note = GuestbookDocument(**item)
        if note.is_deleted:
            return None
        return note

    async def list_recent(self, limit: int = 100) -> tuple[list[GuestbookDocument], int]:
        """Newest notes first, plus the total of live notes."""
        total = await self.count()
        query = """
            SELECT * FROM c
            WHERE c.is_deleted = false
            ORDER BY c.created_at DESC
            OFFSET 0 LIMIT @limit
        """
        results = await self.store.query_items(
            GUESTBOOK_CONTAINER,
            query,
            parameters=[{"name": "@limit", "value": limit}],
        )
        return [GuestbookDocument(**r) for r in results], total

    async def count(self) -> int:
        return await self.store.query_count(
            GUESTBOOK_CONTAINER, "SELECT VALUE COUNT(1) FROM c WHERE c.is_deleted = false"
        )

    async def list_all(self) -> list[GuestbookDocument]:
        query = "SELECT * FROM c WHERE c.is_deleted = false ORDER BY c.created_at DESC"
        results = await self.store.query_items(GUESTBOOK_CONTAINER, query)
        return [GuestbookDocument(**r) for r in results]

    async def count_since(self, author_ip_hash: str, since: datetime) -> int:
        query = """
            SELECT VALUE COUNT(1) FROM c
            WHERE c.author_ip_hash = @ip_hash
              AND c.created_at >= @since
        """
        return await self.store.query_count(
            GUESTBOOK_CONTAINER,
            query,
            parameters=[
                {"name": "@ip_hash", "value": author_ip_hash},
                {"name": "@since", "value": to_json_datetime(since)},
            ],
        )

    async def max_z_index(self) -> int:
        results = await self.store.query_items(
            GUESTBOOK_CONTAINER,
            "SELECT VALUE MAX(c.z_index) FROM c WHERE c.is_deleted = false",
        )
        if results and isinstance(results[0], (int, float)):
            return int(results[0])
        return 0

    async def create(self, note: GuestbookDocument) -> GuestbookDocument:
        await self.store.create_item(GUESTBOOK_CONTAINER, note.to_cosmos())
        logger.debug(f"Created guestbook note {note.id}")
        return note

    async def update_position(self, note_id: str, x: float, y: float, z_index: int) -> Optional[GuestbookDocument]:
        operations: list[dict[str, Any]] = [
            {"op": "set", "path": "/position", "value": {"x": x, "y": y}},
            {"op": "set", "path": "/z_index", "value": z_index},
        ]
        item = await self.store.patch_item(GUESTBOOK_CONTAINER, note_id, note_id, operations)
        return GuestbookDocument(**item) if item else None

    async def soft_delete(self, note_id: str) -> bool:
        item = await self.store.patch_item(
            GUESTBOOK_CONTAINER,
            note_id,
            note_id,
            [{"op": "set", "path": "/is_deleted", "value": True}],
        )
        return item is not None
