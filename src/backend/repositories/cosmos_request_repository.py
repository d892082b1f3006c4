"""
Cosmos DB Request board repository.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from db.cosmos_session import REQUESTS_CONTAINER, CosmosStore
from models.cosmos_documents import RequestDocument, to_json_datetime, utcnow

logger = logging.getLogger(__name__)


class CosmosRequestRepository:
    """Repository for request board items using Cosmos DB."""

    def __init__(self, store: CosmosStore):
        self.store = store

    async def get_by_id(self, request_id: str) -> Optional[RequestDocument]:
        item = await self.store.read_item(REQUESTS_CONTAINER, request_id, partition_key=request_id)
        if not item:
            return None
        request = RequestDocument(**item)
        if request.is_deleted:
            return None
        return request

    async def list_public(self, page: int = 1, limit: int = 20) -> tuple[list[RequestDocument], int]:
        """Public, non-deleted requests, newest first."""
        offset = (page - 1) * limit
        where_clause = "c.is_deleted = false AND c.is_public = true"

        count_query = f"SELECT VALUE COUNT(1) FROM c WHERE {where_clause}"
        total = await self.store.query_count(REQUESTS_CONTAINER, count_query)

        query = f"""
            SELECT * FROM c
            WHERE {where_clause}
            ORDER BY c.created_at DESC
            OFFSET @offset LIMIT @limit
        """
        parameters: list[dict[str, Any]] = [
            {"name": "@offset", "value": offset},
            {"name": "@limit", "value": limit},
        ]
        results = await self.store.query_items(REQUESTS_CONTAINER, query, parameters=parameters)
        return [RequestDocument(**r) for r in results], total

    async def count_since(self, author_ip_hash: str, since: datetime) -> int:
        """How many requests a fingerprint created since a point in time."""
        query = """
            SELECT VALUE COUNT(1) FROM c
            WHERE c.author_ip_hash = @ip_hash
              AND c.created_at >= @since
        """
        return await self.store.query_count(
            REQUESTS_CONTAINER,
            query,
            parameters=[
                {"name": "@ip_hash", "value": author_ip_hash},
                {"name": "@since", "value": to_json_datetime(since)},
            ],
        )

    async def count(self) -> int:
        return await self.store.query_count(
            REQUESTS_CONTAINER, "SELECT VALUE COUNT(1) FROM c WHERE c.is_deleted = false"
        )

    async def list_all(self) -> list[RequestDocument]:
        """Every request that is not soft-deleted, private ones included, newest first."""
        query = "SELECT * FROM c WHERE c.is_deleted = false ORDER BY c.created_at DESC"
        results = await self.store.query_items(REQUESTS_CONTAINER, query)
        return [RequestDocument(**r) for r in results]

    async def create(self, request: RequestDocument) -> RequestDocument:
        await self.store.create_item(REQUESTS_CONTAINER, request.to_cosmos())
        logger.info(f"Created request {request.id}")
        return request

    async def update(self, request: RequestDocument) -> RequestDocument:
        request.updated_at = utcnow()
        await self.store.upsert_item(REQUESTS_CONTAINER, request.to_cosmos())
        return request

    async def increment_views(self, request_id: str) -> Optional[RequestDocument]:
        item = await self.store.patch_item(
            REQUESTS_CONTAINER,
            request_id,
            request_id,
            [{"op": "incr", "path": "/views", "value": 1}],
        )
        return RequestDocument(**item) if item else None
