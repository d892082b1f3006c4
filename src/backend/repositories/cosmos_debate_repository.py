"""
Cosmos DB Debate repository.

Debates are stored with embedded options and opinions.
Partition key is the debate id, so every write below is a single-partition
point operation.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from db.cosmos_session import DEBATES_CONTAINER, CosmosStore
from models.cosmos_documents import DebateDocument, OpinionDocument, to_json_datetime, utcnow

logger = logging.getLogger(__name__)

SORT_CLAUSES = {
    "recent": "c.created_at DESC",
    "popular": "c.stats.total_votes DESC",
    "ending": "c.end_at ASC",
}


class CosmosDebateRepository:
    """Repository for debate operations using Cosmos DB."""

    def __init__(self, store: CosmosStore):
        self.store = store

    # ========================================================================
    # Read Operations
    # ========================================================================

    async def get_by_id(self, debate_id: str, include_deleted: bool = False) -> Optional[DebateDocument]:
        """Get a debate by id (point read). Soft-deleted debates are hidden by default."""
        item = await self.store.read_item(DEBATES_CONTAINER, debate_id, partition_key=debate_id)
        if not item:
            return None
        debate = DebateDocument(**item)
        if debate.is_deleted and not include_deleted:
            return None
        return debate

    async def list_debates(
        self,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        tags: Optional[list[str]] = None,
        sort: str = "recent",
        now: Optional[datetime] = None,
    ) -> tuple[list[DebateDocument], int]:
        """List visible debates with filters and pagination."""
        offset = (page - 1) * limit
        now_value = to_json_datetime(now or utcnow())

        conditions = ["c.is_deleted = false", "c.is_hidden = false"]
        parameters: list[dict[str, Any]] = []

        # Status is derived from the voting window rather than the stored snapshot
        if status == "scheduled":
            conditions.append("c.start_at > @now")
        elif status == "active":
            conditions.append("c.start_at <= @now AND c.end_at >= @now")
        elif status == "ended":
            conditions.append("c.end_at < @now")
        if status in ("scheduled", "active", "ended"):
            parameters.append({"name": "@now", "value": now_value})

        if category:
            conditions.append("c.category = @category")
            parameters.append({"name": "@category", "value": category})

        if search:
            conditions.append("(CONTAINS(c.title, @search, true) OR CONTAINS(c.description, @search, true))")
            parameters.append({"name": "@search", "value": search})

        if tags:
            tag_conditions = []
            for index, tag in enumerate(tags):
                tag_conditions.append(f"ARRAY_CONTAINS(c.tags, @tag{index})")
                parameters.append({"name": f"@tag{index}", "value": tag})
            conditions.append(f"({' OR '.join(tag_conditions)})")

        where_clause = " AND ".join(conditions)

        count_query = f"SELECT VALUE COUNT(1) FROM c WHERE {where_clause}"
        total = await self.store.query_count(DEBATES_CONTAINER, count_query, parameters=list(parameters))

        parameters.extend(
            [
                {"name": "@offset", "value": offset},
                {"name": "@limit", "value": limit},
            ]
        )
        order_by = SORT_CLAUSES.get(sort, SORT_CLAUSES["recent"])
        query = f"""
            SELECT * FROM c
            WHERE {where_clause}
            ORDER BY {order_by}
            OFFSET @offset LIMIT @limit
        """
        results = await self.store.query_items(DEBATES_CONTAINER, query, parameters=parameters)
        return [DebateDocument(**r) for r in results], total

    async def count(self, include_hidden: bool = True) -> int:
        """Count debates that are not soft-deleted."""
        query = "SELECT VALUE COUNT(1) FROM c WHERE c.is_deleted = false"
        if not include_hidden:
            query += " AND c.is_hidden = false"
        return await self.store.query_count(DEBATES_CONTAINER, query)

    async def list_all(self, search: Optional[str] = None) -> list[DebateDocument]:
        """Every debate that is not soft-deleted, hidden ones included, newest first."""
        conditions = ["c.is_deleted = false"]
        parameters: list[dict[str, Any]] = []
        if search:
            conditions.append("CONTAINS(c.title, @search, true)")
            parameters.append({"name": "@search", "value": search})
        query = f"SELECT * FROM c WHERE {' AND '.join(conditions)} ORDER BY c.created_at DESC"
        results = await self.store.query_items(DEBATES_CONTAINER, query, parameters=parameters)
        return [DebateDocument(**r) for r in results]

    # ========================================================================
    # Write Operations
    # ========================================================================

    async def create(self, debate: DebateDocument) -> DebateDocument:
        await self.store.create_item(DEBATES_CONTAINER, debate.to_cosmos())
        logger.info(f"Created debate {debate.id}")
        return debate

    async def update(self, debate: DebateDocument) -> DebateDocument:
        """
        Replace the whole document.

        Only for author/admin edits of descriptive fields; counters go through
        the patch helpers below.
        """
        debate.updated_at = utcnow()
        await self.store.upsert_item(DEBATES_CONTAINER, debate.to_cosmos())
        return debate

    async def _patch(self, debate_id: str, operations: list[dict[str, Any]]) -> Optional[DebateDocument]:
        item = await self.store.patch_item(DEBATES_CONTAINER, debate_id, debate_id, operations)
        if not item:
            return None
        return DebateDocument(**item)

    async def set_fields(self, debate_id: str, fields: dict[str, Any]) -> Optional[DebateDocument]:
        """Set top-level fields atomically (values must be JSON-ready)."""
        operations = [{"op": "set", "path": f"/{name}", "value": value} for name, value in fields.items()]
        operations.append({"op": "set", "path": "/updated_at", "value": to_json_datetime(utcnow())})
        return await self._patch(debate_id, operations)

    async def soft_delete(self, debate_id: str) -> bool:
        debate = await self.set_fields(debate_id, {"is_deleted": True})
        return debate is not None

    async def set_hidden(self, debate_id: str, hidden: bool) -> Optional[DebateDocument]:
        return await self.set_fields(debate_id, {"is_hidden": hidden})

    async def increment_view_count(self, debate_id: str) -> Optional[DebateDocument]:
        return await self._patch(debate_id, [{"op": "incr", "path": "/stats/view_count", "value": 1}])

    async def record_vote(
        self,
        debate: DebateDocument,
        option_ids: list[str],
        voted_at: datetime,
    ) -> Optional[DebateDocument]:
        """
        Apply the counter changes of one vote with server-side increments.

        Option positions never change after creation, so indexes taken from
        the loaded document address the same options on the server.
        """
        operations: list[dict[str, Any]] = [
            {"op": "incr", "path": "/stats/total_votes", "value": len(option_ids)},
            {"op": "incr", "path": "/stats/unique_voters", "value": 1},
            {"op": "set", "path": "/stats/last_vote_at", "value": to_json_datetime(voted_at)},
        ]
        for option_id in option_ids:
            index = debate.option_index(option_id)
            operations.append({"op": "incr", "path": f"/vote_options/{index}/vote_count", "value": 1})
        return await self._patch(debate.id, operations)

    async def add_opinion(self, debate_id: str, opinion: OpinionDocument) -> Optional[DebateDocument]:
        """Append an opinion and bump the opinion counter in one request."""
        operations = [
            {"op": "add", "path": "/opinions/-", "value": opinion.model_dump(mode="json")},
            {"op": "incr", "path": "/stats/opinion_count", "value": 1},
        ]
        return await self._patch(debate_id, operations)
