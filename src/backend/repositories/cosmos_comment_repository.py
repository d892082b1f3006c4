"""
Cosmos DB Comment repository.

Comments are partitioned by the id of the debate or question they belong
to, so loading a whole thread is a single-partition query.
"""

import logging
from typing import Optional

from db.cosmos_session import COMMENTS_CONTAINER, CosmosStore
from models.cosmos_documents import CommentDocument, utcnow

logger = logging.getLogger(__name__)


class CosmosCommentRepository:
    """Repository for comment operations using Cosmos DB."""

    def __init__(self, store: CosmosStore):
        self.store = store

    async def get_by_id(self, comment_id: str) -> Optional[CommentDocument]:
        """Look up a comment by id alone (cross-partition)."""
        results = await self.store.query_items(
            COMMENTS_CONTAINER,
            "SELECT * FROM c WHERE c.id = @id AND c.is_deleted = false",
            parameters=[{"name": "@id", "value": comment_id}],
            max_items=1,
        )
        if not results:
            return None
        return CommentDocument(**results[0])

    async def list_by_content(self, content_type: str, content_id: str) -> list[CommentDocument]:
        """All live comments of one debate or question, oldest first."""
        query = """
            SELECT * FROM c
            WHERE c.content_id = @content_id
              AND c.content_type = @content_type
              AND c.is_deleted = false
            ORDER BY c.created_at ASC
        """
        results = await self.store.query_items(
            COMMENTS_CONTAINER,
            query,
            parameters=[
                {"name": "@content_id", "value": content_id},
                {"name": "@content_type", "value": content_type},
            ],
            partition_key=content_id,
        )
        return [CommentDocument(**r) for r in results]

    async def count(self) -> int:
        return await self.store.query_count(
            COMMENTS_CONTAINER, "SELECT VALUE COUNT(1) FROM c WHERE c.is_deleted = false"
        )

    async def create(self, comment: CommentDocument) -> CommentDocument:
        await self.store.create_item(COMMENTS_CONTAINER, comment.to_cosmos())
        logger.debug(f"Created comment on {comment.content_type} {comment.content_id}")
        return comment

    async def update(self, comment: CommentDocument) -> CommentDocument:
        comment.updated_at = utcnow()
        await self.store.upsert_item(COMMENTS_CONTAINER, comment.to_cosmos())
        return comment
