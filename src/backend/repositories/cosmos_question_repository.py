"""
Cosmos DB Question (Q&A board) repository.
"""

import logging
from typing import Any, Optional

from db.cosmos_session import QUESTIONS_CONTAINER, CosmosStore
from models.cosmos_documents import QuestionDocument, utcnow

logger = logging.getLogger(__name__)


class CosmosQuestionRepository:
    """Repository for Q&A board items using Cosmos DB."""

    def __init__(self, store: CosmosStore):
        self.store = store

    # ========================================================================
    # Read Operations
    # ========================================================================

    async def get_by_id(self, question_id: str) -> Optional[QuestionDocument]:
        item = await self.store.read_item(QUESTIONS_CONTAINER, question_id, partition_key=question_id)
        if not item:
            return None
        question = QuestionDocument(**item)
        if question.is_deleted:
            return None
        return question

    async def list_questions(
        self,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> tuple[list[QuestionDocument], int]:
        offset = (page - 1) * limit

        conditions = ["c.is_deleted = false", "c.is_hidden = false"]
        parameters: list[dict[str, Any]] = []

        if status:
            conditions.append("c.status = @status")
            parameters.append({"name": "@status", "value": status})

        if category:
            conditions.append("c.category = @category")
            parameters.append({"name": "@category", "value": category})

        if search:
            conditions.append("(CONTAINS(c.title, @search, true) OR CONTAINS(c.content, @search, true))")
            parameters.append({"name": "@search", "value": search})

        where_clause = " AND ".join(conditions)

        count_query = f"SELECT VALUE COUNT(1) FROM c WHERE {where_clause}"
        total = await self.store.query_count(QUESTIONS_CONTAINER, count_query, parameters=list(parameters))

        parameters.extend(
            [
                {"name": "@offset", "value": offset},
                {"name": "@limit", "value": limit},
            ]
        )
        query = f"""
            SELECT * FROM c
            WHERE {where_clause}
            ORDER BY c.created_at DESC
            OFFSET @offset LIMIT @limit
        """
        results = await self.store.query_items(QUESTIONS_CONTAINER, query, parameters=parameters)
        return [QuestionDocument(**r) for r in results], total

    async def count(self, status: Optional[str] = None) -> int:
        query = "SELECT VALUE COUNT(1) FROM c WHERE c.is_deleted = false"
        parameters: list[dict[str, Any]] = []
        if status:
            query += " AND c.status = @status"
            parameters.append({"name": "@status", "value": status})
        return await self.store.query_count(QUESTIONS_CONTAINER, query, parameters=parameters)

    async def list_all(self, search: Optional[str] = None) -> list[QuestionDocument]:
        """Every question that is not soft-deleted, hidden ones included, newest first."""
        conditions = ["c.is_deleted = false"]
        parameters: list[dict[str, Any]] = []
        if search:
            conditions.append("CONTAINS(c.title, @search, true)")
            parameters.append({"name": "@search", "value": search})
        query = f"SELECT * FROM c WHERE {' AND '.join(conditions)} ORDER BY c.created_at DESC"
        results = await self.store.query_items(QUESTIONS_CONTAINER, query, parameters=parameters)
        return [QuestionDocument(**r) for r in results]

    # ========================================================================
    # Write Operations
    # ========================================================================

    async def create(self, question: QuestionDocument) -> QuestionDocument:
        await self.store.create_item(QUESTIONS_CONTAINER, question.to_cosmos())
        logger.info(f"Created question {question.id}")
        return question

    async def update(self, question: QuestionDocument) -> QuestionDocument:
        question.updated_at = utcnow()
        await self.store.upsert_item(QUESTIONS_CONTAINER, question.to_cosmos())
        return question

    async def increment_views(self, question_id: str) -> Optional[QuestionDocument]:
        item = await self.store.patch_item(
            QUESTIONS_CONTAINER,
            question_id,
            question_id,
            [{"op": "incr", "path": "/views", "value": 1}],
        )
        return QuestionDocument(**item) if item else None
