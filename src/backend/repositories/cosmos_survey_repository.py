"""
Cosmos DB Survey and Response repositories.

Surveys are partitioned by id; responses by survey_id so that results
aggregation and "already responded" checks stay inside one partition.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from db.cosmos_session import RESPONSES_CONTAINER, SURVEYS_CONTAINER, CosmosStore
from models.cosmos_documents import ResponseDocument, SurveyDocument, to_json_datetime, utcnow

logger = logging.getLogger(__name__)


class CosmosSurveyRepository:
    """Repository for survey operations using Cosmos DB."""

    def __init__(self, store: CosmosStore):
        self.store = store

    # ========================================================================
    # Read Operations
    # ========================================================================

    async def get_by_id(self, survey_id: str, include_deleted: bool = False) -> Optional[SurveyDocument]:
        item = await self.store.read_item(SURVEYS_CONTAINER, survey_id, partition_key=survey_id)
        if not item:
            return None
        survey = SurveyDocument(**item)
        if survey.is_deleted and not include_deleted:
            return None
        return survey

    async def list_surveys(
        self,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> tuple[list[SurveyDocument], int]:
        """List visible surveys, newest first."""
        offset = (page - 1) * limit

        conditions = ["c.is_deleted = false", "c.is_hidden = false"]
        parameters: list[dict[str, Any]] = []

        if status:
            conditions.append("c.status = @status")
            parameters.append({"name": "@status", "value": status})

        if search:
            conditions.append("(CONTAINS(c.title, @search, true) OR CONTAINS(c.description, @search, true))")
            parameters.append({"name": "@search", "value": search})

        where_clause = " AND ".join(conditions)

        count_query = f"SELECT VALUE COUNT(1) FROM c WHERE {where_clause}"
        total = await self.store.query_count(SURVEYS_CONTAINER, count_query, parameters=list(parameters))

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
        results = await self.store.query_items(SURVEYS_CONTAINER, query, parameters=parameters)
        return [SurveyDocument(**r) for r in results], total

    async def count(self) -> int:
        query = "SELECT VALUE COUNT(1) FROM c WHERE c.is_deleted = false"
        return await self.store.query_count(SURVEYS_CONTAINER, query)

    async def list_all(self, search: Optional[str] = None) -> list[SurveyDocument]:
        """Every survey that is not soft-deleted, hidden ones included, newest first."""
        conditions = ["c.is_deleted = false"]
        parameters: list[dict[str, Any]] = []
        if search:
            conditions.append("CONTAINS(c.title, @search, true)")
            parameters.append({"name": "@search", "value": search})
        query = f"SELECT * FROM c WHERE {' AND '.join(conditions)} ORDER BY c.created_at DESC"
        results = await self.store.query_items(SURVEYS_CONTAINER, query, parameters=parameters)
        return [SurveyDocument(**r) for r in results]

    # ========================================================================
    # Write Operations
    # ========================================================================

    async def create(self, survey: SurveyDocument) -> SurveyDocument:
        await self.store.create_item(SURVEYS_CONTAINER, survey.to_cosmos())
        logger.info(f"Created survey {survey.id}")
        return survey

    async def update(self, survey: SurveyDocument) -> SurveyDocument:
        survey.updated_at = utcnow()
        await self.store.upsert_item(SURVEYS_CONTAINER, survey.to_cosmos())
        return survey

    async def _patch(self, survey_id: str, operations: list[dict[str, Any]]) -> Optional[SurveyDocument]:
        item = await self.store.patch_item(SURVEYS_CONTAINER, survey_id, survey_id, operations)
        if not item:
            return None
        return SurveyDocument(**item)

    async def set_fields(self, survey_id: str, fields: dict[str, Any]) -> Optional[SurveyDocument]:
        operations = [{"op": "set", "path": f"/{name}", "value": value} for name, value in fields.items()]
        operations.append({"op": "set", "path": "/updated_at", "value": to_json_datetime(utcnow())})
        return await self._patch(survey_id, operations)

    async def soft_delete(self, survey_id: str) -> bool:
        return await self.set_fields(survey_id, {"is_deleted": True}) is not None

    async def set_hidden(self, survey_id: str, hidden: bool) -> Optional[SurveyDocument]:
        return await self.set_fields(survey_id, {"is_hidden": hidden})

    async def increment_view_count(self, survey_id: str) -> Optional[SurveyDocument]:
        return await self._patch(survey_id, [{"op": "incr", "path": "/stats/view_count", "value": 1}])

    async def record_response(
        self,
        survey_id: str,
        submitted_at: datetime,
        completion_rate: int,
        first_response: bool,
    ) -> Optional[SurveyDocument]:
        """Bump response stats; the first response also locks the question set."""
        operations: list[dict[str, Any]] = [
            {"op": "incr", "path": "/stats/response_count", "value": 1},
            {"op": "set", "path": "/stats/last_response_at", "value": to_json_datetime(submitted_at)},
            {"op": "set", "path": "/stats/completion_rate", "value": completion_rate},
        ]
        if first_response:
            operations.append({"op": "set", "path": "/first_response_at", "value": to_json_datetime(submitted_at)})
            operations.append({"op": "set", "path": "/is_editable", "value": False})
        return await self._patch(survey_id, operations)


class CosmosResponseRepository:
    """Repository for survey responses using Cosmos DB."""

    def __init__(self, store: CosmosStore):
        self.store = store

    async def exists(self, survey_id: str, respondent_ip_hash: str) -> bool:
        query = """
            SELECT VALUE COUNT(1) FROM c
            WHERE c.survey_id = @survey_id
              AND c.respondent_ip_hash = @ip_hash
        """
        count = await self.store.query_count(
            RESPONSES_CONTAINER,
            query,
            parameters=[
                {"name": "@survey_id", "value": survey_id},
                {"name": "@ip_hash", "value": respondent_ip_hash},
            ],
            partition_key=survey_id,
        )
        return count > 0

    async def list_by_survey(self, survey_id: str) -> list[ResponseDocument]:
        query = "SELECT * FROM c WHERE c.survey_id = @survey_id ORDER BY c.submitted_at DESC"
        results = await self.store.query_items(
            RESPONSES_CONTAINER,
            query,
            parameters=[{"name": "@survey_id", "value": survey_id}],
            partition_key=survey_id,
        )
        return [ResponseDocument(**r) for r in results]

    async def count_complete(self, survey_id: str) -> int:
        query = "SELECT VALUE COUNT(1) FROM c WHERE c.survey_id = @survey_id AND c.is_complete = true"
        return await self.store.query_count(
            RESPONSES_CONTAINER,
            query,
            parameters=[{"name": "@survey_id", "value": survey_id}],
            partition_key=survey_id,
        )

    async def list_since(self, since: datetime) -> list[ResponseDocument]:
        """Responses submitted at or after ``since`` across all surveys (cross-partition)."""
        query = "SELECT * FROM c WHERE c.submitted_at >= @since"
        results = await self.store.query_items(
            RESPONSES_CONTAINER,
            query,
            parameters=[{"name": "@since", "value": to_json_datetime(since)}],
        )
        return [ResponseDocument(**r) for r in results]

    async def count(self) -> int:
        return await self.store.query_count(RESPONSES_CONTAINER, "SELECT VALUE COUNT(1) FROM c")

    async def create(self, response: ResponseDocument) -> ResponseDocument:
        await self.store.create_item(RESPONSES_CONTAINER, response.to_cosmos())
        logger.debug(f"Created response for survey {response.survey_id}")
        return response
