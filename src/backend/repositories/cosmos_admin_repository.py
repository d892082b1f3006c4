"""
Cosmos DB Admin and ErrorLog repositories.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from azure.cosmos.exceptions import CosmosResourceExistsError

from core.exceptions import ConflictError
from db.cosmos_session import ADMINS_CONTAINER, ERROR_LOGS_CONTAINER, CosmosStore
from models.cosmos_documents import AdminDocument, ErrorLogDocument, to_json_datetime

logger = logging.getLogger(__name__)


class CosmosAdminRepository:
    """Repository for stored admin accounts."""

    def __init__(self, store: CosmosStore):
        self.store = store

    async def get_by_username(self, username: str) -> Optional[AdminDocument]:
        results = await self.store.query_items(
            ADMINS_CONTAINER,
            "SELECT * FROM c WHERE c.username = @username",
            parameters=[{"name": "@username", "value": username}],
            max_items=1,
        )
        if not results:
            return None
        return AdminDocument(**results[0])

    async def exists(self, username: str, email: str) -> bool:
        """True if either the username or the email is taken."""
        count = await self.store.query_count(
            ADMINS_CONTAINER,
            "SELECT VALUE COUNT(1) FROM c WHERE c.username = @username OR c.email = @email",
            parameters=[
                {"name": "@username", "value": username},
                {"name": "@email", "value": email.strip().lower()},
            ],
        )
        return count > 0

    async def create(self, admin: AdminDocument) -> AdminDocument:
        try:
            await self.store.create_item(ADMINS_CONTAINER, admin.to_cosmos())
        except CosmosResourceExistsError as e:
            raise ConflictError("Username or email already registered") from e
        logger.info(f"Created admin account {admin.username}")
        return admin

    async def touch_last_login(self, admin_id: str, when: datetime) -> None:
        await self.store.patch_item(
            ADMINS_CONTAINER,
            admin_id,
            admin_id,
            [{"op": "set", "path": "/last_login", "value": to_json_datetime(when)}],
        )


class CosmosErrorLogRepository:
    """Repository for error reports."""

    def __init__(self, store: CosmosStore):
        self.store = store

    async def get_by_id(self, log_id: str) -> Optional[ErrorLogDocument]:
        item = await self.store.read_item(ERROR_LOGS_CONTAINER, log_id, partition_key=log_id)
        return ErrorLogDocument(**item) if item else None

    async def list_logs(
        self,
        page: int = 1,
        limit: int = 50,
        severity: Optional[str] = None,
        resolved: Optional[bool] = None,
        error_type: Optional[str] = None,
    ) -> tuple[list[ErrorLogDocument], int]:
        offset = (page - 1) * limit

        conditions = ["true"]
        parameters: list[dict[str, Any]] = []

        if severity:
            conditions.append("c.severity = @severity")
            parameters.append({"name": "@severity", "value": severity})

        if resolved is not None:
            conditions.append("c.resolved = @resolved")
            parameters.append({"name": "@resolved", "value": resolved})

        if error_type:
            conditions.append("c.error_type = @error_type")
            parameters.append({"name": "@error_type", "value": error_type})

        where_clause = " AND ".join(conditions)

        count_query = f"SELECT VALUE COUNT(1) FROM c WHERE {where_clause}"
        total = await self.store.query_count(ERROR_LOGS_CONTAINER, count_query, parameters=list(parameters))

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
        results = await self.store.query_items(ERROR_LOGS_CONTAINER, query, parameters=parameters)
        return [ErrorLogDocument(**r) for r in results], total

    async def count_unresolved(self) -> int:
        return await self.store.query_count(
            ERROR_LOGS_CONTAINER, "SELECT VALUE COUNT(1) FROM c WHERE c.resolved = false"
        )

    async def create(self, log: ErrorLogDocument) -> ErrorLogDocument:
        await self.store.create_item(ERROR_LOGS_CONTAINER, log.to_cosmos())
        return log

    async def update(self, log: ErrorLogDocument) -> ErrorLogDocument:
        await self.store.upsert_item(ERROR_LOGS_CONTAINER, log.to_cosmos())
        return log

    async def delete(self, log_id: str) -> bool:
        return await self.store.delete_item(ERROR_LOGS_CONTAINER, log_id, partition_key=log_id)
