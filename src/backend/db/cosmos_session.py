"""
Azure Cosmos DB session management for document storage.

Uses the async Cosmos DB SDK. Authentication is either a connection string
(local emulator) or DefaultAzureCredential (RBAC in Azure).

The store is an explicitly constructed handle: the application creates one
at startup, keeps it on ``app.state`` and hands it to repositories through
FastAPI dependencies. ``connect()`` may be called any number of times; the
underlying client is created once under a lock.
"""

import asyncio
import logging
from typing import Any

from azure.cosmos import PartitionKey
from azure.cosmos.aio import ContainerProxy, CosmosClient, DatabaseProxy
from azure.cosmos.exceptions import CosmosResourceNotFoundError
from azure.identity.aio import DefaultAzureCredential
from fastapi import Request

from core.config import Settings

logger = logging.getLogger(__name__)

# Container names
DEBATES_CONTAINER = "debates"
VOTES_CONTAINER = "votes"
SURVEYS_CONTAINER = "surveys"
RESPONSES_CONTAINER = "responses"
QUESTIONS_CONTAINER = "questions"
COMMENTS_CONTAINER = "comments"
REQUESTS_CONTAINER = "requests"
GUESTBOOK_CONTAINER = "guestbook"
ADMINS_CONTAINER = "admins"
ERROR_LOGS_CONTAINER = "error-logs"

# Container definitions with partition keys and unique key policies.
# The votes unique key is scoped to the /debate_id partition, which makes
# (debate_id, voter_ip_hash) unique.
CONTAINERS: list[dict[str, Any]] = [
    {"name": DEBATES_CONTAINER, "partition_key": "/id"},
    {"name": VOTES_CONTAINER, "partition_key": "/debate_id", "unique_keys": ["/voter_ip_hash"]},
    {"name": SURVEYS_CONTAINER, "partition_key": "/id"},
    {"name": RESPONSES_CONTAINER, "partition_key": "/survey_id"},
    {"name": QUESTIONS_CONTAINER, "partition_key": "/id"},
    {"name": COMMENTS_CONTAINER, "partition_key": "/content_id"},
    {"name": REQUESTS_CONTAINER, "partition_key": "/id"},
    {"name": GUESTBOOK_CONTAINER, "partition_key": "/id"},
    {"name": ADMINS_CONTAINER, "partition_key": "/id"},
    {"name": ERROR_LOGS_CONTAINER, "partition_key": "/id"},
]

# Cosmos DB accepts at most this many operations in one patch request
MAX_PATCH_OPERATIONS = 10


class CosmosStore:
    """Connection handle plus thin helpers over container operations."""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._client: CosmosClient | None = None
        self._database: DatabaseProxy | None = None
        self._credential: DefaultAzureCredential | None = None
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._database is not None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def _create_client(self) -> CosmosClient:
        settings = self._settings
        if settings.AZURE_COSMOS_CONNECTION_STRING:
            # Format: AccountEndpoint=https://...;AccountKey=...;
            conn_parts = dict(
                part.split("=", 1) for part in settings.AZURE_COSMOS_CONNECTION_STRING.split(";") if "=" in part
            )
            endpoint = conn_parts.get("AccountEndpoint", "")
            key = conn_parts.get("AccountKey", "")

            if not endpoint or not key:
                raise ValueError("AZURE_COSMOS_CONNECTION_STRING must contain AccountEndpoint and AccountKey")

            # Emulator uses a self-signed certificate
            logger.info(
                f"Initializing Cosmos DB client for {endpoint} (connection string mode, "
                f"SSL verification: {not settings.AZURE_COSMOS_DISABLE_SSL})"
            )
            return CosmosClient(
                url=endpoint,
                credential=key,
                connection_verify=not settings.AZURE_COSMOS_DISABLE_SSL,
            )

        if not settings.AZURE_COSMOS_ENDPOINT:
            raise ValueError("Either AZURE_COSMOS_ENDPOINT or AZURE_COSMOS_CONNECTION_STRING must be set")

        self._credential = DefaultAzureCredential()
        logger.info(f"Initializing Cosmos DB client for {settings.AZURE_COSMOS_ENDPOINT} (RBAC mode)")
        return CosmosClient(url=settings.AZURE_COSMOS_ENDPOINT, credential=self._credential)

    async def connect(self) -> None:
        """Create the client and database proxy exactly once."""
        if self._database is not None:
            return
        async with self._lock:
            if self._database is not None:
                return
            self._client = self._create_client()
            self._database = await self._client.create_database_if_not_exists(id=self._settings.AZURE_COSMOS_DATABASE)
            logger.info(f"Connected to database: {self._settings.AZURE_COSMOS_DATABASE}")

    async def ensure_containers(self) -> None:
        """Create any missing containers. Safe to run on every start."""
        await self.connect()
        assert self._database is not None
        for definition in CONTAINERS:
            kwargs: dict[str, Any] = {
                "id": definition["name"],
                "partition_key": PartitionKey(path=definition["partition_key"]),
            }
            if definition.get("unique_keys"):
                kwargs["unique_key_policy"] = {"uniqueKeys": [{"paths": [path]} for path in definition["unique_keys"]]}
            await self._database.create_container_if_not_exists(**kwargs)
            logger.debug(f"Container '{definition['name']}' ready (partition: {definition['partition_key']})")

    async def close(self) -> None:
        """Close Cosmos DB connections. Called during application shutdown."""
        async with self._lock:
            if self._client is not None:
                await self._client.close()
                self._client = None
                self._database = None
                logger.info("Closed Cosmos DB client")

            if self._credential is not None:
                await self._credential.close()
                self._credential = None

    async def get_container(self, container_name: str) -> ContainerProxy:
        await self.connect()
        assert self._database is not None
        return self._database.get_container_client(container_name)

    # ========================================================================
    # Item Operations
    # ========================================================================

    async def create_item(self, container_name: str, item: dict[str, Any]) -> dict[str, Any]:
        """
        Create a new item.

        Raises CosmosResourceExistsError when the id or a unique key is taken.
        """
        container = await self.get_container(container_name)
        return await container.create_item(body=item)

    async def read_item(self, container_name: str, item_id: str, partition_key: str) -> dict[str, Any] | None:
        """Point read. Returns None if the item does not exist."""
        container = await self.get_container(container_name)
        try:
            return await container.read_item(item=item_id, partition_key=partition_key)
        except CosmosResourceNotFoundError:
            return None

    async def upsert_item(self, container_name: str, item: dict[str, Any]) -> dict[str, Any]:
        container = await self.get_container(container_name)
        return await container.upsert_item(body=item)

    async def delete_item(self, container_name: str, item_id: str, partition_key: str) -> bool:
        """Delete an item. Returns False if it was already gone."""
        container = await self.get_container(container_name)
        try:
            await container.delete_item(item=item_id, partition_key=partition_key)
        except CosmosResourceNotFoundError:
            return False
        return True

    async def patch_item(
        self,
        container_name: str,
        item_id: str,
        partition_key: str,
        operations: list[dict[str, Any]],
    ) -> dict[str, Any] | None:
        """
        Apply server-side partial updates (set/add/incr/remove).

        Operation lists longer than the service limit are sent in chunks; the
        item returned is the state after the last chunk. Returns None if the
        item does not exist.
        """
        container = await self.get_container(container_name)
        result: dict[str, Any] | None = None
        try:
            for start in range(0, len(operations), MAX_PATCH_OPERATIONS):
                result = await container.patch_item(
                    item=item_id,
                    partition_key=partition_key,
                    patch_operations=operations[start : start + MAX_PATCH_OPERATIONS],
                )
        except CosmosResourceNotFoundError:
            return None
        return result

    async def query_items(
        self,
        container_name: str,
        query: str,
        parameters: list[dict[str, Any]] | None = None,
        partition_key: str | None = None,
        max_items: int | None = None,
    ) -> list[Any]:
        """
        Query items using SQL-like syntax.

        Example:
            results = await store.query_items(
                "admins",
                "SELECT * FROM c WHERE c.username = @username",
                parameters=[{"name": "@username", "value": "root"}],
            )
        """
        container = await self.get_container(container_name)

        # Cross-partition querying is enabled automatically when no partition_key is given
        query_kwargs: dict[str, Any] = {"query": query}
        if parameters:
            query_kwargs["parameters"] = parameters
        if partition_key:
            query_kwargs["partition_key"] = partition_key
        if max_items:
            query_kwargs["max_item_count"] = max_items

        items: list[Any] = []
        async for item in container.query_items(**query_kwargs):
            items.append(item)
            if max_items and len(items) >= max_items:
                break
        return items

    async def query_count(
        self,
        container_name: str,
        query: str,
        parameters: list[dict[str, Any]] | None = None,
        partition_key: str | None = None,
    ) -> int:
        """Execute a ``SELECT VALUE COUNT(1)`` query and return the integer result."""
        results = await self.query_items(container_name, query, parameters, partition_key)
        if results and isinstance(results[0], (int, float)):
            return int(results[0])
        return 0


def get_store(request: Request) -> CosmosStore:
    """FastAPI dependency returning the store created at startup."""
    return request.app.state.cosmos_store
