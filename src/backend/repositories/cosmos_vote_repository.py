"""
Cosmos DB Vote repository.

Handles vote storage with privacy-preserving design.
Partition key is debate_id for efficient per-debate queries, and the
container's unique key on voter_ip_hash makes (debate_id, voter_ip_hash)
unique. That constraint, not any pre-check, is what stops double voting.
"""

import logging
from datetime import datetime
from typing import Optional

from azure.cosmos.exceptions import CosmosResourceExistsError

from core.exceptions import DuplicateVoteError
from db.cosmos_session import VOTES_CONTAINER, CosmosStore
from models.cosmos_documents import VoteDocument, to_json_datetime

logger = logging.getLogger(__name__)


class CosmosVoteRepository:
    """
    Repository for vote operations using Cosmos DB.

    Privacy Design:
    - The raw client IP is NEVER stored with votes
    - voter_ip_hash = sha256(ip + salt) identifies a voter within a debate
    - Votes are immutable: there is no update or delete path
    """

    def __init__(self, store: CosmosStore):
        self.store = store

    # ========================================================================
    # Read Operations
    # ========================================================================

    async def get_by_fingerprint(self, debate_id: str, voter_ip_hash: str) -> Optional[VoteDocument]:
        """Get the vote a fingerprint cast on a debate, if any."""
        query = """
            SELECT * FROM c
            WHERE c.debate_id = @debate_id
              AND c.voter_ip_hash = @voter_ip_hash
        """
        results = await self.store.query_items(
            VOTES_CONTAINER,
            query,
            parameters=[
                {"name": "@debate_id", "value": debate_id},
                {"name": "@voter_ip_hash", "value": voter_ip_hash},
            ],
            partition_key=debate_id,
            max_items=1,
        )
        if not results:
            return None
        return VoteDocument(**results[0])

    async def count_by_fingerprint(self, debate_id: str, voter_ip_hash: str) -> int:
        query = """
            SELECT VALUE COUNT(1) FROM c
            WHERE c.debate_id = @debate_id
              AND c.voter_ip_hash = @voter_ip_hash
        """
        return await self.store.query_count(
            VOTES_CONTAINER,
            query,
            parameters=[
                {"name": "@debate_id", "value": debate_id},
                {"name": "@voter_ip_hash", "value": voter_ip_hash},
            ],
            partition_key=debate_id,
        )

    async def exists(self, debate_id: str, voter_ip_hash: str) -> bool:
        """Check if a fingerprint already voted (advisory; see create)."""
        return await self.count_by_fingerprint(debate_id, voter_ip_hash) > 0

    async def count_by_debate(self, debate_id: str) -> int:
        """Get total vote records for a debate (efficient partition query)."""
        query = """
            SELECT VALUE COUNT(1) FROM c
            WHERE c.debate_id = @debate_id
        """
        return await self.store.query_count(
            VOTES_CONTAINER,
            query,
            parameters=[{"name": "@debate_id", "value": debate_id}],
            partition_key=debate_id,
        )

    async def list_by_debate(self, debate_id: str) -> list[VoteDocument]:
        """Every vote record of a debate, newest first."""
        query = "SELECT * FROM c WHERE c.debate_id = @debate_id ORDER BY c.created_at DESC"
        results = await self.store.query_items(
            VOTES_CONTAINER,
            query,
            parameters=[{"name": "@debate_id", "value": debate_id}],
            partition_key=debate_id,
        )
        return [VoteDocument(**r) for r in results]

    async def list_since(self, since: datetime) -> list[VoteDocument]:
        """Votes cast at or after ``since`` across all debates (cross-partition)."""
        query = "SELECT * FROM c WHERE c.created_at >= @since"
        results = await self.store.query_items(
            VOTES_CONTAINER,
            query,
            parameters=[{"name": "@since", "value": to_json_datetime(since)}],
        )
        return [VoteDocument(**r) for r in results]

    async def count(self) -> int:
        return await self.store.query_count(VOTES_CONTAINER, "SELECT VALUE COUNT(1) FROM c")

    # ========================================================================
    # Write Operations
    # ========================================================================

    async def create(self, vote: VoteDocument) -> VoteDocument:
        """
        Insert a vote record.

        Raises:
            DuplicateVoteError: the fingerprint already has a vote on this debate
        """
        try:
            await self.store.create_item(VOTES_CONTAINER, vote.to_cosmos())
        except CosmosResourceExistsError as e:
            logger.info(f"Rejected duplicate vote for debate {vote.debate_id}")
            raise DuplicateVoteError() from e
        logger.debug(f"Created vote for debate {vote.debate_id}")
        return vote
