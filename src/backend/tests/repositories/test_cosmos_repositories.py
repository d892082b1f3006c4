"""
Tests for the Cosmos DB repositories.

The store is replaced by an AsyncMock so the tests check the queries and
patch operations the repositories send, not Cosmos itself.
"""

import importlib
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from azure.cosmos.exceptions import CosmosResourceExistsError

from core.exceptions import ConflictError, DuplicateVoteError
from db.cosmos_session import DEBATES_CONTAINER, VOTES_CONTAINER
from models.cosmos_documents import (
    AdminDocument,
    DebateDocument,
    OpinionDocument,
    VoteDocument,
    to_json_datetime,
    utcnow,
)


@pytest.fixture
def store() -> MagicMock:
    mock = MagicMock()
    mock.create_item = AsyncMock(return_value={})
    mock.read_item = AsyncMock(return_value=None)
    mock.upsert_item = AsyncMock(return_value={})
    mock.patch_item = AsyncMock(return_value=None)
    mock.query_items = AsyncMock(return_value=[])
    mock.query_count = AsyncMock(return_value=0)
    return mock


@pytest.fixture
def debate() -> DebateDocument:
    now = utcnow()
    return DebateDocument(
        title="Remote or office?",
        admin_password_hash="hash",
        vote_options=[
            {"id": "opt-remote", "label": "Remote", "order": 0},
            {"id": "opt-office", "label": "Office", "order": 1},
            {"id": "opt-hybrid", "label": "Hybrid", "order": 2},
        ],
        start_at=now - timedelta(hours=1),
        end_at=now + timedelta(days=1),
    )


@pytest.mark.unit
class TestCosmosVoteRepository:
    """Test CosmosVoteRepository operations."""

    async def test_create_inserts_vote(self, store) -> None:
        from repositories.cosmos_vote_repository import CosmosVoteRepository

        vote = VoteDocument(debate_id="d1", voter_ip_hash="abc", option_ids=["opt-remote"])
        await CosmosVoteRepository(store).create(vote)

        container, body = store.create_item.call_args.args
        assert container == VOTES_CONTAINER
        assert body["debate_id"] == "d1"
        assert body["voter_ip_hash"] == "abc"

    async def test_unique_key_violation_is_duplicate_vote(self, store) -> None:
        from repositories.cosmos_vote_repository import CosmosVoteRepository

        store.create_item.side_effect = CosmosResourceExistsError(status_code=409, message="Conflict")
        vote = VoteDocument(debate_id="d1", voter_ip_hash="abc", option_ids=["opt-remote"])

        with pytest.raises(DuplicateVoteError):
            await CosmosVoteRepository(store).create(vote)

    async def test_exists_uses_partition(self, store) -> None:
        from repositories.cosmos_vote_repository import CosmosVoteRepository

        store.query_count.return_value = 1

        assert await CosmosVoteRepository(store).exists("d1", "abc") is True
        assert store.query_count.call_args.kwargs["partition_key"] == "d1"

    async def test_get_by_fingerprint_missing(self, store) -> None:
        from repositories.cosmos_vote_repository import CosmosVoteRepository

        assert await CosmosVoteRepository(store).get_by_fingerprint("d1", "abc") is None

    def test_raw_ip_never_stored(self) -> None:
        """Vote documents carry only the fingerprint."""
        fields = set(VoteDocument.model_fields)
        assert "voter_ip_hash" in fields
        assert not {"ip", "ip_address", "voter_ip"} & fields


@pytest.mark.unit
class TestCosmosDebateRepository:
    """Test CosmosDebateRepository operations."""

    async def test_record_vote_uses_increments(self, store, debate) -> None:
        from repositories.cosmos_debate_repository import CosmosDebateRepository

        store.patch_item.return_value = debate.to_cosmos()
        voted_at = utcnow()

        await CosmosDebateRepository(store).record_vote(debate, ["opt-office", "opt-hybrid"], voted_at)

        container, item_id, partition_key, operations = store.patch_item.call_args.args
        assert (container, item_id, partition_key) == (DEBATES_CONTAINER, debate.id, debate.id)
        assert {"op": "incr", "path": "/stats/total_votes", "value": 2} in operations
        assert {"op": "incr", "path": "/stats/unique_voters", "value": 1} in operations
        assert {"op": "incr", "path": "/vote_options/1/vote_count", "value": 1} in operations
        assert {"op": "incr", "path": "/vote_options/2/vote_count", "value": 1} in operations
        assert not any(op["path"] == "/vote_options/0/vote_count" for op in operations)

    async def test_add_opinion_appends(self, store, debate) -> None:
        from repositories.cosmos_debate_repository import CosmosDebateRepository

        store.patch_item.return_value = debate.to_cosmos()
        opinion = OpinionDocument(author_ip_hash="abc", content="Hybrid is best")

        await CosmosDebateRepository(store).add_opinion(debate.id, opinion)

        operations = store.patch_item.call_args.args[3]
        assert operations[0]["op"] == "add"
        assert operations[0]["path"] == "/opinions/-"
        assert operations[0]["value"]["content"] == "Hybrid is best"
        assert {"op": "incr", "path": "/stats/opinion_count", "value": 1} in operations

    async def test_set_fields_touches_updated_at(self, store, debate) -> None:
        from repositories.cosmos_debate_repository import CosmosDebateRepository

        store.patch_item.return_value = debate.to_cosmos()
        await CosmosDebateRepository(store).set_hidden(debate.id, True)

        paths = [op["path"] for op in store.patch_item.call_args.args[3]]
        assert paths == ["/is_hidden", "/updated_at"]

    async def test_missing_debate_patch_returns_none(self, store) -> None:
        from repositories.cosmos_debate_repository import CosmosDebateRepository

        assert await CosmosDebateRepository(store).increment_view_count("missing") is None

    async def test_get_by_id_hides_deleted(self, store, debate) -> None:
        from repositories.cosmos_debate_repository import CosmosDebateRepository

        item = debate.to_cosmos()
        item["is_deleted"] = True
        store.read_item.return_value = item
        repo = CosmosDebateRepository(store)

        assert await repo.get_by_id(debate.id) is None
        assert (await repo.get_by_id(debate.id, include_deleted=True)).id == debate.id

    async def test_active_filter_uses_window(self, store) -> None:
        from repositories.cosmos_debate_repository import CosmosDebateRepository

        await CosmosDebateRepository(store).list_debates(status="active", tags=["work"])

        query = store.query_items.call_args.args[1]
        assert "c.start_at <= @now AND c.end_at >= @now" in query
        assert "ARRAY_CONTAINS(c.tags, @tag0)" in query
        assert "c.is_hidden = false" in query


@pytest.mark.unit
class TestCosmosAdminRepository:
    async def test_existing_account_is_conflict(self, store) -> None:
        from repositories.cosmos_admin_repository import CosmosAdminRepository

        store.create_item.side_effect = CosmosResourceExistsError(status_code=409, message="Conflict")
        admin = AdminDocument(username="moderator", email="m@example.com", password_hash="hash")

        with pytest.raises(ConflictError):
            await CosmosAdminRepository(store).create(admin)

    async def test_exists_lowercases_email(self, store) -> None:
        from repositories.cosmos_admin_repository import CosmosAdminRepository

        await CosmosAdminRepository(store).exists("moderator", " M@Example.com ")

        parameters = store.query_count.call_args.kwargs["parameters"]
        assert {"name": "@email", "value": "m@example.com"} in parameters


@pytest.mark.unit
class TestListingQueries:
    """Queries behind exports, site statistics and the admin listings."""

    async def test_votes_by_debate_stay_in_partition(self, store) -> None:
        from repositories.cosmos_vote_repository import CosmosVoteRepository

        store.query_items.return_value = [
            VoteDocument(debate_id="d1", voter_ip_hash="abc", option_ids=["opt-remote"]).to_cosmos()
        ]

        votes = await CosmosVoteRepository(store).list_by_debate("d1")

        assert [vote.voter_ip_hash for vote in votes] == ["abc"]
        assert store.query_items.call_args.kwargs["partition_key"] == "d1"

    async def test_votes_since_cross_partition(self, store) -> None:
        from repositories.cosmos_vote_repository import CosmosVoteRepository

        since = utcnow() - timedelta(days=30)
        await CosmosVoteRepository(store).list_since(since)

        query = store.query_items.call_args.args[1]
        kwargs = store.query_items.call_args.kwargs
        assert "c.created_at >= @since" in query
        assert "partition_key" not in kwargs
        assert kwargs["parameters"] == [{"name": "@since", "value": to_json_datetime(since)}]

    async def test_responses_since_filter_on_submission(self, store) -> None:
        from repositories.cosmos_survey_repository import CosmosResponseRepository

        await CosmosResponseRepository(store).list_since(utcnow())

        assert "c.submitted_at >= @since" in store.query_items.call_args.args[1]

    async def test_debate_list_all_includes_hidden(self, store, debate) -> None:
        from repositories.cosmos_debate_repository import CosmosDebateRepository

        store.query_items.return_value = [debate.to_cosmos()]

        debates = await CosmosDebateRepository(store).list_all()

        query = store.query_items.call_args.args[1]
        assert "c.is_deleted = false" in query
        assert "is_hidden" not in query
        assert "ORDER BY c.created_at DESC" in query
        assert debates[0].id == debate.id

    @pytest.mark.parametrize(
        "module,class_name",
        [
            ("repositories.cosmos_debate_repository", "CosmosDebateRepository"),
            ("repositories.cosmos_survey_repository", "CosmosSurveyRepository"),
            ("repositories.cosmos_question_repository", "CosmosQuestionRepository"),
        ],
    )
    async def test_list_all_search_on_title(self, store, module, class_name) -> None:
        repository_class = getattr(importlib.import_module(module), class_name)

        await repository_class(store).list_all(search="budget")

        assert "CONTAINS(c.title, @search, true)" in store.query_items.call_args.args[1]
        assert {"name": "@search", "value": "budget"} in store.query_items.call_args.kwargs["parameters"]
