"""
Repository provider for dependency injection.

Every repository is built around the CosmosStore created at startup.
Routes depend on the factory functions below; tests swap them out through
``app.dependency_overrides``.

Usage:
    from repositories.provider import get_debate_repository

    async def some_endpoint(
        debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
    ):
        debate = await debate_repo.get_by_id(debate_id)
"""

import logging
from typing import Optional, Protocol, runtime_checkable

from fastapi import Depends

from db.cosmos_session import CosmosStore, get_store
from repositories.cosmos_admin_repository import CosmosAdminRepository, CosmosErrorLogRepository
from repositories.cosmos_comment_repository import CosmosCommentRepository
from repositories.cosmos_debate_repository import CosmosDebateRepository
from repositories.cosmos_guestbook_repository import CosmosGuestbookRepository
from repositories.cosmos_question_repository import CosmosQuestionRepository
from repositories.cosmos_request_repository import CosmosRequestRepository
from repositories.cosmos_survey_repository import CosmosResponseRepository, CosmosSurveyRepository
from repositories.cosmos_vote_repository import CosmosVoteRepository

logger = logging.getLogger(__name__)


# =============================================================================
# Repository Protocols (Interfaces)
# =============================================================================


@runtime_checkable
class DebateRepositoryProtocol(Protocol):
    """Protocol defining debate repository operations."""

    async def get_by_id(self, debate_id: str, include_deleted: bool = False): ...
    async def list_debates(self, page: int = 1, limit: int = 20, **filters): ...
    async def create(self, debate): ...
    async def update(self, debate): ...
    async def set_fields(self, debate_id: str, fields: dict): ...
    async def soft_delete(self, debate_id: str) -> bool: ...
    async def set_hidden(self, debate_id: str, hidden: bool): ...
    async def increment_view_count(self, debate_id: str): ...
    async def record_vote(self, debate, option_ids: list[str], voted_at): ...
    async def add_opinion(self, debate_id: str, opinion): ...
    async def count(self, include_hidden: bool = True) -> int: ...
    async def list_all(self, search: Optional[str] = None): ...


@runtime_checkable
class VoteRepositoryProtocol(Protocol):
    """Protocol defining vote repository operations."""

    async def get_by_fingerprint(self, debate_id: str, voter_ip_hash: str): ...
    async def count_by_fingerprint(self, debate_id: str, voter_ip_hash: str) -> int: ...
    async def exists(self, debate_id: str, voter_ip_hash: str) -> bool: ...
    async def list_by_debate(self, debate_id: str): ...
    async def list_since(self, since): ...
    async def create(self, vote): ...
    async def count(self) -> int: ...


@runtime_checkable
class SurveyRepositoryProtocol(Protocol):
    """Protocol defining survey repository operations."""

    async def get_by_id(self, survey_id: str, include_deleted: bool = False): ...
    async def list_surveys(self, page: int = 1, limit: int = 20, **filters): ...
    async def create(self, survey): ...
    async def update(self, survey): ...
    async def set_fields(self, survey_id: str, fields: dict): ...
    async def soft_delete(self, survey_id: str) -> bool: ...
    async def set_hidden(self, survey_id: str, hidden: bool): ...
    async def increment_view_count(self, survey_id: str): ...
    async def record_response(self, survey_id: str, submitted_at, completion_rate: int, first_response: bool): ...
    async def count(self) -> int: ...
    async def list_all(self, search: Optional[str] = None): ...


@runtime_checkable
class ResponseRepositoryProtocol(Protocol):
    """Protocol defining survey response repository operations."""

    async def exists(self, survey_id: str, respondent_ip_hash: str) -> bool: ...
    async def list_by_survey(self, survey_id: str): ...
    async def count_complete(self, survey_id: str) -> int: ...
    async def create(self, response): ...
    async def count(self) -> int: ...
    async def list_since(self, since): ...


@runtime_checkable
class QuestionRepositoryProtocol(Protocol):
    """Protocol defining Q&A board repository operations."""

    async def get_by_id(self, question_id: str): ...
    async def list_questions(self, page: int = 1, limit: int = 20, **filters): ...
    async def list_all(self, search: Optional[str] = None): ...
    async def count(self, status: Optional[str] = None) -> int: ...
    async def create(self, question): ...
    async def update(self, question): ...
    async def increment_views(self, question_id: str): ...


@runtime_checkable
class CommentRepositoryProtocol(Protocol):
    """Protocol defining comment repository operations."""

    async def get_by_id(self, comment_id: str): ...
    async def list_by_content(self, content_type: str, content_id: str): ...
    async def count(self) -> int: ...
    async def create(self, comment): ...
    async def update(self, comment): ...


@runtime_checkable
class RequestRepositoryProtocol(Protocol):
    """Protocol defining request board repository operations."""

    async def get_by_id(self, request_id: str): ...
    async def list_public(self, page: int = 1, limit: int = 20): ...
    async def list_all(self): ...
    async def count_since(self, author_ip_hash: str, since) -> int: ...
    async def count(self) -> int: ...
    async def create(self, request): ...
    async def update(self, request): ...
    async def increment_views(self, request_id: str): ...


@runtime_checkable
class GuestbookRepositoryProtocol(Protocol):
    """Protocol defining guestbook repository operations."""

    async def get_by_id(self, note_id: str): ...
    async def list_recent(self, limit: int = 100): ...
    async def list_all(self): ...
    async def count(self) -> int: ...
    async def count_since(self, author_ip_hash: str, since) -> int: ...
    async def max_z_index(self) -> int: ...
    async def create(self, note): ...
    async def update_position(self, note_id: str, x: float, y: float, z_index: int): ...
    async def soft_delete(self, note_id: str) -> bool: ...


@runtime_checkable
class AdminRepositoryProtocol(Protocol):
    """Protocol defining stored admin operations."""

    async def get_by_username(self, username: str): ...
    async def exists(self, username: str, email: str) -> bool: ...
    async def create(self, admin): ...
    async def touch_last_login(self, admin_id: str, when) -> None: ...


@runtime_checkable
class ErrorLogRepositoryProtocol(Protocol):
    """Protocol defining error log repository operations."""

    async def get_by_id(self, log_id: str): ...
    async def list_logs(self, page: int = 1, limit: int = 50, **filters): ...
    async def count_unresolved(self) -> int: ...
    async def create(self, log): ...
    async def update(self, log): ...
    async def delete(self, log_id: str) -> bool: ...


# =============================================================================
# Repository Factory Functions
# =============================================================================


def get_debate_repository(store: CosmosStore = Depends(get_store)) -> CosmosDebateRepository:
    return CosmosDebateRepository(store)


def get_vote_repository(store: CosmosStore = Depends(get_store)) -> CosmosVoteRepository:
    return CosmosVoteRepository(store)


def get_survey_repository(store: CosmosStore = Depends(get_store)) -> CosmosSurveyRepository:
    return CosmosSurveyRepository(store)


def get_response_repository(store: CosmosStore = Depends(get_store)) -> CosmosResponseRepository:
    return CosmosResponseRepository(store)


def get_question_repository(store: CosmosStore = Depends(get_store)) -> CosmosQuestionRepository:
    return CosmosQuestionRepository(store)


def get_comment_repository(store: CosmosStore = Depends(get_store)) -> CosmosCommentRepository:
    return CosmosCommentRepository(store)


def get_request_repository(store: CosmosStore = Depends(get_store)) -> CosmosRequestRepository:
    return CosmosRequestRepository(store)


def get_guestbook_repository(store: CosmosStore = Depends(get_store)) -> CosmosGuestbookRepository:
    return CosmosGuestbookRepository(store)


def get_admin_repository(store: CosmosStore = Depends(get_store)) -> CosmosAdminRepository:
    return CosmosAdminRepository(store)


def get_error_log_repository(store: CosmosStore = Depends(get_store)) -> CosmosErrorLogRepository:
    return CosmosErrorLogRepository(store)
