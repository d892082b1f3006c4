"""Repository modules for Cosmos DB access."""

from repositories.cosmos_admin_repository import CosmosAdminRepository, CosmosErrorLogRepository
from repositories.cosmos_comment_repository import CosmosCommentRepository
from repositories.cosmos_debate_repository import CosmosDebateRepository
from repositories.cosmos_guestbook_repository import CosmosGuestbookRepository
from repositories.cosmos_question_repository import CosmosQuestionRepository
from repositories.cosmos_request_repository import CosmosRequestRepository
from repositories.cosmos_survey_repository import CosmosResponseRepository, CosmosSurveyRepository
from repositories.cosmos_vote_repository import CosmosVoteRepository

__all__ = [
    "CosmosAdminRepository",
    "CosmosCommentRepository",
    "CosmosDebateRepository",
    "CosmosErrorLogRepository",
    "CosmosGuestbookRepository",
    "CosmosQuestionRepository",
    "CosmosRequestRepository",
    "CosmosResponseRepository",
    "CosmosSurveyRepository",
    "CosmosVoteRepository",
]
