"""
Threaded comment endpoints for debates and questions.
"""

from fastapi import APIRouter, Depends, Query, status

from api.deps import Fingerprint
from models.cosmos_documents import CommentContentType
from repositories.provider import (
    CommentRepositoryProtocol,
    DebateRepositoryProtocol,
    QuestionRepositoryProtocol,
    get_comment_repository,
    get_debate_repository,
    get_question_repository,
)
from schemas.board import CommentCreate, CommentListResponse, CommentPublic, CommentResponse, CommentUpdate
from schemas.common import MessageResponse
from schemas.debate import PasswordVerify
from services.comment_service import CommentService

router = APIRouter()


def get_comment_service(
    comment_repo: CommentRepositoryProtocol = Depends(get_comment_repository),
    debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
    question_repo: QuestionRepositoryProtocol = Depends(get_question_repository),
) -> CommentService:
    return CommentService(comment_repo, debate_repo, question_repo)


@router.get("", response_model=CommentListResponse)
async def list_comments(
    content_type: CommentContentType = Query(...),
    content_id: str = Query(..., min_length=1),
    service: CommentService = Depends(get_comment_service),
) -> CommentListResponse:
    """Comments of one debate or question as a reply tree."""
    comments, total = await service.list_comments(content_type.value, content_id)
    return CommentListResponse(comments=comments, total=total)


@router.post("", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    payload: CommentCreate,
    fingerprint: Fingerprint,
    service: CommentService = Depends(get_comment_service),
) -> CommentResponse:
    comment = await service.create_comment(payload, fingerprint)
    return CommentResponse(comment=CommentPublic.model_validate(comment.model_dump()))


@router.put("/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: str,
    payload: CommentUpdate,
    service: CommentService = Depends(get_comment_service),
) -> CommentResponse:
    comment = await service.update_comment(comment_id, payload.password, payload.content)
    return CommentResponse(comment=CommentPublic.model_validate(comment.model_dump()))


@router.delete("/{comment_id}", response_model=MessageResponse)
async def delete_comment(
    comment_id: str,
    payload: PasswordVerify,
    service: CommentService = Depends(get_comment_service),
) -> MessageResponse:
    await service.delete_comment(comment_id, payload.password)
    return MessageResponse(message="Comment deleted")
