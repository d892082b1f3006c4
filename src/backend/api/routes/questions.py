"""
Q&A board endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from api.deps import Fingerprint
from core.exceptions import NotFoundError
from models.cosmos_documents import QuestionDocument, QuestionStatus
from repositories.provider import QuestionRepositoryProtocol, get_question_repository
from schemas.board import QuestionCreate, QuestionListResponse, QuestionPublic, QuestionResponse, QuestionUpdate
from schemas.common import MessageResponse, Pagination
from schemas.debate import PasswordVerify
from services.question_service import QuestionService

router = APIRouter()


def _public(question: QuestionDocument) -> QuestionPublic:
    return QuestionPublic.model_validate(question.model_dump())


@router.get("", response_model=QuestionListResponse)
async def list_questions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[QuestionStatus] = Query(None, alias="status"),
    category: Optional[str] = Query(None, max_length=50),
    search: Optional[str] = Query(None, max_length=100),
    question_repo: QuestionRepositoryProtocol = Depends(get_question_repository),
) -> QuestionListResponse:
    questions, total = await QuestionService(question_repo).list_questions(
        page=page,
        limit=limit,
        status=status_filter.value if status_filter else None,
        category=category,
        search=search.strip() if search else None,
    )
    return QuestionListResponse(
        questions=[_public(question) for question in questions],
        pagination=Pagination.build(page, limit, total),
    )


@router.post("", response_model=QuestionResponse, status_code=status.HTTP_201_CREATED)
async def create_question(
    payload: QuestionCreate,
    fingerprint: Fingerprint,
    question_repo: QuestionRepositoryProtocol = Depends(get_question_repository),
) -> QuestionResponse:
    question = await QuestionService(question_repo).create_question(payload, fingerprint)
    return QuestionResponse(question=_public(question))


@router.get("/{question_id}", response_model=QuestionResponse)
async def get_question(
    question_id: str,
    question_repo: QuestionRepositoryProtocol = Depends(get_question_repository),
) -> QuestionResponse:
    service = QuestionService(question_repo)
    question = await service.get_question(question_id)
    if question.is_hidden:
        raise NotFoundError("Question not found")
    question = await service.view_question(question_id)
    return QuestionResponse(question=_public(question))


@router.put("/{question_id}", response_model=QuestionResponse)
async def update_question(
    question_id: str,
    payload: QuestionUpdate,
    question_repo: QuestionRepositoryProtocol = Depends(get_question_repository),
) -> QuestionResponse:
    question = await QuestionService(question_repo).update_question(question_id, payload)
    return QuestionResponse(question=_public(question))


@router.delete("/{question_id}", response_model=MessageResponse)
async def delete_question(
    question_id: str,
    payload: PasswordVerify,
    question_repo: QuestionRepositoryProtocol = Depends(get_question_repository),
) -> MessageResponse:
    await QuestionService(question_repo).delete_question(question_id, payload.password)
    return MessageResponse(message="Question deleted")


@router.post("/{question_id}/verify")
async def verify_question_password(
    question_id: str,
    payload: PasswordVerify,
    question_repo: QuestionRepositoryProtocol = Depends(get_question_repository),
) -> dict[str, bool]:
    service = QuestionService(question_repo)
    question = await service.get_question(question_id)
    service.check_password(question, payload.password)
    return {"success": True}
