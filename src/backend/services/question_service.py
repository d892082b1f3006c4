"""
Q&A board: password-protected questions with a single admin answer.

Status transitions:
    pending -> answered   (admin answers)
    answered -> pending   (admin removes the answer)
    pending|answered -> closed
"""

from typing import Optional

import structlog

from core.exceptions import AuthenticationError, NotFoundError, ValidationError
from core.security import hash_password, verify_password
from models.cosmos_documents import AdminAnswer, QuestionDocument, QuestionStatus, utcnow
from repositories.provider import QuestionRepositoryProtocol
from schemas.board import QuestionCreate, QuestionUpdate

logger = structlog.get_logger(__name__)


class QuestionService:
    def __init__(self, question_repo: QuestionRepositoryProtocol):
        self.question_repo = question_repo

    async def get_question(self, question_id: str) -> QuestionDocument:
        question = await self.question_repo.get_by_id(question_id)
        if question is None:
            raise NotFoundError("Question not found")
        return question

    def check_password(self, question: QuestionDocument, password: str) -> None:
        if not password:
            raise ValidationError("Password is required")
        if not verify_password(password, question.password_hash):
            raise AuthenticationError("Incorrect password")

    async def create_question(self, payload: QuestionCreate, fingerprint: str) -> QuestionDocument:
        question = QuestionDocument(
            title=payload.title.strip(),
            content=payload.content.strip(),
            nickname=payload.nickname.strip(),
            password_hash=hash_password(payload.password),
            ip_hash=fingerprint,
            category=payload.category,
            tags=[tag.strip() for tag in payload.tags if tag.strip()],
        )
        await self.question_repo.create(question)
        logger.info("question_created", question_id=question.id)
        return question

    async def view_question(self, question_id: str) -> QuestionDocument:
        question = await self.get_question(question_id)
        return await self.question_repo.increment_views(question_id) or question

    async def update_question(self, question_id: str, payload: QuestionUpdate) -> QuestionDocument:
        question = await self.get_question(question_id)
        if not payload.password:
            raise ValidationError("Password is required")
        if question.status == QuestionStatus.ANSWERED:
            raise ValidationError("Answered questions can no longer be edited")
        self.check_password(question, payload.password)

        changes = payload.model_dump(exclude={"password"}, exclude_none=True)
        for field, value in changes.items():
            setattr(question, field, value.strip() if isinstance(value, str) else value)
        return await self.question_repo.update(question)

    async def delete_question(self, question_id: str, password: str) -> None:
        question = await self.get_question(question_id)
        self.check_password(question, password)
        question.is_deleted = True
        await self.question_repo.update(question)
        logger.info("question_deleted", question_id=question_id)

    async def set_hidden(self, question_id: str, hidden: bool) -> QuestionDocument:
        question = await self.get_question(question_id)
        question.is_hidden = hidden
        return await self.question_repo.update(question)

    # ========================================================================
    # Admin answers
    # ========================================================================

    async def answer(self, question_id: str, content: str, answered_by: str) -> QuestionDocument:
        question = await self.get_question(question_id)
        if question.status == QuestionStatus.CLOSED:
            raise ValidationError("Closed questions cannot be answered")
        question.admin_answer = AdminAnswer(content=content.strip(), answered_at=utcnow(), answered_by=answered_by)
        question.status = QuestionStatus.ANSWERED
        logger.info("question_answered", question_id=question_id, by=answered_by)
        return await self.question_repo.update(question)

    async def remove_answer(self, question_id: str) -> QuestionDocument:
        question = await self.get_question(question_id)
        if question.admin_answer is None:
            raise ValidationError("This question has no answer")
        question.admin_answer = None
        if question.status == QuestionStatus.ANSWERED:
            question.status = QuestionStatus.PENDING
        return await self.question_repo.update(question)

    async def close(self, question_id: str) -> QuestionDocument:
        question = await self.get_question(question_id)
        question.status = QuestionStatus.CLOSED
        return await self.question_repo.update(question)

    async def list_questions(
        self,
        page: int,
        limit: int,
        status: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> tuple[list[QuestionDocument], int]:
        return await self.question_repo.list_questions(
            page=page, limit=limit, status=status, category=category, search=search
        )
