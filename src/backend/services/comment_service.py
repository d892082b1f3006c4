"""
Threaded comments on debates and Q&A questions.
"""

import structlog

from core.exceptions import AuthenticationError, NotFoundError, ValidationError
from core.security import hash_password, verify_password
from models.cosmos_documents import CommentContentType, CommentDocument
from repositories.provider import (
    CommentRepositoryProtocol,
    DebateRepositoryProtocol,
    QuestionRepositoryProtocol,
)
from schemas.board import CommentCreate, CommentPublic

logger = structlog.get_logger(__name__)


def build_comment_tree(comments: list[CommentDocument]) -> list[CommentPublic]:
    """Nest replies under their parents. Orphaned replies are shown at the top level."""
    nodes = {comment.id: CommentPublic.model_validate(comment.model_dump()) for comment in comments}
    roots: list[CommentPublic] = []
    for comment in comments:
        node = nodes[comment.id]
        parent = nodes.get(comment.parent_id) if comment.parent_id else None
        if parent is not None:
            parent.replies.append(node)
        else:
            roots.append(node)
    return roots


class CommentService:
    def __init__(
        self,
        comment_repo: CommentRepositoryProtocol,
        debate_repo: DebateRepositoryProtocol,
        question_repo: QuestionRepositoryProtocol,
    ):
        self.comment_repo = comment_repo
        self.debate_repo = debate_repo
        self.question_repo = question_repo

    async def _ensure_content_exists(self, content_type: str, content_id: str) -> None:
        if content_type == CommentContentType.DEBATE:
            target = await self.debate_repo.get_by_id(content_id)
        else:
            target = await self.question_repo.get_by_id(content_id)
        if target is None:
            raise NotFoundError("The commented content was not found")

    async def list_comments(self, content_type: str, content_id: str) -> tuple[list[CommentPublic], int]:
        comments = await self.comment_repo.list_by_content(content_type, content_id)
        return build_comment_tree(comments), len(comments)

    async def create_comment(self, payload: CommentCreate, fingerprint: str) -> CommentDocument:
        await self._ensure_content_exists(payload.content_type, payload.content_id)

        if payload.parent_id:
            parent = await self.comment_repo.get_by_id(payload.parent_id)
            if parent is None or parent.content_id != payload.content_id:
                raise ValidationError("The comment being replied to does not exist")

        comment = CommentDocument(
            content_type=payload.content_type,
            content_id=payload.content_id,
            nickname=payload.nickname.strip(),
            password_hash=hash_password(payload.password),
            content=payload.content.strip(),
            parent_id=payload.parent_id,
            ip_hash=fingerprint,
        )
        await self.comment_repo.create(comment)
        logger.info("comment_created", content_type=comment.content_type, content_id=comment.content_id)
        return comment

    async def _get_owned(self, comment_id: str, password: str) -> CommentDocument:
        comment = await self.comment_repo.get_by_id(comment_id)
        if comment is None:
            raise NotFoundError("Comment not found")
        if not password:
            raise ValidationError("Password is required")
        if not verify_password(password, comment.password_hash):
            raise AuthenticationError("Incorrect password")
        return comment

    async def update_comment(self, comment_id: str, password: str, content: str) -> CommentDocument:
        comment = await self._get_owned(comment_id, password)
        comment.content = content.strip()
        return await self.comment_repo.update(comment)

    async def delete_comment(self, comment_id: str, password: str) -> None:
        comment = await self._get_owned(comment_id, password)
        comment.is_deleted = True
        await self.comment_repo.update(comment)
        logger.info("comment_deleted", comment_id=comment_id)
