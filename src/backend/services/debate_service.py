"""
Debate lifecycle: creation, author sessions, status changes and deletion.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from core.config import settings
from core.exceptions import AuthenticationError, NotFoundError, ValidationError
from core.security import (
    DEBATE_AUTHOR_TOKEN,
    create_author_token,
    generate_document_id,
    hash_password,
    hash_token,
    verify_password,
)
from models.cosmos_documents import (
    AdminResults,
    DebateDocument,
    DebateSettings,
    DebateStatus,
    VoteOption,
    to_json_datetime,
    utcnow,
)
from repositories.provider import DebateRepositoryProtocol
from schemas.admin import DebateResultsOverride
from schemas.debate import DebateCreate

logger = structlog.get_logger(__name__)


class DebateService:
    """Service for debate management by authors and admins."""

    def __init__(self, debate_repo: DebateRepositoryProtocol):
        self.debate_repo = debate_repo

    async def get_debate(self, debate_id: str) -> DebateDocument:
        debate = await self.debate_repo.get_by_id(debate_id)
        if debate is None:
            raise NotFoundError("Debate not found")
        return debate

    async def create_debate(
        self,
        payload: DebateCreate,
        creator_fingerprint: str,
        now: Optional[datetime] = None,
    ) -> tuple[DebateDocument, str]:
        """
        Create a debate and open an author session for its creator.

        Returns the stored debate and the author token.
        """
        now = now or utcnow()
        debate_id = generate_document_id()
        base_url = settings.PUBLIC_BASE_URL.rstrip("/")

        debate = DebateDocument(
            id=debate_id,
            title=payload.title.strip(),
            description=payload.description,
            category=payload.category,
            tags=[tag.strip() for tag in payload.tags if tag.strip()],
            author_nickname=(payload.author_nickname or "").strip() or "익명",
            author_ip_hash=creator_fingerprint,
            admin_password_hash=hash_password(payload.admin_password),
            vote_options=[
                VoteOption(id=generate_document_id(), label=option.label.strip(), order=index)
                for index, option in enumerate(payload.vote_options)
            ],
            settings=DebateSettings(**payload.settings.model_dump()),
            start_at=payload.start_at,
            end_at=payload.end_at,
            public_url=f"{base_url}/debates/{debate_id}",
            admin_url=f"{base_url}/debates/{debate_id}/admin",
            created_at=now,
            updated_at=now,
        )
        debate.status = debate.current_status(now)

        token, expires_at = create_author_token(DEBATE_AUTHOR_TOKEN, debate_id)
        debate.author_token_hash = hash_token(token)
        debate.author_token_expires = expires_at

        await self.debate_repo.create(debate)
        logger.info("debate_created", debate_id=debate_id, options=len(debate.vote_options))
        return debate, token

    async def verify_author(self, debate: DebateDocument, password: str) -> tuple[str, datetime]:
        """
        Check the debate password and open a new author session.

        Raises:
            ValidationError: no password given
            AuthenticationError: wrong password
        """
        if not password:
            raise ValidationError("Password is required")
        if not verify_password(password, debate.admin_password_hash):
            logger.warning("debate_author_verify_failed", debate_id=debate.id)
            raise AuthenticationError("Incorrect password")

        token, expires_at = create_author_token(DEBATE_AUTHOR_TOKEN, debate.id)
        await self.debate_repo.set_fields(
            debate.id,
            {
                "author_token_hash": hash_token(token),
                "author_token_expires": to_json_datetime(expires_at),
            },
        )
        return token, expires_at

    async def update_status(
        self,
        debate: DebateDocument,
        status: DebateStatus,
        now: Optional[datetime] = None,
    ) -> DebateDocument:
        """
        Move a debate to a new status by adjusting its voting window.

        Ending closes the window now; activating opens it now. The stored
        status always matches what the window implies.
        """
        now = now or utcnow()
        start_at, end_at = debate.start_at, debate.end_at

        if status == DebateStatus.ENDED:
            if end_at > now:
                end_at = now
        elif status == DebateStatus.ACTIVE:
            if end_at <= now:
                raise ValidationError("The voting window has already closed; extend end_at first")
            if start_at > now:
                start_at = now
        elif status == DebateStatus.SCHEDULED:
            if start_at <= now:
                raise ValidationError("A debate that has already started cannot be rescheduled")

        updated = await self.debate_repo.set_fields(
            debate.id,
            {
                "status": DebateStatus(status).value,
                "start_at": to_json_datetime(start_at),
                "end_at": to_json_datetime(end_at),
            },
        )
        if updated is None:
            raise NotFoundError("Debate not found")
        logger.info("debate_status_changed", debate_id=debate.id, status=DebateStatus(status).value)
        return updated

    async def delete(self, debate: DebateDocument) -> None:
        """Soft delete; vote records keep referring to the debate id."""
        if not await self.debate_repo.soft_delete(debate.id):
            raise NotFoundError("Debate not found")
        logger.info("debate_deleted", debate_id=debate.id)

    async def override_results(
        self,
        debate: DebateDocument,
        payload: DebateResultsOverride,
        now: Optional[datetime] = None,
    ) -> DebateDocument:
        """
        Admin override of the published results and voting window.

        The stored status is recomputed from the resulting window.
        """
        fields: dict[str, Any] = {}
        if payload.admin_results is not None:
            fields["admin_results"] = AdminResults(**payload.admin_results.model_dump()).model_dump(mode="json")

        start_at = payload.start_at or debate.start_at
        end_at = payload.end_at or debate.end_at
        if start_at.tzinfo is None:
            start_at = start_at.replace(tzinfo=timezone.utc)
        if end_at.tzinfo is None:
            end_at = end_at.replace(tzinfo=timezone.utc)
        if end_at <= start_at:
            raise ValidationError("end_at must be after start_at")

        fields["start_at"] = to_json_datetime(start_at)
        fields["end_at"] = to_json_datetime(end_at)
        if payload.created_at is not None:
            fields["created_at"] = to_json_datetime(payload.created_at)

        debate.start_at, debate.end_at = start_at, end_at
        fields["status"] = debate.current_status(now).value

        updated = await self.debate_repo.set_fields(debate.id, fields)
        if updated is None:
            raise NotFoundError("Debate not found")
        logger.info("debate_results_overridden", debate_id=debate.id, status=fields["status"])
        return updated
