"""
Opinions attached to debates.
"""

from datetime import datetime
from typing import Optional

import structlog

from core.exceptions import NotFoundError, ValidationError
from models.cosmos_documents import DebateDocument, DebateStatus, OpinionDocument, utcnow
from repositories.provider import DebateRepositoryProtocol

logger = structlog.get_logger(__name__)

MAX_OPINION_LENGTH = 1000
ANONYMOUS_NICKNAME = "익명"


class OpinionService:
    """Append and list free-text opinions on a debate."""

    def __init__(self, debate_repo: DebateRepositoryProtocol):
        self.debate_repo = debate_repo

    async def add_opinion(
        self,
        debate: DebateDocument,
        content: str,
        fingerprint: str,
        author_nickname: str,
        selected_option_id: Optional[str] = None,
        is_anonymous: bool = False,
        now: Optional[datetime] = None,
    ) -> OpinionDocument:
        """
        Append an opinion. One fingerprint may post any number of opinions.

        Raises:
            ValidationError: opinions disabled, debate not started, empty or
                over-long content, missing nickname, or an option that is not
                on the debate
        """
        if not debate.settings.allow_opinion:
            raise ValidationError("Opinions are disabled for this debate")
        if debate.current_status(now) == DebateStatus.SCHEDULED:
            raise ValidationError("This debate has not started yet")

        # Length is measured on the text as sent
        if len(content or "") > MAX_OPINION_LENGTH:
            raise ValidationError(f"Opinions are limited to {MAX_OPINION_LENGTH} characters")
        content = (content or "").strip()
        if not content:
            raise ValidationError("Opinion content is required")
        nickname = (author_nickname or "").strip()
        if not nickname:
            raise ValidationError("Nickname is required")

        if selected_option_id and debate.get_option(selected_option_id) is None:
            raise ValidationError("Invalid option selected")

        if is_anonymous:
            nickname = ANONYMOUS_NICKNAME

        opinion = OpinionDocument(
            author_nickname=nickname[:50],
            author_ip_hash=fingerprint,
            selected_option_id=selected_option_id,
            content=content,
            is_anonymous=is_anonymous,
            created_at=now or utcnow(),
        )
        updated = await self.debate_repo.add_opinion(debate.id, opinion)
        if updated is None:
            raise NotFoundError("Debate not found")

        logger.info("opinion_added", debate_id=debate.id, length=len(content))
        return opinion

    def list_opinions(self, debate: DebateDocument) -> list[OpinionDocument]:
        """Live opinions, most recent first. Empty when opinions are disabled."""
        if not debate.settings.allow_opinion:
            return []
        opinions = [opinion for opinion in debate.opinions if not opinion.is_deleted]
        return sorted(opinions, key=lambda o: o.created_at, reverse=True)
