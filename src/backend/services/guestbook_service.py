"""
Guestbook: sticky notes placed on a shared board.

Notes can be moved by the client that wrote them for a day after posting.
Deleting needs the note password, or for password-less notes the same
client within the first hour.
"""

import secrets
from datetime import datetime, timedelta
from typing import Optional

import structlog

from core.config import settings
from core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    RateLimitExceededError,
)
from core.security import hash_password, verify_password
from models.cosmos_documents import GuestbookDocument, NotePosition, utcnow
from repositories.provider import GuestbookRepositoryProtocol
from schemas.board import GuestbookCreate

logger = structlog.get_logger(__name__)

MOVE_WINDOW = timedelta(hours=24)
ANONYMOUS_DELETE_WINDOW = timedelta(hours=1)
MAX_NOTES_LISTED = 100

# Random placements stay away from the board edges
POSITION_MARGIN = (5, 85)


def random_position() -> NotePosition:
    low, high = POSITION_MARGIN
    span = high - low
    return NotePosition(
        x=low + secrets.randbelow(span * 100) / 100,
        y=low + secrets.randbelow(span * 100) / 100,
    )


class GuestbookService:
    def __init__(self, guestbook_repo: GuestbookRepositoryProtocol):
        self.guestbook_repo = guestbook_repo

    async def list_notes(self) -> tuple[list[GuestbookDocument], int]:
        return await self.guestbook_repo.list_recent(limit=MAX_NOTES_LISTED)

    async def get_note(self, note_id: str) -> GuestbookDocument:
        note = await self.guestbook_repo.get_by_id(note_id)
        if note is None:
            raise NotFoundError("Note not found")
        return note

    async def create_note(
        self,
        payload: GuestbookCreate,
        fingerprint: str,
        now: Optional[datetime] = None,
    ) -> GuestbookDocument:
        now = now or utcnow()
        posted_today = await self.guestbook_repo.count_since(fingerprint, now - timedelta(days=1))
        if posted_today >= settings.GUESTBOOK_DAILY_LIMIT:
            logger.warning("guestbook_daily_limit_reached", client=fingerprint[:8])
            raise RateLimitExceededError(
                f"You can post up to {settings.GUESTBOOK_DAILY_LIMIT} notes per day"
            )

        position = (
            NotePosition(x=payload.position.x, y=payload.position.y)
            if payload.position is not None
            else random_position()
        )
        nickname = (payload.author_nickname or "").strip() or None

        note = GuestbookDocument(
            content=payload.content.strip(),
            color=payload.color,
            position=position,
            author_nickname=nickname,
            author_ip_hash=fingerprint,
            password_hash=hash_password(payload.password) if payload.password else None,
            z_index=await self.guestbook_repo.max_z_index() + 1,
            created_at=now,
        )
        await self.guestbook_repo.create(note)
        logger.info("guestbook_note_created", note_id=note.id)
        return note

    async def move_note(
        self,
        note_id: str,
        x: float,
        y: float,
        fingerprint: str,
        now: Optional[datetime] = None,
    ) -> GuestbookDocument:
        """Move a note and bring it to the front."""
        now = now or utcnow()
        note = await self.get_note(note_id)
        if note.author_ip_hash != fingerprint:
            raise AuthorizationError("Only the author can move this note")
        if now - note.created_at > MOVE_WINDOW:
            raise AuthorizationError("Notes can only be moved within 24 hours of posting")

        z_index = await self.guestbook_repo.max_z_index() + 1
        moved = await self.guestbook_repo.update_position(note_id, x, y, z_index)
        if moved is None:
            raise NotFoundError("Note not found")
        return moved

    async def delete_note(
        self,
        note_id: str,
        fingerprint: str,
        password: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        now = now or utcnow()
        note = await self.get_note(note_id)

        if note.password_hash:
            if not password or not verify_password(password, note.password_hash):
                raise AuthenticationError("Incorrect password")
        else:
            if note.author_ip_hash != fingerprint:
                raise AuthorizationError("Only the author can delete this note")
            if now - note.created_at > ANONYMOUS_DELETE_WINDOW:
                raise AuthorizationError("Notes without a password can only be deleted within 1 hour")

        if not await self.guestbook_repo.soft_delete(note_id):
            raise NotFoundError("Note not found")
        logger.info("guestbook_note_deleted", note_id=note_id)
