"""
Guestbook endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, status

from api.deps import Fingerprint
from models.cosmos_documents import GuestbookDocument
from repositories.provider import GuestbookRepositoryProtocol, get_guestbook_repository
from schemas.board import (
    GuestbookCreate,
    GuestbookDelete,
    GuestbookListResponse,
    GuestbookMove,
    GuestbookMoveResponse,
    GuestbookNotePublic,
)
from schemas.common import MessageResponse
from services.guestbook_service import GuestbookService

router = APIRouter()


def _public(note: GuestbookDocument) -> GuestbookNotePublic:
    return GuestbookNotePublic.model_validate(note.model_dump())


@router.get("", response_model=GuestbookListResponse)
async def list_notes(
    guestbook_repo: GuestbookRepositoryProtocol = Depends(get_guestbook_repository),
) -> GuestbookListResponse:
    notes, total = await GuestbookService(guestbook_repo).list_notes()
    return GuestbookListResponse(notes=[_public(note) for note in notes], total=total)


@router.post("", response_model=GuestbookNotePublic, status_code=status.HTTP_201_CREATED)
async def create_note(
    payload: GuestbookCreate,
    fingerprint: Fingerprint,
    guestbook_repo: GuestbookRepositoryProtocol = Depends(get_guestbook_repository),
) -> GuestbookNotePublic:
    note = await GuestbookService(guestbook_repo).create_note(payload, fingerprint)
    return _public(note)


@router.patch("/{note_id}", response_model=GuestbookMoveResponse)
async def move_note(
    note_id: str,
    payload: GuestbookMove,
    fingerprint: Fingerprint,
    guestbook_repo: GuestbookRepositoryProtocol = Depends(get_guestbook_repository),
) -> GuestbookMoveResponse:
    note = await GuestbookService(guestbook_repo).move_note(
        note_id, payload.position.x, payload.position.y, fingerprint
    )
    return GuestbookMoveResponse.model_validate(note.model_dump())


@router.delete("/{note_id}", response_model=MessageResponse)
async def delete_note(
    note_id: str,
    fingerprint: Fingerprint,
    payload: Optional[GuestbookDelete] = Body(None),
    guestbook_repo: GuestbookRepositoryProtocol = Depends(get_guestbook_repository),
) -> MessageResponse:
    password = payload.password if payload else None
    await GuestbookService(guestbook_repo).delete_note(note_id, fingerprint, password=password)
    return MessageResponse(message="Note deleted")
