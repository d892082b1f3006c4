"""
Schemas for the Q&A board, comments, request board and guestbook.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models.cosmos_documents import CommentContentType
from schemas.common import Pagination


# ============================================================================
# Q&A board
# ============================================================================


class QuestionCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=5000)
    nickname: str = Field(..., min_length=1, max_length=20)
    password: str = Field(..., min_length=6)
    category: Optional[str] = Field(default=None, max_length=50)
    tags: list[str] = Field(default_factory=list)


class QuestionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    password: str = ""
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = Field(default=None, min_length=1, max_length=5000)
    category: Optional[str] = Field(default=None, max_length=50)
    tags: Optional[list[str]] = None


class AdminAnswerPublic(BaseModel):
    content: str
    answered_at: datetime
    answered_by: str


class QuestionPublic(BaseModel):
    id: str
    title: str
    content: str
    nickname: str
    category: Optional[str] = None
    tags: list[str]
    views: int
    status: str
    admin_answer: Optional[AdminAnswerPublic] = None
    created_at: datetime
    updated_at: datetime


class QuestionResponse(BaseModel):
    success: bool = True
    question: QuestionPublic


class QuestionListResponse(BaseModel):
    success: bool = True
    questions: list[QuestionPublic]
    pagination: Pagination


class AdminAnswerCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content: str = Field(..., min_length=1, max_length=5000)


# ============================================================================
# Comments
# ============================================================================


class CommentCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content_type: CommentContentType
    content_id: str
    nickname: str = Field(..., min_length=1, max_length=20)
    password: str = Field(..., min_length=4)
    content: str = Field(..., min_length=1, max_length=500)
    parent_id: Optional[str] = None


class CommentUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    password: str = ""
    content: str = Field(..., min_length=1, max_length=500)


class CommentPublic(BaseModel):
    id: str
    content_type: str
    content_id: str
    nickname: str
    content: str
    parent_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    replies: list["CommentPublic"] = Field(default_factory=list)


class CommentResponse(BaseModel):
    success: bool = True
    comment: CommentPublic


class CommentListResponse(BaseModel):
    success: bool = True
    comments: list[CommentPublic]
    total: int


# ============================================================================
# Request board
# ============================================================================


class RequestCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1, max_length=100)
    content: str = Field(..., min_length=1, max_length=2000)
    author_nickname: str = Field(..., min_length=1, max_length=20)
    password: str = Field(..., min_length=4)
    is_public: bool = True


class RequestUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    password: str = ""
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    content: Optional[str] = Field(default=None, min_length=1, max_length=2000)
    is_public: Optional[bool] = None


class AdminReplyPublic(BaseModel):
    content: str
    replied_at: datetime
    replied_by: str


class RequestPublic(BaseModel):
    id: str
    title: str
    content: str
    author_nickname: str
    is_public: bool
    views: int
    admin_reply: Optional[AdminReplyPublic] = None
    created_at: datetime
    updated_at: datetime


class RequestListResponse(BaseModel):
    requests: list[RequestPublic]
    pagination: Pagination


class AdminReplyCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content: str = Field(..., min_length=1, max_length=2000)


# ============================================================================
# Guestbook
# ============================================================================


class NotePositionInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    x: float = Field(..., ge=0, le=100)
    y: float = Field(..., ge=0, le=100)


class GuestbookCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content: str = Field(..., min_length=1, max_length=200)
    color: str = Field(default="#FFE500", pattern=r"^#[0-9A-Fa-f]{6}$")
    position: Optional[NotePositionInput] = None
    author_nickname: Optional[str] = Field(default=None, max_length=20)
    password: Optional[str] = Field(default=None, min_length=4)


class GuestbookMove(BaseModel):
    model_config = ConfigDict(extra="forbid")

    position: NotePositionInput


class GuestbookDelete(BaseModel):
    model_config = ConfigDict(extra="forbid")

    password: Optional[str] = None


class GuestbookNotePublic(BaseModel):
    id: str
    content: str
    color: str
    position: NotePositionInput
    author_nickname: Optional[str] = None
    z_index: int
    created_at: datetime


class GuestbookListResponse(BaseModel):
    notes: list[GuestbookNotePublic]
    total: int


class GuestbookMoveResponse(BaseModel):
    id: str
    position: NotePositionInput
    z_index: int
