"""
Debate-related Pydantic schemas.

Request bodies forbid unknown fields; response schemas only carry public
fields, so password and token digests never leave the server.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models.cosmos_documents import DebateCategory, DebateStatus
from schemas.common import Pagination


# ============================================================================
# Requests
# ============================================================================


class VoteOptionCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    label: str = Field(..., min_length=1, max_length=200)


class DebateSettingsInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    allow_multiple_choice: bool = False
    show_results_before_end: bool = True
    allow_anonymous_vote: bool = True
    allow_opinion: bool = True
    max_votes_per_ip: int = Field(default=1, ge=1)


class DebateCreate(BaseModel):
    """Schema for creating a debate."""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    category: DebateCategory = DebateCategory.GENERAL
    tags: list[str] = Field(default_factory=list)
    author_nickname: Optional[str] = Field(default=None, max_length=50)
    admin_password: str = Field(..., min_length=8)
    vote_options: list[VoteOptionCreate] = Field(..., min_length=2)
    settings: DebateSettingsInput = Field(default_factory=DebateSettingsInput)
    start_at: datetime
    end_at: datetime

    @model_validator(mode="after")
    def _check_window(self) -> "DebateCreate":
        if self.end_at <= self.start_at:
            raise ValueError("end_at must be after start_at")
        for tag in self.tags:
            if len(tag) > 30:
                raise ValueError("Tags are limited to 30 characters")
        return self


class VoteCreate(BaseModel):
    """Schema for casting a vote."""

    model_config = ConfigDict(extra="forbid")

    option_ids: list[str] = Field(default_factory=list)
    voter_name: Optional[str] = Field(default=None, max_length=50)
    is_anonymous: bool = True


class OpinionCreate(BaseModel):
    """Schema for posting an opinion. Length rules are enforced by the service."""

    model_config = ConfigDict(extra="forbid")

    content: str
    author_nickname: str = Field(..., min_length=1, max_length=50)
    selected_option_id: Optional[str] = None
    is_anonymous: bool = False


class PasswordVerify(BaseModel):
    """Password check for author sessions and board items."""

    model_config = ConfigDict(extra="forbid")

    password: str = ""


class DebateStatusUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: DebateStatus


# ============================================================================
# Responses
# ============================================================================


class VoteOptionPublic(BaseModel):
    id: str
    label: str
    order: int
    vote_count: Optional[int] = None
    percentage: Optional[int] = None


class OpinionPublic(BaseModel):
    id: str
    author_nickname: str
    selected_option_id: Optional[str] = None
    content: str
    is_anonymous: bool
    created_at: datetime


class DebateStatsPublic(BaseModel):
    total_votes: int
    unique_voters: int
    opinion_count: int
    view_count: int
    last_vote_at: Optional[datetime] = None


class DebateSummary(BaseModel):
    """Debate as shown in lists."""

    id: str
    title: str
    description: str
    category: str
    tags: list[str]
    author_nickname: str
    status: str
    start_at: datetime
    end_at: datetime
    stats: DebateStatsPublic
    created_at: datetime


class DebateDetail(DebateSummary):
    """Debate as shown on its own page. Counts are omitted while results are hidden."""

    vote_options: list[VoteOptionPublic]
    settings: DebateSettingsInput
    results_visible: bool
    public_url: Optional[str] = None


class DebateListResponse(BaseModel):
    debates: list[DebateSummary]
    pagination: Pagination


class DebateCreatedResponse(BaseModel):
    id: str
    public_url: str
    admin_url: str
    admin_token: str


class AuthorTokenResponse(BaseModel):
    message: str
    admin_token: str
    expires_at: datetime


class OptionStat(BaseModel):
    option_id: str
    label: str
    count: int


class DebateStatsResponse(BaseModel):
    agree_count: int
    disagree_count: int
    total_votes: int
    unique_voters: int
    has_voted: bool
    option_stats: list[OptionStat]


class OpinionListResponse(BaseModel):
    opinions: list[OpinionPublic]
    total: int
    last_updated: datetime


DebateSort = Literal["recent", "popular", "ending"]
