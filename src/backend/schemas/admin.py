"""
Admin backoffice schemas.
"""

from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.cosmos_documents import ErrorSeverity
from schemas.common import Pagination


class DashboardResponse(BaseModel):
    debates: int
    votes: int
    surveys: int
    responses: int
    questions: int
    pending_questions: int
    comments: int
    requests: int
    guestbook_notes: int
    unresolved_errors: int
    generated_at: datetime


class ContentVisibilityUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    action: Literal["hide", "show"]


class ContentVisibilityResponse(BaseModel):
    success: bool = True
    type: Literal["debate", "survey", "question"]
    id: str


class AdminResultsInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    agree_count: int = Field(default=0, ge=0)
    disagree_count: int = Field(default=0, ge=0)
    opinions: list[dict[str, Any]] = Field(default_factory=list)


class DebateResultsOverride(BaseModel):
    model_config = ConfigDict(extra="forbid")

    admin_results: Optional[AdminResultsInput] = None
    created_at: Optional[datetime] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None


# ============================================================================
# Error logs
# ============================================================================


class ErrorLogCreate(BaseModel):
    """Client-side error report."""

    model_config = ConfigDict(extra="forbid")

    message: str = Field(..., min_length=1, max_length=2000)
    stack: Optional[str] = Field(default=None, max_length=10000)
    url: Optional[str] = Field(default=None, max_length=2000)
    user_agent: Optional[str] = Field(default=None, max_length=500)
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    metadata: Optional[dict[str, Any]] = None


class ErrorLogCreatedResponse(BaseModel):
    message: str = "Error report recorded"
    id: str


class ErrorLogUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    resolved: bool
    notes: Optional[str] = Field(default=None, max_length=2000)


class ErrorLogPublic(BaseModel):
    id: str
    error_code: str
    error_message: str
    error_stack: Optional[str] = None
    error_type: str
    severity: str
    endpoint: Optional[str] = None
    method: Optional[str] = None
    user_agent: Optional[str] = None
    response_status: Optional[int] = None
    metadata: Optional[dict[str, Any]] = None
    resolved: bool
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime


class ErrorLogListResponse(BaseModel):
    logs: list[ErrorLogPublic]
    pagination: Pagination


# ============================================================================
# Site statistics
# ============================================================================


class SiteStatsResponse(BaseModel):
    total_debates: int
    active_debates: int
    total_surveys: int
    active_surveys: int
    total_users: int
    today_users: int
    monthly_active_users: int
    recent_errors: int
    total_votes: int
    total_responses: int
    last_updated: datetime


class ActiveUserStats(BaseModel):
    """Distinct participating fingerprints, most recent period first."""

    dau: list[int]
    wau: list[int]
    mau: list[int]
    current_dau: int
    current_wau: int
    current_mau: int
    dau_trend: float
    wau_trend: float
    mau_trend: float


class DailyContent(BaseModel):
    day: date
    debates: int
    surveys: int


class ContentStats(BaseModel):
    total_debates: int
    total_surveys: int
    active_debates: int
    active_surveys: int
    today_debates: int
    today_surveys: int
    weekly_content: list[DailyContent]


class HourlyActivity(BaseModel):
    hour: int
    activity: int


class EngagementStats(BaseModel):
    avg_debate_participation: int
    avg_survey_completion: int
    total_votes: int
    total_responses: int
    hourly_activity: list[HourlyActivity]


class DetailedStatsResponse(BaseModel):
    active_users: ActiveUserStats
    content_stats: ContentStats
    engagement_stats: EngagementStats
    generated_at: datetime


# ============================================================================
# Users (activity grouped by fingerprint)
# ============================================================================


class UserActivitySummary(BaseModel):
    fingerprint: str
    total_debates: int = 0
    total_surveys: int = 0
    total_questions: int = 0
    total_requests: int = 0
    total_guestbook: int = 0
    first_seen: datetime
    last_activity: datetime


class UserListResponse(BaseModel):
    users: list[UserActivitySummary]


class UserContentItem(BaseModel):
    id: str
    title: str
    created_at: datetime
    status: Optional[str] = None


class UserContents(BaseModel):
    debates: list[UserContentItem] = Field(default_factory=list)
    surveys: list[UserContentItem] = Field(default_factory=list)
    questions: list[UserContentItem] = Field(default_factory=list)
    requests: list[UserContentItem] = Field(default_factory=list)
    guestbook: list[UserContentItem] = Field(default_factory=list)


class UserDetailResponse(BaseModel):
    fingerprint: str
    activity: UserActivitySummary
    contents: UserContents


# ============================================================================
# Content listing
# ============================================================================

ContentFilter = Literal["all", "debate", "survey", "question"]


class AdminContentItem(BaseModel):
    id: str
    title: str
    type: Literal["debate", "survey", "question"]
    status: str
    created_at: datetime
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    author_nickname: Optional[str] = None
    author_fingerprint: Optional[str] = None
    participant_count: int = 0
    is_hidden: bool = False


class AdminContentListResponse(BaseModel):
    success: bool = True
    contents: list[AdminContentItem]
    total: int
