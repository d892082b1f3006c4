"""
Cosmos DB document models for Selfquestion.

These Pydantic models define the document structure stored in Cosmos DB.
Documents are plain data: hashing, token handling and validation of
business rules live in ``core.security`` and ``services``.

Container Strategy:
- debates: Debate definitions with embedded options and opinions (partition: /id)
- votes: Individual votes, unique per voter fingerprint (partition: /debate_id)
- surveys: Survey definitions with embedded questions (partition: /id)
- responses: Survey responses (partition: /survey_id)
- questions: Q&A board items (partition: /id)
- comments: Comments on debates and questions (partition: /content_id)
- requests: Request board items (partition: /id)
- guestbook: Sticky notes (partition: /id)
- admins: Stored admin accounts (partition: /id)
- error-logs: Server and client error reports (partition: /id)
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from core.security import generate_document_id

_DATETIME_ADAPTER = TypeAdapter(datetime)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_json_datetime(value: datetime) -> str:
    """Serialize a datetime exactly the way stored documents serialize it."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return _DATETIME_ADAPTER.dump_python(value, mode="json")


# ============================================================================
# Enums
# ============================================================================


class DebateStatus(str, Enum):
    """Debate lifecycle status, derived from the voting window."""

    SCHEDULED = "scheduled"
    ACTIVE = "active"
    ENDED = "ended"


class DebateCategory(str, Enum):
    GENERAL = "general"
    TECH = "tech"
    LIFESTYLE = "lifestyle"
    POLITICS = "politics"
    ENTERTAINMENT = "entertainment"
    SPORTS = "sports"
    OTHER = "other"


class SurveyStatus(str, Enum):
    DRAFT = "draft"
    OPEN = "open"
    CLOSED = "closed"


class QuestionType(str, Enum):
    """Survey question types."""

    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    SHORT_TEXT = "short_text"
    LONG_TEXT = "long_text"
    RATING = "rating"


class QuestionStatus(str, Enum):
    """Q&A board item status."""

    PENDING = "pending"
    ANSWERED = "answered"
    CLOSED = "closed"


class CommentContentType(str, Enum):
    DEBATE = "debate"
    QUESTION = "question"


class AdminRole(str, Enum):
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class ErrorType(str, Enum):
    SYSTEM = "system"
    API = "api"
    DATABASE = "database"
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    CLIENT = "client"
    UNKNOWN = "unknown"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# ============================================================================
# Base Document Model
# ============================================================================


class EmbeddedModel(BaseModel):
    """Base for structures embedded inside documents."""

    model_config = ConfigDict(use_enum_values=True)

    @field_validator("*", mode="after")
    @classmethod
    def _assume_utc(cls, v: Any) -> Any:
        # Naive datetimes are treated as UTC so window comparisons never mix kinds
        if isinstance(v, datetime) and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class CosmosDocument(EmbeddedModel):
    """
    Base class for Cosmos DB documents.

    All documents have:
    - id: Opaque identifier (also the partition key for most containers)
    - _ts / _etag: managed by Cosmos DB, tolerated as extra fields
    """

    model_config = ConfigDict(extra="allow", use_enum_values=True)

    id: str = Field(default_factory=generate_document_id)

    def to_cosmos(self) -> dict[str, Any]:
        """Serialize for storage."""
        return self.model_dump(mode="json")


# ============================================================================
# Debate Documents
# ============================================================================


class VoteOption(EmbeddedModel):
    """Selectable option embedded in a debate."""

    id: str
    label: str = Field(..., max_length=200)
    order: int = 0
    vote_count: int = 0


class DebateSettings(EmbeddedModel):
    allow_multiple_choice: bool = False
    show_results_before_end: bool = True
    allow_anonymous_vote: bool = True
    allow_opinion: bool = True
    max_votes_per_ip: int = Field(default=1, ge=1)


class DebateStats(EmbeddedModel):
    total_votes: int = 0
    unique_voters: int = 0
    opinion_count: int = 0
    view_count: int = 0
    last_vote_at: Optional[datetime] = None


class OpinionDocument(EmbeddedModel):
    """Free-text opinion embedded in a debate. Append-only."""

    id: str = Field(default_factory=generate_document_id)
    author_nickname: str = Field(default="익명", max_length=50)
    author_ip_hash: str
    selected_option_id: Optional[str] = None
    content: str = Field(..., max_length=1000)
    is_anonymous: bool = True
    is_deleted: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class AdminResults(EmbeddedModel):
    """Result figures entered manually by an admin."""

    agree_count: int = 0
    disagree_count: int = 0
    opinions: list[dict[str, Any]] = Field(default_factory=list)


class DebateDocument(CosmosDocument):
    """
    Debate (poll) document stored in the 'debates' container.

    Partition key: /id
    Option counters and stats are only ever changed through atomic patch
    operations, never through read-modify-write.
    """

    title: str = Field(..., max_length=200)
    description: str = Field(default="", max_length=2000)
    category: DebateCategory = DebateCategory.GENERAL
    tags: list[str] = Field(default_factory=list)

    author_nickname: str = Field(default="익명", max_length=50)
    author_ip_hash: Optional[str] = None
    admin_password_hash: str

    vote_options: list[VoteOption] = Field(default_factory=list)
    settings: DebateSettings = Field(default_factory=DebateSettings)

    start_at: datetime
    end_at: datetime
    status: DebateStatus = DebateStatus.SCHEDULED

    is_hidden: bool = False
    is_deleted: bool = False

    stats: DebateStats = Field(default_factory=DebateStats)
    opinions: list[OpinionDocument] = Field(default_factory=list)
    admin_results: Optional[AdminResults] = None

    author_token_hash: Optional[str] = None
    author_token_expires: Optional[datetime] = None

    public_url: Optional[str] = None
    admin_url: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def current_status(self, now: Optional[datetime] = None) -> DebateStatus:
        """scheduled before the window, active inside it (inclusive), ended after."""
        now = now or utcnow()
        if now < self.start_at:
            return DebateStatus.SCHEDULED
        if now <= self.end_at:
            return DebateStatus.ACTIVE
        return DebateStatus.ENDED

    def results_visible(self, now: Optional[datetime] = None) -> bool:
        return self.settings.show_results_before_end or self.current_status(now) == DebateStatus.ENDED

    def get_option(self, option_id: str) -> Optional[VoteOption]:
        for option in self.vote_options:
            if option.id == option_id:
                return option
        return None

    def option_index(self, option_id: str) -> int:
        for index, option in enumerate(self.vote_options):
            if option.id == option_id:
                return index
        raise KeyError(option_id)


class VoteDocument(CosmosDocument):
    """
    Vote document stored in the 'votes' container.

    Partition key: /debate_id
    Unique key: /voter_ip_hash (per partition). The raw IP is never stored.
    """

    debate_id: str
    voter_ip_hash: str
    voter_name: Optional[str] = None
    option_ids: list[str]
    is_anonymous: bool = True
    created_at: datetime = Field(default_factory=utcnow)


# ============================================================================
# Survey Documents
# ============================================================================


class SurveyChoice(EmbeddedModel):
    id: str
    label: str


class QuestionProperties(EmbeddedModel):
    choices: list[SurveyChoice] = Field(default_factory=list)
    max_length: Optional[int] = None
    min_length: Optional[int] = None
    rating_scale: int = 5


class SurveyQuestion(EmbeddedModel):
    id: str = Field(default_factory=generate_document_id)
    type: QuestionType
    title: str = Field(..., max_length=500)
    description: Optional[str] = None
    required: bool = False
    properties: QuestionProperties = Field(default_factory=QuestionProperties)
    order: int = 0


class SurveySettings(EmbeddedModel):
    response_limit: Optional[int] = None
    close_at: Optional[datetime] = None
    language: str = "ko"


class SurveyStats(EmbeddedModel):
    response_count: int = 0
    completion_rate: int = 0
    last_response_at: Optional[datetime] = None
    view_count: int = 0


class SurveyDocument(CosmosDocument):
    """
    Survey document stored in the 'surveys' container.

    Partition key: /id
    """

    title: str = Field(..., max_length=200)
    description: str = Field(default="", max_length=2000)
    tags: list[str] = Field(default_factory=list)
    author_nickname: str = Field(default="익명", max_length=50)
    creator_ip_hash: Optional[str] = None
    admin_password_hash: str

    # Author session (only the digest of the token is stored)
    author_token_hash: Optional[str] = None
    author_token_expires: Optional[datetime] = None

    status: SurveyStatus = SurveyStatus.OPEN
    is_hidden: bool = False
    is_deleted: bool = False
    public_results: bool = False

    questions: list[SurveyQuestion] = Field(default_factory=list)
    settings: SurveySettings = Field(default_factory=SurveySettings)
    stats: SurveyStats = Field(default_factory=SurveyStats)

    first_response_at: Optional[datetime] = None
    is_editable: bool = True

    public_url: Optional[str] = None
    admin_url: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def can_receive_response(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        if self.status != SurveyStatus.OPEN or self.is_hidden or self.is_deleted:
            return False
        if self.settings.response_limit and self.stats.response_count >= self.settings.response_limit:
            return False
        if self.settings.close_at and now > self.settings.close_at:
            return False
        return True

    def get_question(self, question_id: str) -> Optional[SurveyQuestion]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None


class SurveyAnswer(EmbeddedModel):
    question_id: str
    question_type: QuestionType
    choice_id: Optional[str] = None
    choice_ids: Optional[list[str]] = None
    text: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=1, le=10)


class ResponseDocument(CosmosDocument):
    """
    Survey response stored in the 'responses' container.

    Partition key: /survey_id
    One per (survey, respondent fingerprint), existence-checked.
    """

    survey_id: str
    response_code: str
    respondent_ip_hash: str
    user_agent: Optional[str] = None
    answers: list[SurveyAnswer] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    submitted_at: datetime = Field(default_factory=utcnow)
    completion_time: Optional[int] = None  # seconds
    is_complete: bool = True


# ============================================================================
# Board Documents
# ============================================================================


class AdminAnswer(EmbeddedModel):
    content: str
    answered_at: datetime = Field(default_factory=utcnow)
    answered_by: str


class QuestionDocument(CosmosDocument):
    """
    Q&A board item stored in the 'questions' container.

    Partition key: /id
    """

    title: str = Field(..., max_length=200)
    content: str = Field(..., max_length=5000)
    nickname: str = Field(..., max_length=20)
    password_hash: str
    ip_hash: Optional[str] = None
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    views: int = 0
    status: QuestionStatus = QuestionStatus.PENDING
    admin_answer: Optional[AdminAnswer] = None
    is_hidden: bool = False
    is_deleted: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class CommentDocument(CosmosDocument):
    """
    Comment stored in the 'comments' container.

    Partition key: /content_id
    """

    content_type: CommentContentType
    content_id: str
    nickname: str = Field(..., max_length=20)
    password_hash: str
    content: str = Field(..., max_length=500)
    parent_id: Optional[str] = None
    ip_hash: Optional[str] = None
    is_deleted: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class AdminReply(EmbeddedModel):
    content: str
    replied_at: datetime = Field(default_factory=utcnow)
    replied_by: str


class RequestDocument(CosmosDocument):
    """
    Request board item stored in the 'requests' container.

    Partition key: /id
    """

    title: str = Field(..., max_length=100)
    content: str = Field(..., max_length=2000)
    author_nickname: str = Field(..., max_length=20)
    author_ip_hash: str
    password_hash: str
    is_public: bool = True
    views: int = 0
    admin_reply: Optional[AdminReply] = None
    is_deleted: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class NotePosition(EmbeddedModel):
    x: float = Field(..., ge=0, le=100)
    y: float = Field(..., ge=0, le=100)


class GuestbookDocument(CosmosDocument):
    """
    Guestbook sticky note stored in the 'guestbook' container.

    Partition key: /id
    """

    content: str = Field(..., max_length=200)
    color: str = "#FFE500"
    position: NotePosition
    author_nickname: Optional[str] = Field(default=None, max_length=20)
    author_ip_hash: str
    password_hash: Optional[str] = None
    z_index: int = 0
    is_deleted: bool = False
    created_at: datetime = Field(default_factory=utcnow)


# ============================================================================
# Admin Documents
# ============================================================================


class AdminDocument(CosmosDocument):
    """
    Stored admin account in the 'admins' container.

    Partition key: /id
    Username and email are unique.
    """

    username: str = Field(..., min_length=3, max_length=20)
    email: str
    password_hash: str
    role: AdminRole = AdminRole.ADMIN
    is_active: bool = True
    last_login: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.strip().lower()


class ErrorLogDocument(CosmosDocument):
    """
    Error report stored in the 'error-logs' container.

    Partition key: /id
    """

    error_code: str
    error_message: str
    error_stack: Optional[str] = None
    error_type: ErrorType = ErrorType.UNKNOWN
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    endpoint: Optional[str] = None
    method: Optional[str] = None
    user_agent: Optional[str] = None
    response_status: Optional[int] = None
    metadata: Optional[dict[str, Any]] = None
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
