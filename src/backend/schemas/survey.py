"""
Survey-related Pydantic schemas.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models.cosmos_documents import QuestionType, SurveyStatus
from schemas.common import Pagination

CHOICE_TYPES = (QuestionType.SINGLE_CHOICE, QuestionType.MULTIPLE_CHOICE)


# ============================================================================
# Requests
# ============================================================================


class SurveyChoiceInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = None
    label: str = Field(..., min_length=1, max_length=200)


class QuestionPropertiesInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    choices: list[SurveyChoiceInput] = Field(default_factory=list)
    max_length: Optional[int] = Field(default=None, ge=1)
    min_length: Optional[int] = Field(default=None, ge=0)
    rating_scale: Literal[5, 10] = 5


class SurveyQuestionInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = None
    type: QuestionType
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = Field(default=None, max_length=1000)
    required: bool = False
    properties: QuestionPropertiesInput = Field(default_factory=QuestionPropertiesInput)

    @model_validator(mode="after")
    def _check_choices(self) -> "SurveyQuestionInput":
        if self.type in CHOICE_TYPES and len(self.properties.choices) < 2:
            raise ValueError("Choice questions need at least two choices")
        return self


class SurveySettingsInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    response_limit: Optional[int] = Field(default=None, ge=1)
    close_at: Optional[datetime] = None
    language: str = "ko"


class SurveyCreate(BaseModel):
    """Schema for creating a survey."""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    tags: list[str] = Field(default_factory=list)
    author_nickname: Optional[str] = Field(default=None, max_length=50)
    admin_password: str = Field(..., min_length=8)
    questions: list[SurveyQuestionInput] = Field(..., min_length=1)
    settings: SurveySettingsInput = Field(default_factory=SurveySettingsInput)
    public_results: bool = False
    status: SurveyStatus = SurveyStatus.OPEN


class SurveyStatusUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: SurveyStatus


class AnswerInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    question_id: str
    question_type: QuestionType
    choice_id: Optional[str] = None
    choice_ids: Optional[list[str]] = None
    text: Optional[str] = None
    rating: Optional[int] = None


class SurveyResponseCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    answers: list[AnswerInput]
    started_at: Optional[datetime] = None


# ============================================================================
# Responses
# ============================================================================


class SurveyChoicePublic(BaseModel):
    id: str
    label: str


class QuestionPropertiesPublic(BaseModel):
    choices: list[SurveyChoicePublic] = Field(default_factory=list)
    max_length: Optional[int] = None
    min_length: Optional[int] = None
    rating_scale: int = 5


class SurveyQuestionPublic(BaseModel):
    id: str
    type: str
    title: str
    description: Optional[str] = None
    required: bool
    properties: QuestionPropertiesPublic
    order: int


class SurveyStatsPublic(BaseModel):
    response_count: int
    completion_rate: int
    last_response_at: Optional[datetime] = None
    view_count: int


class SurveySummary(BaseModel):
    id: str
    title: str
    description: str
    tags: list[str]
    author_nickname: str
    status: str
    stats: SurveyStatsPublic
    created_at: datetime


class SurveyDetail(SurveySummary):
    questions: list[SurveyQuestionPublic]
    settings: SurveySettingsInput
    public_results: bool
    is_editable: bool
    can_respond: bool
    public_url: Optional[str] = None


class SurveyListResponse(BaseModel):
    surveys: list[SurveySummary]
    pagination: Pagination


class SurveyCreatedResponse(BaseModel):
    id: str
    public_url: str
    admin_url: str
    admin_token: str


class SurveyRespondResponse(BaseModel):
    message: str
    response_code: str


class CheckResponseResponse(BaseModel):
    hasResponded: bool


class QuestionStat(BaseModel):
    question_id: str
    type: str
    title: str
    response_count: int = 0
    options: dict[str, int] = Field(default_factory=dict)
    responses: list[str] = Field(default_factory=list)
    average: float = 0


class SurveyResultsResponse(BaseModel):
    question_stats: dict[str, QuestionStat]
    total_responses: int
    last_updated: datetime
