"""Schemas module initialization."""

from schemas.auth import AdminLogin, AdminLoginResponse, AdminUser
from schemas.common import MessageResponse, Pagination
from schemas.debate import DebateCreate, DebateDetail, OpinionCreate, VoteCreate
from schemas.survey import SurveyCreate, SurveyDetail, SurveyResponseCreate, SurveyResultsResponse

__all__ = [
    "AdminLogin",
    "AdminLoginResponse",
    "AdminUser",
    "MessageResponse",
    "Pagination",
    "DebateCreate",
    "DebateDetail",
    "OpinionCreate",
    "VoteCreate",
    "SurveyCreate",
    "SurveyDetail",
    "SurveyResponseCreate",
    "SurveyResultsResponse",
]
