"""Document models module."""

from models.cosmos_documents import (
    AdminDocument,
    CommentDocument,
    DebateDocument,
    ErrorLogDocument,
    GuestbookDocument,
    OpinionDocument,
    QuestionDocument,
    RequestDocument,
    ResponseDocument,
    SurveyDocument,
    VoteDocument,
)

__all__ = [
    "AdminDocument",
    "CommentDocument",
    "DebateDocument",
    "ErrorLogDocument",
    "GuestbookDocument",
    "OpinionDocument",
    "QuestionDocument",
    "RequestDocument",
    "ResponseDocument",
    "SurveyDocument",
    "VoteDocument",
]
