"""
API router aggregating all endpoints.
"""

from fastapi import APIRouter

from api.routes.admin import router as admin_router
from api.routes.comments import router as comments_router
from api.routes.debates import router as debates_router
from api.routes.guestbook import router as guestbook_router
from api.routes.questions import router as questions_router
from api.routes.requests import router as requests_router
from api.routes.surveys import router as surveys_router

router = APIRouter()

router.include_router(debates_router, prefix="/debates", tags=["Debates"])
router.include_router(surveys_router, prefix="/surveys", tags=["Surveys"])
router.include_router(questions_router, prefix="/questions", tags=["Q&A"])
router.include_router(comments_router, prefix="/comments", tags=["Comments"])
router.include_router(requests_router, prefix="/requests", tags=["Requests"])
router.include_router(guestbook_router, prefix="/guestbook", tags=["Guestbook"])
router.include_router(admin_router, prefix="/admin", tags=["Admin"])
