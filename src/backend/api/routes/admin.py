"""
Admin endpoints: authentication, dashboard, statistics, users, moderation
and error logs.

Tokens are returned in the body and also set as httpOnly cookies; every
admin-only route accepts either.
"""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, Query, Request, Response, status

from api.deps import (
    ADMIN_COOKIE,
    REFRESH_COOKIE,
    CurrentAdmin,
    admin_from_token,
    clear_auth_cookie,
    csv_attachment,
    extract_admin_token,
    require_admin,
    require_super_admin,
    set_auth_cookie,
)
from core.config import settings
from models.cosmos_documents import ErrorSeverity, ErrorType
from repositories.provider import (
    AdminRepositoryProtocol,
    CommentRepositoryProtocol,
    DebateRepositoryProtocol,
    ErrorLogRepositoryProtocol,
    GuestbookRepositoryProtocol,
    QuestionRepositoryProtocol,
    RequestRepositoryProtocol,
    ResponseRepositoryProtocol,
    SurveyRepositoryProtocol,
    VoteRepositoryProtocol,
    get_admin_repository,
    get_comment_repository,
    get_debate_repository,
    get_error_log_repository,
    get_guestbook_repository,
    get_question_repository,
    get_request_repository,
    get_response_repository,
    get_survey_repository,
    get_vote_repository,
)
from schemas.admin import (
    AdminContentListResponse,
    ContentFilter,
    ContentVisibilityResponse,
    ContentVisibilityUpdate,
    DashboardResponse,
    DebateResultsOverride,
    DetailedStatsResponse,
    ErrorLogCreate,
    ErrorLogCreatedResponse,
    ErrorLogListResponse,
    ErrorLogPublic,
    ErrorLogUpdate,
    SiteStatsResponse,
    UserDetailResponse,
    UserListResponse,
)
from schemas.auth import (
    AdminCreatedResponse,
    AdminLogin,
    AdminLoginResponse,
    AdminPublic,
    AdminRegister,
    CheckAuthResponse,
    RefreshTokenRequest,
    RefreshTokenResponse,
)
from schemas.board import AdminAnswerCreate, AdminReplyCreate, QuestionResponse, RequestPublic
from schemas.common import MessageResponse, Pagination
from services.admin_service import (
    DashboardService,
    ErrorLogService,
    ModerationService,
    StatsService,
    UserActivityService,
)
from services.auth_service import AuthService
from services.debate_service import DebateService
from services.export_service import export_survey_csv, survey_filename
from services.question_service import QuestionService
from services.request_service import RequestService
from services.survey_service import SurveyService

logger = structlog.get_logger(__name__)

router = APIRouter()

ADMIN_COOKIE_MAX_AGE = settings.ADMIN_TOKEN_EXPIRE_HOURS * 60 * 60
REFRESH_COOKIE_MAX_AGE = settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60


# =============================================================================
# Authentication
# =============================================================================


@router.post("/auth", response_model=AdminLoginResponse)
async def login(
    payload: AdminLogin,
    response: Response,
    admin_repo: AdminRepositoryProtocol = Depends(get_admin_repository),
) -> AdminLoginResponse:
    service = AuthService(admin_repo)
    user = await service.authenticate(payload.username.strip(), payload.password)
    access_token, refresh_token = service.issue_tokens(user)

    set_auth_cookie(response, ADMIN_COOKIE, access_token, ADMIN_COOKIE_MAX_AGE)
    set_auth_cookie(response, REFRESH_COOKIE, refresh_token, REFRESH_COOKIE_MAX_AGE)
    return AdminLoginResponse(token=access_token, accessToken=access_token, user=user)


@router.put("/auth", response_model=AdminCreatedResponse, status_code=status.HTTP_201_CREATED)
async def register_admin(
    payload: AdminRegister,
    request: Request,
    admin_repo: AdminRepositoryProtocol = Depends(get_admin_repository),
) -> AdminCreatedResponse:
    """
    Create a stored admin account.

    Open outside production for initial setup; in production only a
    super admin may create accounts.
    """
    if settings.is_production:
        await require_super_admin(await require_admin(request))

    admin = await AuthService(admin_repo).register_admin(payload)
    return AdminCreatedResponse(
        admin=AdminPublic(id=admin.id, username=admin.username, email=admin.email, role=admin.role)
    )


@router.get("/check-auth", response_model=CheckAuthResponse)
async def check_auth(request: Request) -> CheckAuthResponse:
    """Report whether the caller holds a valid admin token. Never fails."""
    user = admin_from_token(extract_admin_token(request))
    return CheckAuthResponse(authenticated=user is not None, user=user)


@router.post("/refresh-token", response_model=RefreshTokenResponse)
async def refresh_token(
    request: Request,
    response: Response,
    payload: Optional[RefreshTokenRequest] = None,
    admin_repo: AdminRepositoryProtocol = Depends(get_admin_repository),
) -> RefreshTokenResponse:
    supplied = (payload.refresh_token if payload else None) or request.cookies.get(REFRESH_COOKIE)
    token, user = AuthService(admin_repo).refresh(supplied)
    set_auth_cookie(response, ADMIN_COOKIE, token, ADMIN_COOKIE_MAX_AGE)
    logger.info("admin_token_refreshed", username=user.username)
    return RefreshTokenResponse(token=token, accessToken=token)


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response) -> MessageResponse:
    clear_auth_cookie(response, ADMIN_COOKIE)
    clear_auth_cookie(response, REFRESH_COOKIE)
    return MessageResponse(message="Logged out")


# =============================================================================
# Dashboard and moderation
# =============================================================================


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    admin: CurrentAdmin,
    debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
    vote_repo: VoteRepositoryProtocol = Depends(get_vote_repository),
    survey_repo: SurveyRepositoryProtocol = Depends(get_survey_repository),
    response_repo: ResponseRepositoryProtocol = Depends(get_response_repository),
    question_repo: QuestionRepositoryProtocol = Depends(get_question_repository),
    comment_repo: CommentRepositoryProtocol = Depends(get_comment_repository),
    request_repo: RequestRepositoryProtocol = Depends(get_request_repository),
    guestbook_repo: GuestbookRepositoryProtocol = Depends(get_guestbook_repository),
    error_log_repo: ErrorLogRepositoryProtocol = Depends(get_error_log_repository),
) -> DashboardResponse:
    service = DashboardService(
        debate_repo,
        vote_repo,
        survey_repo,
        response_repo,
        question_repo,
        comment_repo,
        request_repo,
        guestbook_repo,
        error_log_repo,
    )
    return await service.get_dashboard()


@router.get("/stats", response_model=SiteStatsResponse)
async def site_stats(
    admin: CurrentAdmin,
    debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
    vote_repo: VoteRepositoryProtocol = Depends(get_vote_repository),
    survey_repo: SurveyRepositoryProtocol = Depends(get_survey_repository),
    response_repo: ResponseRepositoryProtocol = Depends(get_response_repository),
    error_log_repo: ErrorLogRepositoryProtocol = Depends(get_error_log_repository),
) -> SiteStatsResponse:
    return await StatsService(debate_repo, vote_repo, survey_repo, response_repo, error_log_repo).get_summary()


@router.get("/stats/detailed", response_model=DetailedStatsResponse)
async def detailed_stats(
    admin: CurrentAdmin,
    debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
    vote_repo: VoteRepositoryProtocol = Depends(get_vote_repository),
    survey_repo: SurveyRepositoryProtocol = Depends(get_survey_repository),
    response_repo: ResponseRepositoryProtocol = Depends(get_response_repository),
    error_log_repo: ErrorLogRepositoryProtocol = Depends(get_error_log_repository),
) -> DetailedStatsResponse:
    """Active users per day, week and month with trends, content and engagement figures."""
    return await StatsService(debate_repo, vote_repo, survey_repo, response_repo, error_log_repo).get_detailed()


def _user_activity_service(
    debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
    survey_repo: SurveyRepositoryProtocol = Depends(get_survey_repository),
    question_repo: QuestionRepositoryProtocol = Depends(get_question_repository),
    request_repo: RequestRepositoryProtocol = Depends(get_request_repository),
    guestbook_repo: GuestbookRepositoryProtocol = Depends(get_guestbook_repository),
) -> UserActivityService:
    return UserActivityService(debate_repo, survey_repo, question_repo, request_repo, guestbook_repo)


@router.get("/users", response_model=UserListResponse)
async def list_users(
    admin: CurrentAdmin,
    service: UserActivityService = Depends(_user_activity_service),
) -> UserListResponse:
    return UserListResponse(users=await service.list_users())


@router.get("/users/{fingerprint}", response_model=UserDetailResponse)
async def get_user(
    fingerprint: str,
    admin: CurrentAdmin,
    service: UserActivityService = Depends(_user_activity_service),
) -> UserDetailResponse:
    return await service.get_user(fingerprint)


@router.get("/contents", response_model=AdminContentListResponse)
async def list_contents(
    admin: CurrentAdmin,
    content_filter: ContentFilter = Query("all", alias="filter"),
    search: Optional[str] = Query(None, max_length=100),
    debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
    survey_repo: SurveyRepositoryProtocol = Depends(get_survey_repository),
    question_repo: QuestionRepositoryProtocol = Depends(get_question_repository),
) -> AdminContentListResponse:
    contents = await ModerationService(debate_repo, survey_repo, question_repo).list_contents(
        content_filter, search=search.strip() if search and search.strip() else None
    )
    return AdminContentListResponse(contents=contents, total=len(contents))


@router.put("/contents/{content_id}", response_model=ContentVisibilityResponse)
async def set_content_visibility(
    content_id: str,
    payload: ContentVisibilityUpdate,
    admin: CurrentAdmin,
    debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
    survey_repo: SurveyRepositoryProtocol = Depends(get_survey_repository),
    question_repo: QuestionRepositoryProtocol = Depends(get_question_repository),
) -> ContentVisibilityResponse:
    kind = await ModerationService(debate_repo, survey_repo, question_repo).set_visibility(
        content_id, hidden=payload.action == "hide"
    )
    return ContentVisibilityResponse(type=kind, id=content_id)


@router.put("/debates/{debate_id}/results")
async def override_debate_results(
    debate_id: str,
    payload: DebateResultsOverride,
    admin: CurrentAdmin,
    debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
) -> dict[str, Any]:
    service = DebateService(debate_repo)
    debate = await service.get_debate(debate_id)
    updated = await service.override_results(debate, payload)
    logger.info("admin_debate_results_saved", debate_id=debate_id, by=admin.username)
    return {
        "message": "Results saved",
        "debate": {
            "id": updated.id,
            "status": updated.status,
            "start_at": updated.start_at,
            "end_at": updated.end_at,
            "admin_results": updated.admin_results,
        },
    }


@router.post("/questions/{question_id}/answer", response_model=QuestionResponse)
async def answer_question(
    question_id: str,
    payload: AdminAnswerCreate,
    admin: CurrentAdmin,
    question_repo: QuestionRepositoryProtocol = Depends(get_question_repository),
) -> QuestionResponse:
    question = await QuestionService(question_repo).answer(question_id, payload.content, admin.username)
    return QuestionResponse(question=question.model_dump())


@router.delete("/questions/{question_id}/answer", response_model=QuestionResponse)
async def remove_question_answer(
    question_id: str,
    admin: CurrentAdmin,
    question_repo: QuestionRepositoryProtocol = Depends(get_question_repository),
) -> QuestionResponse:
    question = await QuestionService(question_repo).remove_answer(question_id)
    return QuestionResponse(question=question.model_dump())


@router.post("/requests/{request_id}/reply", response_model=RequestPublic)
async def reply_to_request(
    request_id: str,
    payload: AdminReplyCreate,
    admin: CurrentAdmin,
    request_repo: RequestRepositoryProtocol = Depends(get_request_repository),
) -> RequestPublic:
    request = await RequestService(request_repo).reply(request_id, payload.content, admin.username)
    return RequestPublic.model_validate(request.model_dump())


@router.get("/surveys/{survey_id}/export/csv")
async def export_survey_responses(
    survey_id: str,
    admin: CurrentAdmin,
    survey_repo: SurveyRepositoryProtocol = Depends(get_survey_repository),
    response_repo: ResponseRepositoryProtocol = Depends(get_response_repository),
) -> Response:
    survey = await SurveyService(survey_repo, response_repo).get_survey(survey_id)
    responses = await response_repo.list_by_survey(survey.id)
    logger.info("admin_survey_export", survey_id=survey.id, by=admin.username)
    return csv_attachment(export_survey_csv(survey, responses), survey_filename(survey))


# =============================================================================
# Error logs
# =============================================================================


@router.get("/error-logs", response_model=ErrorLogListResponse)
async def list_error_logs(
    admin: CurrentAdmin,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    severity: Optional[ErrorSeverity] = None,
    resolved: Optional[bool] = None,
    error_type: Optional[ErrorType] = Query(None, alias="type"),
    error_log_repo: ErrorLogRepositoryProtocol = Depends(get_error_log_repository),
) -> ErrorLogListResponse:
    logs, total = await ErrorLogService(error_log_repo).list_logs(
        page=page,
        limit=limit,
        severity=severity.value if severity else None,
        resolved=resolved,
        error_type=error_type.value if error_type else None,
    )
    return ErrorLogListResponse(
        logs=[ErrorLogPublic.model_validate(log.model_dump()) for log in logs],
        pagination=Pagination.build(page, limit, total),
    )


@router.post("/error-logs", response_model=ErrorLogCreatedResponse)
async def report_error(
    payload: ErrorLogCreate,
    error_log_repo: ErrorLogRepositoryProtocol = Depends(get_error_log_repository),
) -> ErrorLogCreatedResponse:
    """Client-side error report. No authentication."""
    log = await ErrorLogService(error_log_repo).report_client_error(payload)
    return ErrorLogCreatedResponse(id=log.id)


@router.patch("/error-logs/{log_id}", response_model=ErrorLogPublic)
async def update_error_log(
    log_id: str,
    payload: ErrorLogUpdate,
    admin: CurrentAdmin,
    error_log_repo: ErrorLogRepositoryProtocol = Depends(get_error_log_repository),
) -> ErrorLogPublic:
    log = await ErrorLogService(error_log_repo).set_resolved(
        log_id, payload.resolved, resolved_by=admin.username, notes=payload.notes
    )
    return ErrorLogPublic.model_validate(log.model_dump())


@router.delete("/error-logs/{log_id}", response_model=MessageResponse)
async def delete_error_log(
    log_id: str,
    admin: CurrentAdmin,
    error_log_repo: ErrorLogRepositoryProtocol = Depends(get_error_log_repository),
) -> MessageResponse:
    await ErrorLogService(error_log_repo).delete(log_id)
    return MessageResponse(message="Error log deleted")
