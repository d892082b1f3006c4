"""
Survey endpoints: authoring, responses and results.
"""

from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status

from api.deps import Fingerprint, csv_attachment, require_survey_author, set_auth_cookie, survey_author_cookie
from core.config import settings
from core.exceptions import AuthorizationError, NotFoundError
from models.cosmos_documents import SurveyDocument, SurveyStatus
from repositories.provider import (
    ResponseRepositoryProtocol,
    SurveyRepositoryProtocol,
    get_response_repository,
    get_survey_repository,
)
from schemas.common import MessageResponse, Pagination
from schemas.debate import AuthorTokenResponse, PasswordVerify
from schemas.survey import (
    CheckResponseResponse,
    SurveyCreate,
    SurveyCreatedResponse,
    SurveyDetail,
    SurveyListResponse,
    SurveyRespondResponse,
    SurveyResponseCreate,
    SurveyResultsResponse,
    SurveyStatusUpdate,
    SurveySummary,
)
from services.export_service import export_survey_csv, survey_filename
from services.survey_service import SurveyService

router = APIRouter()

AUTHOR_COOKIE_MAX_AGE = settings.AUTHOR_TOKEN_EXPIRE_DAYS * 24 * 60 * 60


def _detail(survey: SurveyDocument) -> SurveyDetail:
    data = survey.model_dump()
    data["questions"] = sorted(data["questions"], key=lambda q: q["order"])
    data["can_respond"] = survey.can_receive_response()
    return SurveyDetail.model_validate(data)


async def _get_visible_survey(survey_id: str, survey_repo: SurveyRepositoryProtocol) -> SurveyDocument:
    survey = await survey_repo.get_by_id(survey_id)
    if survey is None or survey.is_hidden:
        raise NotFoundError("Survey not found")
    return survey


@router.get("", response_model=SurveyListResponse)
async def list_surveys(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[SurveyStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=100),
    survey_repo: SurveyRepositoryProtocol = Depends(get_survey_repository),
) -> SurveyListResponse:
    surveys, total = await survey_repo.list_surveys(
        page=page,
        limit=limit,
        status=status_filter.value if status_filter else None,
        search=search.strip() if search else None,
    )
    return SurveyListResponse(
        surveys=[SurveySummary.model_validate(survey.model_dump()) for survey in surveys],
        pagination=Pagination.build(page, limit, total),
    )


@router.post("", response_model=SurveyCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_survey(
    payload: SurveyCreate,
    response: Response,
    fingerprint: Fingerprint,
    survey_repo: SurveyRepositoryProtocol = Depends(get_survey_repository),
    response_repo: ResponseRepositoryProtocol = Depends(get_response_repository),
) -> SurveyCreatedResponse:
    survey, token = await SurveyService(survey_repo, response_repo).create_survey(payload, fingerprint)
    set_auth_cookie(response, survey_author_cookie(survey.id), token, AUTHOR_COOKIE_MAX_AGE)
    return SurveyCreatedResponse(
        id=survey.id,
        public_url=survey.public_url or "",
        admin_url=survey.admin_url or "",
        admin_token=token,
    )


@router.get("/{survey_id}", response_model=SurveyDetail)
async def get_survey(
    survey_id: str,
    survey_repo: SurveyRepositoryProtocol = Depends(get_survey_repository),
) -> SurveyDetail:
    survey = await _get_visible_survey(survey_id, survey_repo)
    survey = await survey_repo.increment_view_count(survey.id) or survey
    return _detail(survey)


@router.post("/{survey_id}/verify", response_model=AuthorTokenResponse)
async def verify_survey_author(
    survey_id: str,
    payload: PasswordVerify,
    response: Response,
    survey_repo: SurveyRepositoryProtocol = Depends(get_survey_repository),
    response_repo: ResponseRepositoryProtocol = Depends(get_response_repository),
) -> AuthorTokenResponse:
    service = SurveyService(survey_repo, response_repo)
    survey = await service.get_survey(survey_id)
    token, expires_at = await service.verify_author(survey, payload.password)
    set_auth_cookie(response, survey_author_cookie(survey.id), token, AUTHOR_COOKIE_MAX_AGE)
    return AuthorTokenResponse(message="Verified", admin_token=token, expires_at=expires_at)


@router.put("/{survey_id}/status")
async def update_survey_status(
    payload: SurveyStatusUpdate,
    survey: Annotated[SurveyDocument, Depends(require_survey_author)],
    survey_repo: SurveyRepositoryProtocol = Depends(get_survey_repository),
    response_repo: ResponseRepositoryProtocol = Depends(get_response_repository),
) -> dict[str, Any]:
    updated = await SurveyService(survey_repo, response_repo).update_status(survey, payload.status)
    return {"message": "Status updated", "status": updated.status, "survey": _detail(updated)}


@router.delete("/{survey_id}", response_model=MessageResponse)
async def delete_survey(
    survey: Annotated[SurveyDocument, Depends(require_survey_author)],
    survey_repo: SurveyRepositoryProtocol = Depends(get_survey_repository),
    response_repo: ResponseRepositoryProtocol = Depends(get_response_repository),
) -> MessageResponse:
    await SurveyService(survey_repo, response_repo).delete(survey)
    return MessageResponse(message="Survey deleted")


@router.post("/{survey_id}/respond", response_model=SurveyRespondResponse)
async def respond_to_survey(
    survey_id: str,
    payload: SurveyResponseCreate,
    request: Request,
    fingerprint: Fingerprint,
    survey_repo: SurveyRepositoryProtocol = Depends(get_survey_repository),
    response_repo: ResponseRepositoryProtocol = Depends(get_response_repository),
) -> SurveyRespondResponse:
    """Submit answers. One response per client fingerprint."""
    survey = await _get_visible_survey(survey_id, survey_repo)
    stored = await SurveyService(survey_repo, response_repo).submit_response(
        survey,
        payload.answers,
        fingerprint,
        user_agent=request.headers.get("User-Agent"),
        started_at=payload.started_at,
    )
    return SurveyRespondResponse(message="Response submitted", response_code=stored.response_code)


@router.get("/{survey_id}/check-response", response_model=CheckResponseResponse)
async def check_response(
    survey_id: str,
    fingerprint: Fingerprint,
    survey_repo: SurveyRepositoryProtocol = Depends(get_survey_repository),
    response_repo: ResponseRepositoryProtocol = Depends(get_response_repository),
) -> CheckResponseResponse:
    survey = await _get_visible_survey(survey_id, survey_repo)
    responded = await SurveyService(survey_repo, response_repo).has_responded(survey.id, fingerprint)
    return CheckResponseResponse(hasResponded=responded)


@router.get("/{survey_id}/results", response_model=SurveyResultsResponse)
async def get_survey_results(
    survey: Annotated[SurveyDocument, Depends(require_survey_author)],
    survey_repo: SurveyRepositoryProtocol = Depends(get_survey_repository),
    response_repo: ResponseRepositoryProtocol = Depends(get_response_repository),
) -> SurveyResultsResponse:
    return await SurveyService(survey_repo, response_repo).build_results(survey)


@router.get("/{survey_id}/public-results", response_model=SurveyResultsResponse)
async def get_public_survey_results(
    survey_id: str,
    survey_repo: SurveyRepositoryProtocol = Depends(get_survey_repository),
    response_repo: ResponseRepositoryProtocol = Depends(get_response_repository),
) -> SurveyResultsResponse:
    survey = await _get_visible_survey(survey_id, survey_repo)
    if not survey.public_results:
        raise AuthorizationError("Results of this survey are not public")
    return await SurveyService(survey_repo, response_repo).build_results(survey)


@router.get("/{survey_id}/export")
async def export_survey(
    survey: Annotated[SurveyDocument, Depends(require_survey_author)],
    response_repo: ResponseRepositoryProtocol = Depends(get_response_repository),
) -> Response:
    """CSV download with one row per response. Author or admin only."""
    responses = await response_repo.list_by_survey(survey.id)
    return csv_attachment(export_survey_csv(survey, responses), survey_filename(survey))
