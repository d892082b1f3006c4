"""
Debate endpoints: listing, creation, author sessions, voting and opinions.
"""

from typing import Annotated, Any, Optional

import structlog
from fastapi import APIRouter, Depends, Query, Request, Response, status

from api.deps import (
    Fingerprint,
    csv_attachment,
    debate_author_cookie,
    has_author_access,
    require_debate_author,
    set_auth_cookie,
)
from core.config import settings
from core.exceptions import AuthorizationError, NotFoundError
from models.cosmos_documents import DebateCategory, DebateDocument, DebateStatus, utcnow
from repositories.provider import (
    DebateRepositoryProtocol,
    VoteRepositoryProtocol,
    get_debate_repository,
    get_vote_repository,
)
from schemas.common import MessageResponse, Pagination
from schemas.debate import (
    AuthorTokenResponse,
    DebateCreate,
    DebateCreatedResponse,
    DebateDetail,
    DebateListResponse,
    DebateSort,
    DebateStatsResponse,
    DebateStatusUpdate,
    DebateSummary,
    OpinionCreate,
    OpinionListResponse,
    OpinionPublic,
    OptionStat,
    PasswordVerify,
    VoteCreate,
    VoteOptionPublic,
)
from services.debate_service import DebateService
from services.export_service import debate_filename, export_debate_csv
from services.opinion_service import OpinionService
from services.voting_service import VotingService, build_results

logger = structlog.get_logger(__name__)

router = APIRouter()

AUTHOR_COOKIE_MAX_AGE = settings.AUTHOR_TOKEN_EXPIRE_DAYS * 24 * 60 * 60


def _summary(debate: DebateDocument) -> DebateSummary:
    data = debate.model_dump()
    data["status"] = debate.current_status().value
    return DebateSummary.model_validate(data)


def _detail(debate: DebateDocument, show_counts: bool) -> DebateDetail:
    data = debate.model_dump()
    data["status"] = debate.current_status().value
    results = build_results(debate) if show_counts else None
    percentages = {option.id: option.percentage for option in results.options} if results else {}
    data["vote_options"] = [
        VoteOptionPublic(
            id=option.id,
            label=option.label,
            order=option.order,
            vote_count=option.vote_count if show_counts else None,
            percentage=percentages.get(option.id) if show_counts else None,
        )
        for option in sorted(debate.vote_options, key=lambda o: o.order)
    ]
    data["results_visible"] = show_counts
    return DebateDetail.model_validate(data)


async def _get_visible_debate(debate_id: str, debate_repo: DebateRepositoryProtocol) -> DebateDocument:
    debate = await debate_repo.get_by_id(debate_id)
    if debate is None or debate.is_hidden:
        raise NotFoundError("Debate not found")
    return debate


@router.get("", response_model=DebateListResponse)
async def list_debates(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[DebateStatus] = Query(None, alias="status"),
    category: Optional[DebateCategory] = None,
    search: Optional[str] = Query(None, max_length=100),
    tags: Optional[str] = Query(None, description="Comma separated tags"),
    sort: DebateSort = "recent",
    debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
) -> DebateListResponse:
    """List visible debates. Status filters follow the voting window."""
    tag_list = [tag.strip() for tag in tags.split(",") if tag.strip()] if tags else None
    debates, total = await debate_repo.list_debates(
        page=page,
        limit=limit,
        status=status_filter.value if status_filter else None,
        category=category.value if category else None,
        search=search.strip() if search else None,
        tags=tag_list,
        sort=sort,
    )
    return DebateListResponse(
        debates=[_summary(debate) for debate in debates],
        pagination=Pagination.build(page, limit, total),
    )


@router.post("", response_model=DebateCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_debate(
    payload: DebateCreate,
    response: Response,
    fingerprint: Fingerprint,
    debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
) -> DebateCreatedResponse:
    debate, token = await DebateService(debate_repo).create_debate(payload, fingerprint)
    set_auth_cookie(response, debate_author_cookie(debate.id), token, AUTHOR_COOKIE_MAX_AGE)
    return DebateCreatedResponse(
        id=debate.id,
        public_url=debate.public_url or "",
        admin_url=debate.admin_url or "",
        admin_token=token,
    )


@router.get("/{debate_id}", response_model=DebateDetail)
async def get_debate(
    debate_id: str,
    request: Request,
    debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
) -> DebateDetail:
    """Debate page. Counts are included once results are visible, or for its author."""
    debate = await _get_visible_debate(debate_id, debate_repo)
    debate = await debate_repo.increment_view_count(debate.id) or debate
    show_counts = debate.results_visible() or has_author_access(request, debate)
    return _detail(debate, show_counts)


@router.delete("/{debate_id}", response_model=MessageResponse)
async def delete_debate(
    debate: Annotated[DebateDocument, Depends(require_debate_author)],
    debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
) -> MessageResponse:
    await DebateService(debate_repo).delete(debate)
    return MessageResponse(message="Debate deleted")


@router.post("/{debate_id}/verify", response_model=AuthorTokenResponse)
async def verify_debate_author(
    debate_id: str,
    payload: PasswordVerify,
    response: Response,
    debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
) -> AuthorTokenResponse:
    """Exchange the debate password for an author session."""
    service = DebateService(debate_repo)
    debate = await service.get_debate(debate_id)
    token, expires_at = await service.verify_author(debate, payload.password)
    set_auth_cookie(response, debate_author_cookie(debate.id), token, AUTHOR_COOKIE_MAX_AGE)
    return AuthorTokenResponse(message="Verified", admin_token=token, expires_at=expires_at)


@router.put("/{debate_id}/status")
async def update_debate_status(
    payload: DebateStatusUpdate,
    debate: Annotated[DebateDocument, Depends(require_debate_author)],
    debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
) -> dict[str, Any]:
    updated = await DebateService(debate_repo).update_status(debate, payload.status)
    return {
        "message": "Status updated",
        "status": updated.status,
        "debate": _detail(updated, show_counts=True),
    }


@router.post("/{debate_id}/vote")
async def cast_vote(
    debate_id: str,
    payload: VoteCreate,
    fingerprint: Fingerprint,
    request: Request,
    debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
    vote_repo: VoteRepositoryProtocol = Depends(get_vote_repository),
) -> dict[str, Any]:
    """
    Cast a vote. One vote per client fingerprint and debate.

    Results are returned when the debate shows them before the end.
    """
    debate = await _get_visible_debate(debate_id, debate_repo)
    service = VotingService(debate_repo, vote_repo)
    updated = await service.cast_vote(
        debate,
        payload.option_ids,
        fingerprint,
        voter_name=payload.voter_name,
        is_anonymous=payload.is_anonymous,
    )
    results = service.get_results(updated, force=has_author_access(request, updated))
    return {"message": "Vote recorded", "results": results}


@router.post("/{debate_id}/opinion", response_model=MessageResponse)
async def add_opinion(
    debate_id: str,
    payload: OpinionCreate,
    fingerprint: Fingerprint,
    debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
) -> MessageResponse:
    debate = await _get_visible_debate(debate_id, debate_repo)
    await OpinionService(debate_repo).add_opinion(
        debate,
        payload.content,
        fingerprint,
        author_nickname=payload.author_nickname,
        selected_option_id=payload.selected_option_id,
        is_anonymous=payload.is_anonymous,
    )
    return MessageResponse(message="Opinion posted")


@router.get("/{debate_id}/opinions", response_model=OpinionListResponse)
async def list_opinions(
    debate_id: str,
    debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
) -> OpinionListResponse:
    debate = await _get_visible_debate(debate_id, debate_repo)
    opinions = OpinionService(debate_repo).list_opinions(debate)
    return OpinionListResponse(
        opinions=[OpinionPublic.model_validate(opinion.model_dump()) for opinion in opinions],
        total=len(opinions),
        last_updated=utcnow(),
    )


@router.get("/{debate_id}/stats", response_model=DebateStatsResponse)
async def get_debate_stats(
    debate_id: str,
    fingerprint: Fingerprint,
    request: Request,
    debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
    vote_repo: VoteRepositoryProtocol = Depends(get_vote_repository),
) -> DebateStatsResponse:
    """
    Vote counters plus whether this client has voted.

    Per-option counts are only shown once results are visible, to the
    author, or to a client that has already voted.
    """
    debate = await _get_visible_debate(debate_id, debate_repo)
    has_voted = await VotingService(debate_repo, vote_repo).has_voted(debate.id, fingerprint)

    options = sorted(debate.vote_options, key=lambda o: o.order)
    if debate.admin_results is not None:
        agree, disagree = debate.admin_results.agree_count, debate.admin_results.disagree_count
    else:
        agree = options[0].vote_count if options else 0
        disagree = options[1].vote_count if len(options) > 1 else 0

    show_counts = has_voted or debate.results_visible() or has_author_access(request, debate)
    option_stats = (
        [OptionStat(option_id=option.id, label=option.label, count=option.vote_count) for option in options]
        if show_counts
        else []
    )
    return DebateStatsResponse(
        agree_count=agree if show_counts else 0,
        disagree_count=disagree if show_counts else 0,
        total_votes=debate.stats.total_votes,
        unique_voters=debate.stats.unique_voters,
        has_voted=has_voted,
        option_stats=option_stats,
    )


@router.get("/{debate_id}/results")
async def get_debate_results(
    debate_id: str,
    request: Request,
    debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
    vote_repo: VoteRepositoryProtocol = Depends(get_vote_repository),
) -> dict[str, Any]:
    debate = await _get_visible_debate(debate_id, debate_repo)
    results = VotingService(debate_repo, vote_repo).get_results(debate, force=has_author_access(request, debate))
    if results is None:
        raise AuthorizationError("Results are hidden until the debate ends")
    return {"results": results}


@router.get("/{debate_id}/export")
async def export_debate(
    debate: Annotated[DebateDocument, Depends(require_debate_author)],
    vote_repo: VoteRepositoryProtocol = Depends(get_vote_repository),
) -> Response:
    """CSV download of statistics, vote records and opinions. Author or admin only."""
    votes = await vote_repo.list_by_debate(debate.id)
    return csv_attachment(export_debate_csv(debate, votes), debate_filename(debate))
