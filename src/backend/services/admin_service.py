"""
Admin backoffice: dashboard counts, site statistics, user activity,
content moderation and error logs.
"""

import asyncio
import traceback
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog

from core.exceptions import NotFoundError
from models.cosmos_documents import (
    DebateStatus,
    ErrorLogDocument,
    ErrorSeverity,
    ErrorType,
    QuestionStatus,
    SurveyStatus,
    utcnow,
)
from repositories.provider import (
    CommentRepositoryProtocol,
    DebateRepositoryProtocol,
    ErrorLogRepositoryProtocol,
    GuestbookRepositoryProtocol,
    QuestionRepositoryProtocol,
    RequestRepositoryProtocol,
    ResponseRepositoryProtocol,
    SurveyRepositoryProtocol,
    VoteRepositoryProtocol,
)
from schemas.admin import (
    ActiveUserStats,
    AdminContentItem,
    ContentStats,
    DailyContent,
    DashboardResponse,
    DetailedStatsResponse,
    EngagementStats,
    ErrorLogCreate,
    HourlyActivity,
    SiteStatsResponse,
    UserActivitySummary,
    UserContentItem,
    UserContents,
    UserDetailResponse,
)

logger = structlog.get_logger(__name__)


class DashboardService:
    """Aggregates counts across every content container."""

    def __init__(
        self,
        debate_repo: DebateRepositoryProtocol,
        vote_repo: VoteRepositoryProtocol,
        survey_repo: SurveyRepositoryProtocol,
        response_repo: ResponseRepositoryProtocol,
        question_repo: QuestionRepositoryProtocol,
        comment_repo: CommentRepositoryProtocol,
        request_repo: RequestRepositoryProtocol,
        guestbook_repo: GuestbookRepositoryProtocol,
        error_log_repo: ErrorLogRepositoryProtocol,
    ):
        self.debate_repo = debate_repo
        self.vote_repo = vote_repo
        self.survey_repo = survey_repo
        self.response_repo = response_repo
        self.question_repo = question_repo
        self.comment_repo = comment_repo
        self.request_repo = request_repo
        self.guestbook_repo = guestbook_repo
        self.error_log_repo = error_log_repo

    async def get_dashboard(self) -> DashboardResponse:
        (
            debates,
            votes,
            surveys,
            responses,
            questions,
            pending_questions,
            comments,
            requests,
            notes,
            unresolved,
        ) = await asyncio.gather(
            self.debate_repo.count(),
            self.vote_repo.count(),
            self.survey_repo.count(),
            self.response_repo.count(),
            self.question_repo.count(),
            self.question_repo.count(status=QuestionStatus.PENDING.value),
            self.comment_repo.count(),
            self.request_repo.count(),
            self.guestbook_repo.count(),
            self.error_log_repo.count_unresolved(),
        )
        return DashboardResponse(
            debates=debates,
            votes=votes,
            surveys=surveys,
            responses=responses,
            questions=questions,
            pending_questions=pending_questions,
            comments=comments,
            requests=requests,
            guestbook_notes=notes,
            unresolved_errors=unresolved,
            generated_at=utcnow(),
        )


class ModerationService:
    """Hide or show any piece of public content by id."""

    def __init__(
        self,
        debate_repo: DebateRepositoryProtocol,
        survey_repo: SurveyRepositoryProtocol,
        question_repo: QuestionRepositoryProtocol,
    ):
        self.debate_repo = debate_repo
        self.survey_repo = survey_repo
        self.question_repo = question_repo

    async def set_visibility(self, content_id: str, hidden: bool) -> str:
        """
        Apply the flag to whichever content kind owns the id.

        Returns the content kind ("debate", "survey" or "question").
        """
        if await self.debate_repo.get_by_id(content_id) is not None:
            await self.debate_repo.set_hidden(content_id, hidden)
            kind = "debate"
        elif await self.survey_repo.get_by_id(content_id) is not None:
            await self.survey_repo.set_hidden(content_id, hidden)
            kind = "survey"
        else:
            question = await self.question_repo.get_by_id(content_id)
            if question is None:
                raise NotFoundError("Content not found")
            question.is_hidden = hidden
            await self.question_repo.update(question)
            kind = "question"

        logger.info("content_visibility_changed", content_id=content_id, kind=kind, hidden=hidden)
        return kind

    async def list_contents(
        self,
        content_filter: str = "all",
        search: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> list[AdminContentItem]:
        """Debates, surveys and questions in one list, hidden ones included, newest first."""
        now = now or utcnow()
        contents: list[AdminContentItem] = []

        if content_filter in ("all", "debate"):
            contents.extend(
                AdminContentItem(
                    id=debate.id,
                    title=debate.title,
                    type="debate",
                    status=debate.current_status(now).value,
                    created_at=debate.created_at,
                    start_at=debate.start_at,
                    end_at=debate.end_at,
                    author_nickname=debate.author_nickname,
                    author_fingerprint=debate.author_ip_hash,
                    participant_count=debate.stats.unique_voters,
                    is_hidden=debate.is_hidden,
                )
                for debate in await self.debate_repo.list_all(search)
            )

        if content_filter in ("all", "survey"):
            contents.extend(
                AdminContentItem(
                    id=survey.id,
                    title=survey.title,
                    type="survey",
                    status=survey.status,
                    created_at=survey.created_at,
                    author_nickname=survey.author_nickname,
                    author_fingerprint=survey.creator_ip_hash,
                    participant_count=survey.stats.response_count,
                    is_hidden=survey.is_hidden,
                )
                for survey in await self.survey_repo.list_all(search)
            )

        if content_filter in ("all", "question"):
            contents.extend(
                AdminContentItem(
                    id=question.id,
                    title=question.title,
                    type="question",
                    status=question.status,
                    created_at=question.created_at,
                    author_nickname=question.nickname,
                    author_fingerprint=question.ip_hash,
                    is_hidden=question.is_hidden,
                )
                for question in await self.question_repo.list_all(search)
            )

        contents.sort(key=lambda item: item.created_at, reverse=True)
        return contents


class ErrorLogService:
    def __init__(self, error_log_repo: ErrorLogRepositoryProtocol):
        self.error_log_repo = error_log_repo

    async def report_client_error(self, payload: ErrorLogCreate) -> ErrorLogDocument:
        log = ErrorLogDocument(
            error_code="CLIENT_ERROR",
            error_message=payload.message,
            error_stack=payload.stack,
            error_type=ErrorType.CLIENT,
            severity=payload.severity,
            endpoint=payload.url,
            user_agent=payload.user_agent,
            metadata=payload.metadata,
        )
        await self.error_log_repo.create(log)
        return log

    async def record_exception(
        self,
        exc: BaseException,
        endpoint: Optional[str] = None,
        method: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> ErrorLogDocument:
        """Persist an unhandled server exception."""
        log = ErrorLogDocument(
            error_code=type(exc).__name__,
            error_message=str(exc) or type(exc).__name__,
            error_stack="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            error_type=ErrorType.SYSTEM,
            severity=ErrorSeverity.HIGH,
            endpoint=endpoint,
            method=method,
            user_agent=user_agent,
            response_status=500,
        )
        await self.error_log_repo.create(log)
        return log

    async def list_logs(
        self,
        page: int,
        limit: int,
        severity: Optional[str] = None,
        resolved: Optional[bool] = None,
        error_type: Optional[str] = None,
    ) -> tuple[list[ErrorLogDocument], int]:
        return await self.error_log_repo.list_logs(
            page=page, limit=limit, severity=severity, resolved=resolved, error_type=error_type
        )

    async def set_resolved(
        self,
        log_id: str,
        resolved: bool,
        resolved_by: str,
        notes: Optional[str] = None,
    ) -> ErrorLogDocument:
        log = await self.error_log_repo.get_by_id(log_id)
        if log is None:
            raise NotFoundError("Error log not found")
        log.resolved = resolved
        log.resolved_at = utcnow() if resolved else None
        log.resolved_by = resolved_by if resolved else None
        if notes is not None:
            log.notes = notes
        return await self.error_log_repo.update(log)

    async def delete(self, log_id: str) -> None:
        if not await self.error_log_repo.delete(log_id):
            raise NotFoundError("Error log not found")


# =============================================================================
# Site statistics
# =============================================================================

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
DAU_DAYS = 30
WAU_WEEKS = 12
MAU_MONTHS = 12
HOURLY_WINDOW_DAYS = 30


def _day_start(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _month_start(moment: datetime, months_back: int = 0) -> datetime:
    index = moment.year * 12 + (moment.month - 1) - months_back
    return datetime(index // 12, index % 12 + 1, 1, tzinfo=timezone.utc)


def trend(current: int, previous: int) -> float:
    """Percent change against the previous period, which divides by one when empty."""
    return round((current - previous) / (previous or 1) * 100, 1)


def _distinct(events: list[tuple[str, datetime]], start: datetime, end: datetime) -> int:
    return len({fingerprint for fingerprint, at in events if start <= at < end})


class StatsService:
    """
    Summary and detailed site statistics.

    A "user" is a distinct fingerprint that voted on a debate or answered a
    survey. Periods are UTC calendar days and months.
    """

    def __init__(
        self,
        debate_repo: DebateRepositoryProtocol,
        vote_repo: VoteRepositoryProtocol,
        survey_repo: SurveyRepositoryProtocol,
        response_repo: ResponseRepositoryProtocol,
        error_log_repo: ErrorLogRepositoryProtocol,
    ):
        self.debate_repo = debate_repo
        self.vote_repo = vote_repo
        self.survey_repo = survey_repo
        self.response_repo = response_repo
        self.error_log_repo = error_log_repo

    async def _participation(self, since: datetime) -> list[tuple[str, datetime]]:
        votes, responses = await asyncio.gather(
            self.vote_repo.list_since(since),
            self.response_repo.list_since(since),
        )
        return [(vote.voter_ip_hash, vote.created_at) for vote in votes] + [
            (response.respondent_ip_hash, response.submitted_at) for response in responses
        ]

    async def get_summary(self, now: Optional[datetime] = None) -> SiteStatsResponse:
        now = now or utcnow()
        debates, surveys, events, total_votes, total_responses, unresolved = await asyncio.gather(
            self.debate_repo.list_all(),
            self.survey_repo.list_all(),
            self._participation(EPOCH),
            self.vote_repo.count(),
            self.response_repo.count(),
            self.error_log_repo.count_unresolved(),
        )
        return SiteStatsResponse(
            total_debates=len(debates),
            active_debates=len([d for d in debates if d.current_status(now) == DebateStatus.ACTIVE]),
            total_surveys=len(surveys),
            active_surveys=len([s for s in surveys if s.status == SurveyStatus.OPEN]),
            total_users=len({fingerprint for fingerprint, _ in events}),
            today_users=_distinct(events, _day_start(now), _day_start(now) + timedelta(days=1)),
            monthly_active_users=_distinct(events, _month_start(now), _month_start(now, -1)),
            recent_errors=unresolved,
            total_votes=total_votes,
            total_responses=total_responses,
            last_updated=now,
        )

    async def get_detailed(self, now: Optional[datetime] = None) -> DetailedStatsResponse:
        now = now or utcnow()
        today = _day_start(now)
        tomorrow = today + timedelta(days=1)
        since = min(_month_start(now, MAU_MONTHS - 1), tomorrow - timedelta(weeks=WAU_WEEKS))

        debates, surveys, events, total_votes, total_responses = await asyncio.gather(
            self.debate_repo.list_all(),
            self.survey_repo.list_all(),
            self._participation(since),
            self.vote_repo.count(),
            self.response_repo.count(),
        )

        dau = [
            _distinct(events, today - timedelta(days=i), today - timedelta(days=i - 1)) for i in range(DAU_DAYS)
        ]
        wau = [
            _distinct(events, tomorrow - timedelta(weeks=i + 1), tomorrow - timedelta(weeks=i))
            for i in range(WAU_WEEKS)
        ]
        mau = [
            _distinct(events, _month_start(now, i), _month_start(now, i - 1)) for i in range(MAU_MONTHS)
        ]

        weekly_content = []
        for offset in range(6, -1, -1):
            start = today - timedelta(days=offset)
            end = start + timedelta(days=1)
            weekly_content.append(
                DailyContent(
                    day=start.date(),
                    debates=len([d for d in debates if start <= d.created_at < end]),
                    surveys=len([s for s in surveys if start <= s.created_at < end]),
                )
            )

        voted = [d.stats.total_votes for d in debates if d.stats.total_votes > 0]
        answered = [s.stats.completion_rate for s in surveys if s.stats.response_count > 0]

        hourly_since = now - timedelta(days=HOURLY_WINDOW_DAYS)
        hours = Counter(at.hour for _, at in events if at >= hourly_since)

        return DetailedStatsResponse(
            active_users=ActiveUserStats(
                dau=dau,
                wau=wau,
                mau=mau,
                current_dau=dau[0],
                current_wau=wau[0],
                current_mau=mau[0],
                dau_trend=trend(dau[0], dau[1]),
                wau_trend=trend(wau[0], wau[1]),
                mau_trend=trend(mau[0], mau[1]),
            ),
            content_stats=ContentStats(
                total_debates=len(debates),
                total_surveys=len(surveys),
                active_debates=len([d for d in debates if d.current_status(now) == DebateStatus.ACTIVE]),
                active_surveys=len([s for s in surveys if s.status == SurveyStatus.OPEN]),
                today_debates=weekly_content[-1].debates,
                today_surveys=weekly_content[-1].surveys,
                weekly_content=weekly_content,
            ),
            engagement_stats=EngagementStats(
                avg_debate_participation=round(sum(voted) / len(voted)) if voted else 0,
                avg_survey_completion=round(sum(answered) / len(answered)) if answered else 0,
                total_votes=total_votes,
                total_responses=total_responses,
                hourly_activity=[HourlyActivity(hour=hour, activity=hours.get(hour, 0)) for hour in range(24)],
            ),
            generated_at=now,
        )


# =============================================================================
# Users
# =============================================================================


class UserActivityService:
    """Authored content grouped by the author's fingerprint."""

    KINDS = ("debates", "surveys", "questions", "requests", "guestbook")

    def __init__(
        self,
        debate_repo: DebateRepositoryProtocol,
        survey_repo: SurveyRepositoryProtocol,
        question_repo: QuestionRepositoryProtocol,
        request_repo: RequestRepositoryProtocol,
        guestbook_repo: GuestbookRepositoryProtocol,
    ):
        self.debate_repo = debate_repo
        self.survey_repo = survey_repo
        self.question_repo = question_repo
        self.request_repo = request_repo
        self.guestbook_repo = guestbook_repo

    async def _authored(self) -> dict[str, list[tuple[Optional[str], UserContentItem]]]:
        debates, surveys, questions, requests, notes = await asyncio.gather(
            self.debate_repo.list_all(),
            self.survey_repo.list_all(),
            self.question_repo.list_all(),
            self.request_repo.list_all(),
            self.guestbook_repo.list_all(),
        )
        return {
            "debates": [
                (
                    d.author_ip_hash,
                    UserContentItem(
                        id=d.id, title=d.title, created_at=d.created_at, status=d.current_status().value
                    ),
                )
                for d in debates
            ],
            "surveys": [
                (
                    s.creator_ip_hash,
                    UserContentItem(id=s.id, title=s.title, created_at=s.created_at, status=s.status),
                )
                for s in surveys
            ],
            "questions": [
                (q.ip_hash, UserContentItem(id=q.id, title=q.title, created_at=q.created_at, status=q.status))
                for q in questions
            ],
            "requests": [
                (r.author_ip_hash, UserContentItem(id=r.id, title=r.title, created_at=r.created_at))
                for r in requests
            ],
            "guestbook": [
                (n.author_ip_hash, UserContentItem(id=n.id, title=n.content[:50], created_at=n.created_at))
                for n in notes
            ],
        }

    @staticmethod
    def _summary(fingerprint: str, contents: UserContents) -> UserActivitySummary:
        moments = [item.created_at for kind in UserActivityService.KINDS for item in getattr(contents, kind)]
        return UserActivitySummary(
            fingerprint=fingerprint,
            total_debates=len(contents.debates),
            total_surveys=len(contents.surveys),
            total_questions=len(contents.questions),
            total_requests=len(contents.requests),
            total_guestbook=len(contents.guestbook),
            first_seen=min(moments),
            last_activity=max(moments),
        )

    async def _grouped(self) -> dict[str, UserContents]:
        grouped: dict[str, UserContents] = defaultdict(UserContents)
        for kind, items in (await self._authored()).items():
            for fingerprint, item in items:
                if fingerprint:
                    getattr(grouped[fingerprint], kind).append(item)
        return grouped

    async def list_users(self) -> list[UserActivitySummary]:
        """One entry per fingerprint, most recently active first."""
        grouped = await self._grouped()
        users = [self._summary(fingerprint, contents) for fingerprint, contents in grouped.items()]
        return sorted(users, key=lambda user: user.last_activity, reverse=True)

    async def get_user(self, fingerprint: str) -> UserDetailResponse:
        """
        Raises:
            NotFoundError: the fingerprint authored nothing
        """
        contents = (await self._grouped()).get(fingerprint)
        if contents is None:
            raise NotFoundError("No activity for this user")
        return UserDetailResponse(
            fingerprint=fingerprint,
            activity=self._summary(fingerprint, contents),
            contents=contents,
        )
