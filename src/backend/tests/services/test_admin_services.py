"""
Tests for admin authentication, the dashboard, site statistics, user
activity, moderation and error logs.
"""

from datetime import timedelta

import pytest

from core.exceptions import AuthenticationError, ConflictError, NotFoundError, ValidationError
from core.security import ADMIN_TOKEN, create_admin_token, create_refresh_token, decode_token, hash_identifier
from models.cosmos_documents import (
    ErrorLogDocument,
    GuestbookDocument,
    QuestionDocument,
    ResponseDocument,
    SurveyStatus,
    utcnow,
)
from schemas.admin import ErrorLogCreate
from schemas.auth import AdminRegister
from schemas.survey import SurveyCreate
from services.admin_service import (
    DashboardService,
    ErrorLogService,
    ModerationService,
    StatsService,
    UserActivityService,
    trend,
)
from services.auth_service import INVALID_CREDENTIALS, AuthService, user_from_claims
from services.survey_service import SurveyService
from services.voting_service import VotingService

ALICE = hash_identifier("203.0.113.7")
BOB = hash_identifier("198.51.100.23")
CAROL = hash_identifier("192.0.2.44")


@pytest.mark.unit
class TestAuthService:
    async def test_environment_super_admin(self, repos) -> None:
        user = await AuthService(repos.admins).authenticate("admin", "super-secret-password")
        assert user.role == "super_admin"
        assert user.isAdmin is True

    async def test_stored_admin(self, repos) -> None:
        service = AuthService(repos.admins)
        admin = await service.register_admin(
            AdminRegister(username="moderator", email="Mod@Example.com", password="mod-password", role="admin")
        )
        assert admin.email == "mod@example.com"

        user = await service.authenticate("moderator", "mod-password")

        assert user.role == "admin"
        assert repos.admins.items[admin.id]["last_login"] is not None

    async def test_same_message_for_unknown_user_and_bad_password(self, repos) -> None:
        service = AuthService(repos.admins)
        await service.register_admin(
            AdminRegister(username="moderator", email="m@example.com", password="mod-password")
        )

        with pytest.raises(AuthenticationError) as unknown:
            await service.authenticate("nobody", "mod-password")
        with pytest.raises(AuthenticationError) as wrong:
            await service.authenticate("moderator", "not-it")
        assert unknown.value.message == wrong.value.message == INVALID_CREDENTIALS

    async def test_inactive_admin_rejected(self, repos) -> None:
        service = AuthService(repos.admins)
        admin = await service.register_admin(
            AdminRegister(username="retired", email="r@example.com", password="password1")
        )
        repos.admins.items[admin.id]["is_active"] = False
        with pytest.raises(AuthenticationError):
            await service.authenticate("retired", "password1")

    async def test_missing_credentials(self, repos) -> None:
        with pytest.raises(ValidationError):
            await AuthService(repos.admins).authenticate("", "")

    async def test_duplicate_registration(self, repos) -> None:
        service = AuthService(repos.admins)
        await service.register_admin(AdminRegister(username="moderator", email="m@example.com", password="password1"))
        with pytest.raises(ConflictError):
            await service.register_admin(AdminRegister(username="other", email="M@example.com", password="password1"))

    def test_refresh_issues_admin_token(self, repos) -> None:
        refresh = create_refresh_token({"username": "admin", "role": "super_admin"})
        token, user = AuthService(repos.admins).refresh(refresh)
        assert user.username == "admin"
        assert decode_token(token, expected_type=ADMIN_TOKEN)["role"] == "super_admin"

    def test_refresh_rejects_admin_token(self, repos) -> None:
        access = create_admin_token({"username": "admin", "role": "super_admin"})
        with pytest.raises(AuthenticationError):
            AuthService(repos.admins).refresh(access)

    def test_refresh_requires_token(self, repos) -> None:
        with pytest.raises(AuthenticationError):
            AuthService(repos.admins).refresh(None)

    @pytest.mark.parametrize(
        "claims",
        [{}, {"username": "x"}, {"username": "x", "role": "editor"}, {"role": "admin"}],
    )
    def test_user_from_claims_rejects_incomplete(self, claims) -> None:
        assert user_from_claims(claims) is None


@pytest.mark.unit
class TestDashboardService:
    async def test_counts(self, repos, make_debate) -> None:
        make_debate()
        make_debate(is_hidden=True)
        question = QuestionDocument(title="t", content="c", nickname="n", password_hash="x")
        repos.questions.items[question.id] = question.to_cosmos()

        service = DashboardService(
            repos.debates,
            repos.votes,
            repos.surveys,
            repos.responses,
            repos.questions,
            repos.comments,
            repos.requests,
            repos.guestbook,
            repos.error_logs,
        )
        dashboard = await service.get_dashboard()

        assert dashboard.debates == 2
        assert dashboard.questions == 1
        assert dashboard.pending_questions == 1
        assert dashboard.votes == 0
        assert dashboard.unresolved_errors == 0


@pytest.mark.unit
class TestModerationService:
    async def test_hides_debate(self, repos, make_debate) -> None:
        debate = make_debate()
        service = ModerationService(repos.debates, repos.surveys, repos.questions)

        assert await service.set_visibility(debate.id, hidden=True) == "debate"
        assert repos.debates.items[debate.id]["is_hidden"] is True

        await service.set_visibility(debate.id, hidden=False)
        assert repos.debates.items[debate.id]["is_hidden"] is False

    async def test_hides_question(self, repos) -> None:
        question = QuestionDocument(title="t", content="c", nickname="n", password_hash="x")
        repos.questions.items[question.id] = question.to_cosmos()

        kind = await ModerationService(repos.debates, repos.surveys, repos.questions).set_visibility(
            question.id, hidden=True
        )

        assert kind == "question"
        assert repos.questions.items[question.id]["is_hidden"] is True

    async def test_unknown_id(self, repos) -> None:
        with pytest.raises(NotFoundError):
            await ModerationService(repos.debates, repos.surveys, repos.questions).set_visibility("nope", True)


@pytest.mark.unit
class TestErrorLogService:
    async def test_client_report(self, repos) -> None:
        log = await ErrorLogService(repos.error_logs).report_client_error(
            ErrorLogCreate(message="TypeError: x is undefined", url="/debates/1", severity="low")
        )
        stored = await repos.error_logs.get_by_id(log.id)
        assert stored.error_code == "CLIENT_ERROR"
        assert stored.error_type == "client"
        assert stored.endpoint == "/debates/1"

    async def test_record_exception_keeps_traceback(self, repos) -> None:
        try:
            raise RuntimeError("boom")
        except RuntimeError as exc:
            log = await ErrorLogService(repos.error_logs).record_exception(exc, endpoint="/api/x", method="GET")

        assert log.error_code == "RuntimeError"
        assert "boom" in log.error_stack
        assert log.response_status == 500

    async def test_resolve_and_reopen(self, repos) -> None:
        log = ErrorLogDocument(error_code="E", error_message="m", created_at=utcnow())
        repos.error_logs.items[log.id] = log.to_cosmos()
        service = ErrorLogService(repos.error_logs)

        resolved = await service.set_resolved(log.id, True, resolved_by="admin", notes="fixed in 1.0.1")
        assert resolved.resolved_by == "admin"
        assert resolved.resolved_at is not None
        assert await repos.error_logs.count_unresolved() == 0

        reopened = await service.set_resolved(log.id, False, resolved_by="admin")
        assert reopened.resolved_at is None
        assert reopened.notes == "fixed in 1.0.1"

    async def test_delete_missing(self, repos) -> None:
        with pytest.raises(NotFoundError):
            await ErrorLogService(repos.error_logs).delete("missing")


@pytest.fixture
def stats_service(repos) -> StatsService:
    return StatsService(repos.debates, repos.votes, repos.surveys, repos.responses, repos.error_logs)


@pytest.fixture
async def activity(repos, make_debate, sample_survey_payload):
    """
    One active and one scheduled debate, one open and one closed survey.

    Alice voted and Carol answered a survey today; Bob voted forty days ago.
    """
    now = utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    debate = make_debate(start_offset=timedelta(days=-60))
    make_debate(start_offset=timedelta(days=1), end_offset=timedelta(days=2))

    voting = VotingService(repos.debates, repos.votes)
    debate = await voting.cast_vote(debate, ["opt0"], BOB, now=today - timedelta(days=40) + timedelta(hours=10))
    await voting.cast_vote(debate, ["opt1"], ALICE, now=today + timedelta(minutes=1))

    surveys = SurveyService(repos.surveys, repos.responses)
    survey, _ = await surveys.create_survey(SurveyCreate(**sample_survey_payload), ALICE)
    closed, _ = await surveys.create_survey(SurveyCreate(**sample_survey_payload), BOB)
    await surveys.update_status(closed, SurveyStatus.CLOSED)
    await repos.responses.create(
        ResponseDocument(
            survey_id=survey.id,
            response_code="ABCD1234",
            respondent_ip_hash=CAROL,
            submitted_at=today + timedelta(minutes=2),
        )
    )

    await repos.error_logs.create(ErrorLogDocument(error_code="E", error_message="m", created_at=now))
    return today


@pytest.mark.unit
class TestStatsService:
    @pytest.mark.parametrize(
        "current,previous,expected",
        [(2, 0, 200.0), (0, 0, 0.0), (3, 4, -25.0), (5, 3, 66.7)],
    )
    def test_trend(self, current, previous, expected) -> None:
        assert trend(current, previous) == expected

    async def test_summary(self, stats_service, activity) -> None:
        summary = await stats_service.get_summary()

        assert summary.total_debates == 2
        assert summary.active_debates == 1
        assert summary.total_surveys == 2
        assert summary.active_surveys == 1
        assert summary.total_users == 3
        assert summary.today_users == 2
        assert summary.monthly_active_users == 2
        assert summary.total_votes == 2
        assert summary.total_responses == 1
        assert summary.recent_errors == 1

    async def test_active_users(self, stats_service, activity) -> None:
        users = (await stats_service.get_detailed()).active_users

        assert len(users.dau) == 30
        assert len(users.wau) == 12
        assert len(users.mau) == 12
        assert users.current_dau == users.dau[0] == 2
        assert users.current_wau == 2
        assert users.current_mau == 2
        assert sum(users.wau) == sum(users.mau) == 3
        assert users.dau_trend == 200.0

    async def test_content_and_engagement(self, stats_service, activity) -> None:
        detailed = await stats_service.get_detailed()

        weekly = detailed.content_stats.weekly_content
        assert len(weekly) == 7
        assert weekly[-1].day == activity.date()
        assert detailed.content_stats.today_debates == 2
        assert detailed.content_stats.today_surveys == 2
        assert detailed.engagement_stats.avg_debate_participation == 2
        assert detailed.engagement_stats.total_votes == 2

    async def test_hourly_activity_counts_recent_events_only(self, stats_service, activity) -> None:
        hourly = (await stats_service.get_detailed()).engagement_stats.hourly_activity

        assert [entry.hour for entry in hourly] == list(range(24))
        assert hourly[0].activity == 2
        assert hourly[10].activity == 0

    async def test_empty_site(self, stats_service) -> None:
        detailed = await stats_service.get_detailed()
        assert detailed.active_users.dau_trend == 0.0
        assert detailed.engagement_stats.avg_survey_completion == 0


@pytest.mark.unit
class TestUserActivityService:
    @pytest.fixture
    def service(self, repos) -> UserActivityService:
        return UserActivityService(repos.debates, repos.surveys, repos.questions, repos.requests, repos.guestbook)

    @pytest.fixture
    async def authored(self, repos, make_debate, sample_survey_payload) -> None:
        make_debate(author_ip_hash=ALICE)
        make_debate()
        await SurveyService(repos.surveys, repos.responses).create_survey(SurveyCreate(**sample_survey_payload), ALICE)
        question = QuestionDocument(title="Where?", content="c", nickname="n", password_hash="x", ip_hash=BOB)
        await repos.questions.create(question)
        note = GuestbookDocument(
            content="Hello from the guestbook",
            position={"x": 10, "y": 20},
            author_ip_hash=BOB,
            created_at=utcnow() + timedelta(hours=1),
        )
        await repos.guestbook.create(note)

    async def test_grouped_by_fingerprint(self, service, authored) -> None:
        users = await service.list_users()

        assert [user.fingerprint for user in users] == [BOB, ALICE]
        bob, alice = users
        assert (alice.total_debates, alice.total_surveys, alice.total_questions) == (1, 1, 0)
        assert (bob.total_questions, bob.total_guestbook) == (1, 1)
        assert bob.first_seen < bob.last_activity

    async def test_user_detail(self, service, authored) -> None:
        detail = await service.get_user(BOB)

        assert detail.activity.total_guestbook == 1
        assert detail.contents.guestbook[0].title == "Hello from the guestbook"
        assert detail.contents.questions[0].status == "pending"
        assert detail.contents.debates == []

    async def test_unknown_user(self, service, authored) -> None:
        with pytest.raises(NotFoundError):
            await service.get_user(CAROL)


@pytest.mark.unit
class TestContentListing:
    @pytest.fixture
    async def contents(self, repos, make_debate, sample_survey_payload) -> None:
        make_debate(title="Budget for the picnic")
        make_debate(title="Hidden debate", is_hidden=True)
        await SurveyService(repos.surveys, repos.responses).create_survey(SurveyCreate(**sample_survey_payload), ALICE)
        await repos.questions.create(
            QuestionDocument(title="Budget question", content="c", nickname="n", password_hash="x")
        )

    async def test_all_kinds_including_hidden(self, repos, contents) -> None:
        items = await ModerationService(repos.debates, repos.surveys, repos.questions).list_contents()

        assert len(items) == 4
        assert {item.type for item in items} == {"debate", "survey", "question"}
        assert any(item.is_hidden for item in items)
        assert [item.created_at for item in items] == sorted((item.created_at for item in items), reverse=True)

    async def test_filter_by_kind(self, repos, contents) -> None:
        items = await ModerationService(repos.debates, repos.surveys, repos.questions).list_contents("debate")

        assert {item.type for item in items} == {"debate"}
        assert {item.status for item in items} == {"active"}

    async def test_search_by_title(self, repos, contents) -> None:
        items = await ModerationService(repos.debates, repos.surveys, repos.questions).list_contents(
            "all", search="budget"
        )
        assert sorted(item.title for item in items) == ["Budget for the picnic", "Budget question"]
