"""
Pytest fixtures for Selfquestion backend tests.

Routes are exercised against in-memory repositories installed through
``app.dependency_overrides``; no Cosmos account is needed.
"""

import asyncio
import copy
import os
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from types import SimpleNamespace
from typing import Any, Callable, Optional

import pytest
from httpx import ASGITransport, AsyncClient

# Set test environment variables before importing app
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("IP_SALT", "test-salt")
os.environ.setdefault("SUPER_ADMIN_USERNAME", "admin")
os.environ.setdefault("SUPER_ADMIN_PASSWORD", "super-secret-password")
# Cheap hashes keep the suite fast; production uses the default work factor
os.environ.setdefault("PASSWORD_HASH_METHOD", "pbkdf2:sha256:1000")

from core.exceptions import DuplicateVoteError  # noqa: E402
from models.cosmos_documents import (  # noqa: E402
    AdminDocument,
    CommentDocument,
    DebateDocument,
    ErrorLogDocument,
    GuestbookDocument,
    QuestionDocument,
    RequestDocument,
    ResponseDocument,
    SurveyDocument,
    VoteDocument,
    to_json_datetime,
    utcnow,
)

CLIENT_IP = "203.0.113.7"
OTHER_IP = "198.51.100.23"


# =============================================================================
# In-memory repositories
# =============================================================================


class _InMemory:
    """Documents are kept as JSON dicts, the way Cosmos stores them."""

    document_class: type = dict

    def __init__(self) -> None:
        self.items: dict[str, dict[str, Any]] = {}

    def _load(self, item: dict[str, Any]) -> Any:
        return self.document_class(**copy.deepcopy(item))

    def _all(self) -> list[Any]:
        return [self._load(item) for item in self.items.values()]

    def _put(self, document: Any) -> Any:
        self.items[document.id] = document.to_cosmos()
        return document

    def _set(self, document_id: str, fields: dict[str, Any], touch: bool = True) -> Optional[Any]:
        item = self.items.get(document_id)
        if item is None:
            return None
        item.update(copy.deepcopy(fields))
        if touch:
            item["updated_at"] = to_json_datetime(utcnow())
        return self._load(item)


class FakeDebateRepository(_InMemory):
    document_class = DebateDocument

    async def get_by_id(self, debate_id: str, include_deleted: bool = False) -> Optional[DebateDocument]:
        item = self.items.get(debate_id)
        if item is None:
            return None
        debate = self._load(item)
        if debate.is_deleted and not include_deleted:
            return None
        return debate

    async def list_debates(
        self,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        tags: Optional[list[str]] = None,
        sort: str = "recent",
        now: Optional[datetime] = None,
    ) -> tuple[list[DebateDocument], int]:
        debates = [d for d in self._all() if not d.is_deleted and not d.is_hidden]
        if status:
            debates = [d for d in debates if d.current_status(now) == status]
        if category:
            debates = [d for d in debates if d.category == category]
        if search:
            needle = search.lower()
            debates = [d for d in debates if needle in d.title.lower() or needle in d.description.lower()]
        if tags:
            debates = [d for d in debates if set(tags) & set(d.tags)]
        if sort == "popular":
            debates.sort(key=lambda d: d.stats.total_votes, reverse=True)
        elif sort == "ending":
            debates.sort(key=lambda d: d.end_at)
        else:
            debates.sort(key=lambda d: d.created_at, reverse=True)
        offset = (page - 1) * limit
        return debates[offset : offset + limit], len(debates)

    async def count(self, include_hidden: bool = True) -> int:
        return len([d for d in self._all() if not d.is_deleted and (include_hidden or not d.is_hidden)])

    async def list_all(self, search: Optional[str] = None) -> list[DebateDocument]:
        debates = [d for d in self._all() if not d.is_deleted]
        if search:
            debates = [d for d in debates if search.lower() in d.title.lower()]
        return sorted(debates, key=lambda d: d.created_at, reverse=True)

    async def create(self, debate: DebateDocument) -> DebateDocument:
        return self._put(debate)

    async def update(self, debate: DebateDocument) -> DebateDocument:
        debate.updated_at = utcnow()
        return self._put(debate)

    async def set_fields(self, debate_id: str, fields: dict[str, Any]) -> Optional[DebateDocument]:
        return self._set(debate_id, fields)

    async def soft_delete(self, debate_id: str) -> bool:
        return self._set(debate_id, {"is_deleted": True}) is not None

    async def set_hidden(self, debate_id: str, hidden: bool) -> Optional[DebateDocument]:
        return self._set(debate_id, {"is_hidden": hidden})

    async def increment_view_count(self, debate_id: str) -> Optional[DebateDocument]:
        item = self.items.get(debate_id)
        if item is None:
            return None
        item["stats"]["view_count"] += 1
        return self._load(item)

    async def record_vote(
        self, debate: DebateDocument, option_ids: list[str], voted_at: datetime
    ) -> Optional[DebateDocument]:
        item = self.items.get(debate.id)
        if item is None:
            return None
        item["stats"]["total_votes"] += len(option_ids)
        item["stats"]["unique_voters"] += 1
        item["stats"]["last_vote_at"] = to_json_datetime(voted_at)
        for option_id in option_ids:
            item["vote_options"][debate.option_index(option_id)]["vote_count"] += 1
        return self._load(item)

    async def add_opinion(self, debate_id: str, opinion: Any) -> Optional[DebateDocument]:
        item = self.items.get(debate_id)
        if item is None:
            return None
        item["opinions"].append(opinion.model_dump(mode="json"))
        item["stats"]["opinion_count"] += 1
        return self._load(item)


class FakeVoteRepository:
    """Keyed by (debate_id, voter_ip_hash), mirroring the container's unique key."""

    def __init__(self) -> None:
        self.votes: dict[tuple[str, str], dict[str, Any]] = {}

    async def get_by_fingerprint(self, debate_id: str, voter_ip_hash: str) -> Optional[VoteDocument]:
        item = self.votes.get((debate_id, voter_ip_hash))
        return VoteDocument(**item) if item else None

    async def count_by_fingerprint(self, debate_id: str, voter_ip_hash: str) -> int:
        found = 1 if (debate_id, voter_ip_hash) in self.votes else 0
        # Yield after reading so concurrent submissions see the same stale answer
        await asyncio.sleep(0)
        return found

    async def exists(self, debate_id: str, voter_ip_hash: str) -> bool:
        return (debate_id, voter_ip_hash) in self.votes

    async def count_by_debate(self, debate_id: str) -> int:
        return len([key for key in self.votes if key[0] == debate_id])

    async def list_by_debate(self, debate_id: str) -> list[VoteDocument]:
        votes = [VoteDocument(**item) for key, item in self.votes.items() if key[0] == debate_id]
        return sorted(votes, key=lambda v: v.created_at, reverse=True)

    async def list_since(self, since: datetime) -> list[VoteDocument]:
        votes = [VoteDocument(**item) for item in self.votes.values()]
        return [v for v in votes if v.created_at >= since]

    async def count(self) -> int:
        return len(self.votes)

    async def create(self, vote: VoteDocument) -> VoteDocument:
        key = (vote.debate_id, vote.voter_ip_hash)
        if key in self.votes:
            raise DuplicateVoteError()
        self.votes[key] = vote.to_cosmos()
        return vote


class FakeSurveyRepository(_InMemory):
    document_class = SurveyDocument

    async def get_by_id(self, survey_id: str, include_deleted: bool = False) -> Optional[SurveyDocument]:
        item = self.items.get(survey_id)
        if item is None:
            return None
        survey = self._load(item)
        if survey.is_deleted and not include_deleted:
            return None
        return survey

    async def list_surveys(
        self,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> tuple[list[SurveyDocument], int]:
        surveys = [s for s in self._all() if not s.is_deleted and not s.is_hidden]
        if status:
            surveys = [s for s in surveys if s.status == status]
        if search:
            surveys = [s for s in surveys if search.lower() in s.title.lower()]
        surveys.sort(key=lambda s: s.created_at, reverse=True)
        offset = (page - 1) * limit
        return surveys[offset : offset + limit], len(surveys)

    async def count(self) -> int:
        return len([s for s in self._all() if not s.is_deleted])

    async def list_all(self, search: Optional[str] = None) -> list[SurveyDocument]:
        surveys = [s for s in self._all() if not s.is_deleted]
        if search:
            surveys = [s for s in surveys if search.lower() in s.title.lower()]
        return sorted(surveys, key=lambda s: s.created_at, reverse=True)

    async def create(self, survey: SurveyDocument) -> SurveyDocument:
        return self._put(survey)

    async def update(self, survey: SurveyDocument) -> SurveyDocument:
        return self._put(survey)

    async def set_fields(self, survey_id: str, fields: dict[str, Any]) -> Optional[SurveyDocument]:
        return self._set(survey_id, fields)

    async def soft_delete(self, survey_id: str) -> bool:
        return self._set(survey_id, {"is_deleted": True}) is not None

    async def set_hidden(self, survey_id: str, hidden: bool) -> Optional[SurveyDocument]:
        return self._set(survey_id, {"is_hidden": hidden})

    async def increment_view_count(self, survey_id: str) -> Optional[SurveyDocument]:
        item = self.items.get(survey_id)
        if item is None:
            return None
        item["stats"]["view_count"] += 1
        return self._load(item)

    async def record_response(
        self, survey_id: str, submitted_at: datetime, completion_rate: int, first_response: bool
    ) -> Optional[SurveyDocument]:
        item = self.items.get(survey_id)
        if item is None:
            return None
        item["stats"]["response_count"] += 1
        item["stats"]["last_response_at"] = to_json_datetime(submitted_at)
        item["stats"]["completion_rate"] = completion_rate
        if first_response:
            item["first_response_at"] = to_json_datetime(submitted_at)
            item["is_editable"] = False
        return self._load(item)


class FakeResponseRepository(_InMemory):
    document_class = ResponseDocument

    async def exists(self, survey_id: str, respondent_ip_hash: str) -> bool:
        return any(
            r.survey_id == survey_id and r.respondent_ip_hash == respondent_ip_hash for r in self._all()
        )

    async def list_by_survey(self, survey_id: str) -> list[ResponseDocument]:
        return [r for r in self._all() if r.survey_id == survey_id]

    async def count_complete(self, survey_id: str) -> int:
        return len([r for r in self._all() if r.survey_id == survey_id and r.is_complete])

    async def list_since(self, since: datetime) -> list[ResponseDocument]:
        return [r for r in self._all() if r.submitted_at >= since]

    async def count(self) -> int:
        return len(self.items)

    async def create(self, response: ResponseDocument) -> ResponseDocument:
        return self._put(response)


class FakeQuestionRepository(_InMemory):
    document_class = QuestionDocument

    async def get_by_id(self, question_id: str) -> Optional[QuestionDocument]:
        item = self.items.get(question_id)
        if item is None or item["is_deleted"]:
            return None
        return self._load(item)

    async def list_questions(
        self,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> tuple[list[QuestionDocument], int]:
        questions = [q for q in self._all() if not q.is_deleted and not q.is_hidden]
        if status:
            questions = [q for q in questions if q.status == status]
        if category:
            questions = [q for q in questions if q.category == category]
        if search:
            questions = [q for q in questions if search.lower() in (q.title + q.content).lower()]
        questions.sort(key=lambda q: q.created_at, reverse=True)
        offset = (page - 1) * limit
        return questions[offset : offset + limit], len(questions)

    async def count(self, status: Optional[str] = None) -> int:
        return len([q for q in self._all() if not q.is_deleted and (status is None or q.status == status)])

    async def list_all(self, search: Optional[str] = None) -> list[QuestionDocument]:
        questions = [q for q in self._all() if not q.is_deleted]
        if search:
            questions = [q for q in questions if search.lower() in q.title.lower()]
        return sorted(questions, key=lambda q: q.created_at, reverse=True)

    async def create(self, question: QuestionDocument) -> QuestionDocument:
        return self._put(question)

    async def update(self, question: QuestionDocument) -> QuestionDocument:
        question.updated_at = utcnow()
        return self._put(question)

    async def increment_views(self, question_id: str) -> Optional[QuestionDocument]:
        item = self.items.get(question_id)
        if item is None:
            return None
        item["views"] += 1
        return self._load(item)


class FakeCommentRepository(_InMemory):
    document_class = CommentDocument

    async def get_by_id(self, comment_id: str) -> Optional[CommentDocument]:
        item = self.items.get(comment_id)
        if item is None or item["is_deleted"]:
            return None
        return self._load(item)

    async def list_by_content(self, content_type: str, content_id: str) -> list[CommentDocument]:
        comments = [
            c
            for c in self._all()
            if c.content_type == content_type and c.content_id == content_id and not c.is_deleted
        ]
        return sorted(comments, key=lambda c: c.created_at)

    async def count(self) -> int:
        return len([c for c in self._all() if not c.is_deleted])

    async def create(self, comment: CommentDocument) -> CommentDocument:
        return self._put(comment)

    async def update(self, comment: CommentDocument) -> CommentDocument:
        comment.updated_at = utcnow()
        return self._put(comment)


class FakeRequestRepository(_InMemory):
    document_class = RequestDocument

    async def get_by_id(self, request_id: str) -> Optional[RequestDocument]:
        item = self.items.get(request_id)
        if item is None or item["is_deleted"]:
            return None
        return self._load(item)

    async def list_public(self, page: int = 1, limit: int = 20) -> tuple[list[RequestDocument], int]:
        requests = [r for r in self._all() if not r.is_deleted and r.is_public]
        requests.sort(key=lambda r: r.created_at, reverse=True)
        offset = (page - 1) * limit
        return requests[offset : offset + limit], len(requests)

    async def count_since(self, author_ip_hash: str, since: datetime) -> int:
        return len([r for r in self._all() if r.author_ip_hash == author_ip_hash and r.created_at >= since])

    async def count(self) -> int:
        return len([r for r in self._all() if not r.is_deleted])

    async def list_all(self) -> list[RequestDocument]:
        return sorted((r for r in self._all() if not r.is_deleted), key=lambda r: r.created_at, reverse=True)

    async def create(self, request: RequestDocument) -> RequestDocument:
        return self._put(request)

    async def update(self, request: RequestDocument) -> RequestDocument:
        request.updated_at = utcnow()
        return self._put(request)

    async def increment_views(self, request_id: str) -> Optional[RequestDocument]:
        item = self.items.get(request_id)
        if item is None:
            return None
        item["views"] += 1
        return self._load(item)


class FakeGuestbookRepository(_InMemory):
    document_class = GuestbookDocument

    async def get_by_id(self, note_id: str) -> Optional[GuestbookDocument]:
        item = self.items.get(note_id)
        if item is None or item["is_deleted"]:
            return None
        return self._load(item)

    async def list_recent(self, limit: int = 100) -> tuple[list[GuestbookDocument], int]:
        notes = sorted((n for n in self._all() if not n.is_deleted), key=lambda n: n.created_at, reverse=True)
        return notes[:limit], len(notes)

    async def count(self) -> int:
        return len([n for n in self._all() if not n.is_deleted])

    async def list_all(self) -> list[GuestbookDocument]:
        return sorted((n for n in self._all() if not n.is_deleted), key=lambda n: n.created_at, reverse=True)

    async def count_since(self, author_ip_hash: str, since: datetime) -> int:
        return len([n for n in self._all() if n.author_ip_hash == author_ip_hash and n.created_at >= since])

    async def max_z_index(self) -> int:
        return max((n.z_index for n in self._all() if not n.is_deleted), default=0)

    async def create(self, note: GuestbookDocument) -> GuestbookDocument:
        return self._put(note)

    async def update_position(self, note_id: str, x: float, y: float, z_index: int) -> Optional[GuestbookDocument]:
        return self._set(note_id, {"position": {"x": x, "y": y}, "z_index": z_index}, touch=False)

    async def soft_delete(self, note_id: str) -> bool:
        return self._set(note_id, {"is_deleted": True}, touch=False) is not None


class FakeAdminRepository(_InMemory):
    document_class = AdminDocument

    async def get_by_username(self, username: str) -> Optional[AdminDocument]:
        return next((a for a in self._all() if a.username == username), None)

    async def exists(self, username: str, email: str) -> bool:
        email = email.strip().lower()
        return any(a.username == username or a.email == email for a in self._all())

    async def create(self, admin: AdminDocument) -> AdminDocument:
        return self._put(admin)

    async def touch_last_login(self, admin_id: str, when: datetime) -> None:
        self._set(admin_id, {"last_login": to_json_datetime(when)}, touch=False)


class FakeErrorLogRepository(_InMemory):
    document_class = ErrorLogDocument

    async def get_by_id(self, log_id: str) -> Optional[ErrorLogDocument]:
        item = self.items.get(log_id)
        return self._load(item) if item else None

    async def list_logs(
        self,
        page: int = 1,
        limit: int = 50,
        severity: Optional[str] = None,
        resolved: Optional[bool] = None,
        error_type: Optional[str] = None,
    ) -> tuple[list[ErrorLogDocument], int]:
        logs = self._all()
        if severity:
            logs = [log for log in logs if log.severity == severity]
        if resolved is not None:
            logs = [log for log in logs if log.resolved == resolved]
        if error_type:
            logs = [log for log in logs if log.error_type == error_type]
        logs.sort(key=lambda log: log.created_at, reverse=True)
        offset = (page - 1) * limit
        return logs[offset : offset + limit], len(logs)

    async def count_unresolved(self) -> int:
        return len([log for log in self._all() if not log.resolved])

    async def create(self, log: ErrorLogDocument) -> ErrorLogDocument:
        return self._put(log)

    async def update(self, log: ErrorLogDocument) -> ErrorLogDocument:
        return self._put(log)

    async def delete(self, log_id: str) -> bool:
        return self.items.pop(log_id, None) is not None


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


@pytest.fixture
def repos() -> SimpleNamespace:
    """One fresh set of in-memory repositories per test."""
    return SimpleNamespace(
        debates=FakeDebateRepository(),
        votes=FakeVoteRepository(),
        surveys=FakeSurveyRepository(),
        responses=FakeResponseRepository(),
        questions=FakeQuestionRepository(),
        comments=FakeCommentRepository(),
        requests=FakeRequestRepository(),
        guestbook=FakeGuestbookRepository(),
        admins=FakeAdminRepository(),
        error_logs=FakeErrorLogRepository(),
    )


@pytest.fixture
async def app(repos: SimpleNamespace) -> AsyncGenerator[Any, None]:
    """FastAPI application wired to the in-memory repositories."""
    from main import app as fastapi_app
    from repositories import provider

    fastapi_app.dependency_overrides.update(
        {
            provider.get_debate_repository: lambda: repos.debates,
            provider.get_vote_repository: lambda: repos.votes,
            provider.get_survey_repository: lambda: repos.surveys,
            provider.get_response_repository: lambda: repos.responses,
            provider.get_question_repository: lambda: repos.questions,
            provider.get_comment_repository: lambda: repos.comments,
            provider.get_request_repository: lambda: repos.requests,
            provider.get_guestbook_repository: lambda: repos.guestbook,
            provider.get_admin_repository: lambda: repos.admins,
            provider.get_error_log_repository: lambda: repos.error_logs,
        }
    )
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app: Any) -> AsyncGenerator[AsyncClient, None]:
    """Async test client; requests appear to come from CLIENT_IP."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-Forwarded-For": CLIENT_IP},
    ) as ac:
        yield ac


@pytest.fixture
def admin_headers() -> dict[str, str]:
    """Bearer header carrying a valid super admin token."""
    from core.security import create_admin_token

    token = create_admin_token({"username": "admin", "role": "super_admin", "isAdmin": True})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_debate(repos: SimpleNamespace) -> Callable[..., DebateDocument]:
    """Store a debate directly. Active for a day around now unless told otherwise."""
    from core.security import hash_password

    def _make(
        labels: tuple[str, ...] = ("Agree", "Disagree"),
        start_offset: timedelta = timedelta(hours=-1),
        end_offset: timedelta = timedelta(days=1),
        password: str = "debate-password",
        **overrides: Any,
    ) -> DebateDocument:
        now = utcnow()
        fields: dict[str, Any] = {
            "title": "Should tests run on every commit?",
            "description": "A debate used by the test suite",
            "admin_password_hash": hash_password(password),
            "vote_options": [
                {"id": f"opt{index}", "label": label, "order": index} for index, label in enumerate(labels)
            ],
            "start_at": now + start_offset,
            "end_at": now + end_offset,
        }
        fields.update(overrides)
        debate = DebateDocument(**fields)
        debate.status = debate.current_status(now)
        repos.debates.items[debate.id] = debate.to_cosmos()
        return debate

    return _make


@pytest.fixture
def sample_survey_payload() -> dict[str, Any]:
    """Create-survey body with one question of every kind."""
    return {
        "title": "Team lunch survey",
        "description": "Help us pick the next team lunch",
        "admin_password": "survey-password",
        "public_results": True,
        "questions": [
            {
                "id": "q_food",
                "type": "single_choice",
                "title": "Favourite food",
                "required": True,
                "properties": {"choices": [{"id": "c_pizza", "label": "Pizza"}, {"id": "c_sushi", "label": "Sushi"}]},
            },
            {
                "id": "q_days",
                "type": "multiple_choice",
                "title": "Which days work?",
                "properties": {
                    "choices": [
                        {"id": "c_mon", "label": "Monday"},
                        {"id": "c_tue", "label": "Tuesday"},
                        {"id": "c_wed", "label": "Wednesday"},
                    ]
                },
            },
            {
                "id": "q_notes",
                "type": "short_text",
                "title": "Anything else?",
                "properties": {"max_length": 20},
            },
            {
                "id": "q_rating",
                "type": "rating",
                "title": "How was the last lunch?",
                "required": True,
                "properties": {"rating_scale": 5},
            },
        ],
    }
