"""
Survey service: creation, author sessions, responses and result aggregation.
"""

from datetime import datetime
from typing import Optional

import structlog

from core.config import settings
from core.exceptions import (
    AuthenticationError,
    NotFoundError,
    ResponseClosedError,
    ValidationError,
)
from core.security import (
    SURVEY_AUTHOR_TOKEN,
    create_author_token,
    generate_document_id,
    generate_response_code,
    hash_password,
    hash_token,
    verify_password,
)
from models.cosmos_documents import (
    QuestionProperties,
    QuestionType,
    ResponseDocument,
    SurveyAnswer,
    SurveyChoice,
    SurveyDocument,
    SurveyQuestion,
    SurveySettings,
    SurveyStatus,
    to_json_datetime,
    utcnow,
)
from repositories.provider import ResponseRepositoryProtocol, SurveyRepositoryProtocol
from schemas.survey import AnswerInput, QuestionStat, SurveyCreate, SurveyResultsResponse

logger = structlog.get_logger(__name__)


class SurveyService:
    """Service for survey management and responses."""

    def __init__(self, survey_repo: SurveyRepositoryProtocol, response_repo: ResponseRepositoryProtocol):
        self.survey_repo = survey_repo
        self.response_repo = response_repo

    # ========================================================================
    # Authoring
    # ========================================================================

    async def get_survey(self, survey_id: str) -> SurveyDocument:
        survey = await self.survey_repo.get_by_id(survey_id)
        if survey is None:
            raise NotFoundError("Survey not found")
        return survey

    async def create_survey(
        self,
        payload: SurveyCreate,
        creator_fingerprint: str,
        now: Optional[datetime] = None,
    ) -> tuple[SurveyDocument, str]:
        if payload.status == SurveyStatus.CLOSED:
            raise ValidationError("A new survey cannot start closed")

        now = now or utcnow()
        survey_id = generate_document_id()
        base_url = settings.PUBLIC_BASE_URL.rstrip("/")

        questions = [
            SurveyQuestion(
                id=question.id or generate_document_id(),
                type=question.type,
                title=question.title.strip(),
                description=question.description,
                required=question.required,
                properties=QuestionProperties(
                    choices=[
                        SurveyChoice(id=choice.id or generate_document_id(), label=choice.label.strip())
                        for choice in question.properties.choices
                    ],
                    max_length=question.properties.max_length,
                    min_length=question.properties.min_length,
                    rating_scale=question.properties.rating_scale,
                ),
                order=index,
            )
            for index, question in enumerate(payload.questions)
        ]

        survey = SurveyDocument(
            id=survey_id,
            title=payload.title.strip(),
            description=payload.description,
            tags=[tag.strip() for tag in payload.tags if tag.strip()],
            author_nickname=(payload.author_nickname or "").strip() or "익명",
            creator_ip_hash=creator_fingerprint,
            admin_password_hash=hash_password(payload.admin_password),
            status=payload.status,
            public_results=payload.public_results,
            questions=questions,
            settings=SurveySettings(**payload.settings.model_dump()),
            public_url=f"{base_url}/surveys/{survey_id}",
            admin_url=f"{base_url}/surveys/{survey_id}/admin",
            created_at=now,
            updated_at=now,
        )

        token, expires_at = create_author_token(SURVEY_AUTHOR_TOKEN, survey_id)
        survey.author_token_hash = hash_token(token)
        survey.author_token_expires = expires_at

        await self.survey_repo.create(survey)
        logger.info("survey_created", survey_id=survey_id, questions=len(questions))
        return survey, token

    async def verify_author(self, survey: SurveyDocument, password: str) -> tuple[str, datetime]:
        """
        Check the survey password and open an author session.

        The token digest and expiry are stored on the survey; only the
        latest session stays valid.
        """
        if not password:
            raise ValidationError("Password is required")
        if not verify_password(password, survey.admin_password_hash):
            logger.warning("survey_author_verify_failed", survey_id=survey.id)
            raise AuthenticationError("Incorrect password")

        token, expires_at = create_author_token(SURVEY_AUTHOR_TOKEN, survey.id)
        await self.survey_repo.set_fields(
            survey.id,
            {
                "author_token_hash": hash_token(token),
                "author_token_expires": to_json_datetime(expires_at),
            },
        )
        return token, expires_at

    async def update_status(self, survey: SurveyDocument, status: SurveyStatus) -> SurveyDocument:
        if status == SurveyStatus.DRAFT and survey.first_response_at is not None:
            raise ValidationError("A survey with responses cannot go back to draft")
        updated = await self.survey_repo.set_fields(survey.id, {"status": SurveyStatus(status).value})
        if updated is None:
            raise NotFoundError("Survey not found")
        logger.info("survey_status_changed", survey_id=survey.id, status=SurveyStatus(status).value)
        return updated

    async def delete(self, survey: SurveyDocument) -> None:
        if not await self.survey_repo.soft_delete(survey.id):
            raise NotFoundError("Survey not found")
        logger.info("survey_deleted", survey_id=survey.id)

    # ========================================================================
    # Responses
    # ========================================================================

    async def has_responded(self, survey_id: str, fingerprint: str) -> bool:
        return await self.response_repo.exists(survey_id, fingerprint)

    def validate_answers(self, survey: SurveyDocument, answers: list[AnswerInput]) -> list[SurveyAnswer]:
        """Check every answer against its question; required questions must be answered."""
        validated: list[SurveyAnswer] = []
        answered: set[str] = set()

        for answer in answers:
            question = survey.get_question(answer.question_id)
            if question is None:
                raise ValidationError("Answer refers to an unknown question")
            if answer.question_id in answered:
                raise ValidationError("A question was answered more than once")
            if answer.question_type != question.type:
                raise ValidationError(f"Answer type does not match question '{question.title}'")

            choice_ids = {choice.id for choice in question.properties.choices}
            empty = False

            if question.type == QuestionType.SINGLE_CHOICE:
                if not answer.choice_id:
                    empty = True
                elif answer.choice_id not in choice_ids:
                    raise ValidationError(f"Invalid choice for question '{question.title}'")
            elif question.type == QuestionType.MULTIPLE_CHOICE:
                selected = answer.choice_ids or []
                if not selected:
                    empty = True
                elif not set(selected) <= choice_ids:
                    raise ValidationError(f"Invalid choice for question '{question.title}'")
                elif len(set(selected)) != len(selected):
                    raise ValidationError(f"A choice was selected more than once for '{question.title}'")
            elif question.type in (QuestionType.SHORT_TEXT, QuestionType.LONG_TEXT):
                text = (answer.text or "").strip()
                if not text:
                    empty = True
                else:
                    props = question.properties
                    if props.max_length and len(text) > props.max_length:
                        raise ValidationError(f"Answer to '{question.title}' is too long")
                    if props.min_length and len(text) < props.min_length:
                        raise ValidationError(f"Answer to '{question.title}' is too short")
            elif question.type == QuestionType.RATING:
                if answer.rating is None:
                    empty = True
                elif not 1 <= answer.rating <= question.properties.rating_scale:
                    raise ValidationError(f"Rating for '{question.title}' is out of range")

            if empty:
                if question.required:
                    raise ValidationError(f"Question '{question.title}' is required")
                continue

            answered.add(answer.question_id)
            validated.append(SurveyAnswer(**answer.model_dump()))

        missing = [q.title for q in survey.questions if q.required and q.id not in answered]
        if missing:
            raise ValidationError(f"Question '{missing[0]}' is required")
        return validated

    async def submit_response(
        self,
        survey: SurveyDocument,
        answers: list[AnswerInput],
        fingerprint: str,
        user_agent: Optional[str] = None,
        started_at: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> ResponseDocument:
        """
        Store one response per respondent fingerprint.

        Raises:
            ResponseClosedError: survey closed, full or past close_at, or the
                fingerprint already responded
            ValidationError: answers do not fit the questions
        """
        now = now or utcnow()
        if not survey.can_receive_response(now):
            raise ResponseClosedError()
        if await self.response_repo.exists(survey.id, fingerprint):
            raise ResponseClosedError("You have already responded to this survey")

        validated = self.validate_answers(survey, answers)

        completion_time = None
        if started_at is not None:
            if started_at.tzinfo is None:
                started_at = started_at.replace(tzinfo=now.tzinfo)
            completion_time = max(0, int((now - started_at).total_seconds()))

        response = ResponseDocument(
            survey_id=survey.id,
            response_code=generate_response_code(),
            respondent_ip_hash=fingerprint,
            user_agent=(user_agent or "")[:500] or None,
            answers=validated,
            started_at=started_at or now,
            submitted_at=now,
            completion_time=completion_time,
            is_complete=True,
        )
        await self.response_repo.create(response)

        response_count = survey.stats.response_count + 1
        completed = await self.response_repo.count_complete(survey.id)
        completion_rate = min(100, round(completed / response_count * 100))
        await self.survey_repo.record_response(
            survey.id,
            submitted_at=now,
            completion_rate=completion_rate,
            first_response=survey.first_response_at is None,
        )

        logger.info("survey_response_recorded", survey_id=survey.id, answers=len(validated))
        return response

    # ========================================================================
    # Results
    # ========================================================================

    async def build_results(self, survey: SurveyDocument, now: Optional[datetime] = None) -> SurveyResultsResponse:
        """Per-question aggregation: choice counts, collected texts, rating averages."""
        responses = await self.response_repo.list_by_survey(survey.id)
        stats: dict[str, QuestionStat] = {}

        for question in sorted(survey.questions, key=lambda q: q.order):
            stat = QuestionStat(question_id=question.id, type=question.type, title=question.title)
            answers = [
                answer
                for response in responses
                for answer in response.answers
                if answer.question_id == question.id
            ]
            stat.response_count = len(answers)

            if question.type in (QuestionType.SINGLE_CHOICE, QuestionType.MULTIPLE_CHOICE):
                stat.options = {choice.id: 0 for choice in question.properties.choices}
                for answer in answers:
                    selected = [answer.choice_id] if question.type == QuestionType.SINGLE_CHOICE else answer.choice_ids
                    for choice_id in selected or []:
                        if choice_id in stat.options:
                            stat.options[choice_id] += 1
            elif question.type in (QuestionType.SHORT_TEXT, QuestionType.LONG_TEXT):
                stat.responses = [answer.text for answer in answers if answer.text]
            elif question.type == QuestionType.RATING:
                ratings = [
                    answer.rating
                    for answer in answers
                    if answer.rating is not None and 1 <= answer.rating <= question.properties.rating_scale
                ]
                if ratings:
                    stat.average = round(sum(ratings) / len(ratings), 2)

            stats[question.id] = stat

        return SurveyResultsResponse(
            question_stats=stats,
            total_responses=len(responses),
            last_updated=now or utcnow(),
        )
