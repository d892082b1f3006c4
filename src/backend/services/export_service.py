"""
CSV exports of debate and survey results.

Files start with a UTF-8 byte order mark so spreadsheet tools pick up the
encoding of Korean labels. Fingerprints are cut to their first eight
characters; the raw IP is never stored, so it cannot be exported either.
"""

import csv
from io import StringIO
from typing import Optional

import structlog

from models.cosmos_documents import (
    DebateDocument,
    OpinionDocument,
    QuestionType,
    ResponseDocument,
    SurveyAnswer,
    SurveyDocument,
    SurveyQuestion,
    VoteDocument,
    utcnow,
)
from services.opinion_service import ANONYMOUS_NICKNAME
from services.voting_service import build_results

logger = structlog.get_logger(__name__)

BOM = "\ufeff"
FINGERPRINT_PREFIX = 8


def _fingerprint(value: Optional[str]) -> str:
    return (value or "")[:FINGERPRINT_PREFIX]


def _timestamp(value) -> str:
    return value.isoformat() if value else ""


def _finish(output: StringIO) -> str:
    return BOM + output.getvalue()


def debate_filename(debate: DebateDocument) -> str:
    return f"debate_{debate.id}_results_{utcnow().date().isoformat()}.csv"


def survey_filename(survey: SurveyDocument) -> str:
    return f"survey_{survey.id}_results.csv"


def export_debate_csv(
    debate: DebateDocument,
    votes: list[VoteDocument],
    opinions: Optional[list[OpinionDocument]] = None,
) -> str:
    """
    Export a debate as three blocks: statistics, vote records and opinions.

    Option counts come from the debate counters, the same numbers the
    results endpoint shows.
    """
    results = build_results(debate)
    labels = {option.id: option.label for option in debate.vote_options}
    if opinions is None:
        opinions = [opinion for opinion in debate.opinions if not opinion.is_deleted]

    output = StringIO()
    writer = csv.writer(output, lineterminator="\n")

    writer.writerow(["Title", debate.title])
    writer.writerow(["Created", _timestamp(debate.created_at)])
    writer.writerow(["Author", debate.author_nickname or ANONYMOUS_NICKNAME])
    writer.writerow([])

    writer.writerow(["Statistics"])
    writer.writerow(["Item", "Value"])
    writer.writerow(["Total votes", results.total_votes])
    writer.writerow(["Unique voters", results.unique_voters])
    for option in results.options:
        writer.writerow([option.label, option.vote_count, f"{option.percentage}%"])
    writer.writerow(["Total opinions", len(opinions)])
    writer.writerow([])

    writer.writerow(["Votes"])
    writer.writerow(["Vote ID", "Voted at", "Voter", "Fingerprint", "Choice"])
    for vote in sorted(votes, key=lambda v: v.created_at, reverse=True):
        voter = ANONYMOUS_NICKNAME if vote.is_anonymous or not vote.voter_name else vote.voter_name
        choice = "; ".join(labels.get(option_id, option_id) for option_id in vote.option_ids)
        writer.writerow([vote.id, _timestamp(vote.created_at), voter, _fingerprint(vote.voter_ip_hash), choice])
    writer.writerow([])

    writer.writerow(["Opinions"])
    writer.writerow(["Opinion ID", "Written at", "Author", "Fingerprint", "Choice", "Content"])
    for opinion in sorted(opinions, key=lambda o: o.created_at, reverse=True):
        writer.writerow(
            [
                opinion.id,
                _timestamp(opinion.created_at),
                opinion.author_nickname or ANONYMOUS_NICKNAME,
                _fingerprint(opinion.author_ip_hash),
                labels.get(opinion.selected_option_id, "") if opinion.selected_option_id else "",
                opinion.content,
            ]
        )

    logger.info("debate_exported", debate_id=debate.id, votes=len(votes), opinions=len(opinions))
    return _finish(output)


def format_answer(question: SurveyQuestion, answer: Optional[SurveyAnswer]) -> str:
    """Render one answer cell. Choice ids are replaced by their labels."""
    if answer is None:
        return ""
    labels = {choice.id: choice.label for choice in question.properties.choices}
    if question.type == QuestionType.SINGLE_CHOICE:
        return labels.get(answer.choice_id, answer.choice_id or "") if answer.choice_id else ""
    if question.type == QuestionType.MULTIPLE_CHOICE:
        return "; ".join(labels.get(choice_id, choice_id) for choice_id in answer.choice_ids or [])
    if question.type == QuestionType.RATING:
        return str(answer.rating) if answer.rating is not None else ""
    return answer.text or ""


def export_survey_csv(survey: SurveyDocument, responses: list[ResponseDocument]) -> str:
    """One row per response, oldest first, one column per question in display order."""
    questions = sorted(survey.questions, key=lambda q: q.order)

    output = StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(
        ["Response code", "Submitted at", "Fingerprint", "Completion time (s)"]
        + [question.title for question in questions]
    )

    for response in sorted(responses, key=lambda r: r.submitted_at):
        answers = {answer.question_id: answer for answer in response.answers}
        writer.writerow(
            [
                response.response_code,
                _timestamp(response.submitted_at),
                _fingerprint(response.respondent_ip_hash),
                response.completion_time if response.completion_time is not None else "",
            ]
            + [format_answer(question, answers.get(question.id)) for question in questions]
        )

    logger.info("survey_exported", survey_id=survey.id, responses=len(responses))
    return _finish(output)
