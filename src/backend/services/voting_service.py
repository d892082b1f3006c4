"""
Voting engine for debates.

Decides vote eligibility, records votes, keeps the aggregate counters in
step and projects results.

Duplicate prevention relies on the votes container's unique key over
(debate_id, voter_ip_hash). The existence check done here only gives a
friendlier early answer; two concurrent submissions from the same
fingerprint both pass it, and the second insert is what fails.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import structlog
from pydantic import BaseModel

from core.exceptions import DuplicateVoteError, InternalError, ValidationError, VotingClosedError
from models.cosmos_documents import DebateDocument, DebateStatus, VoteDocument, utcnow
from repositories.provider import DebateRepositoryProtocol, VoteRepositoryProtocol

logger = structlog.get_logger(__name__)

# The unique key allows exactly one vote record per fingerprint and debate,
# whatever a debate's max_votes_per_ip says.
VOTES_PER_FINGERPRINT = 1


class OptionResult(BaseModel):
    id: str
    label: str
    vote_count: int
    percentage: int


class DebateResults(BaseModel):
    options: list[OptionResult]
    total_votes: int
    unique_voters: int


def round_half_up(value: float) -> int:
    """Round .5 away from zero, the way people read percentages."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_results(debate: DebateDocument) -> DebateResults:
    """Results projection. Every percentage is 0 while nobody has voted."""
    counted = sum(option.vote_count for option in debate.vote_options)
    options = [
        OptionResult(
            id=option.id,
            label=option.label,
            vote_count=option.vote_count,
            percentage=round_half_up(option.vote_count / counted * 100) if counted else 0,
        )
        for option in sorted(debate.vote_options, key=lambda o: o.order)
    ]
    return DebateResults(
        options=options,
        total_votes=debate.stats.total_votes,
        unique_voters=debate.stats.unique_voters,
    )


class VotingService:
    """Service for casting votes and reading results."""

    def __init__(self, debate_repo: DebateRepositoryProtocol, vote_repo: VoteRepositoryProtocol):
        self.debate_repo = debate_repo
        self.vote_repo = vote_repo

    async def has_voted(self, debate_id: str, fingerprint: str) -> bool:
        return await self.vote_repo.exists(debate_id, fingerprint)

    async def can_vote(self, debate: DebateDocument, fingerprint: str, now: Optional[datetime] = None) -> bool:
        """
        Advisory eligibility check.

        True iff the debate is live (not deleted or hidden, inside its voting
        window) and the fingerprint has not used up its votes.
        """
        if debate.is_deleted or debate.is_hidden:
            return False
        if debate.current_status(now) != DebateStatus.ACTIVE:
            return False
        cast = await self.vote_repo.count_by_fingerprint(debate.id, fingerprint)
        return cast < min(debate.settings.max_votes_per_ip, VOTES_PER_FINGERPRINT)

    def validate_options(self, debate: DebateDocument, option_ids: list[str]) -> list[str]:
        if not option_ids:
            raise ValidationError("Select at least one option")
        if len(set(option_ids)) != len(option_ids):
            raise ValidationError("The same option was selected more than once")
        if len(option_ids) > 1 and not debate.settings.allow_multiple_choice:
            raise ValidationError("This debate allows only one option")
        unknown = [option_id for option_id in option_ids if debate.get_option(option_id) is None]
        if unknown:
            raise ValidationError("Invalid option selected")
        return option_ids

    async def cast_vote(
        self,
        debate: DebateDocument,
        option_ids: list[str],
        fingerprint: str,
        voter_name: Optional[str] = None,
        is_anonymous: bool = True,
        now: Optional[datetime] = None,
    ) -> DebateDocument:
        """
        Record a vote and update the debate counters.

        Raises:
            ValidationError: empty, unknown, repeated or too many options
            VotingClosedError: the debate is not accepting votes
            DuplicateVoteError: the fingerprint already voted
        """
        now = now or utcnow()
        if not option_ids:
            raise ValidationError("Select at least one option")

        if not await self.can_vote(debate, fingerprint, now):
            if debate.current_status(now) != DebateStatus.ACTIVE or debate.is_hidden or debate.is_deleted:
                raise VotingClosedError()
            raise DuplicateVoteError()

        self.validate_options(debate, option_ids)

        if not debate.settings.allow_anonymous_vote and not (voter_name or "").strip():
            raise ValidationError("A name is required to vote on this debate")

        vote = VoteDocument(
            debate_id=debate.id,
            voter_ip_hash=fingerprint,
            voter_name=voter_name.strip() if voter_name else None,
            option_ids=option_ids,
            is_anonymous=is_anonymous,
            created_at=now,
        )
        # Unique key violation surfaces here as DuplicateVoteError
        await self.vote_repo.create(vote)

        updated = await self.debate_repo.record_vote(debate, option_ids, now)
        if updated is None:
            logger.error("vote_counter_update_failed", debate_id=debate.id)
            raise InternalError("Vote was stored but the debate could not be updated")

        logger.info(
            "vote_cast",
            debate_id=debate.id,
            options=len(option_ids),
            voter=fingerprint[:8],
        )
        return updated

    def get_results(
        self,
        debate: DebateDocument,
        force: bool = False,
        now: Optional[datetime] = None,
    ) -> Optional[DebateResults]:
        """
        Results projection, or None when results are hidden until the end.

        ``force`` is for authors and admins, who always see results.
        """
        if not force and not debate.results_visible(now):
            return None
        return build_results(debate)
