"""
Tests for the debate voting engine.

Covers eligibility, duplicate prevention (including two concurrent
submissions from the same client), counter updates and result projection.
"""

import asyncio
from datetime import timedelta

import pytest

from core.exceptions import DuplicateVoteError, ValidationError, VotingClosedError
from core.security import hash_identifier
from models.cosmos_documents import DebateSettings
from services.voting_service import VotingService, build_results, round_half_up

ALICE = hash_identifier("203.0.113.7")
BOB = hash_identifier("198.51.100.23")


@pytest.fixture
def service(repos) -> VotingService:
    return VotingService(repos.debates, repos.votes)


@pytest.mark.unit
class TestRoundHalfUp:
    @pytest.mark.parametrize(
        "value,expected",
        [(0, 0), (33.333, 33), (66.666, 67), (12.5, 13), (87.5, 88), (100, 100)],
    )
    def test_rounding(self, value, expected) -> None:
        assert round_half_up(value) == expected


@pytest.mark.unit
class TestBuildResults:
    def test_zero_votes_gives_zero_percentages(self, make_debate) -> None:
        debate = make_debate()
        results = build_results(debate)
        assert [option.percentage for option in results.options] == [0, 0]
        assert results.total_votes == 0

    def test_percentages_of_three_options(self, make_debate) -> None:
        debate = make_debate(labels=("A", "B", "C"))
        for option, count in zip(debate.vote_options, (1, 1, 1)):
            option.vote_count = count
        results = build_results(debate)
        assert [option.percentage for option in results.options] == [33, 33, 33]

    def test_percentages_round_half_up(self, make_debate) -> None:
        debate = make_debate(labels=("A", "B"))
        debate.vote_options[0].vote_count = 1
        debate.vote_options[1].vote_count = 7
        results = build_results(debate)
        assert [option.percentage for option in results.options] == [13, 88]

    def test_options_follow_display_order(self, make_debate) -> None:
        debate = make_debate(labels=("First", "Second"))
        debate.vote_options.reverse()
        results = build_results(debate)
        assert [option.label for option in results.options] == ["First", "Second"]


@pytest.mark.unit
class TestCanVote:
    async def test_active_debate_fresh_client(self, service, make_debate) -> None:
        assert await service.can_vote(make_debate(), ALICE) is True

    async def test_scheduled_debate(self, service, make_debate) -> None:
        debate = make_debate(start_offset=timedelta(hours=1), end_offset=timedelta(days=1))
        assert await service.can_vote(debate, ALICE) is False

    async def test_ended_debate(self, service, make_debate) -> None:
        debate = make_debate(start_offset=timedelta(days=-2), end_offset=timedelta(days=-1))
        assert await service.can_vote(debate, ALICE) is False

    async def test_hidden_debate(self, service, make_debate) -> None:
        assert await service.can_vote(make_debate(is_hidden=True), ALICE) is False

    async def test_window_bounds_are_inclusive(self, service, make_debate) -> None:
        debate = make_debate()
        assert await service.can_vote(debate, ALICE, now=debate.start_at) is True
        assert await service.can_vote(debate, ALICE, now=debate.end_at) is True
        assert await service.can_vote(debate, ALICE, now=debate.end_at + timedelta(seconds=1)) is False

    async def test_max_votes_setting_does_not_allow_second_vote(self, service, make_debate) -> None:
        debate = make_debate(settings=DebateSettings(max_votes_per_ip=3))
        await service.cast_vote(debate, [debate.vote_options[0].id], ALICE)
        assert await service.can_vote(debate, ALICE) is False


@pytest.mark.unit
class TestCastVote:
    async def test_vote_updates_counters(self, service, repos, make_debate) -> None:
        debate = make_debate()
        option_id = debate.vote_options[1].id

        updated = await service.cast_vote(debate, [option_id], ALICE)

        assert updated.stats.total_votes == 1
        assert updated.stats.unique_voters == 1
        assert updated.stats.last_vote_at is not None
        assert updated.get_option(option_id).vote_count == 1
        assert await repos.votes.exists(debate.id, ALICE)

    async def test_second_vote_rejected(self, service, make_debate) -> None:
        debate = make_debate()
        await service.cast_vote(debate, [debate.vote_options[0].id], ALICE)
        with pytest.raises(DuplicateVoteError):
            await service.cast_vote(debate, [debate.vote_options[1].id], ALICE)

    async def test_other_client_can_vote(self, service, make_debate) -> None:
        debate = make_debate()
        await service.cast_vote(debate, [debate.vote_options[0].id], ALICE)
        updated = await service.cast_vote(debate, [debate.vote_options[0].id], BOB)
        assert updated.stats.unique_voters == 2
        assert updated.vote_options[0].vote_count == 2

    async def test_two_clients_split_evenly(self, service, make_debate) -> None:
        debate = make_debate()
        first, second = (option.id for option in debate.vote_options)

        debate = await service.cast_vote(debate, [first], ALICE)
        with pytest.raises(DuplicateVoteError):
            await service.cast_vote(debate, [first], ALICE)
        debate = await service.cast_vote(debate, [second], BOB)
        results = service.get_results(debate)

        assert results.total_votes == 2
        assert [option.vote_count for option in results.options] == [1, 1]
        assert [option.percentage for option in results.options] == [50, 50]

    async def test_concurrent_duplicates_count_once(self, service, repos, make_debate) -> None:
        """Both submissions pass the early check; the unique key stops the second."""
        debate = make_debate()
        option_id = debate.vote_options[0].id

        results = await asyncio.gather(
            service.cast_vote(debate, [option_id], ALICE),
            service.cast_vote(debate, [option_id], ALICE),
            return_exceptions=True,
        )

        failures = [result for result in results if isinstance(result, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], DuplicateVoteError)

        stored = await repos.debates.get_by_id(debate.id)
        assert stored.stats.total_votes == 1
        assert stored.stats.unique_voters == 1
        assert stored.vote_options[0].vote_count == 1

    async def test_closed_debate_rejected(self, service, make_debate) -> None:
        debate = make_debate(start_offset=timedelta(days=-2), end_offset=timedelta(days=-1))
        with pytest.raises(VotingClosedError):
            await service.cast_vote(debate, [debate.vote_options[0].id], ALICE)

    async def test_empty_selection_rejected(self, service, make_debate) -> None:
        with pytest.raises(ValidationError):
            await service.cast_vote(make_debate(), [], ALICE)

    async def test_unknown_option_rejected(self, service, repos, make_debate) -> None:
        debate = make_debate()
        with pytest.raises(ValidationError):
            await service.cast_vote(debate, ["nope"], ALICE)
        assert not await repos.votes.exists(debate.id, ALICE)

    async def test_multiple_options_need_setting(self, service, repos, make_debate) -> None:
        debate = make_debate(labels=("A", "B", "C"))
        with pytest.raises(ValidationError):
            await service.cast_vote(debate, [debate.vote_options[0].id, debate.vote_options[1].id], ALICE)

        stored = await repos.debates.get_by_id(debate.id)
        assert not await repos.votes.exists(debate.id, ALICE)
        assert stored.stats.total_votes == 0
        assert stored.stats.unique_voters == 0
        assert [option.vote_count for option in stored.vote_options] == [0, 0, 0]
        assert await service.can_vote(stored, ALICE) is True

    async def test_multiple_choice_counts_each_option(self, service, make_debate) -> None:
        debate = make_debate(labels=("A", "B", "C"), settings=DebateSettings(allow_multiple_choice=True))
        chosen = [debate.vote_options[0].id, debate.vote_options[2].id]

        updated = await service.cast_vote(debate, chosen, ALICE)

        assert updated.stats.total_votes == 2
        assert updated.stats.unique_voters == 1
        assert [option.vote_count for option in updated.vote_options] == [1, 0, 1]

    async def test_repeated_option_rejected(self, service, make_debate) -> None:
        debate = make_debate(settings=DebateSettings(allow_multiple_choice=True))
        option_id = debate.vote_options[0].id
        with pytest.raises(ValidationError):
            await service.cast_vote(debate, [option_id, option_id], ALICE)

    async def test_named_vote_required_when_anonymous_disabled(self, service, make_debate) -> None:
        debate = make_debate(settings=DebateSettings(allow_anonymous_vote=False))
        with pytest.raises(ValidationError):
            await service.cast_vote(debate, [debate.vote_options[0].id], ALICE, voter_name="  ")
        updated = await service.cast_vote(debate, [debate.vote_options[0].id], ALICE, voter_name="Kim")
        assert updated.stats.total_votes == 1


@pytest.mark.unit
class TestGetResults:
    def test_hidden_until_end(self, service, make_debate) -> None:
        debate = make_debate(settings=DebateSettings(show_results_before_end=False))
        assert service.get_results(debate) is None

    def test_forced_for_author(self, service, make_debate) -> None:
        debate = make_debate(settings=DebateSettings(show_results_before_end=False))
        assert service.get_results(debate, force=True) is not None

    def test_visible_after_end(self, service, make_debate) -> None:
        debate = make_debate(
            start_offset=timedelta(days=-2),
            end_offset=timedelta(days=-1),
            settings=DebateSettings(show_results_before_end=False),
        )
        assert service.get_results(debate) is not None
