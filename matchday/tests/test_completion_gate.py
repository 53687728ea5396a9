"""
Survey completion gate: distinct voters against roster size.
"""
import pytest

from matchday.exceptions import DuplicateSurveyError, SurveyValidationError
from matchday.services.completion_gate import check_survey_completion, is_complete


def test_quorum_rule():
    assert not is_complete(0, 0)
    assert not is_complete(3, 4)
    assert is_complete(4, 4)
    assert is_complete(5, 4)


@pytest.mark.asyncio
async def test_gate_closes_exactly_at_roster_size(store, match, roster, survey):
    for voter in ("acct-ana", "acct-beto", "acct-caro"):
        await survey(voter)
        status = await check_survey_completion(store, match.id)
        assert not status.complete

    await survey("guest-1")
    status = await check_survey_completion(store, match.id)

    assert status.complete
    assert status.expected == 4
    assert status.distinct_voters == 4


@pytest.mark.asyncio
async def test_substitute_voter_counts_toward_quorum(store, match, roster, survey):
    # acct-caro never answers; an outside voter stands in
    for voter in ("acct-ana", "acct-beto", "guest-1", "outsider"):
        await survey(voter)

    status = await check_survey_completion(store, match.id)
    assert status.complete


@pytest.mark.asyncio
async def test_empty_roster_is_never_complete(store, match, survey):
    await survey("acct-ana")

    status = await check_survey_completion(store, match.id)
    assert status.expected == 0
    assert not status.complete


@pytest.mark.asyncio
async def test_duplicate_survey_rejected(store, match, roster, survey):
    await survey("acct-ana", a="u-beto")

    with pytest.raises(DuplicateSurveyError):
        await survey("acct-ana", a="u-ana")

    status = await check_survey_completion(store, match.id)
    assert status.distinct_voters == 1


@pytest.mark.asyncio
async def test_survey_requires_voter(store, match, survey):
    with pytest.raises(SurveyValidationError):
        await survey("")


@pytest.mark.asyncio
async def test_survey_nominees_normalized(store, match, roster, survey):
    stored = await survey("acct-ana", a=roster.beto.id, b=" u-guest ", dirty=["acct-caro", "acct-caro", " "])

    assert stored.best_player_a == str(roster.beto.id)
    assert stored.best_player_b == "u-guest"
    assert stored.dirty_nominees == ["acct-caro"]
