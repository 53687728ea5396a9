"""
End-to-end finalize: gate, consensus, absences, reveal scheduling and the
participants snapshot, including safe re-runs.
"""
from datetime import timedelta

import pytest

from matchday.config import EngineSettings
from matchday.core.randomness import ScriptedRandomSource
from matchday.exceptions import MatchNotFoundError
from matchday.orm.match import MatchState
from matchday.services.finalize_service import finalize_if_complete
from matchday.services.reveal_scheduler import release_results_if_due


async def full_turnout(survey, roster):
    await survey("acct-ana", a="u-beto", b="u-guest", dirty=["acct-caro"], absent=["acct-caro"])
    await survey("acct-beto", a="u-ana", b="u-guest", dirty=["acct-caro"])
    await survey("acct-caro", a="u-beto", b=str(roster.ana.id))
    await survey("guest-7", a="u-beto", b="u-guest")


@pytest.mark.asyncio
async def test_incomplete_match_is_left_alone(store, match, roster, survey, clock):
    await survey("acct-ana", a="u-beto")

    outcome = await finalize_if_complete(store, match.id, clock=clock)

    assert outcome.status == "incomplete"
    assert not outcome.finalized
    assert await store.get_result(match.id) is None
    assert await store.list_notifications(match_id=match.id) == []


@pytest.mark.asyncio
async def test_complete_match_is_finalized(store, match, roster, survey, clock):
    await full_turnout(survey, roster)

    outcome = await finalize_if_complete(store, match.id, clock=clock, rng=ScriptedRandomSource([0]), fast=False)

    assert outcome.finalized
    assert outcome.consensus.mvp_ref == "u-beto"
    assert outcome.consensus.golden_glove_ref == "u-guest"
    assert outcome.consensus.red_card_refs == ["acct-caro"]
    assert outcome.reveal_at == clock.now() + timedelta(seconds=EngineSettings.REVEAL_DELAY_SECONDS)
    assert outcome.notifications_scheduled == 3
    assert outcome.participants_snapshot

    eligible = [a.ref for a in outcome.absences if a.penalty_eligible]
    assert eligible == ["acct-caro"]

    row = await store.get_result(match.id)
    assert row.results_ready is False
    assert row.penalty_refs == ["acct-caro"]
    assert row.participants_snapshot_ready

    assert (await store.get_match(match.id)).state == MatchState.FINISHED.value


@pytest.mark.asyncio
async def test_rerun_keeps_reveal_time_and_does_not_renotify(store, match, roster, survey, clock):
    await full_turnout(survey, roster)
    first = await finalize_if_complete(store, match.id, clock=clock, fast=True)

    clock.advance(seconds=10)
    second = await finalize_if_complete(store, match.id, clock=clock, fast=True)

    assert second.finalized
    assert second.reveal_at == first.reveal_at
    assert second.notifications_scheduled == 0
    assert len(await store.list_notifications(match_id=match.id)) == 3


@pytest.mark.asyncio
async def test_fast_mode_reveals_quickly_then_stays_released(store, match, roster, survey, clock):
    await full_turnout(survey, roster)
    first = await finalize_if_complete(store, match.id, clock=clock, fast=True)
    assert first.reveal_at == clock.now() + timedelta(seconds=EngineSettings.FAST_REVEAL_DELAY_SECONDS)

    clock.advance(seconds=EngineSettings.FAST_REVEAL_DELAY_SECONDS)
    released = await release_results_if_due(store, match.id, clock)
    assert released.status == "released"

    after = await finalize_if_complete(store, match.id, clock=clock, fast=True)
    assert after.status == "released"
    assert after.consensus is None


@pytest.mark.asyncio
async def test_finalize_unknown_match(store):
    with pytest.raises(MatchNotFoundError):
        await finalize_if_complete(store, 31337)
