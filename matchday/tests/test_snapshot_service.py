"""
Historical snapshots: idempotent freezes keyed by stable references.
"""
import json
from datetime import datetime

import pytest

from matchday.core.randomness import ScriptedRandomSource
from matchday.services.consensus_service import compute_consensus, persist_consensus
from matchday.services.snapshot_service import (
    OUTCOME_SNAPSHOT_VERSION,
    ensure_outcome_snapshot,
    ensure_participants_snapshot,
)
from matchday.services.store import MatchStore


class UnreadableStore(MatchStore):
    async def get_result(self, match_id):
        raise RuntimeError("survey_results unavailable")


def frozen(row, *columns):
    return json.dumps([getattr(row, c) for c in columns], sort_keys=True, default=str)


@pytest.mark.asyncio
async def test_participants_snapshot_is_written_once(store, match, roster, clock):
    first = await ensure_participants_snapshot(store, match.id, clock)
    assert first.created

    row = await store.get_result(match.id)
    before = frozen(row, "participants_snapshot", "teams_snapshot", "participants_snapshot_at")
    assert [e["ref"] for e in row.participants_snapshot] == ["u-ana", "u-beto", "acct-caro", "u-guest"]
    assert row.teams_snapshot is None

    # Roster drifts after the freeze
    await store.update_participant_rating(roster.ana.id, 9.5, True)
    clock.advance(hours=3)

    second = await ensure_participants_snapshot(store, match.id, clock)
    assert not second.created
    assert second.reason == "already_snapshotted"

    after = frozen(await store.get_result(match.id), "participants_snapshot", "teams_snapshot", "participants_snapshot_at")
    assert after == before


@pytest.mark.asyncio
async def test_confirmed_teams_preferred_over_live_roster(store, match, roster, clock):
    await store.save_team_confirmation(
        match.id,
        participants=[
            {"id": roster.ana.id, "uuid": "u-ana", "account_id": "acct-ana", "display_name": "Ana (capitana)", "rating": 8},
            {"id": roster.beto.id, "uuid": "u-beto", "account_id": "acct-beto", "display_name": "Beto"},
        ],
        team_a=[roster.ana.id],
        team_b=["acct-beto", "ghost"],
        confirmed_at=datetime(2026, 3, 14, 19, 30),
    )

    await ensure_participants_snapshot(store, match.id, clock)

    row = await store.get_result(match.id)
    assert [e["display_name"] for e in row.participants_snapshot] == ["Ana (capitana)", "Beto"]
    assert row.participants_snapshot[0]["rating"] == 8
    assert row.teams_snapshot["team_a"] == ["u-ana"]
    assert row.teams_snapshot["team_b"] == ["u-beto"]
    assert row.teams_snapshot["confirmed_at"] == "2026-03-14T19:30:00"


@pytest.mark.asyncio
async def test_outcome_snapshot_merges_computed_row(store, match, roster, survey, clock):
    await survey("acct-ana", a="u-beto", b=str(roster.caro.id), dirty=["u-guest"], absent=[str(roster.ana.id)])
    await survey("acct-beto", a="u-ana", b="acct-caro")
    result, _ = await compute_consensus(store, match.id, rng=ScriptedRandomSource([1]))
    await persist_consensus(store, result, clock.now(), clock=clock)

    outcome = await ensure_outcome_snapshot(store, match.id, reason="closed", clock=clock, rng=ScriptedRandomSource([0]))
    assert outcome.created

    row = await store.get_result(match.id)
    payload = row.outcome_snapshot
    assert payload["version"] == OUTCOME_SNAPSHOT_VERSION
    # Computed winner is kept even though the re-derivation would flip the tie
    assert payload["mvp"]["ref"] == result.mvp_ref
    assert payload["golden_glove"] == {"ref": "acct-caro", "votes": 2}
    assert payload["dirty_players"] == ["u-guest"]
    assert payload["absent"] == ["u-ana"]
    assert payload["closed_reason"] == "closed"
    assert row.survey_closed_at == clock.now()

    before = frozen(row, "outcome_snapshot", "survey_closed_at")
    clock.advance(days=1)
    again = await ensure_outcome_snapshot(store, match.id, reason="revealed", clock=clock)

    assert not again.created
    assert frozen(await store.get_result(match.id), "outcome_snapshot", "survey_closed_at") == before


@pytest.mark.asyncio
async def test_outcome_snapshot_without_computed_row_derives_winners(store, match, roster, survey, clock):
    await survey("acct-ana", a="u-beto")
    await survey("acct-caro", a="u-beto")

    outcome = await ensure_outcome_snapshot(store, match.id, reason="manual", clock=clock)

    assert outcome.created
    payload = (await store.get_result(match.id)).outcome_snapshot
    assert payload["mvp"] == {"ref": "u-beto", "votes": 2}
    assert payload["golden_glove"] == {"ref": None, "votes": 0}


@pytest.mark.asyncio
async def test_snapshot_failures_are_swallowed(engine, match, roster, clock):
    broken = UnreadableStore(engine)

    participants = await ensure_participants_snapshot(broken, match.id, clock)
    outcome = await ensure_outcome_snapshot(broken, match.id, clock=clock)

    assert participants.reason == "failed"
    assert outcome.reason == "failed"
    assert "unavailable" in outcome.error
