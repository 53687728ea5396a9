"""
Reveal delay, per-recipient reveal notifications, release and delivery.
"""
from datetime import timedelta

import pytest

from matchday.config import EngineSettings
from matchday.core.randomness import ScriptedRandomSource
from matchday.orm.notification import NotificationStatus, NotificationType
from matchday.services.consensus_service import compute_consensus, persist_consensus
from matchday.services.reveal_scheduler import (
    compute_reveal_at,
    deliver_due_notifications,
    release_results_if_due,
    schedule_reveal_notifications,
)
from matchday.services.store import MatchStore


def test_fast_and_normal_delay_share_logic(clock):
    now = clock.now()
    assert compute_reveal_at(now, fast=False) == now + timedelta(seconds=EngineSettings.REVEAL_DELAY_SECONDS)
    assert compute_reveal_at(now, fast=True) == now + timedelta(seconds=EngineSettings.FAST_REVEAL_DELAY_SECONDS)
    assert compute_reveal_at(now, fast=True) < compute_reveal_at(now, fast=False)


def test_default_delay_is_hours_not_seconds():
    assert EngineSettings.reveal_delay() >= timedelta(hours=1)
    assert EngineSettings.reveal_delay(fast=True) < timedelta(minutes=5)


@pytest.mark.asyncio
async def test_one_pending_notification_per_registered_participant(store, match, roster, clock):
    send_at = compute_reveal_at(clock.now(), fast=False)

    report = await schedule_reveal_notifications(store, match.id, send_at)

    assert report.scheduled == 3
    assert report.failed == 0
    rows = await store.list_notifications(match_id=match.id)
    assert {r.recipient_ref for r in rows} == {"acct-ana", "acct-beto", "acct-caro"}
    assert all(r.status == NotificationStatus.PENDING.value for r in rows)
    assert all(r.send_at == send_at for r in rows)
    assert all(r.type == NotificationType.SURVEY_RESULTS_READY.value for r in rows)


@pytest.mark.asyncio
async def test_rescheduling_skips_notified_recipients(store, match, roster, clock):
    send_at = compute_reveal_at(clock.now())
    await schedule_reveal_notifications(store, match.id, send_at)

    again = await schedule_reveal_notifications(store, match.id, send_at)

    assert again.scheduled == 0
    assert again.skipped == 3
    assert len(await store.list_notifications(match_id=match.id)) == 3


@pytest.mark.asyncio
async def test_delivery_waits_for_send_at(store, match, roster, clock):
    await schedule_reveal_notifications(store, match.id, clock.now() + timedelta(hours=6))

    assert await deliver_due_notifications(store, clock) == 0

    clock.advance(hours=6)
    assert await deliver_due_notifications(store, clock) == 3
    assert await deliver_due_notifications(store, clock) == 0

    sent = await store.list_notifications(match_id=match.id, status=NotificationStatus.SENT.value)
    assert len(sent) == 3


@pytest.mark.asyncio
async def test_release_only_after_reveal_time(store, match, roster, survey, clock):
    await survey("acct-ana", a="u-beto", b="u-guest", dirty=["acct-caro"])
    await survey("acct-beto", a="u-beto", b="u-guest", dirty=["acct-caro"], absent=["u-ana"])
    result, _ = await compute_consensus(store, match.id, rng=ScriptedRandomSource([0]))
    await persist_consensus(store, result, clock.now() + timedelta(hours=6), penalty_refs=["u-ana"], clock=clock)

    pending = await release_results_if_due(store, match.id, clock)
    assert pending.status == "pending"
    assert (await store.get_result(match.id)).results_ready is False

    clock.advance(hours=6)
    released = await release_results_if_due(store, match.id, clock)

    assert released.status == "released"
    assert released.awards_granted == 2  # mvp u-beto, dirty acct-caro
    assert released.guests_skipped == ["u-guest"]
    assert released.penalties_applied == 1
    assert released.outcome_snapshot is True

    row = await store.get_result(match.id)
    assert row.results_ready is True
    assert row.released_at == clock.now()
    assert row.outcome_snapshot["closed_reason"] == "revealed"

    beto = await store.get_profile("acct-beto")
    assert beto.mvp_badges == 1
    caro = await store.get_profile("acct-caro")
    assert caro.red_badges == 1
    assert (await store.get_profile("acct-ana")).ranking == 4.5

    repeat = await release_results_if_due(store, match.id, clock)
    assert repeat.status == "already_released"
    assert repeat.awards_granted == 0
    assert repeat.penalties_applied == 0
    assert (await store.get_profile("acct-beto")).mvp_badges == 1


@pytest.mark.asyncio
async def test_release_without_result(store, match):
    outcome = await release_results_if_due(store, match.id)
    assert outcome.status == "missing"


class RosterFailsOnceStore(MatchStore):
    """Raises on the first roster read, then behaves normally."""

    def __init__(self, engine):
        super().__init__(engine)
        self.failures_left = 1

    async def list_participants(self, match_id):
        if self.failures_left:
            self.failures_left -= 1
            raise RuntimeError("roster read failed")
        return await super().list_participants(match_id)


@pytest.mark.asyncio
async def test_failed_award_grant_is_completed_on_next_release(engine, store, match, roster, survey, clock):
    await survey("acct-ana", a="u-beto", dirty=["acct-caro"])
    await survey("acct-beto", a="u-beto", dirty=["acct-caro"], absent=["u-ana"])
    result, _ = await compute_consensus(store, match.id, rng=ScriptedRandomSource([0]))
    await persist_consensus(store, result, clock.now(), penalty_refs=["u-ana"], clock=clock)

    flaky = RosterFailsOnceStore(engine)
    first = await release_results_if_due(flaky, match.id, clock)

    assert first.status == "released"
    assert first.awards_granted == 0
    # Later steps still ran
    assert first.penalties_applied == 1
    assert first.outcome_snapshot is True
    assert await store.list_awards(match.id) == []

    retry = await release_results_if_due(flaky, match.id, clock)

    assert retry.status == "already_released"
    assert retry.awards_granted == 2
    assert retry.penalties_applied == 0
    assert (await store.get_profile("acct-beto")).mvp_badges == 1
    assert (await store.get_profile("acct-caro")).red_badges == 1
    assert (await store.get_profile("acct-ana")).ranking == 4.5
