"""
Three-tier notification fan-out: remote procedure, direct insert, and a
failure that is reported but never raised.
"""
import asyncio

import pytest

from matchday.schemas.notifications import FanoutTier
from matchday.services.notification_service import (
    fan_out,
    notify_admin_join_request,
    notify_player_joined,
    resolve_recipients,
)
from matchday.services.procedures import ENQUEUE_MATCH_NOTIFICATION, ProcedureGateway
from matchday.services.store import MatchStore


class BrokenInsertStore(MatchStore):
    async def insert_notifications(self, rows):
        raise RuntimeError("notifications table unavailable")


@pytest.mark.asyncio
async def test_procedure_tier_used_when_available(store, match, roster, clock):
    gateway = ProcedureGateway(timeout=1)
    calls = []

    async def enqueue(**kwargs):
        calls.append(kwargs)
        return 5

    gateway.register(ENQUEUE_MATCH_NOTIFICATION, enqueue)

    result = await notify_player_joined(store, match.id, "acct-ana", "Ana", gateway=gateway, clock=clock)

    assert result.tier == FanoutTier.PROCEDURE
    assert result.delivered == 5
    assert calls[0]["include_participants"] is True
    assert calls[0]["exclude_ref"] == "acct-ana"
    assert await store.list_notifications(match_id=match.id) == []


@pytest.mark.asyncio
async def test_missing_procedure_falls_back_to_direct_insert(store, match, roster, clock):
    result = await notify_admin_join_request(
        store, match.id, "acct-zoe", "Zoe", gateway=ProcedureGateway(), clock=clock
    )

    assert result.tier == FanoutTier.DIRECT
    assert result.delivered == 1
    rows = await store.list_notifications(match_id=match.id)
    assert [r.recipient_ref for r in rows] == ["admin-1"]
    assert rows[0].payload == {"requester_ref": "acct-zoe"}
    assert rows[0].send_at == clock.now()


@pytest.mark.asyncio
@pytest.mark.parametrize("failure", ["raises", "timeout"])
async def test_failing_procedure_falls_back_to_direct_insert(store, match, roster, clock, failure):
    gateway = ProcedureGateway(timeout=0.05)

    async def enqueue(**kwargs):
        if failure == "raises":
            raise RuntimeError("permission denied")
        await asyncio.sleep(1)

    gateway.register(ENQUEUE_MATCH_NOTIFICATION, enqueue)

    result = await notify_player_joined(store, match.id, "acct-ana", gateway=gateway, clock=clock)

    assert result.tier == FanoutTier.DIRECT
    rows = await store.list_notifications(match_id=match.id)
    assert {r.recipient_ref for r in rows} == {"admin-1", "acct-beto", "acct-caro"}


@pytest.mark.asyncio
async def test_recipient_resolution_excludes_actor(store, match, roster):
    assert await resolve_recipients(store, match.id) == ["admin-1"]
    assert await resolve_recipients(store, match.id, include_participants=True, exclude_ref="acct-beto") == [
        "admin-1", "acct-ana", "acct-caro"
    ]


@pytest.mark.asyncio
async def test_total_failure_is_reported_not_raised(engine, match, roster, clock):
    broken = BrokenInsertStore(engine)

    result = await fan_out(broken, match.id, "match_update", "t", "m", include_participants=True, clock=clock)

    assert result.tier == FanoutTier.FAILED
    assert not result.ok
    assert "unavailable" in result.error


@pytest.mark.asyncio
async def test_unknown_match_is_reported_not_raised(store):
    result = await fan_out(store, 4242, "match_update", "t", "m")
    assert result.tier == FanoutTier.FAILED
