"""
Absence notices, penalty eligibility and no-show penalty application.
"""
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from matchday.core.identity import IdentityResolver
from matchday.exceptions import AbsenceValidationError
from matchday.services.absence_service import (
    evaluate_absences,
    evaluate_match_absences,
    hours_before,
    is_penalty_eligible,
    notified_in_time,
    record_absence,
)
from matchday.services.penalty_service import apply_absence_penalties, penalized_rating

KICKOFF = datetime(2026, 3, 14, 20, 0, 0)


def notice(hours, replacement=False):
    return SimpleNamespace(
        hours_before_match=hours,
        notified_in_time=notified_in_time(KICKOFF, KICKOFF - timedelta(hours=hours)),
        found_replacement=replacement,
    )


# =============================================================================
# Eligibility rules
# =============================================================================

def test_no_record_is_penalty_eligible():
    assert is_penalty_eligible(None)


def test_notice_five_hours_ahead_is_not_penalized():
    assert not is_penalty_eligible(notice(5))


def test_late_notice_with_replacement_is_not_penalized():
    assert not is_penalty_eligible(notice(1, replacement=True))


def test_late_notice_without_replacement_is_penalized():
    assert is_penalty_eligible(notice(1))


def test_notice_window_boundary():
    assert notified_in_time(KICKOFF, KICKOFF - timedelta(hours=4))
    assert not notified_in_time(KICKOFF, KICKOFF - timedelta(hours=3, minutes=59, seconds=50))


def test_hours_before_clamped_after_kickoff():
    start = KICKOFF
    assert hours_before(start, start - timedelta(hours=5, minutes=30)) == 5.5
    assert hours_before(start, start + timedelta(minutes=10)) == 0.0


def test_penalty_floor():
    assert penalized_rating(5.0) == 4.5
    assert penalized_rating(1.2) == 1.0
    assert penalized_rating(1.0) == 1.0


# =============================================================================
# Recording and evaluation
# =============================================================================

@pytest.mark.asyncio
async def test_record_absence_freezes_notice_timing(store, match, roster, clock):
    late = await record_absence(store, {"match_id": match.id, "participant_ref": "u-ana", "reason": "trabajo"}, clock)
    assert late.hours_before_match == 2.0
    assert late.notified_in_time is False

    clock.set(KICKOFF - timedelta(hours=5))
    early = await record_absence(store, {"match_id": match.id, "participant_ref": "acct-beto"}, clock)
    assert early.hours_before_match == 5.0
    assert early.notified_in_time is True


@pytest.mark.asyncio
async def test_record_absence_requires_participant(store, match, clock):
    with pytest.raises(AbsenceValidationError):
        await record_absence(store, {"match_id": match.id, "participant_ref": ""}, clock)


@pytest.mark.asyncio
async def test_notice_seconds_short_of_window_is_late(store, match, roster, clock):
    clock.set(KICKOFF - timedelta(hours=3, minutes=59, seconds=50))

    record = await record_absence(store, {"match_id": match.id, "participant_ref": "u-ana"}, clock)

    # Stored hours round up to the window, the flag must not
    assert record.hours_before_match == 4.0
    assert record.notified_in_time is False
    assert is_penalty_eligible(record)


@pytest.mark.asyncio
async def test_window_edge_notices_flow_into_evaluation(store, match, roster, clock, survey):
    clock.set(KICKOFF - timedelta(hours=3, minutes=59, seconds=50))
    await record_absence(store, {"match_id": match.id, "participant_ref": "u-ana"}, clock)
    clock.set(KICKOFF - timedelta(hours=4))
    await record_absence(store, {"match_id": match.id, "participant_ref": "u-beto"}, clock)
    await survey("acct-caro", absent=["u-ana", "u-beto"])

    verdicts = {v.ref: v for v in await evaluate_match_absences(store, match.id)}

    assert verdicts["u-ana"].has_record
    assert not verdicts["u-ana"].notified_in_time
    assert verdicts["u-ana"].penalty_eligible
    assert verdicts["u-beto"].notified_in_time
    assert not verdicts["u-beto"].penalty_eligible


def test_evaluate_absences_fail_closed():
    resolver = IdentityResolver.from_participants([
        SimpleNamespace(id=1, uuid="u-ana", account_id="acct-ana"),
        SimpleNamespace(id=2, uuid="u-beto", account_id="acct-beto"),
        SimpleNamespace(id=3, uuid=None, account_id="acct-caro"),
    ])
    surveys = [
        SimpleNamespace(absent_nominees=["u-ana", "2"]),
        SimpleNamespace(absent_nominees=["ghost", "acct-caro"]),
    ]
    records = [
        SimpleNamespace(participant_ref="acct-beto", notified_in_time=True, found_replacement=False),
        SimpleNamespace(participant_ref="acct-caro", notified_in_time=False, found_replacement=True),
    ]

    verdicts = {v.ref: v for v in evaluate_absences(resolver, surveys, records)}

    assert set(verdicts) == {"u-ana", "u-beto", "acct-caro"}
    assert verdicts["u-ana"].penalty_eligible and not verdicts["u-ana"].has_record
    assert not verdicts["u-beto"].penalty_eligible
    assert not verdicts["acct-caro"].penalty_eligible


@pytest.mark.asyncio
async def test_late_notice_without_nomination_is_still_evaluated(store, match, roster, clock, survey):
    await record_absence(store, {"match_id": match.id, "participant_ref": "acct-caro"}, clock)
    await survey("acct-ana", absent=["u-guest"])

    verdicts = {v.ref: v for v in await evaluate_match_absences(store, match.id)}

    assert verdicts["acct-caro"].has_record
    assert verdicts["acct-caro"].penalty_eligible
    assert verdicts["u-guest"].penalty_eligible


# =============================================================================
# Penalty application
# =============================================================================

@pytest.mark.asyncio
async def test_penalty_lowers_running_rating_once(store, match, roster):
    applied = await apply_absence_penalties(store, match.id, ["u-ana", "u-guest"])
    assert applied == ["u-ana"]

    profile = await store.get_profile("acct-ana")
    assert profile.ranking == 4.5

    again = await apply_absence_penalties(store, match.id, ["u-ana"])
    assert again == []
    assert (await store.get_profile("acct-ana")).ranking == 4.5

    penalties = await store.list_penalties(match.id)
    assert len(penalties) == 1
    assert penalties[0].rating_before == 5.0
    assert penalties[0].rating_after == 4.5


@pytest.mark.asyncio
async def test_penalty_never_goes_below_floor(store, match, roster):
    await store.save_profile("acct-beto", ranking=1.2)

    await apply_absence_penalties(store, match.id, ["u-beto"])

    assert (await store.get_profile("acct-beto")).ranking == 1.0
