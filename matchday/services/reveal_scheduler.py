"""
Reveal Scheduler

Results are revealed after a delay: EngineSettings.REVEAL_DELAY_SECONDS in
production, FAST_REVEAL_DELAY_SECONDS when fast results are enabled. Both
paths differ only in the delay.

The scheduler writes future-dated pending notifications; an external
poller (or deliver_due_notifications) promotes them once send_at passes.
release_results_if_due flips readiness and runs the post-reveal steps.
"""
import asyncio
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from matchday.config import EngineSettings
from matchday.core.clock import Clock, system_clock
from matchday.core.randomness import RandomSource
from matchday.orm.notification import NotificationStatus, NotificationType
from matchday.schemas.notifications import ScheduleReport
from matchday.schemas.surveys import ReleaseOutcome
from matchday.services.awards_service import grant_awards
from matchday.services.penalty_service import apply_absence_penalties
from matchday.services.snapshot_service import ensure_outcome_snapshot
from matchday.services.store import MatchStore

logger = logging.getLogger(__name__)

REVEAL_TITLE = "Resultados disponibles"
REVEAL_MESSAGE = "Ya puedes ver los premios del partido"


def compute_reveal_at(now: datetime, fast: Optional[bool] = None) -> datetime:
    if fast is None:
        fast = EngineSettings.FAST_RESULTS
    return now + EngineSettings.reveal_delay(fast=fast)


def reveal_recipients(participants) -> List[str]:
    """Registered participants only; guests have no inbox."""
    recipients = []
    for participant in participants:
        if participant.account_id and participant.account_id not in recipients:
            recipients.append(participant.account_id)
    return recipients


async def schedule_reveal_notifications(store: MatchStore, match_id: int, send_at: datetime) -> ScheduleReport:
    """
    One pending survey_results_ready notification per recipient.

    Recipients that already hold one for this match are skipped, so a
    repeated finalize does not double-notify.
    """
    participants = await store.list_participants(match_id)
    already = await store.notified_recipients(match_id, NotificationType.SURVEY_RESULTS_READY.value)
    recipients = [r for r in reveal_recipients(participants) if r not in already]

    results = await asyncio.gather(
        *(
            store.insert_notification(
                recipient_ref=recipient,
                match_id=match_id,
                type=NotificationType.SURVEY_RESULTS_READY.value,
                title=REVEAL_TITLE,
                message=REVEAL_MESSAGE,
                payload={"match_id": match_id},
                send_at=send_at,
                status=NotificationStatus.PENDING.value,
            )
            for recipient in recipients
        ),
        return_exceptions=True,
    )

    failed = 0
    for recipient, outcome in zip(recipients, results):
        if isinstance(outcome, BaseException):
            failed += 1
            logger.warning(f"Reveal notification for {recipient} in match {match_id} failed: {outcome}")

    report = ScheduleReport(
        match_id=match_id,
        send_at=send_at,
        scheduled=len(recipients) - failed,
        skipped=len(already),
        failed=failed,
    )
    logger.info(f"Match {match_id}: {report.scheduled} reveal notifications scheduled for {send_at}")
    return report


async def _run_post_reveal(
    store: MatchStore,
    match_id: int,
    penalty_refs: List[str],
    clock: Clock,
    rng: Optional[RandomSource],
) -> Tuple[int, List[str], int, bool]:
    """
    Awards, penalties and the outcome snapshot. Each step is idempotent and
    guarded on its own, so a failure is logged and left for the next release
    call to complete.
    """
    granted, guests = 0, []
    try:
        granted, guests = await grant_awards(store, match_id)
    except Exception as e:
        logger.error(f"Granting awards for match {match_id} failed: {e}")

    penalized = []
    try:
        penalized = await apply_absence_penalties(store, match_id, penalty_refs)
    except Exception as e:
        logger.error(f"Applying penalties for match {match_id} failed: {e}")

    snapshot = await ensure_outcome_snapshot(store, match_id, reason="revealed", clock=clock, rng=rng)
    return granted, guests, len(penalized), snapshot.created


async def release_results_if_due(
    store: MatchStore,
    match_id: int,
    clock: Clock = system_clock,
    rng: Optional[RandomSource] = None,
) -> ReleaseOutcome:
    """
    Reveal results once reveal_at has passed.

    Sets readiness, grants awards, applies no-show penalties and freezes the
    outcome snapshot. Safe to call repeatedly: on an already released match
    the post-reveal steps run again and only fill in what is missing.
    """
    result = await store.get_result(match_id)
    if result is None or result.computed_at is None:
        return ReleaseOutcome(match_id=match_id, status="missing")

    if not result.results_ready:
        now = clock.now()
        if result.reveal_at is None or result.reveal_at > now:
            return ReleaseOutcome(match_id=match_id, status="pending", reveal_at=result.reveal_at)
        released = await store.update_result_once(match_id, "results_ready", {"released_at": now})
        status = "released" if released else "already_released"
    else:
        status = "already_released"

    granted, guests, penalties, snapshot_created = await _run_post_reveal(
        store, match_id, result.penalty_refs or [], clock, rng
    )

    if status == "released":
        logger.info(f"Results released for match {match_id}")
    return ReleaseOutcome(
        match_id=match_id,
        status=status,
        reveal_at=result.reveal_at,
        awards_granted=granted,
        guests_skipped=guests,
        penalties_applied=penalties,
        outcome_snapshot=snapshot_created,
    )


async def deliver_due_notifications(store: MatchStore, clock: Clock = system_clock) -> int:
    """Promote pending notifications whose send_at has passed."""
    delivered = await store.mark_due_notifications_sent(clock.now())
    if delivered:
        logger.info(f"Delivered {delivered} due notifications")
    return delivered
