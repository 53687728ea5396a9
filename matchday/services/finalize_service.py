"""
Finalize orchestration.

completion gate -> consensus -> absence evaluation -> reveal scheduling
-> participants snapshot

Re-running is safe. reveal_at keeps the value of the first write and
recipients already notified are skipped. Once results are released the
stored winners are final and consensus is not recomputed.
"""
import logging
from typing import Optional

from matchday.core.clock import Clock, system_clock
from matchday.core.randomness import RandomSource
from matchday.orm.match import MatchState
from matchday.schemas.surveys import FinalizeOutcome
from matchday.services.absence_service import evaluate_match_absences
from matchday.services.completion_gate import check_survey_completion
from matchday.services.consensus_service import compute_consensus, persist_consensus
from matchday.services.procedures import ProcedureGateway
from matchday.services.reveal_scheduler import compute_reveal_at, schedule_reveal_notifications
from matchday.services.snapshot_service import ensure_participants_snapshot
from matchday.services.store import MatchStore

logger = logging.getLogger(__name__)


async def finalize_if_complete(
    store: MatchStore,
    match_id: int,
    clock: Clock = system_clock,
    rng: Optional[RandomSource] = None,
    gateway: Optional[ProcedureGateway] = None,
    fast: Optional[bool] = None,
) -> FinalizeOutcome:
    """
    Raises:
        MatchNotFoundError: match does not exist
    """
    await store.require_match(match_id)

    completion = await check_survey_completion(store, match_id)
    if not completion.complete:
        logger.debug(
            f"Match {match_id} not complete ({completion.distinct_voters}/{completion.expected}); skipping"
        )
        return FinalizeOutcome(match_id=match_id, status="incomplete", completion=completion)

    existing = await store.get_result(match_id)
    if existing is not None and existing.results_ready:
        return FinalizeOutcome(
            match_id=match_id,
            status="released",
            completion=completion,
            reveal_at=existing.reveal_at,
            participants_snapshot=bool(existing.participants_snapshot_ready),
        )

    consensus, resolver = await compute_consensus(store, match_id, rng=rng, gateway=gateway)
    absences = await evaluate_match_absences(store, match_id, resolver)
    penalty_refs = [v.ref for v in absences if v.penalty_eligible]

    reveal_at = compute_reveal_at(clock.now(), fast=fast)
    row = await persist_consensus(store, consensus, reveal_at, penalty_refs=penalty_refs, clock=clock)

    report = await schedule_reveal_notifications(store, match_id, row.reveal_at)
    snapshot = await ensure_participants_snapshot(store, match_id, clock=clock)
    await store.set_match_state(match_id, MatchState.FINISHED.value)

    logger.info(f"Match {match_id} finalized; reveal at {row.reveal_at}")
    return FinalizeOutcome(
        match_id=match_id,
        status="finalized",
        completion=completion,
        consensus=consensus,
        absences=absences,
        reveal_at=row.reveal_at,
        notifications_scheduled=report.scheduled,
        participants_snapshot=snapshot.created or snapshot.reason == "already_snapshotted",
    )
