"""
Historical Snapshot Service

Two independent freeze operations on the match's survey_results row, each
guarded by its own ready flag:

- participants snapshot: roster (or the confirmed team split when one
  exists) keyed by stable reference
- outcome snapshot: version 1 award payload plus closed-at and close reason

Both are safe to call speculatively and repeatedly. A second call is a
no-op and leaves the stored payload untouched. Failures are logged and
reported, never raised.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from matchday.core.clock import Clock, system_clock
from matchday.core.identity import IdentityResolver, stable_ref_for
from matchday.core.randomness import RandomSource, default_random
from matchday.schemas.snapshots import SnapshotOutcome
from matchday.services.consensus_service import compute_local_consensus
from matchday.services.store import MatchStore

logger = logging.getLogger(__name__)

OUTCOME_SNAPSHOT_VERSION = 1


# =============================================================================
# Payload builders (pure)
# =============================================================================

def _confirmed_entry(item: Any, resolver: IdentityResolver) -> Optional[Dict[str, Any]]:
    if not isinstance(item, dict):
        ref = resolver.resolve_value(item)
        if ref is None:
            return None
        item = {"ref": ref}

    ref = resolver.resolve(
        by_uuid=item.get("uuid") or item.get("ref"),
        by_ordinal_id=item.get("id"),
    ) or resolver.resolve_account(item.get("account_id"))
    if ref is None:
        ref = stable_ref_for(item.get("id"), item.get("uuid"), item.get("account_id")) or item.get("ref")
    if ref is None:
        return None

    return {
        "id": item.get("id"),
        "ref": ref,
        "uuid": item.get("uuid"),
        "account_id": item.get("account_id"),
        "display_name": item.get("display_name") or "Jugador",
        "avatar_url": item.get("avatar_url"),
        "rating": item.get("rating"),
        "is_goalkeeper": bool(item.get("is_goalkeeper")),
    }


def _team_refs(members: Any, resolver: IdentityResolver) -> List[str]:
    refs = []
    for member in members or []:
        if isinstance(member, dict):
            entry = _confirmed_entry(member, resolver)
            ref = entry["ref"] if entry else None
        else:
            ref = resolver.resolve_value(member)
        if ref is not None and ref not in refs:
            refs.append(ref)
    return refs


def build_participants_snapshot(
    participants: List[Any],
    confirmation: Optional[Any],
    resolver: IdentityResolver,
) -> Tuple[List[Dict[str, Any]], Optional[Dict[str, Any]]]:
    """
    Returns (participant entries, teams).

    A confirmed split is preferred over the live roster.
    """
    entries = []
    if confirmation is not None and confirmation.participants:
        for item in confirmation.participants:
            entry = _confirmed_entry(item, resolver)
            if entry is not None:
                entries.append(entry)
    if not entries:
        entries = [p.to_snapshot() for p in participants]

    teams = None
    if confirmation is not None:
        layout = confirmation.teams_json if isinstance(confirmation.teams_json, dict) else {}
        team_a = confirmation.team_a if confirmation.team_a is not None else layout.get("team_a")
        team_b = confirmation.team_b if confirmation.team_b is not None else layout.get("team_b")
        teams = {
            "team_a": _team_refs(team_a, resolver),
            "team_b": _team_refs(team_b, resolver),
            "confirmed_at": confirmation.confirmed_at.isoformat() if confirmation.confirmed_at else None,
        }
    return entries, teams


def build_outcome_payload(
    match_id: int,
    existing: Optional[Any],
    derived: Any,
    absent_refs: List[str],
    reason: str,
    closed_at,
) -> Dict[str, Any]:
    """Merge the computed result row (authoritative) with winners re-derived from surveys."""
    computed = existing is not None and existing.computed_at is not None

    if computed and existing.mvp_ref:
        mvp = {"ref": existing.mvp_ref, "votes": existing.mvp_votes}
    else:
        mvp = {"ref": derived.mvp_ref, "votes": derived.mvp_votes}

    if computed and existing.golden_glove_ref:
        glove = {"ref": existing.golden_glove_ref, "votes": existing.golden_glove_votes}
    else:
        glove = {"ref": derived.golden_glove_ref, "votes": derived.golden_glove_votes}

    dirty = list(existing.red_card_refs or []) if computed else list(derived.red_card_refs)

    return {
        "version": OUTCOME_SNAPSHOT_VERSION,
        "match_id": match_id,
        "mvp": mvp,
        "golden_glove": glove,
        "dirty_players": dirty,
        "absent": absent_refs,
        "penalized": list(existing.penalty_refs or []) if existing is not None else [],
        "distinct_voters": existing.distinct_voters if computed else derived.distinct_voters,
        "closed_reason": reason,
        "closed_at": closed_at.isoformat(),
    }


# =============================================================================
# Service
# =============================================================================

async def ensure_participants_snapshot(
    store: MatchStore,
    match_id: int,
    clock: Clock = system_clock,
) -> SnapshotOutcome:
    try:
        existing = await store.get_result(match_id)
        if existing is not None and existing.participants_snapshot_ready:
            return SnapshotOutcome(match_id=match_id, kind="participants", created=False, reason="already_snapshotted")

        participants = await store.list_participants(match_id)
        resolver = IdentityResolver.from_participants(participants)
        confirmation = await store.get_team_confirmation(match_id)
        entries, teams = build_participants_snapshot(participants, confirmation, resolver)

        now = clock.now()
        await store.ensure_result_row(match_id, now)
        written = await store.update_result_once(
            match_id,
            "participants_snapshot_ready",
            {
                "participants_snapshot": entries,
                "teams_snapshot": teams,
                "participants_snapshot_at": now,
            },
        )
    except Exception as e:
        logger.warning(f"Participants snapshot for match {match_id} failed: {e}")
        return SnapshotOutcome(match_id=match_id, kind="participants", created=False, reason="failed", error=str(e))

    if written:
        logger.info(f"Participants snapshot frozen for match {match_id} ({len(entries)} entries)")
        return SnapshotOutcome(match_id=match_id, kind="participants", created=True)
    return SnapshotOutcome(match_id=match_id, kind="participants", created=False, reason="already_snapshotted")


async def ensure_outcome_snapshot(
    store: MatchStore,
    match_id: int,
    reason: str = "closed",
    clock: Clock = system_clock,
    rng: Optional[RandomSource] = None,
) -> SnapshotOutcome:
    try:
        existing = await store.get_result(match_id)
        if existing is not None and existing.outcome_snapshot_ready:
            return SnapshotOutcome(match_id=match_id, kind="outcome", created=False, reason="already_snapshotted")

        participants = await store.list_participants(match_id)
        resolver = IdentityResolver.from_participants(participants)
        surveys = await store.list_surveys(match_id)
        derived = compute_local_consensus(match_id, resolver, surveys, rng or default_random())

        absent_refs = []
        for survey in surveys:
            for value in survey.absent_nominees or []:
                ref = resolver.resolve_value(value)
                if ref is not None and ref not in absent_refs:
                    absent_refs.append(ref)

        now = clock.now()
        payload = build_outcome_payload(match_id, existing, derived, absent_refs, reason, now)

        await store.ensure_result_row(match_id, now)
        written = await store.update_result_once(
            match_id,
            "outcome_snapshot_ready",
            {
                "outcome_snapshot": payload,
                "survey_closed_at": now,
                "outcome_snapshot_at": now,
            },
        )
    except Exception as e:
        logger.warning(f"Outcome snapshot for match {match_id} failed: {e}")
        return SnapshotOutcome(match_id=match_id, kind="outcome", created=False, reason="failed", error=str(e))

    if written:
        logger.info(f"Outcome snapshot frozen for match {match_id} (reason={reason})")
        return SnapshotOutcome(match_id=match_id, kind="outcome", created=True)
    return SnapshotOutcome(match_id=match_id, kind="outcome", created=False, reason="already_snapshotted")
