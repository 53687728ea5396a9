"""
No-show penalty application (stats step).

Lowers the running rating of every penalty-eligible registered absentee by
ABSENCE_PENALTY, never below RATING_FLOOR. Each (match, participant) is
penalized at most once. Guests have no running rating and are skipped.
"""
import logging
from typing import Iterable, List

from matchday.services.store import MatchStore

logger = logging.getLogger(__name__)

ABSENCE_PENALTY = 0.5
RATING_FLOOR = 1.0
DEFAULT_RUNNING_RATING = 5.0


def penalized_rating(current: float) -> float:
    return max(RATING_FLOOR, round(current - ABSENCE_PENALTY, 2))


async def apply_absence_penalties(store: MatchStore, match_id: int, refs: Iterable[str]) -> List[str]:
    """
    Returns the refs penalized by this call.

    Failures for one participant are logged and do not stop the others.
    """
    refs = list(refs)
    if not refs:
        return []

    by_ref = {p.stable_ref: p for p in await store.list_participants(match_id)}
    applied = []
    for ref in refs:
        participant = by_ref.get(ref)
        if participant is None:
            continue
        if not participant.is_registered:
            logger.debug(f"Skipping penalty for guest {ref} in match {match_id}")
            continue
        try:
            change = await store.record_penalty(
                match_id,
                ref,
                participant.account_id,
                ABSENCE_PENALTY,
                penalized_rating,
                DEFAULT_RUNNING_RATING,
            )
        except Exception as e:
            logger.warning(f"Penalty for {ref} in match {match_id} not applied: {e}")
            continue
        if change is None:
            continue
        before, after = change
        applied.append(ref)
        logger.info(f"No-show penalty for {participant.account_id}: {before} -> {after}")
    return applied
