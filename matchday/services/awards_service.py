"""
Award grants.

Records player_awards rows for the revealed winners and bumps the matching
badge counter on each registered winner's profile. Guests cannot hold
badges and are reported back instead.
"""
import logging
from typing import List, Tuple

from matchday.orm.profile import AwardType
from matchday.services.store import MatchStore

logger = logging.getLogger(__name__)


def award_pairs(result) -> List[Tuple[str, str]]:
    """(award_type, ref) for every winner on a result row."""
    pairs = []
    if result.mvp_ref:
        pairs.append((AwardType.MVP.value, result.mvp_ref))
    if result.golden_glove_ref:
        pairs.append((AwardType.GOLDEN_GLOVE.value, result.golden_glove_ref))
    for ref in result.red_card_refs or []:
        pairs.append((AwardType.DIRTY_PLAYER.value, ref))
    return pairs


async def grant_awards(store: MatchStore, match_id: int) -> Tuple[int, List[str]]:
    """
    Returns (awards newly granted, guest refs skipped). Idempotent.
    """
    result = await store.get_result(match_id)
    if result is None:
        return 0, []

    by_ref = {p.stable_ref: p for p in await store.list_participants(match_id)}
    granted = 0
    guests = []
    for award_type, ref in award_pairs(result):
        participant = by_ref.get(ref)
        if participant is None or not participant.is_registered:
            if ref not in guests:
                guests.append(ref)
            continue
        try:
            if await store.record_award(match_id, ref, participant.account_id, award_type):
                granted += 1
        except Exception as e:
            logger.warning(f"Award {award_type} for {ref} in match {match_id} not granted: {e}")

    logger.info(f"Match {match_id}: {granted} awards granted, {len(guests)} guest winners skipped")
    return granted, guests
