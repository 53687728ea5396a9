"""
Rating Closer

Aggregates a match's ballots into per-participant average rating and
goalkeeper flag, then purges the ballots.

Flow:
1. Load roster and ballots
2. aggregate_ratings() (pure)
3. Issue every participant update concurrently, tracking each result
4. If every update failed: raise RatingClosureError, ballots are kept
5. Otherwise delete all ballots of the match and report the counts

Successful updates are never rolled back when others fail.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from matchday.core.identity import IdentityResolver
from matchday.exceptions import RatingClosureError
from matchday.orm.ballot import GOALKEEPER_MARK, MAX_SCORE, MIN_SCORE
from matchday.schemas.ballots import ClosingReport, ParticipantRating
from matchday.services.store import MatchStore

logger = logging.getLogger(__name__)

NEUTRAL_RATING = 5


def resolve_ballot_target(resolver: IdentityResolver, ballot) -> Optional[int]:
    """Roster ordinal for a ballot row, or None when the target left the roster."""
    ref = resolver.resolve(
        by_uuid=ballot.target_ref,
        by_ordinal_id=ballot.target_participant_id,
        by_account_id=ballot.target_ref,
    )
    if ref is None:
        return None
    return resolver.ordinal_for(ref)


def aggregate_ratings(
    participant_ids: Iterable[int],
    scored: Iterable[tuple],
) -> Dict[int, ParticipantRating]:
    """
    Pure aggregation.

    Args:
        participant_ids: roster ordinals
        scored: (participant_id, score) pairs; ids outside the roster are ignored

    Returns:
        participant_id -> ParticipantRating with the mean of valid scores
        rounded to 2 decimals (NEUTRAL_RATING when none), and the goalkeeper
        flag set if any ballot carried GOALKEEPER_MARK.
    """
    roster = list(participant_ids)
    known = set(roster)
    numeric: Dict[int, List[float]] = defaultdict(list)
    goalkeepers = set()

    for participant_id, score in scored:
        if participant_id not in known:
            continue
        if score == GOALKEEPER_MARK:
            goalkeepers.add(participant_id)
        elif MIN_SCORE <= score <= MAX_SCORE:
            numeric[participant_id].append(score)

    ratings = {}
    for participant_id in roster:
        values = numeric.get(participant_id, [])
        if values:
            average = round(sum(values) / len(values), 2)
        else:
            average = float(NEUTRAL_RATING)
        ratings[participant_id] = ParticipantRating(
            participant_id=participant_id,
            average=average,
            is_goalkeeper=participant_id in goalkeepers,
            votes=len(values),
        )
    return ratings


async def close_voting(store: MatchStore, match_id: int) -> ClosingReport:
    """
    Close the rating round of a match.

    Raises:
        MatchNotFoundError: match does not exist
        RatingClosureError: no participant update succeeded (ballots kept)
    """
    await store.require_match(match_id)
    participants = await store.list_participants(match_id)
    ballots = await store.list_ballots(match_id)

    if not participants:
        logger.warning(f"Match {match_id} has no roster; nothing to close")
        return ClosingReport(match_id=match_id, participants=0, updated=0, failed=0)

    resolver = IdentityResolver.from_participants(participants)
    scored = []
    unresolved = 0
    for ballot in ballots:
        participant_id = resolve_ballot_target(resolver, ballot)
        if participant_id is None:
            unresolved += 1
            continue
        scored.append((participant_id, ballot.score))
    if unresolved:
        logger.info(f"Match {match_id}: {unresolved} ballots target participants no longer on the roster")

    ratings = aggregate_ratings([p.id for p in participants], scored)
    for participant in participants:
        ratings[participant.id].ref = participant.stable_ref

    results = await asyncio.gather(
        *(
            store.update_participant_rating(rating.participant_id, rating.average, rating.is_goalkeeper)
            for rating in ratings.values()
        ),
        return_exceptions=True,
    )

    failed = 0
    for rating, outcome in zip(ratings.values(), results):
        if isinstance(outcome, BaseException):
            failed += 1
            logger.warning(f"Rating update for participant {rating.participant_id} failed: {outcome}")
    updated = len(results) - failed

    if updated == 0:
        logger.error(f"Closing match {match_id}: all {failed} participant updates failed; ballots kept")
        raise RatingClosureError(match_id, failed)

    deleted = await store.delete_ballots(match_id)

    if failed:
        logger.warning(f"Closed match {match_id} partially: {updated} updated, {failed} failed")
    else:
        logger.info(f"Closed match {match_id}: {updated} participants rated, {deleted} ballots purged")

    return ClosingReport(
        match_id=match_id,
        participants=len(participants),
        updated=updated,
        failed=failed,
        ballots_deleted=deleted,
        ratings=ratings,
    )
