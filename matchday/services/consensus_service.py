"""
Outcome Consensus Engine

Two election rules over the same survey set:

Single winner (MVP from slot A, golden glove from slot B)
    Highest nomination count wins. Ties are broken by an unweighted coin
    flip among the tied candidates, so re-running on identical input may
    pick a different winner. No nominations means no winner.

Threshold multi-winner (dirty player)
    quorum = ceil(0.25 * distinct voters). Every candidate with at least
    quorum nominations is awarded; zero, one or several winners are valid.

Nominees are normalized to roster ordinals for tallying and winners are
mapped back to stable references before anything is persisted.
"""
import logging
import math
from collections import Counter
from datetime import datetime
from typing import Any, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple

from matchday.core.clock import Clock, system_clock
from matchday.core.identity import IdentityResolver
from matchday.core.randomness import RandomSource, default_random
from matchday.exceptions import CapabilityUnavailableError, ProcedureFailedError
from matchday.orm.survey import SurveyResult
from matchday.schemas.surveys import ConsensusResult
from matchday.services.procedures import COMPUTE_MATCH_AWARDS, ProcedureGateway
from matchday.services.store import MatchStore

logger = logging.getLogger(__name__)

DIRTY_PLAYER_QUORUM_RATIO = 0.25


# =============================================================================
# Election rules (pure)
# =============================================================================

def tally(nominations: Iterable[Optional[Hashable]]) -> Counter:
    """Count nominations, skipping None (unresolved or empty slots)."""
    return Counter(n for n in nominations if n is not None)


def pick_single_winner(counts: Dict[Hashable, int], rng: RandomSource) -> Optional[Hashable]:
    if not counts:
        return None
    top = max(counts.values())
    tied = sorted((c for c, n in counts.items() if n == top), key=str)
    if len(tied) == 1:
        return tied[0]
    return rng.choice(tied)


def dirty_player_quorum(distinct_voters: int) -> int:
    return math.ceil(DIRTY_PLAYER_QUORUM_RATIO * distinct_voters)


def threshold_winners(counts: Dict[Hashable, int], quorum: int) -> List[Hashable]:
    return sorted((c for c, n in counts.items() if n > 0 and n >= quorum), key=str)


# =============================================================================
# Survey tallies
# =============================================================================

def _per_voter(surveys: Sequence[Any]) -> List[Any]:
    """One survey per voter; a concurrent duplicate keeps the earliest row."""
    seen = set()
    unique = []
    for survey in surveys:
        if survey.voter_ref in seen:
            continue
        seen.add(survey.voter_ref)
        unique.append(survey)
    return unique


def resolve_nominees(resolver: IdentityResolver, values: Iterable[Any]) -> List[int]:
    """Distinct roster ordinals for a list of raw nominee values."""
    ordinals = []
    for value in values or []:
        ordinal = resolver.ordinal_for(value)
        if ordinal is not None and ordinal not in ordinals:
            ordinals.append(ordinal)
    return ordinals


def compute_local_consensus(
    match_id: int,
    resolver: IdentityResolver,
    surveys: Sequence[Any],
    rng: RandomSource,
) -> ConsensusResult:
    voters = _per_voter(surveys)

    mvp_counts = tally(resolver.ordinal_for(s.best_player_a) for s in voters)
    glove_counts = tally(resolver.ordinal_for(s.best_player_b) for s in voters)
    dirty_counts = tally(
        ordinal
        for s in voters
        for ordinal in resolve_nominees(resolver, s.dirty_nominees)
    )

    quorum = dirty_player_quorum(len(voters))
    mvp = pick_single_winner(mvp_counts, rng)
    glove = pick_single_winner(glove_counts, rng)
    dirty = threshold_winners(dirty_counts, quorum)

    return ConsensusResult(
        match_id=match_id,
        mvp_ref=resolver.ref_for_ordinal(mvp) if mvp is not None else None,
        mvp_votes=mvp_counts.get(mvp, 0) if mvp is not None else 0,
        golden_glove_ref=resolver.ref_for_ordinal(glove) if glove is not None else None,
        golden_glove_votes=glove_counts.get(glove, 0) if glove is not None else 0,
        red_card_refs=[resolver.ref_for_ordinal(o) for o in dirty],
        distinct_voters=len(voters),
        quorum=quorum,
        source="local",
    )


def _from_remote(
    match_id: int,
    resolver: IdentityResolver,
    payload: Any,
    distinct_voters: int,
) -> Optional[ConsensusResult]:
    """Translate a remote award payload; None when it cannot be used."""
    if not isinstance(payload, dict):
        return None

    mvp = resolver.resolve_value(payload.get("mvp"))
    glove = resolver.resolve_value(payload.get("golden_glove"))
    red_cards = []
    for value in payload.get("red_cards") or []:
        ref = resolver.resolve_value(value)
        if ref is not None and ref not in red_cards:
            red_cards.append(ref)

    return ConsensusResult(
        match_id=match_id,
        mvp_ref=mvp,
        mvp_votes=int(payload.get("mvp_votes") or 0) if mvp else 0,
        golden_glove_ref=glove,
        golden_glove_votes=int(payload.get("golden_glove_votes") or 0) if glove else 0,
        red_card_refs=sorted(red_cards),
        distinct_voters=distinct_voters,
        quorum=dirty_player_quorum(distinct_voters),
        source="remote",
    )


# =============================================================================
# Service
# =============================================================================

async def compute_consensus(
    store: MatchStore,
    match_id: int,
    rng: Optional[RandomSource] = None,
    gateway: Optional[ProcedureGateway] = None,
) -> Tuple[ConsensusResult, IdentityResolver]:
    """
    Compute award winners for a match.

    Tries the remote compute_match_awards procedure first when a gateway is
    given; any capability error or unusable payload falls back to the local
    election.
    """
    rng = rng or default_random()
    participants = await store.list_participants(match_id)
    resolver = IdentityResolver.from_participants(participants)
    surveys = await store.list_surveys(match_id)

    if gateway is not None:
        try:
            payload = await gateway.call(COMPUTE_MATCH_AWARDS, match_id=match_id)
            remote = _from_remote(match_id, resolver, payload, len(_per_voter(surveys)))
            if remote is not None:
                logger.info(f"Match {match_id} awards computed remotely")
                return remote, resolver
            logger.warning(f"Match {match_id}: unusable remote award payload, computing locally")
        except (CapabilityUnavailableError, ProcedureFailedError) as e:
            logger.info(f"Match {match_id}: {e}; computing awards locally")

    result = compute_local_consensus(match_id, resolver, surveys, rng)
    logger.info(
        f"Match {match_id} consensus: mvp={result.mvp_ref} glove={result.golden_glove_ref} "
        f"red={result.red_card_refs} voters={result.distinct_voters}"
    )
    return result, resolver


async def persist_consensus(
    store: MatchStore,
    result: ConsensusResult,
    reveal_at: datetime,
    penalty_refs: Optional[List[str]] = None,
    clock: Clock = system_clock,
) -> SurveyResult:
    """
    Idempotent upsert of the computed awards keyed by match id.

    reveal_at only applies to the first write.
    """
    values = {
        "mvp_ref": result.mvp_ref,
        "mvp_votes": result.mvp_votes,
        "golden_glove_ref": result.golden_glove_ref,
        "golden_glove_votes": result.golden_glove_votes,
        "red_card_refs": list(result.red_card_refs),
        "distinct_voters": result.distinct_voters,
        "awards_source": result.source,
        "penalty_refs": list(penalty_refs or []),
    }
    return await store.upsert_consensus(result.match_id, values, reveal_at, clock.now())
