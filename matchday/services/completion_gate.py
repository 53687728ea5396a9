"""
Survey Completion Gate

A match is complete when the number of distinct survey voters reaches the
roster size. This is a quorum count: a substitute voter can stand in for a
participant who never answered. An empty roster is never complete.
"""
import logging

from matchday.schemas.surveys import CompletionStatus
from matchday.services.store import MatchStore

logger = logging.getLogger(__name__)


def is_complete(distinct_voters: int, expected: int) -> bool:
    return expected > 0 and distinct_voters >= expected


async def check_survey_completion(store: MatchStore, match_id: int) -> CompletionStatus:
    expected = await store.count_participants(match_id)
    distinct_voters = await store.count_distinct_survey_voters(match_id)
    complete = is_complete(distinct_voters, expected)

    logger.debug(f"Match {match_id} survey quorum: {distinct_voters}/{expected}")

    return CompletionStatus(
        match_id=match_id,
        expected=expected,
        distinct_voters=distinct_voters,
        complete=complete,
    )
