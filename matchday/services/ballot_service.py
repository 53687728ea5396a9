"""
Rating Ballot Store

Accepts pre-match skill ballots.

Rules:
- voter reference must be non-empty, match id a positive id, ballot set non-empty
- one ballot set per voter per match (pre-check plus UNIQUE constraint)
- GOALKEEPER_MARK marks the target as goalkeeper, never averaged
- ABSTAIN_MARK is kept but never averaged
- any other value outside [1, 10] (or non-numeric) is dropped silently
"""
import logging
import math
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError

from matchday.core.identity import OrdinalRef, parse_reference
from matchday.exceptions import BallotValidationError, DuplicateVoteError
from matchday.orm.ballot import ABSTAIN_MARK, GOALKEEPER_MARK, MAX_SCORE, MIN_SCORE
from matchday.schemas.ballots import BallotSubmissionReceipt, RatingBallotSubmission
from matchday.services.store import MatchStore

logger = logging.getLogger(__name__)


def normalize_score(raw: Any) -> Optional[float]:
    """
    Map a raw score to what gets stored, or None to drop it.

    bools are not scores even though Python treats them as ints.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    if value in (GOALKEEPER_MARK, ABSTAIN_MARK):
        return value
    if MIN_SCORE <= value <= MAX_SCORE:
        return value
    return None


def build_ballot_rows(scores: Dict[str, Any]) -> Tuple[List[Dict[str, Any]], int]:
    """Returns (rows to store, number of dropped entries)."""
    rows = []
    dropped = 0
    for target, raw in scores.items():
        score = normalize_score(raw)
        ref = parse_reference(target)
        if score is None or ref is None:
            dropped += 1
            continue
        rows.append({
            "target_ref": str(target).strip(),
            "target_participant_id": ref.value if isinstance(ref, OrdinalRef) else None,
            "score": score,
        })
    return rows, dropped


async def has_voted(store: MatchStore, match_id: int, voter_ref: str) -> bool:
    return await store.has_ballot_set(match_id, voter_ref)


async def submit_ballot(store: MatchStore, submission: Any) -> BallotSubmissionReceipt:
    """
    Validate and store one voter's ballot set.

    Args:
        submission: RatingBallotSubmission or a plain dict of its fields

    Raises:
        BallotValidationError: malformed ids or empty ballot set
        MatchNotFoundError: match does not exist
        DuplicateVoteError: voter already submitted for this match
    """
    if not isinstance(submission, RatingBallotSubmission):
        try:
            submission = RatingBallotSubmission.model_validate(submission)
        except PydanticValidationError as e:
            raise BallotValidationError("Invalid rating ballot", details={"errors": e.errors()}) from e

    rows, dropped = build_ballot_rows(submission.scores)
    if not rows:
        raise BallotValidationError(
            "Ballot set has no valid scores",
            details={"match_id": submission.match_id, "dropped": dropped},
        )

    await store.require_match(submission.match_id)

    # Advisory pre-check; the UNIQUE constraint below is authoritative
    if await store.has_ballot_set(submission.match_id, submission.voter_ref):
        raise DuplicateVoteError(submission.match_id, submission.voter_ref)

    try:
        stored = await store.insert_ballot_set(
            submission.match_id,
            submission.voter_ref,
            rows,
            is_guest=submission.is_guest,
        )
    except IntegrityError as e:
        logger.info(f"Concurrent duplicate ballot for match {submission.match_id} by {submission.voter_ref}")
        raise DuplicateVoteError(submission.match_id, submission.voter_ref) from e

    goalkeeper_marks = sum(1 for row in rows if row["score"] == GOALKEEPER_MARK)
    if dropped:
        logger.debug(f"Dropped {dropped} out-of-range scores from {submission.voter_ref}")
    logger.info(f"Stored {stored} ballots for match {submission.match_id} from {submission.voter_ref}")

    return BallotSubmissionReceipt(
        match_id=submission.match_id,
        voter_ref=submission.voter_ref,
        stored=stored,
        dropped=dropped,
        goalkeeper_marks=goalkeeper_marks,
    )
