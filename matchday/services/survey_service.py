"""
Outcome survey submission.

One insert-only row per voter per match.
"""
import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError

from matchday.exceptions import DuplicateSurveyError, SurveyValidationError
from matchday.orm.survey import OutcomeSurvey
from matchday.schemas.surveys import OutcomeSurveySubmission
from matchday.services.store import MatchStore

logger = logging.getLogger(__name__)


async def submit_survey(store: MatchStore, submission: Any) -> OutcomeSurvey:
    """
    Raises:
        SurveyValidationError: missing or malformed match id / voter reference
        MatchNotFoundError: match does not exist
        DuplicateSurveyError: voter already answered for this match
    """
    if not isinstance(submission, OutcomeSurveySubmission):
        try:
            submission = OutcomeSurveySubmission.model_validate(submission)
        except PydanticValidationError as e:
            raise SurveyValidationError("Invalid outcome survey", details={"errors": e.errors()}) from e

    await store.require_match(submission.match_id)

    if await store.has_survey(submission.match_id, submission.voter_ref):
        raise DuplicateSurveyError(submission.match_id, submission.voter_ref)

    try:
        survey = await store.insert_survey(**submission.model_dump())
    except IntegrityError as e:
        raise DuplicateSurveyError(submission.match_id, submission.voter_ref) from e

    logger.info(f"Survey stored for match {submission.match_id} from {submission.voter_ref}")
    return survey
