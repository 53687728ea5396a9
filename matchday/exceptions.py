"""
matchday/exceptions.py
Typed exceptions for the rating & outcome engine.

Taxonomy:
- Validation errors: rejected before any write
- Duplicate submissions: one ballot set / survey per voter per match
- Closing failures: every per-participant update failed
- Capability errors: a remote procedure is missing or failed (callers fall back)

Unresolvable participant references are NOT errors; resolvers return None.
"""
from typing import Any, Dict, Optional


class MatchdayError(Exception):
    """Base engine error."""
    code: str = "MATCHDAY_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": type(self).__name__, "message": self.message, "code": self.code}


class ValidationError(MatchdayError):
    """Malformed input rejected synchronously."""
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.details:
            data["details"] = self.details
        return data


class BallotValidationError(ValidationError):
    """Rating ballot set is malformed or empty."""


class SurveyValidationError(ValidationError):
    """Outcome survey is missing required fields."""


class AbsenceValidationError(ValidationError):
    """Absence notice is missing participant or match."""


class DuplicateVoteError(MatchdayError):
    """Voter already submitted a ballot set for this match."""
    code = "DUPLICATE_VOTE"

    def __init__(self, match_id: int, voter_ref: str):
        self.match_id = match_id
        self.voter_ref = voter_ref
        super().__init__(f"Voter {voter_ref} already voted in match {match_id}")


class DuplicateSurveyError(MatchdayError):
    """Voter already submitted an outcome survey for this match."""
    code = "DUPLICATE_SURVEY"

    def __init__(self, match_id: int, voter_ref: str):
        self.match_id = match_id
        self.voter_ref = voter_ref
        super().__init__(f"Voter {voter_ref} already answered the survey for match {match_id}")


class MatchNotFoundError(MatchdayError):
    code = "MATCH_NOT_FOUND"

    def __init__(self, match_id: int):
        self.match_id = match_id
        super().__init__(f"Match {match_id} not found")


class RatingClosureError(MatchdayError):
    """
    Raised when closing produced zero successful rating updates.

    Ballots are NOT deleted when this is raised.
    """
    code = "CLOSING_FAILED"

    def __init__(self, match_id: int, failed: int):
        self.match_id = match_id
        self.failed = failed
        super().__init__(
            f"Could not update any participant of match {match_id} ({failed} updates failed); ballots kept"
        )


class ParticipantUpdateError(MatchdayError):
    """A single participant rating write did not apply."""
    code = "PARTICIPANT_UPDATE_FAILED"


class CapabilityUnavailableError(MatchdayError):
    """Remote procedure does not exist in this deployment."""
    code = "CAPABILITY_UNAVAILABLE"

    def __init__(self, procedure: str):
        self.procedure = procedure
        super().__init__(f"Remote procedure '{procedure}' is not available")


class ProcedureFailedError(MatchdayError):
    """Remote procedure exists but raised or timed out."""
    code = "PROCEDURE_FAILED"

    def __init__(self, procedure: str, reason: str):
        self.procedure = procedure
        self.reason = reason
        super().__init__(f"Remote procedure '{procedure}' failed: {reason}")
