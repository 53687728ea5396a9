"""
matchday/schemas/ballots.py
Pydantic schemas for rating ballot submission and closing reports
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


# ================= SUBMISSION =================

class RatingBallotSubmission(BaseModel):
    """
    One voter's complete rating submission for a match.

    scores maps a target reference (uuid, account id or roster ordinal) to a
    raw score. Raw scores are validated per entry by the ballot service, not
    here: out-of-range values are dropped rather than rejected.
    """
    match_id: int = Field(..., gt=0, description="Match being rated")
    voter_ref: str = Field(..., min_length=1, max_length=100, description="Account id or match-scoped guest id")
    is_guest: bool = Field(False, description="Voter is a guest pseudo-identity")
    scores: Dict[str, Any] = Field(..., description="target reference -> raw score")

    @field_validator("voter_ref")
    @classmethod
    def voter_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("voter_ref must not be blank")
        return value

    @field_validator("scores", mode="before")
    @classmethod
    def scores_not_empty(cls, value: Any) -> Any:
        if isinstance(value, dict):
            value = {str(key).strip(): score for key, score in value.items() if str(key).strip()}
            if not value:
                raise ValueError("ballot set must contain at least one score")
        return value

    class Config:
        json_schema_extra = {
            "example": {
                "match_id": 42,
                "voter_ref": "acct-7",
                "is_guest": False,
                "scores": {"u-1": 7, "u-2": -2, "13": 9}
            }
        }


class BallotSubmissionReceipt(BaseModel):
    match_id: int
    voter_ref: str
    stored: int = Field(..., ge=0, description="Ballot rows written")
    dropped: int = Field(..., ge=0, description="Entries dropped as out of range")
    goalkeeper_marks: int = Field(0, ge=0)


# ================= CLOSING =================

class ParticipantRating(BaseModel):
    """Aggregated rating for one participant."""
    participant_id: int
    ref: Optional[str] = None
    average: float = Field(..., ge=1, le=10)
    is_goalkeeper: bool = False
    votes: int = Field(0, ge=0, description="Valid numeric ballots counted")


class ClosingReport(BaseModel):
    """Outcome of closing a match's rating round."""
    match_id: int
    participants: int = Field(..., ge=0)
    updated: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    ballots_deleted: int = Field(0, ge=0)
    ratings: Dict[int, ParticipantRating] = Field(default_factory=dict)

    @property
    def partial(self) -> bool:
        return self.failed > 0 and self.updated > 0
