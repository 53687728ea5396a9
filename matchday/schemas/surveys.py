"""
matchday/schemas/surveys.py
Pydantic schemas for outcome surveys, consensus and finalization
"""
from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator

NomineeValue = Union[int, str]


def _clean_nominee(value: Optional[NomineeValue]) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


# ================= SUBMISSION =================

class OutcomeSurveySubmission(BaseModel):
    """
    A voter's post-match survey.

    Nominees may be stable references or roster ordinals; they are stored as
    text and resolved when results are computed.
    """
    match_id: int = Field(..., gt=0)
    voter_ref: str = Field(..., min_length=1, max_length=100)
    best_player_a: Optional[NomineeValue] = Field(None, description="MVP nominee")
    best_player_b: Optional[NomineeValue] = Field(None, description="Golden glove nominee")
    dirty_nominees: List[NomineeValue] = Field(default_factory=list)
    absent_nominees: List[NomineeValue] = Field(default_factory=list)

    @field_validator("voter_ref")
    @classmethod
    def voter_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("voter_ref must not be blank")
        return value

    @field_validator("best_player_a", "best_player_b")
    @classmethod
    def normalize_slot(cls, value: Optional[NomineeValue]) -> Optional[str]:
        return _clean_nominee(value)

    @field_validator("dirty_nominees", "absent_nominees")
    @classmethod
    def normalize_list(cls, value: List[NomineeValue]) -> List[str]:
        seen: List[str] = []
        for item in value:
            cleaned = _clean_nominee(item)
            if cleaned is not None and cleaned not in seen:
                seen.append(cleaned)
        return seen


class AbsenceNotice(BaseModel):
    match_id: int = Field(..., gt=0)
    participant_ref: str = Field(..., min_length=1, max_length=100)
    reason: str = Field("", max_length=2000)
    found_replacement: bool = False


# ================= GATE / CONSENSUS =================

class CompletionStatus(BaseModel):
    match_id: int
    expected: int = Field(..., ge=0, description="Roster size")
    distinct_voters: int = Field(..., ge=0)
    complete: bool


class ConsensusResult(BaseModel):
    """Winners by stable reference."""
    match_id: int
    mvp_ref: Optional[str] = None
    mvp_votes: int = 0
    golden_glove_ref: Optional[str] = None
    golden_glove_votes: int = 0
    red_card_refs: List[str] = Field(default_factory=list)
    distinct_voters: int = 0
    quorum: int = 0
    source: str = Field("local", description="remote | local")


class AbsenceVerdict(BaseModel):
    ref: str
    has_record: bool
    notified_in_time: bool = False
    found_replacement: bool = False
    penalty_eligible: bool


# ================= ORCHESTRATION =================

class FinalizeOutcome(BaseModel):
    match_id: int
    status: str = Field(..., description="incomplete | finalized | released")
    completion: CompletionStatus
    consensus: Optional[ConsensusResult] = None
    absences: List[AbsenceVerdict] = Field(default_factory=list)
    reveal_at: Optional[datetime] = None
    notifications_scheduled: int = 0
    participants_snapshot: bool = False

    @property
    def finalized(self) -> bool:
        return self.status == "finalized"


class ReleaseOutcome(BaseModel):
    match_id: int
    status: str = Field(..., description="missing | pending | released | already_released")
    reveal_at: Optional[datetime] = None
    awards_granted: int = 0
    guests_skipped: List[str] = Field(default_factory=list)
    penalties_applied: int = 0
    outcome_snapshot: bool = False
