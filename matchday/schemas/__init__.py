from matchday.schemas.ballots import BallotSubmissionReceipt, ClosingReport, ParticipantRating, RatingBallotSubmission
from matchday.schemas.surveys import (
    AbsenceNotice,
    AbsenceVerdict,
    CompletionStatus,
    ConsensusResult,
    FinalizeOutcome,
    OutcomeSurveySubmission,
    ReleaseOutcome,
)
from matchday.schemas.notifications import FanoutResult, FanoutTier, ScheduleReport
from matchday.schemas.snapshots import SnapshotOutcome

__all__ = [
    "AbsenceNotice",
    "AbsenceVerdict",
    "BallotSubmissionReceipt",
    "ClosingReport",
    "CompletionStatus",
    "ConsensusResult",
    "FanoutResult",
    "FanoutTier",
    "FinalizeOutcome",
    "OutcomeSurveySubmission",
    "ParticipantRating",
    "RatingBallotSubmission",
    "ReleaseOutcome",
    "ScheduleReport",
    "SnapshotOutcome",
]
