"""
ORM models.

Importing this package registers every table on Base.metadata.
"""
from matchday.orm.base import Base, BaseModel, PortableJSON
from matchday.orm.match import Match, MatchState, Participant, TeamConfirmation
from matchday.orm.ballot import (
    ABSTAIN_MARK,
    GOALKEEPER_MARK,
    MAX_SCORE,
    MIN_SCORE,
    RatingBallot,
    RatingBallotSet,
)
from matchday.orm.survey import OutcomeSurvey, SurveyResult
from matchday.orm.absence import AbsenceRecord, NoShowPenalty
from matchday.orm.notification import NotificationStatus, NotificationType, ScheduledNotification
from matchday.orm.profile import BADGE_COLUMNS, AwardType, PlayerAward, PlayerProfile

__all__ = [
    "ABSTAIN_MARK",
    "AbsenceRecord",
    "AwardType",
    "BADGE_COLUMNS",
    "Base",
    "BaseModel",
    "GOALKEEPER_MARK",
    "MAX_SCORE",
    "MIN_SCORE",
    "Match",
    "MatchState",
    "NoShowPenalty",
    "NotificationStatus",
    "NotificationType",
    "OutcomeSurvey",
    "Participant",
    "PlayerAward",
    "PlayerProfile",
    "PortableJSON",
    "RatingBallot",
    "RatingBallotSet",
    "ScheduledNotification",
    "SurveyResult",
    "TeamConfirmation",
]
