"""
Registered player profiles and granted awards.

Only registered players (participants with an account id) carry a running
rating and badge counters; guests are skipped by grants and penalties.
"""
from enum import Enum

from sqlalchemy import Column, Float, ForeignKey, Integer, String, UniqueConstraint

from matchday.orm.base import BaseModel


class AwardType(str, Enum):
    MVP = "mvp"
    GOLDEN_GLOVE = "golden_glove"
    DIRTY_PLAYER = "dirty_player"


BADGE_COLUMNS = {
    AwardType.MVP.value: "mvp_badges",
    AwardType.GOLDEN_GLOVE.value: "gk_badges",
    AwardType.DIRTY_PLAYER.value: "red_badges",
}


class PlayerProfile(BaseModel):
    __tablename__ = "player_profiles"

    account_id = Column(String(100), nullable=False, unique=True, index=True)
    display_name = Column(String(120), nullable=True)
    ranking = Column(Float, nullable=False, default=5.0)
    mvp_badges = Column(Integer, nullable=False, default=0)
    gk_badges = Column(Integer, nullable=False, default=0)
    red_badges = Column(Integer, nullable=False, default=0)


class PlayerAward(BaseModel):
    __tablename__ = "player_awards"

    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    participant_ref = Column(String(100), nullable=False)
    account_id = Column(String(100), nullable=False)
    award_type = Column(String(30), nullable=False)

    __table_args__ = (
        UniqueConstraint("match_id", "award_type", "participant_ref", name="uq_player_award"),
    )
