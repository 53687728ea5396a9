"""
Match, roster and confirmed team split.

Matches and participants are created by the external match-creation and
roster-join flows. The engine mutates participant ratings/goalkeeper flags
on closing and never deletes any of these rows.
"""
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from matchday.core.identity import stable_ref_for
from matchday.orm.base import BaseModel, PortableJSON


class MatchState(str, Enum):
    ACTIVE = "active"
    FINISHED = "finished"


class Match(BaseModel):
    __tablename__ = "matches"

    name = Column(String(200), nullable=True)
    starts_at = Column(DateTime, nullable=False, comment="Scheduled kick-off, naive UTC")
    venue = Column(String(300), nullable=True)
    capacity = Column(Integer, nullable=False, default=10)
    creator_ref = Column(String(100), nullable=True, comment="Account id of the match admin")
    state = Column(String(20), nullable=False, default=MatchState.ACTIVE.value)
    mode = Column(String(40), nullable=True)

    participants = relationship(
        "Participant",
        back_populates="match",
        order_by="Participant.id",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Match(id={self.id}, starts_at={self.starts_at}, state={self.state})>"


class Participant(BaseModel):
    """
    A roster slot.

    id is the ordinal reference; uuid is the per-slot stable id; account_id
    is set only for registered (non-guest) players.
    """
    __tablename__ = "participants"

    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    uuid = Column(String(64), nullable=True, index=True)
    account_id = Column(String(100), nullable=True, index=True)
    display_name = Column(String(120), nullable=False, default="Jugador")
    avatar_url = Column(String(500), nullable=True)
    average_rating = Column(Float, nullable=True)
    is_goalkeeper = Column(Boolean, nullable=False, default=False)

    match = relationship("Match", back_populates="participants")

    @property
    def stable_ref(self) -> Optional[str]:
        return stable_ref_for(self.id, self.uuid, self.account_id)

    @property
    def is_registered(self) -> bool:
        return bool(self.account_id)

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ref": self.stable_ref,
            "uuid": self.uuid,
            "account_id": self.account_id,
            "display_name": self.display_name or "Jugador",
            "avatar_url": self.avatar_url,
            "rating": self.average_rating,
            "is_goalkeeper": bool(self.is_goalkeeper),
        }

    def __repr__(self) -> str:
        return f"<Participant(id={self.id}, match_id={self.match_id}, ref={self.stable_ref})>"


class TeamConfirmation(BaseModel):
    """
    Team split confirmed by the match admin before kick-off.

    Preferred over the live roster when freezing history.
    """
    __tablename__ = "team_confirmations"

    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, unique=True)
    participants = Column(PortableJSON, nullable=True)
    team_a = Column(PortableJSON, nullable=True)
    team_b = Column(PortableJSON, nullable=True)
    teams_json = Column(PortableJSON, nullable=True)
    confirmed_at = Column(DateTime, nullable=True)
