"""
Pre-match rating ballots.

A ballot set is one voter's full submission for one match; each ballot row
is one (target, score) pair. Both tables are append-only until the match's
voting is closed, at which point every row for the match is purged.
"""
from sqlalchemy import Column, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from matchday.orm.base import BaseModel

GOALKEEPER_MARK = -2
ABSTAIN_MARK = -1
MIN_SCORE = 1
MAX_SCORE = 10


class RatingBallotSet(BaseModel):
    """
    One row per (match, voter).

    The unique constraint is the real duplicate-vote guard; the service's
    pre-check only gives a friendlier early failure.
    """
    __tablename__ = "rating_ballot_sets"

    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    voter_ref = Column(String(100), nullable=False)
    is_guest = Column(Integer, nullable=False, default=0)

    ballots = relationship("RatingBallot", back_populates="ballot_set", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("match_id", "voter_ref", name="uq_ballot_set_voter"),
    )


class RatingBallot(BaseModel):
    __tablename__ = "rating_ballots"

    ballot_set_id = Column(
        Integer,
        ForeignKey("rating_ballot_sets.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    voter_ref = Column(String(100), nullable=False)

    # Target as submitted: a free-form reference (uuid or account id) and/or
    # the roster ordinal. Resolved through IdentityResolver when closing.
    target_ref = Column(String(100), nullable=True)
    target_participant_id = Column(Integer, nullable=True)

    score = Column(Float, nullable=False)

    ballot_set = relationship("RatingBallotSet", back_populates="ballots")

    def __repr__(self) -> str:
        return f"<RatingBallot(match_id={self.match_id}, voter={self.voter_ref}, score={self.score})>"
