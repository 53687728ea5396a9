"""
Absence notices and applied no-show penalties.
"""
from sqlalchemy import Boolean, Column, Float, ForeignKey, Integer, String, Text, UniqueConstraint

from matchday.orm.base import BaseModel


class AbsenceRecord(BaseModel):
    """
    Notice given by a participant who will not show up.

    notified_in_time is frozen at notice time (>= 4h before kick-off).
    """
    __tablename__ = "absence_records"

    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    participant_ref = Column(String(100), nullable=False, index=True)
    reason = Column(Text, nullable=False, default="")
    hours_before_match = Column(Float, nullable=False, default=0.0)
    notified_in_time = Column(Boolean, nullable=False, default=False)
    found_replacement = Column(Boolean, nullable=False, default=False)


class NoShowPenalty(BaseModel):
    """One row per penalized participant per match; makes penalty application idempotent."""
    __tablename__ = "no_show_penalties"

    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    participant_ref = Column(String(100), nullable=False)
    account_id = Column(String(100), nullable=False)
    amount = Column(Float, nullable=False)
    rating_before = Column(Float, nullable=True)
    rating_after = Column(Float, nullable=True)

    __table_args__ = (
        UniqueConstraint("match_id", "participant_ref", name="uq_no_show_penalty"),
    )
