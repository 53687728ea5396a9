"""
Post-match outcome surveys and the per-match result row.

Surveys are insert-only. The result row is upserted by the consensus engine
and later enriched, never overwritten, by the snapshot service.
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from matchday.orm.base import BaseModel, PortableJSON


class OutcomeSurvey(BaseModel):
    __tablename__ = "post_match_surveys"

    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    voter_ref = Column(String(100), nullable=False)

    # Nominees may be stored as stable references or as roster ordinals
    best_player_a = Column(String(100), nullable=True, comment="Best player, side A (MVP pool)")
    best_player_b = Column(String(100), nullable=True, comment="Best player, side B (golden glove pool)")
    dirty_nominees = Column(PortableJSON, nullable=False, default=list)
    absent_nominees = Column(PortableJSON, nullable=False, default=list)

    __table_args__ = (
        UniqueConstraint("match_id", "voter_ref", name="uq_survey_voter"),
    )


class SurveyResult(BaseModel):
    __tablename__ = "survey_results"

    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, unique=True)

    # Computed awards, by stable reference
    mvp_ref = Column(String(100), nullable=True)
    mvp_votes = Column(Integer, nullable=False, default=0)
    golden_glove_ref = Column(String(100), nullable=True)
    golden_glove_votes = Column(Integer, nullable=False, default=0)
    red_card_refs = Column(PortableJSON, nullable=False, default=list)
    distinct_voters = Column(Integer, nullable=False, default=0)
    awards_source = Column(String(20), nullable=True, comment="remote or local")
    penalty_refs = Column(PortableJSON, nullable=False, default=list)

    # Reveal
    results_ready = Column(Boolean, nullable=False, default=False)
    reveal_at = Column(DateTime, nullable=True)
    computed_at = Column(DateTime, nullable=True)
    released_at = Column(DateTime, nullable=True)

    # Frozen history
    participants_snapshot_ready = Column(Boolean, nullable=False, default=False)
    participants_snapshot = Column(PortableJSON, nullable=True)
    teams_snapshot = Column(PortableJSON, nullable=True)
    participants_snapshot_at = Column(DateTime, nullable=True)

    outcome_snapshot_ready = Column(Boolean, nullable=False, default=False)
    outcome_snapshot = Column(PortableJSON, nullable=True)
    survey_closed_at = Column(DateTime, nullable=True)
    outcome_snapshot_at = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<SurveyResult(match_id={self.match_id}, ready={self.results_ready}, reveal_at={self.reveal_at})>"
