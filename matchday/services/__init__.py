"""
Engine services, one module per component:

ballot_service       rating ballot submission
rating_closer        rating aggregation and ballot purge
survey_service       outcome survey submission
completion_gate      survey quorum check
consensus_service    award elections
absence_service      absence notices and penalty eligibility
penalty_service      no-show penalty application
awards_service       award grants and badges
reveal_scheduler     reveal delay, reveal notifications, release
notification_service interim event fan-out
snapshot_service     historical freezes
finalize_service     finalize orchestration
"""
from matchday.services.procedures import ProcedureGateway
from matchday.services.store import MatchStore

__all__ = ["MatchStore", "ProcedureGateway"]
