"""
Match Store

Relational store capability used by every engine component.

Each public coroutine opens its own short-lived session, so per-item writes
(participant ratings, per-recipient notifications) can be issued
concurrently with asyncio.gather and succeed or fail independently.
Committed writes to survey_results and rating ballots are announced on the
change feed when one is attached.

Upserts use the dialect's INSERT .. ON CONFLICT (SQLite and PostgreSQL).
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine

from matchday.database import build_session_factory
from matchday.exceptions import MatchNotFoundError, ParticipantUpdateError
from matchday.orm.absence import AbsenceRecord, NoShowPenalty
from matchday.orm.ballot import RatingBallot, RatingBallotSet
from matchday.orm.match import Match, Participant, TeamConfirmation
from matchday.orm.notification import NotificationStatus, ScheduledNotification
from matchday.orm.profile import BADGE_COLUMNS, PlayerAward, PlayerProfile
from matchday.orm.survey import OutcomeSurvey, SurveyResult
from matchday.realtime.broadcast_adapter import ChangeFeed

logger = logging.getLogger(__name__)

RESULTS_TABLE = "survey_results"
BALLOTS_TABLE = "rating_ballots"


class MatchStore:
    def __init__(self, engine: AsyncEngine, change_feed: Optional[ChangeFeed] = None):
        self.engine = engine
        self.session_factory = build_session_factory(engine)
        self.change_feed = change_feed

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def _insert(self, model):
        if self.dialect_name == "postgresql":
            return postgresql.insert(model)
        return sqlite.insert(model)

    async def _announce(self, table: str, match_id: int, action: str, payload: Optional[Dict[str, Any]] = None):
        if self.change_feed is None:
            return
        await self.change_feed.emit(table, match_id, action, payload)

    # =========================================================================
    # Matches & roster
    # =========================================================================

    async def create_match(self, starts_at: datetime, **values) -> Match:
        """Stand-in for the external match-creation flow."""
        async with self.session_factory() as db:
            match = Match(starts_at=starts_at, **values)
            db.add(match)
            await db.commit()
            await db.refresh(match, attribute_names=["participants"])
            return match

    async def add_participant(self, match_id: int, **values) -> Participant:
        """Stand-in for the external roster-join flow."""
        async with self.session_factory() as db:
            participant = Participant(match_id=match_id, **values)
            db.add(participant)
            await db.commit()
            return participant

    async def get_match(self, match_id: int) -> Optional[Match]:
        async with self.session_factory() as db:
            return await db.get(Match, match_id)

    async def require_match(self, match_id: int) -> Match:
        match = await self.get_match(match_id)
        if match is None:
            raise MatchNotFoundError(match_id)
        return match

    async def set_match_state(self, match_id: int, state: str) -> bool:
        async with self.session_factory() as db:
            result = await db.execute(
                update(Match)
                .where(Match.id == match_id, Match.state != state)
                .values(state=state, updated_at=datetime.utcnow())
            )
            await db.commit()
            return result.rowcount == 1

    async def list_participants(self, match_id: int) -> List[Participant]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Participant)
                .where(Participant.match_id == match_id)
                .order_by(Participant.id)
            )
            return list(result.scalars().all())

    async def count_participants(self, match_id: int) -> int:
        async with self.session_factory() as db:
            result = await db.execute(
                select(func.count(Participant.id)).where(Participant.match_id == match_id)
            )
            return result.scalar_one()

    async def update_participant_rating(self, participant_id: int, average: float, is_goalkeeper: bool) -> None:
        """Single-statement write; raises ParticipantUpdateError if no row changed."""
        async with self.session_factory() as db:
            result = await db.execute(
                update(Participant)
                .where(Participant.id == participant_id)
                .values(
                    average_rating=average,
                    is_goalkeeper=is_goalkeeper,
                    updated_at=datetime.utcnow(),
                )
            )
            await db.commit()
        if result.rowcount != 1:
            raise ParticipantUpdateError(f"Participant {participant_id} not updated")

    async def get_team_confirmation(self, match_id: int) -> Optional[TeamConfirmation]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(TeamConfirmation).where(TeamConfirmation.match_id == match_id)
            )
            return result.scalar_one_or_none()

    async def save_team_confirmation(self, match_id: int, **values) -> TeamConfirmation:
        async with self.session_factory() as db:
            confirmation = TeamConfirmation(match_id=match_id, **values)
            db.add(confirmation)
            await db.commit()
            return confirmation

    # =========================================================================
    # Rating ballots
    # =========================================================================

    async def has_ballot_set(self, match_id: int, voter_ref: str) -> bool:
        async with self.session_factory() as db:
            result = await db.execute(
                select(RatingBallotSet.id).where(
                    RatingBallotSet.match_id == match_id,
                    RatingBallotSet.voter_ref == voter_ref,
                )
            )
            return result.first() is not None

    async def insert_ballot_set(
        self,
        match_id: int,
        voter_ref: str,
        rows: Iterable[Dict[str, Any]],
        is_guest: bool = False,
    ) -> int:
        """
        Insert one ballot set with its rows in a single transaction.

        Raises sqlalchemy IntegrityError when the voter already holds a set
        for this match.
        """
        rows = list(rows)
        async with self.session_factory() as db:
            ballot_set = RatingBallotSet(match_id=match_id, voter_ref=voter_ref, is_guest=int(is_guest))
            ballot_set.ballots = [
                RatingBallot(match_id=match_id, voter_ref=voter_ref, **row) for row in rows
            ]
            db.add(ballot_set)
            await db.commit()

        await self._announce(BALLOTS_TABLE, match_id, "insert", {"voter_ref": voter_ref, "rows": len(rows)})
        return len(rows)

    async def list_ballots(self, match_id: int) -> List[RatingBallot]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(RatingBallot)
                .where(RatingBallot.match_id == match_id)
                .order_by(RatingBallot.id)
            )
            return list(result.scalars().all())

    async def delete_ballots(self, match_id: int) -> int:
        """Purge every ballot row and ballot set of the match. Returns ballot rows deleted."""
        async with self.session_factory() as db:
            result = await db.execute(delete(RatingBallot).where(RatingBallot.match_id == match_id))
            await db.execute(delete(RatingBallotSet).where(RatingBallotSet.match_id == match_id))
            await db.commit()

        await self._announce(BALLOTS_TABLE, match_id, "delete", {"rows": result.rowcount})
        return result.rowcount

    # =========================================================================
    # Outcome surveys
    # =========================================================================

    async def has_survey(self, match_id: int, voter_ref: str) -> bool:
        async with self.session_factory() as db:
            result = await db.execute(
                select(OutcomeSurvey.id).where(
                    OutcomeSurvey.match_id == match_id,
                    OutcomeSurvey.voter_ref == voter_ref,
                )
            )
            return result.first() is not None

    async def insert_survey(self, **values) -> OutcomeSurvey:
        async with self.session_factory() as db:
            survey = OutcomeSurvey(**values)
            db.add(survey)
            await db.commit()
            return survey

    async def list_surveys(self, match_id: int) -> List[OutcomeSurvey]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(OutcomeSurvey)
                .where(OutcomeSurvey.match_id == match_id)
                .order_by(OutcomeSurvey.id)
            )
            return list(result.scalars().all())

    async def count_distinct_survey_voters(self, match_id: int) -> int:
        async with self.session_factory() as db:
            result = await db.execute(
                select(func.count(func.distinct(OutcomeSurvey.voter_ref)))
                .where(OutcomeSurvey.match_id == match_id)
            )
            return result.scalar_one()

    # =========================================================================
    # Survey results
    # =========================================================================

    async def get_result(self, match_id: int) -> Optional[SurveyResult]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(SurveyResult).where(SurveyResult.match_id == match_id)
            )
            return result.scalar_one_or_none()

    async def upsert_consensus(
        self,
        match_id: int,
        values: Dict[str, Any],
        reveal_at: datetime,
        now: datetime,
    ) -> SurveyResult:
        """
        Idempotent upsert keyed by match id.

        The first write sets results_ready=False and reveal_at. A later write
        refreshes the computed fields only; an existing reveal_at is kept and
        readiness and snapshot columns are left untouched.
        """
        stmt = self._insert(SurveyResult).values(
            match_id=match_id,
            results_ready=False,
            reveal_at=reveal_at,
            computed_at=now,
            created_at=now,
            updated_at=now,
            **values,
        )
        refresh = {key: stmt.excluded[key] for key in values}
        refresh.update(
            computed_at=stmt.excluded.computed_at,
            updated_at=stmt.excluded.updated_at,
            reveal_at=func.coalesce(SurveyResult.reveal_at, stmt.excluded.reveal_at),
        )
        stmt = stmt.on_conflict_do_update(index_elements=["match_id"], set_=refresh)

        async with self.session_factory() as db:
            await db.execute(stmt)
            await db.commit()

        row = await self.get_result(match_id)
        await self._announce(RESULTS_TABLE, match_id, "upsert", {"computed_at": now.isoformat()})
        return row

    async def ensure_result_row(self, match_id: int, now: datetime) -> None:
        """Create an empty result row if none exists yet."""
        stmt = self._insert(SurveyResult).values(
            match_id=match_id,
            results_ready=False,
            created_at=now,
            updated_at=now,
        ).on_conflict_do_nothing(index_elements=["match_id"])
        async with self.session_factory() as db:
            await db.execute(stmt)
            await db.commit()

    async def update_result_once(self, match_id: int, flag: str, values: Dict[str, Any]) -> bool:
        """
        Set flag=True together with values, only if flag is still False.

        Returns True when this call performed the write.
        """
        column = getattr(SurveyResult, flag)
        async with self.session_factory() as db:
            result = await db.execute(
                update(SurveyResult)
                .where(SurveyResult.match_id == match_id, column == False)  # noqa: E712
                .values({flag: True, "updated_at": datetime.utcnow(), **values})
            )
            await db.commit()

        written = result.rowcount == 1
        if written:
            await self._announce(RESULTS_TABLE, match_id, "update", {"flag": flag})
        return written

    # =========================================================================
    # Absences & penalties
    # =========================================================================

    async def insert_absence(self, **values) -> AbsenceRecord:
        async with self.session_factory() as db:
            record = AbsenceRecord(**values)
            db.add(record)
            await db.commit()
            return record

    async def list_absences(self, match_id: int) -> List[AbsenceRecord]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(AbsenceRecord)
                .where(AbsenceRecord.match_id == match_id)
                .order_by(AbsenceRecord.id)
            )
            return list(result.scalars().all())

    async def record_penalty(
        self,
        match_id: int,
        participant_ref: str,
        account_id: str,
        amount: float,
        adjust: Callable[[float], float],
        default_rating: float,
    ) -> Optional[Tuple[float, float]]:
        """
        Record a no-show penalty and lower the account's running rating.

        Returns (before, after), or None when the penalty was already
        recorded for this match.
        """
        now = datetime.utcnow()
        async with self.session_factory() as db:
            inserted = await db.execute(
                self._insert(NoShowPenalty).values(
                    match_id=match_id,
                    participant_ref=participant_ref,
                    account_id=account_id,
                    amount=amount,
                    created_at=now,
                    updated_at=now,
                ).on_conflict_do_nothing(index_elements=["match_id", "participant_ref"])
            )
            if inserted.rowcount != 1:
                await db.rollback()
                return None

            await db.execute(
                self._insert(PlayerProfile).values(
                    account_id=account_id,
                    ranking=default_rating,
                    created_at=now,
                    updated_at=now,
                ).on_conflict_do_nothing(index_elements=["account_id"])
            )
            before = (await db.execute(
                select(PlayerProfile.ranking).where(PlayerProfile.account_id == account_id)
            )).scalar_one()
            after = adjust(before)

            await db.execute(
                update(PlayerProfile)
                .where(PlayerProfile.account_id == account_id)
                .values(ranking=after, updated_at=now)
            )
            await db.execute(
                update(NoShowPenalty)
                .where(NoShowPenalty.match_id == match_id, NoShowPenalty.participant_ref == participant_ref)
                .values(rating_before=before, rating_after=after)
            )
            await db.commit()
        return before, after

    async def list_penalties(self, match_id: int) -> List[NoShowPenalty]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(NoShowPenalty).where(NoShowPenalty.match_id == match_id).order_by(NoShowPenalty.id)
            )
            return list(result.scalars().all())

    # =========================================================================
    # Awards & profiles
    # =========================================================================

    async def record_award(self, match_id: int, participant_ref: str, account_id: str, award_type: str) -> bool:
        """Insert the award and bump the matching badge counter; False if already granted."""
        now = datetime.utcnow()
        badge = BADGE_COLUMNS[award_type]
        async with self.session_factory() as db:
            inserted = await db.execute(
                self._insert(PlayerAward).values(
                    match_id=match_id,
                    participant_ref=participant_ref,
                    account_id=account_id,
                    award_type=award_type,
                    created_at=now,
                    updated_at=now,
                ).on_conflict_do_nothing(index_elements=["match_id", "award_type", "participant_ref"])
            )
            if inserted.rowcount != 1:
                await db.rollback()
                return False

            profile = self._insert(PlayerProfile).values(
                account_id=account_id,
                created_at=now,
                updated_at=now,
                **{badge: 1},
            )
            await db.execute(
                profile.on_conflict_do_update(
                    index_elements=["account_id"],
                    set_={badge: getattr(PlayerProfile, badge) + 1, "updated_at": now},
                )
            )
            await db.commit()
        return True

    async def list_awards(self, match_id: int) -> List[PlayerAward]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(PlayerAward).where(PlayerAward.match_id == match_id).order_by(PlayerAward.id)
            )
            return list(result.scalars().all())

    async def get_profile(self, account_id: str) -> Optional[PlayerProfile]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(PlayerProfile).where(PlayerProfile.account_id == account_id)
            )
            return result.scalar_one_or_none()

    async def save_profile(self, account_id: str, **values) -> PlayerProfile:
        async with self.session_factory() as db:
            profile = PlayerProfile(account_id=account_id, **values)
            db.add(profile)
            await db.commit()
            return profile

    # =========================================================================
    # Notifications
    # =========================================================================

    async def insert_notification(self, **values) -> ScheduledNotification:
        async with self.session_factory() as db:
            notification = ScheduledNotification(**values)
            db.add(notification)
            await db.commit()
            return notification

    async def insert_notifications(self, rows: Iterable[Dict[str, Any]]) -> int:
        """Bulk insert in one transaction: all rows or none."""
        rows = list(rows)
        if not rows:
            return 0
        async with self.session_factory() as db:
            db.add_all([ScheduledNotification(**row) for row in rows])
            await db.commit()
        return len(rows)

    async def notified_recipients(self, match_id: int, notification_type: str) -> Set[str]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(ScheduledNotification.recipient_ref).where(
                    ScheduledNotification.match_id == match_id,
                    ScheduledNotification.type == notification_type,
                )
            )
            return set(result.scalars().all())

    async def list_notifications(
        self,
        match_id: Optional[int] = None,
        notification_type: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[ScheduledNotification]:
        query = select(ScheduledNotification)
        if match_id is not None:
            query = query.where(ScheduledNotification.match_id == match_id)
        if notification_type is not None:
            query = query.where(ScheduledNotification.type == notification_type)
        if status is not None:
            query = query.where(ScheduledNotification.status == status)
        async with self.session_factory() as db:
            result = await db.execute(query.order_by(ScheduledNotification.id))
            return list(result.scalars().all())

    async def mark_due_notifications_sent(self, now: datetime) -> int:
        async with self.session_factory() as db:
            result = await db.execute(
                update(ScheduledNotification)
                .where(
                    ScheduledNotification.status == NotificationStatus.PENDING.value,
                    ScheduledNotification.send_at <= now,
                )
                .values(status=NotificationStatus.SENT.value, sent_at=now, updated_at=now)
            )
            await db.commit()
            return result.rowcount
