"""
Absence & Penalty Evaluator

notified_in_time  = hours between notice and kick-off >= 4
penalty eligible  = not notified_in_time and not found_replacement

A participant nominated as absent who never filed a notice is penalty
eligible: silence is punished.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from matchday.core.clock import Clock, system_clock
from matchday.core.identity import IdentityResolver
from matchday.exceptions import AbsenceValidationError
from matchday.orm.absence import AbsenceRecord
from matchday.schemas.surveys import AbsenceNotice, AbsenceVerdict
from matchday.services.store import MatchStore

logger = logging.getLogger(__name__)

NOTICE_WINDOW_HOURS = 4
NOTICE_WINDOW = timedelta(hours=NOTICE_WINDOW_HOURS)


def hours_before(starts_at, noticed_at) -> float:
    """Hours of notice, clamped at zero for notices after kick-off."""
    delta = (starts_at - noticed_at).total_seconds() / 3600
    return round(max(0.0, delta), 2)


def notified_in_time(starts_at, noticed_at) -> bool:
    """Compared on the exact interval; hours_before is rounded for storage only."""
    return starts_at - noticed_at >= NOTICE_WINDOW


def is_penalty_eligible(record: Optional[Any]) -> bool:
    if record is None:
        return True
    return not record.notified_in_time and not record.found_replacement


async def record_absence(store: MatchStore, notice: Any, clock: Clock = system_clock) -> AbsenceRecord:
    """
    Store an absence notice, freezing notice timing from the injected clock.

    Raises:
        AbsenceValidationError: missing match or participant reference
        MatchNotFoundError: match does not exist
    """
    if not isinstance(notice, AbsenceNotice):
        try:
            notice = AbsenceNotice.model_validate(notice)
        except PydanticValidationError as e:
            raise AbsenceValidationError("Invalid absence notice", details={"errors": e.errors()}) from e

    match = await store.require_match(notice.match_id)
    noticed_at = clock.now()
    hours = hours_before(match.starts_at, noticed_at)

    record = await store.insert_absence(
        match_id=notice.match_id,
        participant_ref=notice.participant_ref.strip(),
        reason=notice.reason,
        hours_before_match=hours,
        notified_in_time=notified_in_time(match.starts_at, noticed_at),
        found_replacement=notice.found_replacement,
    )
    logger.info(
        f"Absence recorded for {record.participant_ref} in match {notice.match_id} "
        f"({hours}h notice, replacement={notice.found_replacement})"
    )
    return record


def evaluate_absences(
    resolver: IdentityResolver,
    surveys: Sequence[Any],
    records: Sequence[Any],
) -> List[AbsenceVerdict]:
    """
    Verdicts for every participant nominated absent or holding a notice.

    A participant is considered absent after a single nomination. Nominees
    and notices that do not resolve to the roster are ignored.
    """
    records_by_ref: Dict[str, Any] = {}
    for record in records:
        ref = resolver.resolve_value(record.participant_ref)
        if ref is None:
            continue
        # Latest notice wins
        records_by_ref[ref] = record

    nominated = []
    for survey in surveys:
        for value in survey.absent_nominees or []:
            ref = resolver.resolve_value(value)
            if ref is not None and ref not in nominated:
                nominated.append(ref)

    candidates = nominated + [ref for ref in records_by_ref if ref not in nominated]

    verdicts = []
    for ref in candidates:
        record = records_by_ref.get(ref)
        verdicts.append(AbsenceVerdict(
            ref=ref,
            has_record=record is not None,
            notified_in_time=bool(record.notified_in_time) if record else False,
            found_replacement=bool(record.found_replacement) if record else False,
            penalty_eligible=is_penalty_eligible(record),
        ))
    return verdicts


async def evaluate_match_absences(
    store: MatchStore,
    match_id: int,
    resolver: Optional[IdentityResolver] = None,
) -> List[AbsenceVerdict]:
    if resolver is None:
        resolver = IdentityResolver.from_participants(await store.list_participants(match_id))
    surveys = await store.list_surveys(match_id)
    records = await store.list_absences(match_id)
    verdicts = evaluate_absences(resolver, surveys, records)

    eligible = [v.ref for v in verdicts if v.penalty_eligible]
    if eligible:
        logger.info(f"Match {match_id}: penalty eligible absentees {eligible}")
    return verdicts
