"""
Notification Fan-out

Three-tier fallback for interim match events (join requests, new player
joined):

1. enqueue_match_notification remote procedure (batched, server side)
2. resolve recipients locally (admin, optionally every registered
   participant, minus the excluded ref) and bulk insert the rows
3. log the failure and return a FAILED result

fan_out() never raises: the action that triggered the notification must
succeed even when nobody can be told about it.
"""
import logging
from typing import Any, Dict, List, Optional

from matchday.core.clock import Clock, system_clock
from matchday.exceptions import CapabilityUnavailableError, ProcedureFailedError
from matchday.orm.notification import NotificationStatus, NotificationType
from matchday.schemas.notifications import FanoutResult, FanoutTier
from matchday.services.procedures import ENQUEUE_MATCH_NOTIFICATION, ProcedureGateway
from matchday.services.store import MatchStore

logger = logging.getLogger(__name__)


async def resolve_recipients(
    store: MatchStore,
    match_id: int,
    include_participants: bool = False,
    exclude_ref: Optional[str] = None,
) -> List[str]:
    match = await store.require_match(match_id)
    recipients = []
    if match.creator_ref:
        recipients.append(match.creator_ref)
    if include_participants:
        for participant in await store.list_participants(match_id):
            if participant.account_id and participant.account_id not in recipients:
                recipients.append(participant.account_id)
    return [r for r in recipients if r != exclude_ref]


async def fan_out(
    store: MatchStore,
    match_id: int,
    notification_type: str,
    title: str,
    message: str,
    payload: Optional[Dict[str, Any]] = None,
    include_participants: bool = False,
    exclude_ref: Optional[str] = None,
    gateway: Optional[ProcedureGateway] = None,
    clock: Clock = system_clock,
) -> FanoutResult:
    payload = dict(payload or {})

    # Tier 1: server-side batched enqueue
    if gateway is not None:
        try:
            queued = await gateway.call(
                ENQUEUE_MATCH_NOTIFICATION,
                match_id=match_id,
                notification_type=notification_type,
                title=title,
                message=message,
                payload=payload,
                include_participants=include_participants,
                exclude_ref=exclude_ref,
            )
            delivered = queued if isinstance(queued, int) and not isinstance(queued, bool) else 0
            return FanoutResult(match_id=match_id, tier=FanoutTier.PROCEDURE, delivered=delivered)
        except (CapabilityUnavailableError, ProcedureFailedError) as e:
            logger.info(f"Fan-out for match {match_id} falling back to direct insert: {e}")

    # Tier 2: local recipient resolution + bulk insert
    try:
        recipients = await resolve_recipients(store, match_id, include_participants, exclude_ref)
        now = clock.now()
        rows = [
            {
                "recipient_ref": recipient,
                "match_id": match_id,
                "type": notification_type,
                "title": title,
                "message": message,
                "payload": payload,
                "send_at": now,
                "status": NotificationStatus.PENDING.value,
            }
            for recipient in recipients
        ]
        delivered = await store.insert_notifications(rows)
        return FanoutResult(match_id=match_id, tier=FanoutTier.DIRECT, delivered=delivered)
    except Exception as e:
        # Tier 3: surface, never raise
        logger.error(f"Fan-out for match {match_id} ({notification_type}) failed: {e}")
        return FanoutResult(match_id=match_id, tier=FanoutTier.FAILED, error=str(e))


async def notify_admin_join_request(
    store: MatchStore,
    match_id: int,
    requester_ref: str,
    requester_name: str = "Jugador",
    gateway: Optional[ProcedureGateway] = None,
    clock: Clock = system_clock,
) -> FanoutResult:
    return await fan_out(
        store,
        match_id,
        NotificationType.MATCH_JOIN_REQUEST.value,
        title="Nueva solicitud",
        message=f"{requester_name} quiere unirse al partido",
        payload={"requester_ref": requester_ref},
        include_participants=False,
        exclude_ref=requester_ref,
        gateway=gateway,
        clock=clock,
    )


async def notify_player_joined(
    store: MatchStore,
    match_id: int,
    player_ref: str,
    player_name: str = "Jugador",
    gateway: Optional[ProcedureGateway] = None,
    clock: Clock = system_clock,
) -> FanoutResult:
    return await fan_out(
        store,
        match_id,
        NotificationType.MATCH_UPDATE.value,
        title="Nuevo jugador",
        message=f"{player_name} se unió al partido",
        payload={"player_ref": player_ref, "event": "player_joined"},
        include_participants=True,
        exclude_ref=player_ref,
        gateway=gateway,
        clock=clock,
    )
