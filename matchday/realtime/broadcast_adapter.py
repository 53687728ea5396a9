"""
Change-feed Broadcast Adapter Interface

Abstract base class for the channel that pushes row-change events to
subscribed UI layers. The engine only publishes; the database stays the
source of truth and the channel is delivery-only.
"""
import abc
import asyncio
import hashlib
import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class BroadcastAdapter(abc.ABC):
    """
    Abstract base class for broadcast adapters.

    Guarantees:
    - Deterministic message serialization (sort_keys=True)
    - Idempotent delivery (event_sequence + event_hash)
    """

    @abc.abstractmethod
    async def publish(self, channel: str, message: Dict[str, Any]) -> None:
        """
        Publish message to channel.

        Args:
            channel: Channel name (e.g., "survey_results:42")
            message: Message payload (must contain event_sequence and event_hash)
        """
        raise NotImplementedError

    @abc.abstractmethod
    def attach(self, channel: str, maxsize: int = 100) -> asyncio.Queue:
        """Register a delivery queue on channel and return it."""
        raise NotImplementedError

    @abc.abstractmethod
    def detach(self, channel: str, queue: asyncio.Queue) -> None:
        """Remove a delivery queue previously returned by attach()."""
        raise NotImplementedError

    @abc.abstractmethod
    async def close(self) -> None:
        """Close adapter connections."""
        raise NotImplementedError

    def _serialize_message(self, message: Dict[str, Any]) -> str:
        return json.dumps(message, sort_keys=True, separators=(',', ':'), default=str)

    def _compute_message_hash(self, message: Dict[str, Any]) -> str:
        serialized = self._serialize_message(message)
        return hashlib.sha256(serialized.encode()).hexdigest()

    def validate_message(self, message: Dict[str, Any]) -> bool:
        """
        Validate message has required fields for idempotency.

        Raises:
            ValueError: If required fields missing
        """
        required = ["event_sequence", "event_hash", "match_id"]
        missing = [f for f in required if f not in message]
        if missing:
            raise ValueError(f"Message missing required fields: {missing}")
        return True


class ChangeFeed:
    """
    Builds and publishes row-change events.

    Sequence numbers are per channel and strictly increasing for the
    lifetime of the feed. Publishing never raises; a failed publish is
    logged and dropped since subscribers re-read the row anyway.
    """

    def __init__(self, adapter: BroadcastAdapter):
        self.adapter = adapter
        self._sequences: Dict[str, int] = {}

    @staticmethod
    def channel_for(table: str, match_id: int) -> str:
        return f"{table}:{match_id}"

    def build_event(
        self,
        table: str,
        match_id: int,
        action: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        channel = self.channel_for(table, match_id)
        sequence = self._sequences.get(channel, 0) + 1
        self._sequences[channel] = sequence

        event = {
            "channel": channel,
            "table": table,
            "action": action,
            "match_id": match_id,
            "event_sequence": sequence,
            "payload": payload or {},
            "emitted_at": datetime.utcnow().isoformat(),
        }
        event["event_hash"] = self.adapter._compute_message_hash(event)
        return event

    async def emit(
        self,
        table: str,
        match_id: int,
        action: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        event = self.build_event(table, match_id, action, payload)
        try:
            await self.adapter.publish(event["channel"], event)
        except Exception as e:
            logger.warning(f"Change event for {event['channel']} not published: {e}")
            return None
        return event
