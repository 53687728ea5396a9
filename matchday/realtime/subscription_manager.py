"""
Subscription Manager

Explicit owner of live change-feed subscriptions. Whoever needs live
updates creates a manager, opens subscriptions on it and closes them (or
the whole manager) when done. Nothing is kept in module-level state.

Usage:
    async with SubscriptionManager(adapter) as manager:
        sub = await manager.open("survey_results:42", on_result_change)
        ...
        await manager.close(sub)
"""
import asyncio
import itertools
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from .broadcast_adapter import BroadcastAdapter

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]


@dataclass
class Subscription:
    id: int
    channel: str
    handler: Handler
    queue: asyncio.Queue
    task: Optional[asyncio.Task] = None
    last_sequence: int = 0
    delivered: int = 0
    duplicates: int = 0
    closed: bool = False

    @property
    def active(self) -> bool:
        return not self.closed and self.task is not None and not self.task.done()


class SubscriptionManager:
    def __init__(self, adapter: BroadcastAdapter):
        self.adapter = adapter
        self._subscriptions: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    async def open(self, channel: str, handler: Handler, maxsize: int = 100) -> Subscription:
        """
        Start delivering events on channel to handler.

        The queue is attached before this returns, so an event published
        right after open() is not missed.
        """
        queue = self.adapter.attach(channel, maxsize=maxsize)
        subscription = Subscription(
            id=next(self._ids),
            channel=channel,
            handler=handler,
            queue=queue,
        )
        subscription.task = asyncio.create_task(self._consume(subscription))
        self._subscriptions[subscription.id] = subscription
        logger.debug(f"Opened subscription {subscription.id} on {channel}")
        return subscription

    async def close(self, subscription: Subscription) -> None:
        if subscription.closed:
            return
        subscription.closed = True
        self.adapter.detach(subscription.channel, subscription.queue)
        if subscription.task is not None and not subscription.task.done():
            subscription.task.cancel()
            try:
                await subscription.task
            except asyncio.CancelledError:
                pass
        self._subscriptions.pop(subscription.id, None)
        logger.debug(f"Closed subscription {subscription.id} on {subscription.channel}")

    async def close_all(self) -> None:
        for subscription in list(self._subscriptions.values()):
            await self.close(subscription)

    def active(self) -> List[Subscription]:
        return [s for s in self._subscriptions.values() if not s.closed]

    async def __aenter__(self) -> "SubscriptionManager":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close_all()

    async def _consume(self, subscription: Subscription) -> None:
        while True:
            serialized = await subscription.queue.get()
            if serialized is None:
                subscription.closed = True
                self._subscriptions.pop(subscription.id, None)
                return

            try:
                message = json.loads(serialized)
            except json.JSONDecodeError:
                continue

            # Redelivery of an already-seen sequence is ignored
            sequence = message.get("event_sequence", 0)
            if sequence <= subscription.last_sequence:
                subscription.duplicates += 1
                continue
            subscription.last_sequence = sequence

            try:
                outcome = subscription.handler(message)
                if asyncio.iscoroutine(outcome):
                    await outcome
                subscription.delivered += 1
            except Exception as e:
                logger.warning(
                    f"Subscription {subscription.id} handler failed on {subscription.channel}: {e}"
                )
