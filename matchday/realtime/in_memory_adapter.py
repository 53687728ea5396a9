"""
In-Memory Broadcast Adapter

Local-only broadcast implementation using asyncio.Queue. Used by tests,
the CLI and single-process deployments.
"""
import asyncio
import json
from typing import Any, Dict, Set

from .broadcast_adapter import BroadcastAdapter


class InMemoryAdapter(BroadcastAdapter):
    """
    In-memory broadcast adapter.

    Each subscriber owns a bounded queue; a full queue drops the message
    for that subscriber only.
    """

    def __init__(self):
        self._channels: Dict[str, Set[asyncio.Queue]] = {}
        self.dropped = 0

    async def publish(self, channel: str, message: Dict[str, Any]) -> None:
        self.validate_message(message)

        serialized = self._serialize_message(message)

        # Copy to avoid modification during iteration
        for queue in list(self._channels.get(channel, ())):
            try:
                queue.put_nowait(serialized)
            except asyncio.QueueFull:
                self.dropped += 1

    def attach(self, channel: str, maxsize: int = 100) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._channels.setdefault(channel, set()).add(queue)
        return queue

    def detach(self, channel: str, queue: asyncio.Queue) -> None:
        queues = self._channels.get(channel)
        if queues is None:
            return
        queues.discard(queue)
        if not queues:
            del self._channels[channel]

    async def subscribe(self, channel: str):
        """
        Subscribe to channel and yield parsed messages until close().
        """
        queue = self.attach(channel)
        try:
            while True:
                serialized = await queue.get()
                if serialized is None:
                    break
                try:
                    yield json.loads(serialized)
                except json.JSONDecodeError:
                    # Skip corrupted messages
                    continue
        finally:
            self.detach(channel, queue)

    def subscriber_count(self, channel: str) -> int:
        return len(self._channels.get(channel, ()))

    async def close(self) -> None:
        """Signal shutdown to every subscriber."""
        for queues in self._channels.values():
            for queue in queues:
                try:
                    queue.put_nowait(None)
                except asyncio.QueueFull:
                    pass
        self._channels.clear()
