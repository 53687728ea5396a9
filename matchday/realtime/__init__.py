from matchday.realtime.broadcast_adapter import BroadcastAdapter, ChangeFeed
from matchday.realtime.in_memory_adapter import InMemoryAdapter
from matchday.realtime.subscription_manager import Subscription, SubscriptionManager

__all__ = ["BroadcastAdapter", "ChangeFeed", "InMemoryAdapter", "Subscription", "SubscriptionManager"]
