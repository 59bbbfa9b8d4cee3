from .channel import EventChannel, Subscription
from .merger import Effect, MergeState, reduce
from .registry import SubscriptionKey, SubscriptionRegistry

__all__ = [
    "Effect",
    "EventChannel",
    "MergeState",
    "Subscription",
    "SubscriptionKey",
    "SubscriptionRegistry",
    "reduce",
]
