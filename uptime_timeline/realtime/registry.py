from __future__ import annotations

from typing import Awaitable, Callable, Dict, NamedTuple, Optional

from uptime_timeline.core.logger import get_logger
from uptime_timeline.domain.events import EventKind

from .channel import Subscription

logger = get_logger("realtime.registry")


class SubscriptionKey(NamedTuple):
    service_id: str
    scope: str
    kind: EventKind


class SubscriptionRegistry:
    """Live subscriptions owned by one view.

    Holds at most one subscription per (service, scope, kind). Created when
    the view mounts and released in full when it unmounts.
    """

    def __init__(self) -> None:
        self._subscriptions: Dict[SubscriptionKey, Subscription] = {}

    def __len__(self) -> int:
        return len(self._subscriptions)

    def get(self, key: SubscriptionKey) -> Optional[Subscription]:
        return self._subscriptions.get(key)

    async def acquire(
        self,
        key: SubscriptionKey,
        factory: Callable[[], Awaitable[Subscription]],
    ) -> Subscription:
        existing = self._subscriptions.get(key)
        if existing is not None and existing.active:
            return existing
        subscription = await factory()
        self._subscriptions[key] = subscription
        return subscription

    async def release(self, key: SubscriptionKey) -> None:
        subscription = self._subscriptions.pop(key, None)
        if subscription is not None:
            await self._unsubscribe(key, subscription)

    async def release_all(self) -> None:
        while self._subscriptions:
            key, subscription = self._subscriptions.popitem()
            await self._unsubscribe(key, subscription)

    async def _unsubscribe(self, key: SubscriptionKey, subscription: Subscription):
        try:
            await subscription.unsubscribe()
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "subscription_release_failed",
                extra={
                    "service_id": key.service_id,
                    "kind": key.kind.value,
                    "error": str(e),
                },
            )

    async def __aenter__(self) -> "SubscriptionRegistry":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.release_all()
