import asyncio
from typing import AsyncIterator, Awaitable, Callable, Generic, Optional, TypeVar

from uptime_timeline.core.logger import get_logger

logger = get_logger("realtime.channel")

T = TypeVar("T")

_CLOSED = object()


class EventChannel(Generic[T]):
    """Bounded single-consumer channel.

    ``publish`` never blocks: when the channel is full the event is dropped,
    the same way throttled events are dropped rather than deferred.
    """

    def __init__(self, maxsize: int = 0, name: str = "channel"):
        self.name = name
        self.maxsize = maxsize
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, item: T) -> bool:
        if self._closed:
            return False
        if self.maxsize and self._queue.qsize() >= self.maxsize:
            self.dropped += 1
            logger.warning(
                "channel_full_event_dropped",
                extra={"channel": self.name, "dropped": self.dropped},
            )
            return False
        self._queue.put_nowait(item)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[T]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item


class Subscription:
    """Token for one live push subscription; ``unsubscribe`` is idempotent."""

    def __init__(
        self,
        topic: str,
        channel: EventChannel,
        release: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self.topic = topic
        self.channel = channel
        self._release = release
        self._released = False

    @property
    def active(self) -> bool:
        return not self._released

    async def unsubscribe(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            if self._release is not None:
                await self._release()
        finally:
            self.channel.close()
            logger.info("subscription_released", extra={"topic": self.topic})
