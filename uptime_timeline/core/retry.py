import asyncio
import random
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

T = TypeVar("T")

RetryCallback = Callable[[int, BaseException, float], Awaitable[None] | None]


def backoff_delay(
    attempt: int, base_delay: float, max_delay: float, jitter: float = 0.0
) -> float:
    """Delay before retry number ``attempt`` (0-based): base * 2**attempt, capped."""
    delay = min(base_delay * (2**attempt), max_delay)
    if jitter:
        delay += random.uniform(0, delay * jitter)
    return delay


async def retry_async(
    func: Callable[[], Awaitable[T]],
    retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    jitter: float = 0.0,
    retry_on: Iterable[type[BaseException]] = (Exception,),
    on_retry: Optional[RetryCallback] = None,
) -> T:
    """Await ``func`` once plus up to ``retries`` more times.

    The last exception is re-raised once retries are exhausted. ``on_retry``
    receives (retry number, exception, sleep seconds) and may be async.
    """
    retry_on = tuple(retry_on)
    for attempt in range(retries + 1):
        try:
            return await func()
        except retry_on as exc:  # type: ignore[misc]
            if attempt == retries:
                raise
            sleep_for = backoff_delay(attempt, base_delay, max_delay, jitter)
            if on_retry:
                result = on_retry(attempt + 1, exc, sleep_for)
                if result is not None:
                    await result
            await asyncio.sleep(sleep_for)
    raise RuntimeError("async retry exhausted")
