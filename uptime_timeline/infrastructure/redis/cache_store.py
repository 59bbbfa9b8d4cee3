from typing import Optional

from pydantic import ValidationError
from redis.asyncio import Redis

from uptime_timeline.core.logger import get_logger
from uptime_timeline.domain.models import CacheEntry

from . import constants

logger = get_logger("redis.cache_store")


class RedisCacheStore:
    """Redis-backed cache for per-source query payloads.

    Notes:
        - Freshness is decided from ``fetched_at``/``ttl_ms``, not Redis expiry.
        - Keys carry a longer safety TTL so expired entries remain available
          as a stale fallback.
        - A per-service key set supports invalidating every entry of a service.
    """

    def __init__(self, redis: Redis, safety_ttl_seconds: int):
        self.r = redis
        self.safety_ttl = safety_ttl_seconds

    async def get(self, key: str) -> Optional[CacheEntry]:
        raw = await self.r.get(constants.CACHE_ENTRY.format(key=key))
        if raw is None:
            return None
        try:
            return CacheEntry.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "cache_entry_corrupt", extra={"cache_entry": key, "error": str(e)}
            )
            return None

    async def set(self, entry: CacheEntry) -> None:
        index = constants.CACHE_SERVICE_INDEX.format(service_id=entry.service_id)
        pipe = self.r.pipeline(transaction=False)
        pipe.set(
            constants.CACHE_ENTRY.format(key=entry.key),
            entry.model_dump_json(),
            ex=self.safety_ttl,
        )
        pipe.sadd(index, entry.key)
        pipe.expire(index, self.safety_ttl)
        await pipe.execute()

    async def invalidate_service(self, service_id: str) -> int:
        index = constants.CACHE_SERVICE_INDEX.format(service_id=service_id)
        keys = await self.r.smembers(index)
        if not keys:
            return 0
        await self.r.delete(
            *(constants.CACHE_ENTRY.format(key=k) for k in keys), index
        )
        return len(keys)
