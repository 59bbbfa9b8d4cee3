from typing import Dict, Optional, Set

from uptime_timeline.domain.models import CacheEntry


class MemoryCacheStore:
    """Process-local cache. Entries outlive their TTL so they can be served stale."""

    def __init__(self) -> None:
        self._entries: Dict[str, CacheEntry] = {}
        self._by_service: Dict[str, Set[str]] = {}

    async def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    async def set(self, entry: CacheEntry) -> None:
        self._entries[entry.key] = entry
        self._by_service.setdefault(entry.service_id, set()).add(entry.key)

    async def invalidate_service(self, service_id: str) -> int:
        keys = self._by_service.pop(service_id, set())
        for key in keys:
            self._entries.pop(key, None)
        return len(keys)
