"""Collaborator boundaries the timeline core depends on."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Protocol

from .models import CacheEntry, RegionalAgent, ServiceSnapshot

if TYPE_CHECKING:
    from uptime_timeline.realtime.channel import Subscription

RawRecord = Dict[str, Any]
Predicate = Callable[[RawRecord], bool]


class UptimeDataAccess(Protocol):
    async def query(
        self,
        service_id: str,
        limit: int,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        source_hint: Optional[RegionalAgent] = None,
        service_type: Optional[str] = None,
    ) -> List[RawRecord]:
        """Newest-first raw records; ``source_hint=None`` means the default checker."""
        ...

    async def online_regional_agents(self) -> List[RegionalAgent]: ...

    async def get_service(self, service_id: str) -> Optional[ServiceSnapshot]: ...


class PushSubscriber(Protocol):
    async def subscribe(self, topic: str, predicate: Predicate) -> "Subscription": ...


class CacheStore(Protocol):
    async def get(self, key: str) -> Optional[CacheEntry]: ...

    async def set(self, entry: CacheEntry) -> None: ...

    async def invalidate_service(self, service_id: str) -> int: ...
