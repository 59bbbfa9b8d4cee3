"""Per-source fetching with caching, retries and stale fallback.

Every source (the default checker, or one regional agent) is fetched and
cached independently. A source that keeps failing falls back to its last
cached payload, flagged stale, and otherwise contributes nothing. Sources
are always merged default first, then agents in the order they were listed,
so first-seen-wins deduplication further down is deterministic.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from uptime_timeline.core.config import Settings, settings as default_settings
from uptime_timeline.core.logger import get_logger
from uptime_timeline.core.retry import retry_async
from uptime_timeline.domain.errors import PartialSourceFailure, TransientFetchError
from uptime_timeline.domain.models import (
    CacheEntry,
    RegionalAgent,
    ServiceSnapshot,
    SourceScope,
    TimeWindow,
)
from uptime_timeline.domain.ports import CacheStore, RawRecord, UptimeDataAccess
from uptime_timeline.metrics import (
    FETCH_CACHE_HITS_TOTAL,
    FETCH_RETRIES_TOTAL,
    FETCH_STALE_SERVED_TOTAL,
    SOURCE_FAILURES_TOTAL,
)

logger = get_logger("services.fetch")

DEFAULT_SOURCE = "default"


@dataclass
class SourceResult:
    source: str
    records: List[RawRecord] = field(default_factory=list)
    from_cache: bool = False
    is_stale: bool = False
    failure: Optional[PartialSourceFailure] = None


@dataclass
class FetchResult:
    records: List[RawRecord]
    sources: List[SourceResult]

    @property
    def is_stale(self) -> bool:
        return any(s.is_stale for s in self.sources)

    @property
    def failures(self) -> List[PartialSourceFailure]:
        return [s.failure for s in self.sources if s.failure is not None]

    @property
    def all_failed(self) -> bool:
        return bool(self.sources) and all(
            s.failure is not None and not s.is_stale for s in self.sources
        )

    @property
    def last_error(self) -> Optional[str]:
        if not self.all_failed:
            return None
        return str(self.failures[-1])


def _source_label(agent: Optional[RegionalAgent]) -> str:
    return DEFAULT_SOURCE if agent is None else agent.scope_value


class UptimeFetchService:
    def __init__(
        self,
        data_access: UptimeDataAccess,
        cache: CacheStore,
        config: Settings = default_settings,
        clock: Callable[[], float] = time.time,
    ):
        self.data_access = data_access
        self.cache = cache
        self.config = config
        self.clock = clock

    def cache_key(
        self,
        service: ServiceSnapshot,
        window: TimeWindow,
        agent: Optional[RegionalAgent],
    ) -> str:
        return "_".join(
            [
                "uptime",
                service.service_id,
                str(self.config.fetch_query_limit),
                window.cache_fragment(),
                service.service_type or "",
                _source_label(agent),
            ]
        )

    async def resolve_sources(
        self, scope: SourceScope
    ) -> List[Optional[RegionalAgent]]:
        """``None`` stands for the default checker."""
        if scope.kind == "default":
            return [None]
        if scope.kind == "regional":
            return [
                RegionalAgent(
                    region_name=scope.region_name or "",
                    agent_id=scope.agent_id or "",
                    connection="online",
                )
            ]
        try:
            agents = await self.data_access.online_regional_agents()
        except Exception as e:  # noqa: BLE001
            logger.warning("regional_agents_unavailable", extra={"error": str(e)})
            agents = []
        return [None, *(a for a in agents if a.is_online)]

    async def fetch(
        self,
        service: ServiceSnapshot,
        scope: SourceScope,
        window: TimeWindow = TimeWindow(),
    ) -> FetchResult:
        sources = await self.resolve_sources(scope)
        results: Sequence[SourceResult] = await asyncio.gather(
            *(self._fetch_source(service, window, agent) for agent in sources)
        )
        records: List[RawRecord] = []
        for result in results:
            records.extend(result.records)

        fetched = FetchResult(records=records, sources=list(results))
        if fetched.all_failed:
            logger.error(
                "all_sources_failed",
                extra={
                    "service_id": service.service_id,
                    "scope": str(scope),
                    "error": fetched.last_error,
                },
            )
        logger.debug(
            "timeline_fetched",
            extra={
                "service_id": service.service_id,
                "scope": str(scope),
                "sources": len(results),
                "records": len(records),
                "stale": fetched.is_stale,
            },
        )
        return fetched

    async def invalidate(self, service_id: str) -> int:
        try:
            removed = await self.cache.invalidate_service(service_id)
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "cache_invalidate_failed",
                extra={"service_id": service_id, "error": str(e)},
            )
            return 0
        logger.debug(
            "cache_invalidated", extra={"service_id": service_id, "removed": removed}
        )
        return removed

    async def _fetch_source(
        self,
        service: ServiceSnapshot,
        window: TimeWindow,
        agent: Optional[RegionalAgent],
    ) -> SourceResult:
        source = _source_label(agent)
        key = self.cache_key(service, window, agent)
        entry = await self._cached(key)
        if entry is not None and entry.is_fresh(self.clock()):
            FETCH_CACHE_HITS_TOTAL.inc()
            return SourceResult(source, list(entry.payload), from_cache=True)

        try:
            records = await self._query(service, window, agent, source)
        except TransientFetchError as e:
            SOURCE_FAILURES_TOTAL.inc()
            failure = PartialSourceFailure(source, e)
            logger.warning(
                "source_fetch_failed",
                extra={
                    "service_id": service.service_id,
                    "source": source,
                    "attempts": e.attempts,
                    "stale_available": entry is not None,
                    "error": str(e.cause),
                },
            )
            if entry is not None:
                FETCH_STALE_SERVED_TOTAL.inc()
                return SourceResult(
                    source,
                    list(entry.payload),
                    from_cache=True,
                    is_stale=True,
                    failure=failure,
                )
            return SourceResult(source, failure=failure)

        await self._store(
            CacheEntry(
                key=key,
                service_id=service.service_id,
                payload=records,
                fetched_at=self.clock(),
                ttl_ms=int(self.config.cache_ttl_seconds * 1000),
            )
        )
        return SourceResult(source, records)

    async def _query(
        self,
        service: ServiceSnapshot,
        window: TimeWindow,
        agent: Optional[RegionalAgent],
        source: str,
    ) -> List[RawRecord]:
        def _on_retry(attempt: int, exc: BaseException, sleep_for: float) -> None:
            FETCH_RETRIES_TOTAL.inc()
            logger.info(
                "source_fetch_retry",
                extra={
                    "service_id": service.service_id,
                    "source": source,
                    "attempt": attempt,
                    "retry_in": sleep_for,
                    "error": str(exc),
                },
            )

        async def _call() -> List[RawRecord]:
            return await self.data_access.query(
                service.service_id,
                self.config.fetch_query_limit,
                start_time=window.start,
                end_time=window.end,
                source_hint=agent,
                service_type=service.service_type,
            )

        retries = self.config.fetch_retries
        try:
            return list(
                await retry_async(
                    _call,
                    retries=retries,
                    base_delay=self.config.fetch_backoff_base_seconds,
                    max_delay=self.config.fetch_backoff_max_seconds,
                    jitter=self.config.fetch_backoff_jitter,
                    on_retry=_on_retry,
                )
            )
        except Exception as e:
            raise TransientFetchError(source, retries + 1, e) from e

    async def _cached(self, key: str) -> Optional[CacheEntry]:
        try:
            return await self.cache.get(key)
        except Exception as e:  # noqa: BLE001
            logger.warning("cache_read_failed", extra={"cache_entry": key, "error": str(e)})
            return None

    async def _store(self, entry: CacheEntry) -> None:
        try:
            await self.cache.set(entry)
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "cache_write_failed", extra={"cache_entry": entry.key, "error": str(e)}
            )
