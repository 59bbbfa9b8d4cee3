from datetime import datetime, timezone
from typing import Callable, Optional

from uptime_timeline.core.config import Settings, settings as default_settings
from uptime_timeline.core.logger import get_logger
from uptime_timeline.domain.models import SourceScope, TimelineSnapshot, TimeWindow
from uptime_timeline.domain.ports import UptimeDataAccess
from uptime_timeline.timeline.normalizer import normalize_records
from uptime_timeline.timeline.pipeline import TimelineResult, build_timeline

from .fetch_service import UptimeFetchService

logger = get_logger("services.timeline")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_snapshot(
    service_id: str,
    scope: SourceScope,
    result: TimelineResult,
    generated_at: datetime,
    is_loading: bool = False,
    is_stale: bool = False,
    last_error: Optional[str] = None,
    dropped_records: int = 0,
) -> TimelineSnapshot:
    return TimelineSnapshot(
        service_id=service_id,
        scope=str(scope),
        slots=list(result.slots),
        rollup_percentage=result.rollup_percentage,
        is_loading=is_loading,
        is_stale=is_stale,
        last_error=last_error,
        generated_at=generated_at,
        dropped_records=dropped_records,
    )


class TimelineService:
    """One-shot timeline builds for request/response callers.

    Holds no realtime state; live views use ``TimelineView`` instead.
    """

    def __init__(
        self,
        data_access: UptimeDataAccess,
        fetcher: UptimeFetchService,
        config: Settings = default_settings,
        now_fn: Callable[[], datetime] = utcnow,
    ):
        self.data_access = data_access
        self.fetcher = fetcher
        self.config = config
        self.now_fn = now_fn

    async def snapshot(
        self,
        service_id: str,
        scope: SourceScope,
        window: TimeWindow = TimeWindow(),
        size: Optional[int] = None,
    ) -> Optional[TimelineSnapshot]:
        service = await self.data_access.get_service(service_id)
        if service is None:
            logger.info("service_not_found", extra={"service_id": service_id})
            return None

        fetched = await self.fetcher.fetch(service, scope, window)
        batch = normalize_records(fetched.records, service_id)
        now = self.now_fn()
        result = build_timeline(
            batch.samples,
            service_id,
            service.status,
            service.interval_seconds,
            now,
            size=size or self.config.timeline_slot_count,
        )
        return to_snapshot(
            service_id,
            scope,
            result,
            generated_at=now,
            is_stale=fetched.is_stale,
            last_error=fetched.last_error,
            dropped_records=batch.dropped,
        )
