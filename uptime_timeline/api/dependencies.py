from fastapi import Depends, Request

from uptime_timeline.services.fetch_service import UptimeFetchService
from uptime_timeline.services.timeline_service import TimelineService


def get_fetcher(request: Request) -> UptimeFetchService:
    return request.app.state.fetcher  # type: ignore[return-value]


def get_timeline_service(
    request: Request, fetcher: UptimeFetchService = Depends(get_fetcher)
) -> TimelineService:
    return TimelineService(request.app.state.reader, fetcher)
