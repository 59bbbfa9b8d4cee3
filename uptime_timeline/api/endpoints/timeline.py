from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from uptime_timeline.api.dependencies import get_timeline_service
from uptime_timeline.domain.models import SourceScope, TimelineSnapshot, TimeWindow
from uptime_timeline.services.timeline_service import TimelineService

router = APIRouter(prefix="/services")


@router.get("/{service_id}/timeline", response_model=TimelineSnapshot)
async def service_timeline(
    service_id: str,
    scope: Optional[str] = None,
    slots: int = Query(default=20, ge=1, le=100),
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    svc: TimelineService = Depends(get_timeline_service),
):
    try:
        source_scope = SourceScope.parse(scope)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if start is not None and end is not None and start > end:
        raise HTTPException(status_code=400, detail="start must not be after end")

    snapshot = await svc.snapshot(
        service_id, source_scope, TimeWindow(start=start, end=end), size=slots
    )
    if snapshot is None:
        raise HTTPException(status_code=404, detail=f"unknown service {service_id}")
    return snapshot
