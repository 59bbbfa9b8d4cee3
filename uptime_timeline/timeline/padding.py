"""Fill a short timeline up to exactly K slots with placeholder samples."""

from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from uptime_timeline.domain.models import Sample, SampleOrigin, SampleStatus, Slot

from .bucketing import floor_minute

PLACEHOLDER_SOURCE = "Default (Agent 1)"

_SAMPLE_STATUSES = {s.value: s for s in SampleStatus}


def live_sample_status(status: Optional[str]) -> SampleStatus:
    """Map the service's live status onto a sample status (indeterminate -> paused)."""
    if status is None:
        return SampleStatus.PAUSED
    return _SAMPLE_STATUSES.get(str(status).lower(), SampleStatus.PAUSED)


def placeholder_slot(
    service_id: str,
    timestamp: datetime,
    status: SampleStatus,
    source_id: str = PLACEHOLDER_SOURCE,
) -> Slot:
    sample = Sample(
        source_id=source_id,
        service_id=service_id,
        timestamp=timestamp,
        status=status,
        response_time_ms=0,
        is_default_source=True,
        origin=SampleOrigin.PLACEHOLDER,
    )
    return Slot(timestamp=timestamp, samples=(sample,))


def unique_timestamps(slots: Sequence[Slot]) -> List[Slot]:
    """Newest-first, dropping every slot whose timestamp was already seen."""
    ordered = sorted(slots, key=lambda s: s.timestamp, reverse=True)
    seen: set[datetime] = set()
    out: List[Slot] = []
    for slot in ordered:
        if slot.timestamp in seen:
            continue
        seen.add(slot.timestamp)
        out.append(slot)
    return out


def pad_timeline(
    slots: Sequence[Slot],
    size: int,
    service_id: str,
    interval_seconds: int,
    live_status: Optional[str],
    now: datetime,
    source_id: str = PLACEHOLDER_SOURCE,
) -> List[Slot]:
    """Return exactly ``size`` newest-first slots with unique timestamps.

    With no slots at all, placeholders count back from ``now`` (floored to the
    minute) and carry the live status. Otherwise the deficit is filled back
    from the oldest slot and carries that slot's status.
    """
    step = timedelta(seconds=interval_seconds)
    result = unique_timestamps(slots)[:size]
    if not result:
        anchor = floor_minute(now)
        status = live_sample_status(live_status)
        return [
            placeholder_slot(service_id, anchor - step * i, status, source_id)
            for i in range(size)
        ]

    # Placeholders only ever go older than the oldest slot, so one pass keeps
    # timestamps unique and the length exact.
    oldest = result[-1]
    for i in range(1, size - len(result) + 1):
        result.append(
            placeholder_slot(
                service_id, oldest.timestamp - step * i, oldest.status, source_id
            )
        )
    return result
