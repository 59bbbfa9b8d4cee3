"""Live status overlay.

A manual pause shows up immediately as a synthetic paused sample in the
newest slot only. Once the service resumes, the paused slots produced earlier
stay on screen until real data arrives for the same minute.
"""

from datetime import datetime
from typing import List, Sequence

from uptime_timeline.domain.models import Sample, SampleOrigin, SampleStatus, Slot

from .bucketing import floor_minute
from .padding import PLACEHOLDER_SOURCE


def is_paused(live_status: str | None) -> bool:
    return live_status is not None and str(live_status).lower() == "paused"


def pause_slot(
    service_id: str, timestamp: datetime, source_id: str = PLACEHOLDER_SOURCE
) -> Slot:
    sample = Sample(
        source_id=source_id,
        service_id=service_id,
        timestamp=timestamp,
        status=SampleStatus.PAUSED,
        response_time_ms=0,
        is_default_source=True,
        origin=SampleOrigin.OVERLAY,
    )
    return Slot(timestamp=timestamp, samples=(sample,))


def apply_pause(
    slots: Sequence[Slot],
    service_id: str,
    now: datetime,
    source_id: str = PLACEHOLDER_SOURCE,
) -> List[Slot]:
    """Replace slot[0] with a paused overlay; every other slot is untouched.

    The overlay is keyed at ``now`` floored to the minute, but never earlier
    than the slot it replaces, so newest-first order survives clock skew.
    """
    if not slots:
        return []
    key = max(floor_minute(now), slots[0].timestamp)
    return [pause_slot(service_id, key, source_id), *slots[1:]]


def merge_retained_overlays(
    slots: Sequence[Slot], retained: Sequence[Slot], limit: int
) -> List[Slot]:
    """Re-insert earlier overlays whose minute has no real slot yet."""
    taken = {slot.timestamp for slot in slots}
    merged = list(slots)
    for overlay in retained:
        if overlay.timestamp not in taken:
            merged.append(overlay)
            taken.add(overlay.timestamp)
    merged.sort(key=lambda s: s.timestamp, reverse=True)
    return merged[:limit]
