"""Normalised samples -> fixed-length display timeline.

``build_timeline`` is synchronous and has no side effects beyond metrics:
the same samples, live status, ``now`` and retained overlays always produce
the same result.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence, Tuple

from uptime_timeline.core.config import settings
from uptime_timeline.domain.models import Sample, SampleStatus, Slot
from uptime_timeline.metrics import PIPELINE_LATENCY_SECONDS

from .bucketing import bucket_samples
from .consolidator import consolidate
from .overlay import apply_pause, is_paused, merge_retained_overlays
from .padding import pad_timeline


@dataclass(frozen=True)
class TimelineResult:
    slots: Tuple[Slot, ...]
    overlays: Tuple[Slot, ...]
    real_slot_count: int

    @property
    def rollup_percentage(self) -> float:
        return rollup_percentage(self.slots)


def rollup_percentage(slots: Iterable[Slot]) -> float:
    """Share of recorded samples that are up, as a percentage with 2 decimals."""
    total = 0
    up = 0
    for slot in slots:
        for sample in slot.samples:
            if sample.is_synthetic:
                continue
            total += 1
            if sample.status is SampleStatus.UP:
                up += 1
    if total == 0:
        return 0.0
    return round(up / total * 100, 2)


def build_timeline(
    samples: Iterable[Sample],
    service_id: str,
    live_status: Optional[str],
    interval_seconds: Optional[int],
    now: datetime,
    retained_overlays: Sequence[Slot] = (),
    size: Optional[int] = None,
) -> TimelineResult:
    size = size or settings.timeline_slot_count
    interval = interval_seconds or 0
    if interval <= 0:
        interval = settings.default_check_interval_seconds
    placeholder_source = settings.placeholder_source_label

    with PIPELINE_LATENCY_SECONDS.time():
        real = consolidate(bucket_samples(samples), size)

        if is_paused(live_status) and real:
            padded = pad_timeline(
                real,
                size,
                service_id,
                interval,
                live_status,
                now,
                source_id=placeholder_source,
            )
            slots = apply_pause(padded, service_id, now, source_id=placeholder_source)
            overlays: Tuple[Slot, ...] = (slots[0],)
        else:
            merged = merge_retained_overlays(real, retained_overlays, size)
            slots = pad_timeline(
                merged,
                size,
                service_id,
                interval,
                live_status,
                now,
                source_id=placeholder_source,
            )
            overlays = tuple(slot for slot in slots if slot.is_overlay)

    return TimelineResult(
        slots=tuple(slots), overlays=overlays, real_slot_count=len(real)
    )
