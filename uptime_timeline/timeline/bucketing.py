from datetime import datetime, timedelta
from typing import Dict, Iterable, List

from uptime_timeline.domain.models import Sample

MINUTE = timedelta(minutes=1)


def floor_minute(instant: datetime) -> datetime:
    return instant.replace(second=0, microsecond=0)


def bucket_samples(samples: Iterable[Sample]) -> Dict[datetime, List[Sample]]:
    """Group samples into minute buckets, at most one sample per source each.

    The first sample seen for a (bucket, source) pair wins and later ones are
    discarded, whatever their timestamps. Input order therefore matters when
    sources are merged; callers pass samples in fetch-merge order.
    """
    buckets: Dict[datetime, List[Sample]] = {}
    seen: Dict[datetime, set[str]] = {}
    for sample in samples:
        key = floor_minute(sample.timestamp)
        sources = seen.setdefault(key, set())
        if sample.source_id in sources:
            continue
        sources.add(sample.source_id)
        buckets.setdefault(key, []).append(
            sample.model_copy(update={"timestamp": key})
        )
    return buckets
