from datetime import datetime
from typing import Dict, List, Sequence

from uptime_timeline.domain.models import Sample, Slot


def order_slot_samples(samples: Sequence[Sample]) -> tuple[Sample, ...]:
    # sorted() is stable, so equals keep their bucket order
    return tuple(sorted(samples, key=lambda s: not s.is_default_source))


def consolidate(buckets: Dict[datetime, List[Sample]], limit: int) -> List[Slot]:
    """Newest-first slots from deduplicated buckets, capped at ``limit``."""
    keys = sorted(buckets, reverse=True)[:limit]
    return [
        Slot(timestamp=key, samples=order_slot_samples(buckets[key])) for key in keys
    ]
