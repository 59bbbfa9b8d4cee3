from .normalizer import normalize_records, resolve_optional, resolve_source
from .pipeline import TimelineResult, build_timeline, rollup_percentage

__all__ = [
    "TimelineResult",
    "build_timeline",
    "normalize_records",
    "resolve_optional",
    "resolve_source",
    "rollup_percentage",
]
