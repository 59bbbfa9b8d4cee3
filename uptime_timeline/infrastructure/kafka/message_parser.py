from __future__ import annotations

from typing import Any, Mapping, Optional

from uptime_timeline.core.config import settings
from uptime_timeline.core.logger import get_logger
from uptime_timeline.domain.events import EntityChange, PushEvent, SampleInserted
from uptime_timeline.timeline.normalizer import (
    parse_timestamp,
    record_service_id,
    resolve_optional,
)

logger = get_logger("kafka.message_parser")


def unwrap_record(payload: Any) -> dict:
    """Change-feed payloads may wrap the row as ``{"record": {...}}``."""
    if not isinstance(payload, Mapping):
        return {}
    inner = payload.get("record")
    if isinstance(inner, Mapping):
        return dict(inner)
    return dict(payload)


def _first(record: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        value = resolve_optional(record.get(name))
        if value is not None:
            return value
    return None


def _as_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_push(topic: str, record: Mapping[str, Any]) -> Optional[PushEvent]:
    """Translate a pushed row into a push event, or None if it can't be routed."""
    if topic == settings.realtime_topic_services:
        service_id = _first(record, "id", "service_id")
        if service_id is None:
            return None
        return EntityChange(
            service_id=str(service_id),
            status=_first(record, "status"),
            response_time_ms=_as_int(_first(record, "response_time", "responseTime")),
            last_checked=parse_timestamp(_first(record, "last_checked", "lastChecked")),
            interval_seconds=_as_int(_first(record, "heartbeat_interval", "interval")),
        )
    if topic == settings.realtime_topic_samples:
        service_id = record_service_id(record)
        if service_id is None:
            return None
        return SampleInserted(service_id=service_id, record=dict(record))
    logger.warning("unhandled_topic", extra={"topic": topic})
    return None
