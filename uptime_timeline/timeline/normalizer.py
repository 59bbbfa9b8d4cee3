"""Raw record -> Sample.

Raw records arrive from the query layer and from push payloads with loosely
typed optional fields. Every optional field goes through ``resolve_optional``
so nothing downstream has to know about boxed sentinels.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional

from uptime_timeline.core.logger import get_logger
from uptime_timeline.domain.errors import MalformedRecordError
from uptime_timeline.domain.models import Sample, SampleStatus
from uptime_timeline.metrics import RECORDS_DROPPED_TOTAL

logger = get_logger("timeline.normalizer")

UNDEFINED_MARKER = "undefined"
FALLBACK_SOURCE = "Default System Check (Agent 1)"

_STATUSES = {s.value: s for s in SampleStatus}


def resolve_optional(value: Any) -> Optional[Any]:
    """Unwrap an optional field, treating every flavour of "absent" as None."""
    if value is None:
        return None
    if isinstance(value, str):
        if value == "" or value == UNDEFINED_MARKER:
            return None
        return value
    if isinstance(value, Mapping):
        if value.get("_type") == UNDEFINED_MARKER:
            return None
        if "value" in value:
            return resolve_optional(value["value"])
    return value


def resolve_source(region_name: Any, agent_id: Any) -> tuple[str, bool]:
    """Return (source label, is_default_source)."""
    region = resolve_optional(region_name)
    agent = resolve_optional(agent_id)
    if region is not None and agent is not None:
        return f"{region} (Agent {agent})", False
    if agent is not None:
        return f"Default (Agent {agent})", True
    return FALLBACK_SOURCE, True


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Accept datetimes, ISO-8601 strings and epoch milliseconds; always UTC."""
    value = resolve_optional(value)
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        try:
            dt = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            return None
    elif isinstance(value, str):
        text = value.strip().replace("Z", "+00:00")
        if text.isdigit():
            return parse_timestamp(int(text))
        try:
            dt = datetime.fromisoformat(text)
        except (ValueError, OverflowError, OSError):
            return None
    else:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    try:
        return dt.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def _response_time(record: Mapping[str, Any]) -> int:
    raw = resolve_optional(record.get("response_time"))
    if raw is None:
        raw = resolve_optional(record.get("responseTime"))
    try:
        return max(int(raw or 0), 0)
    except (TypeError, ValueError):
        return 0


def record_service_id(record: Mapping[str, Any]) -> Optional[str]:
    sid = resolve_optional(record.get("service_id"))
    if sid is None:
        sid = resolve_optional(record.get("serviceId"))
    return None if sid is None else str(sid)


def to_sample(record: Mapping[str, Any], service_id: Optional[str] = None) -> Sample:
    """Convert one raw record, raising ``MalformedRecordError`` if it can't be."""
    record_id = resolve_optional(record.get("id"))
    record_id = None if record_id is None else str(record_id)

    raw_ts = record.get("timestamp")
    if resolve_optional(raw_ts) is None:
        raise MalformedRecordError("missing timestamp", record_id)
    timestamp = parse_timestamp(raw_ts)
    if timestamp is None:
        raise MalformedRecordError(f"unparseable timestamp {raw_ts!r}", record_id)

    raw_status = resolve_optional(record.get("status"))
    if raw_status is None:
        raise MalformedRecordError("missing status", record_id)
    status = _STATUSES.get(str(raw_status).lower())
    if status is None:
        raise MalformedRecordError(f"unknown status {raw_status!r}", record_id)

    sid = record_service_id(record) or service_id
    if sid is None:
        raise MalformedRecordError("missing service_id", record_id)

    source_id, is_default = resolve_source(
        record.get("region_name"), record.get("agent_id")
    )
    return Sample(
        source_id=source_id,
        service_id=sid,
        timestamp=timestamp,
        status=status,
        response_time_ms=_response_time(record),
        is_default_source=is_default,
        record_id=record_id,
    )


@dataclass
class NormalizedBatch:
    samples: List[Sample] = field(default_factory=list)
    malformed: int = 0
    foreign: int = 0

    @property
    def dropped(self) -> int:
        return self.malformed + self.foreign


def normalize_records(
    records: Iterable[Mapping[str, Any]], service_id: str
) -> NormalizedBatch:
    """Normalise a batch for one service, preserving input order.

    Malformed records and records belonging to another service are dropped
    and counted, never raised.
    """
    batch = NormalizedBatch()
    for record in records:
        owner = record_service_id(record)
        if owner is not None and owner != service_id:
            batch.foreign += 1
            RECORDS_DROPPED_TOTAL.labels(reason="foreign_service").inc()
            continue
        try:
            batch.samples.append(to_sample(record, service_id))
        except MalformedRecordError as e:
            batch.malformed += 1
            RECORDS_DROPPED_TOTAL.labels(reason="malformed").inc()
            logger.debug(
                "malformed_record_dropped",
                extra={"service_id": service_id, "reason": e.reason},
            )
    if batch.dropped:
        logger.info(
            "records_dropped",
            extra={
                "service_id": service_id,
                "malformed": batch.malformed,
                "foreign": batch.foreign,
            },
        )
    return batch
