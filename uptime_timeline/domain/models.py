from datetime import datetime
from enum import Enum
from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field


class SampleStatus(str, Enum):
    UP = "up"
    DOWN = "down"
    WARNING = "warning"
    PAUSED = "paused"


class SampleOrigin(str, Enum):
    """Where a sample came from; only ``RECORDED`` samples are real checks."""

    RECORDED = "recorded"
    PLACEHOLDER = "placeholder"
    OVERLAY = "overlay"


class Sample(BaseModel):
    """One health-check result from one source. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    service_id: str
    timestamp: datetime
    status: SampleStatus
    response_time_ms: int = 0
    is_default_source: bool = True
    origin: SampleOrigin = SampleOrigin.RECORDED
    record_id: Optional[str] = None

    @property
    def is_synthetic(self) -> bool:
        return self.origin is not SampleOrigin.RECORDED


class Slot(BaseModel):
    """A minute bucket in display form: samples unique by source, default first."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    samples: Tuple[Sample, ...]

    @property
    def status(self) -> SampleStatus:
        return self.samples[0].status

    @property
    def is_overlay(self) -> bool:
        return any(s.origin is SampleOrigin.OVERLAY for s in self.samples)

    @property
    def is_real(self) -> bool:
        return any(not s.is_synthetic for s in self.samples)


class RegionalAgent(BaseModel):
    model_config = ConfigDict(frozen=True)

    region_name: str
    agent_id: str
    connection: str = "offline"  # online|offline

    @property
    def is_online(self) -> bool:
        return self.connection == "online"

    @property
    def scope_value(self) -> str:
        return f"{self.region_name}|{self.agent_id}"


class SourceScope(BaseModel):
    """Which sources feed the timeline: all, the default checker, or one agent."""

    model_config = ConfigDict(frozen=True)

    kind: str = "all"  # all|default|regional
    region_name: Optional[str] = None
    agent_id: Optional[str] = None

    @classmethod
    def parse(cls, value: Optional[str]) -> "SourceScope":
        if not value or value == "all":
            return cls(kind="all")
        if value == "default":
            return cls(kind="default")
        region, sep, agent = value.partition("|")
        if not sep or not region or not agent:
            raise ValueError(f"invalid source scope: {value!r}")
        return cls(kind="regional", region_name=region, agent_id=agent)

    @classmethod
    def for_agent(cls, agent: RegionalAgent) -> "SourceScope":
        return cls(
            kind="regional", region_name=agent.region_name, agent_id=agent.agent_id
        )

    def __str__(self) -> str:
        if self.kind == "regional":
            return f"{self.region_name}|{self.agent_id}"
        return self.kind


class TimeWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def contains(self, instant: datetime) -> bool:
        if self.start is not None and instant < self.start:
            return False
        if self.end is not None and instant > self.end:
            return False
        return True

    def cache_fragment(self) -> str:
        start = self.start.isoformat() if self.start else ""
        end = self.end.isoformat() if self.end else ""
        return f"{start}_{end}"


class ServiceSnapshot(BaseModel):
    """Locally held state of the monitored service."""

    model_config = ConfigDict(frozen=True)

    service_id: str
    name: str = ""
    service_type: str = "http"
    status: str = "paused"  # up|down|warning|paused|pending
    response_time_ms: int = 0
    last_checked: Optional[datetime] = None
    interval_seconds: int = 60


class CacheEntry(BaseModel):
    key: str
    service_id: str
    payload: list[dict[str, Any]]
    fetched_at: float  # epoch seconds
    ttl_ms: int

    def is_fresh(self, now: float) -> bool:
        return (now - self.fetched_at) * 1000 < self.ttl_ms


class TimelineSnapshot(BaseModel):
    """What the display layer receives: always exactly K slots."""

    service_id: str
    scope: str
    slots: list[Slot]
    rollup_percentage: float
    is_loading: bool = False
    is_stale: bool = False
    last_error: Optional[str] = None
    generated_at: datetime
    dropped_records: int = Field(default=0, ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def slot_count(self) -> int:
        return len(self.slots)
