from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class EventKind(str, Enum):
    """Throttle classes. Each kind has its own cooldown."""

    ENTITY = "entity"
    SAMPLES = "samples"


class EntityChange(BaseModel):
    """Partial update of the service record; ``None`` means "not in the push"."""

    model_config = ConfigDict(frozen=True)

    service_id: str
    status: Optional[str] = None
    response_time_ms: Optional[int] = None
    last_checked: Optional[datetime] = None
    interval_seconds: Optional[int] = None

    @property
    def kind(self) -> EventKind:
        return EventKind.ENTITY

    def present_fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"service_id"}, exclude_none=True)


class SampleInserted(BaseModel):
    """A new check result was written for ``service_id``."""

    model_config = ConfigDict(frozen=True)

    service_id: str
    record: Dict[str, Any] = Field(default_factory=dict)

    @property
    def kind(self) -> EventKind:
        return EventKind.SAMPLES


class PollTick(BaseModel):
    """Scheduled refresh; shares the sample gate with pushed inserts."""

    model_config = ConfigDict(frozen=True)

    service_id: str

    @property
    def kind(self) -> EventKind:
        return EventKind.SAMPLES


PushEvent = EntityChange | SampleInserted | PollTick
