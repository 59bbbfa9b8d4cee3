"""Pure reducer for realtime updates.

Pushed entity changes, pushed sample inserts and scheduled poll ticks all
pass through ``reduce``. Each event kind has a cooldown: once an event of a
kind is accepted, further events of that kind are dropped until the window
has elapsed. Nothing is queued for later.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Mapping, Tuple

from uptime_timeline.core.config import settings
from uptime_timeline.domain.errors import MalformedRecordError
from uptime_timeline.domain.events import (
    EntityChange,
    EventKind,
    PollTick,
    PushEvent,
    SampleInserted,
)
from uptime_timeline.domain.models import Sample, ServiceSnapshot, TimeWindow
from uptime_timeline.metrics import REALTIME_EVENTS_TOTAL
from uptime_timeline.timeline.normalizer import to_sample


class Effect(str, Enum):
    IGNORED = "ignored"  # other service
    THROTTLED = "throttled"
    MALFORMED = "malformed"
    OUT_OF_WINDOW = "out_of_window"
    SAMPLE_ADDED = "sample_added"
    ENTITY_UPDATED = "entity_updated"
    REFETCH = "refetch"

    @property
    def needs_recompute(self) -> bool:
        return self in (Effect.SAMPLE_ADDED, Effect.ENTITY_UPDATED)


@dataclass(frozen=True)
class MergeState:
    service: ServiceSnapshot
    samples: Tuple[Sample, ...] = ()
    window: TimeWindow = field(default_factory=TimeWindow)
    last_accepted: Mapping[EventKind, float] = field(default_factory=dict)
    throttle_seconds: float = settings.realtime_throttle_seconds
    max_samples: int = settings.realtime_max_samples


def in_cooldown(state: MergeState, kind: EventKind, now: float) -> bool:
    last = state.last_accepted.get(kind)
    return last is not None and now - last < state.throttle_seconds


def merge_entity(service: ServiceSnapshot, change: EntityChange) -> ServiceSnapshot:
    """Apply only the fields the push carried; absent fields keep their value."""
    fields = change.present_fields()
    if not fields:
        return service
    return service.model_copy(update=fields)


def reduce(
    state: MergeState, event: PushEvent, now: float
) -> tuple[MergeState, Effect]:
    """Fold one event into the state. ``now`` is a monotonic clock reading."""
    new_state, outcome = _reduce(state, event, now)
    REALTIME_EVENTS_TOTAL.labels(kind=event.kind.value, outcome=outcome.value).inc()
    return new_state, outcome


def _reduce(
    state: MergeState, event: PushEvent, now: float
) -> tuple[MergeState, Effect]:
    if event.service_id != state.service.service_id:
        return state, Effect.IGNORED
    kind = event.kind
    if in_cooldown(state, kind, now):
        return state, Effect.THROTTLED

    accepted = replace(state, last_accepted={**state.last_accepted, kind: now})

    if isinstance(event, EntityChange):
        return (
            replace(accepted, service=merge_entity(state.service, event)),
            Effect.ENTITY_UPDATED,
        )
    if isinstance(event, PollTick):
        return accepted, Effect.REFETCH
    if isinstance(event, SampleInserted):
        try:
            sample = to_sample(event.record, state.service.service_id)
        except MalformedRecordError:
            return accepted, Effect.MALFORMED
        if not state.window.contains(sample.timestamp):
            return accepted, Effect.OUT_OF_WINDOW
        samples = (sample, *state.samples)[: state.max_samples]
        return replace(accepted, samples=samples), Effect.SAMPLE_ADDED
    return state, Effect.IGNORED
