"""Live timeline for one mounted service.

A view owns everything realtime about the service it shows: the push
subscriptions (held in a per-view registry), a poll task, and one inbox
channel that the reducer drains in order. Push events and poll ticks share
the reducer's throttle gate; ``refetch()`` called directly bypasses it.
Fetches are tagged with a generation number and a completion is applied
only if no newer fetch was issued meanwhile.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from datetime import datetime
from functools import partial
from typing import Any, Callable, List, Mapping, Optional, Tuple

from uptime_timeline.core.config import Settings, settings as default_settings
from uptime_timeline.core.logger import get_logger
from uptime_timeline.domain.events import EventKind, PollTick, PushEvent
from uptime_timeline.domain.models import (
    Sample,
    ServiceSnapshot,
    Slot,
    SourceScope,
    TimelineSnapshot,
    TimeWindow,
)
from uptime_timeline.domain.ports import PushSubscriber
from uptime_timeline.infrastructure.kafka.message_parser import parse_push
from uptime_timeline.realtime.channel import EventChannel, Subscription
from uptime_timeline.realtime.merger import Effect, MergeState, reduce
from uptime_timeline.realtime.registry import SubscriptionKey, SubscriptionRegistry
from uptime_timeline.timeline.normalizer import (
    normalize_records,
    record_service_id,
    resolve_optional,
)
from uptime_timeline.timeline.pipeline import TimelineResult, build_timeline

from .fetch_service import UptimeFetchService
from .timeline_service import to_snapshot, utcnow

logger = get_logger("services.timeline_view")


def scope_accepts(scope: SourceScope, record: Mapping[str, Any]) -> bool:
    """Whether a pushed sample row belongs to the sources ``scope`` shows."""
    if scope.kind == "all":
        return True
    if scope.kind == "default":
        return resolve_optional(record.get("region_name")) is None
    region = resolve_optional(record.get("region_name"))
    agent = resolve_optional(record.get("agent_id"))
    return region == scope.region_name and str(agent) == str(scope.agent_id)


class TimelineView:
    def __init__(
        self,
        fetcher: UptimeFetchService,
        subscriber: Optional[PushSubscriber] = None,
        config: Settings = default_settings,
        now_fn: Callable[[], datetime] = utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.fetcher = fetcher
        self.subscriber = subscriber
        self.config = config
        self.now_fn = now_fn
        self.monotonic = monotonic

        self.registry = SubscriptionRegistry()
        self.scope = SourceScope()
        self.window = TimeWindow()
        self.is_loading = False
        self.is_stale = False
        self.last_error: Optional[str] = None
        self.dropped_records = 0
        self.realtime_enabled = False

        self._state: Optional[MergeState] = None
        self._result: Optional[TimelineResult] = None
        self._overlays: Tuple[Slot, ...] = ()
        self._generation = 0
        # Samples pushed while a fetch is in flight, newest first
        self._pushed: Tuple[Sample, ...] = ()
        self._inbox: Optional[EventChannel[PushEvent]] = None
        self._tasks: List[asyncio.Task] = []
        self._changed = asyncio.Event()

    # -- exposed state -------------------------------------------------

    @property
    def service(self) -> Optional[ServiceSnapshot]:
        return None if self._state is None else self._state.service

    @property
    def timeline(self) -> List[Slot]:
        return [] if self._result is None else list(self._result.slots)

    @property
    def rollup_percentage(self) -> float:
        return 0.0 if self._result is None else self._result.rollup_percentage

    async def wait_changed(self, timeout: float) -> bool:
        """Wait for a rebuild since the last ``snapshot()``; False on timeout."""
        try:
            await asyncio.wait_for(self._changed.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def snapshot(self) -> TimelineSnapshot:
        if self._state is None or self._result is None:
            raise RuntimeError("timeline view is not mounted")
        self._changed.clear()
        return to_snapshot(
            self._state.service.service_id,
            self.scope,
            self._result,
            generated_at=self.now_fn(),
            is_loading=self.is_loading,
            is_stale=self.is_stale,
            last_error=self.last_error,
            dropped_records=self.dropped_records,
        )

    # -- lifecycle -----------------------------------------------------

    async def mount(
        self,
        service: ServiceSnapshot,
        scope: Optional[SourceScope] = None,
        window: Optional[TimeWindow] = None,
        poll: bool = True,
    ) -> None:
        if self._state is not None:
            await self.unmount()

        self.scope = scope or SourceScope()
        self.window = window or TimeWindow()
        self._state = MergeState(
            service=service,
            window=self.window,
            throttle_seconds=self.config.realtime_throttle_seconds,
            max_samples=self.config.realtime_max_samples,
        )
        self._inbox = EventChannel(
            maxsize=self.config.realtime_channel_max_size,
            name=f"timeline:{service.service_id}",
        )
        self._clear()
        self._tasks.append(asyncio.create_task(self._consume(self._inbox)))
        await self._subscribe()
        if poll:
            self._tasks.append(asyncio.create_task(self._poll(service.service_id)))
        logger.info(
            "timeline_view_mounted",
            extra={
                "service_id": service.service_id,
                "scope": str(self.scope),
                "realtime": self.realtime_enabled,
            },
        )
        await self.refetch()

    async def unmount(self) -> None:
        if self._state is None:
            return
        service_id = self._state.service.service_id
        self._generation += 1
        await self.registry.release_all()
        if self._inbox is not None:
            self._inbox.close()
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._state = None
        self._inbox = None
        self.realtime_enabled = False
        logger.info("timeline_view_unmounted", extra={"service_id": service_id})

    async def __aenter__(self) -> "TimelineView":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.unmount()

    # -- operations ----------------------------------------------------

    async def refetch(self) -> bool:
        """Fetch and rebuild. Returns False if a newer fetch superseded this one."""
        if self._state is None:
            raise RuntimeError("timeline view is not mounted")
        self._generation += 1
        generation = self._generation
        self.is_loading = True
        self._pushed = ()
        service = self._state.service
        scope = self.scope

        try:
            fetched = await self.fetcher.fetch(service, scope, self.window)
        except Exception as e:  # noqa: BLE001
            if generation == self._generation:
                self.is_loading = False
                self.last_error = str(e)
            logger.error(
                "timeline_refetch_failed",
                extra={"service_id": service.service_id, "error": str(e)},
            )
            return False

        if generation != self._generation or self._state is None:
            logger.debug(
                "stale_fetch_discarded",
                extra={"service_id": service.service_id, "generation": generation},
            )
            return False

        batch = normalize_records(fetched.records, service.service_id)
        self._state = replace(
            self._state, samples=(*self._pushed, *batch.samples)
        )
        self._pushed = ()
        self.is_stale = fetched.is_stale
        self.last_error = fetched.last_error
        self.dropped_records = batch.dropped
        self.is_loading = False
        self._recompute()
        return True

    async def select_scope(self, scope: SourceScope) -> None:
        if self._state is None:
            raise RuntimeError("timeline view is not mounted")
        if scope == self.scope:
            return
        logger.info(
            "timeline_scope_changed",
            extra={
                "service_id": self._state.service.service_id,
                "from_scope": str(self.scope),
                "to_scope": str(scope),
            },
        )
        self.scope = scope
        self._generation += 1
        self._state = replace(self._state, samples=())
        self._clear()
        await self.registry.release_all()
        await self._subscribe()
        await self.refetch()

    async def handle(self, event: PushEvent) -> Effect:
        if self._state is None:
            return Effect.IGNORED
        self._state, effect = reduce(self._state, event, self.monotonic())
        if effect is Effect.SAMPLE_ADDED:
            if self.is_loading:
                self._pushed = (self._state.samples[0], *self._pushed)[
                    : self._state.max_samples
                ]
            await self.fetcher.invalidate(self._state.service.service_id)
        if effect.needs_recompute:
            self._recompute()
        elif effect is Effect.REFETCH:
            await self.refetch()
        return effect

    # -- internals -----------------------------------------------------

    def _recompute(self) -> None:
        state = self._state
        if state is None:
            return
        self._result = build_timeline(
            state.samples,
            state.service.service_id,
            state.service.status,
            state.service.interval_seconds,
            self.now_fn(),
            retained_overlays=self._overlays,
            size=self.config.timeline_slot_count,
        )
        self._overlays = self._result.overlays
        self._changed.set()

    def _clear(self) -> None:
        self._overlays = ()
        self._pushed = ()
        self.is_loading = True
        self.is_stale = False
        self.last_error = None
        self.dropped_records = 0
        self._recompute()

    async def _subscribe(self) -> None:
        if self.subscriber is None or self._state is None:
            self.realtime_enabled = False
            return
        service_id = self._state.service.service_id
        scope = self.scope

        def is_service(record: Mapping[str, Any]) -> bool:
            return str(resolve_optional(record.get("id"))) == service_id

        def is_sample(record: Mapping[str, Any]) -> bool:
            return record_service_id(record) == service_id and scope_accepts(
                scope, record
            )

        wanted = (
            (EventKind.ENTITY, self.config.realtime_topic_services, is_service),
            (EventKind.SAMPLES, self.config.realtime_topic_samples, is_sample),
        )
        try:
            for kind, topic, predicate in wanted:
                key = SubscriptionKey(service_id, str(scope), kind)
                subscription = await self.registry.acquire(
                    key, partial(self.subscriber.subscribe, topic, predicate)
                )
                self._tasks.append(asyncio.create_task(self._pump(subscription)))
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "realtime_unavailable_poll_only",
                extra={"service_id": service_id, "error": str(e)},
            )
            await self.registry.release_all()
            self.realtime_enabled = False
            return
        self.realtime_enabled = True

    async def _pump(self, subscription: Subscription) -> None:
        async for record in subscription.channel:
            event = parse_push(subscription.topic, record)
            if event is not None and self._inbox is not None:
                self._inbox.publish(event)

    async def _poll(self, service_id: str) -> None:
        while True:
            await asyncio.sleep(self.config.realtime_poll_interval_seconds)
            if self._inbox is None:
                return
            self._inbox.publish(PollTick(service_id=service_id))

    async def _consume(self, inbox: EventChannel[PushEvent]) -> None:
        async for event in inbox:
            try:
                await self.handle(event)
            except Exception as e:  # noqa: BLE001
                logger.exception(
                    "realtime_event_failed",
                    extra={"kind": event.kind.value, "error": str(e)},
                )
