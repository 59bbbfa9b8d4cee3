from datetime import timedelta

from factories import T0, make_sample

from uptime_timeline.domain.models import SampleOrigin, SampleStatus
from uptime_timeline.timeline.bucketing import bucket_samples
from uptime_timeline.timeline.consolidator import consolidate
from uptime_timeline.timeline.overlay import (
    apply_pause,
    is_paused,
    merge_retained_overlays,
    pause_slot,
)


def _slots(*minutes_ago):
    return consolidate(bucket_samples([make_sample(minutes_ago=m) for m in minutes_ago]), 20)


def test_is_paused():
    assert is_paused("paused")
    assert is_paused("PAUSED")
    assert not is_paused("up")
    assert not is_paused(None)


def test_apply_pause_only_replaces_newest_slot():
    slots = _slots(*range(20))
    now = T0 + timedelta(seconds=10)
    paused = apply_pause(slots, "svc-1", now)
    assert len(paused) == 20
    assert paused[0].status is SampleStatus.PAUSED
    assert paused[0].samples[0].origin is SampleOrigin.OVERLAY
    assert paused[0].samples[0].response_time_ms == 0
    assert paused[0].timestamp == T0
    assert paused[1:] == slots[1:]


def test_apply_pause_never_keys_before_newest_slot():
    slots = _slots(0)
    paused = apply_pause(slots, "svc-1", T0 - timedelta(minutes=5))
    assert paused[0].timestamp == T0


def test_apply_pause_on_empty_is_empty():
    assert apply_pause([], "svc-1", T0) == []


def test_merge_retained_overlays_yields_to_real_data():
    slots = _slots(1, 2)
    overlay_now = pause_slot("svc-1", T0)
    overlay_taken = pause_slot("svc-1", T0 - timedelta(minutes=1))
    merged = merge_retained_overlays(slots, [overlay_now, overlay_taken], 20)
    assert [s.timestamp for s in merged] == [
        T0,
        T0 - timedelta(minutes=1),
        T0 - timedelta(minutes=2),
    ]
    assert merged[0].is_overlay
    assert not merged[1].is_overlay


def test_merge_retained_overlays_caps_length():
    slots = _slots(*range(1, 21))
    merged = merge_retained_overlays(slots, [pause_slot("svc-1", T0)], 20)
    assert len(merged) == 20
    assert merged[0].is_overlay
