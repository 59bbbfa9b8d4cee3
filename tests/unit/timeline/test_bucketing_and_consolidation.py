from datetime import datetime, timedelta, timezone

from factories import T0, make_sample

from uptime_timeline.domain.models import SampleStatus
from uptime_timeline.timeline.bucketing import bucket_samples, floor_minute
from uptime_timeline.timeline.consolidator import consolidate, order_slot_samples


def test_floor_minute():
    instant = datetime(2024, 5, 1, 12, 30, 59, 999000, tzinfo=timezone.utc)
    assert floor_minute(instant) == T0


def test_bucket_keys_are_floored_and_samples_rekeyed():
    s = make_sample(minutes_ago=-0.5)  # 12:30:30
    buckets = bucket_samples([s])
    assert list(buckets) == [T0]
    assert buckets[T0][0].timestamp == T0


def test_first_seen_wins_within_a_minute():
    first = make_sample(minutes_ago=-0.1, status=SampleStatus.DOWN)
    later = make_sample(minutes_ago=-0.9, status=SampleStatus.UP)
    buckets = bucket_samples([first, later])
    assert [s.status for s in buckets[T0]] == [SampleStatus.DOWN]


def test_first_seen_wins_even_when_older_sample_arrives_first():
    # Merge order, not recency, decides which sample a source keeps.
    older = make_sample(minutes_ago=-0.1, status=SampleStatus.DOWN)
    newer = make_sample(minutes_ago=-0.8, status=SampleStatus.UP)
    assert bucket_samples([older, newer])[T0][0].status is SampleStatus.DOWN
    assert bucket_samples([newer, older])[T0][0].status is SampleStatus.UP


def test_distinct_sources_share_a_bucket():
    default = make_sample()
    regional = make_sample(source_id="eu-west (Agent 7)", is_default=False)
    buckets = bucket_samples([regional, default])
    assert len(buckets[T0]) == 2


def test_order_slot_samples_default_first_and_stable():
    a = make_sample(source_id="eu (Agent 2)", is_default=False)
    b = make_sample(source_id="us (Agent 3)", is_default=False)
    d = make_sample()
    ordered = order_slot_samples([a, d, b])
    assert [s.source_id for s in ordered] == [
        "Default (Agent 1)",
        "eu (Agent 2)",
        "us (Agent 3)",
    ]


def test_consolidate_newest_first_and_capped():
    samples = [make_sample(minutes_ago=i) for i in (5, 0, 3, 1)]
    slots = consolidate(bucket_samples(samples), limit=3)
    assert [s.timestamp for s in slots] == [
        T0,
        T0 - timedelta(minutes=1),
        T0 - timedelta(minutes=3),
    ]
