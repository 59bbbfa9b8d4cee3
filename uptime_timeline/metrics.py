from prometheus_client import Counter, Histogram

# Normalisation
RECORDS_DROPPED_TOTAL = Counter(
    "timeline_records_dropped_total",
    "Raw records dropped during normalisation.",
    ["reason"],
)

# Fetch layer
FETCH_RETRIES_TOTAL = Counter(
    "timeline_fetch_retries_total", "Source query retries after a failure."
)
FETCH_STALE_SERVED_TOTAL = Counter(
    "timeline_fetch_stale_served_total",
    "Fetches answered from an expired cache entry after the source failed.",
)
FETCH_CACHE_HITS_TOTAL = Counter(
    "timeline_fetch_cache_hits_total", "Fetches answered from a fresh cache entry."
)
SOURCE_FAILURES_TOTAL = Counter(
    "timeline_source_failures_total",
    "Sources that contributed nothing to a refresh cycle.",
)

# Realtime
REALTIME_EVENTS_TOTAL = Counter(
    "timeline_realtime_events_total",
    "Push/poll events seen by the realtime merger.",
    ["kind", "outcome"],
)

# Pipeline
PIPELINE_LATENCY_SECONDS = Histogram(
    "timeline_pipeline_latency_seconds", "Time spent building one timeline."
)
