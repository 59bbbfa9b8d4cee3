from uptime_timeline.core.config import Settings


def test_defaults():
    s = Settings()
    assert s.timeline_slot_count == 20
    assert s.realtime_throttle_seconds == 30.0
    assert s.realtime_max_samples == 100
    assert s.fetch_retries == 3
    assert s.cache_ttl_seconds == 15.0
    assert s.cache_backend == "memory"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("TIMELINE_SLOT_COUNT", "30")
    monkeypatch.setenv("CACHE_TTL_SECONDS", "25")
    monkeypatch.setenv("CACHE_BACKEND", "redis")
    monkeypatch.setenv("APP_LOG_REDACTION_PATTERNS", '["password"]')
    s = Settings()
    assert s.timeline_slot_count == 30
    assert s.cache_ttl_seconds == 25.0
    assert s.cache_backend == "redis"
    assert s.app_log_redaction_patterns == ["password"]
