from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Timeline shape
    timeline_slot_count: int = 20
    default_check_interval_seconds: int = 60
    placeholder_source_label: str = "Default (Agent 1)"

    # Realtime
    realtime_throttle_seconds: float = 30.0
    realtime_max_samples: int = 100
    realtime_poll_interval_seconds: float = 30.0
    realtime_channel_max_size: int = 1000
    live_heartbeat_seconds: float = 15.0  # resend period when nothing changed

    # Fetch / cache
    fetch_query_limit: int = 100
    fetch_retries: int = 3
    fetch_backoff_base_seconds: float = 1.0
    fetch_backoff_max_seconds: float = 10.0
    fetch_backoff_jitter: float = 0.0
    cache_ttl_seconds: float = 15.0
    cache_safety_ttl_seconds: int = 3600  # keep past ttl for stale fallback

    # Redis
    redis_host: str = "redis"
    redis_port: int = 6379
    redis_db: int = 0
    cache_backend: str = "memory"  # memory|redis

    # ClickHouse
    clickhouse_host: str = "clickhouse"
    clickhouse_port: int = 8123
    clickhouse_db: str = "monitoring"
    clickhouse_user: str = "default"
    clickhouse_password: str = ""

    # Kafka push events
    kafka_bootstrap_servers: str = "kafka1:19092"
    realtime_topic_services: str = "services"
    realtime_topic_samples: str = "uptime_data"
    realtime_consume_from: str = "latest"  # earliest|latest

    # Logging
    app_log_level: str = "INFO"
    app_log_redaction_patterns: list[str] = [
        "password",
        "token",
        "secret",
        "authorization",
        "cookie",
    ]

    otel_service_name: str = "uptime-timeline"
    app_environment: str = "production"


settings = Settings()
