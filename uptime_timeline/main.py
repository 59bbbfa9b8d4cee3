import asyncio
from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import FastAPI
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from uptime_timeline import __version__
from uptime_timeline.api.router import api_router
from uptime_timeline.core.config import settings
from uptime_timeline.core.logger import configure_logging, get_logger
from uptime_timeline.core.retry import retry_async
from uptime_timeline.infrastructure.clickhouse.client import ClickHouseUptimeReader
from uptime_timeline.infrastructure.kafka.subscriber import KafkaSubscriber
from uptime_timeline.infrastructure.memory.cache_store import MemoryCacheStore
from uptime_timeline.infrastructure.redis.cache_store import RedisCacheStore
from uptime_timeline.services.fetch_service import UptimeFetchService

configure_logging()
logger = get_logger("timeline.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("timeline_service_starting", extra={"cache": settings.cache_backend})
    app.state.redis = None
    if settings.cache_backend == "redis":
        app.state.redis = await _init_redis_with_retry()
        cache = RedisCacheStore(app.state.redis, settings.cache_safety_ttl_seconds)
    else:
        cache = MemoryCacheStore()
    app.state.reader = ClickHouseUptimeReader()
    app.state.fetcher = UptimeFetchService(app.state.reader, cache)
    # Consumers start lazily, one per live view subscription
    app.state.subscriber = KafkaSubscriber()
    app.state.ready_event = asyncio.Event()
    app.state.ready_event.set()
    try:
        yield
    finally:
        logger.info("timeline_service_stopping")
        app.state.reader.close()
        if app.state.redis is not None:
            await app.state.redis.close()


app = FastAPI(title="Uptime Timeline", version=__version__, lifespan=lifespan)
app.include_router(api_router)


async def _init_redis_with_retry():
    async def _connect():
        r = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            decode_responses=True,
        )
        await r.ping()
        return r

    async def _on_retry(attempt: int, exc: BaseException, sleep_for: float):
        logger.warning(
            "redis_connect_retry",
            extra={
                "attempt": attempt,
                "error": str(exc),
                "sleep_for": round(sleep_for, 2),
            },
        )

    r = await retry_async(
        _connect,
        retries=6,
        base_delay=0.5,
        max_delay=8.0,
        jitter=0.2,
        on_retry=_on_retry,
    )
    logger.info("redis_connected")
    return r


@app.get("/metrics")
async def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
