import asyncio
import json
from typing import Any, Callable, Optional

from aiokafka import AIOKafkaConsumer

from uptime_timeline.core.config import settings
from uptime_timeline.core.logger import get_logger
from uptime_timeline.core.retry import retry_async
from uptime_timeline.domain.errors import SubscriptionError
from uptime_timeline.domain.ports import Predicate
from uptime_timeline.realtime.channel import EventChannel, Subscription

from .message_parser import unwrap_record

logger = get_logger("kafka.subscriber")

ConsumerFactory = Callable[[str], Any]


def _default_consumer(topic: str) -> AIOKafkaConsumer:
    # No group id: every view reads the full topic independently.
    return AIOKafkaConsumer(
        topic,
        bootstrap_servers=settings.kafka_bootstrap_servers,
        enable_auto_commit=False,
        auto_offset_reset=settings.realtime_consume_from,
        value_deserializer=lambda v: json.loads(v.decode("utf-8")),
    )


class KafkaSubscriber:
    """Push subscriber backed by one Kafka consumer per subscription.

    Records are unwrapped, filtered with the caller's predicate and published
    on the subscription's channel. Unsubscribing stops the pump and the
    consumer.
    """

    def __init__(
        self,
        consumer_factory: Optional[ConsumerFactory] = None,
        channel_size: Optional[int] = None,
        start_retries: int = 3,
        start_backoff: float = 1.0,
    ):
        self.consumer_factory = consumer_factory or _default_consumer
        self.channel_size = (
            channel_size
            if channel_size is not None
            else settings.realtime_channel_max_size
        )
        self.start_retries = start_retries
        self.start_backoff = start_backoff

    async def subscribe(self, topic: str, predicate: Predicate) -> Subscription:
        try:
            consumer = self.consumer_factory(topic)
        except Exception as e:
            raise SubscriptionError(
                f"could not create consumer for '{topic}': {e}"
            ) from e

        def _log_retry(attempt: int, exc: BaseException, sleep_for: float) -> None:
            logger.warning(
                "kafka_consumer_start_failed",
                extra={"topic": topic, "attempt": attempt, "error": str(exc)},
            )

        try:
            await retry_async(
                consumer.start,
                retries=self.start_retries,
                base_delay=self.start_backoff,
                on_retry=_log_retry,
            )
        except Exception as e:
            await self._stop(consumer, topic)
            raise SubscriptionError(f"could not subscribe to '{topic}': {e}") from e

        channel: EventChannel[dict] = EventChannel(
            maxsize=self.channel_size, name=topic
        )
        task = asyncio.create_task(self._pump(consumer, topic, predicate, channel))

        async def _release() -> None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            await self._stop(consumer, topic)

        logger.info("kafka_consumer_started", extra={"topic": topic})
        return Subscription(topic, channel, release=_release)

    async def _pump(
        self,
        consumer: Any,
        topic: str,
        predicate: Predicate,
        channel: EventChannel,
    ) -> None:
        try:
            async for msg in consumer:
                record = unwrap_record(msg.value)
                if not record:
                    continue
                try:
                    matched = predicate(record)
                except Exception as e:  # noqa: BLE001
                    logger.warning(
                        "subscription_predicate_failed",
                        extra={"topic": topic, "error": str(e)},
                    )
                    continue
                if matched:
                    channel.publish(record)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # noqa: BLE001
            # Closing the channel ends the reader's iteration.
            logger.exception(
                "subscription_pump_failed", extra={"topic": topic, "error": str(e)}
            )
            channel.close()

    async def _stop(self, consumer: Any, topic: str) -> None:
        try:
            await consumer.stop()
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "kafka_consumer_stop_failed", extra={"topic": topic, "error": str(e)}
            )
        else:
            logger.info("kafka_consumer_stopped", extra={"topic": topic})
