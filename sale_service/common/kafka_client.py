import asyncio
import json
import logging
from typing import Callable, Optional

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError
from pydantic import BaseModel

_logger = logging.getLogger(__name__)


class AnnouncerError(Exception):
    """Raised when an event cannot be handed to the broker."""


class EventAnnouncer:
    """
    Fire-and-forget publisher for a single topic.

    The producer is started once at process startup. If every connect attempt
    fails the announcer stays unusable for the life of the process and each
    publish() raises AnnouncerError.
    """

    def __init__(
        self,
        bootstrap_servers: str,
        topic: str,
        connect_attempts: int = 2,
        backoff: float = 1.0,
        producer_factory: Callable[..., AIOKafkaProducer] = AIOKafkaProducer,
    ):
        self.bootstrap_servers = bootstrap_servers
        self.topic = topic
        self.connect_attempts = max(connect_attempts, 1)
        self.backoff = backoff
        self._producer_factory = producer_factory
        self._producer: Optional[AIOKafkaProducer] = None

    @property
    def available(self) -> bool:
        return self._producer is not None

    async def start(self) -> bool:
        last_exc: Optional[BaseException] = None
        for attempt in range(1, self.connect_attempts + 1):
            producer = self._producer_factory(bootstrap_servers=self.bootstrap_servers)
            try:
                await producer.start()
            except Exception as e:
                last_exc = e
                _logger.warning(
                    "Kafka connect attempt failed | attempt=%s/%s servers=%s err=%s",
                    attempt, self.connect_attempts, self.bootstrap_servers, e,
                )
                await producer.stop()
                if attempt < self.connect_attempts:
                    await asyncio.sleep(self.backoff)
                continue
            self._producer = producer
            _logger.info("Connected to Kafka | servers=%s topic=%s", self.bootstrap_servers, self.topic)
            return True
        _logger.error("Error connecting to Kafka, sale events will not be published | err=%s", last_exc)
        return False

    async def publish(self, event: BaseModel) -> None:
        if not self.available:
            raise AnnouncerError("event announcer is not connected")
        payload = json.dumps(event.model_dump(by_alias=True)).encode("utf-8")
        try:
            # Enqueue only; delivery is not awaited
            delivery = await self._producer.send(self.topic, payload)
        except KafkaError as e:
            raise AnnouncerError(f"publish to {self.topic} failed: {e}") from e
        delivery.add_done_callback(self._log_delivery_failure)
        _logger.info("Event published | topic=%s payload=%s", self.topic, payload.decode("utf-8"))

    def _log_delivery_failure(self, delivery: asyncio.Future) -> None:
        if delivery.cancelled():
            _logger.warning("Sale event delivery cancelled | topic=%s", self.topic)
            return
        err = delivery.exception()
        if err is not None:
            _logger.error("Sale event delivery failed | topic=%s err=%s", self.topic, err)

    async def close(self) -> None:
        if self._producer is not None:
            await self._producer.stop()
            self._producer = None
