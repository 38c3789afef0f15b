import json
import logging
from aiokafka import AIOKafkaProducer

from storefront.application.interfaces import EventProducer

logger = logging.getLogger(__name__)


class KafkaProducerClient(EventProducer):
    """Публикация событий заказов в Kafka.

    Ключ сообщения это id заказа, поэтому события одного заказа
    попадают в одну партицию и читаются по порядку.
    """

    def __init__(self, bootstrap_servers: str, topic: str, client_id: str = "storefront-outbox"):
        self._bootstrap_servers = bootstrap_servers
        self._topic = topic
        self._client_id = client_id
        self._producer: AIOKafkaProducer | None = None

    async def start(self):
        if self._producer:
            return
        self._producer = AIOKafkaProducer(
            bootstrap_servers=self._bootstrap_servers,
            client_id=self._client_id,
            acks="all",
            enable_idempotence=True,
            value_serializer=lambda value: json.dumps(value).encode()
        )
        await self._producer.start()
        logger.info(f"Kafka producer подключен к {self._bootstrap_servers}, топик {self._topic}")

    async def stop(self):
        if self._producer:
            await self._producer.stop()
            self._producer = None
            logger.info("Kafka producer остановлен")

    async def publish(self, event_type: str, key: str, payload: dict) -> bool:
        if not self._producer:
            logger.error("Kafka producer не запущен")
            return False

        try:
            await self._producer.send_and_wait(
                topic=self._topic,
                key=key.encode(),
                value={"event_type": event_type, **payload},
                headers=[("event_type", event_type.encode())]
            )
            logger.info(f"Опубликовано {event_type} для {key}")
            return True
        except Exception as e:
            logger.error(f"Не удалось опубликовать {event_type} для {key}: {e}")
            return False
