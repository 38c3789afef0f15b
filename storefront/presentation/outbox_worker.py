import asyncio
import logging

from storefront.database import create_engine, create_session_factory
from storefront.infrastructure.unit_of_work import UnitOfWork
from storefront.infrastructure.kafka_producer import KafkaProducerClient
from storefront.application.process_outbox import ProcessOutboxEventsUseCase
from storefront.config import settings

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


async def outbox_worker(poll_interval: float = 3.0, error_delay: float = 10.0):
    """Worker для публикации outbox событий в Kafka"""
    logger.info("Outbox worker запущен")

    engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)
    uow = UnitOfWork(create_session_factory(engine))
    kafka_producer = KafkaProducerClient(settings.KAFKA_BOOTSTRAP_SERVERS, settings.KAFKA_TOPIC)

    # Важно: producer нужно запустить!
    await kafka_producer.start()
    use_case = ProcessOutboxEventsUseCase(unit_of_work=uow, event_producer=kafka_producer)

    try:
        while True:
            try:
                processed = await use_case(limit=5)
                if processed:
                    logger.info(f"Опубликовано {processed} outbox events")
                await asyncio.sleep(poll_interval)

            except Exception as e:
                logger.error(f"Ошибка в outbox worker: {e}", exc_info=True)
                await asyncio.sleep(error_delay)
    finally:
        await kafka_producer.stop()
        await engine.dispose()


def main():
    asyncio.run(outbox_worker())


if __name__ == "__main__":
    main()
