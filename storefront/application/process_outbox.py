import logging
import json

from storefront.application.interfaces import EventProducer

logger = logging.getLogger(__name__)


class ProcessOutboxEventsUseCase:
    def __init__(self, unit_of_work, event_producer: EventProducer):
        self._uow = unit_of_work
        self._producer = event_producer

    async def __call__(self, limit: int = 5) -> int:
        """Публикует pending события из outbox. Возвращает количество опубликованных."""
        published_ids = []

        async with self._uow() as uow:
            pending = await uow.outbox.get_pending(limit=limit)

            for event in pending:
                try:
                    event_data = event["event_data"]
                    if isinstance(event_data, str):
                        event_data = json.loads(event_data)

                    success = await self._producer.publish(
                        event_type=event["event_type"],
                        key=event["order_id"],
                        payload=event_data
                    )
                except Exception as e:
                    logger.error(f"Ошибка обработки outbox event {event['id']}: {e}")
                    continue

                if success:
                    published_ids.append(event["id"])
                    logger.info(f"Опубликовано {event['event_type']} event {event['id']}")
                else:
                    logger.warning(f"Событие {event['id']} не опубликовано, повтор в следующем цикле")

            await uow.outbox.mark_published(published_ids)
            await uow.commit()

        return len(published_ids)
