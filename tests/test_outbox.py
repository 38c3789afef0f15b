"""Tests for outbox event publishing."""

from storefront.application.process_outbox import ProcessOutboxEventsUseCase


async def add_event(uow, order_id="o1"):
    async with uow() as u:
        event_id = await u.outbox.create(
            event_type="order.paid",
            event_data={"order_id": order_id, "items": [{"product_id": "p1", "quantity": 2}]},
            order_id=order_id
        )
        await u.commit()
    return event_id


async def pending(uow):
    async with uow() as u:
        return await u.outbox.get_pending()


class TestProcessOutbox:
    async def test_publishes_and_marks_events(self, uow, event_producer):
        await add_event(uow, "o1")
        await add_event(uow, "o2")
        producer = event_producer()

        published = await ProcessOutboxEventsUseCase(uow, producer)()

        assert published == 2
        assert sorted(key for _, key, _ in producer.published) == ["o1", "o2"]
        event_type, _, payload = producer.published[0]
        assert event_type == "order.paid"
        assert payload["items"] == [{"product_id": "p1", "quantity": 2}]
        assert await pending(uow) == []

    async def test_failed_publish_stays_pending(self, uow, event_producer):
        event_id = await add_event(uow)

        published = await ProcessOutboxEventsUseCase(uow, event_producer(succeed=False))()

        assert published == 0
        assert [event["id"] for event in await pending(uow)] == [event_id]

    async def test_nothing_pending(self, uow, event_producer):
        assert await ProcessOutboxEventsUseCase(uow, event_producer())() == 0


class TestOutboxRepository:
    async def test_mark_published_skips_already_published(self, uow):
        event_id = await add_event(uow)

        async with uow() as u:
            first = await u.outbox.mark_published([event_id])
            second = await u.outbox.mark_published([event_id])
            await u.commit()

        assert (first, second) == (1, 0)
        assert await pending(uow) == []

    async def test_mark_published_empty_batch(self, uow):
        async with uow() as u:
            assert await u.outbox.mark_published([]) == 0
