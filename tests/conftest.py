"""Pytest fixtures for storefront tests."""

import asyncio
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest
from sqlalchemy import func, select
from sqlalchemy.pool import NullPool

from storefront.application.interfaces import EventProducer, PaymentGateway, PaymentIntent
from storefront.database import create_engine, create_session_factory, create_tables
from storefront.domain.exceptions import PaymentCaptureError, PaymentInitiationError
from storefront.domain.models import AddressInfo, Product
from storefront.infrastructure.cache import CacheRegistry
from storefront.infrastructure.db_schema import orders_tbl
from storefront.infrastructure.unit_of_work import UnitOfWork


class FakePaymentGateway(PaymentGateway):
    """In-memory payment gateway."""

    def __init__(self):
        self.intents = []
        self.captures = []
        self.fail_create = False
        self.fail_capture = False
        self.create_delay = 0.0

    async def create_payment_intent(self, items, total, return_url, cancel_url):
        if self.create_delay:
            await asyncio.sleep(self.create_delay)
        if self.fail_create:
            raise PaymentInitiationError("declined")
        payment_id = f"PAY-{len(self.intents) + 1}"
        self.intents.append({"payment_id": payment_id, "items": items, "total": total})
        return PaymentIntent(payment_id=payment_id, approval_url=f"https://gateway.test/approve/{payment_id}")

    async def confirm_capture(self, payment_id, payer_id):
        if self.fail_capture:
            raise PaymentCaptureError("declined")
        self.captures.append((payment_id, payer_id))


class FakeEventProducer(EventProducer):
    def __init__(self, succeed=True):
        self.succeed = succeed
        self.published = []

    async def publish(self, event_type, key, payload):
        if self.succeed:
            self.published.append((event_type, key, payload))
        return self.succeed


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}", poolclass=NullPool)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def uow(session_factory):
    return UnitOfWork(session_factory)


@pytest.fixture
def caches():
    return CacheRegistry(order_ttl=300, cart_ttl=120, product_ttl=300)


@pytest.fixture
def gateway():
    return FakePaymentGateway()


@pytest.fixture
def address():
    return AddressInfo(address="Lenina 1", city="Kazan", pincode="420000", phone="+79990000000")


@pytest.fixture
def make_product(uow):
    """Insert a product and return it."""

    async def _make(stock=10, price="100.00", sale_price=None, **fields):
        product = Product(
            id=fields.pop("id", str(uuid.uuid4())),
            title=fields.pop("title", "Kurta"),
            price=Decimal(price),
            sale_price=Decimal(sale_price) if sale_price is not None else None,
            total_stock=stock,
            created_at=datetime.now(timezone.utc),
            **fields,
        )
        async with uow() as u:
            await u.products.create(product)
            await u.commit()
        return product

    return _make


@pytest.fixture
def stock_of(uow):
    async def _stock(product_id):
        async with uow() as u:
            return await u.products.get_stock(product_id)

    return _stock


@pytest.fixture
def count_orders(session_factory):
    async def _count():
        async with session_factory() as session:
            return await session.scalar(select(func.count()).select_from(orders_tbl))

    return _count


@pytest.fixture
async def client(session_factory, caches, gateway):
    """HTTP client bound to an app wired to the test database."""
    from storefront.main import create_app

    app = create_app()
    app.state.session_factory = session_factory
    app.state.caches = caches
    app.state.payment_gateway = gateway

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def event_producer():
    return FakeEventProducer
