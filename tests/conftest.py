"""
Shared fixtures.

The HTTP tests run against a real EntityStore on in-memory SQLite and a
recording announcer; the workflow tests use the dict-backed FakeStore, which
can inject failures and hold product reads to force request interleaving.
"""

import asyncio
from types import SimpleNamespace

import pytest
import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from sale_service.app import create_app
from sale_service.common.config import Settings
from sale_service.common.database import EntityStore, StoreError
from sale_service.common.kafka_client import AnnouncerError
from sale_service.sales.model import Sale


class RecordingAnnouncer:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.events = []
        self.closed = False

    async def publish(self, event) -> None:
        if self.fail:
            raise AnnouncerError("event announcer is not connected")
        self.events.append(event)

    async def close(self) -> None:
        self.closed = True


class FakeStore:
    def __init__(self, products=None, clients=(), fail_on=None, hold_reads: int = 0):
        self.products = dict(products or {})
        self.clients = set(clients)
        self.sales = []
        self.calls = []
        self.fail_on = fail_on or {}
        # get_product waits until this many reads are in flight
        self.hold_reads = hold_reads
        self._reads = 0
        self._all_read = asyncio.Event()

    def _enter(self, name):
        self.calls.append(name)
        if name in self.fail_on:
            raise self.fail_on[name]

    async def get_product(self, product_id):
        self._enter("get_product")
        snapshot = None
        if product_id in self.products:
            snapshot = SimpleNamespace(product_id=product_id, quantity=self.products[product_id])
        if self.hold_reads:
            self._reads += 1
            if self._reads >= self.hold_reads:
                self._all_read.set()
            await self._all_read.wait()
        return snapshot

    async def get_client(self, client_id):
        self._enter("get_client")
        return SimpleNamespace(ci=client_id) if client_id in self.clients else None

    async def put_sale(self, sale):
        self._enter("put_sale")
        self.sales.append(sale)

    async def decrement_product_quantity(self, product_id, amount):
        self._enter("decrement_product_quantity")
        if product_id not in self.products:
            raise StoreError(f"decrement product {product_id} failed: product not found")
        self.products[product_id] -= amount

    async def close(self):
        pass


@pytest.fixture
def settings():
    return Settings(METRICS_PORT=0, KAFKA_CONNECT_ATTEMPTS=2, KAFKA_CONNECT_BACKOFF=0.0)


@pytest.fixture
async def store():
    store = EntityStore.from_url("sqlite+aiosqlite://", poolclass=StaticPool)
    await store.init_schema()
    await store.add_product("prod-1", 10)
    await store.add_client("ci-1")
    yield store
    await store.close()


@pytest.fixture
def list_sales(store):
    """Reads back the sales table; the service itself never lists sales."""

    async def _list(product_id=None):
        stmt = sa.select(Sale)
        if product_id is not None:
            stmt = stmt.where(Sale.product_id == product_id)
        async with AsyncSession(store.engine) as session:
            res = await session.execute(stmt)
            return list(res.scalars().all())

    return _list


@pytest.fixture
def announcer():
    return RecordingAnnouncer()


@pytest.fixture
def fake_store_factory():
    return FakeStore


@pytest.fixture
def announcer_factory():
    return RecordingAnnouncer


@pytest.fixture
async def app(settings, store, announcer):
    app = create_app(settings, store=store, announcer=announcer)
    async with app.test_app() as test_app:
        yield test_app


@pytest.fixture
def client(app):
    return app.test_client()
