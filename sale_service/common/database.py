import logging
from typing import Any, Optional

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .db import Base
from ..clients.model import Client
from ..inventory.model import Product
from ..sales.model import Sale

_logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Any infrastructure failure while talking to the store."""


class EntityStore:
    """
    Accessor over the products, clients and sales tables.

    Every operation is a single round trip with its own session. Nothing spans
    more than one operation, so a caller chaining writes gets no atomicity.
    "Not found" is reported as None; only real faults raise StoreError.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._sessions = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    @classmethod
    def from_url(cls, url: Any, **engine_kwargs: Any) -> "EntityStore":
        engine = create_async_engine(url, future=True, echo=False, **engine_kwargs)
        return cls(engine)

    async def init_schema(self) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StoreError(f"schema creation failed: {e}") from e

    async def close(self) -> None:
        await self.engine.dispose()

    async def get_product(self, product_id: str) -> Optional[Product]:
        try:
            async with self._sessions() as session:
                return await session.get(Product, product_id)
        except SQLAlchemyError as e:
            raise StoreError(f"get product {product_id} failed: {e}") from e

    async def get_client(self, client_id: str) -> Optional[Client]:
        try:
            async with self._sessions() as session:
                return await session.get(Client, client_id)
        except SQLAlchemyError as e:
            raise StoreError(f"get client {client_id} failed: {e}") from e

    async def put_sale(self, sale: Sale) -> None:
        try:
            async with self._sessions() as session:
                session.add(sale)
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"put sale {sale.sale_id} failed: {e}") from e
        _logger.debug("Sale stored | sale_id=%s", sale.sale_id)

    async def decrement_product_quantity(self, product_id: str, amount: int) -> None:
        """Relative update evaluated by the store: quantity = quantity - amount."""
        stmt = (
            sa.update(Product)
            .where(Product.product_id == product_id)
            .values(quantity=Product.quantity - amount)
        )
        try:
            async with self._sessions() as session:
                async with session.begin():
                    res = await session.execute(stmt)
                    updated = res.rowcount or 0
        except SQLAlchemyError as e:
            raise StoreError(f"decrement product {product_id} failed: {e}") from e
        if updated == 0:
            raise StoreError(f"decrement product {product_id} failed: product not found")

    async def add_product(self, product_id: str, quantity: int) -> bool:
        """Insert a product unless it already exists. Returns True when added."""
        async with self._sessions() as session:
            if await session.get(Product, product_id) is not None:
                return False
            session.add(Product(product_id=product_id, quantity=quantity))
            await session.commit()
            return True

    async def add_client(self, ci: str) -> bool:
        async with self._sessions() as session:
            if await session.get(Client, ci) is not None:
                return False
            session.add(Client(ci=ci))
            await session.commit()
            return True
