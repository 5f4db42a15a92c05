from sqlalchemy.pool import StaticPool

from sale_service.common.database import EntityStore
from sale_service.seed import SAMPLE_CLIENTS, SAMPLE_PRODUCTS, seed


async def test_seed_is_repeatable():
    store = EntityStore.from_url("sqlite+aiosqlite://", poolclass=StaticPool)
    try:
        assert await seed(store) == len(SAMPLE_PRODUCTS) + len(SAMPLE_CLIENTS)
        await store.decrement_product_quantity("prod-1", 4)

        assert await seed(store) == 0
        assert (await store.get_product("prod-1")).quantity == 6
        assert await store.get_client("ci-1") is not None
    finally:
        await store.close()
