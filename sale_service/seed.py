import asyncio

from .common.config import settings
from .common.database import EntityStore
from .common.secrets_provider import build_secrets_provider, store_url_from_secrets


SAMPLE_PRODUCTS = [
    {"product_id": "prod-1", "quantity": 10},
    {"product_id": "prod-2", "quantity": 50},
    {"product_id": "prod-3", "quantity": 1},
]

SAMPLE_CLIENTS = ["ci-1", "ci-2", "ci-1234567890"]


async def seed(store: EntityStore) -> int:
    await store.init_schema()
    added = 0
    for p in SAMPLE_PRODUCTS:
        # skip existing rows so quantities already sold down are kept
        if await store.add_product(p["product_id"], p["quantity"]):
            added += 1
    for ci in SAMPLE_CLIENTS:
        if await store.add_client(ci):
            added += 1
    return added


async def amain():
    secrets = await build_secrets_provider(settings).fetch()
    store = EntityStore.from_url(store_url_from_secrets(secrets, settings.DB_URL))
    try:
        added = await seed(store)
    finally:
        await store.close()
    print(f"Seed complete. Added {added} rows.")


if __name__ == "__main__":
    asyncio.run(amain())
