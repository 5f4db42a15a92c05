import asyncio

import pytest

from sale_service.common.database import StoreError
from sale_service.sales.schemas import CreateSaleRequest
from sale_service.sales.service import Outcome, SaleCreationHandler, SaleStep, new_sale_id


def make_request(**overrides):
    fields = {"date": "2024-08-01", "productId": "prod-1", "clientId": "ci-1", "quantity": 3}
    fields.update(overrides)
    return CreateSaleRequest.model_validate(fields)


def test_sale_ids_are_prefixed_and_distinct():
    ids = {new_sale_id() for _ in range(1000)}
    assert len(ids) == 1000
    assert all(i.startswith("sale-") for i in ids)


async def test_steps_run_in_order(fake_store_factory, announcer_factory):
    store = fake_store_factory(products={"prod-1": 10}, clients={"ci-1"})
    announcer = announcer_factory()
    handler = SaleCreationHandler(store, announcer, id_factory=lambda: "sale-1")

    result = await handler.create_sale(make_request())

    assert result.outcome is Outcome.CREATED
    assert result.status_code == 201
    assert result.body == {
        "saleId": "sale-1", "date": "2024-08-01", "productId": "prod-1", "clientId": "ci-1", "quantity": 3,
    }
    assert store.calls == ["get_product", "get_client", "put_sale", "decrement_product_quantity"]
    assert result.completed == list(SaleStep)
    assert store.products["prod-1"] == 7
    assert announcer.events[0].data.sale_id == "sale-1"


async def test_quantity_is_checked_before_client(fake_store_factory, announcer_factory):
    store = fake_store_factory(products={"prod-1": 2}, clients=())
    handler = SaleCreationHandler(store, announcer_factory())

    result = await handler.create_sale(make_request(clientId="ci-404"))

    assert result.outcome is Outcome.INSUFFICIENT_QUANTITY
    assert store.calls == ["get_product"]


async def test_missing_client_stops_before_writes(fake_store_factory, announcer_factory):
    store = fake_store_factory(products={"prod-1": 10}, clients=())
    announcer = announcer_factory()
    handler = SaleCreationHandler(store, announcer)

    result = await handler.create_sale(make_request())

    assert result.outcome is Outcome.NO_CLIENT
    assert result.body == {"message": "Client does not exist"}
    assert store.sales == []
    assert announcer.events == []


@pytest.mark.parametrize(
    "failing, step, sales_left, quantity_left",
    [
        ("get_product", SaleStep.FETCH_PRODUCT, 0, 10),
        ("get_client", SaleStep.FETCH_CLIENT, 0, 10),
        ("put_sale", SaleStep.PERSIST_SALE, 0, 10),
        ("decrement_product_quantity", SaleStep.DECREMENT_QUANTITY, 1, 10),
    ],
)
async def test_store_fault_aborts_remaining_steps(
    fake_store_factory, announcer_factory, failing, step, sales_left, quantity_left
):
    store = fake_store_factory(
        products={"prod-1": 10}, clients={"ci-1"}, fail_on={failing: StoreError("connection reset")}
    )
    announcer = announcer_factory()
    handler = SaleCreationHandler(store, announcer)

    result = await handler.create_sale(make_request())

    assert result.outcome is Outcome.ERROR
    assert result.status_code == 500
    assert result.body == {"message": "Error creating sale", "error": "connection reset"}
    assert result.failed_step is step
    assert store.calls[-1] == failing
    assert len(store.sales) == sales_left
    assert store.products["prod-1"] == quantity_left
    assert announcer.events == []


async def test_publish_fault_is_reported_without_rollback(fake_store_factory, announcer_factory):
    store = fake_store_factory(products={"prod-1": 10}, clients={"ci-1"})
    handler = SaleCreationHandler(store, announcer_factory(fail=True))

    result = await handler.create_sale(make_request())

    assert result.status_code == 500
    assert result.failed_step is SaleStep.PUBLISH_EVENT
    assert SaleStep.DECREMENT_QUANTITY in result.completed
    assert len(store.sales) == 1
    assert store.products["prod-1"] == 7


async def test_concurrent_sales_can_oversell(fake_store_factory, announcer_factory):
    # Both requests read quantity 1 before either decrements
    store = fake_store_factory(products={"prod-1": 1}, clients={"ci-1"}, hold_reads=2)
    announcer = announcer_factory()
    handler = SaleCreationHandler(store, announcer)

    results = await asyncio.gather(
        handler.create_sale(make_request(quantity=1)),
        handler.create_sale(make_request(quantity=1)),
    )

    assert [r.status_code for r in results] == [201, 201]
    assert store.products["prod-1"] == -1
    assert len(store.sales) == 2
    assert len(announcer.events) == 2
