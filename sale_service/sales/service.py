"""
Create-sale workflow.

The steps run strictly in order and stop at the first failure:

1. fetch the product          -> 400 if absent
2. check available quantity   -> 400 if insufficient
3. fetch the client           -> 400 if absent
4. generate the sale id
5. persist the sale
6. decrement product quantity (relative update in the store)
7. publish SaleCreated
8. answer 201

A fault at 1, 3, 5, 6 or 7 answers 500. Nothing is compensated: when 6 or 7
fails the sale written at 5 stays, and the inventory decrement or the event
may be missing. Steps 1-2 and 6 of concurrent requests are not serialized,
so two sales of the last unit can both succeed.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..common.metrics import SALE_OUTCOMES
from .model import Sale
from .schemas import CreateSaleRequest, SaleCreatedEvent, SaleData

_logger = logging.getLogger(__name__)

PRODUCT_MISSING = "Product does not exist"
INSUFFICIENT_QUANTITY = "Insufficient product quantity available"
CLIENT_MISSING = "Client does not exist"
CREATE_FAILED = "Error creating sale"


class SaleStep(str, Enum):
    FETCH_PRODUCT = "fetch_product"
    CHECK_QUANTITY = "check_quantity"
    FETCH_CLIENT = "fetch_client"
    PERSIST_SALE = "persist_sale"
    DECREMENT_QUANTITY = "decrement_quantity"
    PUBLISH_EVENT = "publish_event"


class Outcome(str, Enum):
    CREATED = "created"
    NO_PRODUCT = "no_product"
    INSUFFICIENT_QUANTITY = "insufficient_quantity"
    NO_CLIENT = "no_client"
    ERROR = "error"


@dataclass
class SaleResult:
    outcome: Outcome
    status_code: int
    body: Dict[str, Any]
    failed_step: Optional[SaleStep] = None
    completed: list = field(default_factory=list)


def new_sale_id() -> str:
    # Millisecond prefix keeps ids roughly ordered; the random part prevents collisions
    return f"sale-{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}"


class SaleCreationHandler:
    def __init__(self, store, announcer, id_factory: Callable[[], str] = new_sale_id):
        self.store = store
        self.announcer = announcer
        self.id_factory = id_factory

    async def create_sale(self, request: CreateSaleRequest) -> SaleResult:
        completed = []
        step = SaleStep.FETCH_PRODUCT
        try:
            product = await self.store.get_product(request.product_id)
            if product is None:
                return self._reject(Outcome.NO_PRODUCT, PRODUCT_MISSING, request, completed)
            completed.append(step)

            step = SaleStep.CHECK_QUANTITY
            if product.quantity < request.quantity:
                return self._reject(Outcome.INSUFFICIENT_QUANTITY, INSUFFICIENT_QUANTITY, request, completed)
            completed.append(step)

            step = SaleStep.FETCH_CLIENT
            client = await self.store.get_client(request.client_id)
            if client is None:
                return self._reject(Outcome.NO_CLIENT, CLIENT_MISSING, request, completed)
            completed.append(step)

            data = SaleData(
                sale_id=self.id_factory(),
                date=request.date,
                product_id=request.product_id,
                client_id=request.client_id,
                quantity=request.quantity,
            )

            step = SaleStep.PERSIST_SALE
            await self.store.put_sale(Sale(
                sale_id=data.sale_id,
                date=data.date,
                product_id=data.product_id,
                client_id=data.client_id,
                quantity=data.quantity,
            ))
            completed.append(step)

            step = SaleStep.DECREMENT_QUANTITY
            await self.store.decrement_product_quantity(data.product_id, data.quantity)
            completed.append(step)

            step = SaleStep.PUBLISH_EVENT
            await self.announce(data)
            completed.append(step)
        except Exception as e:
            _logger.exception(
                "Error creating sale | step=%s product_id=%s client_id=%s completed=%s",
                step.value, request.product_id, request.client_id, [s.value for s in completed],
            )
            SALE_OUTCOMES.labels(outcome=Outcome.ERROR.value).inc()
            return SaleResult(
                outcome=Outcome.ERROR,
                status_code=500,
                body={"message": CREATE_FAILED, "error": str(e)},
                failed_step=step,
                completed=completed,
            )

        _logger.info(
            "Sale created | sale_id=%s product_id=%s client_id=%s qty=%s",
            data.sale_id, data.product_id, data.client_id, data.quantity,
        )
        SALE_OUTCOMES.labels(outcome=Outcome.CREATED.value).inc()
        return SaleResult(
            outcome=Outcome.CREATED,
            status_code=201,
            body=data.model_dump(by_alias=True),
            completed=completed,
        )

    async def announce(self, data: SaleData) -> None:
        await self.announcer.publish(SaleCreatedEvent(data=data))

    def _reject(self, outcome: Outcome, message: str, request: CreateSaleRequest, completed: list) -> SaleResult:
        _logger.info(
            "Sale rejected | reason=%s product_id=%s client_id=%s qty=%s",
            outcome.value, request.product_id, request.client_id, request.quantity,
        )
        SALE_OUTCOMES.labels(outcome=outcome.value).inc()
        return SaleResult(outcome=outcome, status_code=400, body={"message": message}, completed=completed)
