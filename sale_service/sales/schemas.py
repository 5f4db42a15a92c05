from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field


class CreateSaleRequest(BaseModel):
    # Strict: "3" is not a quantity, 3.0 is not a product id
    model_config = ConfigDict(strict=True, populate_by_name=True)

    date: str = Field(examples=["2024-08-01"])
    product_id: str = Field(alias="productId", examples=["prod-1628073549123"])
    client_id: str = Field(alias="clientId", examples=["ci-1234567890"])
    quantity: int = Field(examples=[5])


class SaleData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sale_id: str = Field(alias="saleId", examples=["sale-1628073549123-9f1c2ab4"])
    date: str
    product_id: str = Field(alias="productId")
    client_id: str = Field(alias="clientId")
    quantity: int


class SaleResponse(SaleData):
    pass


class SaleCreatedEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    event_type: str = Field(default="SaleCreated", alias="eventType")
    data: SaleData


class ErrorResponse(BaseModel):
    message: str


class InvalidRequestResponse(BaseModel):
    message: str
    errors: List[Any] = []


class ServerErrorResponse(BaseModel):
    message: str
    error: Any
