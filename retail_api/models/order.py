from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar, List

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from retail_api.models.base import EntityKind, TableEntityModel, to_money
from retail_api.models.customer import Customer
from retail_api.models.product import Product

SUBMITTED = "Submitted"


class Order(TableEntityModel):
    """
    An order row in the Order table.

    Customer username, product name and prices are copied in at creation
    time and are not refreshed when the customer or product changes.
    """

    kind: ClassVar[EntityKind] = EntityKind.ORDER

    partition_key: str = Field(default=EntityKind.ORDER.value, alias="PartitionKey")
    customer_id: str
    username: str
    product_id: str
    product_name: str
    order_date: datetime
    quantity: int = Field(ge=1)
    unit_price: Decimal
    total_price: Decimal
    status: str = SUBMITTED

    @property
    def order_id(self) -> str:
        return self.row_key

    @field_validator("unit_price", "total_price", mode="before")
    @classmethod
    def _quantize_money(cls, value):
        return to_money(value)

    @field_serializer("unit_price", "total_price")
    def _serialize_money(self, value: Decimal) -> str:
        return f"{value:.2f}"


class OrderCreate(BaseModel):
    """
    Fields submitted by the order form.
    """

    customer_id: str = Field(min_length=1)
    product_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    order_date: date = Field(default_factory=date.today)

    model_config = ConfigDict(extra="forbid")


class OrderEdit(BaseModel):
    """
    The fields of an existing order that staff may change.
    """

    order_date: date
    status: str = Field(min_length=1)

    model_config = ConfigDict(extra="forbid")


class OrderStatusUpdate(BaseModel):
    id: str
    new_status: str = Field(min_length=1)

    model_config = ConfigDict(extra="forbid")


class OrderStatusResult(BaseModel):
    success: bool
    message: str


class OrderFormOptions(BaseModel):
    """
    Customers and products offered by the order form drop-downs.
    """

    customers: List[Customer]
    products: List[Product]


class OrderList(BaseModel):
    items: List[Order]
