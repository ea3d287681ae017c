from datetime import datetime, timezone
from decimal import Decimal
from typing import ClassVar

from pydantic import BaseModel, Field, field_serializer

from retail_api.models.base import EntityKind, TableEntityModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OutboxMessage(TableEntityModel):
    """
    A queue message that has been recorded but not yet delivered.
    """

    kind: ClassVar[EntityKind] = EntityKind.OUTBOX_MESSAGE

    partition_key: str = Field(default=EntityKind.OUTBOX_MESSAGE.value, alias="PartitionKey")
    queue_name: str
    payload: str
    created_at: datetime = Field(default_factory=utc_now)
    attempts: int = 0


class OrderNotification(BaseModel):
    """Payload sent to the order notifications queue when an order is created."""

    order_id: str
    customer_id: str
    customer_name: str
    product_name: str
    quantity: int
    total_price: Decimal
    order_date: datetime
    status: str

    @field_serializer("total_price")
    def _serialize_total(self, value: Decimal) -> str:
        return f"{value:.2f}"


class StockNotification(BaseModel):
    """Payload sent to the stock updates queue after an order takes stock."""

    product_id: str
    product_name: str
    previous_stock: int
    new_stock: int
    updated_by: str = "Order System"
    update_date: datetime = Field(default_factory=utc_now)


class OrderStatusNotification(BaseModel):
    order_id: str
    previous_status: str
    new_status: str
    update_date: datetime = Field(default_factory=utc_now)
