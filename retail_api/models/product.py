from decimal import Decimal
from typing import ClassVar, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from retail_api.models.base import EntityKind, TableEntityModel, to_money


class Product(TableEntityModel):
    """
    A product row in the Product table.
    """

    kind: ClassVar[EntityKind] = EntityKind.PRODUCT

    partition_key: str = Field(default=EntityKind.PRODUCT.value, alias="PartitionKey")
    name: str  # Product display name
    description: str = ""
    price: Decimal = Field(gt=0)  # Stored as a fixed-point string
    stock_available: int = Field(default=0, ge=0)
    image_url: str = ""

    @property
    def product_id(self) -> str:
        return self.row_key

    @field_validator("price", mode="before")
    @classmethod
    def _quantize_price(cls, value):
        return to_money(value)

    @field_serializer("price")
    def _serialize_price(self, price: Decimal) -> str:
        return f"{price:.2f}"


class ProductPriceRequest(BaseModel):
    """
    Body of the live price/stock lookup used by the order form.
    """

    product_id: str

    model_config = ConfigDict(extra="forbid")


class ProductPriceResponse(BaseModel):
    success: bool
    price: Optional[str] = None
    stock: Optional[int] = None
    product_name: Optional[str] = None


class ProductList(BaseModel):
    items: List[Product]
