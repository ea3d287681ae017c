from typing import ClassVar, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from retail_api.models.base import EntityKind, TableEntityModel


class Customer(TableEntityModel):
    """
    A customer row in the Customer table.
    """

    kind: ClassVar[EntityKind] = EntityKind.CUSTOMER

    partition_key: str = Field(default=EntityKind.CUSTOMER.value, alias="PartitionKey")
    username: str
    name: str
    surname: str
    email: str = ""
    shipping_address: str = ""

    @property
    def customer_id(self) -> str:
        return self.row_key

    @property
    def full_name(self) -> str:
        return f"{self.name} {self.surname}".strip()


class CustomerCreate(BaseModel):
    """
    Fields a client provides to create or replace a customer.
    """

    username: str = Field(min_length=1)
    name: str = Field(min_length=1)
    surname: str = Field(min_length=1)
    email: str = ""
    shipping_address: str = ""

    model_config = ConfigDict(extra="forbid")


class CustomerUpdate(CustomerCreate):
    pass


class CustomerList(BaseModel):
    items: List[Customer]
    count: Optional[int] = None
