import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

# ETag value that matches any stored version
FORCE_ETAG = "*"

TWO_PLACES = Decimal("0.01")


class EntityKind(str, Enum):
    """
    Entity kinds stored in Azure Table Storage. The value doubles as the
    default PartitionKey for records of that kind.
    """

    CUSTOMER = "Customer"
    PRODUCT = "Product"
    ORDER = "Order"
    OUTBOX_MESSAGE = "OutboxMessage"


def to_money(value: Any) -> Decimal:
    """Quantize a price to two decimal places."""
    try:
        return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")


def new_row_key() -> str:
    return str(uuid.uuid4())


class TableEntityModel(BaseModel):
    """
    Fields shared by every table entity.

    PartitionKey and RowKey are stored under their Azure names; etag and
    timestamp come from the entity metadata returned by the service and are
    never written back as properties.
    """

    kind: ClassVar[EntityKind]

    partition_key: str = Field(alias="PartitionKey")
    row_key: str = Field(default_factory=new_row_key, alias="RowKey")
    etag: Optional[str] = None
    timestamp: Optional[datetime] = None

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        validate_assignment=True,
    )

    def to_entity(self) -> Dict[str, Any]:
        """Properties to send to the table service."""
        return self.model_dump(by_alias=True, exclude={"etag", "timestamp"})

    @classmethod
    def from_entity(cls, entity: Mapping[str, Any]):
        """Build a model from a TableEntity, lifting etag/timestamp out of its metadata."""
        data = dict(entity)
        metadata = getattr(entity, "metadata", None) or {}
        data["etag"] = metadata.get("etag")
        data["timestamp"] = metadata.get("timestamp")
        return cls.model_validate(data)
