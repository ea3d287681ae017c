import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict

from retail_api.exceptions import ConfigurationError

CONNECTION_STRING_VARIABLE = "AZURE_STORAGE_CONNECTION_STRING"


class StorageSettings(BaseModel):
    """
    Connection string plus the names of the containers, queues and share
    the application provisions on startup.
    """

    connection_string: str
    product_images_container: str = "product-images"
    payment_proofs_container: str = "payment-proofs"
    order_notifications_queue: str = "order-notifications"
    stock_updates_queue: str = "stock-updates"
    contracts_share: str = "contracts"
    payments_directory: str = "payments"

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def queue_names(self) -> tuple:
        return (self.order_notifications_queue, self.stock_updates_queue)


# Optional overrides, keyed by settings field
_OVERRIDES = {
    "product_images_container": "PRODUCT_IMAGES_CONTAINER",
    "payment_proofs_container": "PAYMENT_PROOFS_CONTAINER",
    "order_notifications_queue": "ORDER_NOTIFICATIONS_QUEUE",
    "stock_updates_queue": "STOCK_UPDATES_QUEUE",
    "contracts_share": "CONTRACTS_SHARE",
    "payments_directory": "PAYMENTS_DIRECTORY",
}


def load_settings(environ: Optional[Mapping[str, str]] = None) -> StorageSettings:
    """
    Read storage settings from the environment.

    Raises:
        ConfigurationError: If the storage connection string is not set
    """
    if environ is None:
        environ = os.environ

    connection_string = environ.get(CONNECTION_STRING_VARIABLE, "").strip()
    if not connection_string:
        raise ConfigurationError(
            f"{CONNECTION_STRING_VARIABLE} environment variable must be set"
        )

    values = {"connection_string": connection_string}
    for field, variable in _OVERRIDES.items():
        if environ.get(variable):
            values[field] = environ[variable]
    return StorageSettings(**values)
