import os
import uuid
from datetime import datetime
from typing import List, Optional, Type, TypeVar, Union

from azure.data.tables.aio import TableClient, TableServiceClient
from azure.storage.blob.aio import BlobServiceClient
from azure.storage.fileshare.aio import ShareServiceClient
from azure.storage.queue.aio import QueueServiceClient

from retail_api.config import StorageSettings
from retail_api.crud import blob_crud, file_share_crud, queue_crud, table_crud
from retail_api.logging_config import get_child_logger, tracer
from retail_api.models.base import EntityKind, TableEntityModel

logger = get_child_logger("storage")

EntityT = TypeVar("EntityT", bound=TableEntityModel)

_TABLE_NAMES = {
    EntityKind.CUSTOMER: "Customer",
    EntityKind.PRODUCT: "Product",
    EntityKind.ORDER: "Order",
}


def resolve_table_name(kind: Union[EntityKind, str]) -> str:
    """
    Map an entity kind to its table name. Kinds without an explicit table are
    pluralised by appending "s".
    """
    try:
        kind = EntityKind(kind)
    except ValueError:
        return f"{kind}s"
    return _TABLE_NAMES.get(kind, f"{kind.value}s")


def timestamped_name(file_name: str, now: Optional[datetime] = None) -> str:
    """Prefix a file name with the local time so repeated uploads don't collide."""
    now = now or datetime.now()
    return f"{now:%Y%m%d_%H%M%S}_{os.path.basename(file_name)}"


class StorageService:
    """
    Single entry point to Azure Table, Blob, Queue and File Share storage.

    Build one per process and share it; construction does no I/O. Call
    initialize() once the event loop is running to provision tables,
    containers, queues and the share.
    """

    def __init__(
        self,
        table_service: TableServiceClient,
        blob_service: BlobServiceClient,
        queue_service: QueueServiceClient,
        share_service: ShareServiceClient,
        settings: StorageSettings,
    ):
        self.table_service = table_service
        self.blob_service = blob_service
        self.queue_service = queue_service
        self.share_service = share_service
        self.settings = settings
        self.is_ready = False

    @classmethod
    def from_settings(cls, settings: StorageSettings) -> "StorageService":
        connection_string = settings.connection_string
        return cls(
            table_service=TableServiceClient.from_connection_string(connection_string),
            blob_service=BlobServiceClient.from_connection_string(connection_string),
            queue_service=QueueServiceClient.from_connection_string(connection_string),
            share_service=ShareServiceClient.from_connection_string(connection_string),
            settings=settings,
        )

    async def initialize(self) -> None:
        """
        Create the tables, containers, queues and share directory the
        application relies on, if they don't exist yet.
        """
        with tracer.start_as_current_span("initialize_storage"):
            try:
                for kind in EntityKind:
                    await self.table_service.create_table_if_not_exists(
                        resolve_table_name(kind)
                    )

                await blob_crud.ensure_container(
                    self.blob_service.get_container_client(
                        self.settings.product_images_container
                    ),
                    public_access="blob",
                )
                await blob_crud.ensure_container(
                    self.blob_service.get_container_client(
                        self.settings.payment_proofs_container
                    ),
                    public_access=None,
                )

                for queue_name in self.settings.queue_names:
                    await queue_crud.ensure_queue(
                        self.queue_service.get_queue_client(queue_name)
                    )
                logger.info("Queues created successfully")

                share_client = self.share_service.get_share_client(
                    self.settings.contracts_share
                )
                await file_share_crud.ensure_share(share_client)
                await file_share_crud.ensure_directory(
                    share_client, self.settings.payments_directory
                )
                logger.info("File shares created successfully")
            except Exception as e:
                self.is_ready = False
                logger.error(f"Error initializing Azure Storage: {e}", exc_info=True)
                raise

            self.is_ready = True
            logger.info("Azure Storage initialized successfully")

    async def close(self) -> None:
        for client in (
            self.table_service,
            self.blob_service,
            self.queue_service,
            self.share_service,
        ):
            await client.close()
        self.is_ready = False

    # Table operations

    def _table_client(self, model: Type[TableEntityModel]) -> TableClient:
        return self.table_service.get_table_client(resolve_table_name(model.kind))

    async def list_entities(self, model: Type[EntityT]) -> List[EntityT]:
        return await table_crud.list_entities(self._table_client(model), model)

    async def get_entity(
        self, model: Type[EntityT], partition_key: str, row_key: str
    ) -> Optional[EntityT]:
        return await table_crud.get_entity(
            self._table_client(model), model, partition_key, row_key
        )

    async def add_entity(self, entity: EntityT) -> EntityT:
        return await table_crud.add_entity(self._table_client(type(entity)), entity)

    async def update_entity(self, entity: EntityT, force: bool = False) -> EntityT:
        return await table_crud.update_entity(
            self._table_client(type(entity)), entity, force=force
        )

    async def delete_entity(
        self, model: Type[TableEntityModel], partition_key: str, row_key: str
    ) -> None:
        await table_crud.delete_entity(self._table_client(model), partition_key, row_key)

    # Blob operations

    async def upload_file(
        self,
        data: bytes,
        file_name: str,
        container_name: str,
        content_type: Optional[str] = None,
        public_access: Optional[str] = None,
    ) -> str:
        """Store a file under a timestamp-prefixed name and return its URL."""
        return await blob_crud.upload_blob(
            self.blob_service.get_container_client(container_name),
            timestamped_name(file_name),
            data,
            content_type=content_type,
            public_access=public_access,
        )

    async def upload_image(
        self,
        data: bytes,
        file_name: str,
        container_name: str,
        content_type: Optional[str] = None,
    ) -> str:
        """Store an image under a random name in a publicly readable container."""
        extension = os.path.splitext(file_name)[1]
        return await blob_crud.upload_blob(
            self.blob_service.get_container_client(container_name),
            f"{uuid.uuid4()}{extension}",
            data,
            content_type=content_type,
            public_access="blob",
        )

    async def delete_blob(self, blob_name: str, container_name: str) -> None:
        await blob_crud.delete_blob(
            self.blob_service.get_container_client(container_name), blob_name
        )

    # Queue operations

    async def send_message(self, queue_name: str, payload: str) -> None:
        await queue_crud.send_message(self.queue_service.get_queue_client(queue_name), payload)

    async def receive_message(self, queue_name: str) -> Optional[str]:
        return await queue_crud.receive_message(self.queue_service.get_queue_client(queue_name))

    # File share operations

    async def upload_to_file_share(
        self, data: bytes, file_name: str, share_name: str, directory_name: str = ""
    ) -> str:
        """Store a file in a share directory and return the stored file name."""
        return await file_share_crud.upload_file(
            self.share_service.get_share_client(share_name),
            directory_name,
            timestamped_name(file_name),
            data,
        )

    async def download_from_file_share(
        self, share_name: str, file_name: str, directory_name: str = ""
    ) -> bytes:
        return await file_share_crud.download_file(
            self.share_service.get_share_client(share_name), directory_name, file_name
        )
