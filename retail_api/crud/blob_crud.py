from typing import Optional

from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import ContainerClient

from retail_api.exceptions import StorageError
from retail_api.logging_config import get_child_logger, tracer

logger = get_child_logger("crud.blob")


async def ensure_container(
    container_client: ContainerClient, public_access: Optional[str] = None
) -> None:
    """
    Create the container if it does not exist yet.

    Args:
        container_client: Client for the container
        public_access: "blob" for anonymous read access to blobs, None for private
    """
    try:
        await container_client.create_container(public_access=public_access)
        logger.info(
            "Created blob container",
            extra={"container": container_client.container_name, "public_access": public_access},
        )
    except ResourceExistsError:
        pass


async def upload_blob(
    container_client: ContainerClient,
    blob_name: str,
    data: bytes,
    content_type: Optional[str] = None,
    public_access: Optional[str] = None,
) -> str:
    """
    Upload bytes to a blob, overwriting any blob of the same name.

    Returns:
        The URL of the stored blob

    Raises:
        StorageError: If the upload fails
    """
    with tracer.start_as_current_span("upload_blob") as span:
        span.set_attribute("container", container_client.container_name)
        span.set_attribute("blob.name", blob_name)
        span.set_attribute("blob.size", len(data))

        try:
            await ensure_container(container_client, public_access=public_access)

            blob_client = container_client.get_blob_client(blob_name)
            content_settings = ContentSettings(content_type=content_type) if content_type else None
            await blob_client.upload_blob(
                data, overwrite=True, content_settings=content_settings
            )

            logger.info(
                f"Uploaded blob to: {blob_client.url}",
                extra={"container": container_client.container_name, "blob_name": blob_name},
            )
            return blob_client.url
        except Exception as e:
            span.set_attribute("error", True)
            span.set_attribute("error.type", type(e).__name__)
            logger.error(
                f"Error uploading blob to container {container_client.container_name}: {e}",
                exc_info=True,
            )
            raise StorageError(
                f"Error uploading '{blob_name}' to container '{container_client.container_name}'",
                original_exception=e,
            ) from e


async def delete_blob(container_client: ContainerClient, blob_name: str) -> None:
    """
    Delete a blob if it exists.
    """
    blob_client = container_client.get_blob_client(blob_name)
    try:
        await blob_client.delete_blob()
        logger.info(
            "Deleted blob",
            extra={"container": container_client.container_name, "blob_name": blob_name},
        )
    except ResourceNotFoundError:
        pass
    except Exception as e:
        logger.error(f"Error deleting blob {blob_name}: {e}", exc_info=True)
        raise StorageError(
            f"Error deleting '{blob_name}' from container '{container_client.container_name}'",
            original_exception=e,
        ) from e
