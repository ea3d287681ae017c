from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError
from azure.storage.fileshare.aio import ShareClient, ShareDirectoryClient

from retail_api.exceptions import NotFoundError, StorageError
from retail_api.logging_config import get_child_logger, tracer

logger = get_child_logger("crud.file_share")


async def ensure_share(share_client: ShareClient) -> None:
    try:
        await share_client.create_share()
        logger.info("Created file share", extra={"share": share_client.share_name})
    except ResourceExistsError:
        pass


async def ensure_directory(
    share_client: ShareClient, directory_name: str
) -> ShareDirectoryClient:
    """
    Create every segment of a directory path that does not exist yet.

    Returns:
        Client for the directory, or for the share root if directory_name is empty
    """
    segments = [part for part in directory_name.strip("/").split("/") if part]
    path = ""
    for segment in segments:
        path = f"{path}/{segment}" if path else segment
        try:
            await share_client.get_directory_client(path).create_directory()
        except ResourceExistsError:
            pass
    return share_client.get_directory_client(path)


async def upload_file(
    share_client: ShareClient, directory_name: str, file_name: str, data: bytes
) -> str:
    """
    Write a file into a share directory, creating the directory if needed.

    Returns:
        The stored file name
    """
    with tracer.start_as_current_span("upload_share_file") as span:
        span.set_attribute("share", share_client.share_name)
        span.set_attribute("directory", directory_name)
        span.set_attribute("file.name", file_name)
        span.set_attribute("file.size", len(data))

        try:
            directory_client = await ensure_directory(share_client, directory_name)
            file_client = directory_client.get_file_client(file_name)
            await file_client.upload_file(data)
            logger.info(
                "Uploaded file to share",
                extra={
                    "share": share_client.share_name,
                    "directory": directory_name,
                    "file_name": file_name,
                },
            )
            return file_name
        except Exception as e:
            span.set_attribute("error", True)
            span.set_attribute("error.type", type(e).__name__)
            logger.error(
                f"Error uploading file to share {share_client.share_name}: {e}",
                exc_info=True,
            )
            raise StorageError(
                f"Error uploading '{file_name}' to share '{share_client.share_name}'",
                original_exception=e,
            ) from e


async def download_file(
    share_client: ShareClient, directory_name: str, file_name: str
) -> bytes:
    """
    Read the full content of a file in a share.

    Raises:
        NotFoundError: If the file does not exist
        StorageError: For any other failure
    """
    with tracer.start_as_current_span("download_share_file") as span:
        span.set_attribute("share", share_client.share_name)
        span.set_attribute("file.name", file_name)

        directory_client = share_client.get_directory_client(directory_name.strip("/"))
        file_client = directory_client.get_file_client(file_name)
        try:
            downloader = await file_client.download_file()
            return await downloader.readall()
        except ResourceNotFoundError as e:
            logger.warning(
                "File not found in share",
                extra={
                    "share": share_client.share_name,
                    "directory": directory_name,
                    "file_name": file_name,
                },
            )
            raise NotFoundError(
                f"File '{file_name}' not found in '{share_client.share_name}/{directory_name}'"
            ) from e
        except Exception as e:
            span.set_attribute("error", True)
            logger.error(f"Error downloading file {file_name}: {e}", exc_info=True)
            raise StorageError(
                f"Error downloading '{file_name}' from share '{share_client.share_name}'",
                original_exception=e,
            ) from e
