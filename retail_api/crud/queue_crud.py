from typing import Optional

from azure.core.exceptions import ResourceExistsError
from azure.storage.queue.aio import QueueClient

from retail_api.exceptions import StorageError
from retail_api.logging_config import get_child_logger, tracer

logger = get_child_logger("crud.queue")


async def ensure_queue(queue_client: QueueClient) -> None:
    try:
        await queue_client.create_queue()
        logger.info("Created queue", extra={"queue": queue_client.queue_name})
    except ResourceExistsError:
        pass


async def send_message(queue_client: QueueClient, payload: str) -> None:
    """
    Enqueue a text message.

    Raises:
        StorageError: If the queue service rejects the message
    """
    with tracer.start_as_current_span("send_message") as span:
        span.set_attribute("queue", queue_client.queue_name)
        try:
            await queue_client.send_message(payload)
            logger.info("Message sent", extra={"queue": queue_client.queue_name})
        except Exception as e:
            span.set_attribute("error", True)
            span.set_attribute("error.type", type(e).__name__)
            logger.error(
                f"Error sending message to queue {queue_client.queue_name}: {e}",
                exc_info=True,
            )
            raise StorageError(
                f"Error sending message to queue '{queue_client.queue_name}'",
                original_exception=e,
            ) from e


async def receive_message(queue_client: QueueClient) -> Optional[str]:
    """
    Receive the next visible message and delete it.

    Returns:
        The message content, or None if the queue is empty
    """
    with tracer.start_as_current_span("receive_message") as span:
        span.set_attribute("queue", queue_client.queue_name)
        try:
            message = await queue_client.receive_message()
            if message is None:
                return None

            await queue_client.delete_message(message)
            logger.info("Message received", extra={"queue": queue_client.queue_name})
            return message.content
        except Exception as e:
            span.set_attribute("error", True)
            span.set_attribute("error.type", type(e).__name__)
            logger.error(
                f"Error receiving message from queue {queue_client.queue_name}: {e}",
                exc_info=True,
            )
            raise StorageError(
                f"Error receiving message from queue '{queue_client.queue_name}'",
                original_exception=e,
            ) from e
