"""
Outbox for queue notifications.

Notifications are first written to the OutboxMessages table and then sent to
their queue; an entry is removed only after its send succeeded. Entries left
behind by a failed send are retried by dispatch_pending_notifications, which
also runs on a timer, so delivery is at least once.
"""

from typing import List

from pydantic import BaseModel

from retail_api.exceptions import ApplicationError
from retail_api.logging_config import get_child_logger, tracer
from retail_api.models.notification import OutboxMessage
from retail_api.storage import StorageService

logger = get_child_logger("services.notifications")


async def record_notification(
    storage: StorageService, queue_name: str, payload: BaseModel
) -> OutboxMessage:
    """Persist a notification intent for later delivery."""
    message = OutboxMessage(queue_name=queue_name, payload=payload.model_dump_json())
    return await storage.add_entity(message)


async def dispatch_notification(storage: StorageService, message: OutboxMessage) -> bool:
    """
    Send one outbox entry to its queue and remove it from the outbox.

    Returns:
        True if the message was delivered
    """
    with tracer.start_as_current_span("dispatch_notification") as span:
        span.set_attribute("queue", message.queue_name)
        span.set_attribute("outbox.id", message.row_key)

        try:
            await storage.send_message(message.queue_name, message.payload)
        except ApplicationError as e:
            span.set_attribute("error", True)
            logger.warning(
                "Notification delivery failed; left in outbox",
                extra={
                    "queue": message.queue_name,
                    "outbox_id": message.row_key,
                    "attempts": message.attempts + 1,
                    "error": str(e),
                },
            )
            message.attempts += 1
            try:
                await storage.update_entity(message)
            except ApplicationError:
                logger.warning(
                    "Could not record failed delivery attempt",
                    extra={"outbox_id": message.row_key},
                    exc_info=True,
                )
            return False

        try:
            await storage.delete_entity(OutboxMessage, message.partition_key, message.row_key)
        except ApplicationError:
            # Sent but still in the outbox; the next dispatch sends it again
            logger.warning(
                "Could not remove delivered notification from outbox",
                extra={"outbox_id": message.row_key},
                exc_info=True,
            )
        return True


async def dispatch_notifications(
    storage: StorageService, messages: List[OutboxMessage]
) -> int:
    delivered = 0
    for message in messages:
        if await dispatch_notification(storage, message):
            delivered += 1
    return delivered


async def dispatch_pending_notifications(storage: StorageService) -> int:
    """
    Deliver everything still sitting in the outbox, oldest first.

    Returns:
        The number of messages delivered
    """
    pending = await storage.list_entities(OutboxMessage)
    pending.sort(key=lambda message: message.created_at)

    delivered = await dispatch_notifications(storage, pending)
    if pending:
        logger.info(
            f"Dispatched {delivered}/{len(pending)} pending notifications",
            extra={"delivered": delivered, "pending": len(pending)},
        )
    return delivered
