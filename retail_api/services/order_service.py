from datetime import date, datetime, time, timezone
from typing import Optional

from retail_api.exceptions import (
    ApplicationError,
    BusinessRuleError,
    NotFoundError,
    PreconditionFailedError,
)
from retail_api.logging_config import get_child_logger, tracer
from retail_api.models.base import EntityKind, FORCE_ETAG
from retail_api.models.customer import Customer
from retail_api.models.notification import (
    OrderNotification,
    OrderStatusNotification,
    OutboxMessage,
    StockNotification,
)
from retail_api.models.order import Order, OrderCreate, SUBMITTED
from retail_api.models.product import Product
from retail_api.services.notifications import dispatch_notifications, record_notification
from retail_api.storage import StorageService

logger = get_child_logger("services.order")

# Conditional stock updates attempted before giving up on a contended product
STOCK_UPDATE_ATTEMPTS = 5


def _as_datetime(order_date: date) -> datetime:
    return datetime.combine(order_date, time.min, tzinfo=timezone.utc)


async def _take_stock(
    storage: StorageService, product: Product, quantity: int
) -> tuple:
    """
    Decrement stock with a conditional update on the ETag last read,
    re-reading the product after each lost race.

    Returns:
        (previous stock, updated product)
    """
    for attempt in range(1, STOCK_UPDATE_ATTEMPTS + 1):
        if product.stock_available < quantity:
            raise BusinessRuleError(
                f"Insufficient stock available: {product.stock_available}"
            )

        previous_stock = product.stock_available
        product.stock_available = previous_stock - quantity
        try:
            return previous_stock, await storage.update_entity(product)
        except PreconditionFailedError:
            logger.info(
                "Stock changed concurrently; retrying",
                extra={"product_id": product.product_id, "attempt": attempt},
            )
            product = await storage.get_entity(
                Product, EntityKind.PRODUCT.value, product.product_id
            )
            if product is None:
                raise BusinessRuleError("Invalid customer or product selected")

    raise PreconditionFailedError(
        f"Stock for product '{product.product_id}' kept changing; try again."
    )


async def create_order(storage: StorageService, request: OrderCreate) -> Order:
    """
    Place an order: validate the selection and stock, record the order,
    take the stock and queue the order and stock notifications.

    Raises:
        BusinessRuleError: If the customer/product is missing or stock is insufficient
        PreconditionFailedError: If the stock update kept losing to concurrent writers
        StorageError: If the table service fails
    """
    with tracer.start_as_current_span("create_order") as span:
        span.set_attribute("order.customer_id", request.customer_id)
        span.set_attribute("order.product_id", request.product_id)
        span.set_attribute("order.quantity", request.quantity)

        customer = await storage.get_entity(
            Customer, EntityKind.CUSTOMER.value, request.customer_id
        )
        product = await storage.get_entity(
            Product, EntityKind.PRODUCT.value, request.product_id
        )
        if customer is None or product is None:
            raise BusinessRuleError("Invalid customer or product selected")

        if product.stock_available < request.quantity:
            raise BusinessRuleError(
                f"Insufficient stock available: {product.stock_available}"
            )

        order = Order(
            customer_id=customer.customer_id,
            username=customer.username,
            product_id=product.product_id,
            product_name=product.name,
            order_date=_as_datetime(request.order_date),
            quantity=request.quantity,
            unit_price=product.price,
            total_price=product.price * request.quantity,
            status=SUBMITTED,
        )

        logger.info(
            "Creating order",
            extra={
                "order_id": order.order_id,
                "product_id": product.product_id,
                "unit_price": str(order.unit_price),
                "total_price": str(order.total_price),
                "quantity": order.quantity,
            },
        )
        order = await storage.add_entity(order)

        settings = storage.settings
        # Removed together with the order if the stock update fails
        order_intent = None
        try:
            order_intent = await record_notification(
                storage,
                settings.order_notifications_queue,
                OrderNotification(
                    order_id=order.order_id,
                    customer_id=order.customer_id,
                    customer_name=customer.full_name,
                    product_name=order.product_name,
                    quantity=order.quantity,
                    total_price=order.total_price,
                    order_date=order.order_date,
                    status=order.status,
                ),
            )
            previous_stock, product = await _take_stock(storage, product, request.quantity)
        except ApplicationError:
            await _withdraw_order(storage, order, order_intent)
            raise

        intents = [order_intent]
        try:
            intents.append(
                await record_notification(
                    storage,
                    settings.stock_updates_queue,
                    StockNotification(
                        product_id=product.product_id,
                        product_name=product.name,
                        previous_stock=previous_stock,
                        new_stock=product.stock_available,
                    ),
                )
            )
        except ApplicationError:
            logger.error(
                "Order created but stock notification could not be recorded",
                extra={"order_id": order.order_id, "product_id": product.product_id},
                exc_info=True,
            )
        await dispatch_notifications(storage, intents)

        span.set_attribute("order.id", order.order_id)
        return order


async def _withdraw_order(
    storage: StorageService, order: Order, intent: Optional[OutboxMessage]
) -> None:
    """Remove an order whose stock could not be taken, with its pending notification."""
    logger.warning("Stock update failed; removing order", extra={"order_id": order.order_id})
    try:
        if intent is not None:
            await storage.delete_entity(OutboxMessage, intent.partition_key, intent.row_key)
        await storage.delete_entity(Order, order.partition_key, order.row_key)
    except ApplicationError:
        logger.error(
            "Could not remove order after failed stock update",
            extra={"order_id": order.order_id},
            exc_info=True,
        )


async def update_order(
    storage: StorageService, order_id: str, order_date: date, status: str
) -> Order:
    """
    Change an order's date and status, overwriting concurrent edits.

    Raises:
        NotFoundError: If the order doesn't exist
    """
    order = await storage.get_entity(Order, EntityKind.ORDER.value, order_id)
    if order is None:
        raise NotFoundError(f"Order with ID '{order_id}' not found")

    order.order_date = _as_datetime(order_date)
    order.status = status
    order.etag = FORCE_ETAG
    return await storage.update_entity(order)


async def update_order_status(
    storage: StorageService, order_id: str, new_status: str
) -> Order:
    """
    Set an order's status and queue a status-change notification.

    Raises:
        NotFoundError: If the order doesn't exist
        PreconditionFailedError: If the order changed between read and write
    """
    order = await storage.get_entity(Order, EntityKind.ORDER.value, order_id)
    if order is None:
        raise NotFoundError(f"Order with ID '{order_id}' not found")

    previous_status = order.status
    order.status = new_status
    order = await storage.update_entity(order)

    try:
        intent = await record_notification(
            storage,
            storage.settings.order_notifications_queue,
            OrderStatusNotification(
                order_id=order.order_id,
                previous_status=previous_status,
                new_status=new_status,
            ),
        )
        await dispatch_notifications(storage, [intent])
    except ApplicationError:
        logger.error(
            "Order status updated but notification could not be recorded",
            extra={"order_id": order.order_id},
            exc_info=True,
        )
    return order
