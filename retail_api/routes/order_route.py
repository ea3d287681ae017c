from fastapi import APIRouter, Body, Depends, HTTPException, Path, status

from retail_api.dependencies import get_storage_service
from retail_api.exceptions import (
    ApplicationError,
    BusinessRuleError,
    NotFoundError,
    PreconditionFailedError,
    StorageError,
)
from retail_api.logging_config import get_child_logger, tracer
from retail_api.models.base import EntityKind
from retail_api.models.customer import Customer
from retail_api.models.order import (
    Order,
    OrderCreate,
    OrderEdit,
    OrderFormOptions,
    OrderList,
    OrderStatusResult,
    OrderStatusUpdate,
)
from retail_api.models.product import Product, ProductPriceRequest, ProductPriceResponse
from retail_api.models.upload import ActionResult
from retail_api.services.order_service import create_order, update_order, update_order_status
from retail_api.storage import StorageService

logger = get_child_logger("routes.order")

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("/", response_model=OrderList)
async def get_orders(storage: StorageService = Depends(get_storage_service)):
    orders = await storage.list_entities(Order)
    for order in orders:
        logger.debug(
            "Retrieved order",
            extra={
                "order_id": order.order_id,
                "unit_price": str(order.unit_price),
                "total_price": str(order.total_price),
            },
        )
    return OrderList(items=orders)


@router.get("/form-options", response_model=OrderFormOptions)
async def get_order_form_options(storage: StorageService = Depends(get_storage_service)):
    return OrderFormOptions(
        customers=await storage.list_entities(Customer),
        products=await storage.list_entities(Product),
    )


@router.post("/", response_model=Order, status_code=status.HTTP_201_CREATED)
async def add_new_order(
    order_request: OrderCreate = Body(..., description="Order form submission"),
    storage: StorageService = Depends(get_storage_service),
):
    with tracer.start_as_current_span("api_create_order") as span:
        try:
            order = await create_order(storage, order_request)
        except BusinessRuleError as e:
            span.set_attribute("error", True)
            span.set_attribute("error.type", "business_rule")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        except PreconditionFailedError as e:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
        except StorageError as e:
            span.set_attribute("error", True)
            span.set_attribute("error.type", "storage_error")
            logger.error(f"Storage error creating order: {e}", exc_info=e.original_exception)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"An error occurred while creating the order: {e}",
            )

        logger.info("Order created successfully", extra={"order_id": order.order_id})
        return order


@router.post("/product-price", response_model=ProductPriceResponse)
async def get_product_price(
    price_request: ProductPriceRequest,
    storage: StorageService = Depends(get_storage_service),
):
    try:
        product = await storage.get_entity(
            Product, EntityKind.PRODUCT.value, price_request.product_id
        )
    except StorageError:
        logger.warning(
            "Price lookup failed",
            extra={"product_id": price_request.product_id},
            exc_info=True,
        )
        return ProductPriceResponse(success=False)

    if product is None:
        return ProductPriceResponse(success=False)
    return ProductPriceResponse(
        success=True,
        price=f"{product.price:.2f}",
        stock=product.stock_available,
        product_name=product.name,
    )


@router.post("/status", response_model=OrderStatusResult)
async def change_order_status(
    status_update: OrderStatusUpdate,
    storage: StorageService = Depends(get_storage_service),
):
    try:
        await update_order_status(storage, status_update.id, status_update.new_status)
    except NotFoundError:
        return OrderStatusResult(success=False, message="Order not found")
    except ApplicationError as e:
        return OrderStatusResult(success=False, message=str(e))
    return OrderStatusResult(
        success=True, message=f"Order status updated to {status_update.new_status}"
    )


@router.get("/{order_id}", response_model=Order)
async def get_order(
    order_id: str = Path(..., title="The ID of the order to retrieve"),
    storage: StorageService = Depends(get_storage_service),
):
    order = await storage.get_entity(Order, EntityKind.ORDER.value, order_id)
    if order is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order with ID '{order_id}' not found",
        )
    return order


@router.put("/{order_id}", response_model=Order)
async def edit_order(
    changes: OrderEdit,
    order_id: str = Path(..., title="The ID of the order to edit"),
    storage: StorageService = Depends(get_storage_service),
):
    try:
        return await update_order(storage, order_id, changes.order_date, changes.status)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StorageError as e:
        logger.error(f"Error updating order: {e}", exc_info=e.original_exception)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error updating order: {e}",
        )


@router.delete("/{order_id}", response_model=ActionResult)
async def delete_existing_order(
    order_id: str = Path(..., title="The ID of the order to delete"),
    storage: StorageService = Depends(get_storage_service),
):
    try:
        await storage.delete_entity(Order, EntityKind.ORDER.value, order_id)
    except StorageError as e:
        logger.error(f"Error deleting order: {e}", exc_info=e.original_exception)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error deleting order: {e}",
        )
    return ActionResult(message="Order deleted successfully")
