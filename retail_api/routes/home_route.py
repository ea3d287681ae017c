from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Path, status
from fastapi.responses import JSONResponse

from retail_api.dependencies import get_storage_service
from retail_api.logging_config import get_child_logger
from retail_api.models.customer import Customer
from retail_api.models.order import Order
from retail_api.models.product import Product
from retail_api.models.upload import ActionResult, DashboardSummary
from retail_api.storage import StorageService

logger = get_child_logger("routes.home")

router = APIRouter(tags=["home"])

FEATURED_PRODUCT_COUNT = 5


@router.get("/", response_model=DashboardSummary)
async def dashboard(storage: StorageService = Depends(get_storage_service)):
    products = await storage.list_entities(Product)
    customers = await storage.list_entities(Customer)
    orders = await storage.list_entities(Order)

    return DashboardSummary(
        featured_products=products[:FEATURED_PRODUCT_COUNT],
        product_count=len(products),
        customer_count=len(customers),
        order_count=len(orders),
    )


@router.post("/initialize-storage", response_model=ActionResult)
async def initialize_storage(storage: StorageService = Depends(get_storage_service)):
    try:
        await storage.initialize()
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Failed to initialize storage: {e}",
        )
    return ActionResult(message="Azure Storage initialized successfully")


@router.get("/health")
async def health(storage: StorageService = Depends(get_storage_service)) -> JSONResponse:
    """Readiness check: passes once storage has been provisioned."""
    ready = storage.is_ready
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "pass" if ready else "fail",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


@router.get("/queues/{queue_name}/next")
async def next_queue_message(
    queue_name: str = Path(..., title="Notification queue to read from"),
    storage: StorageService = Depends(get_storage_service),
):
    """Pop the next notification from one of the application's queues."""
    if queue_name not in storage.settings.queue_names:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown queue '{queue_name}'",
        )
    return {"queue": queue_name, "message": await storage.receive_message(queue_name)}
