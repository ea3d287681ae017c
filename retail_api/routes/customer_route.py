from typing import Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Path, status

from retail_api.dependencies import get_storage_service
from retail_api.exceptions import DuplicateKeyError, NotFoundError, PreconditionFailedError
from retail_api.logging_config import get_child_logger
from retail_api.models.base import EntityKind
from retail_api.models.customer import Customer, CustomerCreate, CustomerList, CustomerUpdate
from retail_api.models.upload import ActionResult
from retail_api.storage import StorageService

logger = get_child_logger("routes.customer")

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("/", response_model=CustomerList)
async def get_customers(storage: StorageService = Depends(get_storage_service)):
    customers = await storage.list_entities(Customer)
    return CustomerList(items=customers, count=len(customers))


@router.post("/", response_model=Customer, status_code=status.HTTP_201_CREATED)
async def add_new_customer(
    customer: CustomerCreate = Body(..., description="Customer information to create"),
    storage: StorageService = Depends(get_storage_service),
):
    try:
        return await storage.add_entity(Customer(**customer.model_dump()))
    except DuplicateKeyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.get("/{customer_id}", response_model=Customer)
async def get_customer(
    customer_id: str = Path(..., title="The ID of the customer to retrieve"),
    storage: StorageService = Depends(get_storage_service),
):
    customer = await storage.get_entity(Customer, EntityKind.CUSTOMER.value, customer_id)
    if customer is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Customer with ID '{customer_id}' not found",
        )
    return customer


@router.put("/{customer_id}", response_model=Customer)
async def update_existing_customer(
    updated_customer: CustomerUpdate,
    customer_id: str = Path(..., title="The ID of the customer to update"),
    if_match_etag: Optional[str] = Header(
        None,
        alias="If-Match",
        description="ETag from the previous GET request; defaults to the current version",
    ),
    storage: StorageService = Depends(get_storage_service),
):
    customer = await storage.get_entity(Customer, EntityKind.CUSTOMER.value, customer_id)
    if customer is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Customer with ID '{customer_id}' not found",
        )

    replacement = Customer(
        row_key=customer.row_key,
        etag=if_match_etag or customer.etag,
        **updated_customer.model_dump(),
    )
    try:
        return await storage.update_entity(replacement)
    except PreconditionFailedError as e:
        raise HTTPException(status_code=status.HTTP_412_PRECONDITION_FAILED, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.delete("/{customer_id}", response_model=ActionResult)
async def delete_existing_customer(
    customer_id: str = Path(..., title="The ID of the customer to delete"),
    storage: StorageService = Depends(get_storage_service),
):
    await storage.delete_entity(Customer, EntityKind.CUSTOMER.value, customer_id)
    logger.info("Customer deleted", extra={"customer_id": customer_id})
    return ActionResult(message="Customer deleted successfully")
