from decimal import Decimal, InvalidOperation
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Path, UploadFile, status

from retail_api.dependencies import get_storage_service
from retail_api.exceptions import (
    ApplicationError,
    DuplicateKeyError,
    NotFoundError,
    PreconditionFailedError,
    StorageError,
)
from retail_api.logging_config import get_child_logger, tracer
from retail_api.models.base import EntityKind, to_money
from retail_api.models.product import Product, ProductList
from retail_api.models.upload import ActionResult
from retail_api.storage import StorageService

logger = get_child_logger("routes.product")

router = APIRouter(prefix="/products", tags=["products"])

INVALID_PRICE = "Price must be greater than $0.00."


def parse_price(raw_price: str) -> Decimal:
    """
    Parse the price form field.

    Raises:
        HTTPException: 400 if the value is not a positive number
    """
    try:
        price = Decimal(raw_price.strip())
        if not price.is_finite():
            raise ValueError(f"Non-finite price: {price}")
        price = to_money(price)
    except (InvalidOperation, ValueError):
        logger.warning(f"Failed to parse price: '{raw_price}'")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_PRICE)
    if price <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_PRICE)
    return price


async def _store_image(storage: StorageService, image: UploadFile) -> str:
    try:
        data = await image.read()
        return await storage.upload_image(
            data,
            image.filename or "image",
            storage.settings.product_images_container,
            content_type=image.content_type,
        )
    except StorageError as e:
        logger.error("Image upload failed", exc_info=e.original_exception)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Image upload failed. Please try again.",
        )
    finally:
        await image.close()


async def _discard_image(storage: StorageService, image_url: str) -> None:
    """Delete a product image stored in the product images container."""
    container = storage.settings.product_images_container
    if f"/{container}/" not in image_url:
        return
    try:
        await storage.delete_blob(image_url.rsplit("/", 1)[1], container)
    except StorageError:
        logger.warning("Could not delete old product image", extra={"image_url": image_url}, exc_info=True)


def _has_content(image: Optional[UploadFile]) -> bool:
    return image is not None and bool(image.filename) and (image.size is None or image.size > 0)


@router.get("/", response_model=ProductList)
async def get_products(storage: StorageService = Depends(get_storage_service)):
    with tracer.start_as_current_span("api_get_products") as span:
        products = await storage.list_entities(Product)
        span.set_attribute("products.count", len(products))
        return ProductList(items=products)


@router.post("/", response_model=Product, status_code=status.HTTP_201_CREATED)
async def add_new_product(
    name: str = Form(..., min_length=1),
    description: str = Form(""),
    price: str = Form(...),
    stock_available: int = Form(..., ge=0),
    image: Optional[UploadFile] = File(None),
    storage: StorageService = Depends(get_storage_service),
):
    parsed_price = parse_price(price)
    logger.info(f"Parsed price: {parsed_price}")

    image_url = ""
    if _has_content(image):
        image_url = await _store_image(storage, image)

    product = Product(
        name=name,
        description=description,
        price=parsed_price,
        stock_available=stock_available,
        image_url=image_url,
    )
    try:
        return await storage.add_entity(product)
    except DuplicateKeyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except StorageError as e:
        logger.error(f"Storage error creating product: {e}", exc_info=e.original_exception)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"An error occurred while creating the product: {e}",
        )


@router.get("/{product_id}", response_model=Product)
async def get_product(
    product_id: str = Path(..., title="The ID of the product to retrieve"),
    storage: StorageService = Depends(get_storage_service),
):
    product = await storage.get_entity(Product, EntityKind.PRODUCT.value, product_id)
    if product is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Product with ID '{product_id}' not found",
        )
    return product


@router.put("/{product_id}", response_model=Product)
async def update_existing_product(
    product_id: str = Path(..., title="The ID of the product to update"),
    name: str = Form(..., min_length=1),
    description: str = Form(""),
    price: str = Form(...),
    stock_available: int = Form(..., ge=0),
    image: Optional[UploadFile] = File(None),
    if_match_etag: Optional[str] = Header(
        None,
        alias="If-Match",
        description="ETag from the previous GET request; defaults to the current version",
    ),
    storage: StorageService = Depends(get_storage_service),
):
    parsed_price = parse_price(price)
    logger.info(f"Edit: Parsed price: {parsed_price}")

    product = await storage.get_entity(Product, EntityKind.PRODUCT.value, product_id)
    if product is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Product with ID '{product_id}' not found",
        )

    product.name = name
    product.description = description
    product.price = parsed_price
    product.stock_available = stock_available
    if if_match_etag:
        product.etag = if_match_etag

    old_image_url = None
    if _has_content(image):
        old_image_url = product.image_url
        product.image_url = await _store_image(storage, image)
    new_image_url = product.image_url if old_image_url is not None else None

    try:
        try:
            product = await storage.update_entity(product)
        except ApplicationError:
            # The product keeps its previous image
            if new_image_url:
                await _discard_image(storage, new_image_url)
            raise
    except PreconditionFailedError as e:
        raise HTTPException(status_code=status.HTTP_412_PRECONDITION_FAILED, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StorageError as e:
        logger.error(f"Error updating product: {e}", exc_info=e.original_exception)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error updating product: {e}",
        )

    if old_image_url:
        await _discard_image(storage, old_image_url)
    return product


@router.delete("/{product_id}", response_model=ActionResult)
async def delete_existing_product(
    product_id: str = Path(..., title="The ID of the product to delete"),
    storage: StorageService = Depends(get_storage_service),
):
    product = await storage.get_entity(Product, EntityKind.PRODUCT.value, product_id)
    try:
        await storage.delete_entity(Product, EntityKind.PRODUCT.value, product_id)
    except StorageError as e:
        logger.error(f"Error deleting product: {e}", exc_info=e.original_exception)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error deleting product: {e}",
        )

    if product is not None and product.image_url:
        await _discard_image(storage, product.image_url)
    return ActionResult(message="Product deleted successfully")
