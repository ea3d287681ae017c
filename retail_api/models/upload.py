from typing import List, Optional

from pydantic import BaseModel

from retail_api.models.product import Product


class FileUploadResult(BaseModel):
    """
    Where a proof of payment ended up after upload.
    """

    message: str
    blob_url: str
    share_file_name: str
    order_id: Optional[str] = None
    customer_name: Optional[str] = None


class DashboardSummary(BaseModel):
    featured_products: List[Product]
    product_count: int
    customer_count: int
    order_count: int


class ActionResult(BaseModel):
    """Stands in for a redirect with a flash message."""

    message: str
